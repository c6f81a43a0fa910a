"""
Schema registry mapping file names to their Pydantic schemas.

This registry enables automatic schema lookup based on file name and
provides a central reference for all analysis output schemas.
"""

from typing import Type, Dict, Optional
from pathlib import Path
from pydantic import BaseModel

from .scheduling import (
    ScheduleRow,
    FindingRow,
    FloatPathRow,
    RiskActivityRow,
    RiskDurationRow,
    RiskEventRow,
)


# Keys are file names (without path), values are Pydantic model classes
SCHEMA_REGISTRY: Dict[str, Type[BaseModel]] = {
    # CPM results
    'schedule.csv': ScheduleRow,
    'float_paths.csv': FloatPathRow,

    # Checker
    'findings.csv': FindingRow,

    # Monte Carlo
    'risk_activities.csv': RiskActivityRow,
    'risk_durations.csv': RiskDurationRow,
    'risk_events.csv': RiskEventRow,
}


def get_schema_for_file(file_path: str) -> Optional[Type[BaseModel]]:
    """
    Get the schema for a file based on its name.

    Args:
        file_path: Path to the file (can be full path or just filename)

    Returns:
        Pydantic model class or None if no schema registered
    """
    filename = Path(file_path).name
    return SCHEMA_REGISTRY.get(filename)


def list_registered_files() -> list:
    """Return list of all registered file names."""
    return sorted(SCHEMA_REGISTRY.keys())
