"""
Schedule Analysis Module.

Provides calendar-aware CPM scheduling, schedule quality checks and Monte
Carlo schedule risk analysis.
"""

from .cpm import (
    Activity,
    ActivityKind,
    ConstraintType,
    Dependency,
    RelationType,
    ScheduledNetwork,
    WorkCalendar,
    ActivityNetwork,
    CPMEngine,
    schedule,
)
from .analysis import (
    check,
    Finding,
    FindingKind,
    Severity,
    ThresholdConfig,
    simulate,
    CancellationToken,
    SimulationResult,
    DistributionType,
    DurationDistribution,
)
from .data_loader import Project, load_project

__all__ = [
    # Models
    'Activity',
    'ActivityKind',
    'ConstraintType',
    'Dependency',
    'RelationType',
    'ScheduledNetwork',
    # Core
    'WorkCalendar',
    'ActivityNetwork',
    'CPMEngine',
    'schedule',
    # Analysis
    'check',
    'Finding',
    'FindingKind',
    'Severity',
    'ThresholdConfig',
    'simulate',
    'CancellationToken',
    'SimulationResult',
    'DistributionType',
    'DurationDistribution',
    # Loading
    'Project',
    'load_project',
]
