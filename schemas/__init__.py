"""
Input payload and output data schemas.

Payload models in ``schemas.project`` validate project JSON documents before
they are turned into scheduling objects. Output models in
``schemas.scheduling`` pin the columns of every CSV the analysis writes.

Usage:
    from schemas import validated_df_to_csv
    validated_df_to_csv(result.to_dataframe(), output_dir / 'schedule.csv', index=False)
"""

from .validator import (
    validate_output_file,
    validate_dataframe,
    validated_df_to_csv,
    SchemaValidationError,
)
from .registry import SCHEMA_REGISTRY, get_schema_for_file
from .project import ProjectPayload

__all__ = [
    'validate_output_file',
    'validate_dataframe',
    'validated_df_to_csv',
    'SchemaValidationError',
    'SCHEMA_REGISTRY',
    'get_schema_for_file',
    'ProjectPayload',
]
