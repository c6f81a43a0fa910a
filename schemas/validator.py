"""
Schema validation utilities for output CSV files.

Validates that output files conform to their registered schemas so that
downstream consumers can rely on stable column names and types.

Validation Rules:
  - Every schema column must be present
  - Column types must be compatible with the schema annotation
  - Extra columns are allowed unless strict
"""

import types
import warnings
from datetime import date, datetime
from pathlib import Path
from typing import Type, List, Optional, Dict, Tuple, Union, get_args, get_origin

import pandas as pd
from pydantic import BaseModel


class SchemaValidationError(Exception):
    """Raised when schema validation fails."""

    def __init__(
        self,
        message: str,
        missing_columns: Optional[List[str]] = None,
        type_mismatches: Optional[Dict[str, Tuple[str, str]]] = None,
        extra_columns: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.missing_columns = missing_columns or []
        self.type_mismatches = type_mismatches or {}
        self.extra_columns = extra_columns or []


def pandas_dtype_to_python_type(dtype) -> str:
    """Convert pandas dtype to a simplified type string."""
    dtype_str = str(dtype)

    if dtype_str.startswith('int'):
        return 'int'
    elif dtype_str.startswith('float'):
        return 'float'
    elif dtype_str in ('object', 'string'):
        return 'str'
    elif dtype_str.startswith('datetime'):
        return 'datetime'
    elif dtype_str == 'bool':
        return 'bool'
    else:
        return dtype_str


def pydantic_type_to_string(annotation) -> str:
    """Convert a Pydantic field annotation to a simplified type string."""
    # Unwrap Optional[X] / X | None
    if get_origin(annotation) in (Union, types.UnionType):
        inner = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(inner) == 1:
            annotation = inner[0]

    names = {int: 'int', float: 'float', str: 'str', bool: 'bool',
             datetime: 'datetime', date: 'date'}
    return names.get(annotation, str(annotation))


def types_compatible(pandas_type: str, pydantic_type: str) -> bool:
    """
    Check if pandas type is compatible with pydantic type.

    Lenient where pandas widens types: float for nullable integers, object
    for dates and strings.
    """
    if pandas_type == pydantic_type:
        return True

    # float in pandas can represent nullable int
    if pandas_type == 'float' and pydantic_type == 'int':
        return True

    # Any numeric to numeric is generally ok
    if pandas_type in ('int', 'float') and pydantic_type in ('int', 'float'):
        return True

    # Dates are held as date objects and written as ISO strings
    if pandas_type == 'str' and pydantic_type in ('date', 'datetime'):
        return True
    if pandas_type == 'datetime' and pydantic_type in ('str', 'date'):
        return True

    return False


def get_column_name(field_name: str, field_info) -> str:
    """Get the CSV column name for a field (its alias when defined)."""
    if getattr(field_info, 'alias', None):
        return field_info.alias
    return field_name


def validate_dataframe(
    df: pd.DataFrame,
    schema: Type[BaseModel],
    strict: bool = False,
) -> List[str]:
    """
    Validate a DataFrame against a Pydantic schema.

    Args:
        df: DataFrame to validate
        schema: Pydantic model class defining expected columns
        strict: If True, fail on extra columns not in schema

    Returns:
        List of validation error messages (empty if valid)

    Note:
        This validates columns and types, not individual row values.
    """
    errors = []

    schema_fields = schema.model_fields
    field_to_column = {
        name: get_column_name(name, info)
        for name, info in schema_fields.items()
    }
    expected_columns = set(field_to_column.values())
    actual_columns = set(df.columns)

    missing = expected_columns - actual_columns
    if missing:
        errors.append(f"Missing required columns: {sorted(missing)}")

    extra = actual_columns - expected_columns
    if extra and strict:
        errors.append(f"Unexpected columns (strict mode): {sorted(extra)}")

    column_to_field = {v: k for k, v in field_to_column.items()}
    type_mismatches = {}

    for col in sorted(expected_columns & actual_columns):
        # An all-null column carries no type information
        if df[col].isna().all():
            continue
        pandas_type = pandas_dtype_to_python_type(df[col].dtype)
        pydantic_type = pydantic_type_to_string(schema_fields[column_to_field[col]].annotation)
        if not types_compatible(pandas_type, pydantic_type):
            type_mismatches[col] = (pandas_type, pydantic_type)

    if type_mismatches:
        mismatch_strs = [
            f"{col}: got {got}, expected {expected}"
            for col, (got, expected) in type_mismatches.items()
        ]
        errors.append(f"Type mismatches: {'; '.join(mismatch_strs)}")

    return errors


def validate_output_file(
    file_path: Path,
    schema: Type[BaseModel],
    strict: bool = False,
    sample_rows: int = 100,
) -> List[str]:
    """
    Validate an output CSV file against a schema.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    df = pd.read_csv(file_path, nrows=sample_rows)
    return validate_dataframe(df, schema, strict=strict)


def validated_df_to_csv(
    df: pd.DataFrame,
    file_path: Path,
    strict: bool = False,
    **to_csv_kwargs,
) -> None:
    """
    Validate a DataFrame against its registered schema and write to CSV.

    Args:
        df: DataFrame to write
        file_path: Output path (filename determines schema via registry)
        strict: If True, fail on extra columns not in schema
        **to_csv_kwargs: Additional arguments passed to df.to_csv()

    Raises:
        SchemaValidationError: If validation fails
    """
    from .registry import get_schema_for_file

    file_path = Path(file_path)
    filename = file_path.name

    schema = get_schema_for_file(filename)
    if schema is None:
        warnings.warn(
            f"No schema registered for '{filename}'. "
            f"Consider adding a schema to schemas/registry.py for validation.",
            UserWarning
        )
        df.to_csv(file_path, **to_csv_kwargs)
        return

    errors = validate_dataframe(df, schema, strict=strict)
    if errors:
        error_msg = (
            f"Schema validation failed for '{filename}':\n"
            + "\n".join(f"  - {e}" for e in errors)
        )
        raise SchemaValidationError(error_msg)

    df.to_csv(file_path, **to_csv_kwargs)
