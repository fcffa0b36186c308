"""
Schema Validation Utilities
===========================
JSON Schema loading and validation helpers for the files a run persists.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import ValidationError


@lru_cache(maxsize=8)
def _load_schema(schema_filename: str) -> Dict[str, Any]:
    """Load a schema JSON file from pbcorrect/schemas.

    Args:
        schema_filename: File name under pbcorrect/schemas (for example 'run_record.schema.json').

    Raises:
        FileNotFoundError: When schema file is missing.
        ValueError: When schema file is not valid JSON or not a JSON object.
    """
    schemas_dir = Path(__file__).resolve().parent.parent / "schemas"
    schema_path = (schemas_dir / schema_filename).resolve()
    if not schema_path.is_relative_to(schemas_dir.resolve()):
        raise ValueError(f"Schema path escapes schemas directory: {schema_filename}")
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_filename}")

    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Failed to load schema {schema_filename}: {e}")

    if not isinstance(schema, dict):
        raise ValueError(f"Schema {schema_filename} must be a JSON object")
    return schema


def validate_against_schema(payload: Any, schema_filename: str) -> None:
    """Validate payload against a JSON Schema.

    Raises:
        ValueError: When payload fails validation.
    """
    schema = _load_schema(schema_filename)
    validator = Draft202012Validator(schema, format_checker=FormatChecker())

    errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
    if not errors:
        return

    error: ValidationError = errors[0]
    path = "/".join(str(p) for p in error.path)
    prefix = f"Validation failed at '{path}': " if path else "Validation failed: "
    raise ValueError(prefix + error.message)


def validate_library_assignment(payload: Dict[str, Any]) -> None:
    """Validate a persisted library classification (libraries.json)."""
    validate_against_schema(payload, "library_assignment.schema.json")

    ref_min = payload.get("reference_min")
    ref_max = payload.get("reference_max")
    if isinstance(ref_min, int) and isinstance(ref_max, int) and ref_max < ref_min:
        raise ValueError("Validation failed at 'reference_max': must be >= reference_min")


def validate_run_record(payload: Dict[str, Any]) -> None:
    """Validate a run record payload written by the CLI."""
    validate_against_schema(payload, "run_record.schema.json")
