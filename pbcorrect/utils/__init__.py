"""
Utility Functions
=================
Input validation, JSON Schema checks, subprocess environments and logging setup.
"""

from .logging_setup import configure_logging
from .schema_validation import (
    validate_against_schema,
    validate_library_assignment,
    validate_run_record,
)
from .subprocess_env import build_tool_env
from .validation import (
    validate_frg_files,
    validate_library_name,
    validate_path,
)

__all__ = [
    "configure_logging",
    "validate_against_schema",
    "validate_library_assignment",
    "validate_run_record",
    "build_tool_env",
    "validate_frg_files",
    "validate_library_name",
    "validate_path",
]
