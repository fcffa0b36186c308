"""External tool adapters: command execution, discovery and store introspection."""

from .commands import capture_command, command_succeeds, run_command
from .discovery import ToolPaths, locate_tools
from .libraries import LibraryAssignment, assign_libraries, classify_libraries, parse_library_count
from .specfile import read_spec_options, spec_int

__all__ = [
    "capture_command",
    "command_succeeds",
    "run_command",
    "ToolPaths",
    "locate_tools",
    "LibraryAssignment",
    "assign_libraries",
    "classify_libraries",
    "parse_library_count",
    "read_spec_options",
    "spec_int",
]
