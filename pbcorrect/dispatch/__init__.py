"""Dispatch backends: run stage wrappers locally or on a batch grid."""

from .base import DispatchBackend, DispatchRequest, DispatchResult
from .factory import select_backend
from .grid import GridBackend, GridSettings, resolve_grid_settings, store_builder_grid_param
from .local import LocalBackend

__all__ = [
    "DispatchBackend",
    "DispatchRequest",
    "DispatchResult",
    "select_backend",
    "GridBackend",
    "GridSettings",
    "resolve_grid_settings",
    "store_builder_grid_param",
    "LocalBackend",
]
