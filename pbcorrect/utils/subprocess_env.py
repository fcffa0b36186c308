"""
Subprocess Environment Utilities
===============================
Helpers for building environment dictionaries for external tool execution.
"""

from __future__ import annotations

import os
from typing import Dict, Iterable, Optional

from pbcorrect.config import TOOL_ENV


def build_tool_env(
    *,
    sanitize_env: Optional[bool] = None,
    allowlist: Optional[Iterable[str]] = None,
) -> Dict[str, str]:
    """Return an environment dict for running assembler and grid tools.

    The assembler tools and the batch scheduler client depend on inherited
    variables (PATH, library paths, SGE_ROOT/SGE_CELL), so by default the full
    parent environment is passed through unless PBC_SANITIZE_ENV is set.

    Args:
        sanitize_env: If True, inherit only the allowlisted keys. Defaults to
            TOOL_ENV.SANITIZE.
        allowlist: Extra allowlist keys to include. Defaults to
            TOOL_ENV.ALLOWLIST.

    Returns:
        Dict[str, str] to pass as subprocess env.
    """

    base_allowlist = {
        "PATH",
        "HOME",
        "USER",
        "LANG",
        "LC_ALL",
        "LC_CTYPE",
        "TMPDIR",
        "LD_LIBRARY_PATH",
        "DYLD_LIBRARY_PATH",
        "PERL5LIB",
        "SGE_ROOT",
        "SGE_CELL",
        "SGE_ARCH",
        "SGE_EXECD_PORT",
        "SGE_QMASTER_PORT",
    }

    if sanitize_env is None:
        sanitize_env = TOOL_ENV.SANITIZE
    if allowlist is None:
        allowlist = TOOL_ENV.ALLOWLIST

    for key in allowlist:
        if isinstance(key, str) and key:
            base_allowlist.add(key)

    parent = os.environ

    if sanitize_env:
        env = {key: parent[key] for key in base_allowlist if key in parent}
    else:
        env = dict(parent)

    return env
