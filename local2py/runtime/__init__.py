# File: local2py/runtime/__init__.py
"""
local2py - Runtime Support Modules
===================================

Plain standard-library modules shared by the generator and by every
generated package.  The exporter copies each file listed in
``RUNTIME_MODULES`` verbatim into the generated ``utils/`` directory, so
they must only use relative imports among themselves.
"""

from __future__ import annotations

from typing import Tuple

RUNTIME_MODULES: Tuple[str, ...] = (
    "bulk_operation.py",
    "converters.py",
    "pagination.py",
    "query_helper.py",
)

__all__ = ["RUNTIME_MODULES"]
