"""
Lenient value converters used by generated ``from_map`` readers.

Each converter returns ``default`` when the value is missing or cannot be
interpreted as the requested type.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Mapping, Optional


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None:
        return default
    if isinstance(value, (bool, float)):
        return int(value)
    if isinstance(value, int):
        return value
    text: str = str(value).strip()
    if text.lstrip("+-").isdigit():
        return int(text)
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return default


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return default


def to_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def to_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    """SQLite stores booleans as integers: only ``1`` (or ``True``) is true."""
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().lower()
        if value in ("true", "false"):
            return value == "true"
    return to_int(value, 0) == 1


def to_bytes(value: Any, default: Optional[bytes] = None) -> Optional[bytes]:
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (ValueError, binascii.Error):
            return value.encode("utf-8")
    return default


def json_default(value: Any) -> Any:
    """``json.dumps`` hook: BLOB columns travel as base64 text."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def strip_prefix(data: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    """Keys of a joined row that start with ``prefix``, with the prefix removed."""
    return {key[len(prefix):]: value for key, value in data.items() if key.startswith(prefix)}


__all__ = ["json_default", "strip_prefix", "to_bool", "to_bytes", "to_float", "to_int", "to_str"]
