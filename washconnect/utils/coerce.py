# washconnect/utils/coerce.py
"""
Helpers for turning stored values back into Python types.

The CSV backend hands everything back as strings ("" for missing values),
the memory backend keeps whatever was written. Models call these in their
`from_dict` so both look the same afterwards.
"""
from datetime import datetime, timezone
from typing import Any, Optional


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def opt_int(value: Any) -> Optional[int]:
    if is_blank(value):
        return None
    return int(float(value))


def opt_float(value: Any) -> Optional[float]:
    if is_blank(value):
        return None
    return float(value)


def opt_str(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    return str(value)


def as_bool(value: Any, default: bool = False) -> bool:
    if is_blank(value):
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in ("1", "true", "yes", "y", "t")


def opt_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are taken to be UTC."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            # pandas Timestamp prints like '2023-01-01 00:00:00'
            dt = datetime.strptime(raw, "%Y-%m-%d %H:%M:%S")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso(value: Optional[datetime]) -> str:
    """Serialize a datetime for storage ("" when missing)."""
    if value is None:
        return ""
    return value.isoformat()
