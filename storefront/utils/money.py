"""Helpers for integer minor-currency amounts and wire timestamps."""
from datetime import datetime, timezone
from typing import Any, Optional


def minor_units(value: Any, field: str = "amount") -> int:
    """
    Coerce a wire value into integer minor units (e.g. pence).

    Floats are rejected: money never crosses a boundary as floating point.

    Args:
        value: Raw value from a payload (int, numeric string or None)
        field: Field name, used in the error message

    Returns:
        Amount in minor units (None becomes 0)

    Raises:
        ValueError: If the value is a float, a bool or not an integer
    """
    if value is None:
        return 0
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{field} must be an integer number of minor units, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"{field} must be an integer number of minor units, got {value!r}")


def optional_minor_units(value: Any, field: str = "amount") -> Optional[int]:
    if value is None:
        return None
    return minor_units(value, field)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string or epoch milliseconds into an aware datetime.

    Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
