"""Flag evaluation: activation windows, value casting and inactive semantics.

Values are stored as strings next to a type tag. This module is the only
place where they become typed Python scalars; everything past it deals in
``FlagValue``.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

from app.models.flag import FlagType, FlagValue

STORAGE_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_INT_PREFIX = re.compile(r"\s*[+-]?\d+")
_FLOAT_PREFIX = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def utc_now() -> datetime:
    """Current time as a naive UTC timestamp, comparable with stored bounds."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def is_active(start: datetime | None, end: datetime | None, now: datetime) -> bool:
    """Return True when ``now`` falls inside the window; both bounds are inclusive."""
    now = _as_naive_utc(now)
    if start is not None and _as_naive_utc(start) > now:
        return False
    if end is not None and _as_naive_utc(end) < now:
        return False
    return True


def _coerce_type(flag_type: FlagType | str | None) -> FlagType | None:
    if flag_type is None:
        return None
    try:
        return FlagType(flag_type)
    except ValueError:
        return None


def _parse_int(raw: str) -> int:
    match = _INT_PREFIX.match(raw)
    return int(match.group()) if match else 0


def _parse_float(raw: str) -> float:
    match = _FLOAT_PREFIX.match(raw)
    if not match:
        return 0.0
    value = float(match.group())
    # inf has no JSON representation
    return value if math.isfinite(value) else 0.0


def cast_value(raw: str | None, flag_type: FlagType | str | None) -> FlagValue:
    """Convert a stored string into the scalar its flag type declares.

    Unknown or missing types hand the raw string back untouched. Numeric
    parsing reads the leading number and falls back to zero, so a badly
    stored value never breaks a read.
    """
    if raw is None:
        return None

    kind = _coerce_type(flag_type)
    if kind is None or kind is FlagType.STRING:
        return raw

    if kind is FlagType.SWITCH:
        if raw in ("true", "1"):
            return True
        if raw in ("false", "0"):
            return False
        return bool(raw)

    if kind is FlagType.INTEGER:
        return _parse_int(raw)

    return _parse_float(raw)


def inactive_value(flag_type: FlagType | str | None) -> FlagValue:
    """Value reported outside the activation window."""
    return False if _coerce_type(flag_type) is FlagType.SWITCH else None


def evaluate(flag: Any, environment_value: Any | None, now: datetime) -> FlagValue:
    """Resolve the externally visible value of ``flag`` in one environment.

    * no stored row: ``None`` for every type, "not configured" is not "off"
    * inside the window: the cast stored value, so an explicit NULL stays ``None``
      even for switches
    * outside the window: ``False`` for switches, ``None`` otherwise
    """
    if environment_value is None:
        return None

    if is_active(environment_value.start_datetime, environment_value.end_datetime, now):
        return cast_value(environment_value.value, flag.type)

    return inactive_value(flag.type)


def parse_datetime(value: str) -> datetime | None:
    """Parse a stored timestamp string, returning None when it is unreadable."""
    text = value.strip()
    try:
        return datetime.strptime(text, STORAGE_DATETIME_FORMAT)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def format_datetime_iso8601(value: datetime | str | None) -> str | None:
    """Render a stored timestamp as ISO-8601 with offset; naive values are UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            return None
        value = parsed
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat(timespec="seconds")
