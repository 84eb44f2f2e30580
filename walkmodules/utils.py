"""
Utility functions for ownerwalk.

This module contains general-purpose helpers for converting between the
absolute-time representation used at the API boundary and native
nanosecond counts, parsing timestamp strings from object metadata, and
formatting values for display.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)

_EPOCH_SECONDS_RE = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")


def as_utc(instant: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def instant_to_ns(instant: datetime) -> int:
    """Convert an absolute time to nanoseconds since the Unix epoch."""
    micros = (as_utc(instant) - EPOCH) // _ONE_MICROSECOND
    return micros * 1000


def ns_to_instant(ns: int) -> datetime:
    """Convert nanoseconds since the Unix epoch to an aware UTC datetime (microsecond precision)."""
    return EPOCH + timedelta(microseconds=ns // 1000)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a timestamp attribute value.

    Accepts ISO-8601 ('2024-03-01T12:00:00.250000Z', with or without offset)
    or decimal Unix epoch seconds ('1709294400.25'). Empty or missing values
    mean "not recorded" and return None.

    Raises:
        ValueError: If the value is neither format or is out of range
    """
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    if _EPOCH_SECONDS_RE.match(text):
        whole, _, fraction = text.partition(".")
        negative = whole.startswith("-")
        seconds = int(whole)
        micros = int((fraction + "000000")[:6]) if fraction else 0
        if negative:
            micros = -micros
        try:
            return EPOCH + timedelta(seconds=seconds, microseconds=micros)
        except OverflowError:
            raise ValueError(f"Timestamp out of range: {value}")

    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid timestamp format: {value}")

    try:
        return as_utc(parsed)
    except OverflowError:
        raise ValueError(f"Timestamp out of range: {value}")


def format_timestamp(instant: Optional[datetime]) -> str:
    """Format an instant as an ISO-8601 UTC string, or '' when absent."""
    if instant is None:
        return ""
    return as_utc(instant).isoformat().replace("+00:00", "Z")


def format_time(seconds: float) -> str:
    """
    Format elapsed time in human-friendly format with total seconds.

    Examples:
        5.2s (5.2s)
        72.3s -> 1m 12s (72.3s)
        3665.7s -> 1h 1m 5s (3665.7s)
    """
    total_seconds = seconds

    if seconds < 60:
        return f"{seconds:.1f}s"

    hours = int(seconds // 3600)
    seconds = seconds % 3600
    minutes = int(seconds // 60)
    secs = int(seconds % 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    friendly = " ".join(parts)
    return f"{friendly} ({total_seconds:.1f}s)"


def format_identity(identity: str, display_name: Optional[str] = None, kind: str = "owner") -> str:
    """Format an identity for reports, e.g. 'alice (UID 1000)' or 'S-1-5-32-544'."""
    if not identity:
        return "Unknown"

    label = "GID" if kind == "group" else "UID"

    if identity.isdigit():
        if display_name:
            return f"{display_name} ({label} {identity})"
        return f"{label} {identity}"

    if display_name and display_name != identity:
        return f"{display_name} ({identity})"
    return identity
