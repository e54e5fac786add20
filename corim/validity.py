"""Validity periods."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def _aware(value: datetime) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"expecting a time value, got {type(value).__name__}")
    return value if value.tzinfo is not None else value.astimezone()


def format_time(value: datetime) -> str:
    """Format a time as RFC 3339 with trailing fractional zeros trimmed."""
    value = _aware(value)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    minutes = int(value.utcoffset().total_seconds()) // 60
    if minutes == 0:
        return text + "Z"
    sign = "+" if minutes > 0 else "-"
    return f"{text}{sign}{abs(minutes) // 60:02d}:{abs(minutes) % 60:02d}"


def parse_time(text: Any) -> datetime:
    """Parse an RFC 3339 timestamp."""
    match = _TIME_RE.match(text) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"invalid RFC 3339 time {text!r}")
    *fields, frac, zone = match.groups()
    micro = int((frac or "").ljust(6, "0")[:6])
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(offset if zone[0] == "+" else -offset)
    return datetime(*map(int, fields), micro, tz)


@dataclass
class Validity:
    """A validity period: a mandatory not-after and optional not-before time."""

    not_after: datetime
    not_before: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.not_after = _aware(self.not_after)
        if self.not_before is not None:
            self.not_before = _aware(self.not_before)

    def valid(self) -> None:
        if self.not_before is not None:
            delta = self.not_after - self.not_before
            if delta < timedelta(0):
                nanos = delta // timedelta(microseconds=1) * 1000
                raise ValueError(f"invalid not-before / not-after: negative delta ({nanos})")

    def to_cbor_value(self) -> dict:
        value: dict = {} if self.not_before is None else {0: self.not_before}
        value[1] = self.not_after
        return value

    @classmethod
    def from_cbor_value(cls, value: Any) -> "Validity":
        if not isinstance(value, dict):
            raise ValueError("expecting a map for validity")
        if 1 not in value:
            raise ValueError('missing mandatory field "NotAfter" (1)')
        return cls(not_after=value[1], not_before=value.get(0))

    def to_json_value(self) -> dict:
        value: dict = {}
        if self.not_before is not None:
            value["not-before"] = format_time(self.not_before)
        value["not-after"] = format_time(self.not_after)
        return value

    @classmethod
    def from_json_value(cls, value: Any) -> "Validity":
        if not isinstance(value, dict):
            raise ValueError("expecting an object for validity")
        if "not-after" not in value:
            raise ValueError('missing mandatory field "not-after"')
        not_before = value.get("not-before")
        return cls(
            not_after=parse_time(value["not-after"]),
            not_before=None if not_before is None else parse_time(not_before),
        )