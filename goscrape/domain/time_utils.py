"""
RFC3339 timestamps with nanosecond precision.

``datetime`` stops at microseconds, while the index service hands out (and
expects back) nanosecond timestamps such as ``2019-04-10T19:08:52.997264Z``.
An :class:`IndexTime` keeps the whole-second moment and the nanosecond
fraction separately so values survive a parse/format round trip unchanged.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from .errors import TimeParseError

_RFC3339_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"T(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?"
    r"(?P<offset>Z|[+-]\d{2}:\d{2})$"
)


@dataclass(frozen=True, order=True)
class IndexTime:
    """A timezone-aware instant with nanosecond resolution."""

    moment: datetime  # whole seconds, microsecond always 0
    nanos: int = 0

    def shift(self, delta: timedelta) -> "IndexTime":
        total = self.nanos + delta.microseconds * 1000
        carry, nanos = divmod(total, 1_000_000_000)
        moment = self.moment + timedelta(days=delta.days, seconds=delta.seconds + carry)
        return replace(self, moment=moment, nanos=nanos)

    def to_datetime(self) -> datetime:
        """Truncate to the microsecond precision ``datetime`` supports."""
        return self.moment.replace(microsecond=self.nanos // 1000)

    def format(self) -> str:
        return format_rfc3339_nano(self)


def parse_rfc3339_nano(value: str) -> IndexTime:
    """
    Parse an RFC3339 timestamp with an optional 1-9 digit fraction.

    Raises:
        TimeParseError: if the value is not a valid timestamp.
    """
    match = _RFC3339_RE.match(value or "")
    if not match:
        raise TimeParseError(value, "expected YYYY-MM-DDTHH:MM:SS[.fraction](Z|+HH:MM)")

    offset = match.group("offset")
    try:
        if offset == "Z":
            tz = timezone.utc
        else:
            sign = -1 if offset[0] == "-" else 1
            hours, minutes = int(offset[1:3]), int(offset[4:6])
            if minutes >= 60:
                raise ValueError("offset minutes out of range")
            tz = timezone(sign * timedelta(hours=hours, minutes=minutes))
        moment = datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour")),
            int(match.group("minute")),
            int(match.group("second")),
            tzinfo=tz,
        )
    except ValueError as e:
        raise TimeParseError(value, str(e)) from e

    fraction = match.group("fraction") or ""
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    return IndexTime(moment=moment, nanos=nanos)


def format_rfc3339_nano(value: IndexTime) -> str:
    """
    Format with trailing fraction zeros trimmed and ``Z`` for UTC.
    """
    m = value.moment
    text = f"{m.year:04d}-{m.month:02d}-{m.day:02d}T{m.hour:02d}:{m.minute:02d}:{m.second:02d}"
    if value.nanos:
        text += "." + f"{value.nanos:09d}".rstrip("0")

    offset = value.moment.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def utc_now() -> IndexTime:
    now = datetime.now(timezone.utc)
    return IndexTime(moment=now.replace(microsecond=0), nanos=now.microsecond * 1000)
