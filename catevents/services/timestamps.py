# catevents/services/timestamps.py
"""
Event timestamp parsing.

Detector firmware has emitted three layouts over time, tried in this order:
  1. RFC 3339:            2018-01-02T15:04:05.999999999+02:00
  2. Legacy (no colon):   2018-01-02T15:04:05.999999999+0200
  3. Bare local time:     2018-01-02 15:04:05   (no offset, read as UTC)
Layout 3 loses the real offset. That is accepted, not an error.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from catevents.errors import TimestampFormatError

_DATE_TIME = r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?"

RFC3339 = re.compile(rf"^{_DATE_TIME}(?:(Z)|([+-])(\d{{2}}):(\d{{2}}))$")
LEGACY_OFFSET = re.compile(rf"^{_DATE_TIME}(?:(Z)|([+-])(\d{{2}})(\d{{2}}))$")
# Fixed-width fields only, strptime would also take "2018-1-2 3:4:5"
BARE_LAYOUT = re.compile(r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2})$")


def _from_match(match: re.Match) -> datetime:
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    # Nanosecond precision is truncated to microseconds
    micros = int((fraction or "0").ljust(6, "0")[:6])
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz)


def _try_pattern(pattern: re.Pattern, text: str) -> Optional[datetime]:
    match = pattern.match(text)
    if match is None:
        return None
    try:
        return _from_match(match)
    except ValueError:
        return None


def _try_bare(text: str) -> Optional[datetime]:
    match = BARE_LAYOUT.match(text)
    if match is None:
        return None
    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_event_time(token: str) -> datetime:
    """
    Parse a quoted or bare timestamp token into an aware datetime.
    Raises TimestampFormatError when no layout matches.
    """
    text = token
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        text = text[1:-1]

    # Order matters: the bare layout must never see an offset-bearing token first
    parsed = (
        _try_pattern(RFC3339, text)
        or _try_pattern(LEGACY_OFFSET, text)
        or _try_bare(text)
    )
    if parsed is None:
        raise TimestampFormatError(token)
    return parsed


def format_event_time(value: datetime) -> str:
    """Render an aware datetime as RFC 3339 (UTC written as 'Z')."""
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text
