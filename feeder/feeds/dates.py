"""Date resolution for feed timestamps.

Feeds disagree about date formats, sometimes within a single document. A value
is resolved by trying the feed's learned format first and then scanning a
fixed list of known formats, most specific first. Format specifiers are
``strptime`` patterns so they can be stored as-is on the feed row and fed back
in as the hint on the next run.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from feeder.feeds.errors import DateParseError


logger = logging.getLogger(__name__)


RFC3339 = "%Y-%m-%dT%H:%M:%S%z"
RFC1123Z = "%a, %d %b %Y %H:%M:%S %z"
RFC1123 = "%a, %d %b %Y %H:%M:%S %Z"
RFC822Z = "%d %b %y %H:%M %z"
RFC822 = "%d %b %y %H:%M %Z"
DATETIME_BARE = "%Y-%m-%d %H:%M:%S"
DATE_BARE = "%Y-%m-%d"

# Order is the tie-break: stricter formats first so a loose one never claims
# a value meant for a stricter one.
FALLBACK_FORMATS: tuple[str, ...] = (
    RFC3339,
    RFC1123Z,
    RFC1123,
    RFC822Z,
    RFC822,
    DATETIME_BARE,
    DATE_BARE,
)

# Abbreviations from RFC 822 section 5. Anything else alphabetic reads as UTC.
_ZONE_OFFSETS: dict[str, int] = {
    "UT": 0,
    "UTC": 0,
    "GMT": 0,
    "Z": 0,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
}

_ZONE_NAME_RE = re.compile(r"^[A-Za-z]{1,5}$")
_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})[.,]\d+")


@dataclass(frozen=True)
class ResolvedDate:
    timestamp: datetime
    used_format: str
    from_hint: bool


def _zone_from_name(name: str) -> timezone:
    if not _ZONE_NAME_RE.match(name):
        raise ValueError(f"not a zone abbreviation: {name!r}")
    hours = _ZONE_OFFSETS.get(name.upper(), 0)
    return timezone(timedelta(hours=hours)) if hours else timezone.utc


def parse_with_format(value: str, fmt: str) -> datetime:
    """Parse ``value`` with exactly one format. Raises ValueError on mismatch.

    The result is always timezone-aware; zone-less formats read as UTC.
    """
    value = value.strip()
    if "%S" in fmt:
        value = _FRACTION_RE.sub(r"\1", value)

    if fmt.endswith(" %Z"):
        head, _, zone_name = value.rpartition(" ")
        parsed = datetime.strptime(head, fmt[: -len(" %Z")])
        return parsed.replace(tzinfo=_zone_from_name(zone_name))

    parsed = datetime.strptime(value, fmt)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _attempt(value: str, fmt: str) -> datetime | None:
    try:
        return parse_with_format(value, fmt)
    except ValueError:
        return None


def scan_formats(value: str, candidates: tuple[str, ...] = FALLBACK_FORMATS) -> tuple[datetime, str] | None:
    """First candidate that parses wins."""
    attempts = ((_attempt(value, fmt), fmt) for fmt in candidates)
    return next(((ts, fmt) for ts, fmt in attempts if ts is not None), None)


def resolve_date(
    value: str,
    hint: str | None = None,
    candidates: tuple[str, ...] = FALLBACK_FORMATS,
) -> ResolvedDate:
    if hint:
        ts = _attempt(value, hint)
        if ts is not None:
            return ResolvedDate(timestamp=ts, used_format=hint, from_hint=True)
        logger.debug("format hint %r did not match %r, scanning", hint, value)

    found = scan_formats(value, candidates)
    if found is None:
        raise DateParseError(value)
    ts, fmt = found
    return ResolvedDate(timestamp=ts, used_format=fmt, from_hint=False)


def to_canonical(ts: datetime) -> str:
    """RFC 3339 at second precision; a zero offset is written as ``Z``."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    text = ts.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text
