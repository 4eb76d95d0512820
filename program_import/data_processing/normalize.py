from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

DEFAULT_COUNTRY_CODE = "+91"

# First matching pattern wins. Day-first patterns come before ISO so that
# "01-02-2024" is read as 1 February.
_DATE_PATTERNS: Tuple[Tuple[str, str, "re.Pattern[str]"], ...] = (
    ("dmy", ".", re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{4})")),
    ("dmy", "/", re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")),
    ("dmy", "-", re.compile(r"(\d{1,2})-(\d{1,2})-(\d{4})")),
    ("ymd", "-", re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")),
)

_TIME_RANGE = re.compile(r"(\d{1,2}):(\d{2})\s*[-–—]\s*(\d{1,2}):(\d{2})")
_TIME_SINGLE = re.compile(r"(\d{1,2}):(\d{2})")

# (type, keywords) in priority order
SESSION_TYPE_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("panel", ("panel", "discussion")),
    ("keynote", ("keynote", "oration")),
    ("workshop", ("workshop",)),
    ("live_surgery", ("live", "surgery")),
    ("ceremony", ("inaug",)),
    ("break", ("break", "lunch")),
)
DEFAULT_SESSION_TYPE = "lecture"

# (bucket, keywords) in priority order; no match means speaker
ROLE_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("chairperson", ("chair", "coordinator")),
    ("moderator", ("moderator",)),
    ("panelist", ("panel",)),
)


@dataclass(frozen=True)
class DateFormat:
    """Shape of a date as it appeared in the file, enough to write it back the same way."""

    order: str
    separator: str
    day_width: int
    month_width: int


class ParsedTime(NamedTuple):
    start: Optional[str]
    end: Optional[str]
    duration: Optional[int]


def _match_date(text: str):
    for order, sep, pattern in _DATE_PATTERNS:
        m = pattern.search(text)
        if m:
            return order, sep, m
    return None


def normalize_date(text: Optional[str]) -> Optional[str]:
    """Return the date as YYYY-MM-DD, or None when no pattern matches or the day does not exist."""
    if not text:
        return None
    found = _match_date(text)
    if found is None:
        return None
    order, _, m = found
    if order == "dmy":
        day, month, year = m.group(1), m.group(2), m.group(3)
    else:
        year, month, day = m.group(1), m.group(2), m.group(3)
    try:
        return dt.date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def detect_date_format(text: str) -> Optional[DateFormat]:
    found = _match_date(text or "")
    if found is None:
        return None
    order, sep, m = found
    if order == "dmy":
        return DateFormat(order, sep, day_width=len(m.group(1)), month_width=len(m.group(2)))
    return DateFormat(order, sep, day_width=len(m.group(3)), month_width=len(m.group(2)))


def format_iso_date(iso: str, fmt: DateFormat) -> str:
    """Write an ISO date back in the layout described by `fmt`."""
    d = dt.date.fromisoformat(iso)
    day = str(d.day).zfill(fmt.day_width)
    month = str(d.month).zfill(fmt.month_width)
    if fmt.order == "dmy":
        return fmt.separator.join([day, month, f"{d.year:04d}"])
    return fmt.separator.join([f"{d.year:04d}", month, day])


def _clock(hours: str, minutes: str) -> Optional[str]:
    h, m = int(hours), int(minutes)
    if h > 23 or m > 59:
        return None
    return f"{h:02d}:{m:02d}:00"


def parse_time_range(text: Optional[str]) -> ParsedTime:
    """
    Accepts "H:MM - H:MM" (hyphen, en dash or em dash) or a single "H:MM".
    Times come back as HH:MM:SS. Duration is end minus start in minutes and is
    None unless strictly positive; a single time has start == end.
    """
    if not text:
        return ParsedTime(None, None, None)

    m = _TIME_RANGE.search(text)
    if m:
        start = _clock(m.group(1), m.group(2))
        end = _clock(m.group(3), m.group(4))
        if start is None or end is None:
            return ParsedTime(None, None, None)
        duration = time_to_minutes(end) - time_to_minutes(start)
        return ParsedTime(start, end, duration if duration > 0 else None)

    m = _TIME_SINGLE.search(text)
    if m:
        clock = _clock(m.group(1), m.group(2))
        return ParsedTime(clock, clock, None)

    return ParsedTime(None, None, None)


def time_to_minutes(value: str) -> int:
    parts = value.split(":")
    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    return hours * 60 + minutes


def clean_phone(value: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> Optional[str]:
    """Keep digits and '+'. A bare 10-digit number gets `country_code`; under 10 characters is dropped."""
    if not value:
        return None
    cleaned = re.sub(r"[^0-9+]", "", value)
    if len(cleaned) == 10 and not cleaned.startswith("+") and country_code:
        cleaned = country_code + cleaned
    return cleaned if len(cleaned) >= 10 else None


def phone_key(value: Optional[str]) -> Optional[str]:
    """Last 10 digits, used to match the same number written with or without a country code."""
    if not value:
        return None
    digits = re.sub(r"\D", "", str(value))
    return digits[-10:] if digits else None


def normalize_name(name: str) -> str:
    return re.sub(r"\s+", " ", name.strip().lower())


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    email = email.strip().lower()
    return email or None


def infer_session_type(topic: str) -> str:
    lowered = topic.lower()
    for session_type, keywords in SESSION_TYPE_RULES:
        if any(k in lowered for k in keywords):
            return session_type
    return DEFAULT_SESSION_TYPE


def role_bucket(role: Optional[str]) -> str:
    lowered = (role or "").lower()
    for bucket, keywords in ROLE_RULES:
        if any(k in lowered for k in keywords):
            return bucket
    return "speaker"
