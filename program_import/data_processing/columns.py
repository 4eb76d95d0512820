from __future__ import annotations

import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence

from program_import.data_processing.schemas import COLUMN_TYPES, ColumnMap, DetectedColumn, RawRow

log = logging.getLogger(__name__)

SAMPLE_SIZE = 10

# Confidence per rule
CONF_HEADER = 95
CONF_SESSION_HEADER = 90
CONF_NAME_HEADER = 90
CONF_EMAIL_VALUE = 90
CONF_DATE_VALUE = 85
CONF_TIME_VALUE = 85
CONF_PHONE_VALUE = 85
CONF_LONG_TRACK_VALUES = 85
CONF_ROLE_VALUE = 80
CONF_HALL_VALUE = 75
CONF_NAME_VALUE = 70
CONF_LONG_TEXT = 60

# A "track" column whose values average more than this is really holding titles
TRACK_AS_TOPIC_MIN_AVG_LEN = 30
# Free text this long, in a column we know nothing else about, is treated as a topic
TOPIC_FALLBACK_MIN_AVG_LEN = 50
NAME_VALUE_MIN_SHARE = 0.5
PHONE_MIN_DIGITS = 10

HEADER_KEYWORDS = (
    ("date", ("date", "schedule")),
    ("time", ("time", "timing")),
    ("hall", ("hall", "venue", "room", "auditorium", "location")),
    ("email", ("email", "e-mail", "mail id")),
    ("phone", ("phone", "mobile", "contact", "cell", "tel")),
    ("role", ("role", "designation", "position")),
    ("topic", ("topic", "title", "subject", "presentation")),
)
# Headers that must equal the keyword rather than contain it
HEADER_EXACT = {"date": ("day",), "time": ("slot",)}

SESSION_HEADER_KEYWORDS = ("session", "track", "category")
NAME_HEADER_KEYWORDS = ("speaker", "faculty", "presenter", "full name")

DATE_VALUE = re.compile(r"\d{1,2}[./-]\d{1,2}[./-]\d{2,4}|\d{4}[./-]\d{1,2}[./-]\d{1,2}")
TIME_VALUE = re.compile(r"\d{1,2}:\d{2}\s*[-–—]\s*\d{1,2}:\d{2}|\d{1,2}:\d{2}")
HALL_VALUE = re.compile(r"hall|room|auditorium|theater|theatre|venue|ballroom|conference", re.IGNORECASE)
EMAIL_VALUE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_VALUE = re.compile(r"[\d\s+()-]{10,}")
ROLE_VALUE = re.compile(r"speaker|chairperson|moderator|panelist|faculty|presenter|coordinator|chair", re.IGNORECASE)
NAME_VALUE = re.compile(r"^[A-Z][a-z]+(\s+[A-Z][a-z]+){0,3}$")


def _avg_len(values: Sequence[str]) -> float:
    return sum(len(v) for v in values) / (len(values) or 1)


def _header_type(h: str) -> Optional[str]:
    for column_type, keywords in HEADER_KEYWORDS:
        if h in HEADER_EXACT.get(column_type, ()) or any(k in h for k in keywords):
            return column_type
    if "type" in h and "speaker" in h:
        return "role"
    return None


def _looks_like_phone(value: str) -> bool:
    digits = re.sub(r"\D", "", value)
    return bool(PHONE_VALUE.search(value)) and len(digits) >= PHONE_MIN_DIGITS


def _value_type(samples: Sequence[str]):
    checks = (
        ("date", CONF_DATE_VALUE, DATE_VALUE.search),
        ("time", CONF_TIME_VALUE, TIME_VALUE.search),
        ("hall", CONF_HALL_VALUE, HALL_VALUE.search),
        ("email", CONF_EMAIL_VALUE, EMAIL_VALUE.search),
        ("phone", CONF_PHONE_VALUE, _looks_like_phone),
        ("role", CONF_ROLE_VALUE, ROLE_VALUE.search),
    )
    for column_type, confidence, matches in checks:
        if any(matches(v) for v in samples):
            return column_type, confidence
    return None


def detect_column_type(header: str, values: Sequence[str]) -> DetectedColumn:
    """
    Guess what a column holds from its header and up to SAMPLE_SIZE non-empty values.

    Rules run in a fixed order and the first hit wins: header keywords,
    then value patterns, then session/track headers (long values mean titles),
    then person names, then a long-text fallback.
    """
    h = header.lower().strip()
    samples = tuple([v.strip() for v in values if v and v.strip()][:SAMPLE_SIZE])

    def result(column_type: str, confidence: int) -> DetectedColumn:
        return DetectedColumn(header=header, type=column_type, confidence=confidence, sample_values=samples)

    by_header = _header_type(h)
    if by_header:
        return result(by_header, CONF_HEADER)

    by_value = _value_type(samples)
    if by_value:
        return result(*by_value)

    if any(k in h for k in SESSION_HEADER_KEYWORDS) and "name" not in h:
        if _avg_len(samples) > TRACK_AS_TOPIC_MIN_AVG_LEN:
            return result("topic", CONF_LONG_TRACK_VALUES)
        return result("session", CONF_SESSION_HEADER)

    if h == "name" or any(k in h for k in NAME_HEADER_KEYWORDS):
        return result("name", CONF_NAME_HEADER)
    if samples:
        named = sum(1 for v in samples if NAME_VALUE.match(v))
        if named >= len(samples) * NAME_VALUE_MIN_SHARE:
            return result("name", CONF_NAME_VALUE)

    if _avg_len(samples) > TOPIC_FALLBACK_MIN_AVG_LEN and "description" not in h:
        return result("topic", CONF_LONG_TEXT)

    return result("unknown", 0)


def detect_columns(rows: Sequence[RawRow]) -> List[DetectedColumn]:
    if not rows:
        return []
    headers = list(rows[0].keys())
    detected = []
    for header in headers:
        values = [r.get(header, "") for r in rows]
        detected.append(detect_column_type(header, values))
    return detected


def build_column_map(
    detected: Sequence[DetectedColumn],
    overrides: Optional[Mapping[str, Optional[str]]] = None,
) -> ColumnMap:
    """
    Pick the highest-confidence column per type (earlier column wins a tie),
    then apply operator overrides of the form {type: header}.
    """
    best: Dict[str, DetectedColumn] = {}
    for col in detected:
        if col.type == "unknown":
            continue
        current = best.get(col.type)
        if current is None or col.confidence > current.confidence:
            best[col.type] = col

    column_map = ColumnMap(**{t: c.header for t, c in best.items()})

    if overrides:
        headers = {c.header for c in detected}
        claimed: Dict[str, str] = {}
        for column_type, header in overrides.items():
            if column_type not in COLUMN_TYPES or column_type == "unknown":
                raise ValueError(f"Unknown column type in overrides: {column_type!r}")
            if header is None:
                setattr(column_map, column_type, None)
                continue
            if header not in headers:
                raise ValueError(f"Override for {column_type!r} names a missing column: {header!r}")
            if header in claimed:
                raise ValueError(
                    f"Overrides map column {header!r} to both {claimed[header]!r} and {column_type!r}"
                )
            claimed[header] = column_type
            setattr(column_map, column_type, header)
            log.info("Column override: %s -> %s", column_type, header)

        # a column serves one type
        for column_type, header in column_map.to_dict().items():
            if header in claimed and claimed[header] != column_type:
                setattr(column_map, column_type, None)
                log.info("Column %s now maps to %s; %s left unmapped", header, claimed[header], column_type)

    return column_map
