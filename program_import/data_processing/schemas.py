from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Tuple, Union

# One parsed CSV line: header -> cell value
RawRow = Dict[str, str]

COLUMN_TYPES = ("date", "time", "topic", "hall", "session", "name", "email", "phone", "role", "unknown")

# Without these three a row cannot be placed on the calendar
REQUIRED_COLUMN_TYPES = ("date", "time", "topic")

# (date, hall, track, start_time, topic); hall/track are "" when absent
SessionKey = Tuple[str, str, str, str, str]


@dataclass(frozen=True)
class DetectedColumn:
    header: str
    type: str
    confidence: int
    sample_values: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {"header": self.header, "detected_as": self.type, "confidence": self.confidence}


@dataclass
class ColumnMap:
    """Semantic column type -> header chosen for it (None when nothing matched)."""

    date: Optional[str] = None
    time: Optional[str] = None
    topic: Optional[str] = None
    hall: Optional[str] = None
    session: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None

    def get(self, column_type: str) -> Optional[str]:
        return getattr(self, column_type, None)

    def missing_required(self) -> List[str]:
        return [t for t in REQUIRED_COLUMN_TYPES if not self.get(t)]

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class PersonDetail:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    def with_contact(self) -> str:
        """`Name (email, phone)`, or just the name when no contact is known."""
        contacts = [c for c in (self.email, self.phone) if c]
        return f"{self.name} ({', '.join(contacts)})" if contacts else self.name


@dataclass
class Session:
    date: str
    start_time: str
    end_time: Optional[str]
    duration_minutes: Optional[int]
    name: str
    session_type: str = "lecture"
    hall: Optional[str] = None
    track: Optional[str] = None
    speakers: List[PersonDetail] = field(default_factory=list)
    chairpersons: List[PersonDetail] = field(default_factory=list)
    moderators: List[PersonDetail] = field(default_factory=list)
    panelists: List[PersonDetail] = field(default_factory=list)

    @property
    def key(self) -> SessionKey:
        return (self.date, self.hall or "", self.track or "", self.start_time, self.name)

    def bucket(self, role: str) -> List[PersonDetail]:
        return {
            "chairperson": self.chairpersons,
            "moderator": self.moderators,
            "panelist": self.panelists,
        }.get(role, self.speakers)

    def add_person(self, role: str, person: PersonDetail) -> bool:
        """Append `person` to the bucket for `role` unless that exact name is already there."""
        people = self.bucket(role)
        if any(p.name == person.name for p in people):
            return False
        people.append(person)
        return True


@dataclass
class Faculty:
    key: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None

    def merge_contact(self, email: Optional[str], phone: Optional[str], role: Optional[str] = None) -> None:
        # first non-empty value wins
        if not self.email and email:
            self.email = email
        if not self.phone and phone:
            self.phone = phone
        if not self.role and role:
            self.role = role

    @property
    def has_contact(self) -> bool:
        return bool(self.email or self.phone)


@dataclass
class Track:
    name: str
    description: Optional[str] = None
    chairpersons: List[PersonDetail] = field(default_factory=list)

    def formatted_chairpersons(self) -> Optional[str]:
        if not self.chairpersons:
            return None
        return " | ".join(p.with_contact() for p in self.chairpersons)


@dataclass(frozen=True)
class FacultyScheduleEntry:
    date: str
    start: int
    end: int
    session: str
    hall: str


@dataclass(frozen=True)
class RowFields:
    """Values pulled out of one raw row through the column map, already normalized."""

    line: int
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    topic: Optional[str] = None
    hall: Optional[str] = None
    track: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str = "Speaker"
    raw_date: str = ""
    raw_time: str = ""

    @property
    def is_chairperson(self) -> bool:
        role = self.role.lower()
        return "chair" in role or "coordinator" in role


@dataclass(frozen=True)
class SessionRow:
    fields: RowFields


@dataclass(frozen=True)
class TrackMetadataRow:
    fields: RowFields
    # "chairperson" (chair row repeating the track description) or "header" (no person named)
    reason: str


RowKind = Union[SessionRow, TrackMetadataRow]


@dataclass
class RowStats:
    total_rows: int = 0
    session_rows: int = 0
    metadata_rows: int = 0
    skipped: Counter = field(default_factory=Counter)

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_rows": self.total_rows,
            "session_rows": self.session_rows,
            "metadata_rows": self.metadata_rows,
            "skipped_rows": int(sum(self.skipped.values())),
            "skipped_by_reason": dict(self.skipped),
        }


@dataclass
class BuiltSchedule:
    """Everything the builder derives from one import; scoped to a single run."""

    column_map: ColumnMap
    sessions: Dict[SessionKey, Session] = field(default_factory=dict)
    faculty: Dict[str, Faculty] = field(default_factory=dict)
    tracks: Dict[str, Track] = field(default_factory=dict)
    halls: List[str] = field(default_factory=list)
    faculty_schedules: Dict[str, List[FacultyScheduleEntry]] = field(default_factory=dict)
    # build-time findings (long lecture sessions); see analysis.issues
    issues: List[object] = field(default_factory=list)
    stats: RowStats = field(default_factory=RowStats)

    def session_list(self) -> List[Session]:
        return list(self.sessions.values())

    def faculty_name(self, key: str) -> str:
        faculty = self.faculty.get(key)
        return faculty.name if faculty else key
