from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from program_import.data_processing.normalize import normalize_email, normalize_name, phone_key
from program_import.data_processing.schemas import BuiltSchedule, Faculty, PersonDetail, Session, SessionKey

log = logging.getLogger(__name__)

TRACK_COLORS = ["#3B82F6", "#8B5CF6", "#10B981", "#F59E0B", "#EF4444", "#EC4899", "#6366F1", "#14B8A6"]


@dataclass(frozen=True)
class StoredFaculty:
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    designation: Optional[str] = None


@dataclass
class ExistingRecords:
    """What the store already holds for an event, read before planning."""

    session_keys: Set[SessionKey] = field(default_factory=set)
    tracks: Dict[str, int] = field(default_factory=dict)
    coordinator_halls: Set[str] = field(default_factory=set)
    faculty: List[StoredFaculty] = field(default_factory=list)


@dataclass(frozen=True)
class WriteBackOptions:
    clear_existing: bool = False
    create_coordinators: bool = True
    sync_faculty: bool = True

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "WriteBackOptions":
        section = cfg.get("import", {}) or {}
        return cls(
            clear_existing=bool(section.get("clear_existing", False)),
            create_coordinators=bool(section.get("create_coordinators", True)),
            sync_faculty=bool(section.get("sync_faculty", True)),
        )


@dataclass(frozen=True)
class FacultyOutcome:
    name: str
    status: str  # new | updated | matched
    matched_by: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "matched_by": self.matched_by,
            "email": self.email,
            "phone": self.phone,
        }


@dataclass
class ImportPlan:
    """Every row the import will write, staged in memory and committed in one transaction."""

    event_id: str
    clear_existing: bool = False
    clear_coordinators: bool = False
    sessions: List[Dict[str, Any]] = field(default_factory=list)
    duplicate_sessions: int = 0
    coordinators: List[Dict[str, Any]] = field(default_factory=list)
    new_tracks: List[Dict[str, Any]] = field(default_factory=list)
    track_updates: List[Dict[str, Any]] = field(default_factory=list)
    new_faculty: List[Dict[str, Any]] = field(default_factory=list)
    faculty_updates: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    faculty_outcomes: List[FacultyOutcome] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        statuses = [o.status for o in self.faculty_outcomes]
        return {
            "sessions": len(self.sessions),
            "duplicate_sessions": self.duplicate_sessions,
            "coordinators": len(self.coordinators),
            "tracks_created": len(self.new_tracks),
            "tracks_updated": len(self.track_updates),
            "faculty_created": statuses.count("new"),
            "faculty_updated": statuses.count("updated"),
            "faculty_matched": statuses.count("matched"),
        }


def _names(people: List[PersonDetail]) -> Optional[str]:
    return ", ".join(p.name for p in people) if people else None


def _with_contacts(people: List[PersonDetail]) -> Optional[str]:
    return " | ".join(p.with_contact() for p in people) if people else None


def session_record(s: Session, event_id: str) -> Dict[str, Any]:
    """Flatten a session into a `sessions` table row; names for display, contacts for reports."""
    return {
        "event_id": event_id,
        "session_name": s.name,
        "session_type": s.session_type,
        "session_date": s.date,
        "start_time": s.start_time,
        "end_time": s.end_time,
        "duration_minutes": s.duration_minutes,
        "hall": s.hall,
        "specialty_track": s.track,
        "speakers": _names(s.speakers),
        "chairpersons": _names(s.chairpersons),
        "moderators": _names(s.moderators),
        "speakers_text": _with_contacts(s.speakers),
        "chairpersons_text": _with_contacts(s.chairpersons),
        "moderators_text": _with_contacts(s.moderators),
        "description": _with_contacts(s.panelists),
    }


def coordinator_email(hall: str) -> str:
    return re.sub(r"\s+", ".", hall.strip().lower()) + "@event.com"


def _name_parts(normalized: str) -> List[str]:
    return [p for p in normalized.split(" ") if len(p) > 1]


class FacultyIndex:
    """Lookups over stored faculty: exact name, email, phone (last 10 digits), then fuzzy name."""

    def __init__(self, records: List[StoredFaculty]) -> None:
        self.by_name: Dict[str, StoredFaculty] = {}
        self.by_email: Dict[str, StoredFaculty] = {}
        self.by_phone: Dict[str, StoredFaculty] = {}
        for r in records:
            if r.name:
                self.by_name.setdefault(normalize_name(r.name), r)
            email = normalize_email(r.email)
            if email:
                self.by_email.setdefault(email, r)
            phone = phone_key(r.phone)
            if phone:
                self.by_phone.setdefault(phone, r)

    def fuzzy(self, name: str) -> Tuple[Optional[StoredFaculty], Optional[str]]:
        parts = _name_parts(normalize_name(name))
        if len(parts) < 2:
            return None, None
        for key, record in self.by_name.items():
            other = _name_parts(key)
            if parts[0] in other and parts[-1] in other:
                return record, "partial_name"
            if len([p for p in parts if p in other]) >= 2:
                return record, "fuzzy_name"
        return None, None

    def match(self, f: Faculty) -> Tuple[Optional[StoredFaculty], Optional[str]]:
        record = self.by_name.get(f.key)
        if record:
            return record, "exact_name"
        email = normalize_email(f.email)
        if email and email in self.by_email:
            return self.by_email[email], "email"
        phone = phone_key(f.phone)
        if phone and phone in self.by_phone:
            return self.by_phone[phone], "phone"
        return self.fuzzy(f.name)


def _plan_faculty(plan: ImportPlan, schedule: BuiltSchedule, existing: ExistingRecords) -> None:
    index = FacultyIndex(existing.faculty)
    for f in schedule.faculty.values():
        record, matched_by = index.match(f)
        if record is None:
            plan.new_faculty.append(
                {"name": f.name, "email": f.email, "phone": f.phone, "designation": f.role or "Speaker"}
            )
            plan.faculty_outcomes.append(
                FacultyOutcome(
                    name=f.name,
                    status="new",
                    matched_by="new_faculty_created" if f.has_contact else "new_faculty_no_contact",
                    email=f.email,
                    phone=f.phone,
                )
            )
            continue

        updates: Dict[str, Any] = {}
        if not record.email and f.email:
            updates["email"] = f.email
        if not record.phone and f.phone:
            updates["phone"] = f.phone
        if updates:
            pending = plan.faculty_updates.setdefault(record.id, {"id": record.id, "email": None, "phone": None})
            for k, v in updates.items():
                pending[k] = pending[k] or v

        plan.faculty_outcomes.append(
            FacultyOutcome(
                name=f.name,
                status="updated" if updates else "matched",
                matched_by=matched_by,
                email=f.email or record.email,
                phone=f.phone or record.phone,
            )
        )


def plan_write_back(
    schedule: BuiltSchedule,
    existing: ExistingRecords,
    event_id: str,
    options: Optional[WriteBackOptions] = None,
) -> ImportPlan:
    """
    Stage the whole write-back in memory. Nothing here touches the store, so a
    failure before commit leaves it untouched.
    """
    options = options or WriteBackOptions()
    plan = ImportPlan(
        event_id=event_id,
        clear_existing=options.clear_existing,
        clear_coordinators=options.clear_existing and options.create_coordinators,
    )

    known_keys = set() if options.clear_existing else set(existing.session_keys)
    for key, s in schedule.sessions.items():
        if key in known_keys:
            plan.duplicate_sessions += 1
            continue
        plan.sessions.append(session_record(s, event_id))

    if options.create_coordinators:
        known_halls = set() if options.clear_existing else existing.coordinator_halls
        for hall in schedule.halls:
            if hall in known_halls:
                continue
            plan.coordinators.append(
                {
                    "event_id": event_id,
                    "hall_name": hall,
                    "coordinator_name": f"{hall} Coordinator",
                    "coordinator_email": coordinator_email(hall),
                }
            )

    color_index = 0
    for name, track in schedule.tracks.items():
        chairpersons = track.formatted_chairpersons()
        track_id = existing.tracks.get(name)
        if track_id is None:
            plan.new_tracks.append(
                {
                    "event_id": event_id,
                    "name": name,
                    "description": track.description,
                    "chairpersons": chairpersons,
                    "color": TRACK_COLORS[color_index % len(TRACK_COLORS)],
                }
            )
            color_index += 1
        elif track.description or chairpersons:
            plan.track_updates.append({"id": track_id, "description": track.description, "chairpersons": chairpersons})

    if options.sync_faculty:
        _plan_faculty(plan, schedule, existing)

    log.info("Write-back plan for event %s: %s", event_id, plan.counts())
    return plan
