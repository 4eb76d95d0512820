from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence, Set, Tuple

from program_import.analysis.issues import LongSession
from program_import.analysis.thresholds import AnalysisThresholds
from program_import.data_processing.normalize import (
    DEFAULT_COUNTRY_CODE,
    clean_phone,
    infer_session_type,
    normalize_date,
    normalize_name,
    parse_time_range,
    role_bucket,
    time_to_minutes,
)
from program_import.data_processing.schemas import (
    BuiltSchedule,
    ColumnMap,
    Faculty,
    FacultyScheduleEntry,
    PersonDetail,
    RawRow,
    RowFields,
    RowKind,
    Session,
    SessionRow,
    Track,
    TrackMetadataRow,
)
from program_import.errors import NoSchedulableColumnsError

log = logging.getLogger(__name__)

DEFAULT_ROLE = "Speaker"


def _cell(row: RawRow, header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    value = (row.get(header) or "").strip()
    return value or None


def extract_fields(
    row: RawRow,
    column_map: ColumnMap,
    line: int = 0,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> RowFields:
    """Read one raw row through the column map; unmapped or empty cells come back as None."""
    raw_date = _cell(row, column_map.date) or ""
    raw_time = _cell(row, column_map.time) or ""
    parsed = parse_time_range(raw_time)
    return RowFields(
        line=line,
        date=normalize_date(raw_date),
        start_time=parsed.start,
        end_time=parsed.end,
        duration_minutes=parsed.duration,
        topic=_cell(row, column_map.topic),
        hall=_cell(row, column_map.hall),
        track=_cell(row, column_map.session),
        name=_cell(row, column_map.name),
        email=_cell(row, column_map.email),
        phone=clean_phone(_cell(row, column_map.phone), country_code),
        role=_cell(row, column_map.role) or DEFAULT_ROLE,
        raw_date=raw_date,
        raw_time=raw_time,
    )


def record_track_metadata(tracks: Dict[str, Track], f: RowFields) -> None:
    """
    Fold one row into its track: a chairperson/coordinator row gives the track
    its description (first one wins) and adds that person to the track's
    chairpersons. A row naming no person gives the description if none is set.
    """
    if not f.track:
        return
    track = tracks.setdefault(f.track, Track(name=f.track))
    if f.is_chairperson:
        if f.topic and not track.description:
            track.description = f.topic
        if f.name and not any(c.name == f.name for c in track.chairpersons):
            track.chairpersons.append(PersonDetail(f.name, f.email, f.phone))
    elif not f.name and f.topic and not track.description:
        track.description = f.topic


def classify_row(f: RowFields, tracks: Dict[str, Track]) -> RowKind:
    """
    Decide whether a row describes its track or an individual session.

    `tracks` holds what earlier rows recorded. A row is track metadata when
      (a) the role is chairperson/coordinator and the topic repeats the
          track description already recorded, or
      (b) no person is named and the topic repeats that description, or
          would become it because none is recorded yet.
    Every other row is a session row.
    """
    if not f.track or not f.topic:
        return SessionRow(f)
    track = tracks.get(f.track)
    description = track.description if track else None
    if f.is_chairperson and f.name and description == f.topic:
        return TrackMetadataRow(f, reason="chairperson")
    if not f.name and description in (None, f.topic):
        return TrackMetadataRow(f, reason="header")
    return SessionRow(f)


def _skip_reason(f: RowFields) -> Optional[str]:
    if not f.date:
        return "invalid_date" if f.raw_date else "missing_date"
    if not f.start_time:
        return "invalid_time" if f.raw_time else "missing_time"
    if not f.topic:
        return "missing_topic"
    return None


def _add_faculty(schedule: BuiltSchedule, f: RowFields) -> str:
    key = normalize_name(f.name or "")
    existing = schedule.faculty.get(key)
    if existing is None:
        schedule.faculty[key] = Faculty(key=key, name=f.name or "", email=f.email, phone=f.phone, role=f.role)
    else:
        existing.merge_contact(f.email, f.phone, f.role)
    return key


def build_schedule(
    rows: Sequence[RawRow],
    column_map: ColumnMap,
    thresholds: Optional[AnalysisThresholds] = None,
    country_code: str = DEFAULT_COUNTRY_CODE,
) -> BuiltSchedule:
    """
    Group rows into unique sessions and extract faculty, tracks and halls.

    Rows sharing (date, hall, track, start time, topic) are one session; each
    further row adds a person to it. Rows that cannot be dated or timed are
    counted and skipped, never fatal.
    """
    missing = column_map.missing_required()
    if missing:
        raise NoSchedulableColumnsError(missing)

    thresholds = thresholds or AnalysisThresholds()
    schedule = BuiltSchedule(column_map=column_map)
    stats = schedule.stats

    fields_list = [extract_fields(r, column_map, line=i, country_code=country_code) for i, r in enumerate(rows, start=1)]
    stats.total_rows = len(fields_list)

    seen_halls: Set[str] = set()
    for f in fields_list:
        if f.hall and f.hall not in seen_halls:
            seen_halls.add(f.hall)
            schedule.halls.append(f.hall)

    entry_keys: Set[Tuple[str, Tuple[str, ...]]] = set()
    for f in fields_list:
        kind = classify_row(f, schedule.tracks)
        record_track_metadata(schedule.tracks, f)
        faculty_key = _add_faculty(schedule, f) if f.name else None

        if isinstance(kind, TrackMetadataRow):
            stats.metadata_rows += 1
            log.debug("Row %d is %s metadata for track %s", f.line, kind.reason, f.track)
            continue

        if faculty_key and f.date and f.start_time and f.end_time:
            session_key = (f.date, f.hall or "", f.track or "", f.start_time, f.topic or "")
            if (faculty_key, session_key) not in entry_keys:
                entry_keys.add((faculty_key, session_key))
                schedule.faculty_schedules.setdefault(faculty_key, []).append(
                    FacultyScheduleEntry(
                        date=f.date,
                        start=time_to_minutes(f.start_time),
                        end=time_to_minutes(f.end_time),
                        session=f.topic or "Unknown",
                        hall=f.hall or "Unknown",
                    )
                )

        reason = _skip_reason(f)
        if reason:
            stats.skipped[reason] += 1
            log.debug("Row %d skipped (%s): date=%r time=%r", f.line, reason, f.raw_date, f.raw_time)
            continue

        session = _get_or_create_session(schedule, f, thresholds)
        stats.session_rows += 1
        if f.name:
            session.add_person(role_bucket(f.role), PersonDetail(f.name, f.email, f.phone))

    log.info(
        "Built %d sessions, %d faculty, %d tracks, %d halls (%d metadata rows, %d skipped)",
        len(schedule.sessions),
        len(schedule.faculty),
        len(schedule.tracks),
        len(schedule.halls),
        stats.metadata_rows,
        sum(stats.skipped.values()),
    )
    return schedule


def _get_or_create_session(schedule: BuiltSchedule, f: RowFields, thresholds: AnalysisThresholds) -> Session:
    # callers guarantee date, start_time and topic are set
    key = (f.date, f.hall or "", f.track or "", f.start_time, f.topic)
    session = schedule.sessions.get(key)
    if session is not None:
        return session

    session = Session(
        date=f.date,
        start_time=f.start_time,
        end_time=f.end_time,
        duration_minutes=f.duration_minutes,
        name=f.topic,
        session_type=infer_session_type(f.topic),
        hall=f.hall,
        track=f.track,
    )
    schedule.sessions[key] = session

    duration = session.duration_minutes
    if duration and duration > thresholds.long_session_minutes and session.session_type == "lecture":
        schedule.issues.append(
            LongSession(date=session.date, hall=session.hall or "Unknown", session=session.name, duration_minutes=duration)
        )
    return session
