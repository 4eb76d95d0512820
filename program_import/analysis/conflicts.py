from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from program_import.analysis.issues import (
    FacultyConflict,
    Gap,
    HeavySpeakerLoad,
    MissingBreak,
    Overlap,
    TimingIssue,
    UnderutilizedHall,
)
from program_import.analysis.thresholds import AnalysisThresholds
from program_import.data_processing.normalize import time_to_minutes
from program_import.data_processing.schemas import BuiltSchedule, FacultyScheduleEntry, Session

log = logging.getLogger(__name__)

BREAK_WORDS = ("break", "lunch", "tea")

HallDay = Tuple[str, str]


def _start(s: Session) -> int:
    return time_to_minutes(s.start_time)


def _end(s: Session) -> int:
    return time_to_minutes(s.end_time or s.start_time)


def group_sessions_by_hall(sessions: Sequence[Session]) -> Dict[HallDay, List[Session]]:
    """(date, hall) -> sessions in that hall sorted by start time; sessions without a hall are left out."""
    groups: Dict[HallDay, List[Session]] = {}
    for s in sessions:
        if s.hall and s.date and s.start_time:
            groups.setdefault((s.date, s.hall), []).append(s)
    for key in groups:
        groups[key].sort(key=_start)
    return groups


def detect_faculty_conflicts(
    schedules: Mapping[str, Sequence[FacultyScheduleEntry]],
    display_name: Optional[Callable[[str], str]] = None,
) -> List[TimingIssue]:
    """
    A person booked in two different halls at overlapping times on the same date.
    Every overlapping pair is reported, not only neighbours in start order.
    """
    issues: List[TimingIssue] = []
    for key, entries in schedules.items():
        name = display_name(key) if display_name else key
        ordered = sorted(entries, key=lambda e: (e.date, e.start))
        for i, a in enumerate(ordered):
            for b in ordered[i + 1:]:
                if b.date != a.date or b.start >= a.end:
                    break
                if a.hall != b.hall:
                    issues.append(
                        FacultyConflict(
                            date=a.date,
                            faculty=name,
                            session1=a.session,
                            hall1=a.hall,
                            session2=b.session,
                            hall2=b.hall,
                        )
                    )
    return issues


def detect_hall_overlaps_and_gaps(
    groups: Mapping[HallDay, Sequence[Session]],
    thresholds: AnalysisThresholds,
) -> List[TimingIssue]:
    issues: List[TimingIssue] = []
    for (date, hall), sessions in groups.items():
        # overlaps: sweep each session against the ones starting before it ends
        for i, a in enumerate(sessions):
            a_end = _end(a)
            for b in sessions[i + 1:]:
                if _start(b) >= a_end:
                    break
                issues.append(
                    Overlap(
                        date=date,
                        hall=hall,
                        session1=a.name,
                        session2=b.name,
                        end_time=a.end_time or a.start_time,
                        start_time=b.start_time,
                    )
                )

        # gaps: idle time after the latest end seen so far
        latest: Optional[Session] = None
        for s in sessions:
            if latest is not None:
                idle = _start(s) - _end(latest)
                if idle > thresholds.max_gap_minutes:
                    issues.append(Gap(date=date, hall=hall, session1=latest.name, session2=s.name, gap_minutes=idle))
            if latest is None or _end(s) > _end(latest):
                latest = s
    return issues


def is_break(s: Session) -> bool:
    name = s.name.lower()
    return s.session_type == "break" or any(w in name for w in BREAK_WORDS)


def detect_missing_breaks(
    groups: Mapping[HallDay, Sequence[Session]],
    thresholds: AnalysisThresholds,
) -> List[TimingIssue]:
    """
    Flag every non-break session that ends more than `max_continuous_minutes`
    after the hall's last break. The clock starts at the first session of the
    day and a break session resets it to that break's end. Idle time between
    sessions does not reset it.
    """
    issues: List[TimingIssue] = []
    for (date, hall), sessions in groups.items():
        if not sessions:
            continue
        since = _start(sessions[0])
        for s in sessions:
            end = _end(s)
            if is_break(s):
                since = end
                continue
            continuous = end - since
            if continuous > thresholds.max_continuous_minutes:
                issues.append(MissingBreak(date=date, hall=hall, session=s.name, continuous_minutes=continuous))
    return issues


def detect_underutilized_halls(sessions: Sequence[Session], thresholds: AnalysisThresholds) -> List[TimingIssue]:
    counts = Counter(s.hall for s in sessions if s.hall)
    if not counts:
        return []
    mean = sum(counts.values()) / len(counts)
    return [
        UnderutilizedHall(hall=hall, session_count=count, mean_sessions=mean)
        for hall, count in counts.items()
        if count < mean * thresholds.underutilized_ratio
    ]


def detect_heavy_speaker_load(
    schedules: Mapping[str, Sequence[FacultyScheduleEntry]],
    thresholds: AnalysisThresholds,
    display_name: Optional[Callable[[str], str]] = None,
) -> List[TimingIssue]:
    issues: List[TimingIssue] = []
    for key, entries in schedules.items():
        if len(entries) > thresholds.heavy_load_sessions:
            first = min(e.date for e in entries)
            name = display_name(key) if display_name else key
            issues.append(HeavySpeakerLoad(faculty=name, session_count=len(entries), first_date=first))
    return issues


def analyze_schedule(
    schedule: BuiltSchedule,
    thresholds: Optional[AnalysisThresholds] = None,
) -> List[TimingIssue]:
    """
    Run every timing check over a built schedule.

    Returns the build-time findings followed by the analysis findings. The
    list is advisory, never truncated here, and the schedule is not modified.
    """
    thresholds = thresholds or AnalysisThresholds()
    sessions = schedule.session_list()
    groups = group_sessions_by_hall(sessions)

    issues: List[TimingIssue] = list(schedule.issues)
    issues.extend(detect_faculty_conflicts(schedule.faculty_schedules, schedule.faculty_name))
    issues.extend(detect_hall_overlaps_and_gaps(groups, thresholds))
    issues.extend(detect_heavy_speaker_load(schedule.faculty_schedules, thresholds, schedule.faculty_name))
    issues.extend(detect_underutilized_halls(sessions, thresholds))
    issues.extend(detect_missing_breaks(groups, thresholds))

    log.info("Schedule analysis found %d timing issue(s)", len(issues))
    return issues
