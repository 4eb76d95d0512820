from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import ClassVar, Dict, List, Sequence

ISSUE_KINDS = (
    "overlap",
    "gap",
    "long_session",
    "faculty_conflict",
    "heavy_speaker_load",
    "underutilized_hall",
    "missing_break",
)


def _hhmm(value: str) -> str:
    return value[:5]


@dataclass(frozen=True)
class TimingIssue:
    kind: ClassVar[str] = ""

    @property
    def details(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {"kind": self.kind}
        out.update(asdict(self))
        out["details"] = self.details
        return out


@dataclass(frozen=True)
class Overlap(TimingIssue):
    kind: ClassVar[str] = "overlap"

    date: str
    hall: str
    session1: str
    session2: str
    end_time: str
    start_time: str

    @property
    def details(self) -> str:
        return (
            f"Overlap: {self.session1} ends at {_hhmm(self.end_time)} "
            f"but {self.session2} starts at {_hhmm(self.start_time)}"
        )


@dataclass(frozen=True)
class Gap(TimingIssue):
    kind: ClassVar[str] = "gap"

    date: str
    hall: str
    session1: str
    session2: str
    gap_minutes: int

    @property
    def details(self) -> str:
        return f"{self.gap_minutes} min gap between sessions (longer than typical lunch break)"


@dataclass(frozen=True)
class LongSession(TimingIssue):
    kind: ClassVar[str] = "long_session"

    date: str
    hall: str
    session: str
    duration_minutes: int

    @property
    def details(self) -> str:
        hours = round(self.duration_minutes / 60)
        return f"Session is {self.duration_minutes} minutes long ({hours} hours) - unusually long"


@dataclass(frozen=True)
class FacultyConflict(TimingIssue):
    kind: ClassVar[str] = "faculty_conflict"

    date: str
    faculty: str
    session1: str
    hall1: str
    session2: str
    hall2: str

    @property
    def details(self) -> str:
        return f"{self.faculty} is scheduled in {self.hall1} and {self.hall2} at overlapping times"


@dataclass(frozen=True)
class HeavySpeakerLoad(TimingIssue):
    kind: ClassVar[str] = "heavy_speaker_load"

    faculty: str
    session_count: int
    first_date: str

    @property
    def details(self) -> str:
        return f"Speaker has {self.session_count} sessions across the event - heavy workload"


@dataclass(frozen=True)
class UnderutilizedHall(TimingIssue):
    kind: ClassVar[str] = "underutilized_hall"

    hall: str
    session_count: int
    mean_sessions: float

    @property
    def details(self) -> str:
        return f"Hall is underutilized ({self.session_count} sessions, avg: {round(self.mean_sessions)} sessions/hall)"


@dataclass(frozen=True)
class MissingBreak(TimingIssue):
    kind: ClassVar[str] = "missing_break"

    date: str
    hall: str
    session: str
    continuous_minutes: int

    @property
    def details(self) -> str:
        return f"{round(self.continuous_minutes / 60)}+ hours without a break - consider adding one"


def count_by_kind(issues: Sequence[TimingIssue]) -> Dict[str, int]:
    counts = {kind: 0 for kind in ISSUE_KINDS}
    for issue in issues:
        counts[issue.kind] = counts.get(issue.kind, 0) + 1
    counts["total"] = len(issues)
    return counts


def issues_to_dicts(issues: Sequence[TimingIssue], limit: int = 0) -> List[Dict[str, object]]:
    """Serialize issues for a report; `limit` > 0 truncates the list for display."""
    selected = issues[:limit] if limit and limit > 0 else issues
    return [i.to_dict() for i in selected]
