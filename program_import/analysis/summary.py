from __future__ import annotations

from itertools import chain
from typing import Any, Dict, List

import pandas as pd

from program_import.data_processing.schemas import BuiltSchedule

TOP_SPEAKERS = 10

_SESSION_COLUMNS = ["date", "hall", "minutes", "people"]


def sessions_frame(schedule: BuiltSchedule) -> pd.DataFrame:
    """One row per session: date, hall, scheduled minutes and the people leading it."""
    rows = []
    for s in schedule.session_list():
        people = [p.name for p in chain(s.speakers, s.chairpersons, s.moderators)]
        rows.append({"date": s.date, "hall": s.hall, "minutes": s.duration_minutes or 0, "people": people})
    return pd.DataFrame(rows, columns=_SESSION_COLUMNS)


def _days_breakdown(df: pd.DataFrame) -> List[Dict[str, Any]]:
    days: List[Dict[str, Any]] = []
    if df.empty:
        return days
    for date, g in df.groupby("date", sort=True):
        days.append(
            {
                "date": str(date),
                "sessions": int(len(g)),
                "total_hours": round(float(g["minutes"].sum()) / 60, 1),
                "halls_used": int(g["hall"].dropna().nunique()),
                "unique_speakers": len(set(chain.from_iterable(g["people"]))),
            }
        )
    return days


def _hall_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    halls = df.dropna(subset=["hall"])
    if halls.empty:
        return []
    counts = halls.groupby("hall", sort=False).size()
    return [{"hall": str(hall), "sessions": int(n)} for hall, n in counts.items()]


def _top_speakers(schedule: BuiltSchedule, limit: int = TOP_SPEAKERS) -> List[Dict[str, Any]]:
    loads = []
    for key, entries in schedule.faculty_schedules.items():
        loads.append(
            {
                "name": schedule.faculty_name(key),
                "session_count": len(entries),
                "total_minutes": int(sum(max(0, e.end - e.start) for e in entries)),
                "sessions": list(dict.fromkeys(e.session for e in entries)),
            }
        )
    loads.sort(key=lambda x: x["session_count"], reverse=True)
    return loads[:limit]


def summarize_schedule(schedule: BuiltSchedule) -> Dict[str, Any]:
    df = sessions_frame(schedule)
    days = _days_breakdown(df)
    return {
        "total_sessions": len(schedule.sessions),
        "total_halls": len(schedule.halls),
        "total_faculty": len(schedule.faculty),
        "total_tracks": len(schedule.tracks),
        "total_days": len(days),
        "days_breakdown": days,
        "top_speakers": _top_speakers(schedule),
        "hall_distribution": _hall_distribution(df),
        "rows": schedule.stats.to_dict(),
    }
