import pytest

from program_import.analysis.conflicts import (
    analyze_schedule,
    detect_faculty_conflicts,
    detect_hall_overlaps_and_gaps,
    detect_heavy_speaker_load,
    detect_missing_breaks,
    detect_underutilized_halls,
    group_sessions_by_hall,
)
from program_import.analysis.issues import FacultyConflict, Gap, MissingBreak, Overlap, count_by_kind, issues_to_dicts
from program_import.analysis.thresholds import AnalysisThresholds
from program_import.data_processing.normalize import infer_session_type
from program_import.data_processing.schedule_builder import build_schedule
from program_import.data_processing.schemas import BuiltSchedule, ColumnMap, FacultyScheduleEntry, Session

from conftest import rows_from

DATE = "2024-03-01"
THRESHOLDS = AnalysisThresholds()


def _session(name, start, end, hall="Hall A", date=DATE):
    return Session(
        date=date,
        start_time=f"{start}:00",
        end_time=f"{end}:00",
        duration_minutes=None,
        name=name,
        session_type=infer_session_type(name),
        hall=hall,
    )


def _schedule(*sessions):
    schedule = BuiltSchedule(column_map=ColumnMap())
    for s in sessions:
        schedule.sessions[s.key] = s
        if s.hall not in schedule.halls:
            schedule.halls.append(s.hall)
    return schedule


def _entry(start, end, hall, session="Talk", date=DATE):
    def minutes(t):
        h, m = t.split(":")
        return int(h) * 60 + int(m)

    return FacultyScheduleEntry(date=date, start=minutes(start), end=minutes(end), session=session, hall=hall)


def test_overlap_in_one_hall():
    issues = analyze_schedule(_schedule(_session("Talk A", "09:00", "10:00"), _session("Talk B", "09:30", "10:30")))
    assert issues == [
        Overlap(date=DATE, hall="Hall A", session1="Talk A", session2="Talk B", end_time="10:00:00", start_time="09:30:00")
    ]
    assert issues[0].details == "Overlap: Talk A ends at 10:00 but Talk B starts at 09:30"


def test_back_to_back_sessions_do_not_overlap():
    issues = analyze_schedule(_schedule(_session("Talk A", "09:00", "10:00"), _session("Talk B", "10:00", "11:00")))
    assert issues == []


def test_long_gap_reported_once():
    issues = analyze_schedule(_schedule(_session("Talk A", "09:00", "10:00"), _session("Talk B", "12:00", "13:00")))
    assert [i for i in issues if i.kind == "gap"] == [
        Gap(date=DATE, hall="Hall A", session1="Talk A", session2="Talk B", gap_minutes=120)
    ]
    # the idle stretch is not a break, so Talk B still ends four hours after the day began
    assert [i.kind for i in issues] == ["gap", "missing_break"]


def test_short_gap_is_fine():
    issues = analyze_schedule(_schedule(_session("Talk A", "09:00", "10:00"), _session("Talk B", "11:00", "12:00")))
    assert issues == []


def test_gap_threshold_configurable():
    groups = group_sessions_by_hall([_session("Talk A", "09:00", "10:00"), _session("Talk B", "11:00", "12:00")])
    issues = detect_hall_overlaps_and_gaps(groups, AnalysisThresholds(max_gap_minutes=30))
    assert [i.kind for i in issues] == ["gap"]


def test_non_adjacent_overlap_found():
    # B sits between A and C in start order; only A overlaps C
    a = _session("Talk A", "09:00", "11:00")
    b = _session("Talk B", "09:30", "09:45")
    c = _session("Talk C", "10:00", "10:30")
    groups = group_sessions_by_hall([c, a, b])
    issues = detect_hall_overlaps_and_gaps(groups, THRESHOLDS)
    assert [(i.session1, i.session2) for i in issues] == [("Talk A", "Talk B"), ("Talk A", "Talk C")]


def test_gap_measured_from_latest_end():
    # B ends before A does, so idle time runs from A's end
    a = _session("Talk A", "09:00", "11:00")
    b = _session("Talk B", "09:30", "09:45")
    c = _session("Talk C", "12:00", "13:00")
    issues = detect_hall_overlaps_and_gaps(group_sessions_by_hall([a, b, c]), THRESHOLDS)
    assert [i.kind for i in issues] == ["overlap"]


def test_halls_and_dates_checked_separately():
    sessions = [
        _session("Talk A", "09:00", "10:00", hall="Hall A"),
        _session("Talk B", "09:30", "10:30", hall="Hall B"),
        _session("Talk C", "09:30", "10:30", hall="Hall A", date="2024-03-02"),
    ]
    groups = group_sessions_by_hall(sessions)
    assert set(groups) == {(DATE, "Hall A"), (DATE, "Hall B"), ("2024-03-02", "Hall A")}
    assert detect_hall_overlaps_and_gaps(groups, THRESHOLDS) == []


def test_sessions_without_hall_not_grouped():
    s = _session("Talk A", "09:00", "10:00", hall=None)
    assert group_sessions_by_hall([s]) == {}


def test_faculty_conflict_across_halls():
    schedules = {"dr. a": [_entry("09:00", "10:00", "Hall A", "Talk A"), _entry("09:30", "10:30", "Hall B", "Talk B")]}
    issues = detect_faculty_conflicts(schedules, lambda key: "Dr. A")
    assert issues == [
        FacultyConflict(date=DATE, faculty="Dr. A", session1="Talk A", hall1="Hall A", session2="Talk B", hall2="Hall B")
    ]


def test_sequential_same_hall_is_not_a_conflict():
    schedules = {"dr. a": [_entry("09:00", "10:00", "Hall A"), _entry("10:00", "11:00", "Hall A")]}
    assert detect_faculty_conflicts(schedules) == []


def test_overlapping_same_hall_is_not_a_conflict():
    schedules = {"dr. a": [_entry("09:00", "10:00", "Hall A"), _entry("09:30", "10:30", "Hall A")]}
    assert detect_faculty_conflicts(schedules) == []


def test_same_times_on_different_dates_is_not_a_conflict():
    schedules = {
        "dr. a": [_entry("09:00", "10:00", "Hall A"), _entry("09:00", "10:00", "Hall B", date="2024-03-02")]
    }
    assert detect_faculty_conflicts(schedules) == []


def test_non_adjacent_faculty_conflict_found():
    schedules = {
        "dr. a": [
            _entry("10:00", "10:30", "Hall B", "Talk C"),
            _entry("09:00", "11:00", "Hall A", "Talk A"),
            _entry("09:30", "09:45", "Hall A", "Talk B"),
        ]
    }
    issues = detect_faculty_conflicts(schedules)
    assert [(i.session1, i.session2) for i in issues] == [("Talk A", "Talk C")]
    assert issues[0].faculty == "dr. a"


def test_missing_break_flagged_for_every_late_session():
    sessions = [_session(f"Talk {i}", f"{9 + i:02d}:00", f"{10 + i:02d}:00") for i in range(5)]
    issues = detect_missing_breaks(group_sessions_by_hall(sessions), THRESHOLDS)
    assert issues == [
        MissingBreak(date=DATE, hall="Hall A", session="Talk 3", continuous_minutes=240),
        MissingBreak(date=DATE, hall="Hall A", session="Talk 4", continuous_minutes=300),
    ]
    assert issues[0].details == "4+ hours without a break - consider adding one"
    assert issues[1].details == "5+ hours without a break - consider adding one"


def test_break_session_resets_the_clock():
    sessions = [
        _session("Talk 1", "09:00", "10:00"),
        _session("Talk 2", "10:00", "11:00"),
        _session("Tea Break", "11:00", "11:15"),
        _session("Talk 3", "11:15", "12:15"),
        _session("Talk 4", "12:15", "13:15"),
    ]
    assert detect_missing_breaks(group_sessions_by_hall(sessions), THRESHOLDS) == []


def test_idle_stretch_is_not_a_break():
    sessions = [
        _session("Talk 1", "08:00", "11:00"),
        _session("Talk 2", "11:30", "14:00"),
    ]
    issues = detect_missing_breaks(group_sessions_by_hall(sessions), THRESHOLDS)
    assert issues == [MissingBreak(date=DATE, hall="Hall A", session="Talk 2", continuous_minutes=360)]


def test_missing_break_limit_configurable():
    sessions = [_session("Talk 1", "09:00", "10:00"), _session("Talk 2", "10:00", "11:00")]
    groups = group_sessions_by_hall(sessions)
    assert detect_missing_breaks(groups, THRESHOLDS) == []
    strict = AnalysisThresholds(max_continuous_minutes=90)
    assert [i.session for i in detect_missing_breaks(groups, strict)] == ["Talk 2"]


def test_underutilized_hall():
    sessions = (
        [_session(f"A{i}", f"{9 + i:02d}:00", f"{10 + i:02d}:00", hall="Hall A") for i in range(4)]
        + [_session(f"B{i}", f"{9 + i:02d}:00", f"{10 + i:02d}:00", hall="Hall B") for i in range(4)]
        + [_session("C0", "09:00", "10:00", hall="Hall C")]
    )
    issues = detect_underutilized_halls(sessions, THRESHOLDS)
    assert [(i.hall, i.session_count, i.mean_sessions) for i in issues] == [("Hall C", 1, 3.0)]
    assert issues[0].details == "Hall is underutilized (1 sessions, avg: 3 sessions/hall)"


def test_evenly_used_halls_are_fine():
    sessions = [_session("A", "09:00", "10:00", hall="Hall A"), _session("B", "09:00", "10:00", hall="Hall B")]
    assert detect_underutilized_halls(sessions, THRESHOLDS) == []


@pytest.mark.parametrize("count,flagged", [(15, False), (16, True)])
def test_heavy_speaker_load(count, flagged):
    entries = [_entry("09:00", "09:10", "Hall A", f"Talk {i}", date=f"2024-03-{1 + i % 3:02d}") for i in range(count)]
    issues = detect_heavy_speaker_load({"dr. a": entries}, THRESHOLDS, lambda key: "Dr. A")
    if flagged:
        assert len(issues) == 1
        assert issues[0].faculty == "Dr. A"
        assert issues[0].session_count == 16
        assert issues[0].first_date == "2024-03-01"
    else:
        assert issues == []


def test_analyze_schedule_keeps_build_findings_first(column_map):
    rows = rows_from(
        [
            ["2024-03-01", "08:00-12:00", "Advanced hernia repair", "Hall A", "", "Dr. A", "Speaker", "", ""],
            ["2024-03-01", "11:00-12:00", "Mesh choices", "Hall B", "", "Dr. A", "Speaker", "", ""],
        ]
    )
    schedule = build_schedule(rows, column_map)
    before = len(schedule.issues)
    issues = analyze_schedule(schedule)
    assert [i.kind for i in issues] == ["long_session", "faculty_conflict", "missing_break"]
    assert len(schedule.issues) == before
    assert issues[1].faculty == "Dr. A"


def test_issue_serialization_and_counts():
    issues = analyze_schedule(
        _schedule(
            _session("Talk A", "09:00", "10:00"),
            _session("Talk B", "09:30", "10:30"),
            _session("Talk C", "13:00", "14:00"),
        )
    )
    counts = count_by_kind(issues)
    assert counts["overlap"] == 1
    assert counts["gap"] == 1
    assert counts["faculty_conflict"] == 0
    assert counts["missing_break"] == 1
    assert counts["total"] == 3

    first = issues_to_dicts(issues, limit=1)
    assert len(first) == 1
    assert first[0]["kind"] == "overlap"
    assert first[0]["session1"] == "Talk A"
    assert first[0]["details"].startswith("Overlap:")
    assert len(issues_to_dicts(issues)) == 3


def test_thresholds_from_config():
    thresholds = AnalysisThresholds.from_config({"analysis": {"max_gap_minutes": 45}})
    assert thresholds.max_gap_minutes == 45
    assert thresholds.long_session_minutes == 180
    assert AnalysisThresholds.from_config({}) == AnalysisThresholds()
    with pytest.raises(ValueError):
        AnalysisThresholds.from_config({"analysis": {"max_gap": 45}})
