from program_import.data_processing.schedule_builder import build_schedule
from program_import.data_processing.schemas import BuiltSchedule, ColumnMap, Faculty, Track
from program_import.storage.writeback import (
    TRACK_COLORS,
    ExistingRecords,
    StoredFaculty,
    WriteBackOptions,
    coordinator_email,
    plan_write_back,
    session_record,
)

from conftest import rows_from


def _keynote_schedule(column_map, keynote_rows):
    return build_schedule(rows_from(keynote_rows), column_map)


def test_session_record(column_map, keynote_rows):
    session = _keynote_schedule(column_map, keynote_rows).session_list()[0]
    record = session_record(session, "ev1")
    assert record["event_id"] == "ev1"
    assert record["session_name"] == "Opening Keynote"
    assert record["session_date"] == "2024-03-01"
    assert record["start_time"] == "09:00:00"
    assert record["specialty_track"] == "Track1"
    assert record["speakers"] == "Dr. Smith"
    assert record["speakers_text"] == "Dr. Smith (smith@x.com, +919876543210)"
    assert record["chairpersons"] == "Dr. Jones"
    assert record["chairpersons_text"] == "Dr. Jones"
    assert record["moderators"] is None
    assert record["description"] is None


def test_coordinator_email():
    assert coordinator_email(" Main  Hall ") == "main.hall@event.com"


def test_fresh_plan(column_map, keynote_rows):
    plan = plan_write_back(_keynote_schedule(column_map, keynote_rows), ExistingRecords(), "ev1")
    assert len(plan.sessions) == 1
    assert plan.coordinators == [
        {"event_id": "ev1", "hall_name": "Hall A", "coordinator_name": "Hall A Coordinator", "coordinator_email": "hall.a@event.com"}
    ]
    assert plan.new_tracks == [
        {
            "event_id": "ev1",
            "name": "Track1",
            "description": "Opening Keynote",
            "chairpersons": "Dr. Jones",
            "color": TRACK_COLORS[0],
        }
    ]
    assert [(o.name, o.status, o.matched_by) for o in plan.faculty_outcomes] == [
        ("Dr. Smith", "new", "new_faculty_created"),
        ("Dr. Jones", "new", "new_faculty_no_contact"),
    ]
    assert plan.counts()["faculty_created"] == 2


def test_existing_sessions_are_not_duplicated(column_map, keynote_rows):
    schedule = _keynote_schedule(column_map, keynote_rows)
    existing = ExistingRecords(session_keys=set(schedule.sessions), coordinator_halls={"Hall A"}, tracks={"Track1": 7})

    plan = plan_write_back(schedule, existing, "ev1")
    assert plan.sessions == []
    assert plan.duplicate_sessions == 1
    assert plan.coordinators == []
    assert plan.new_tracks == []
    assert plan.track_updates == [{"id": 7, "description": "Opening Keynote", "chairpersons": "Dr. Jones"}]
    assert not plan.clear_existing


def test_clear_existing_replaces(column_map, keynote_rows):
    schedule = _keynote_schedule(column_map, keynote_rows)
    existing = ExistingRecords(session_keys=set(schedule.sessions), coordinator_halls={"Hall A"})

    plan = plan_write_back(schedule, existing, "ev1", WriteBackOptions(clear_existing=True))
    assert len(plan.sessions) == 1
    assert plan.duplicate_sessions == 0
    assert len(plan.coordinators) == 1
    assert plan.clear_existing and plan.clear_coordinators


def test_options_switch_off_coordinators_and_faculty(column_map, keynote_rows):
    options = WriteBackOptions.from_config({"import": {"create_coordinators": False, "sync_faculty": False}})
    plan = plan_write_back(_keynote_schedule(column_map, keynote_rows), ExistingRecords(), "ev1", options)
    assert plan.coordinators == []
    assert plan.new_faculty == []
    assert plan.faculty_outcomes == []


def test_track_colors_cycle():
    schedule = BuiltSchedule(column_map=ColumnMap())
    for i in range(len(TRACK_COLORS) + 1):
        schedule.tracks[f"T{i}"] = Track(f"T{i}")
    plan = plan_write_back(schedule, ExistingRecords(), "ev1")
    colors = [t["color"] for t in plan.new_tracks]
    assert colors[: len(TRACK_COLORS)] == TRACK_COLORS
    assert colors[-1] == TRACK_COLORS[0]


def test_faculty_matching():
    stored = [
        StoredFaculty(id=1, name="Dr. Smith"),
        StoredFaculty(id=2, name="R. Iyer", email="iyer@x.com"),
        StoredFaculty(id=3, name="P Nair", phone="+919876500000"),
        StoredFaculty(id=4, name="Dr. Anil K Sharma", email="anil@x.com", phone="+919800000000"),
        StoredFaculty(id=5, name="Meera Anand Rao"),
    ]
    schedule = BuiltSchedule(column_map=ColumnMap())
    for f in [
        Faculty(key="dr. smith", name="Dr. Smith", email="smith@x.com"),
        Faculty(key="ravi iyer", name="Ravi Iyer", email="IYER@x.com"),
        Faculty(key="priya nair", name="Priya Nair", phone="9876500000"),
        Faculty(key="anil sharma", name="Anil Sharma"),
        Faculty(key="prof. meera anand", name="Prof. Meera Anand"),
        Faculty(key="new person", name="New Person"),
    ]:
        schedule.faculty[f.key] = f

    plan = plan_write_back(schedule, ExistingRecords(faculty=stored), "ev1")
    outcomes = {o.name: (o.status, o.matched_by) for o in plan.faculty_outcomes}
    assert outcomes == {
        "Dr. Smith": ("updated", "exact_name"),
        "Ravi Iyer": ("matched", "email"),
        "Priya Nair": ("matched", "phone"),
        "Anil Sharma": ("matched", "partial_name"),
        "Prof. Meera Anand": ("matched", "fuzzy_name"),
        "New Person": ("new", "new_faculty_no_contact"),
    }
    assert plan.faculty_updates == {1: {"id": 1, "email": "smith@x.com", "phone": None}}
    assert plan.new_faculty == [{"name": "New Person", "email": None, "phone": None, "designation": "Speaker"}]
    counts = plan.counts()
    assert (counts["faculty_created"], counts["faculty_updated"], counts["faculty_matched"]) == (1, 1, 4)
