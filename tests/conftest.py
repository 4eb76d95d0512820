from __future__ import annotations

from typing import Iterable, List, Sequence

import pytest

from program_import.data_processing.schemas import ColumnMap, RawRow

HEADERS = ["Date", "Time", "Topic", "Hall", "Track", "Name", "Role", "Email", "Phone"]


def rows_from(values: Iterable[Sequence[str]], headers: Sequence[str] = HEADERS) -> List[RawRow]:
    return [dict(zip(headers, v)) for v in values]


def csv_text(values: Iterable[Sequence[str]], headers: Sequence[str] = HEADERS) -> str:
    lines = [",".join(headers)]
    for v in values:
        lines.append(",".join(f'"{c}"' if "," in c else c for c in v))
    return "\n".join(lines) + "\n"


@pytest.fixture
def column_map() -> ColumnMap:
    return ColumnMap(
        date="Date",
        time="Time",
        topic="Topic",
        hall="Hall",
        session="Track",
        name="Name",
        role="Role",
        email="Email",
        phone="Phone",
    )


@pytest.fixture
def keynote_rows() -> List[List[str]]:
    return [
        ["2024-03-01", "09:00-10:00", "Opening Keynote", "Hall A", "Track1", "Dr. Smith", "Speaker", "smith@x.com", "9876543210"],
        ["2024-03-01", "09:00-10:00", "Opening Keynote", "Hall A", "Track1", "Dr. Jones", "Chairperson", "", ""],
    ]


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'program.db'}"
