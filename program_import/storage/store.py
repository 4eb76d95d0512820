from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Sequence

from sqlalchemy import create_engine
from sqlalchemy import text as sa_text
from sqlalchemy.engine import Connection, Engine
from tqdm import tqdm

from program_import.storage.writeback import ExistingRecords, ImportPlan, StoredFaculty

log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

# SQLite DDL; other databases must be provisioned with the same columns.
# faculty is shared across events, the other tables are keyed by event_id.
SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id TEXT NOT NULL,
        session_name TEXT NOT NULL,
        session_type TEXT,
        session_date TEXT,
        start_time TEXT,
        end_time TEXT,
        duration_minutes INTEGER,
        hall TEXT,
        specialty_track TEXT,
        speakers TEXT,
        chairpersons TEXT,
        moderators TEXT,
        speakers_text TEXT,
        chairpersons_text TEXT,
        moderators_text TEXT,
        description TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_sessions_event ON sessions (event_id)",
    """
    CREATE TABLE IF NOT EXISTS tracks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        chairpersons TEXT,
        color TEXT,
        UNIQUE (event_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS hall_coordinators (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id TEXT NOT NULL,
        hall_name TEXT NOT NULL,
        coordinator_name TEXT,
        coordinator_email TEXT,
        UNIQUE (event_id, hall_name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS faculty (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT,
        phone TEXT,
        designation TEXT
    )
    """,
]

INSERT_SESSION = sa_text(
    """
    INSERT INTO sessions (
        event_id, session_name, session_type, session_date, start_time, end_time,
        duration_minutes, hall, specialty_track, speakers, chairpersons, moderators,
        speakers_text, chairpersons_text, moderators_text, description
    ) VALUES (
        :event_id, :session_name, :session_type, :session_date, :start_time, :end_time,
        :duration_minutes, :hall, :specialty_track, :speakers, :chairpersons, :moderators,
        :speakers_text, :chairpersons_text, :moderators_text, :description
    )
    """
)

INSERT_COORDINATOR = sa_text(
    """
    INSERT INTO hall_coordinators (event_id, hall_name, coordinator_name, coordinator_email)
    VALUES (:event_id, :hall_name, :coordinator_name, :coordinator_email)
    """
)

INSERT_TRACK = sa_text(
    """
    INSERT INTO tracks (event_id, name, description, chairpersons, color)
    VALUES (:event_id, :name, :description, :chairpersons, :color)
    """
)

UPDATE_TRACK = sa_text("UPDATE tracks SET description = :description, chairpersons = :chairpersons WHERE id = :id")

INSERT_FACULTY = sa_text(
    "INSERT INTO faculty (name, email, phone, designation) VALUES (:name, :email, :phone, :designation)"
)

# fills NULL or empty contact fields only
UPDATE_FACULTY = sa_text(
    """
    UPDATE faculty SET
        email = CASE WHEN email IS NULL OR email = '' THEN :email ELSE email END,
        phone = CASE WHEN phone IS NULL OR phone = '' THEN :phone ELSE phone END
    WHERE id = :id
    """
)


def get_engine(url: str) -> Engine:
    return create_engine(url, pool_pre_ping=True)


def _batches(rows: Sequence[Dict[str, Any]], size: int) -> Iterator[List[Dict[str, Any]]]:
    for i in range(0, len(rows), size):
        yield list(rows[i:i + size])


class ProgramStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, url: str) -> "ProgramStore":
        return cls(get_engine(url))

    def ensure_schema(self) -> None:
        with self.engine.begin() as conn:
            for ddl in SCHEMA:
                conn.execute(sa_text(ddl))

    def load_existing(self, event_id: str) -> ExistingRecords:
        existing = ExistingRecords()
        params = {"event_id": event_id}
        with self.engine.begin() as conn:
            rows = conn.execute(
                sa_text(
                    """
                    SELECT session_date, hall, specialty_track, start_time, session_name
                    FROM sessions WHERE event_id = :event_id
                    """
                ),
                params,
            ).mappings().all()
            for r in rows:
                existing.session_keys.add(
                    (
                        r["session_date"] or "",
                        r["hall"] or "",
                        r["specialty_track"] or "",
                        r["start_time"] or "",
                        r["session_name"] or "",
                    )
                )

            for r in conn.execute(
                sa_text("SELECT id, name FROM tracks WHERE event_id = :event_id"), params
            ).mappings():
                existing.tracks[r["name"]] = int(r["id"])

            for r in conn.execute(
                sa_text("SELECT hall_name FROM hall_coordinators WHERE event_id = :event_id"), params
            ).mappings():
                existing.coordinator_halls.add(r["hall_name"])

            for r in conn.execute(
                sa_text("SELECT id, name, email, phone, designation FROM faculty ORDER BY id")
            ).mappings():
                existing.faculty.append(
                    StoredFaculty(
                        id=int(r["id"]),
                        name=r["name"],
                        email=r["email"],
                        phone=r["phone"],
                        designation=r["designation"],
                    )
                )

        log.info(
            "Event %s already has %d sessions, %d tracks, %d coordinators; %d faculty on file",
            event_id,
            len(existing.session_keys),
            len(existing.tracks),
            len(existing.coordinator_halls),
            len(existing.faculty),
        )
        return existing

    def _write(self, conn: Connection, plan: ImportPlan, batch_size: int, progress: bool) -> Dict[str, int]:
        params = {"event_id": plan.event_id}
        if plan.clear_existing:
            conn.execute(sa_text("DELETE FROM sessions WHERE event_id = :event_id"), params)
        if plan.clear_coordinators:
            conn.execute(sa_text("DELETE FROM hall_coordinators WHERE event_id = :event_id"), params)

        inserted = 0
        batches = list(_batches(plan.sessions, batch_size))
        for batch in tqdm(batches, desc="Writing sessions", disable=not progress):
            conn.execute(INSERT_SESSION, batch)
            inserted += len(batch)

        if plan.coordinators:
            conn.execute(INSERT_COORDINATOR, plan.coordinators)
        if plan.new_tracks:
            conn.execute(INSERT_TRACK, plan.new_tracks)
        if plan.track_updates:
            conn.execute(UPDATE_TRACK, plan.track_updates)
        if plan.new_faculty:
            conn.execute(INSERT_FACULTY, plan.new_faculty)
        if plan.faculty_updates:
            conn.execute(UPDATE_FACULTY, list(plan.faculty_updates.values()))

        return {
            "sessions": inserted,
            "coordinators": len(plan.coordinators),
            "tracks_created": len(plan.new_tracks),
            "tracks_updated": len(plan.track_updates),
            "faculty_created": len(plan.new_faculty),
            "faculty_updated": len(plan.faculty_updates),
        }

    def commit(self, plan: ImportPlan, batch_size: int = DEFAULT_BATCH_SIZE, progress: bool = False) -> Dict[str, int]:
        """Write the plan atomically; on any error the transaction is rolled back and the error re-raised."""
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        with self.engine.begin() as conn:
            written = self._write(conn, plan, batch_size, progress)
        log.info("Committed import for event %s: %s", plan.event_id, written)
        return written
