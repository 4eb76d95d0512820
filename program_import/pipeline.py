from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from program_import.analysis.conflicts import analyze_schedule
from program_import.analysis.issues import TimingIssue, count_by_kind, issues_to_dicts
from program_import.analysis.summary import summarize_schedule
from program_import.analysis.thresholds import AnalysisThresholds
from program_import.data_processing.columns import build_column_map, detect_columns
from program_import.data_processing.schedule_builder import build_schedule
from program_import.data_processing.schemas import BuiltSchedule, ColumnMap, DetectedColumn, RawRow
from program_import.data_processing.tabular import load_rows
from program_import.storage.store import ProgramStore
from program_import.storage.writeback import ExistingRecords, ImportPlan, WriteBackOptions, plan_write_back
from program_import.utils.config import with_defaults
from program_import.utils.timer import timed

log = logging.getLogger(__name__)


@dataclass
class ProgramAnalysis:
    detected_columns: List[DetectedColumn]
    column_map: ColumnMap
    schedule: BuiltSchedule
    issues: List[TimingIssue]
    summary: Dict[str, Any]
    timings: Dict[str, float] = field(default_factory=dict)


def analyze_rows(
    rows: Sequence[RawRow],
    cfg: Optional[Mapping[str, Any]] = None,
    timings: Optional[Dict[str, float]] = None,
) -> ProgramAnalysis:
    """classify -> build -> analyze, entirely in memory."""
    cfg = with_defaults(cfg)
    timings = {} if timings is None else timings
    thresholds = AnalysisThresholds.from_config(cfg)
    overrides = (cfg.get("columns", {}) or {}).get("overrides") or {}
    country_code = str(cfg["import"].get("default_country_code") or "")

    with timed("classify", timings):
        detected = detect_columns(rows)
        column_map = build_column_map(detected, overrides=overrides)
    log.info("Column map: %s", column_map.to_dict())

    with timed("build", timings):
        schedule = build_schedule(rows, column_map, thresholds=thresholds, country_code=country_code)

    with timed("analyze", timings):
        issues = analyze_schedule(schedule, thresholds)
        summary = summarize_schedule(schedule)

    return ProgramAnalysis(
        detected_columns=detected,
        column_map=column_map,
        schedule=schedule,
        issues=issues,
        summary=summary,
        timings=timings,
    )


def analyze_program_file(path: Union[str, Path], cfg: Optional[Mapping[str, Any]] = None) -> ProgramAnalysis:
    timings: Dict[str, float] = {}
    with timed("parse", timings):
        rows = load_rows(path)
    return analyze_rows(rows, cfg, timings)


def build_report(
    analysis: ProgramAnalysis,
    cfg: Optional[Mapping[str, Any]] = None,
    event_id: Optional[str] = None,
    plan: Optional[ImportPlan] = None,
    written: Optional[Dict[str, int]] = None,
) -> Dict[str, Any]:
    """Caller-facing result: issue and faculty lists are truncated here, never in the analyzer."""
    cfg = with_defaults(cfg)
    max_issues = int(cfg["import"].get("max_issues", 100))
    max_faculty = int(cfg["import"].get("max_faculty_analysis", 50))
    schedule = analysis.schedule

    faculty = list(schedule.faculty.values())
    imported: Dict[str, Any] = {
        "sessions": len(schedule.sessions),
        "halls": len(schedule.halls),
        "tracks": len(schedule.tracks),
        "faculty": {
            "total": len(faculty),
            "with_contact": sum(1 for f in faculty if f.has_contact),
        },
    }
    if plan is not None:
        imported["planned"] = plan.counts()
    if written is not None:
        imported["written"] = written

    issue_counts = count_by_kind(analysis.issues)
    report: Dict[str, Any] = {
        "event_id": event_id,
        "committed": written is not None,
        "ai_detection": {
            "columns": [c.to_dict() for c in analysis.detected_columns if c.type != "unknown"],
            "mapping": analysis.column_map.to_dict(),
        },
        "imported": imported,
        "analysis": {
            "timing_issues": issues_to_dicts(analysis.issues, limit=max_issues),
            "issues_summary": issue_counts,
            "schedule_summary": analysis.summary,
        },
        "faculty_analysis": [o.to_dict() for o in plan.faculty_outcomes[:max_faculty]] if plan else [],
        "halls": list(schedule.halls),
        "tracks": list(schedule.tracks),
        "timings_sec": dict(analysis.timings),
    }
    report["message"] = (
        f"Import {'complete' if written is not None else 'analysed'}: {len(schedule.sessions)} sessions across "
        f"{len(schedule.halls)} halls, {len(schedule.tracks)} tracks, {len(faculty)} faculty. "
        f"Found {issue_counts['total']} timing issues."
    )
    return report


@dataclass
class ImportOutcome:
    analysis: ProgramAnalysis
    plan: ImportPlan
    written: Optional[Dict[str, int]]
    report: Dict[str, Any]


def run_import(
    path: Union[str, Path],
    event_id: str,
    cfg: Optional[Mapping[str, Any]] = None,
    store: Optional[ProgramStore] = None,
    dry_run: bool = False,
    progress: bool = False,
) -> ImportOutcome:
    """
    Full import of one program file for one event.

    Parsing, classification, building and analysis all finish before the
    store is read, so EmptyInputError / NoSchedulableColumnsError abort
    without any write. The write-back is planned in memory and committed in
    a single transaction unless `dry_run` is set or no store is given.
    """
    cfg = with_defaults(cfg)
    analysis = analyze_program_file(path, cfg)

    options = WriteBackOptions.from_config(cfg)
    timings = analysis.timings
    with timed("plan", timings):
        if store is not None:
            store.ensure_schema()
            existing = store.load_existing(event_id)
        else:
            existing = ExistingRecords()
        plan = plan_write_back(analysis.schedule, existing, event_id, options)

    written: Optional[Dict[str, int]] = None
    if store is not None and not dry_run:
        batch_size = int(cfg["import"].get("batch_size", 100))
        with timed("commit", timings):
            written = store.commit(plan, batch_size=batch_size, progress=progress)
    else:
        log.info("Dry run: nothing written for event %s", event_id)

    report = build_report(analysis, cfg, event_id=event_id, plan=plan, written=written)
    return ImportOutcome(analysis=analysis, plan=plan, written=written, report=report)


def import_program(
    path: Union[str, Path],
    event_id: str,
    cfg: Optional[Mapping[str, Any]] = None,
    store: Optional[ProgramStore] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    """Run the import and return only the caller-facing report."""
    return run_import(path, event_id, cfg, store=store, dry_run=dry_run).report
