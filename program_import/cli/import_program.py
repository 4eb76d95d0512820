from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional, Sequence

from program_import.errors import ProgramImportError
from program_import.pipeline import run_import
from program_import.storage.store import ProgramStore
from program_import.storage.writeback import session_record
from program_import.utils.config import deep_merge, ensure_dirs, load_config, with_defaults
from program_import.utils.io import save_json, save_records_csv
from program_import.utils.logging import setup_logging

log = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Import a conference program CSV into the event database.")
    p.add_argument("--config", default=None, help="Path to YAML config (supports extends).")
    p.add_argument("--csv", required=True, help="Program file (comma-delimited, header row required).")
    p.add_argument("--event-id", required=True, help="Event the sessions belong to.")
    p.add_argument("--db-url", default=None, help="Override database.url from the config.")
    p.add_argument("--dry-run", action="store_true", help="Analyse and plan, but write nothing.")
    p.add_argument("--clear-existing", action="store_true", help="Replace the event's sessions instead of adding.")
    p.add_argument("--report", default=None, help="Override output.report_json.")
    return p.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.db_url:
        out["database"] = {"url": args.db_url}
    if args.clear_existing:
        out["import"] = {"clear_existing": True}
    if args.report:
        out["output"] = {"report_json": args.report}
    return out


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config) if args.config else with_defaults()
    cfg = deep_merge(cfg, _overrides(args))

    setup_logging(level=cfg.get("logging", {}).get("level", "INFO"))
    ensure_dirs(cfg)

    store = ProgramStore.from_url(cfg["database"]["url"])
    try:
        outcome = run_import(
            args.csv,
            args.event_id,
            cfg,
            store=store,
            dry_run=args.dry_run,
            progress=True,
        )
    except (ProgramImportError, FileNotFoundError) as e:
        log.error("Import aborted: %s", e)
        return 2

    report = outcome.report
    output = cfg.get("output", {}) or {}
    if output.get("report_json"):
        save_json(output["report_json"], report)
        log.info("Report written: %s", output["report_json"])
    if output.get("sessions_csv"):
        save_records_csv(
            output["sessions_csv"],
            [session_record(s, args.event_id) for s in outcome.analysis.schedule.session_list()],
        )
        log.info("Sessions exported: %s", output["sessions_csv"])

    log.info(report["message"])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
