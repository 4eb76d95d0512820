from __future__ import annotations

import argparse
import json
import logging
from typing import Optional, Sequence

from program_import.data_processing.columns import build_column_map, detect_columns
from program_import.data_processing.tabular import load_rows
from program_import.errors import ProgramImportError
from program_import.utils.config import load_config, with_defaults
from program_import.utils.logging import setup_logging

log = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Show how the columns of a program CSV would be interpreted.")
    p.add_argument("--csv", required=True, help="Program file to inspect.")
    p.add_argument("--config", default=None, help="YAML config; only columns.overrides and logging are used.")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_config(args.config) if args.config else with_defaults()
    setup_logging(level=cfg.get("logging", {}).get("level", "INFO"))

    try:
        rows = load_rows(args.csv)
    except (ProgramImportError, FileNotFoundError) as e:
        log.error("Cannot read %s: %s", args.csv, e)
        return 2

    detected = detect_columns(rows)
    column_map = build_column_map(detected, overrides=(cfg.get("columns", {}) or {}).get("overrides"))

    for col in detected:
        samples = ", ".join(col.sample_values[:3])
        print(f"{col.header:<30} {col.type:<8} {col.confidence:>3}  {samples}")
    print(json.dumps({"mapping": column_map.to_dict(), "missing": column_map.missing_required()}, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
