from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Dict, List, Union

from program_import.data_processing.schemas import RawRow
from program_import.errors import EmptyInputError

log = logging.getLogger(__name__)

BOM = "\ufeff"


def _unique_headers(cells: List[str]) -> List[str]:
    """Blank headers become `column_<n>`; repeated headers get a ` (2)`, ` (3)` suffix."""
    seen: Dict[str, int] = {}
    headers: List[str] = []
    for i, cell in enumerate(cells, start=1):
        name = cell.strip() or f"column_{i}"
        if name in seen:
            seen[name] += 1
            name = f"{name} ({seen[name]})"
        else:
            seen[name] = 1
        headers.append(name)
    return headers


def parse_rows(text: str) -> List[RawRow]:
    """
    Turn comma-delimited program text into one dict per data line.

    - a leading byte-order mark is dropped from the header line
    - double quotes toggle quoted mode; commas inside quotes are kept and
      a doubled quote inside quotes is a literal quote
    - short lines are padded with "" for the missing trailing columns,
      cells beyond the header width are ignored
    - blank lines are skipped; header names and values are trimmed
    """
    if text.startswith(BOM):
        text = text[len(BOM):]

    non_blank = [ln for ln in text.splitlines() if ln.strip()]
    if len(non_blank) < 2:
        raise EmptyInputError("Program file needs a header line and at least one data line.")

    reader = csv.reader(io.StringIO(text, newline=""))
    headers: List[str] = []
    rows: List[RawRow] = []
    for cells in reader:
        if not any(c.strip() for c in cells):
            continue
        if not headers:
            if cells and cells[0].startswith(BOM):
                cells[0] = cells[0][len(BOM):]
            headers = _unique_headers(cells)
            continue

        if len(cells) > len(headers):
            log.debug("Line %d has %d cells for %d headers; extra cells ignored", reader.line_num, len(cells), len(headers))
        padded = list(cells[: len(headers)]) + [""] * max(0, len(headers) - len(cells))
        rows.append({h: v.strip() for h, v in zip(headers, padded)})

    if not rows:
        raise EmptyInputError("Program file has a header but no data rows.")

    log.info("Parsed %d rows with %d columns", len(rows), len(headers))
    return rows


def load_rows(path: Union[str, Path]) -> List[RawRow]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Program file not found: {path}")
    with path.open("r", encoding="utf-8", errors="replace", newline="") as f:
        return parse_rows(f.read())
