from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def save_json(path: Union[str, Path], obj: Any) -> None:
    path = Path(path)
    ensure_dir(path.parent)
    path.write_text(json.dumps(obj, indent=2, ensure_ascii=False, default=str), encoding="utf-8")


def save_records_csv(path: Union[str, Path], records: List[Dict[str, Any]]) -> None:
    path = Path(path)
    ensure_dir(path.parent)
    pd.DataFrame(records).to_csv(path, index=False)
