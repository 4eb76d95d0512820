from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

# Values used when a config file omits a key. Kept in one place so the
# pipeline can run from a bare dict in tests and notebooks.
DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {"level": "INFO"},
    "database": {"url": "sqlite:///data/program.db"},
    "import": {
        "batch_size": 100,
        "clear_existing": False,
        "create_coordinators": True,
        "sync_faculty": True,
        "default_country_code": "+91",
        "max_issues": 100,
        "max_faculty_analysis": 50,
    },
    "columns": {"overrides": {}},
    "analysis": {},
    "output": {},
}


SECTIONS = set(DEFAULT_CONFIG) | {"extends", "_meta"}


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """One YAML file, unmerged. Its top level must be a mapping of known sections."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: expected a mapping of config sections, got {type(data).__name__}")
    unknown = sorted(set(data) - SECTIONS)
    if unknown:
        raise ValueError(f"{path}: unknown config section(s): {', '.join(map(str, unknown))}")
    return dict(data)


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Layer `override` on `base`, section by section. Neither input is modified."""
    merged = {k: deep_merge(v, {}) if isinstance(v, Mapping) else v for k, v in base.items()}
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(value, Mapping):
            merged[key] = deep_merge(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = value
    return merged


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Import settings from `path` layered over DEFAULT_CONFIG.

    A file may build on others with `extends: base.yaml` (or a list of
    files, applied in order); relative names are looked up next to the file
    that names them. The resolved path is kept under `_meta.config_path`.
    """
    path = Path(path).resolve()
    cfg = deep_merge(DEFAULT_CONFIG, _load_with_parents(path, chain=()))
    cfg["_meta"] = {"config_path": str(path)}
    return cfg


def _load_with_parents(path: Path, chain: Tuple[Path, ...]) -> Dict[str, Any]:
    if path in chain:
        raise ValueError(f"Config extends itself: {' -> '.join(str(p) for p in chain + (path,))}")
    own = read_config_file(path)
    parents = own.pop("extends", None) or []
    if isinstance(parents, str):
        parents = [parents]
    if not isinstance(parents, list) or not all(isinstance(p, str) for p in parents):
        raise ValueError(f"{path}: 'extends' must name a file or a list of files")

    cfg: Dict[str, Any] = {}
    for parent in parents:
        cfg = deep_merge(cfg, _load_with_parents((path.parent / parent).resolve(), chain + (path,)))
    return deep_merge(cfg, own)


def with_defaults(cfg: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Fill a partial (possibly empty) config dict with DEFAULT_CONFIG values."""
    return deep_merge(DEFAULT_CONFIG, cfg or {})


def ensure_dirs(cfg: Mapping[str, Any]) -> None:
    """Create the folders the report, the sessions export and a file-backed SQLite database will be written to."""
    targets = [p for p in (cfg.get("output") or {}).values() if isinstance(p, (str, Path)) and str(p).strip()]

    url = str((cfg.get("database") or {}).get("url", ""))
    prefix = "sqlite:///"
    if url.startswith(prefix) and url != prefix and ":memory:" not in url:
        targets.append(url[len(prefix):])

    for target in targets:
        Path(target).parent.mkdir(parents=True, exist_ok=True)
