from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class AnalysisThresholds:
    """
    Heuristic limits used by the schedule checks. Defaults reproduce the
    limits the import has always used; any of them can be overridden from the
    `analysis:` section of the config.
    """

    # idle time between consecutive sessions in one hall
    max_gap_minutes: int = 90
    # a lecture longer than this is flagged
    long_session_minutes: int = 180
    # minutes a hall may run without a break
    max_continuous_minutes: int = 180
    # schedule entries per person before the load is called heavy
    heavy_load_sessions: int = 15
    # halls below this share of the mean session count are underutilized
    underutilized_ratio: float = 0.5

    @classmethod
    def from_config(cls, cfg: Optional[Mapping[str, Any]] = None) -> "AnalysisThresholds":
        section = dict((cfg or {}).get("analysis", {}) or {})
        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            raise ValueError(f"Unknown analysis threshold(s): {', '.join(sorted(unknown))}")
        return cls(**section)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
