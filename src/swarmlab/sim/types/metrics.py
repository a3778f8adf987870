from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True, slots=True)
class EmergentMetrics:
    clustering: float = 0.0
    movement: float = 0.0
    state_changes: float = 0.0
    diversity: float = 0.0
    stability: float = 0.0
    complexity: float = 0.0


METRIC_NAMES = tuple(f.name for f in fields(EmergentMetrics))
