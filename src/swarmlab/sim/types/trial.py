from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .metrics import EmergentMetrics
from .snapshot import PopulationSnapshot


@dataclass(frozen=True)
class TrialResult:
    config_id: str
    trial_id: str
    timestamp: float  # start time, epoch milliseconds
    duration: float  # wall-clock milliseconds
    final_count: int
    state_distribution: Mapping[str, int]
    metrics: EmergentMetrics
    ticks: int = 0
    seed: Optional[int] = None
    recorded_frames: Optional[Tuple[PopulationSnapshot, ...]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "state_distribution", MappingProxyType(dict(self.state_distribution)))


@dataclass
class TrialProgress:
    current: int = 0
    total: int = 0
    running: bool = False


@dataclass(frozen=True)
class TrialAnalysis:
    count: int = 0
    average_metrics: EmergentMetrics = field(default_factory=EmergentMetrics)
    best_trial: Optional[TrialResult] = None
    worst_trial: Optional[TrialResult] = None
