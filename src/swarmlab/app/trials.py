"""Trial orchestration: run independent simulations and aggregate their metrics."""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.rng import DeterministicRng, derive_stream_seed
from ..sim.core.world import World
from ..sim.types.metrics import METRIC_NAMES, EmergentMetrics
from ..sim.types.snapshot import PopulationSnapshot
from ..sim.types.trial import TrialAnalysis, TrialProgress, TrialResult

logger = logging.getLogger(__name__)

YIELD_EVERY_TICKS = 100
_TRIAL_RNG_SALT = 0x7A1A15EED0C0FFEE


@dataclass
class ImportReport:
    imported: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def total_ticks(config: SimulationConfig, duration_ms: float) -> int:
    return int(math.floor(duration_ms / 1000.0 * config.tick_rate))


def analyze_trials(results: Iterable[TrialResult], config_id: Optional[str] = None) -> TrialAnalysis:
    """Mean of every metric plus the highest- and lowest-complexity trials."""
    relevant = [result for result in results if config_id is None or result.config_id == config_id]
    if not relevant:
        return TrialAnalysis()

    sums = dict.fromkeys(METRIC_NAMES, 0.0)
    best: Optional[TrialResult] = None
    worst: Optional[TrialResult] = None
    for result in relevant:
        for name in METRIC_NAMES:
            sums[name] += getattr(result.metrics, name)
        complexity = result.metrics.complexity
        if best is None or complexity > best.metrics.complexity:
            best = result
        if worst is None or complexity < worst.metrics.complexity:
            worst = result

    count = len(relevant)
    average = EmergentMetrics(**{name: total / count for name, total in sums.items()})
    return TrialAnalysis(count=count, average_metrics=average, best_trial=best, worst_trial=worst)


def trial_result_to_dict(result: TrialResult) -> Dict[str, Any]:
    payload = {f.name: getattr(result, f.name) for f in fields(TrialResult)}
    payload["metrics"] = asdict(result.metrics)
    payload["state_distribution"] = dict(result.state_distribution)
    if result.recorded_frames is not None:
        payload["recorded_frames"] = [frame.to_dict() for frame in result.recorded_frames]
    return payload


def trial_result_from_dict(raw: Dict[str, Any]) -> TrialResult:
    metrics_raw = raw.get("metrics") or {}
    frames_raw = raw.get("recorded_frames")
    seed = raw.get("seed")
    return TrialResult(
        config_id=str(raw["config_id"]),
        trial_id=str(raw["trial_id"]),
        timestamp=float(raw.get("timestamp", 0.0)),
        duration=float(raw.get("duration", 0.0)),
        final_count=int(raw["final_count"]),
        state_distribution={str(k): int(v) for k, v in (raw.get("state_distribution") or {}).items()},
        metrics=EmergentMetrics(**{name: float(metrics_raw.get(name, 0.0)) for name in METRIC_NAMES}),
        ticks=int(raw.get("ticks", 0)),
        seed=None if seed is None else int(seed),
        recorded_frames=None
        if frames_raw is None
        else tuple(PopulationSnapshot.from_dict(frame) for frame in frames_raw),
    )


class TrialManager:
    """Runs trials one engine per trial and keeps every completed result.

    Each trial gets its own ``World`` seeded from this manager's random
    stream, so a batch is reproducible from one seed while trials share no
    mutable state.
    """

    def __init__(
        self,
        seed: int = 0,
        on_progress: Callable[[TrialProgress], None] | None = None,
        on_trial_complete: Callable[[TrialResult], None] | None = None,
    ) -> None:
        self._rng = DeterministicRng(derive_stream_seed(seed, _TRIAL_RNG_SALT))
        self._trials: List[TrialResult] = []
        self._current: TrialResult | None = None
        self._progress = TrialProgress()
        self.on_progress = on_progress
        self.on_trial_complete = on_trial_complete

    @property
    def results(self) -> List[TrialResult]:
        return list(self._trials)

    @property
    def current_trial(self) -> TrialResult | None:
        return self._current

    @property
    def progress(self) -> TrialProgress:
        return TrialProgress(self._progress.current, self._progress.total, self._progress.running)

    async def run_single_trial(
        self, config: SimulationConfig, duration_ms: float = 5000, record: bool = False
    ) -> TrialResult:
        seed = self._rng.next_seed()
        world = World(config, rng=DeterministicRng(seed))
        trial_id = f"trial_{uuid.uuid4().hex[:12]}"
        started = time.time()
        clock = time.perf_counter()

        if record:
            world.start_recording()
        world.start()
        ticks = total_ticks(config, duration_ms)
        for index in range(ticks):
            world.tick(1.0)
            if index % YIELD_EVERY_TICKS == 0:
                await asyncio.sleep(0)
        world.pause()
        if record:
            world.stop_recording()

        result = TrialResult(
            config_id=config.id,
            trial_id=trial_id,
            timestamp=started * 1000.0,
            duration=(time.perf_counter() - clock) * 1000.0,
            final_count=world.population,
            state_distribution=world.state_distribution(),
            metrics=world.metrics(),
            ticks=world.tick_count,
            seed=seed,
            recorded_frames=world.recorded_frames if record else None,
        )
        self._trials.append(result)
        self._current = result
        logger.info(
            "Trial %s finished: config=%r ticks=%d agents=%d complexity=%.4f",
            trial_id,
            config.id,
            ticks,
            result.final_count,
            result.metrics.complexity,
        )
        if self.on_trial_complete is not None:
            self.on_trial_complete(result)
        return result

    async def run_batch_trials(
        self,
        config: SimulationConfig,
        num_trials: int = 10,
        duration_ms: float = 3000,
        record: bool = False,
    ) -> List[TrialResult]:
        self._progress = TrialProgress(current=0, total=num_trials, running=True)
        self._notify_progress()

        results: List[TrialResult] = []
        for index in range(num_trials):
            results.append(await self.run_single_trial(config, duration_ms, record))
            self._progress.current = index + 1
            self._notify_progress()

        self._progress.running = False
        self._notify_progress()
        logger.info("Batch of %d trials for config %r complete", num_trials, config.id)
        return results

    def analyze(self, config_id: Optional[str] = None) -> TrialAnalysis:
        return analyze_trials(self._trials, config_id)

    def clear_trials(self) -> None:
        self._trials.clear()
        self._current = None

    def export_results(self) -> str:
        return json.dumps([trial_result_to_dict(result) for result in self._trials], indent=2)

    def import_results(self, text: str) -> ImportReport:
        """Append parseable records from ``text``; problems are reported, never raised."""
        report = ImportReport()
        try:
            payload = json.loads(text)
        except (TypeError, ValueError, RecursionError) as exc:
            report.errors.append(f"invalid JSON: {exc}")
            logger.warning("Failed to import results: %s", exc)
            return report
        if not isinstance(payload, list):
            report.errors.append("expected a list of trial results")
            logger.warning("Failed to import results: top-level value is %s", type(payload).__name__)
            return report

        parsed: List[TrialResult] = []
        for index, raw in enumerate(payload):
            try:
                parsed.append(trial_result_from_dict(raw))
            except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as exc:
                report.errors.append(f"record {index}: {exc!r}")
                logger.warning("Skipping malformed trial record %d: %r", index, exc)
        self._trials.extend(parsed)
        report.imported = len(parsed)
        return report

    def _notify_progress(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.progress)
