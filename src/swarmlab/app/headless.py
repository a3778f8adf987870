from __future__ import annotations

import argparse
import asyncio
import csv
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..logging_config import configure_logging
from ..sim.core.config import SimulationConfig, load_config
from ..sim.types.metrics import METRIC_NAMES
from ..sim.types.trial import TrialResult
from .trials import TrialManager, analyze_trials

_BASIC_HEADER = [
    "trial",
    "final_count",
    "ticks",
    "complexity",
    "duration_ms",
]

_DETAILED_HEADER = [
    "trial",
    "trial_id",
    "seed",
    "final_count",
    "ticks",
    *METRIC_NAMES,
    "distinct_states",
    "states",
    "duration_ms",
]

# A single wandering, self-attracting species used when no scenario file is given.
DEMO_SCENARIO: Dict[str, Any] = {
    "id": "demo",
    "name": "Demo swarm",
    "world_width": 400,
    "world_height": 300,
    "initial_count": 40,
    "max_count": 80,
    "tick_rate": 30,
    "wrap_edges": True,
    "species": [
        {
            "id": "drifter",
            "name": "Drifter",
            "initial_state": "roaming",
            "max_speed": 3,
            "sense_radius": 40,
            "states": {
                "roaming": {
                    "behaviors": [
                        {"type": "MOVE_TOWARDS", "parameters": {"strength": 0.3}},
                        {"type": "MOVE_AWAY", "parameters": {"strength": 2.0}},
                        {"type": "MOVE_RANDOM", "parameters": {"strength": 0.4}},
                    ],
                },
                "resting": {
                    "behaviors": [{"type": "IDLE", "parameters": {"friction": 0.9}}],
                },
            },
            "transitions": [
                {
                    "from_state": "roaming",
                    "to_state": "resting",
                    "condition": {"type": "NEIGHBOR_COUNT", "parameters": {"min": 6}},
                },
                {
                    "from_state": "resting",
                    "to_state": "roaming",
                    "condition": {"type": "TIMER", "parameters": {"duration": 40}},
                },
            ],
        }
    ],
}


def _format_basic_row(index: int, result: TrialResult, duration_ms: float) -> list[object]:
    return [
        index,
        result.final_count,
        result.ticks,
        f"{result.metrics.complexity:.4f}",
        f"{duration_ms:.3f}",
    ]


def _format_detailed_row(index: int, result: TrialResult, duration_ms: float) -> list[object]:
    metrics = result.metrics
    return [
        index,
        result.trial_id,
        "" if result.seed is None else result.seed,
        result.final_count,
        result.ticks,
        *(f"{getattr(metrics, name):.4f}" for name in METRIC_NAMES),
        len(result.state_distribution),
        json.dumps(dict(sorted(result.state_distribution.items()))),
        f"{duration_ms:.3f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
    }


def load_scenario(config_path: Optional[Path]) -> SimulationConfig:
    if config_path is None:
        return load_config(DEMO_SCENARIO)
    return SimulationConfig.from_yaml(config_path)


def run_headless(
    config_path: Optional[Path] = None,
    trials: int = 5,
    duration_ms: float = 3000,
    seed: int = 0,
    log_path: Optional[Path] = None,
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    export_path: Optional[Path] = None,
    record: bool = False,
) -> List[TrialResult]:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = load_scenario(config_path)
    manager = TrialManager(seed=seed)
    results = asyncio.run(manager.run_batch_trials(config, trials, duration_ms, record=record))

    if log_path:
        with Path(log_path).open("w", newline="") as csv_file:
            writer = csv.writer(csv_file)
            writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)
            for index, result in enumerate(results):
                row_ms = 0.0 if deterministic_log else result.duration
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(index, result, row_ms))
                else:
                    writer.writerow(_format_basic_row(index, result, row_ms))

    if summary_path:
        analysis = analyze_trials(results)
        state_totals: Dict[str, int] = {}
        for result in results:
            for state, count in result.state_distribution.items():
                state_totals[state] = state_totals.get(state, 0) + count
        summary = {
            "config_id": config.id,
            "trials": trials,
            "duration_ms": duration_ms,
            "seed": seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "analysis": {
                "count": analysis.count,
                "average_metrics": {name: getattr(analysis.average_metrics, name) for name in METRIC_NAMES},
                "best_trial": None if analysis.best_trial is None else analysis.best_trial.trial_id,
                "worst_trial": None if analysis.worst_trial is None else analysis.worst_trial.trial_id,
            },
            "metrics": {
                name: _summary_stats([getattr(result.metrics, name) for result in results]) for name in METRIC_NAMES
            },
            "final_count": _summary_stats([float(result.final_count) for result in results]),
            "states": dict(sorted(state_totals.items())),
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    if export_path:
        Path(export_path).write_text(manager.export_results())

    return results


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless swarmlab trial runner")
    parser.add_argument("--config", type=Path, default=None, help="YAML scenario file (default: built-in demo)")
    parser.add_argument("--trials", type=int, default=5)
    parser.add_argument("--duration-ms", type=float, default=3000.0, help="Virtual duration of each trial")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--record", action="store_true", help="Record population frames for every trial")
    parser.add_argument("--log", type=Path, default=None, help="CSV file with one row per trial")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON file with aggregate stats.")
    parser.add_argument("--export", type=Path, default=None, help="Optional JSON export of every trial result.")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (duration_ms is forced to 0.000 so identical seeds match).",
    )
    args = parser.parse_args()
    configure_logging()
    run_headless(
        args.config,
        trials=args.trials,
        duration_ms=args.duration_ms,
        seed=args.seed,
        log_path=args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        export_path=args.export,
        record=args.record,
    )


if __name__ == "__main__":
    main()
