from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True, slots=True)
class SnapshotAgent:
    id: int
    x: float
    y: float
    state: str
    vx: float
    vy: float


@dataclass(frozen=True, slots=True)
class PopulationSnapshot:
    tick: int
    agents: Tuple[SnapshotAgent, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "agents": [
                {"id": a.id, "x": a.x, "y": a.y, "state": a.state, "vx": a.vx, "vy": a.vy} for a in self.agents
            ],
        }

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "PopulationSnapshot":
        return PopulationSnapshot(
            tick=int(raw["tick"]),
            agents=tuple(
                SnapshotAgent(
                    id=int(item["id"]),
                    x=float(item["x"]),
                    y=float(item["y"]),
                    state=str(item["state"]),
                    vx=float(item.get("vx", 0.0)),
                    vy=float(item.get("vy", 0.0)),
                )
                for item in raw.get("agents", [])
            ),
        )
