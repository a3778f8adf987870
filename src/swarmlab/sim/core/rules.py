"""Behavior and transition-condition variants.

Each variant is a frozen dataclass carrying its own typed parameters. Behaviors
expose ``apply(agent, neighbors, rng)`` and only touch the agent's velocity
(or a neighbor's signal inbox); conditions expose
``holds(agent, neighbors, rng)``.

Raw rule records come from external configuration as
``{"type": "MOVE_TOWARDS", "parameters": {"strength": 0.5}}``. Parameter values
that cannot be converted fall back to the variant's default.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from .agent import Agent, AgentView
    from .rng import DeterministicRng

logger = logging.getLogger(__name__)

_LESS_OPERATORS = frozenset({"less", "lt", "<", "below"})


class Behavior(Protocol):
    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None: ...


class Condition(Protocol):
    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool: ...


def _coerce(value: Any, cast: Callable[[Any], Any], default: Any) -> Any:
    if value is None:
        return default
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _param(params: Mapping[str, Any], keys: Iterable[str], default: Any, cast: Callable[[Any], Any]) -> Any:
    for key in keys:
        if key in params:
            return _coerce(params[key], cast, default)
    return default


def _optional_state(params: Mapping[str, Any]) -> Optional[str]:
    value = _param(params, ("targetState", "target_state"), "", str)
    return value or None


def _matching(neighbors: Sequence["AgentView"], state: Optional[str]) -> List["AgentView"]:
    if not state:
        return list(neighbors)
    return [view for view in neighbors if view.state == state]


# -- behaviors ---------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MoveRandom:
    strength: float = 1.0

    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None:
        agent.velocity.x += (rng.next_float() - 0.5) * self.strength
        agent.velocity.y += (rng.next_float() - 0.5) * self.strength


@dataclass(frozen=True, slots=True)
class MoveTowards:
    """Steer toward the centroid of matching neighbors."""

    strength: float = 1.0
    target_state: Optional[str] = None

    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None:
        targets = _matching(neighbors, self.target_state)
        if not targets:
            return
        count = len(targets)
        avg_x = sum(view.position.x for view in targets) / count
        avg_y = sum(view.position.y for view in targets) / count
        dx = avg_x - agent.position.x
        dy = avg_y - agent.position.y
        dist = math.hypot(dx, dy)
        if dist > 0:
            agent.velocity.x += dx / dist * self.strength
            agent.velocity.y += dy / dist * self.strength


@dataclass(frozen=True, slots=True)
class MoveAway:
    """Inverse-square push away from each matching neighbor inside the sense radius."""

    strength: float = 1.0
    target_state: Optional[str] = None

    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None:
        sense_radius = agent.species.sense_radius
        pos = agent.position
        for view in _matching(neighbors, self.target_state):
            dx = pos.x - view.position.x
            dy = pos.y - view.position.y
            dist = math.hypot(dx, dy)
            if 0 < dist < sense_radius:
                force = self.strength / (dist * dist)
                agent.velocity.x += dx / dist * force
                agent.velocity.y += dy / dist * force


@dataclass(frozen=True, slots=True)
class SeekResource:
    """Steer toward the nearest neighbor in a different state."""

    strength: float = 1.0

    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None:
        pos = agent.position
        nearest: Optional["AgentView"] = None
        best_sq = math.inf
        for view in neighbors:
            if view.state == agent.state:
                continue
            dist_sq = (view.position.x - pos.x) ** 2 + (view.position.y - pos.y) ** 2
            if dist_sq < best_sq:
                best_sq = dist_sq
                nearest = view
        if nearest is None:
            return
        dx = nearest.position.x - pos.x
        dy = nearest.position.y - pos.y
        dist = math.hypot(dx, dy)
        if dist > 0:
            agent.velocity.x += dx / dist * self.strength
            agent.velocity.y += dy / dist * self.strength


@dataclass(frozen=True, slots=True)
class EmitSignal:
    signal: str = "default"
    range: Optional[float] = None  # None means the emitter's sense radius

    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None:
        reach = agent.species.sense_radius if self.range is None else self.range
        reach_sq = reach * reach
        pos = agent.position
        for view in neighbors:
            dx = view.position.x - pos.x
            dy = view.position.y - pos.y
            if dx * dx + dy * dy <= reach_sq:
                view.agent.receive_signal(self.signal)


@dataclass(frozen=True, slots=True)
class Idle:
    friction: float = 0.95

    def apply(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> None:
        agent.velocity *= self.friction


# -- conditions --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Timer:
    duration: float = 1000.0

    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        return agent.state_timer >= self.duration


@dataclass(frozen=True, slots=True)
class NeighborCount:
    min: int = 0
    max: Optional[int] = None

    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        count = len(neighbors)
        if count < self.min:
            return False
        return self.max is None or count <= self.max


@dataclass(frozen=True, slots=True)
class NeighborState:
    state: str = ""
    count: int = 1

    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        matching = sum(1 for view in neighbors if view.state == self.state)
        return matching >= self.count


@dataclass(frozen=True, slots=True)
class EnergyLevel:
    threshold: float = 50.0
    operator: str = "less"

    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        if self.operator.lower() in _LESS_OPERATORS:
            return agent.energy < self.threshold
        return agent.energy > self.threshold


@dataclass(frozen=True, slots=True)
class SignalReceived:
    signal: str = ""

    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        return self.signal in agent.signals


@dataclass(frozen=True, slots=True)
class RandomChance:
    probability: float = 0.01

    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        return rng.next_float() < self.probability


@dataclass(frozen=True, slots=True)
class Always:
    def holds(self, agent: "Agent", neighbors: Sequence["AgentView"], rng: "DeterministicRng") -> bool:
        return True


# -- parsing -----------------------------------------------------------------


def _normalize_type(value: Any) -> str:
    return str(value).replace("_", "").replace("-", "").replace(" ", "").lower()


def _parse_max(params: Mapping[str, Any]) -> Optional[int]:
    return _param(params, ("max",), None, int)


_BEHAVIOR_PARSERS: Dict[str, Callable[[Mapping[str, Any]], Behavior]] = {
    "moverandom": lambda p: MoveRandom(strength=_param(p, ("strength",), 1.0, float)),
    "movetowards": lambda p: MoveTowards(
        strength=_param(p, ("strength",), 1.0, float), target_state=_optional_state(p)
    ),
    "moveaway": lambda p: MoveAway(strength=_param(p, ("strength",), 1.0, float), target_state=_optional_state(p)),
    "seekresource": lambda p: SeekResource(strength=_param(p, ("strength",), 1.0, float)),
    "emitsignal": lambda p: EmitSignal(
        signal=_param(p, ("signal",), "default", str), range=_param(p, ("range",), None, float)
    ),
    "idle": lambda p: Idle(friction=_param(p, ("friction",), 0.95, float)),
}

_CONDITION_PARSERS: Dict[str, Callable[[Mapping[str, Any]], Condition]] = {
    "timer": lambda p: Timer(duration=_param(p, ("duration",), 1000.0, float)),
    "neighborcount": lambda p: NeighborCount(min=_param(p, ("min",), 0, int), max=_parse_max(p)),
    "neighborstate": lambda p: NeighborState(
        state=_param(p, ("state",), "", str), count=_param(p, ("count",), 1, int)
    ),
    "energylevel": lambda p: EnergyLevel(
        threshold=_param(p, ("threshold",), 50.0, float), operator=_param(p, ("operator",), "less", str)
    ),
    "signalreceived": lambda p: SignalReceived(signal=_param(p, ("signal",), "", str)),
    "randomchance": lambda p: RandomChance(probability=_param(p, ("probability",), 0.01, float)),
    "always": lambda p: Always(),
}


def _split_rule(raw: Mapping[str, Any]) -> tuple[str, Mapping[str, Any]]:
    params = raw.get("parameters", raw.get("params"))
    if not isinstance(params, Mapping):
        params = {key: value for key, value in raw.items() if key != "type"}
    return _normalize_type(raw.get("type", "")), params


def parse_behavior(raw: Any) -> Optional[Behavior]:
    """Build a behavior from a raw record; unknown types yield ``None``."""
    if hasattr(raw, "apply"):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring behavior that is not a mapping: %r", raw)
        return None
    kind, params = _split_rule(raw)
    parser = _BEHAVIOR_PARSERS.get(kind)
    if parser is None:
        logger.warning("Ignoring unsupported behavior type %r", raw.get("type"))
        return None
    return parser(params)


def parse_condition(raw: Any) -> Optional[Condition]:
    """Build a condition from a raw record; unknown types yield ``None``."""
    if hasattr(raw, "holds"):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring condition that is not a mapping: %r", raw)
        return None
    kind, params = _split_rule(raw)
    parser = _CONDITION_PARSERS.get(kind)
    if parser is None:
        logger.warning("Ignoring unsupported condition type %r", raw.get("type"))
        return None
    return parser(params)


__all__ = [
    "Always",
    "Behavior",
    "Condition",
    "EmitSignal",
    "EnergyLevel",
    "Idle",
    "MoveAway",
    "MoveRandom",
    "MoveTowards",
    "NeighborCount",
    "NeighborState",
    "RandomChance",
    "SeekResource",
    "SignalReceived",
    "Timer",
    "parse_behavior",
    "parse_condition",
]
