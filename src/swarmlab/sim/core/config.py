from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .rules import Behavior, Condition, parse_behavior, parse_condition
from .spatial_grid import DEFAULT_CELL_SIZE

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised by strict configuration loading when references do not resolve."""


class WallInteraction(str, Enum):
    BOUNCE = "bounce"
    STICK = "stick"
    WRAP = "wrap"
    SLIDE = "slide"
    PHASE = "phase"


class WallType(str, Enum):
    SOLID = "solid"
    ONE_WAY = "one_way"
    STICKY = "sticky"
    DEADLY = "deadly"


@dataclass(frozen=True)
class PhysicsConfig:
    mass: float = 1.0
    friction: float = 0.98
    elasticity: float = 0.5
    drag: float = 0.99
    stickiness: float = 0.0
    magnetism: float = 0.0


@dataclass(frozen=True)
class StateInteraction:
    target_state: str = ""
    attraction_force: float = 0.0
    attraction_range: float = 0.0
    stick_on_contact: bool = False
    stick_strength: float = 0.0


@dataclass(frozen=True)
class WallBehaviorConfig:
    type: WallInteraction = WallInteraction.BOUNCE
    bounciness: float = 0.8
    friction: float = 0.95
    stickiness: float = 0.0


@dataclass(frozen=True)
class StateConfig:
    name: str = ""
    color: str = "#FFFFFF"
    radius: float = 5.0
    behaviors: Tuple[Behavior, ...] = ()
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    interactions: Tuple[StateInteraction, ...] = ()
    wall_behavior: WallBehaviorConfig = field(default_factory=WallBehaviorConfig)

    def interaction_for(self, state_name: str) -> Optional[StateInteraction]:
        for interaction in self.interactions:
            if interaction.target_state == state_name:
                return interaction
        return None


@dataclass(frozen=True)
class Transition:
    from_state: str
    to_state: str
    condition: Condition


@dataclass(frozen=True)
class SpeciesConfig:
    id: str = ""
    name: str = ""
    description: str = ""
    states: Mapping[str, StateConfig] = field(default_factory=dict)
    transitions: Tuple[Transition, ...] = ()
    initial_state: str = ""
    max_speed: float = 5.0
    sense_radius: float = 50.0
    energy: float = 100.0

    def transitions_from(self, state_name: str) -> List[Transition]:
        return [transition for transition in self.transitions if transition.from_state == state_name]


@dataclass(frozen=True)
class Wall:
    id: str = ""
    type: WallType = WallType.SOLID
    x1: float = 0.0
    y1: float = 0.0
    x2: float = 0.0
    y2: float = 0.0
    thickness: float = 10.0
    color: Optional[str] = None


@dataclass(frozen=True)
class GravityConfig:
    enabled: bool = False
    direction: Tuple[float, float] = (0.0, 0.0)
    strength: float = 1.0


@dataclass(frozen=True)
class SimulationConfig:
    id: str = ""
    name: str = ""
    description: str = ""
    species: Tuple[SpeciesConfig, ...] = ()
    world_width: float = 800.0
    world_height: float = 600.0
    initial_count: int = 50
    max_count: int = 200
    tick_rate: int = 60
    wrap_edges: bool = False
    gravity: GravityConfig = field(default_factory=GravityConfig)
    walls: Tuple[Wall, ...] = ()
    cell_size: float = DEFAULT_CELL_SIZE
    record_interval: int = 5
    seed: int = 42

    @staticmethod
    def from_yaml(path: Path, strict: bool = False) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text())
        return load_config(data or {}, strict=strict)


# Keys accepted from the external configuration producer, in lookup order.
_ALIASES: Dict[str, Tuple[str, ...]] = {
    "species": ("species", "particle_configs", "particleConfigs"),
    "world_width": ("world_width", "worldWidth"),
    "world_height": ("world_height", "worldHeight"),
    "initial_count": ("initial_count", "initialParticleCount", "initial_particle_count"),
    "max_count": ("max_count", "maxParticles", "max_particles"),
    "tick_rate": ("tick_rate", "tickRate"),
    "wrap_edges": ("wrap_edges", "wrapEdges"),
    "cell_size": ("cell_size", "cellSize"),
    "record_interval": ("record_interval", "recordInterval"),
    "initial_state": ("initial_state", "initialState"),
    "max_speed": ("max_speed", "maxSpeed"),
    "sense_radius": ("sense_radius", "senseRadius"),
    "wall_behavior": ("wall_behavior", "wallBehavior"),
    "from_state": ("from_state", "fromState"),
    "to_state": ("to_state", "toState"),
    "target_state": ("target_state", "targetState"),
    "attraction_force": ("attraction_force", "attractionForce"),
    "attraction_range": ("attraction_range", "attractionRange"),
    "stick_on_contact": ("stick_on_contact", "stickOnContact"),
    "stick_strength": ("stick_strength", "stickStrength"),
}


def _get(raw: Mapping[str, Any], name: str, default: Any = None) -> Any:
    for key in _ALIASES.get(name, (name,)):
        if key in raw:
            return raw[key]
    return default


def _float(raw: Mapping[str, Any], name: str, default: float) -> float:
    value = _get(raw, name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _enum(enum_cls, value: Any, default):
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    for member in enum_cls:
        if text in (member.value, member.name.lower()):
            return member
    return default


def _pair(value: Any, default: Tuple[float, float]) -> Tuple[float, float]:
    if isinstance(value, Mapping):
        return (float(value.get("x", value.get("X", 0.0))), float(value.get("y", value.get("Y", 0.0))))
    if isinstance(value, (tuple, list)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    return default


def _load_physics(raw: Mapping[str, Any]) -> PhysicsConfig:
    default = PhysicsConfig()
    return PhysicsConfig(
        mass=_float(raw, "mass", default.mass),
        friction=_float(raw, "friction", default.friction),
        elasticity=_float(raw, "elasticity", default.elasticity),
        drag=_float(raw, "drag", default.drag),
        stickiness=_float(raw, "stickiness", default.stickiness),
        magnetism=_float(raw, "magnetism", default.magnetism),
    )


def _load_interaction(raw: Mapping[str, Any]) -> StateInteraction:
    return StateInteraction(
        target_state=str(_get(raw, "target_state", "")),
        attraction_force=_float(raw, "attraction_force", 0.0),
        attraction_range=_float(raw, "attraction_range", 0.0),
        stick_on_contact=bool(_get(raw, "stick_on_contact", False)),
        stick_strength=_float(raw, "stick_strength", 0.0),
    )


def _load_wall_behavior(raw: Mapping[str, Any]) -> WallBehaviorConfig:
    default = WallBehaviorConfig()
    return WallBehaviorConfig(
        type=_enum(WallInteraction, raw.get("type"), default.type),
        bounciness=_float(raw, "bounciness", default.bounciness),
        friction=_float(raw, "friction", default.friction),
        stickiness=_float(raw, "stickiness", default.stickiness),
    )


def _load_state(name: str, raw: Mapping[str, Any]) -> StateConfig:
    behaviors = [parse_behavior(item) for item in raw.get("behaviors", [])]
    return StateConfig(
        name=str(raw.get("name") or name),
        color=str(raw.get("color", "#FFFFFF")),
        radius=_float(raw, "radius", 5.0),
        behaviors=tuple(behavior for behavior in behaviors if behavior is not None),
        physics=_load_physics(raw.get("physics") or {}),
        interactions=tuple(_load_interaction(item) for item in raw.get("interactions", [])),
        wall_behavior=_load_wall_behavior(_get(raw, "wall_behavior") or {}),
    )


def _load_transition(raw: Mapping[str, Any]) -> Optional[Transition]:
    condition = parse_condition(raw.get("condition") or {})
    if condition is None:
        return None
    return Transition(
        from_state=str(_get(raw, "from_state", "")),
        to_state=str(_get(raw, "to_state", "")),
        condition=condition,
    )


def _load_species(raw: Mapping[str, Any]) -> SpeciesConfig:
    default = SpeciesConfig()
    states_raw = raw.get("states") or {}
    if isinstance(states_raw, Mapping):
        states = {str(name): _load_state(str(name), state) for name, state in states_raw.items()}
    else:
        loaded = [_load_state(str(state.get("name", "")), state) for state in states_raw]
        states = {state.name: state for state in loaded}
    transitions = [_load_transition(item) for item in raw.get("transitions", [])]
    return SpeciesConfig(
        id=str(raw.get("id", "")),
        name=str(raw.get("name", "")),
        description=str(raw.get("description", "")),
        states=states,
        transitions=tuple(transition for transition in transitions if transition is not None),
        initial_state=str(_get(raw, "initial_state", "")),
        max_speed=_float(raw, "max_speed", default.max_speed),
        sense_radius=_float(raw, "sense_radius", default.sense_radius),
        energy=_float(raw, "energy", default.energy),
    )


def _load_wall(index: int, raw: Mapping[str, Any]) -> Wall:
    return Wall(
        id=str(raw.get("id") or f"wall_{index}"),
        type=_enum(WallType, raw.get("type"), WallType.SOLID),
        x1=_float(raw, "x1", 0.0),
        y1=_float(raw, "y1", 0.0),
        x2=_float(raw, "x2", 0.0),
        y2=_float(raw, "y2", 0.0),
        thickness=_float(raw, "thickness", 10.0),
        color=raw.get("color"),
    )


def _load_gravity(raw: Mapping[str, Any]) -> GravityConfig:
    return GravityConfig(
        enabled=bool(raw.get("enabled", False)),
        direction=_pair(raw.get("direction"), (0.0, 0.0)),
        strength=_float(raw, "strength", 1.0),
    )


def load_config(raw: Mapping[str, Any], strict: bool = False) -> SimulationConfig:
    default = SimulationConfig()
    config = SimulationConfig(
        id=str(raw.get("id", "")),
        name=str(raw.get("name", "")),
        description=str(raw.get("description", "")),
        species=tuple(_load_species(item) for item in _get(raw, "species", [])),
        world_width=_float(raw, "world_width", default.world_width),
        world_height=_float(raw, "world_height", default.world_height),
        initial_count=int(_get(raw, "initial_count", default.initial_count)),
        max_count=int(_get(raw, "max_count", default.max_count)),
        tick_rate=int(_get(raw, "tick_rate", default.tick_rate)),
        wrap_edges=bool(_get(raw, "wrap_edges", default.wrap_edges)),
        gravity=_load_gravity(raw.get("gravity") or {}),
        walls=tuple(_load_wall(index, item) for index, item in enumerate(raw.get("walls", []))),
        cell_size=_float(raw, "cell_size", default.cell_size),
        record_interval=int(_get(raw, "record_interval", default.record_interval)),
        seed=int(raw.get("seed", default.seed)),
    )
    problems = validate_config(config)
    if problems and strict:
        raise ConfigError("; ".join(problems))
    for problem in problems:
        logger.warning("Configuration %r: %s", config.id or config.name, problem)
    return config


def validate_config(config: SimulationConfig) -> List[str]:
    """Referential problems in ``config``; an empty list means every name resolves."""
    problems: List[str] = []
    if not config.species:
        problems.append("no species defined")
    all_states = {name for species in config.species for name in species.states}
    for species in config.species:
        label = species.id or species.name or "<unnamed>"
        if not species.states:
            problems.append(f"species {label} defines no states")
            continue
        if species.initial_state not in species.states:
            problems.append(f"species {label} initial state {species.initial_state!r} is not defined")
        for transition in species.transitions:
            for end in (transition.from_state, transition.to_state):
                if end not in species.states:
                    problems.append(f"species {label} transition references unknown state {end!r}")
        for state in species.states.values():
            for interaction in state.interactions:
                if interaction.target_state not in all_states:
                    problems.append(
                        f"species {label} state {state.name!r} interacts with unknown state "
                        f"{interaction.target_state!r}"
                    )
    if config.max_count < 0 or config.initial_count < 0:
        problems.append("population counts must be non-negative")
    return problems

