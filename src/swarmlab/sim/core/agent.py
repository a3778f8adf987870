from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, List, Optional, Set

from pygame.math import Vector2

if TYPE_CHECKING:
    from .config import SpeciesConfig, StateConfig


@dataclass(slots=True)
class Agent:
    id: int
    species: "SpeciesConfig"
    position: Vector2
    state: str
    velocity: Vector2 = field(default_factory=Vector2)
    acceleration: Vector2 = field(default_factory=Vector2)
    state_timer: float = 0.0
    energy: float = 100.0
    signals: List[str] = field(default_factory=list)
    attached_to: Set[int] = field(default_factory=set)
    stuck_to_wall: Optional[str] = None

    @property
    def species_id(self) -> str:
        return self.species.id

    @property
    def current_state(self) -> Optional["StateConfig"]:
        return self.species.states.get(self.state)

    @property
    def alive(self) -> bool:
        return self.energy > 0

    def copy(self) -> "Agent":
        return replace(
            self,
            position=Vector2(self.position),
            velocity=Vector2(self.velocity),
            acceleration=Vector2(self.acceleration),
            signals=list(self.signals),
            attached_to=set(self.attached_to),
        )

    def receive_signal(self, signal: str) -> None:
        self.signals.append(signal)

    def change_state(self, new_state: str) -> bool:
        """Switch to `new_state` and restart the state timer; unknown names are ignored."""
        if new_state not in self.species.states:
            return False
        self.state = new_state
        self.state_timer = 0.0
        return True


@dataclass(frozen=True, slots=True)
class AgentView:
    """An agent as it stood at the start of the current tick.

    Neighbor lists hand out views so that no agent observes another agent's
    already-updated position or state within the same tick. ``agent`` is the
    live record, used only to deliver signals and attachments.
    """

    agent: Agent
    position: Vector2
    state: str

    @classmethod
    def capture(cls, agent: Agent) -> "AgentView":
        return cls(agent=agent, position=Vector2(agent.position), state=agent.state)

    @property
    def id(self) -> int:
        return self.agent.id

    @property
    def species(self) -> "SpeciesConfig":
        return self.agent.species

    @property
    def state_config(self) -> Optional["StateConfig"]:
        return self.agent.species.states.get(self.state)
