from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from ..core.agent import Agent, AgentView
    from ..core.rng import DeterministicRng


def check_transitions(agent: Agent, neighbors: Sequence[AgentView], rng: DeterministicRng) -> Optional[str]:
    """Apply the first transition out of the current state whose condition holds.

    Returns the new state name, or ``None`` when the agent stays put. A
    transition whose target is not a state of the species is taken as a no-op
    and still ends the search.
    """
    for transition in agent.species.transitions:
        if transition.from_state != agent.state:
            continue
        if transition.condition.holds(agent, neighbors, rng):
            if agent.change_state(transition.to_state):
                return transition.to_state
            return None
    return None
