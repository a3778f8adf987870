from __future__ import annotations

import math
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ..core.agent import Agent, AgentView
    from ..core.config import StateConfig
    from ..core.rng import DeterministicRng

STICK_VELOCITY_DAMPING = 0.1


def apply_state_interactions(
    agent: Agent,
    neighbors: Sequence[AgentView],
    state: StateConfig,
    rng: DeterministicRng,
) -> None:
    """Per-target-state attraction/repulsion and stick-on-contact."""
    if not state.interactions:
        return
    pos = agent.position
    accel = agent.acceleration
    for view in neighbors:
        neighbor_state = view.state_config
        if neighbor_state is None:
            continue
        interaction = state.interaction_for(view.state)
        if interaction is None:
            continue

        dx = view.position.x - pos.x
        dy = view.position.y - pos.y
        dist = math.hypot(dx, dy)
        if dist == 0:
            continue

        if dist <= interaction.attraction_range and interaction.attraction_force != 0:
            # Softened inverse square; negative force repels.
            magnitude = interaction.attraction_force / (dist * dist + 1.0)
            accel.x += dx / dist * magnitude
            accel.y += dy / dist * magnitude

        combined_radius = state.radius + neighbor_state.radius
        if interaction.stick_on_contact and dist <= combined_radius:
            if rng.next_float() < interaction.stick_strength:
                agent.velocity *= STICK_VELOCITY_DAMPING
                agent.attached_to.add(view.id)
                view.agent.attached_to.add(agent.id)
        else:
            agent.attached_to.discard(view.id)
            view.agent.attached_to.discard(agent.id)
