from __future__ import annotations

from typing import TYPE_CHECKING, Sequence, Tuple

from pygame.math import Vector2

from ..utils.math2d import _clamp_length_xy_f
from .interactions import apply_state_interactions
from .transitions import check_transitions
from .walls import handle_wall_collisions

if TYPE_CHECKING:
    from ..core.agent import Agent, AgentView
    from ..core.config import Wall
    from ..core.rng import DeterministicRng

UNSTICK_PROBABILITY = 0.001


def update_agent(
    agent: Agent,
    dt: float,
    neighbors: Sequence[AgentView],
    world_bounds: Tuple[float, float],
    walls: Sequence[Wall],
    gravity: Vector2,
    rng: DeterministicRng,
) -> None:
    """Advance one agent by one tick against a fixed neighbor list.

    Order: timer, wall-stick check, transitions, gravity, state interactions,
    behaviors, drag/friction/integration/speed clamp, position, walls, and
    finally the signal inbox is drained. World-edge policy is applied by the
    world afterwards, not here.
    """
    agent.state_timer += dt

    if agent.stuck_to_wall is not None:
        if rng.next_float() < UNSTICK_PROBABILITY:
            agent.stuck_to_wall = None
        else:
            agent.signals.clear()
            return

    agent.acceleration.update(0.0, 0.0)

    check_transitions(agent, neighbors, rng)

    state = agent.current_state
    if state is None:
        agent.signals.clear()
        return

    physics = state.physics
    if gravity.x != 0 or gravity.y != 0:
        agent.acceleration.x += gravity.x * physics.mass
        agent.acceleration.y += gravity.y * physics.mass

    apply_state_interactions(agent, neighbors, state, rng)

    for behavior in state.behaviors:
        behavior.apply(agent, neighbors, rng)

    damping = physics.drag * physics.friction
    vel_x = agent.velocity.x * damping + agent.acceleration.x * dt
    vel_y = agent.velocity.y * damping + agent.acceleration.y * dt
    vel_x, vel_y = _clamp_length_xy_f(vel_x, vel_y, agent.species.max_speed)
    agent.velocity.update(vel_x, vel_y)

    agent.position.update(agent.position.x + vel_x * dt, agent.position.y + vel_y * dt)

    if walls:
        handle_wall_collisions(agent, walls, state, rng)

    agent.signals.clear()
