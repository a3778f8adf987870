from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

from pygame.math import Vector2

from ..core.config import WallInteraction, WallType

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.config import StateConfig, Wall, WallBehaviorConfig
    from ..core.rng import DeterministicRng


@dataclass(frozen=True, slots=True)
class WallCollision:
    normal: Vector2  # unit, pointing from the wall toward the agent
    penetration: float


def check_wall_collision(position: Vector2, radius: float, wall: Wall) -> Optional[WallCollision]:
    wall_dx = wall.x2 - wall.x1
    wall_dy = wall.y2 - wall.y1
    length_sq = wall_dx * wall_dx + wall_dy * wall_dy
    if length_sq == 0:
        return None

    rel_x = position.x - wall.x1
    rel_y = position.y - wall.y1
    projection = (rel_x * wall_dx + rel_y * wall_dy) / length_sq
    if projection < 0 or projection > 1:
        return None

    length = math.sqrt(length_sq)
    normal_x = -wall_dy / length
    normal_y = wall_dx / length
    signed_distance = rel_x * normal_x + rel_y * normal_y
    distance = abs(signed_distance)
    effective_radius = radius + wall.thickness / 2
    if distance >= effective_radius:
        return None
    if signed_distance < 0:
        normal_x = -normal_x
        normal_y = -normal_y
    return WallCollision(normal=Vector2(normal_x, normal_y), penetration=effective_radius - distance)


def _push_out(agent: Agent, collision: WallCollision) -> None:
    agent.position.x += collision.normal.x * collision.penetration
    agent.position.y += collision.normal.y * collision.penetration


def bounce(agent: Agent, collision: WallCollision, bounciness: float) -> None:
    _push_out(agent, collision)
    normal = collision.normal
    dot = agent.velocity.x * normal.x + agent.velocity.y * normal.y
    if dot < 0:
        agent.velocity.x -= 2 * dot * normal.x * bounciness
        agent.velocity.y -= 2 * dot * normal.y * bounciness


def slide(agent: Agent, collision: WallCollision, friction: float) -> None:
    _push_out(agent, collision)
    normal = collision.normal
    dot = agent.velocity.x * normal.x + agent.velocity.y * normal.y
    if dot < 0:
        agent.velocity.x -= dot * normal.x
        agent.velocity.y -= dot * normal.y
    agent.velocity *= friction


def _resolve(
    agent: Agent, wall: Wall, collision: WallCollision, behavior: WallBehaviorConfig, rng: DeterministicRng
) -> None:
    kind = behavior.type
    if kind == WallInteraction.BOUNCE:
        bounce(agent, collision, behavior.bounciness)
    elif kind == WallInteraction.STICK:
        if rng.next_float() < behavior.stickiness:
            agent.stuck_to_wall = wall.id
            agent.velocity.update(0.0, 0.0)
        else:
            bounce(agent, collision, behavior.bounciness)
    elif kind == WallInteraction.SLIDE:
        slide(agent, collision, behavior.friction)
    # WRAP and PHASE pass through; edge wrapping happens once per tick in the world.


def handle_wall_collisions(
    agent: Agent, walls: Sequence[Wall], state: StateConfig, rng: DeterministicRng
) -> int:
    """Resolve contacts against every wall in order; returns the number of contacts."""
    contacts = 0
    for wall in walls:
        collision = check_wall_collision(agent.position, state.radius, wall)
        if collision is None:
            continue
        contacts += 1
        _resolve(agent, wall, collision, state.wall_behavior, rng)
        if wall.type == WallType.DEADLY:
            agent.energy = 0.0
    return contacts
