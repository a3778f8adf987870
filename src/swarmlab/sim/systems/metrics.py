"""Population-level emergent indicators.

All values are recomputed from scratch on each call. Every metric is 0 for an
empty population.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Dict, Sequence

from ..core.agent import Agent
from ..core.spatial_grid import DEFAULT_CELL_SIZE, SpatialGrid
from ..types.metrics import EmergentMetrics

# State timers below this many time units count as a recent state change.
RECENT_CHANGE_THRESHOLD = 10.0


def state_distribution(agents: Sequence[Agent]) -> Dict[str, int]:
    return dict(Counter(agent.state for agent in agents))


def clustering(agents: Sequence[Agent], cell_size: float = DEFAULT_CELL_SIZE) -> float:
    """Mean local clustering coefficient over all agents.

    For each agent, the fraction of pairs among its neighbors that lie within
    that agent's sense radius of each other. Agents with fewer than two
    neighbors contribute 0.
    """
    if len(agents) < 2:
        return 0.0
    grid: SpatialGrid[Agent] = SpatialGrid(cell_size)
    grid.insert_all(agents)

    total = 0.0
    for agent in agents:
        radius = agent.species.sense_radius
        neighbors = grid.query_radius(agent, radius)
        count = len(neighbors)
        if count < 2:
            continue
        radius_sq = radius * radius
        connections = 0
        for i in range(count):
            pos_a = neighbors[i].position
            for j in range(i + 1, count):
                pos_b = neighbors[j].position
                dx = pos_a.x - pos_b.x
                dy = pos_a.y - pos_b.y
                if dx * dx + dy * dy <= radius_sq:
                    connections += 1
        total += connections / (count * (count - 1) / 2.0)
    return total / len(agents)


def movement(agents: Sequence[Agent]) -> float:
    if not agents:
        return 0.0
    return sum(agent.velocity.length() for agent in agents) / len(agents)


def diversity(agents: Sequence[Agent]) -> float:
    """Shannon entropy of the state mix, normalized to [0, 1]."""
    if not agents:
        return 0.0
    counts = Counter(agent.state for agent in agents)
    if len(counts) < 2:
        return 0.0
    total = len(agents)
    entropy = 0.0
    for count in counts.values():
        p = count / total
        entropy -= p * math.log2(p)
    return min(1.0, entropy / math.log2(len(counts)))


def recent_state_changes(agents: Sequence[Agent]) -> int:
    return sum(1 for agent in agents if agent.state_timer < RECENT_CHANGE_THRESHOLD)


def compute_metrics(agents: Sequence[Agent], cell_size: float = DEFAULT_CELL_SIZE) -> EmergentMetrics:
    if not agents:
        return EmergentMetrics()
    cluster = clustering(agents, cell_size)
    spread = diversity(agents)
    changes = recent_state_changes(agents)
    return EmergentMetrics(
        clustering=cluster,
        movement=movement(agents),
        state_changes=float(changes),
        diversity=spread,
        stability=1.0 - changes / len(agents),
        complexity=(spread + cluster) / 2.0,
    )
