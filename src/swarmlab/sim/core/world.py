from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from pygame.math import Vector2

from ..systems import metrics as metrics_system
from ..systems.update import update_agent
from ..types.metrics import EmergentMetrics
from ..types.snapshot import PopulationSnapshot, SnapshotAgent
from ..utils.math2d import _clamp_value, _wrap_coordinate
from .agent import Agent, AgentView
from .config import SimulationConfig, Wall, WallInteraction
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid

logger = logging.getLogger(__name__)

EDGE_DAMPING = 0.8
_LOG_EVERY_TICKS = 500


class World:
    """Owns one agent population and advances it in discrete ticks."""

    def __init__(self, config: SimulationConfig, rng: DeterministicRng | None = None):
        self._config = config
        self._rng = rng if rng is not None else DeterministicRng(config.seed)
        self._grid: SpatialGrid[AgentView] = SpatialGrid(config.cell_size)
        self._agents: List[Agent] = []
        self._recorded_frames: List[PopulationSnapshot] = []
        self._tick_count = 0
        self._running = False
        self._recording = False
        self._next_id = 0
        self._bootstrap_population()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def agents(self) -> Tuple[Agent, ...]:
        """Detached copies of the population; mutating them does not affect the world."""
        return tuple(agent.copy() for agent in self._agents)

    @property
    def population(self) -> int:
        return len(self._agents)

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def running(self) -> bool:
        return self._running

    @property
    def recording(self) -> bool:
        return self._recording

    @property
    def walls(self) -> Tuple[Wall, ...]:
        return tuple(self._config.walls)

    @property
    def recorded_frames(self) -> Tuple[PopulationSnapshot, ...]:
        return tuple(self._recorded_frames)

    def start(self) -> None:
        self._running = True

    def pause(self) -> None:
        self._running = False

    def reset(self) -> None:
        self._running = False
        self._grid.clear()
        self._rng.reset()
        self._bootstrap_population()
        logger.debug("World %r reset with %d agents", self._config.id, len(self._agents))

    def update_config(self, config: SimulationConfig) -> None:
        self._config = config
        self._grid = SpatialGrid(config.cell_size)
        self.reset()

    def start_recording(self) -> None:
        self._recording = True
        self._recorded_frames.clear()

    def stop_recording(self) -> None:
        self._recording = False

    def spawn(self, position: Vector2 | None = None, species_index: int | None = None) -> Agent | None:
        if len(self._agents) >= self._config.max_count:
            logger.debug("Spawn refused: population at cap %d", self._config.max_count)
            return None
        species_list = self._config.species
        if not species_list:
            return None
        if species_index is not None and 0 <= species_index < len(species_list):
            species = species_list[species_index]
        else:
            species = species_list[self._rng.next_int(len(species_list))]

        if position is None:
            position = Vector2(
                self._rng.next_range(0.0, self._config.world_width),
                self._rng.next_range(0.0, self._config.world_height),
            )
        state = species.initial_state
        if state not in species.states and species.states:
            state = next(iter(species.states))
        agent = Agent(
            id=self._next_id,
            species=species,
            position=Vector2(position),
            state=state,
            energy=species.energy,
        )
        self._next_id += 1
        self._agents.append(agent)
        return agent

    def gravity_vector(self) -> Vector2:
        gravity = self._config.gravity
        if not gravity.enabled:
            return Vector2()
        return Vector2(gravity.direction) * gravity.strength

    def tick(self, dt: float = 1.0) -> None:
        if not self._running:
            return
        config = self._config
        gravity = self.gravity_vector()
        bounds = (config.world_width, config.world_height)
        walls = config.walls

        # Every neighbor list is taken from views captured before any update.
        views = [AgentView.capture(agent) for agent in self._agents]
        self._grid.clear()
        self._grid.insert_all(views)
        neighbor_lists = [self._grid.query_radius(view, view.agent.species.sense_radius) for view in views]

        for agent, neighbors in zip(self._agents, neighbor_lists):
            update_agent(agent, dt, neighbors, bounds, walls, gravity, self._rng)

        for agent in self._agents:
            self._apply_world_edges(agent)

        before = len(self._agents)
        self._agents = [agent for agent in self._agents if agent.alive]
        removed = before - len(self._agents)

        self._tick_count += 1
        if self._recording and self._tick_count % max(1, config.record_interval) == 0:
            self._recorded_frames.append(self.snapshot())

        if removed:
            logger.debug("Tick %d removed %d agents", self._tick_count, removed)
        if self._tick_count % _LOG_EVERY_TICKS == 0:
            logger.debug("Tick %d: agents=%d", self._tick_count, len(self._agents))

    def state_distribution(self) -> Dict[str, int]:
        return metrics_system.state_distribution(self._agents)

    def metrics(self) -> EmergentMetrics:
        return metrics_system.compute_metrics(self._agents, self._config.cell_size)

    def snapshot(self) -> PopulationSnapshot:
        return PopulationSnapshot(
            tick=self._tick_count,
            agents=tuple(
                SnapshotAgent(
                    id=agent.id,
                    x=agent.position.x,
                    y=agent.position.y,
                    state=agent.state,
                    vx=agent.velocity.x,
                    vy=agent.velocity.y,
                )
                for agent in self._agents
            ),
        )

    def _bootstrap_population(self) -> None:
        self._agents.clear()
        self._recorded_frames.clear()
        self._tick_count = 0
        self._next_id = 0
        for _ in range(self._config.initial_count):
            if self.spawn() is None:
                break

    def _apply_world_edges(self, agent: Agent) -> None:
        config = self._config
        width = config.world_width
        height = config.world_height
        state = agent.current_state
        wraps = config.wrap_edges or (state is not None and state.wall_behavior.type == WallInteraction.WRAP)
        if wraps:
            agent.position.update(
                _wrap_coordinate(agent.position.x, width),
                _wrap_coordinate(agent.position.y, height),
            )
        elif not config.walls:
            pos_x, pos_y, vel_x, vel_y = self._reflect(
                agent.position.x, agent.position.y, agent.velocity.x, agent.velocity.y, width, height
            )
            agent.position.update(pos_x, pos_y)
            agent.velocity.update(vel_x, vel_y)

    @staticmethod
    def _reflect(
        x: float, y: float, vx: float, vy: float, width: float, height: float
    ) -> tuple[float, float, float, float]:
        if x < 0 or x > width:
            vx *= -EDGE_DAMPING
            x = _clamp_value(x, 0.0, width)
        if y < 0 or y > height:
            vy *= -EDGE_DAMPING
            y = _clamp_value(y, 0.0, height)
        return x, y, vx, vy
