from __future__ import annotations

from pygame.math import Vector2
from pytest import approx

from swarmlab.sim.core.agent import Agent, AgentView
from swarmlab.sim.core.config import load_config
from swarmlab.sim.core.rng import DeterministicRng
from swarmlab.sim.core.world import World
from swarmlab.sim.systems.interactions import apply_state_interactions
from swarmlab.sim.systems.transitions import check_transitions
from swarmlab.sim.systems.update import update_agent


class FixedRng(DeterministicRng):
    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def next_float(self) -> float:
        return self.value


def _two_state_species(transitions, behaviors_a=(), interactions_a=(), physics=None, sense_radius=50):
    physics = physics or {"drag": 1.0, "friction": 1.0}
    config = load_config(
        {
            "id": "two",
            "initial_count": 0,
            "species": [
                {
                    "id": "s",
                    "initial_state": "a",
                    "max_speed": 50,
                    "sense_radius": sense_radius,
                    "states": {
                        "a": {
                            "behaviors": list(behaviors_a),
                            "interactions": list(interactions_a),
                            "physics": physics,
                        },
                        "b": {"physics": physics},
                    },
                    "transitions": list(transitions),
                }
            ],
        }
    )
    return config.species[0]


def _agent(species, agent_id=0, x=100.0, y=100.0, state="a") -> Agent:
    return Agent(id=agent_id, species=species, position=Vector2(x, y), state=state)


def _update(agent, neighbors=(), gravity=Vector2(), rng=None, walls=()):
    update_agent(agent, 1.0, list(neighbors), (800.0, 600.0), walls, gravity, rng or FixedRng(0.5))


def test_idle_friction_scenario_after_one_tick(single_state_config):
    config = single_state_config(behaviors=[{"type": "IDLE", "parameters": {"friction": 0.9}}])
    world = World(config)
    agent = world.spawn(Vector2(400, 300))
    agent.velocity.update(10, 0)

    world.start()
    world.tick()

    assert agent.velocity.x == approx(9.0)
    assert agent.velocity.y == approx(0.0)
    assert agent.position.x == approx(409.0)


def test_idle_agent_reflects_off_world_edge(single_state_config):
    config = single_state_config(behaviors=[{"type": "IDLE", "parameters": {"friction": 0.9}}])
    world = World(config)
    agent = world.spawn(Vector2(795, 300))
    agent.velocity.update(10, 0)

    world.start()
    world.tick()

    assert agent.position.x == approx(800.0)
    assert agent.velocity.x == approx(-9.0 * 0.8)


def test_default_drag_and_friction_compound_with_idle():
    state = {"behaviors": [{"type": "IDLE", "friction": 0.9}]}
    config = load_config({"species": [{"id": "d", "initial_state": "x", "states": {"x": state}}]})
    agent = _agent(config.species[0], state="x")
    agent.velocity.update(4, 0)

    _update(agent)

    assert agent.velocity.x == approx(4 * 0.9 * 0.99 * 0.98)


def test_attraction_strictly_shrinks_separation():
    interaction = {"targetState": "a", "attractionForce": 50.0, "attractionRange": 100.0}
    config = load_config(
        {
            "id": "pair",
            "initial_count": 0,
            "wrap_edges": True,
            "species": [
                {
                    "id": "s",
                    "initial_state": "a",
                    "sense_radius": 100,
                    "states": {"a": {"interactions": [interaction]}},
                }
            ],
        }
    )
    world = World(config)
    first = world.spawn(Vector2(300, 300))
    second = world.spawn(Vector2(340, 300))
    world.start()

    separation = first.position.distance_to(second.position)
    for _ in range(10):
        world.tick()
        current = first.position.distance_to(second.position)
        assert current < separation
        separation = current


def test_random_chance_transition_fires_on_first_evaluation():
    species = _two_state_species(
        [{"from_state": "a", "to_state": "b", "condition": {"type": "RANDOM_CHANCE", "probability": 1.0}}]
    )
    agent = _agent(species)
    agent.state_timer = 250.0

    _update(agent, rng=DeterministicRng(99))

    assert agent.state == "b"
    assert agent.state_timer == 0.0


def test_first_matching_transition_wins():
    species = _two_state_species(
        [
            {"from_state": "a", "to_state": "nowhere", "condition": {"type": "TIMER", "parameters": {"duration": 5}}},
            {"from_state": "a", "to_state": "b", "condition": {"type": "ALWAYS"}},
        ]
    )
    agent = _agent(species)
    assert check_transitions(agent, [], FixedRng(0.5)) == "b"
    assert agent.state == "b"

    # Once the timer condition holds, the unknown target is taken as a no-op and ends the search.
    agent = _agent(species)
    agent.state_timer = 5.0
    assert check_transitions(agent, [], FixedRng(0.5)) is None
    assert agent.state == "a"
    assert agent.state_timer == 5.0


def test_signal_seen_by_transition_then_inbox_is_cleared():
    species = _two_state_species(
        [{"from_state": "a", "to_state": "b", "condition": {"type": "SIGNAL_RECEIVED", "parameters": {"signal": "go"}}}]
    )
    agent = _agent(species)
    agent.receive_signal("go")
    agent.receive_signal("noise")

    _update(agent)

    assert agent.state == "b"
    assert agent.signals == []


def test_gravity_scales_with_mass_and_speed_is_clamped():
    species = _two_state_species([], physics={"drag": 1.0, "friction": 1.0, "mass": 3.0})
    agent = _agent(species)
    _update(agent, gravity=Vector2(0, 2))
    assert agent.velocity.y == approx(6.0)
    assert agent.position.y == approx(106.0)

    agent.velocity.update(100, 0)
    _update(agent)
    assert agent.velocity.length() == approx(50.0)


def test_wall_stuck_agent_stays_frozen_until_released():
    species = _two_state_species([], behaviors_a=[{"type": "MOVE_RANDOM", "parameters": {"strength": 4}}])
    agent = _agent(species)
    agent.stuck_to_wall = "w"
    agent.velocity.update(0, 0)
    agent.receive_signal("ping")

    _update(agent, rng=FixedRng(0.5))
    assert agent.position == Vector2(100, 100)
    assert agent.state_timer == 1.0
    assert agent.signals == []

    _update(agent, rng=FixedRng(0.0))
    assert agent.stuck_to_wall is None


def test_undefined_state_skips_physics_but_drains_inbox():
    species = _two_state_species([])
    agent = _agent(species, state="ghost")
    agent.velocity.update(5, 0)
    agent.receive_signal("ping")

    _update(agent)

    assert agent.position == Vector2(100, 100)
    assert agent.signals == []


def test_stick_on_contact_attaches_both_agents_and_detaches_when_apart():
    species = _two_state_species(
        [],
        interactions_a=[{"target_state": "a", "stick_on_contact": True, "stick_strength": 1.0}],
    )
    state = species.states["a"]
    agent = _agent(species, 0, 100, 100)
    other = _agent(species, 1, 106, 100)
    agent.velocity.update(10, 0)

    apply_state_interactions(agent, [AgentView.capture(other)], state, FixedRng(0.5))
    assert agent.attached_to == {1}
    assert other.attached_to == {0}
    assert agent.velocity.x == approx(1.0)

    other.position.update(150, 100)
    apply_state_interactions(agent, [AgentView.capture(other)], state, FixedRng(0.5))
    assert agent.attached_to == set()
    assert other.attached_to == set()


def test_negative_attraction_repels():
    species = _two_state_species(
        [], interactions_a=[{"target_state": "a", "attraction_force": -10.0, "attraction_range": 20.0}]
    )
    agent = _agent(species, 0, 100, 100)
    other = _agent(species, 1, 103, 100)

    apply_state_interactions(agent, [AgentView.capture(other)], species.states["a"], FixedRng(0.5))

    assert agent.acceleration.x == approx(-10.0 / 10.0)
    assert agent.acceleration.y == approx(0.0)
