from __future__ import annotations

from dataclasses import dataclass

import pytest
from pygame.math import Vector2

from swarmlab.sim.core.rng import DeterministicRng
from swarmlab.sim.core.spatial_grid import SpatialGrid


@dataclass(eq=False)
class Point:
    id: int
    position: Vector2


def _scatter(count: int, seed: int, extent: float = 500.0) -> list[Point]:
    rng = DeterministicRng(seed)
    return [Point(i, Vector2(rng.next_range(-extent, extent), rng.next_range(-extent, extent))) for i in range(count)]


def test_neighbor_query_matches_bruteforce():
    grid = SpatialGrid(cell_size=2.5)
    points = [
        Point(0, Vector2(0, 0)),
        Point(1, Vector2(1, 1)),
        Point(2, Vector2(3, 0.5)),
        Point(3, Vector2(6, 6)),
    ]
    grid.insert_all(points)

    center = points[1]
    radius = 3.0
    found = sorted(entry.id for entry in grid.query_radius(center, radius))
    brute = sorted(
        p.id for p in points if p is not center and (p.position - center.position).length_squared() <= radius * radius
    )
    assert found == brute == [0, 2]


@pytest.mark.parametrize("radius", [10.0, 75.0, 199.0, 450.0])
def test_query_radius_matches_bruteforce_for_any_radius(radius):
    points = _scatter(300, seed=11)
    grid = SpatialGrid(cell_size=100.0)
    grid.insert_all(points)

    for query in points[:40]:
        found = {entry.id for entry in grid.query_radius(query, radius)}
        brute = {
            other.id
            for other in points
            if other is not query and (other.position - query.position).length_squared() <= radius * radius
        }
        assert found == brute


def test_radius_is_inclusive_and_self_is_excluded():
    a = Point(0, Vector2(0, 0))
    b = Point(1, Vector2(10, 0))
    grid = SpatialGrid(cell_size=4.0)
    grid.insert_all([a, b])

    assert grid.query_radius(a, 10.0) == [b]
    assert grid.query_radius(a, 9.999) == []
    assert sorted(p.id for p in grid.query_point(Vector2(5, 0), 5.0)) == [0, 1]


def test_clear_reuses_buckets_and_forgets_entries():
    grid = SpatialGrid(cell_size=10.0)
    points = [Point(i, Vector2(i * 3.0, 0.0)) for i in range(10)]
    grid.insert_all(points)
    occupied_before = grid.occupied_cells()
    buckets = dict(grid._cells)

    grid.clear()
    assert len(grid) == 0
    assert grid.occupied_cells() == 0
    assert grid.query_point(Vector2(0, 0), 1000.0) == []

    grid.insert_all(points)
    assert len(grid) == 10
    assert grid.occupied_cells() == occupied_before
    for key, bucket in buckets.items():
        assert grid._cells[key] is bucket


def test_negative_coordinates_land_in_distinct_cells():
    grid = SpatialGrid(cell_size=10.0)
    grid.insert(Point(0, Vector2(-0.5, -0.5)))
    grid.insert(Point(1, Vector2(0.5, 0.5)))
    assert grid.occupied_cells() == 2


def test_rejects_non_positive_cell_size():
    with pytest.raises(ValueError):
        SpatialGrid(cell_size=0)
