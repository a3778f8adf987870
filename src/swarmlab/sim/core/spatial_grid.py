from __future__ import annotations

import math
from typing import Dict, Generic, List, Protocol, Tuple, TypeVar

from pygame.math import Vector2

DEFAULT_CELL_SIZE = 200.0


class Positioned(Protocol):
    position: Vector2


EntryT = TypeVar("EntryT", bound=Positioned)


class SpatialGrid(Generic[EntryT]):
    """Uniform hash grid over world space.

    Buckets survive `clear()` so a grid rebuilt every tick reuses its storage.
    Queries scan every cell overlapping the bounding square of the query
    circle, so any radius is answered exactly.
    """

    def __init__(self, cell_size: float = DEFAULT_CELL_SIZE) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List[EntryT]] = {}
        self._active_keys: List[Tuple[int, int]] = []
        self._count = 0

    @property
    def cell_size(self) -> float:
        return self._cell_size

    def __len__(self) -> int:
        return self._count

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()
        self._count = 0

    def insert(self, entry: EntryT) -> None:
        key = self._cell_key(entry.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append(entry)
        self._count += 1

    def insert_all(self, entries) -> None:
        for entry in entries:
            self.insert(entry)

    def query_radius(self, entry: EntryT, radius: float) -> List[EntryT]:
        """Every other entry within `radius` of `entry` (inclusive)."""
        return self.query_point(entry.position, radius, exclude=entry)

    def query_point(self, position: Vector2, radius: float, exclude: EntryT | None = None) -> List[EntryT]:
        result: List[EntryT] = []
        if radius < 0:
            return result
        size = self._cell_size
        pos_x = position.x
        pos_y = position.y
        min_cx = int(math.floor((pos_x - radius) / size))
        max_cx = int(math.floor((pos_x + radius) / size))
        min_cy = int(math.floor((pos_y - radius) / size))
        max_cy = int(math.floor((pos_y + radius) / size))
        radius_sq = radius * radius
        cells = self._cells
        append = result.append

        for cx in range(min_cx, max_cx + 1):
            for cy in range(min_cy, max_cy + 1):
                bucket = cells.get((cx, cy))
                if not bucket:
                    continue
                for other in bucket:
                    if other is exclude:
                        continue
                    pos = other.position
                    offset_x = pos.x - pos_x
                    offset_y = pos.y - pos_y
                    if offset_x * offset_x + offset_y * offset_y <= radius_sq:
                        append(other)
        return result

    def occupied_cells(self) -> int:
        return sum(1 for key in self._active_keys if self._cells.get(key))

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(math.floor(position.x / self._cell_size)), int(math.floor(position.y / self._cell_size)))
