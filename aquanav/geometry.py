"""Path data, the grid-map interface and planar geometry helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Protocol

__all__ = [
    "Path",
    "GridMap",
    "move_to",
    "distance",
    "heuristic",
    "angle_between_points",
    "create_path",
    "draw_direction",
]


@dataclass
class Path:
    """A planned path: grid cells, sampled world trajectory and headings."""

    points: list[tuple[int, int]] = field(default_factory=list)
    trajectory: list[tuple[float, float]] = field(default_factory=list)
    angle: list[float] = field(default_factory=list)

    @property
    def length(self) -> int:
        """Number of grid cells on the path."""
        return len(self.points)


class GridMap(Protocol):
    """Occupancy grid centred on the vehicle, as used by missions."""

    width: int
    height: int
    r_m: float
    world_position: tuple[float, float, float]

    def slide(self, dx: float, dy: float) -> None:
        """Recentre the grid on the world position ``(dx, dy)``."""

    def update_single_point(self, world_x: float, world_y: float, value: int) -> None:
        """Mark the cell under a world point with ``value``."""

    def reset_all(self) -> None:
        """Clear the grid and the planner state."""

    def find_path(self, ref: tuple[float, float]) -> Path:
        """Plan a path from the grid centre to the world point ``ref``."""


def move_to(x1: float, y1: float, x2: float, y2: float, factor: float) -> tuple[float, float]:
    """The point ``factor`` units from ``(x1, y1)`` towards ``(x2, y2)``."""
    dx = x2 - x1
    dy = y2 - y1
    length = math.hypot(dx, dy)
    if length == 0:
        raise ValueError("cannot move towards the starting point itself")
    return x1 + dx / length * factor, y1 + dy / length * factor


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def heuristic(a: tuple[int, int], b: tuple[int, int]) -> float:
    """Euclidean distance between two grid cells."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def angle_between_points(from_x: float, from_y: float, to_x: float, to_y: float) -> float:
    """Heading in radians from one point to another."""
    return math.atan2(to_y - from_y, to_x - from_x)


def create_path(m: int, k: float, spacing: float, env_map: GridMap, path: Path) -> tuple[float, float]:
    """World point at sample ``k`` along the first ``m`` cells of ``path``.

    The cell position ``k * spacing`` is interpolated linearly between
    neighbouring cells and clamped to the last of the ``m`` cells.
    """
    if m < 1:
        raise ValueError("path must contain at least one point")
    index = k * spacing
    if index < 0:
        raise ValueError("path position must not be negative")
    idx1 = math.floor(index)
    idx2 = math.ceil(index)
    frac = index - idx1
    idx1 = min(idx1, m - 1)
    idx2 = min(idx2, m - 1)

    x1, y1 = path.points[idx1]
    x2, y2 = path.points[idx2]
    grid_x = x1 + frac * (x2 - x1)
    grid_y = y1 + frac * (y2 - y1)

    world_x = (grid_x - env_map.width / 2.0) * env_map.r_m + env_map.world_position[0]
    world_y = (grid_y - env_map.height / 2.0) * env_map.r_m + env_map.world_position[1]
    return world_x, world_y


def draw_direction(
    env_map: GridMap,
    x: float,
    y: float,
    angle: float,
    length: float = 1.0,
    value: float = 200.0,
) -> None:
    """Mark a line of ``length`` from ``(x, y)`` along ``angle`` on the map."""
    end_x = x + length * math.cos(angle)
    end_y = y + length * math.sin(angle)
    steps = int(max(abs(end_x - x), abs(end_y - y)) * 10)
    if steps == 0:
        env_map.update_single_point(x, y, value)
        return
    for i in range(steps + 1):
        t = i / steps
        env_map.update_single_point(x + t * (end_x - x), y + t * (end_y - y), value)