"""Base class for missions driven by a per-state handler table."""

from __future__ import annotations

from typing import Callable

import numpy as np

from .geometry import GridMap
from .sensors import SensorType
from .topics import HORIZON

__all__ = ["Mission"]

StateHandler = Callable[[np.ndarray], None]


def _as_state(current_state) -> np.ndarray:
    state = np.asarray(current_state, dtype=float).ravel()
    if state.size != 12:
        raise ValueError(f"state must have 12 elements, got {state.size}")
    return state


class Mission:
    """A mission produces a reference trajectory from the vehicle state.

    ``state_list`` holds one handler per mission state; ``state`` selects
    the handler run by ``step`` (negative means none).
    """

    def __init__(self, name: str, env_map: GridMap):
        self.name = name
        self.env_map = env_map
        self.sensors: list[SensorType] = []
        self.state_list: list[StateHandler] = []
        self.mission_id = 0
        self.ref: tuple[float, float] = (0.0, 0.0)
        self.ref_depth = 0.0
        self.ref_path = np.zeros((HORIZON, 12))
        self.state = -1
        self.path_error = 0
        self.finished = False
        self.last_state: np.ndarray | None = None

    def initialize(self) -> None:
        """Clear the reference path and error count before the first step."""
        self.ref_path[:] = 0.0
        self.path_error = 0
        self.finished = False

    def step(self, current_state) -> np.ndarray:
        """Advance the mission and return a copy of the reference path."""
        state = _as_state(current_state)
        self.env_map.slide(state[0], state[1])
        self.update_map(state)
        if 0 <= self.state < len(self.state_list):
            self.state_list[self.state](state)
        return self.ref_path.copy()

    def update_map(self, current_state) -> None:
        """Record the latest vehicle state; the base has no sensors to map."""
        self.last_state = _as_state(current_state)

    def terminate(self) -> None:
        """Mark the mission as finished."""
        self.finished = True

    def report(self) -> dict:
        """Return a summary of the mission's progress."""
        return {
            "name": self.name,
            "state": self.state,
            "path_error": self.path_error,
            "finished": self.finished,
        }