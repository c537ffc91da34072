"""Obstacle-avoidance mission that maps sonar detections and plans a path."""

from __future__ import annotations

import logging
import math
import threading
import time

import numpy as np

from .communication import Subscriber
from .geometry import GridMap
from .mission import Mission, _as_state
from .topics import HORIZON, TestSonarTopic

__all__ = ["DEFAULT_ENDPOINT", "convert_obs_to_world", "SonarMission"]

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "tcp://localhost:7778"
OBSTACLE_VALUE = 255

_CONNECT_ATTEMPTS = 20
_CONNECT_DELAY = 0.1
_MIN_DETECTION = float(np.float32(0.1))
_MIN_OBSTACLE_COORD = np.float32(0.2)
_TARGET = (20.0, 16.0)
_MAX_PATH_ERRORS = 5


def convert_obs_to_world(state, degree, detections) -> np.ndarray:
    """World positions (rows of x, y, z) of sonar detections.

    ``degree`` holds bearings in degrees relative to the vehicle heading.
    Detections shorter than 0.1 give a zero row.
    """
    state = _as_state(state)
    degree = np.asarray(degree, dtype=float).ravel()
    detections = np.asarray(detections, dtype=float).ravel()
    if degree.shape != detections.shape:
        raise ValueError("degree and detections must have the same length")

    angles = np.radians(degree)
    local_x = detections * np.cos(angles)
    local_y = detections * np.sin(angles)
    cos_yaw, sin_yaw = math.cos(state[5]), math.sin(state[5])
    world_x = local_x * cos_yaw - local_y * sin_yaw + state[0]
    world_y = local_x * sin_yaw + local_y * cos_yaw + state[1]
    world_z = np.full_like(world_x, state[2])

    result = np.column_stack((world_x, world_y, world_z)).astype(np.float32)
    result[detections < _MIN_DETECTION] = 0.0
    return result


class SonarMission(Mission):
    """Dive, turn to the target, follow a planned path to it and surface."""

    def __init__(self, env_map: GridMap, endpoint: str = DEFAULT_ENDPOINT):
        super().__init__("Sonar Obstacle Avoidance", env_map)
        self.sonar_lock = threading.Lock()
        self.sonar_state = TestSonarTopic()
        self.subscriber = Subscriber(self.sonar_state, self.sonar_lock)
        for _ in range(_CONNECT_ATTEMPTS):
            if self.subscriber.is_running():
                break
            self.subscriber.connect(endpoint)
            time.sleep(_CONNECT_DELAY)
        with self.sonar_lock:
            self.sonar_state.set()
        self.state_list = [
            self._state_0,
            self._state_1,
            self._state_2,
            self._state_3,
            self._state_4,
            self._state_5,
        ]

    def initialize(self) -> None:
        """Set the target, reset the depth goal and enter state 0."""
        self.ref = _TARGET
        self.ref_depth = -1.0
        self.state = 0
        self.ref_path = np.zeros((HORIZON, 12))
        logger.info("initial state, reference point %s", self.ref)

    def update_map(self, current_state) -> None:
        """Mark the current sonar detections as obstacles on the map."""
        with self.sonar_lock:
            degree = self.sonar_state.degree.copy()
            detections = self.sonar_state.detection.copy()
        for x, y, _ in convert_obs_to_world(current_state, degree, detections):
            if x < _MIN_OBSTACLE_COORD and y < _MIN_OBSTACLE_COORD:
                continue
            self.env_map.update_single_point(float(x), float(y), OBSTACLE_VALUE)

    def set_state(self, new_state: int) -> None:
        """Switch to ``new_state``."""
        if self.state != new_state:
            logger.info("state change %d -> %d", self.state, new_state)
            self.state = new_state

    def terminate(self) -> None:
        """Finish the mission; nothing to release beyond ``close``."""

    def report(self) -> None:
        """Log the mission outcome."""
        logger.info("%s finished in state %d", self.name, self.state)

    def close(self) -> None:
        """Stop receiving sonar data."""
        self.subscriber.close()

    def __enter__(self) -> "SonarMission":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _hold(self, x, y, yaw) -> None:
        self.ref_path[:, 0] = x
        self.ref_path[:, 1] = y
        self.ref_path[:, 2] = self.ref_depth
        self.ref_path[:, 5] = yaw

    def _hold_depth(self, state: np.ndarray) -> None:
        depth_error = abs(state[2] - self.ref_depth)
        if depth_error < 1:
            yaw = state[5] + 0.1 * np.arange(HORIZON)
        else:
            yaw = state[5]
        self._hold(state[0], state[1], yaw)

    def _target_yaw(self, state: np.ndarray) -> float:
        return math.atan2(self.ref[1] - state[1], self.ref[0] - state[0])

    def _state_0(self, state: np.ndarray) -> None:
        """Choose the next depth to survey."""
        if self.ref_depth == -1:
            self.ref_depth = 5.0
        elif self.ref_depth < 15:
            self.ref_depth += 5
        else:
            self.ref_depth -= 10
        logger.info("depth adjustment, target depth %s", self.ref_depth)
        self.set_state(1)
        self.env_map.reset_all()
        self._hold_depth(state)

    def _state_1(self, state: np.ndarray) -> None:
        """Wait until the vehicle settles at the target depth."""
        depth_error = abs(state[2] - self.ref_depth)
        if depth_error < 0.2 and state[8] < 0.1:
            self.set_state(2)
        self._hold_depth(state)

    def _state_2(self, state: np.ndarray) -> None:
        """Turn towards the target."""
        desired_yaw = self._target_yaw(state)
        yaw_error = abs(desired_yaw - state[5])
        if yaw_error < 0.1 and state[11] < 0.1:
            self.set_state(3)
        self._hold(state[0], state[1], desired_yaw)

    def _state_3(self, state: np.ndarray) -> None:
        """Follow the planned path to the target."""
        path = self.env_map.find_path(self.ref)
        pos_error = math.hypot(self.ref[0] - state[0], self.ref[1] - state[1])

        if path.length < 2 and pos_error >= 0.2:
            logger.info("path finding failed, attempt %d", self.path_error)
            if self.path_error > _MAX_PATH_ERRORS:
                self.set_state(0)
                return
            self._hold(state[0], state[1], self._target_yaw(state))
            self.path_error += 1
        else:
            trajectory = np.asarray(path.trajectory, dtype=float)
            angles = np.asarray(path.angle, dtype=float)
            if len(trajectory) < HORIZON or len(angles) < HORIZON:
                raise ValueError("planned path is shorter than the horizon")
            self._hold(trajectory[:HORIZON, 0], trajectory[:HORIZON, 1], angles[:HORIZON])
            self.path_error = 0

        if pos_error < 0.2 and state[6] < 0.1 and state[7] < 0.1:
            logger.info("target position reached")
            self.ref_depth = 1.0
            self.set_state(4)

    def _state_4(self, state: np.ndarray) -> None:
        """Rise at the target position."""
        self.ref_depth = -2.0
        self._hold(self.ref[0], self.ref[1], 0.0)
        self.ref_path[:, 8] = -2.0
        if state[2] <= 0.2:
            logger.info("surface reached")
            self.set_state(5)

    def _state_5(self, state: np.ndarray) -> None:
        """Hold at the surface and finish."""
        self.ref_path[:, 0] = state[0]
        self.ref_path[:, 1] = state[1]
        self.ref_path[:, 2] = -1.0
        self.ref_path[:, 5] = 0.0
        self.ref_path[:, 8] = -1.5
        self.terminate()
        self.report()