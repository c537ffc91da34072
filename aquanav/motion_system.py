"""Subsystem that computes thruster commands with the predictive controller."""

from __future__ import annotations

import logging
import threading

import numpy as np

from .communication import Publisher, Subscriber
from .nlmpc import NonlinearMPC
from .subsystem import (
    ENVIRONMENT_ENDPOINT,
    MISSION_ENDPOINT,
    MOTION_ENDPOINT,
    Subsystem,
    _retry_attach,
)
from .topics import HORIZON, EnvironmentTopic, MissionTopic, MotionTopic

__all__ = ["DEFAULT_CONFIG_PATH", "MotionSystem"]

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"
_MPC_HORIZON = 40
_MPC_DT = 0.1


class MotionSystem(Subsystem):
    """Solves the controller each cycle and publishes the motion topic."""

    MOTION_ENDPOINT = MOTION_ENDPOINT
    MISSION_ENDPOINT = MISSION_ENDPOINT
    ENVIRONMENT_ENDPOINT = ENVIRONMENT_ENDPOINT

    def __init__(
        self,
        name="Motion",
        runtime=200,
        system_code=2,
        config_path=DEFAULT_CONFIG_PATH,
    ):
        self.mpc = NonlinearMPC(config_path, _MPC_HORIZON, _MPC_DT)
        self.motion_state = MotionTopic()
        self.mission_state = MissionTopic()
        self.env_state = EnvironmentTopic()
        self.mission_lock = threading.Lock()
        self.env_lock = threading.Lock()
        self.mission_sub = Subscriber(self.mission_state, self.mission_lock)
        self.env_sub = Subscriber(self.env_state, self.env_lock)
        self.motion_pub = Publisher(MotionTopic)
        self.x0 = np.zeros(12)
        self.x_ref = np.zeros((12, HORIZON))
        super().__init__(name, runtime, system_code)
        _retry_attach(
            lambda: self.motion_pub.bind(self.MOTION_ENDPOINT), self.motion_pub.is_bound
        )

    def setup(self) -> None:
        """Connect the inputs and build the optimisation problem."""
        _retry_attach(
            lambda: self.mission_sub.connect(self.MISSION_ENDPOINT),
            self.mission_sub.is_running,
        )
        _retry_attach(
            lambda: self.env_sub.connect(self.ENVIRONMENT_ENDPOINT),
            self.env_sub.is_running,
        )
        self.mpc.initialization()

    def step(self) -> None:
        """Solve for the next thruster command; failures are logged."""
        try:
            with self.env_lock:
                self.x0 = self.env_state.get_array()
            with self.mission_lock:
                self.x_ref = self.mission_state.as_matrix()
            propeller, x_opt = self.mpc.solve(self.x0, self.x_ref)
            x_next = x_opt[:, 1]
            with self.state_lock:
                self.motion_state.set(propeller, x_next)
        except Exception as exc:
            logger.error("MotionSystem error: %s", exc)

    def publish(self) -> None:
        with self.state_lock:
            self.motion_pub.publish(self.motion_state)

    def halt(self) -> None:
        self.motion_pub.close()
        self.mission_sub.close()
        self.env_sub.close()
        self.initialized = False