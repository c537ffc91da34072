"""Subsystem that turns predicted motion into the published vehicle state."""

from __future__ import annotations

import logging
import threading

from .communication import Publisher, Subscriber
from .subsystem import ENVIRONMENT_ENDPOINT, MOTION_ENDPOINT, Subsystem, _retry_attach
from .topics import EnvironmentTopic, MotionTopic

__all__ = ["EnvironmentSystem"]

logger = logging.getLogger(__name__)


class EnvironmentSystem(Subsystem):
    """Publishes the vehicle pose and velocity taken from the motion topic."""

    ENVIRONMENT_ENDPOINT = ENVIRONMENT_ENDPOINT
    MOTION_ENDPOINT = MOTION_ENDPOINT

    def __init__(self, name="Environment", runtime=50, system_code=0):
        self.env_state = EnvironmentTopic()
        self.motion_state = MotionTopic()
        self.motion_lock = threading.Lock()
        self.motion_sub = Subscriber(self.motion_state, self.motion_lock)
        self.env_pub = Publisher(EnvironmentTopic)
        super().__init__(name, runtime, system_code)
        _retry_attach(
            lambda: self.env_pub.bind(self.ENVIRONMENT_ENDPOINT), self.env_pub.is_bound
        )

    def setup(self) -> None:
        """Connect to the motion topic."""
        _retry_attach(
            lambda: self.motion_sub.connect(self.MOTION_ENDPOINT),
            self.motion_sub.is_running,
        )

    def step(self) -> None:
        """Take ``eta`` and ``nu`` from the predicted next state."""
        with self.motion_lock:
            _, x_next = self.motion_state.get()
        with self.state_lock:
            self.env_state.eta = x_next[:6].copy()
            self.env_state.nu = x_next[6:].copy()

    def publish(self) -> None:
        with self.state_lock:
            self.env_pub.publish(self.env_state)

    def halt(self) -> None:
        try:
            self.motion_sub.close()
            self.env_pub.close()
            self.initialized = False
        except Exception as exc:
            logger.error("Halt failed for %s: %s", self.name, exc)