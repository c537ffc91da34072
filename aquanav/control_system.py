"""Subsystem that listens to thruster commands and sensor signals."""

from __future__ import annotations

import logging
import threading

from .communication import Subscriber
from .subsystem import MOTION_ENDPOINT, SIGNAL_ENDPOINT, Subsystem, _retry_attach
from .topics import MotionTopic, SignalTopic

__all__ = ["ControlSystem"]

logger = logging.getLogger(__name__)


class ControlSystem(Subsystem):
    """Receives motion and signal topics for the low-level controllers."""

    MOTION_ENDPOINT = MOTION_ENDPOINT
    SIGNAL_ENDPOINT = SIGNAL_ENDPOINT

    def __init__(self, name="Control", runtime=100, system_code=3):
        self.motion_state = MotionTopic()
        self.signal_state = SignalTopic()
        self.motion_lock = threading.Lock()
        self.signal_lock = threading.Lock()
        self.motion_sub = Subscriber(self.motion_state, self.motion_lock)
        self.signal_sub = Subscriber(self.signal_state, self.signal_lock)
        super().__init__(name, runtime, system_code)

    def setup(self) -> None:
        """Connect both subscribers and reset the received states."""
        try:
            _retry_attach(
                lambda: self.motion_sub.connect(self.MOTION_ENDPOINT),
                self.motion_sub.is_running,
            )
            _retry_attach(
                lambda: self.signal_sub.connect(self.SIGNAL_ENDPOINT),
                self.signal_sub.is_running,
            )
        except Exception as exc:
            logger.error("%s", exc)
        with self.motion_lock:
            self.motion_state.set()
        with self.signal_lock:
            self.signal_state.set()

    def step(self) -> None:
        """Nothing to compute yet."""

    def publish(self) -> None:
        """Nothing to send yet."""

    def halt(self) -> None:
        self.motion_sub.close()
        self.signal_sub.close()
        self.initialized = False