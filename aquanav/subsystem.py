"""Periodic worker base shared by the vehicle subsystems."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable

from .topics import StateTopic

__all__ = [
    "ENVIRONMENT_ENDPOINT",
    "MISSION_ENDPOINT",
    "SIGNAL_ENDPOINT",
    "MOTION_ENDPOINT",
    "Subsystem",
]

logger = logging.getLogger(__name__)

ENVIRONMENT_ENDPOINT = "tcp://localhost:5560"
MISSION_ENDPOINT = "tcp://localhost:5561"
SIGNAL_ENDPOINT = "tcp://localhost:5562"
MOTION_ENDPOINT = "tcp://localhost:5563"

_CONNECT_ATTEMPTS = 20
_CONNECT_DELAY = 0.1


def _retry_attach(
    attach: Callable[[], None],
    ready: Callable[[], bool],
    attempts: int = _CONNECT_ATTEMPTS,
    delay: float = _CONNECT_DELAY,
) -> None:
    """Call ``attach`` until ``ready`` holds, at most ``attempts`` times."""
    for _ in range(attempts):
        if ready():
            return
        attach()
        time.sleep(delay)


class Subsystem(ABC):
    """A subsystem that runs ``step`` and ``publish`` every ``runtime`` ms.

    A worker thread starts with the object and waits until ``start`` is
    called; ``stop`` pauses it and ``shutdown`` ends it. If ``step`` or
    ``publish`` raises, the error is logged and the worker ends.
    """

    def __init__(self, name, runtime, system_code):
        if runtime < 0:
            raise ValueError("runtime must not be negative")
        self.name = name
        self.runtime = int(runtime)
        self.system_code = system_code & 0b111
        self.system_state = StateTopic()
        self.initialized = False
        self.state_lock = threading.RLock()
        self._condition = threading.Condition()
        self._run_requested = False
        self._shutdown_requested = False
        self._worker = threading.Thread(
            target=self._worker_loop, name=f"{name}-worker", daemon=True
        )
        self._worker.start()

    @property
    def period(self) -> float:
        """Pause between cycles in seconds."""
        return self.runtime / 1000.0

    @property
    def running(self) -> bool:
        """Whether cycles have been requested."""
        with self._condition:
            return self._run_requested

    @property
    def worker_alive(self) -> bool:
        return self._worker.is_alive()

    def init(self) -> None:
        """Run ``setup`` once; later calls only log a warning."""
        if self.initialized:
            logger.warning("Subsystem %s is already initialized.", self.name)
            return
        try:
            self.setup()
        except Exception:
            logger.error("Init failed for %s", self.name)
            raise
        self.initialized = True
        logger.info("init: %s", self.name)

    def setup(self) -> None:
        """Connect the subsystem's inputs; the base does nothing."""

    def start(self) -> None:
        """Request periodic cycles."""
        with self._condition:
            self._run_requested = True
            self._condition.notify_all()

    def stop(self) -> None:
        """Pause periodic cycles."""
        with self._condition:
            self._run_requested = False
            self._condition.notify_all()

    @abstractmethod
    def halt(self) -> None:
        """Release the subsystem's sockets."""

    @abstractmethod
    def step(self) -> None:
        """Do one cycle of work."""

    @abstractmethod
    def publish(self) -> None:
        """Send the subsystem's outputs."""

    def shutdown(self) -> None:
        """End the worker thread and wait for it."""
        with self._condition:
            self._shutdown_requested = True
            self._condition.notify_all()
        if threading.current_thread() is not self._worker:
            self._worker.join()

    def _worker_loop(self) -> None:
        try:
            while True:
                with self._condition:
                    self._condition.wait_for(
                        lambda: self._run_requested or self._shutdown_requested
                    )
                    if self._shutdown_requested:
                        return
                self.step()
                self.publish()
                with self._condition:
                    self._condition.wait_for(
                        lambda: not self._run_requested or self._shutdown_requested,
                        timeout=self.period,
                    )
        except Exception:
            logger.exception("Worker loop failed for %s", self.name)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()