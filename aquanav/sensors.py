"""Mission identifiers, sensor kinds, map settings and sensor data holders."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from enum import Enum, IntEnum
from typing import Generic, TypeVar

from .topics import HORIZON

WIDTH = 129
HEIGHT = 129
SPACING_FACTOR = 1.0
R_M = 0.25

__all__ = [
    "HORIZON",
    "WIDTH",
    "HEIGHT",
    "SPACING_FACTOR",
    "R_M",
    "MissionImp",
    "SensorType",
    "SensorDataBase",
    "SonarData",
    "CameraData",
    "GPSData",
]


class MissionImp(IntEnum):
    """Mission selections and mission-control operations."""

    SONAR_MIS_TEST = 0
    FOLLOW_MIS_TEST = 1
    TEST = 2
    SONAR_MIS = 3
    FOLLOW_MIS = 4
    START = 5
    STOP = 6
    REPORT = 7


class SensorType(Enum):
    SONAR = "sonar"
    CAMERA = "camera"
    GPS = "gps"


T = TypeVar("T")


class SensorDataBase(ABC, Generic[T]):
    """Thread-safe sensor reading with an optional background collector."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self._stopped = threading.Event()
        self._stopped.set()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    @abstractmethod
    def get_data(self) -> T:
        """The latest reading."""

    @abstractmethod
    def set_data(self, data: T) -> None:
        """Store a new reading."""

    @abstractmethod
    def collect(self) -> None:
        """Acquire readings until the collector is stopped."""

    def _pause(self, seconds: float) -> None:
        self._stopped.wait(seconds)

    def start_collector(self) -> None:
        """Run ``collect`` in a background thread."""
        if self.running:
            return
        self._stopped.clear()
        self._thread = threading.Thread(
            target=self.collect, name=f"{type(self).__name__}-collector", daemon=True
        )
        self._thread.start()

    def stop_collector(self) -> None:
        """Stop the background thread and wait for it."""
        self._stopped.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self):
        self.start_collector()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop_collector()


class SonarData(SensorDataBase[float]):
    """Range from a single-beam sonar mounted at ``angle`` degrees."""

    _PERIOD = 0.1
    _SIMULATED_DISTANCE = 1.0

    def __init__(self, angle: float = 10.0) -> None:
        super().__init__()
        self.distance = 0.0
        self.angle = angle

    def get_data(self) -> float:
        with self.lock:
            return self.distance

    def set_data(self, data: float) -> None:
        with self.lock:
            self.distance = float(data)

    def collect(self) -> None:
        """Simulated acquisition: reports a constant range."""
        while self.running:
            self.set_data(self._SIMULATED_DISTANCE)
            self._pause(self._PERIOD)


class CameraData(SensorDataBase[bytes]):
    """Raw image frames of ``width`` x ``height`` x ``channels`` bytes."""

    _PERIOD = 0.2

    def __init__(self, width: int = 0, height: int = 0, channels: int = 0) -> None:
        super().__init__()
        self.image = b""
        self.width = width
        self.height = height
        self.channels = channels
        self.timestamp = 0.0

    def get_data(self) -> bytes:
        with self.lock:
            return self.image

    def set_data(self, data) -> None:
        with self.lock:
            self.image = bytes(data)

    def collect(self) -> None:
        """Simulated acquisition: reports black frames."""
        while self.running:
            self.set_data(bytes(self.width * self.height * self.channels))
            self._pause(self._PERIOD)


class GPSData(SensorDataBase[tuple]):
    """Latitude, longitude (degrees), altitude and accuracy (metres)."""

    _PERIOD = 0.5
    _SIMULATED_FIX = (0.0, 0.0, 0.0, 1.0)

    def __init__(self) -> None:
        super().__init__()
        self.latitude = 0.0
        self.longitude = 0.0
        self.altitude = 0.0
        self.accuracy = 0.0
        self.timestamp = 0.0

    def get_data(self) -> tuple[float, float, float, float]:
        with self.lock:
            return (self.latitude, self.longitude, self.altitude, self.accuracy)

    def set_data(self, data) -> None:
        values = tuple(float(v) for v in data)
        if len(values) != 4:
            raise ValueError(f"GPS data must have 4 values, got {len(values)}")
        with self.lock:
            self.latitude, self.longitude, self.altitude, self.accuracy = values

    def collect(self) -> None:
        """Simulated acquisition: reports a fixed position."""
        while self.running:
            self.set_data(self._SIMULATED_FIX)
            self._pause(self._PERIOD)