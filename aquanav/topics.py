"""Message types exchanged between the vehicle subsystems.

Every topic has a fixed binary layout so it can travel as a single
message frame; ``to_bytes`` and ``from_bytes`` convert to and from it.
"""

from __future__ import annotations

import copy
import struct
import time
from dataclasses import dataclass, field, fields
from typing import ClassVar

import numpy as np

HORIZON = 41

__all__ = [
    "HORIZON",
    "EnvironmentTopic",
    "MissionTopic",
    "StateTopic",
    "CommandTopic",
    "MotionTopic",
    "SignalTopic",
    "TestSonarTopic",
]


def _vector(values, size: int, name: str) -> np.ndarray:
    """Return ``values`` as a fresh flat float array of ``size`` elements."""
    if values is None:
        return np.zeros(size)
    arr = np.array(values, dtype=float).ravel()
    if arr.size != size:
        raise ValueError(f"{name} must have {size} elements, got {arr.size}")
    return arr


def _zeros(*shape: int):
    return field(default_factory=lambda: np.zeros(shape))


class _Topic:
    """Behaviour shared by all topics."""

    TOPIC: ClassVar[str]
    _STRUCT: ClassVar[struct.Struct]

    def _copy_from(self, other) -> None:
        """Overwrite every field with a copy of the fields of ``other``."""
        if not isinstance(other, type(self)):
            raise TypeError(
                f"cannot update {type(self).__name__} from {type(other).__name__}"
            )
        for f in fields(self):
            setattr(self, f.name, copy.deepcopy(getattr(other, f.name)))

    def copy(self):
        """Return an independent copy of this topic."""
        return copy.deepcopy(self)

    @classmethod
    def size(cls) -> int:
        """Size in bytes of the encoded topic."""
        return cls._STRUCT.size

    @classmethod
    def _unpack(cls, payload: bytes) -> tuple:
        if len(payload) != cls._STRUCT.size:
            raise ValueError(
                f"{cls.__name__} payload must be {cls._STRUCT.size} bytes, "
                f"got {len(payload)}"
            )
        return cls._STRUCT.unpack(payload)

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    __hash__ = None

    def to_bytes(self) -> bytes:  # pragma: no cover - overridden
        raise NotImplementedError


@dataclass(eq=False)
class EnvironmentTopic(_Topic):
    """Vehicle pose ``eta``, body velocity ``nu`` and acceleration ``nu_dot``."""

    eta: np.ndarray = _zeros(6)
    nu: np.ndarray = _zeros(6)
    nu_dot: np.ndarray = _zeros(6)

    TOPIC: ClassVar[str] = "Environment"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<18d")

    def __post_init__(self) -> None:
        self.set(self.eta, self.nu, self.nu_dot)

    def set(self, eta=None, nu=None, nu_dot=None) -> None:
        """Set the three 6-vectors; omitted ones become zero."""
        self.eta = _vector(eta, 6, "eta")
        self.nu = _vector(nu, 6, "nu")
        self.nu_dot = _vector(nu_dot, 6, "nu_dot")

    def update(self, other: "EnvironmentTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def get_array(self) -> np.ndarray:
        """The 12-element state: ``eta`` followed by ``nu``."""
        return np.concatenate((self.eta, self.nu))

    def state_vector(self) -> np.ndarray:
        """The 12-element state as a 12x1 column."""
        return self.get_array().reshape(12, 1)

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(*self.eta, *self.nu, *self.nu_dot)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "EnvironmentTopic":
        values = np.array(cls._unpack(payload))
        return cls(values[0:6], values[6:12], values[12:18])


@dataclass(eq=False)
class MissionTopic(_Topic):
    """Reference trajectory of ``HORIZON`` poses and velocities."""

    eta_des: np.ndarray = _zeros(HORIZON, 6)
    nu_des: np.ndarray = _zeros(HORIZON, 6)

    TOPIC: ClassVar[str] = "Mission"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct(f"<{2 * HORIZON * 6}d")

    def __post_init__(self) -> None:
        self.eta_des = self._block(self.eta_des, "eta_des")
        self.nu_des = self._block(self.nu_des, "nu_des")

    @staticmethod
    def _block(values, name: str) -> np.ndarray:
        arr = np.array(values, dtype=float)
        if arr.shape != (HORIZON, 6):
            raise ValueError(f"{name} must have shape ({HORIZON}, 6), got {arr.shape}")
        return arr

    def set(self, eta=None, nu=None) -> None:
        """Hold a single pose and velocity over the whole horizon."""
        eta_v = _vector(eta, 6, "eta")
        nu_v = _vector(nu, 6, "nu")
        self.eta_des = np.tile(eta_v, (HORIZON, 1))
        self.nu_des = np.tile(nu_v, (HORIZON, 1))

    def set_matrix(self, x_ref) -> None:
        """Set from a 12xK matrix; columns past K repeat the last one."""
        matrix = np.asarray(x_ref, dtype=float)
        if matrix.ndim == 1:
            matrix = matrix.reshape(-1, 1)
        if matrix.ndim != 2 or matrix.shape[0] != 12:
            raise ValueError("x_ref must have exactly 12 rows")
        if matrix.shape[1] == 0:
            raise ValueError("x_ref must have at least one column")
        columns = np.minimum(np.arange(HORIZON), matrix.shape[1] - 1)
        rows = matrix[:, columns].T
        self.eta_des = rows[:, :6].copy()
        self.nu_des = rows[:, 6:].copy()

    def set_trajectory(self, trajectory) -> None:
        """Set from ``HORIZON`` rows of 12 values (``eta`` then ``nu``)."""
        rows = np.asarray(trajectory, dtype=float)
        if rows.shape != (HORIZON, 12):
            raise ValueError(
                f"trajectory must have shape ({HORIZON}, 12), got {rows.shape}"
            )
        self.eta_des = rows[:, :6].copy()
        self.nu_des = rows[:, 6:].copy()

    def update(self, other: "MissionTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def get_array(self) -> np.ndarray:
        """``HORIZON`` rows of 12 values."""
        return np.hstack((self.eta_des, self.nu_des))

    def as_matrix(self) -> np.ndarray:
        """The trajectory as a 12x``HORIZON`` matrix, one column per step."""
        return self.get_array().T.copy()

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(*self.eta_des.ravel(), *self.nu_des.ravel())

    @classmethod
    def from_bytes(cls, payload: bytes) -> "MissionTopic":
        blocks = np.array(cls._unpack(payload)).reshape(2, HORIZON, 6)
        return cls(blocks[0].copy(), blocks[1].copy())


def _now() -> int:
    return int(time.time())


@dataclass(eq=False)
class StateTopic(_Topic):
    """Status report of a subsystem: 3-bit system and process codes."""

    system: int = 0
    process: int = 0
    message: int = 0
    timestamp: int = field(default_factory=_now)

    TOPIC: ClassVar[str] = "State"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<BB6xq")

    def __post_init__(self) -> None:
        self.system &= 0b111
        self.process &= 0b111
        self.message &= 0xFF

    def set(self, system_code=0, process_code=0, message_code=0) -> None:
        """Set the codes and stamp the current time."""
        self.system = system_code & 0b111
        self.process = process_code & 0b111
        self.message = message_code & 0xFF
        self.timestamp = _now()

    def update(self, other: "StateTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def to_bytes(self) -> bytes:
        flags = self.system | (self.process << 3)
        return self._STRUCT.pack(flags, self.message, self.timestamp)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "StateTopic":
        flags, message, timestamp = cls._unpack(payload)
        return cls(flags & 0b111, (flags >> 3) & 0b111, message, timestamp)


@dataclass(eq=False)
class CommandTopic(_Topic):
    """A command addressed to a system code."""

    system: int = 7
    command: int = 0
    timestamp: int = field(default_factory=_now)

    TOPIC: ClassVar[str] = "Command"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<BB6xq")

    def __post_init__(self) -> None:
        self.system &= 0b111
        self.command &= 0xFF

    def set(self, system_code=7, command_code=0) -> None:
        """Set the command and stamp the current time."""
        self.system = system_code & 0b111
        self.command = command_code & 0xFF
        self.timestamp = _now()

    def update(self, other: "CommandTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(self.system, self.command, self.timestamp)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "CommandTopic":
        system, command, timestamp = cls._unpack(payload)
        return cls(system, command, timestamp)


@dataclass(eq=False)
class MotionTopic(_Topic):
    """Eight propeller commands and the predicted next 12-element state."""

    propeller: np.ndarray = _zeros(8)
    x_next: np.ndarray = _zeros(12)

    TOPIC: ClassVar[str] = "Motion"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<20d")

    def __post_init__(self) -> None:
        self.set(self.propeller, self.x_next)

    def set(self, propeller=None, x_next=None) -> None:
        """Set both vectors; omitted ones become zero."""
        self.propeller = _vector(propeller, 8, "propeller")
        self.x_next = _vector(x_next, 12, "x_next")

    def get(self) -> tuple[np.ndarray, np.ndarray]:
        """Copies of the propeller commands and the next state."""
        return self.propeller.copy(), self.x_next.copy()

    def update(self, other: "MotionTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(*self.propeller, *self.x_next)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "MotionTopic":
        values = np.array(cls._unpack(payload))
        return cls(values[:8], values[8:])


@dataclass(eq=False)
class SignalTopic(_Topic):
    """Availability of the vision, sonar and GPS signals."""

    vision: bool = False
    sonar: bool = False
    gps: bool = False

    TOPIC: ClassVar[str] = "Signal"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<???")

    def set(self, vision=False, sonar=False, gps=False) -> None:
        self.vision = bool(vision)
        self.sonar = bool(sonar)
        self.gps = bool(gps)

    def update(self, other: "SignalTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(self.vision, self.sonar, self.gps)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "SignalTopic":
        return cls(*cls._unpack(payload))


@dataclass(eq=False)
class TestSonarTopic(_Topic):
    """Ten sonar ranges with their bearings in degrees."""

    __test__ = False

    detection: np.ndarray = _zeros(10)
    degree: np.ndarray = _zeros(10)
    timestamp: float = 0.0

    TOPIC: ClassVar[str] = "TestSonar"
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<21d")

    def __post_init__(self) -> None:
        self.set(self.detection, self.degree, self.timestamp)

    def set(self, detection=None, degree=None, timestamp=0.0) -> None:
        self.detection = _vector(detection, 10, "detection")
        self.degree = _vector(degree, 10, "degree")
        self.timestamp = float(timestamp)

    def update(self, other: "TestSonarTopic") -> None:
        """Copy every field of ``other`` into this topic."""
        self._copy_from(other)

    def to_bytes(self) -> bytes:
        return self._STRUCT.pack(*self.detection, *self.degree, self.timestamp)

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TestSonarTopic":
        values = np.array(cls._unpack(payload))
        return cls(values[:10], values[10:20], float(values[20]))