"""Topic-based publish/subscribe transport over ZeroMQ.

Each message is two frames: the topic name and the encoded topic.
"""

from __future__ import annotations

import sys
import threading

import zmq

from .topics import CommandTopic

_RECEIVE_TIMEOUT_MS = 100

__all__ = [
    "CommunicationError",
    "get_context",
    "Publisher",
    "Subscriber",
    "CommandSubscriber",
]


class CommunicationError(RuntimeError):
    """Raised when a socket cannot bind, connect or send."""


def get_context() -> zmq.Context:
    """The process-wide ZeroMQ context."""
    return zmq.Context.instance()


class Publisher:
    """Publishes instances of one topic class."""

    def __init__(self, topic_cls):
        self.topic_cls = topic_cls
        self._topic = topic_cls.TOPIC.encode()
        self._socket = get_context().socket(zmq.PUB)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._bound = False
        self._lock = threading.Lock()

    def _attach(self, action, endpoint: str, label: str) -> None:
        with self._lock:
            if self._bound:
                return
            try:
                action(endpoint)
            except zmq.ZMQError as exc:
                raise CommunicationError(f"{label} failed: {exc}") from exc
            self._bound = True

    def bind(self, endpoint: str) -> None:
        """Bind to ``endpoint``; does nothing if already attached."""
        self._attach(self._socket.bind, endpoint, "Bind")

    def connect(self, endpoint: str) -> None:
        """Connect to ``endpoint``, e.g. a proxy; does nothing if already attached."""
        self._attach(self._socket.connect, endpoint, "Connect")

    def _send(self, frame: bytes, flags: int, part: str) -> None:
        try:
            self._socket.send(frame, flags)
        except zmq.Again as exc:
            raise CommunicationError(f"Send {part} failed: Would block") from exc

    def publish(self, data) -> None:
        """Send ``data`` without blocking."""
        if not isinstance(data, self.topic_cls):
            raise TypeError(
                f"expected {self.topic_cls.__name__}, got {type(data).__name__}"
            )
        with self._lock:
            if not self._bound:
                raise CommunicationError("Publish failed: Socket not connected")
            payload = data.to_bytes()
            try:
                self._send(self._topic, zmq.SNDMORE | zmq.DONTWAIT, "topic")
                self._send(payload, zmq.DONTWAIT, "content")
            except zmq.ContextTerminated:
                return
            except CommunicationError:
                raise
            except zmq.ZMQError as exc:
                raise CommunicationError(f"Publish failed: {exc}") from exc

    def close(self) -> None:
        """Close the socket if it was attached."""
        with self._lock:
            if self._bound:
                try:
                    self._socket.close(linger=0)
                except zmq.ZMQError:
                    pass
                self._bound = False

    def is_bound(self) -> bool:
        return self._bound

    def __enter__(self) -> "Publisher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Subscriber:
    """Receives one topic in a background thread into a shared object.

    ``data`` is updated in place under ``lock`` whenever a message arrives.
    """

    def __init__(self, data, lock):
        self._data = data
        self._lock = lock
        self._topic_cls = type(data)
        self._topic = self._topic_cls.TOPIC.encode()
        self._socket = get_context().socket(zmq.SUB)
        self._socket.setsockopt(zmq.LINGER, 0)
        self._socket.setsockopt(zmq.RCVTIMEO, _RECEIVE_TIMEOUT_MS)
        self._running = threading.Event()
        self._thread: threading.Thread | None = None
        self._listeners: list = []

    def connect(self, endpoint: str) -> None:
        """Connect, subscribe and start the receiver thread."""
        if self._running.is_set():
            return
        try:
            self._socket.connect(endpoint)
            self._socket.setsockopt(zmq.SUBSCRIBE, self._topic)
        except zmq.ZMQError as exc:
            raise CommunicationError(f"Connect failed: {exc}") from exc
        self._running.set()
        self._thread = threading.Thread(
            target=self._receive_loop,
            name=f"{self._topic_cls.TOPIC}-subscriber",
            daemon=True,
        )
        self._thread.start()

    def _receive_loop(self) -> None:
        while self._running.is_set():
            try:
                if not self._socket.poll(_RECEIVE_TIMEOUT_MS):
                    continue
                frames = self._socket.recv_multipart(zmq.NOBLOCK)
            except zmq.Again:
                continue
            except zmq.ContextTerminated:
                break
            except zmq.ZMQError as exc:
                print(f"Receiver error: {exc}", file=sys.stderr)
                continue
            if len(frames) != 2 or frames[0] != self._topic:
                continue
            try:
                received = self._topic_cls.from_bytes(frames[1])
            except ValueError as exc:
                print(f"Receiver error: {exc}", file=sys.stderr)
                continue
            with self._lock:
                self._data.update(received)
                for listener in self._listeners:
                    listener()

    def get_data(self):
        """A copy of the latest data."""
        with self._lock:
            return self._data.copy()

    def close(self) -> None:
        """Stop the receiver thread and close the socket."""
        self._running.clear()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._socket.close(linger=0)

    def is_running(self) -> bool:
        return self._running.is_set()

    def __enter__(self) -> "Subscriber":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class CommandSubscriber:
    """Receives commands and sets ``new_event`` whenever one arrives."""

    def __init__(self, data, lock, new_event):
        if not isinstance(data, CommandTopic):
            raise TypeError(f"expected CommandTopic, got {type(data).__name__}")
        self.new_event = new_event
        self._subscriber = Subscriber(data, lock)
        self._subscriber._listeners.append(new_event.set)

    def connect(self, endpoint: str) -> None:
        """Connect to the command source and start receiving."""
        self._subscriber.connect(endpoint)

    def get_data(self) -> CommandTopic:
        """A copy of the latest command."""
        return self._subscriber.get_data()

    def close(self) -> None:
        self._subscriber.close()

    def is_running(self) -> bool:
        return self._subscriber.is_running()

    def __enter__(self) -> "CommandSubscriber":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()