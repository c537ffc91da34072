import itertools
import threading
import time

import numpy as np
import pytest

from aquanav.communication import (
    CommandSubscriber,
    CommunicationError,
    Publisher,
    Subscriber,
    get_context,
)
from aquanav.topics import CommandTopic, EnvironmentTopic, SignalTopic

_counter = itertools.count()


def _endpoint():
    return f"inproc://aquanav-test-{next(_counter)}"


def _publish_until(publisher, message, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        publisher.publish(message)
        if predicate():
            return True
        time.sleep(0.02)
    return False


def test_context_is_shared_and_open():
    context = get_context()
    assert context is get_context()
    assert context.closed is False


def test_publish_before_bind_fails():
    publisher = Publisher(EnvironmentTopic)
    with pytest.raises(CommunicationError, match="not connected"):
        publisher.publish(EnvironmentTopic())


def test_bind_is_idempotent_and_close_resets():
    publisher = Publisher(EnvironmentTopic)
    endpoint = _endpoint()
    publisher.bind(endpoint)
    publisher.bind(endpoint)
    assert publisher.is_bound()
    publisher.close()
    assert not publisher.is_bound()


def test_bind_invalid_endpoint():
    publisher = Publisher(EnvironmentTopic)
    with pytest.raises(CommunicationError, match="Bind failed"):
        publisher.bind("bogus://nowhere")
    assert not publisher.is_bound()


def test_publish_wrong_type():
    with Publisher(EnvironmentTopic) as publisher:
        publisher.bind(_endpoint())
        with pytest.raises(TypeError):
            publisher.publish(SignalTopic())


def test_subscriber_connect_invalid_endpoint():
    subscriber = Subscriber(EnvironmentTopic(), threading.Lock())
    with pytest.raises(CommunicationError, match="Connect failed"):
        subscriber.connect("bogus://nowhere")
    assert not subscriber.is_running()
    subscriber.close()


def test_round_trip_updates_shared_data():
    endpoint = _endpoint()
    shared = EnvironmentTopic()
    lock = threading.Lock()
    message = EnvironmentTopic()
    message.set(eta=np.arange(6), nu=np.arange(6, 12))
    with Publisher(EnvironmentTopic) as publisher, Subscriber(shared, lock) as subscriber:
        publisher.bind(endpoint)
        subscriber.connect(endpoint)
        assert subscriber.is_running()
        received = _publish_until(
            publisher, message, lambda: subscriber.get_data() == message
        )
        assert received
        with lock:
            np.testing.assert_array_equal(shared.get_array(), np.arange(12))
    assert not subscriber.is_running()


def test_get_data_returns_copy():
    shared = EnvironmentTopic()
    subscriber = Subscriber(shared, threading.Lock())
    snapshot = subscriber.get_data()
    snapshot.eta[0] = 5.0
    assert shared.eta[0] == 0.0
    subscriber.close()


def test_command_subscriber_sets_event():
    endpoint = _endpoint()
    command = CommandTopic()
    new_event = threading.Event()
    message = CommandTopic()
    message.set(system_code=6, command_code=5)
    with Publisher(CommandTopic) as publisher, CommandSubscriber(
        command, threading.Lock(), new_event
    ) as subscriber:
        publisher.bind(endpoint)
        subscriber.connect(endpoint)
        assert _publish_until(publisher, message, new_event.is_set)
        latest = subscriber.get_data()
        assert (latest.system, latest.command) == (6, 5)


def test_command_subscriber_requires_command_topic():
    with pytest.raises(TypeError):
        CommandSubscriber(SignalTopic(), threading.Lock(), threading.Event())