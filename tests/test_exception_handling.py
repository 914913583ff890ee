"""
Unit tests for broker exception handling capabilities.

Tests verify that exceptions raised by listeners during delivery are routed to
the broker's exception handler, that the default handler keeps one failing
listener from starving the others, and that the built-in handler policies
(stop, continue, silent, collecting) behave as documented.
"""

import asyncio
import logging
from typing import Any

import pytest

from scoped_pubsub import broker
from scoped_pubsub import handlers
from scoped_pubsub import scope


def _make_scope() -> tuple[scope.Scope, broker.Broker]:
    broker_ = broker.Broker()
    return scope.Scope(broker=broker_), broker_


def test_default_exception_handler_continues(caplog) -> None:
    """Test that the default handler logs and delivers to the others."""
    scope_, _ = _make_scope()
    calls: list[str] = []

    def failing_listener(data: Any, topic: str) -> None:
        calls.append("failing")
        raise ValueError("Test exception")

    def healthy_listener(data: Any, topic: str) -> None:
        calls.append("healthy")

    scope_.sub("a", failing_listener)
    scope_.sub("a", healthy_listener)

    with caplog.at_level(logging.WARNING, logger="scoped_pubsub.handlers"):
        assert scope_.pub_sync("a") is True

    assert calls == ["failing", "healthy"]
    assert "failing_listener" in caplog.text
    assert "Test exception" in caplog.text


@pytest.mark.asyncio
async def test_listener_exception_does_not_reach_publisher() -> None:
    """Test that a failing listener does not fail the awaited publish."""
    scope_, _ = _make_scope()

    def failing_listener(data: Any, topic: str) -> None:
        raise RuntimeError("boom")

    scope_.sub("a", failing_listener)

    assert await scope_.pub("a") is True


def test_stop_and_log_handler_stops_delivery(caplog) -> None:
    """Test that the stopping handler skips the remaining listeners."""
    scope_, broker_ = _make_scope()
    broker_.set_subscriber_exception_handler(
        handlers.stop_and_log_subscriber_exception
    )
    calls: list[str] = []

    def failing_listener(data: Any, topic: str) -> None:
        calls.append("failing")
        raise ValueError("Test exception")

    def should_not_run(data: Any, topic: str) -> None:
        calls.append("should_not_run")

    scope_.sub("a", failing_listener)
    scope_.sub("a", should_not_run)

    with caplog.at_level(logging.ERROR, logger="scoped_pubsub.handlers"):
        scope_.pub_sync("a")

    assert calls == ["failing"]
    assert "Exception in subscriber" in caplog.text


def test_setting_exception_handler_to_none_raises() -> None:
    """Test that without a handler the exception reaches pub_sync()."""
    scope_, broker_ = _make_scope()
    broker_.set_subscriber_exception_handler(None)

    def failing_listener(data: Any, topic: str) -> None:
        raise ValueError("Test exception")

    scope_.sub("a", failing_listener)

    with pytest.raises(ValueError, match="Test exception"):
        scope_.pub_sync("a")


def test_silent_exception_handler_continues() -> None:
    """Test that the silent handler continues to the next listener."""
    scope_, broker_ = _make_scope()
    broker_.set_subscriber_exception_handler(handlers.silent_subscriber_exception)
    calls: list[str] = []

    def failing_listener(data: Any, topic: str) -> None:
        raise ValueError("Test exception")

    def healthy_listener(data: Any, topic: str) -> None:
        calls.append("healthy")

    scope_.sub("a", failing_listener)
    scope_.sub("a", healthy_listener)
    scope_.pub_sync("a")

    assert calls == ["healthy"]


def test_collecting_exception_handler() -> None:
    """Test that the collecting handler records every failure."""
    scope_, broker_ = _make_scope()
    broker_.set_subscriber_exception_handler(handlers.collect_subscriber_exception)
    handlers.clear_caught_exceptions()

    def failing_listener(data: Any, topic: str) -> None:
        raise KeyError("missing")

    scope_.sub("a", failing_listener)
    scope_.pub_sync("a.child")

    assert len(handlers.exceptions_caught) == 1
    caught = handlers.exceptions_caught[0]
    assert caught["callback"] == "failing_listener"
    assert caught["topic"] == f"{scope_.namespace}.a.child"
    assert caught["exception"].startswith("KeyError")

    handlers.clear_caught_exceptions()


@pytest.mark.asyncio
async def test_coroutine_listener_exception_goes_to_handler() -> None:
    """Test that failures of coroutine listeners are handled when they finish."""
    scope_, broker_ = _make_scope()
    broker_.set_subscriber_exception_handler(handlers.collect_subscriber_exception)
    handlers.clear_caught_exceptions()

    async def failing_listener(data: Any, topic: str) -> None:
        await asyncio.sleep(0)
        raise ValueError("async failure")

    scope_.sub("a", failing_listener)
    await scope_.pub("a")
    await broker_.join()

    assert len(handlers.exceptions_caught) == 1
    assert handlers.exceptions_caught[0]["callback"] == "failing_listener"

    handlers.clear_caught_exceptions()


def test_clear_caught_exceptions() -> None:
    """Test that collected failures can be emptied between publishes."""
    scope_, broker_ = _make_scope()
    broker_.set_subscriber_exception_handler(handlers.collect_subscriber_exception)
    collected = handlers.exceptions_caught

    def failing_listener(data: Any, topic: str) -> None:
        raise ValueError("Test exception")

    scope_.sub("a", failing_listener)
    scope_.pub_sync("a")
    scope_.pub_sync("a")

    assert len(handlers.exceptions_caught) >= 2

    handlers.clear_caught_exceptions()

    assert handlers.exceptions_caught == []
    assert handlers.exceptions_caught is collected

    scope_.pub_sync("a")

    assert len(handlers.exceptions_caught) == 1

    handlers.clear_caught_exceptions()

def test_get_callable_name() -> None:
    """Test naming of functions, bound methods and other callables."""

    def plain() -> None:
        pass

    class Handler:
        def method(self) -> None:
            pass

        def __call__(self) -> None:
            pass

    assert handlers.get_callable_name(plain) == "plain"
    assert handlers.get_callable_name(Handler().method) == "Handler.method"
    assert "Handler" in handlers.get_callable_name(Handler())


def test_get_callable_name_follows_scope_adapters() -> None:
    """Test that the broker's view of a listener is named after the listener."""
    scope_, broker_ = _make_scope()

    def my_listener(data: Any, topic: str) -> None:
        pass

    token = scope_.sub("a", my_listener)

    assert broker_.to_dict() == {f"{scope_.namespace}.a": {token: "my_listener"}}
