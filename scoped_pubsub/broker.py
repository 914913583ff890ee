"""
# Broker

Herein is the flat publish/subscribe primitive every Scope is built on.

The broker maps literal topic strings to callbacks and hands out a unique
token per registration. Publishing fans out hierarchically: a publish to
'a.b.c' reaches callbacks registered to 'a.b.c', 'a.b' and 'a'. Delivery with
publish() happens on a later iteration of the running event loop, never
inside the publisher's call. publish_sync() delivers immediately.

A single process-wide broker is shared by every Scope, see get_broker().
"""

import asyncio
import functools
import inspect
import itertools
import json
import logging
from typing import Any
from typing import Awaitable
from typing import Optional
from typing import Protocol
from typing import Union

from scoped_pubsub import handlers
from scoped_pubsub import subscriber
from scoped_pubsub import topics


logger = logging.getLogger(__name__)


class BrokerCapability(Protocol):
    """The operations a Scope needs from a broker."""

    def subscribe(self, topic: str, callback: subscriber.CALLBACK) -> str: ...

    def publish(self, topic: str, data: Any = None) -> bool: ...

    def publish_sync(self, topic: str, data: Any = None) -> bool: ...

    def unsubscribe(self, value: Union[str, subscriber.CALLBACK]) -> int: ...

    def has_subscribers(self, topic: str) -> bool: ...


class Broker(object):
    """
    Process-wide event coordinator.
    Supports hierarchical topics through dot notation.

    Callbacks are called with (topic, data), where topic is the published
    topic. A callback returning an awaitable has it scheduled as a task on the
    running loop, use join() to wait for those.

    To manage subscribers use subscribe() and unsubscribe().
    """

    def __init__(self) -> None:
        self._registry: dict[str, dict[str, subscriber.Subscriber]] = {}
        """Topic to {token: Subscriber}, both in registration order."""

        self._tokens: dict[str, str] = {}
        """Token to the topic it is registered under."""

        self._token_counter = itertools.count(1)
        self._tasks: set[asyncio.Future] = set()

        self._subscriptions_exception_handler: Optional[
            handlers.SUBSCRIPTION_EXCEPTION_HANDLER
        ] = handlers.log_and_continue_subscriber_exception

    def clear(self) -> None:
        """Clears the topic and subscriber table."""
        self._registry.clear()
        self._tokens.clear()

    # -----Subscriber Management-----------------------------------------------

    def subscribe(self, topic: str, callback: subscriber.CALLBACK) -> str:
        """
        Register a callback to a topic.

        Args:
            topic (str): Literal topic (e.g., 'scope1.user.loggedIn').
            callback (CALLBACK): Function called with (topic, data) when the
                topic or one of its descendants is published.
        Returns:
            str: Token identifying this registration for unsubscribe().
        """
        token = topics.make_token(next(self._token_counter))
        sub = subscriber.Subscriber(token=token, topic=topic, callback=callback)

        self._registry.setdefault(topic, {})[token] = sub
        self._tokens[token] = topic

        logger.debug(
            "Registered %s to '%s' as %s",
            handlers.get_callable_name(callback),
            topic,
            token,
        )
        return token

    def unsubscribe(self, value: Union[str, subscriber.CALLBACK]) -> int:
        """
        Remove registrations by token, topic, or callback.

        Args:
            value (Union[str, CALLBACK]): A token removes that registration.
                Any other string removes every registration to that topic and
                its descendants. A callable is removed from every topic.
        Returns:
            int: Number of registrations removed. Unknown values remove nothing.
        """
        if isinstance(value, str):
            if value in self._tokens:
                return self._remove_token(value)
            return self._remove_topic(value)

        if callable(value):
            return self._remove_callback(value)

        return 0

    def _remove_token(self, token: str) -> int:
        topic = self._tokens.pop(token)
        del self._registry[topic][token]
        self._cleanup_topic_if_empty(topic)

        logger.debug("Removed %s from '%s'", token, topic)
        return 1

    def _remove_topic(self, pattern: str) -> int:
        removed = 0
        for topic in [t for t in self._registry if topics.matches(t, pattern)]:
            entry = self._registry.pop(topic)
            for token in entry:
                del self._tokens[token]
            removed += len(entry)

        if removed:
            logger.debug("Removed %d subscriber(s) under '%s'", removed, pattern)
        return removed

    def _remove_callback(self, callback: subscriber.CALLBACK) -> int:
        removed = 0
        for topic in list(self._registry):
            entry = self._registry[topic]
            tokens = [token for token, sub in entry.items() if sub.callback == callback]
            for token in tokens:
                del entry[token]
                del self._tokens[token]
            removed += len(tokens)
            self._cleanup_topic_if_empty(topic)

        if removed:
            logger.debug(
                "Removed %s from %d topic(s)",
                handlers.get_callable_name(callback),
                removed,
            )
        return removed

    def set_subscriber_exception_handler(
        self, handler: Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]
    ) -> None:
        """
        Set the exception handler for subscriber errors.
        The handler is called when a subscriber raises an exception during
        delivery.

        Args:
            Optional[handlers.SUBSCRIPTION_EXCEPTION_HANDLER]:
                Callable with signature (CALLBACK, str, Exception) -> bool.
                Returns True to stop delivery, False to continue.
                Pass None to re-raise exceptions instead.
        """
        self._subscriptions_exception_handler = handler

    # -----Publishing----------------------------------------------------------

    def publish(self, topic: str, data: Any = None) -> bool:
        """
        Publish data to the topic and its ancestors on a later loop iteration.

        Must be called while an event loop is running.

        Args:
            topic (str): Published topic (e.g., 'scope1.user.loggedIn').
            data (Any): Passed to every matching callback.
        Returns:
            bool: True if at least one matching callback was registered at the
                time of the call.
        """
        loop = asyncio.get_running_loop()
        if not self.has_subscribers(topic):
            return False

        loop.call_soon(self._deliver, topic, data)
        return True

    def publish_sync(self, topic: str, data: Any = None) -> bool:
        """
        Publish data to the topic and its ancestors before returning.

        Args:
            topic (str): Published topic.
            data (Any): Passed to every matching callback.
        Returns:
            bool: True if at least one matching callback was registered.
        """
        if not self.has_subscribers(topic):
            return False

        self._deliver(topic, data)
        return True

    def _deliver(self, topic: str, data: Any) -> None:
        for sub in self._get_matching_subscribers(topic):
            # Removed by an earlier callback of this delivery, or after it was
            # scheduled.
            if self._tokens.get(sub.token) != sub.topic:
                continue

            try:
                result = sub.callback(topic, data)
                if inspect.isawaitable(result):
                    self._schedule(sub.callback, topic, result)
            except Exception as e:
                if self._subscriptions_exception_handler is None:
                    raise

                stop = self._subscriptions_exception_handler(sub.callback, topic, e)
                if stop:
                    break

    def _get_matching_subscribers(self, topic: str) -> list[subscriber.Subscriber]:
        matching = []
        for registered, entry in self._registry.items():
            if topics.matches(topic, registered):
                matching.extend(entry.values())

        return matching

    def _schedule(
        self, callback: subscriber.CALLBACK, topic: str, awaitable: Awaitable[Any]
    ) -> None:
        """Run an awaitable a callback returned as a task on the running loop."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Dropped awaitable returned by %s for '%s': no running event loop",
                handlers.get_callable_name(callback),
                topic,
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._on_task_done, callback, topic))

    def _on_task_done(
        self, callback: subscriber.CALLBACK, topic: str, task: asyncio.Future
    ) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return

        exception = task.exception()
        if exception is None:
            return

        if self._subscriptions_exception_handler is None:
            raise exception

        self._subscriptions_exception_handler(callback, topic, exception)

    async def join(self) -> None:
        """Wait until every awaitable returned by callbacks so far is done."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # -----Introspection API---------------------------------------------------

    def has_subscribers(self, topic: str) -> bool:
        """
        Check if publishing to a topic would reach anyone.

        Args:
            topic (str): The topic to check.
        Returns:
            bool: True if a callback is registered to the topic or an ancestor.
        """
        return any(
            entry
            for registered, entry in self._registry.items()
            if topics.matches(topic, registered)
        )

    def get_topics(self) -> list[str]:
        """Get all topics with at least one registration."""
        return sorted(self._registry.keys())

    def topic_exists(self, topic: str) -> bool:
        """Check if a literal topic has registrations."""
        return topic in self._registry

    def get_subscriber_count(self, topic: str) -> int:
        """
        Get the number of callbacks registered to exactly this topic.

        Args:
            topic (str): Topic to count subscribers for.
        Returns:
            int: Number of registrations.
        """
        return len(self._registry.get(topic, {}))

    def get_subscriptions(self, callback: subscriber.CALLBACK) -> list[str]:
        """
        Get all topics that a callback is registered to.

        Args:
            callback (Callable): The callback to find subscriptions for.
        Returns:
            list[str]: List of topic strings the callback is registered to.
        """
        return sorted(
            topic
            for topic, entry in self._registry.items()
            if any(sub.callback == callback for sub in entry.values())
        )

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Convert the broker structure to a {topic: {token: callback}} dict."""
        return {
            topic: {
                token: handlers.get_callable_name(sub.callback)
                for token, sub in self._registry[topic].items()
            }
            for topic in sorted(self._registry.keys())
        }

    def to_string(self) -> str:
        """Returns a string representation of the broker."""
        return json.dumps(self.to_dict(), indent=4)

    def _cleanup_topic_if_empty(self, topic: str) -> None:
        """Remove topic from registry if it has no subscribers."""
        if topic in self._registry and not self._registry[topic]:
            del self._registry[topic]


_DEFAULT_BROKER: Optional[Broker] = None


def get_broker() -> Broker:
    """Get the process-wide broker, creating it on first use."""
    global _DEFAULT_BROKER
    if _DEFAULT_BROKER is None:
        _DEFAULT_BROKER = Broker()

    return _DEFAULT_BROKER
