"""
# Scope

An isolated publish/subscribe channel on top of the shared broker.

Every Scope gets its own namespace and rewrites topics to
'<namespace>.<topic>' on the way into the broker, so two scopes subscribing to
'a' never see each other's publishes. The scope keeps a ledger of its own
subscriptions and the adapter it registered for every listener, which is what
unsub() consults to work out which broker registrations to remove.
"""

import asyncio
import enum
import inspect
import itertools
import logging
import warnings
from typing import Any
from typing import Callable
from typing import Optional
from typing import Union

from scoped_pubsub import broker as broker_
from scoped_pubsub import subscriber
from scoped_pubsub import topics


logger = logging.getLogger(__name__)

_SCOPE_COUNTER = itertools.count(1)
"""Process-wide source of scope namespaces, never reset."""


# -----Exceptions--------------------------------------------------------------
class InvalidArgumentError(TypeError):
    """Raised when unsub() is not given a topic, token, or listener."""


class AmbiguousUnsubscribeWarning(UserWarning):
    """Issued when unsub() receives a listener filter without a topic."""


# -----------------------------------------------------------------------------


class TargetKind(enum.Enum):
    """What the first argument of unsub() identifies."""

    TOKEN = "token"
    LISTENER = "listener"
    TOPIC = "topic"


def classify_target(target: Any) -> TargetKind:
    """
    Decide whether an unsub() target is a token, a listener, or a topic.

    Tokens win over listeners, and listeners over topics, so a topic that
    happens to look like 'uid_12' is treated as a token.

    Raises:
        InvalidArgumentError: If target is empty or of any other type.
    """
    if not target:
        raise InvalidArgumentError(
            "Expected a topic or token string, or listener callable as first "
            f"argument, received {target!r}"
        )

    if topics.is_token(target):
        return TargetKind.TOKEN
    if callable(target):
        return TargetKind.LISTENER
    if isinstance(target, str):
        return TargetKind.TOPIC

    raise InvalidArgumentError(
        "Expected a topic or token string, or listener callable as first "
        f"argument, received {type(target).__name__}"
    )


LISTENER_KEY = Union[int, tuple[int, int]]


def listener_key(listener: subscriber.LISTENER) -> LISTENER_KEY:
    """
    Identity of a listener for the adapter map and unsub().

    Listeners are told apart by reference, never by __eq__, so two distinct
    objects that compare equal stay separate and unhashable callables work.
    Bound methods are the exception: 'obj.method' builds a new object on every
    access, so they are keyed by their instance and function instead.
    """
    if inspect.ismethod(listener):
        return id(listener.__self__), id(listener.__func__)

    return id(listener)


def _resolve(future: asyncio.Future, value: Any) -> None:
    if not future.done():
        future.set_result(value)


class Scope(object):
    """
    Scoped publisher/subscriber.

    Listeners are called with (data, topic), where topic is the published
    topic without this scope's namespace. Subscribing to 'user' also receives
    publishes to 'user.loggedIn'.

    Args:
        broker (Optional[BrokerCapability]): Broker to register with. Defaults
            to the process-wide broker.
    """

    def __init__(self, broker: Optional[broker_.BrokerCapability] = None) -> None:
        self._namespace = f"scope{next(_SCOPE_COUNTER)}"
        self._broker = broker if broker is not None else broker_.get_broker()

        self._subscriptions: list[subscriber.Subscription] = []
        """One record per sub() or once() call, in call order."""

        self._adapters: dict[
            LISTENER_KEY, tuple[subscriber.LISTENER, subscriber.CALLBACK]
        ] = {}
        """
        Listener identity to (listener, callback registered with the broker on
        its behalf). One adapter per listener, so removing by listener removes
        all of them. Holding the listener keeps its id from being reused.
        """

    def __repr__(self) -> str:
        return f"<Scope {self._namespace} subscriptions={len(self._subscriptions)}>"

    @property
    def namespace(self) -> str:
        return self._namespace

    def scope_topic(self, topic: str) -> str:
        """Returns the topic with this scope's namespace prepended."""
        return topics.scope_topic(self._namespace, topic)

    def unscope_topic(self, scoped_topic: str) -> str:
        """Returns the topic with this scope's namespace removed."""
        return topics.unscope_topic(self._namespace, scoped_topic)

    def _get_adapter(self, listener: subscriber.LISTENER) -> subscriber.CALLBACK:
        key = listener_key(listener)
        if key in self._adapters:
            return self._adapters[key][1]

        def adapter(topic: str, data: Any) -> Any:
            return listener(data, self.unscope_topic(topic))

        adapter.__wrapped__ = listener
        self._adapters[key] = (listener, adapter)
        return adapter

    # -----Subscribing---------------------------------------------------------

    def sub(self, topic: str, listener: subscriber.LISTENER) -> str:
        """
        Subscribe a listener to a topic and all of its descendants.

        Args:
            topic (str): Topic to listen to (e.g., 'user' or 'user.loggedIn').
            listener (LISTENER): Called with (data, topic) on every matching
                publish.
        Returns:
            str: Token for unsub().
        """
        adapter = self._get_adapter(listener)
        token = self._broker.subscribe(self.scope_topic(topic), adapter)
        self._subscriptions.append(
            subscriber.Subscription(listener=listener, token=token, topic=topic)
        )

        logger.debug("%s subscribed %s to '%s'", self._namespace, token, topic)
        return token

    def once(self, topic: str, listener: subscriber.LISTENER) -> str:
        """
        Subscribe a listener for the first matching publish only.

        Args:
            topic (str): Topic to listen to.
            listener (LISTENER): Called with (data, topic) at most once.
        Returns:
            str: Token for cancelling with unsub() before it fires.
        """

        def fire_once(data: Any, topic_: str) -> Any:
            self.unsub(token)
            return listener(data, topic_)

        fire_once.__wrapped__ = listener
        token = self.sub(topic, fire_once)
        return token

    # -----Publishing----------------------------------------------------------

    def pub(self, topic: str, data: Any = None) -> "asyncio.Future[bool]":
        """
        Publish data to every listener of the topic or one of its ancestors.

        Listeners are called on a later iteration of the running event loop,
        never before pub() returns.
        Must be called from inside a running event loop. Use pub_sync()
        where there is none.

        Args:
            topic (str): Topic to publish to.
            data (Any): Passed to the listeners.
        Returns:
            asyncio.Future[bool]: Resolves after delivery, with True if anyone
                was subscribed.
        Raises:
            RuntimeError: If no event loop is running.
        """
        loop = asyncio.get_running_loop()
        published = loop.create_future()

        success = self._broker.publish(self.scope_topic(topic), data)
        loop.call_soon(_resolve, published, success)
        return published

    def pub_sync(self, topic: str, data: Any = None) -> bool:
        """
        Publish data and call every matching listener before returning.

        Returns:
            bool: True if anyone was subscribed.
        """
        return self._broker.publish_sync(self.scope_topic(topic), data)

    # -----Unsubscribing-------------------------------------------------------

    def unsub(
        self,
        target: Union[str, subscriber.LISTENER],
        listener: Optional[subscriber.LISTENER] = None,
    ) -> int:
        """
        Remove subscriptions by token, topic, or listener.

        - A token removes the one subscription it was returned for.
        - A topic removes every subscription to it and its descendants.
        - A listener removes every subscription it was given to.
        - A topic with a listener removes only that listener's subscriptions
          to the topic and its descendants.

        Args:
            target (Union[str, LISTENER]): Token, topic, or listener.
            listener (Optional[LISTENER]): Narrows a topic to one listener.
        Returns:
            int: Number of subscriptions removed.
        Raises:
            InvalidArgumentError: If target is empty or not a string or
                callable.
        Warns:
            AmbiguousUnsubscribeWarning: If listener is given with a token or
                listener target. Nothing is removed.
        """
        kind = classify_target(target)

        if listener is not None and kind is not TargetKind.TOPIC:
            warnings.warn(
                "Received a listener as second argument but no topic string. "
                "This is a noop. If you intend to unsubscribe this listener "
                "from all topics, pass it as the only argument.",
                AmbiguousUnsubscribeWarning,
                stacklevel=2,
            )
            return 0

        predicates: list[Callable[[subscriber.Subscription], bool]] = []
        if kind is TargetKind.TOKEN:
            predicates.append(lambda record: record.token == target)
        elif kind is TargetKind.TOPIC:
            predicates.append(lambda record: topics.matches(record.topic, target))
        else:
            target_key = listener_key(target)
            predicates.append(
                lambda record: listener_key(record.listener) == target_key
            )

        if listener is not None:
            filter_key = listener_key(listener)
            predicates.append(
                lambda record: listener_key(record.listener) == filter_key
            )

        removed = []
        kept = []
        for record in self._subscriptions:
            if all(predicate(record) for predicate in predicates):
                removed.append(record)
            else:
                kept.append(record)

        if not removed:
            return 0

        for record in removed:
            if kind is TargetKind.TOPIC and listener is None:
                self._broker.unsubscribe(self.scope_topic(target))
            elif kind is TargetKind.LISTENER:
                _, adapter = self._adapters[listener_key(record.listener)]
                self._broker.unsubscribe(adapter)
            else:
                self._broker.unsubscribe(record.token)

        self._subscriptions = kept
        self._prune_adapters(removed)

        logger.debug(
            "%s removed %d subscription(s) by %s", self._namespace, len(removed), kind.value
        )
        return len(removed)

    def _prune_adapters(self, removed: list[subscriber.Subscription]) -> None:
        """Forget adapters whose listener has no subscriptions left."""
        remaining = {listener_key(r.listener) for r in self._subscriptions}
        for record in removed:
            key = listener_key(record.listener)
            if key not in remaining:
                self._adapters.pop(key, None)

    def clear(self) -> int:
        """
        Remove every subscription of this scope.

        Returns:
            int: Number of subscriptions removed.
        """
        count = len(self._subscriptions)
        if count:
            self._broker.unsubscribe(self._namespace)

        self._subscriptions = []
        self._adapters.clear()
        return count

    # -----Introspection-------------------------------------------------------

    def has_subscribers(self, topic: Optional[str] = None) -> bool:
        """
        Check if publishing to a topic would reach anyone in this scope.

        Args:
            topic (Optional[str]): Topic to check. None checks whether the
                scope has any subscriptions at all.
        """
        if topic is None:
            return bool(self._subscriptions)

        return self._broker.has_subscribers(self.scope_topic(topic))

    def get_subscriptions(
        self, topic: Optional[str] = None
    ) -> list[subscriber.Subscription]:
        """
        Get the ledger records of this scope in subscription order.

        Args:
            topic (Optional[str]): Only records subscribed to this topic or
                one of its descendants.
        """
        if topic is None:
            return list(self._subscriptions)

        return [r for r in self._subscriptions if topics.matches(r.topic, topic)]
