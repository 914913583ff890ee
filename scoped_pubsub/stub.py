"""
Required for static type checkers to accept these names as members of the
scoped_pubsub module.

This module gets imported into the scoped_pubsub module so stubs are
accessible through the package namespace.

The doc strings for each function exists in the stubs for intellisense
fetching, instead of within the PubSub class itself because the PubSub class
is a module replacement at runtime, so the namespaces during inspection are
different.
"""

import asyncio
from typing import Any
from typing import Optional
from typing import Union

from scoped_pubsub import broker
from scoped_pubsub import scope
from scoped_pubsub import subscriber


# -----Default Scope Stubs-----------------------------------------------------


def get_broker() -> broker.Broker:
    """Get the process-wide broker every scope registers with."""


def get_default_scope() -> scope.Scope:
    """
    Get the default scope behind the module level functions.

    Created on first call and shared by every module that imports
    scoped_pubsub for the rest of the process.
    """


# noinspection PyUnusedLocal
def sub(topic: str, listener: subscriber.LISTENER) -> str:
    """
    Subscribe a listener to a topic and all of its descendants on the default
    scope.

    Args:
        topic (str): Topic to listen to (e.g., 'user' or 'user.loggedIn').
        listener (LISTENER): Called with (data, topic) on every matching
            publish.
    Returns:
        str: Token for unsub().
    """


# noinspection PyUnusedLocal
def once(topic: str, listener: subscriber.LISTENER) -> str:
    """
    Subscribe a listener for the first matching publish only on the default
    scope.

    Args:
        topic (str): Topic to listen to.
        listener (LISTENER): Called with (data, topic) at most once.
    Returns:
        str: Token for cancelling with unsub() before it fires.
    """


# noinspection PyUnusedLocal
def pub(topic: str, data: Any = None) -> "asyncio.Future[bool]":
    """
    Publish data on the default scope.

    Listeners are called on a later iteration of the running event loop,
    never before pub() returns.
    Must be called from inside a running event loop, such as a coroutine
    or loop callback. Outside of one asyncio raises RuntimeError. Use
    pub_sync() there instead.

    Args:
        topic (str): Topic to publish to.
        data (Any): Passed to the listeners.
    Returns:
        asyncio.Future[bool]: Resolves after delivery, with True if anyone
            was subscribed.
    """


# noinspection PyUnusedLocal
def pub_sync(topic: str, data: Any = None) -> bool:
    """
    Publish data on the default scope and call every matching listener
    before returning.

    Returns:
        bool: True if anyone was subscribed.
    """


# noinspection PyUnusedLocal
def unsub(
    target: Union[str, subscriber.LISTENER],
    listener: Optional[subscriber.LISTENER] = None,
) -> int:
    """
    Remove subscriptions of the default scope by token, topic, or listener.

    Args:
        target (Union[str, LISTENER]): Token, topic, or listener.
        listener (Optional[LISTENER]): Narrows a topic to one listener.
    Returns:
        int: Number of subscriptions removed.
    Raises:
        InvalidArgumentError: If target is empty or not a string or callable.
    Warns:
        AmbiguousUnsubscribeWarning: If listener is given with a token or
            listener target. Nothing is removed.
    """
