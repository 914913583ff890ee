"""
Subscription data structures and type definitions.

Defines the Subscriber dataclass the broker keeps for every registration and
the Subscription record a Scope keeps in its ledger for every sub() or once()
call. Also defines the LISTENER and CALLBACK type aliases used throughout the
package for type hints.
"""

from dataclasses import dataclass
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Optional
from typing import Union


CALLBACK = Callable[[str, Any], Optional[Awaitable[Any]]]
"""
Broker level callback, called with (topic, data).

The topic is the one that was published, which may be a descendant of the
topic the callback was registered to. A callback may return an awaitable, in
which case the broker schedules it on the running event loop.
"""

LISTENER = Callable[[Any, str], Union[None, Awaitable[Any], Any]]
"""
Scope level listener, called with (data, topic).

The topic is the one that was published, without the scope's namespace.
"""


@dataclass(frozen=True)
class Subscriber(object):
    """A callback registered with the broker under a literal topic."""

    token: str
    """Unique handle returned to whoever subscribed."""

    topic: str
    """The exact topic the callback was registered to."""

    callback: CALLBACK
    """The end point that data is forwarded to. i.e. what gets ran."""


@dataclass(frozen=True)
class Subscription(object):
    """Ledger record of a single sub() or once() call on a Scope."""

    listener: LISTENER
    """The callable given by the caller, before adapting."""

    token: str
    """Token the broker returned for the registration."""

    topic: str
    """The topic as given by the caller, without the scope's namespace."""
