"""
# Scoped Publish/Subscribe

Herein is the default channel of the package, as a module class to create a
protective closure around the default scope.

A reimport protection clause exists at the top of the file to prevent the
default scope, and with it every subscription made through the module level
functions, from being lost on import.

Function stubs exist in the stubs file for static type checkers to validate
correct calls.

Example:
    >>> import scoped_pubsub
    >>> def on_login(data, topic): ...
    >>> scoped_pubsub.sub("user.loggedIn", on_login)
    >>> await scoped_pubsub.pub("user.loggedIn", {"name": "ada"})
    >>> scoped_pubsub.unsub("user")
"""

# Remember to update doc strings in the stub.py file so static type checkers
# and intellisense can receive accurate feedback!

import sys

# -----------------------------------------------------------------------------
# Prevent module reload - default scope would be lost!
if "scoped_pubsub" in sys.modules:
    existing_module = sys.modules["scoped_pubsub"]
    if hasattr(existing_module, "_PUBSUB_IMPORT_GUARD"):
        raise ImportError(
            "Module 'scoped_pubsub' has already been imported and cannot be "
            "reloaded. Subscriptions of the default scope would be lost. "
            "Restart your Python session to reimport."
        )
_PUBSUB_IMPORT_GUARD = True
# -----------------------------------------------------------------------------

import asyncio
from types import ModuleType

from scoped_pubsub.stub import *
from scoped_pubsub import broker
from scoped_pubsub import handlers
from scoped_pubsub import scope
from scoped_pubsub import subscriber
from scoped_pubsub import topics


version_major = 1
version_minor = 0
version_patch = 0
__version__ = f"{version_major}.{version_minor}.{version_patch}"

_DEFAULT_SCOPE: Optional[scope.Scope] = None
"""
The process-wide default scope behind the module level functions.
Created on first use.
"""


class PubSub(ModuleType):
    """
    The package module, backed by a default Scope shared by everything in the
    process that imports it.

    Use sub(), once(), pub(), pub_sync() and unsub() for the default channel,
    or create a Scope() for an isolated one.
    """

    # -----Runtime Closures----------------------------------------------------
    # ---Constants---
    __version__ = __version__
    _PUBSUB_IMPORT_GUARD = _PUBSUB_IMPORT_GUARD
    # Explicitly refuse to make closure for _DEFAULT_SCOPE so it stays
    # protected!

    # ---Classes---
    Broker = broker.Broker
    Scope = scope.Scope
    Subscription = subscriber.Subscription
    TargetKind = scope.TargetKind

    # ---Exceptions---
    InvalidArgumentError = scope.InvalidArgumentError
    AmbiguousUnsubscribeWarning = scope.AmbiguousUnsubscribeWarning

    # ---Modules---
    broker = broker
    handlers = handlers
    scope = scope
    subscriber = subscriber
    topics = topics
    # -------------------------------------------------------------------------

    def __init__(self, name: str) -> None:
        super().__init__(name)
        assert self._PUBSUB_IMPORT_GUARD is True

    @staticmethod
    def get_broker() -> broker.Broker:
        return broker.get_broker()

    @staticmethod
    def get_default_scope() -> scope.Scope:
        global _DEFAULT_SCOPE
        if _DEFAULT_SCOPE is None:
            _DEFAULT_SCOPE = scope.Scope()

        return _DEFAULT_SCOPE

    def sub(self, topic: str, listener: subscriber.LISTENER) -> str:
        return self.get_default_scope().sub(topic, listener)

    def once(self, topic: str, listener: subscriber.LISTENER) -> str:
        return self.get_default_scope().once(topic, listener)

    def pub(self, topic: str, data: Any = None) -> "asyncio.Future[bool]":
        return self.get_default_scope().pub(topic, data)

    def pub_sync(self, topic: str, data: Any = None) -> bool:
        return self.get_default_scope().pub_sync(topic, data)

    def unsub(
        self,
        target: Union[str, subscriber.LISTENER],
        listener: Optional[subscriber.LISTENER] = None,
    ) -> int:
        return self.get_default_scope().unsub(target, listener)


# This is here to protect the _DEFAULT_SCOPE, creating a protective closure.
custom_module = PubSub(sys.modules[__name__].__name__)
custom_module.__path__ = __path__
custom_module.__file__ = __file__
sys.modules[__name__] = custom_module
