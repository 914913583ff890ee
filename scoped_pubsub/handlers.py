"""
Exception handling utilities for the broker.

Provides exception handler functions and type definitions for managing errors
that occur while a publish is delivered to subscriber callbacks. Includes
built-in handlers for common patterns: logging and moving on to the next
subscriber (log_and_continue_subscriber_exception, the default), stopping the
delivery with logging (stop_and_log_subscriber_exception), silently
continuing (silent_subscriber_exception), and collecting exceptions for batch
processing (collect_subscriber_exception).
"""

import inspect
import logging
import sys
from typing import Callable

from scoped_pubsub import subscriber


logger = logging.getLogger(__name__)


SUBSCRIPTION_EXCEPTION_HANDLER = Callable[[subscriber.CALLBACK, str, Exception], bool]
"""
Signature for exception handlers.

Exception handlers receive the failing callback, topic, and exception, then
return True to stop delivery or False to continue to remaining subscribers.
"""

STOP = True
CONTINUE = False


def get_callable_name(callable_: Callable) -> str:
    """
    Returns the name of the callable, following __wrapped__ to the listener a
    scope adapted, using class name for items with __self__, __name__ for
    anything with __name__, or str(callback) if neither are found.
    """
    while inspect.isfunction(callable_) and hasattr(callable_, "__wrapped__"):
        callable_ = callable_.__wrapped__

    if hasattr(callable_, "__self__"):
        return f"{callable_.__self__.__class__.__name__}.{callable_.__name__}"
    elif hasattr(callable_, "__name__"):
        return callable_.__name__
    else:
        return str(callable_)


def stop_and_log_subscriber_exception(
    callback: subscriber.CALLBACK, topic: str, exception: Exception
) -> bool:
    """
    Handler that stops delivery to the remaining subscribers and logs the
    raised exception.
    """
    logger.error(
        f"Exception in subscriber:\n"
        f"  Topic:     {topic}\n"
        f"  Callback:  {get_callable_name(callback)}\n"
        f"  Exception: {exception.__class__.__name__}: {exception}",
        exc_info=exception,
    )

    return STOP


def log_and_continue_subscriber_exception(
    callback: subscriber.CALLBACK, topic: str, exception: Exception
) -> bool:
    """Log subscriber errors but continue processing."""
    logger.warning(
        f"Subscriber error (continuing): "
        f"{get_callable_name(callback)} in {topic}: {exception}"
    )
    return CONTINUE


def silent_subscriber_exception(
    _: subscriber.CALLBACK, __: str, ___: Exception
) -> bool:
    """Silently ignore all exceptions."""
    return CONTINUE


exceptions_caught = []


def collect_subscriber_exception(
    callback: subscriber.CALLBACK, topic: str, exception: Exception
) -> bool:
    """
    Collect exceptions for batch processing.
    This appends exceptions caught to scoped_pubsub.handlers.exceptions_caught
    which is a list.
    Empty it with clear_caught_exceptions(). Use this function as an example to create
    a more robust exception collector.
    """
    exceptions_caught.append(
        {
            "callback": get_callable_name(callback),
            "topic": topic,
            "exception": f"{exception.__class__.__name__}: {exception}",
            "exc_info": sys.exc_info(),
        }
    )
    return CONTINUE


def clear_caught_exceptions() -> None:
    """Empty exceptions_caught in place, keeping references to the list valid."""
    exceptions_caught.clear()
