"""
Topic helpers shared by the broker and every scope.

Topics are dot delimited hierarchical names. A subscription to 'user' also
receives publishes to 'user.loggedIn' and 'user.loggedIn.admin', but never to
'userX'. The same rule decides delivery in the broker and removal in
Scope.unsub(), so both go through matches().
"""

import re


SEPARATOR = "."

TOKEN_PREFIX = "uid_"
TOKEN_PATTERN = re.compile(r"^uid_[0-9]+$")
"""Format of the opaque tokens handed out by the broker."""


def matches(topic: str, pattern: str) -> bool:
    """
    Check if a topic is the pattern itself or one of its descendants.

    Args:
        topic (str): The topic being published, or the registered topic being
            considered for removal.
        pattern (str): The topic subscribed to, or the topic given to unsub.
    Returns:
        bool: True if topic == pattern or topic starts with pattern + '.'.
    """
    if topic == pattern:
        return True

    return topic.startswith(pattern + SEPARATOR)


def is_token(value: object) -> bool:
    """True if value is a string in the broker's token format."""
    return isinstance(value, str) and TOKEN_PATTERN.match(value) is not None


def make_token(index: int) -> str:
    return f"{TOKEN_PREFIX}{index}"


def scope_topic(namespace: str, topic: str) -> str:
    """Prefix a topic with a scope namespace."""
    return f"{namespace}{SEPARATOR}{topic}"


def unscope_topic(namespace: str, scoped_topic: str) -> str:
    """
    Strip a scope namespace from a topic.
    Topics outside the namespace are returned unchanged.
    """
    prefix = namespace + SEPARATOR
    if scoped_topic.startswith(prefix):
        return scoped_topic[len(prefix):]

    return scoped_topic
