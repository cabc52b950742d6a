"""Core contracts used by topicrelay components.

Like the rest of the package this module prefers explicit abstract base classes
over ``typing.Protocol``: subscribers and lookup builders must subclass the
contract so a missing method fails at definition time rather than at the first
delivered result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

import httpx

MatchTopicFunc = Callable[[str, str], bool]
"""Predicate called with ``(topic_received, topic_registered)``."""


class RelayError(RuntimeError):
    """Base class for errors reported by topicrelay."""


class NoPayloadError(RelayError, ValueError):
    """Raised (and reported in results) when an event carries no payload."""


class InvocationError(RelayError):
    """Transport-level failure while invoking a function through the gateway."""


class FunctionLookupError(RelayError):
    """Raised when the topic map cannot be rebuilt from the gateway."""


class CredentialsError(RelayError):
    """Raised when gateway credentials are enabled but cannot be read."""


@dataclass(slots=True)
class InvocationResult:
    """Uniform outcome of a single attempted invocation.

    ``error`` is only set for validation and transport failures. Any HTTP status
    returned by the gateway, including 4xx and 5xx, is reported with
    ``error=None`` and left for subscribers to interpret.
    """

    status: int = 0
    function: str = ""
    topic: str = ""
    body: bytes | None = None
    headers: httpx.Headers | None = None
    error: Exception | None = None
    duration: float = 0.0
    context: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ResponseSubscriber(ABC):
    """Receives every invocation result produced by a dispatcher.

    Results are delivered one at a time and every subscriber is awaited in turn,
    so a subscriber that blocks stalls delivery for all of them.
    """

    @abstractmethod
    async def response(self, result: InvocationResult) -> None:
        """Handle ``result``."""


class LookupBuilder(ABC):
    """Source of the topic to function mapping."""

    @abstractmethod
    async def build(self) -> dict[str, list[str]]:
        """Return a fresh mapping of topic to ordered function names."""
