"""Invocation options.

Header values resolve per call first, then per invoker, and are omitted when
neither level provides one.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class InvokerOptions:
    """Defaults applied to every request sent by an :class:`~topicrelay.invoker.Invoker`.

    Attributes:
        content_type: ``Content-Type`` header value; omitted when empty.
        async_callback_url: ``X-Callback-Url`` header value used by the gateway
            to post the result of an asynchronous invocation.
        send_topic: Forward the triggering topic in the ``X-Topic`` header.
        user_agent: ``User-Agent`` header value; omitted when empty.
    """

    content_type: str = ""
    async_callback_url: str = ""
    send_topic: bool = False
    user_agent: str = ""


@dataclass(frozen=True, slots=True)
class InvokeOptions:
    """Per-call overrides for a single invocation."""

    topic: str = ""
    content_type: str = ""
    async_callback_url: str = ""

    def with_topic(self, topic: str) -> "InvokeOptions":
        return InvokeOptions(
            topic=topic,
            content_type=self.content_type,
            async_callback_url=self.async_callback_url,
        )
