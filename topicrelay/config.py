"""Dispatcher configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .contracts import MatchTopicFunc
from .options import InvokerOptions

DEFAULT_USER_AGENT = "topicrelay"


@dataclass(frozen=True, slots=True)
class DispatcherConfig:
    """Settings for a :class:`~topicrelay.dispatcher.Dispatcher`.

    Attributes:
        gateway_url: Base URL of the gateway, e.g. ``http://gateway:8080``.
        upstream_timeout: Overall timeout in seconds for gateway requests.
        rebuild_interval: Seconds between topic map rebuilds.
        topic_annotation_delimiter: Separator used when a function registers
            several topics in one ``topic`` annotation.
        async_function_invocation: Invoke through ``/async-function`` instead
            of ``/function``.
        async_function_callback_url: Default ``X-Callback-Url`` for
            asynchronous invocations.
        content_type: Default ``Content-Type``; omitted when empty.
        user_agent: ``User-Agent`` sent with invocations, e.g.
            ``company/kafka-connector``.
        namespace: Only map functions of this namespace; all namespaces when
            empty.
        send_topic: Forward the triggering topic in ``X-Topic``.
        topic_matcher: Predicate matching received topics against registered
            ones; exact equality when ``None``.
        print_response: Subscribe a logging subscriber on construction.
        print_response_body: Include response bodies in that subscriber's logs.
        print_request_body: Log request bodies before invoking.
        print_sync: Log every topic map rebuild at INFO level.
        queue_size: Capacity of the result queue feeding subscribers.
        stop_timeout: Seconds to wait for queued results to be delivered on stop.
    """

    gateway_url: str
    upstream_timeout: float = 30.0
    rebuild_interval: float = 30.0
    topic_annotation_delimiter: str = ","
    async_function_invocation: bool = False
    async_function_callback_url: str = ""
    content_type: str = ""
    user_agent: str = DEFAULT_USER_AGENT
    namespace: str = ""
    send_topic: bool = False
    topic_matcher: MatchTopicFunc | None = None
    print_response: bool = False
    print_response_body: bool = False
    print_request_body: bool = False
    print_sync: bool = False
    queue_size: int = 8
    stop_timeout: float | None = 10.0

    def __post_init__(self) -> None:
        if not self.gateway_url:
            raise ValueError("gateway_url must not be empty")
        if self.upstream_timeout <= 0:
            raise ValueError("upstream_timeout must be greater than 0")
        if self.rebuild_interval <= 0:
            raise ValueError("rebuild_interval must be greater than 0")
        if self.queue_size <= 0:
            raise ValueError("queue_size must be greater than 0")
        if self.stop_timeout is not None and self.stop_timeout <= 0:
            raise ValueError("stop_timeout must be greater than 0 when provided")

    def invoker_options(self) -> InvokerOptions:
        return InvokerOptions(
            content_type=self.content_type,
            async_callback_url=self.async_function_callback_url,
            send_topic=self.send_topic,
            user_agent=self.user_agent,
        )
