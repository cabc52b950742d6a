"""HTTP invoker built on httpx.AsyncClient."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping

import httpx

from .contracts import InvocationError, InvocationResult, NoPayloadError
from .metrics import invocation_duration_seconds, invocations_total
from .options import InvokeOptions, InvokerOptions

CONNECTOR_HEADER = "X-Connector"
CONNECTOR_ID = "topicrelay"
NO_PAYLOAD_MESSAGE = "no message to send"
UNAVAILABLE_STATUS = 503

HeaderTypes = Mapping[str, str]

logger = logging.getLogger(__name__)


def make_client(timeout: float, *, auth: httpx.Auth | None = None) -> httpx.AsyncClient:
    """Create the client shared by all invocations of a dispatcher."""

    return httpx.AsyncClient(timeout=timeout, auth=auth)


def gateway_route(gateway_url: str, async_invocation: bool) -> str:
    route = "async-function" if async_invocation else "function"
    return f"{gateway_url.rstrip('/')}/{route}"


class Invoker:
    """Invoke functions through the gateway and publish every outcome.

    Each call to :meth:`invoke` produces exactly one :class:`InvocationResult`,
    which is both returned and put on :attr:`responses`. The queue is bounded,
    so ``invoke`` waits while its consumer is behind.

    Parameters:
        gateway_url: Base URL including the ``/function`` or
            ``/async-function`` route; function names are appended to it.
        client: Shared ``httpx.AsyncClient``; its timeout bounds each request.
        options: Header defaults applied to every request.
        queue_size: Capacity of :attr:`responses`.
        print_request_body: Log request bodies at INFO level.
    """

    def __init__(
        self,
        gateway_url: str,
        client: httpx.AsyncClient,
        *,
        options: InvokerOptions | None = None,
        queue_size: int = 8,
        print_request_body: bool = False,
    ) -> None:
        if queue_size <= 0:
            raise ValueError("queue_size must be greater than 0")
        self.gateway_url = gateway_url.rstrip("/")
        self.client = client
        self.options = options or InvokerOptions()
        self.print_request_body = print_request_body
        self.responses: asyncio.Queue[InvocationResult] = asyncio.Queue(maxsize=queue_size)
        self._pending_publishes: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Invoker(gateway_url={self.gateway_url!r}, options={self.options!r})"

    async def publish(self, result: InvocationResult) -> None:
        await self.responses.put(result)

    async def flush(self) -> None:
        """Wait until results of cancelled invocations are on :attr:`responses`."""

        while self._pending_publishes:
            await asyncio.gather(*self._pending_publishes, return_exceptions=True)

    async def close(self) -> None:
        """Cancel results still waiting for room on :attr:`responses`."""

        pending = tuple(self._pending_publishes)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def _publish_later(self, result: InvocationResult) -> None:
        task = asyncio.create_task(self.publish(result), name=f"topicrelay-publish-{result.function}")
        self._pending_publishes.add(task)
        task.add_done_callback(self._pending_publishes.discard)

    async def invoke(
        self,
        function: str,
        payload: bytes | None,
        headers: HeaderTypes | None = None,
        options: InvokeOptions | None = None,
        *,
        context: Any = None,
        timeout: float | None = None,
    ) -> InvocationResult:
        """Invoke ``function`` with ``payload`` and return the outcome.

        Args:
            function: Function name, optionally suffixed with ``.namespace``.
            payload: Raw request body; an empty payload is rejected without
                contacting the gateway.
            headers: Caller headers copied onto the request before the
                invoker's own headers are applied.
            options: Per-call overrides for topic, content type and callback URL.
            context: Opaque value echoed on the result for tracing.
            timeout: Optional deadline in seconds for the HTTP exchange. Expiry
                is reported like any other transport failure.

        Returns:
            InvocationResult: The same result that was published on
            :attr:`responses`.
        """

        options = options or InvokeOptions()
        if not payload:
            invocations_total.labels(outcome="no_payload").inc()
            result = InvocationResult(
                function=function,
                topic=options.topic,
                error=NoPayloadError(NO_PAYLOAD_MESSAGE),
                context=context,
            )
            await self.publish(result)
            return result

        url = f"{self.gateway_url}/{function}"
        request_headers = self.build_headers(headers, options)
        logger.info("invoke function: %s", function)
        if self.print_request_body:
            logger.info("request body for %s: %r", function, payload)

        started = time.perf_counter()
        try:
            async with asyncio.timeout(timeout):
                resp = await self.client.send(self._build_request(url, payload, request_headers))
        except asyncio.CancelledError as exc:
            self._publish_later(self._failure(function, url, options.topic, exc, started, context))
            raise
        except (httpx.HTTPError, httpx.InvalidURL, TimeoutError) as exc:
            result = self._failure(function, url, options.topic, exc, started, context)
        else:
            duration = time.perf_counter() - started
            invocations_total.labels(outcome="success").inc()
            invocation_duration_seconds.observe(duration)
            logger.debug("POST %s -> %s in %.3fs", url, resp.status_code, duration)
            result = InvocationResult(
                status=resp.status_code,
                function=function,
                topic=options.topic,
                body=resp.content,
                headers=resp.headers,
                duration=duration,
                context=context,
            )

        await self.publish(result)
        return result

    def build_headers(
        self, headers: HeaderTypes | None, options: InvokeOptions
    ) -> httpx.Headers:
        merged = httpx.Headers(headers)
        if self.options.user_agent:
            merged["User-Agent"] = self.options.user_agent
        if self.options.send_topic and options.topic:
            merged["X-Topic"] = options.topic
        callback_url = options.async_callback_url or self.options.async_callback_url
        if callback_url:
            merged["X-Callback-Url"] = callback_url
        content_type = options.content_type or self.options.content_type
        if content_type:
            merged["Content-Type"] = content_type
        if CONNECTOR_HEADER not in merged:
            merged[CONNECTOR_HEADER] = CONNECTOR_ID
        return merged

    def _build_request(
        self, url: str, payload: bytes, headers: httpx.Headers
    ) -> httpx.Request:
        request = self.client.build_request("POST", url, content=payload, headers=headers)
        if "User-Agent" not in headers:
            # Without a configured agent the header is omitted, not httpx's default.
            request.headers.pop("User-Agent", None)
        return request

    def _failure(
        self,
        function: str,
        url: str,
        topic: str,
        exc: BaseException,
        started: float,
        context: Any,
    ) -> InvocationResult:
        duration = time.perf_counter() - started
        invocations_total.labels(outcome="error").inc()
        invocation_duration_seconds.observe(duration)
        error = InvocationError(
            f"unable to invoke {function}, error: unable to reach endpoint {url}, "
            f"error: {str(exc) or type(exc).__name__}"
        )
        error.__cause__ = exc
        logger.warning("invocation of %s failed: %s", function, error)
        return InvocationResult(
            status=UNAVAILABLE_STATUS,
            function=function,
            topic=topic,
            error=error,
            duration=duration,
            context=context,
        )
