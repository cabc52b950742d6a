"""Dispatcher tying routing, invocation and result fan-out together.

The dispatcher owns two background tasks bound to its lifecycle: a fan-out
loop draining the invoker's result queue into subscribers, and a refresh loop
periodically rebuilding the routing table from a :class:`LookupBuilder`. Both
are started explicitly and terminated by :meth:`Dispatcher.stop`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from asyncio import Task
from contextlib import suppress
from typing import Any

import httpx

from .config import DispatcherConfig
from .contracts import InvocationResult, LookupBuilder, NoPayloadError, ResponseSubscriber
from .invoker import NO_PAYLOAD_MESSAGE, HeaderTypes, Invoker, gateway_route, make_client
from .lookup import FunctionLookupBuilder
from .metrics import invocations_total, refresh_failures_total, topics as topics_gauge
from .options import InvokeOptions
from .printer import ResponsePrinter
from .routing import RoutingTable

logger = logging.getLogger(__name__)


class Dispatcher:
    """Front-end routing events to the functions subscribed to their topic.

    Parameters:
        config: Gateway, invocation and refresh settings.
        lookup_builder: Source of the topic map; defaults to a
            :class:`FunctionLookupBuilder` querying ``config.gateway_url``.
        credentials: Auth for the default lookup builder's requests.
        client: Client used for invocations; one is created from
            ``config.upstream_timeout`` and closed on :meth:`stop` when omitted.
    """

    def __init__(
        self,
        config: DispatcherConfig,
        *,
        lookup_builder: LookupBuilder | None = None,
        credentials: httpx.Auth | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.credentials = credentials
        self._owns_client = client is None
        self.client = client or make_client(config.upstream_timeout)
        self.table = RoutingTable(config.topic_matcher)
        self.invoker = Invoker(
            gateway_route(config.gateway_url, config.async_function_invocation),
            self.client,
            options=config.invoker_options(),
            queue_size=config.queue_size,
            print_request_body=config.print_request_body,
        )
        self._lookup_builder = lookup_builder
        self._owns_lookup_builder = lookup_builder is None
        self._subscribers: list[ResponseSubscriber] = []
        self._subscribers_lock = threading.Lock()
        self._stop = asyncio.Event()
        self._fanout_task: Task[None] | None = None
        self._refresh_task: Task[None] | None = None
        self._stopped = False
        self.last_refresh_error: Exception | None = None

        if config.print_response:
            self.subscribe(ResponsePrinter(config.print_response_body))

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            f"Dispatcher(gateway_url={self.config.gateway_url!r}, state={self.state}, "
            f"topics={len(self.table)}, subscribers={len(self._subscribers)})"
        )

    async def __aenter__(self) -> "Dispatcher":
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    @property
    def state(self) -> str:
        if self._stopped:
            return "stopped"
        if self._refresh_task is not None:
            return "refreshing"
        if self._fanout_task is not None:
            return "running"
        return "created"

    def subscribe(self, subscriber: ResponseSubscriber) -> None:
        """Add ``subscriber`` to receive every invocation result.

        Subscribers are called in registration order and cannot be removed.
        """

        with self._subscribers_lock:
            self._subscribers.append(subscriber)

    def topics(self) -> set[str]:
        return self.table.topics()

    async def dispatch(
        self,
        topic: str,
        payload: bytes | None,
        headers: HeaderTypes | None = None,
        options: InvokeOptions | None = None,
        *,
        context: Any = None,
        timeout: float | None = None,
    ) -> list[InvocationResult]:
        """Invoke every function matching ``topic`` with ``payload``.

        Functions are invoked one after another in routing table order, so
        subscribers see the results of one dispatch in that order. Failures
        are reported in the returned results and never raised.

        Args:
            topic: Topic the event was received on.
            payload: Raw event body forwarded to each function.
            headers: Extra request headers.
            options: Per-call overrides; the topic is always ``topic``.
            context: Opaque value echoed on every result.
            timeout: Deadline in seconds for each HTTP exchange.

        Returns:
            list[InvocationResult]: One result per invoked function, or a
            single ``NoPayloadError`` result for an empty payload.
        """

        if not payload:
            invocations_total.labels(outcome="no_payload").inc()
            result = InvocationResult(
                topic=topic,
                error=NoPayloadError(NO_PAYLOAD_MESSAGE),
                context=context,
            )
            await self.invoker.publish(result)
            return [result]

        options = (options or InvokeOptions()).with_topic(topic)
        functions = self.table.match(topic)
        if not functions:
            logger.debug("no functions registered for topic %s", topic)
        results: list[InvocationResult] = []
        for function in functions:
            result = await self.invoker.invoke(
                function, payload, headers, options, context=context, timeout=timeout
            )
            results.append(result)
        return results

    async def start(self) -> None:
        """Start delivering invocation results to subscribers."""

        self._ensure_fanout()

    def begin_map_builder(self) -> None:
        """Rebuild the routing table now and then every ``rebuild_interval``."""

        self._ensure_fanout()
        if self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop(), name="topicrelay-refresh")

    async def refresh(self) -> bool:
        """Rebuild the routing table once.

        A failed rebuild keeps the current table and is retried on the next
        tick. Returns ``True`` when the table was replaced.
        """

        builder = self._ensure_lookup_builder()
        try:
            lookups = await builder.build()
            self.table.sync(lookups)
        except Exception as exc:
            self.last_refresh_error = exc
            refresh_failures_total.inc()
            logger.warning(
                "topic map rebuild failed, keeping %d topics: %s",
                len(self.table),
                exc,
                exc_info=True,
            )
            return False
        if self.config.print_sync:
            logger.info("Syncing topic map")
        self.last_refresh_error = None
        topics_gauge.set(len(self.table))
        logger.debug("topic map synced: %s", sorted(self.table.topics()))
        return True

    async def stop(self) -> None:
        """Stop both background tasks and release owned clients.

        Results already queued, including those of cancelled invocations,
        are delivered for up to ``stop_timeout`` seconds before the fan-out
        loop is cancelled.
        """

        if self._stopped:
            return
        self._stopped = True
        self._stop.set()
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._refresh_task
        if self._fanout_task is not None:
            try:
                await asyncio.wait_for(self._drain(), timeout=self.config.stop_timeout)
            except asyncio.TimeoutError:
                logger.error(
                    "dispatcher shutdown timed out after %.2fs; %d results undelivered",
                    self.config.stop_timeout,
                    self.invoker.responses.qsize(),
                )
            finally:
                self._fanout_task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._fanout_task
        await self.invoker.close()
        if self._owns_client:
            await self.client.aclose()
        if self._owns_lookup_builder and isinstance(self._lookup_builder, FunctionLookupBuilder):
            await self._lookup_builder.aclose()
        logger.info("dispatcher stopped")

    async def _drain(self) -> None:
        await self.invoker.flush()
        await self.invoker.responses.join()

    def _ensure_fanout(self) -> None:
        if self._stopped:
            raise RuntimeError("dispatcher has been stopped")
        if self._fanout_task is None:
            self._fanout_task = asyncio.create_task(self._fanout_loop(), name="topicrelay-fanout")
            logger.info("dispatcher started: gateway=%s", self.config.gateway_url)

    def _ensure_lookup_builder(self) -> LookupBuilder:
        if self._lookup_builder is None:
            self._lookup_builder = FunctionLookupBuilder(
                self.config.gateway_url,
                self.config.topic_annotation_delimiter,
                client=make_client(self.config.upstream_timeout, auth=self.credentials),
                namespace=self.config.namespace,
            )
        return self._lookup_builder

    async def _fanout_loop(self) -> None:
        responses = self.invoker.responses
        while True:
            result = await responses.get()
            try:
                await self._deliver(result)
            finally:
                responses.task_done()

    async def _deliver(self, result: InvocationResult) -> None:
        with self._subscribers_lock:
            subscribers = tuple(self._subscribers)
        for subscriber in subscribers:
            try:
                await subscriber.response(result)
            except Exception as exc:
                logger.error("Subscriber %r failed", subscriber, exc_info=exc)

    async def _refresh_loop(self) -> None:
        try:
            while True:
                await self.refresh()
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.config.rebuild_interval)
                    return
                except asyncio.TimeoutError:
                    continue
        except asyncio.CancelledError:
            logger.info("refresh loop cancelled; shutting down")
            raise
