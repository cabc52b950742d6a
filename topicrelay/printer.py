"""Subscriber logging every invocation result."""

from __future__ import annotations

import logging

from .contracts import InvocationResult, ResponseSubscriber

logger = logging.getLogger(__name__)


class ResponsePrinter(ResponseSubscriber):
    def __init__(self, print_body: bool = False) -> None:
        self.print_body = print_body

    async def response(self, result: InvocationResult) -> None:  # type: ignore[override]
        if result.error is not None:
            logger.warning(
                "invocation error: %s (function=%s topic=%s)",
                result.error,
                result.function,
                result.topic,
            )
            return
        logger.info(
            "invocation result: [%d] %s => %s (%d bytes) in %.3fs",
            result.status,
            result.topic,
            result.function,
            len(result.body or b""),
            result.duration,
        )
        if self.print_body:
            logger.info("%s body: %s", result.function, (result.body or b"").decode(errors="replace"))
