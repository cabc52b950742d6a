"""Tests for the logging response subscriber."""

from __future__ import annotations

import asyncio
import logging

from topicrelay.contracts import InvocationError, InvocationResult
from topicrelay.printer import ResponsePrinter


def test_printer_logs_success_and_body(caplog) -> None:
    result = InvocationResult(status=200, function="fn.ns", topic="orders", body=b"hello", duration=0.25)
    with caplog.at_level(logging.INFO, logger="topicrelay.printer"):
        asyncio.run(ResponsePrinter(print_body=True).response(result))

    messages = [record.getMessage() for record in caplog.records]
    assert any("[200] orders => fn.ns (5 bytes)" in message for message in messages)
    assert any("fn.ns body: hello" in message for message in messages)


def test_printer_omits_body_by_default(caplog) -> None:
    result = InvocationResult(status=404, function="fn", topic="t", body=b"missing")
    with caplog.at_level(logging.INFO, logger="topicrelay.printer"):
        asyncio.run(ResponsePrinter().response(result))

    assert len(caplog.records) == 1
    assert "missing" not in caplog.records[0].getMessage()


def test_printer_logs_errors_as_warnings(caplog) -> None:
    result = InvocationResult(status=503, function="fn", topic="t", error=InvocationError("unreachable"))
    with caplog.at_level(logging.INFO, logger="topicrelay.printer"):
        asyncio.run(ResponsePrinter(print_body=True).response(result))

    assert [record.levelno for record in caplog.records] == [logging.WARNING]
    assert "unreachable" in caplog.records[0].getMessage()
