"""Tests for the topicrelay CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import sys

import pytest

from topicrelay import cli
from topicrelay.contracts import CredentialsError


def _args(**overrides) -> argparse.Namespace:
    values = dict(
        gateway="http://gateway.test",
        topic="payment.received",
        payload="Test message",
        interval=0.01,
        count=2,
        async_invocation=False,
        callback_url="",
        content_type="text/plain",
        namespace="",
        rebuild_interval=30.0,
        upstream_timeout=5.0,
        delimiter=",",
        send_topic=True,
        print_response=False,
        print_response_body=False,
        log_level="INFO",
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def test_cli_main_invokes_async_entrypoint(monkeypatch) -> None:
    ran: list[argparse.Namespace] = []

    async def fake_run(args: argparse.Namespace) -> None:
        ran.append(args)

    monkeypatch.setattr(cli, "_run_tester", fake_run)
    monkeypatch.setattr(
        sys, "argv", ["topicrelay", "--gateway", "http://gw:8080", "--topic", "orders", "--send-topic"]
    )
    cli.main()
    assert ran and ran[0].gateway == "http://gw:8080"
    assert ran[0].topic == "orders"
    assert ran[0].send_topic is True
    assert ran[0].count is None


def test_cli_rejects_non_positive_interval(monkeypatch) -> None:
    monkeypatch.setattr(sys, "argv", ["topicrelay", "--interval", "0"])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == 2


def test_cli_reports_cli_errors(monkeypatch, capsys) -> None:
    async def fake_run(args: argparse.Namespace) -> None:
        raise cli.CLIError("boom")

    monkeypatch.setattr(cli, "_run_tester", fake_run)
    monkeypatch.setattr(sys, "argv", ["topicrelay"])
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    assert excinfo.value.code == 1
    assert "topicrelay: boom" in capsys.readouterr().err


def test_build_config_maps_flags() -> None:
    config = cli._build_config(
        _args(async_invocation=True, callback_url="http://cb", namespace="fn", delimiter="|")
    )
    assert config.gateway_url == "http://gateway.test"
    assert config.async_function_invocation is True
    assert config.async_function_callback_url == "http://cb"
    assert config.namespace == "fn"
    assert config.topic_annotation_delimiter == "|"
    assert config.send_topic is True
    assert config.print_sync is True


def test_build_config_wraps_validation_errors() -> None:
    with pytest.raises(cli.CLIError, match="Invalid configuration"):
        cli._build_config(_args(gateway=""))


def test_run_tester_dispatches_count_messages(monkeypatch) -> None:
    created: dict[str, object] = {"dispatched": []}

    class FakeDispatcher:
        def __init__(self, config, *, credentials) -> None:
            created["config"] = config
            created["credentials"] = credentials

        async def __aenter__(self):
            created["started"] = True
            return self

        async def __aexit__(self, *exc):
            created["stopped"] = True

        def begin_map_builder(self) -> None:
            created["map_builder"] = True

        async def dispatch(self, topic: str, payload: bytes):
            created["dispatched"].append((topic, payload))
            return []

    monkeypatch.setattr(cli.logging, "basicConfig", lambda **_: None)
    monkeypatch.setattr(cli, "Dispatcher", FakeDispatcher)
    monkeypatch.setattr(cli, "get_credentials", lambda: "creds")

    asyncio.run(cli._run_tester(_args()))

    assert created["credentials"] == "creds"
    assert created["started"] and created["stopped"] and created["map_builder"]
    assert created["dispatched"] == [
        ("payment.received", b"Test message"),
        ("payment.received", b"Test message"),
    ]


def test_run_tester_wraps_credentials_errors(monkeypatch) -> None:
    def _fail():
        raise CredentialsError("no secrets")

    monkeypatch.setattr(cli.logging, "basicConfig", lambda **_: None)
    monkeypatch.setattr(cli, "get_credentials", _fail)
    with pytest.raises(cli.CLIError, match="no secrets"):
        asyncio.run(cli._run_tester(_args()))
