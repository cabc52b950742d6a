"""Entry-point for the ``topicrelay`` console script.

Runs a tester connector: the routing table is rebuilt from the gateway and a
fixed payload is dispatched on a topic at a regular interval, which is handy
for checking that functions are annotated and reachable.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Callable

from .config import DispatcherConfig
from .contracts import CredentialsError
from .credentials import get_credentials
from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when the CLI fails to start or configure the dispatcher."""


def _positive_int(name: str) -> Callable[[str], int]:
    def _validate(value: str) -> int:
        try:
            converted = int(value)
        except ValueError as exc:  # pragma: no cover - argparse already reports
            raise argparse.ArgumentTypeError(f"{name} must be an integer") from exc
        if converted <= 0:
            raise argparse.ArgumentTypeError(f"{name} must be greater than 0")
        return converted

    return _validate


def _positive_float(name: str) -> Callable[[str], float]:
    def _validate(value: str) -> float:
        try:
            converted = float(value)
        except ValueError as exc:  # pragma: no cover - argparse already reports
            raise argparse.ArgumentTypeError(f"{name} must be a number") from exc
        if converted <= 0:
            raise argparse.ArgumentTypeError(f"{name} must be greater than 0")
        return converted

    return _validate


def _configure_logging(level_name: str) -> None:
    numeric = logging.getLevelName(level_name.upper())
    if not isinstance(numeric, int):  # pragma: no cover - guarded by argparse choices
        raise CLIError(f"Unknown log level: {level_name}")
    logging.basicConfig(level=numeric, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def _build_config(args: argparse.Namespace) -> DispatcherConfig:
    try:
        return DispatcherConfig(
            gateway_url=args.gateway,
            upstream_timeout=args.upstream_timeout,
            rebuild_interval=args.rebuild_interval,
            topic_annotation_delimiter=args.delimiter,
            async_function_invocation=args.async_invocation,
            async_function_callback_url=args.callback_url,
            content_type=args.content_type,
            namespace=args.namespace,
            send_topic=args.send_topic,
            print_response=args.print_response,
            print_response_body=args.print_response_body,
            print_sync=True,
        )
    except ValueError as exc:
        raise CLIError(f"Invalid configuration: {exc}") from exc


async def _run_tester(args: argparse.Namespace) -> None:
    _configure_logging(args.log_level)
    config = _build_config(args)
    try:
        credentials = get_credentials()
    except CredentialsError as exc:
        raise CLIError(str(exc)) from exc

    payload = args.payload.encode()
    async with Dispatcher(config, credentials=credentials) as dispatcher:
        dispatcher.begin_map_builder()
        sent = 0
        while args.count is None or sent < args.count:
            await asyncio.sleep(args.interval)
            logger.info("dispatching %d bytes on topic %s", len(payload), args.topic)
            await dispatcher.dispatch(args.topic, payload)
            sent += 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Dispatch a test message to functions subscribed to a topic")
    parser.add_argument("--gateway", default="http://127.0.0.1:8080", help="Gateway base URL")
    parser.add_argument("--topic", default="payment.received", help="Topic to publish on")
    parser.add_argument("--payload", default="Test message", help="Message body to send")
    parser.add_argument("--interval", type=_positive_float("interval"), default=10.0)
    parser.add_argument("--count", type=_positive_int("count"), default=None, help="Stop after N messages")
    parser.add_argument("--async-invocation", action="store_true", help="Use the async-function route")
    parser.add_argument("--callback-url", default="", help="X-Callback-Url for async invocations")
    parser.add_argument("--content-type", default="text/plain")
    parser.add_argument("--namespace", default="", help="Only map functions in this namespace")
    parser.add_argument("--rebuild-interval", type=_positive_float("rebuild-interval"), default=30.0)
    parser.add_argument("--upstream-timeout", type=_positive_float("upstream-timeout"), default=30.0)
    parser.add_argument("--delimiter", default=",", help="Separator for multi-topic annotations")
    parser.add_argument("--send-topic", action="store_true", help="Forward the topic in X-Topic")
    parser.add_argument("--print-response", action="store_true", help="Log invocation results")
    parser.add_argument("--print-response-body", action="store_true", help="Include response bodies")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Root logging level",
    )
    args = parser.parse_args()
    try:
        asyncio.run(_run_tester(args))
    except KeyboardInterrupt:  # pragma: no cover - CLI convenience
        print("Received Ctrl+C, stopping dispatcher...", file=sys.stderr)
        raise SystemExit(130)
    except CLIError as exc:
        print(f"topicrelay: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    except Exception as exc:  # pragma: no cover - defensive
        print(f"topicrelay: unexpected failure: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":  # pragma: no cover
    main()
