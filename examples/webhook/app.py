"""Webhook connector demo: FastAPI receives events and relays them by topic."""

from __future__ import annotations

import os
from collections import deque
from typing import Any

from fastapi import FastAPI, Request

from topicrelay import Dispatcher, DispatcherConfig, InvocationResult, ResponseSubscriber
from topicrelay.credentials import get_credentials

# Headers that describe the inbound hop and must not be forwarded to functions.
HOP_HEADERS = {"host", "content-length", "connection", "transfer-encoding"}


class RecentResults(ResponseSubscriber):
    """Keep the last results around for the ``/results`` endpoint."""

    def __init__(self, max_items: int = 50) -> None:
        self.items: deque[InvocationResult] = deque(maxlen=max_items)

    async def response(self, result: InvocationResult) -> None:  # type: ignore[override]
        self.items.append(result)


config = DispatcherConfig(
    gateway_url=os.environ.get("gateway_url", "http://127.0.0.1:8080"),
    content_type=os.environ.get("content_type", "application/json"),
    send_topic=True,
    print_response=True,
)
dispatcher = Dispatcher(config, credentials=get_credentials())
recent = RecentResults()
dispatcher.subscribe(recent)
app = FastAPI(title="topicrelay webhook demo")


@app.on_event("startup")
async def start_dispatcher() -> None:
    await dispatcher.start()
    dispatcher.begin_map_builder()


@app.on_event("shutdown")
async def stop_dispatcher() -> None:
    await dispatcher.stop()


@app.get("/health")
async def health() -> dict[str, Any]:
    return {
        "state": dispatcher.state,
        "topics": sorted(dispatcher.topics()),
        "last_refresh_error": repr(dispatcher.last_refresh_error) if dispatcher.last_refresh_error else None,
    }


@app.post("/events/{topic}")
async def receive_event(topic: str, request: Request) -> dict[str, Any]:
    body = await request.body()
    headers = {k: v for k, v in request.headers.items() if k.lower() not in HOP_HEADERS}
    results = await dispatcher.dispatch(topic, body, headers)
    return {"topic": topic, "invoked": [_serialize(result) for result in results]}


@app.get("/results")
async def list_results() -> list[dict[str, Any]]:
    return [_serialize(result) for result in recent.items]


def _serialize(result: InvocationResult) -> dict[str, Any]:
    return {
        "function": result.function,
        "topic": result.topic,
        "status": result.status,
        "error": str(result.error) if result.error else None,
        "duration": round(result.duration, 4),
    }
