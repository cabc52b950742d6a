"""Build the topic map from function annotations on the gateway."""

from __future__ import annotations

import logging
from typing import Any, Iterable

import httpx

from .contracts import FunctionLookupError, LookupBuilder

TOPIC_ANNOTATION = "topic"

logger = logging.getLogger(__name__)


def append_service_map(
    key: str, function: str, namespace: str, service_map: dict[str, list[str]]
) -> dict[str, list[str]]:
    key = key.strip()
    if key:
        path = f"{function}.{namespace}" if namespace else function
        service_map.setdefault(key, []).append(path)
    return service_map


def build_service_map(
    functions: Iterable[dict[str, Any]],
    topic_delimiter: str,
    namespace: str,
    service_map: dict[str, list[str]],
) -> dict[str, list[str]]:
    """Register every function carrying a ``topic`` annotation.

    The annotation is split on ``topic_delimiter`` when it occurs in the value;
    surrounding whitespace is trimmed and empty topics are skipped.
    """

    for function in functions:
        annotations = function.get("annotations") or {}
        topic_names = annotations.get(TOPIC_ANNOTATION)
        if topic_names is None or not function.get("name"):
            continue
        if topic_delimiter and topic_delimiter in topic_names:
            topics = topic_names.split(topic_delimiter)
        else:
            topics = [topic_names]
        for topic in topics:
            append_service_map(topic, function["name"], namespace, service_map)
    return service_map


class FunctionLookupBuilder(LookupBuilder):
    """Query the gateway for functions and the topics they subscribe to.

    Parameters:
        gateway_url: Base URL of the gateway.
        topic_delimiter: Separator for multi-topic annotations.
        client: Client used for the ``/system`` API, configured with
            credentials when the gateway requires them.
        namespace: Restrict the lookup to one namespace; all namespaces
            reported by the gateway when empty.
    """

    def __init__(
        self,
        gateway_url: str,
        topic_delimiter: str,
        *,
        client: httpx.AsyncClient,
        namespace: str = "",
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self.topic_delimiter = topic_delimiter
        self.client = client
        self.namespace = namespace

    async def build(self) -> dict[str, list[str]]:
        if self.namespace:
            namespaces = [self.namespace]
        else:
            namespaces = await self._get_namespaces() or [""]

        service_map: dict[str, list[str]] = {}
        for namespace in namespaces:
            functions = await self._get_functions(namespace)
            build_service_map(functions, self.topic_delimiter, namespace, service_map)
        logger.debug("built topic map with %d topics from %d namespaces", len(service_map), len(namespaces))
        return service_map

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_namespaces(self) -> list[str]:
        return await self._get_json("/system/namespaces", None, "namespaces")

    async def _get_functions(self, namespace: str) -> list[dict[str, Any]]:
        params = {"namespace": namespace} if namespace else None
        return await self._get_json("/system/functions", params, f"functions in: {namespace!r}")

    async def _get_json(self, path: str, params: dict[str, str] | None, what: str) -> Any:
        try:
            resp = await self.client.get(f"{self.gateway_url}{path}", params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise FunctionLookupError(f"unable to get {what}, error: {exc}") from exc
        if not isinstance(data, list):
            raise FunctionLookupError(f"unable to get {what}, error: expected a JSON list")
        return data
