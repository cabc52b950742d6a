"""Topic routing table with a pluggable match predicate."""

from __future__ import annotations

import threading
from fnmatch import fnmatchcase
from types import MappingProxyType
from typing import Mapping, Sequence

from .contracts import MatchTopicFunc


def match_exact(topic_received: str, topic_registered: str) -> bool:
    return topic_received == topic_registered


def match_case_insensitive(topic_received: str, topic_registered: str) -> bool:
    return topic_received.casefold() == topic_registered.casefold()


def match_glob(topic_received: str, topic_registered: str) -> bool:
    """Treat the registered topic as a shell-style pattern, e.g. ``orders.*``."""

    return fnmatchcase(topic_received, topic_registered)


class RoutingTable:
    """Mapping of topic to the functions registered for it.

    The table is replaced wholesale by :meth:`sync`. Each sync stores a new
    read-only snapshot and swaps the reference under ``_lock``; readers grab
    the current snapshot under the same lock and iterate it afterwards, so a
    concurrent sync is observed either fully or not at all.
    """

    def __init__(self, match_func: MatchTopicFunc | None = None) -> None:
        self._match_func: MatchTopicFunc = match_func or match_exact
        self._lock = threading.Lock()
        self._lookup: Mapping[str, tuple[str, ...]] = MappingProxyType({})

    @property
    def match_func(self) -> MatchTopicFunc:
        return self._match_func

    def _snapshot(self) -> Mapping[str, tuple[str, ...]]:
        with self._lock:
            return self._lookup

    def match(self, topic: str) -> list[str]:
        """Return every function registered under a key matching ``topic``.

        Handler lists are concatenated in key order without de-duplication;
        an unmatched topic yields an empty list.
        """

        functions: list[str] = []
        for key, registered in self._snapshot().items():
            if self._match_func(topic, key):
                functions.extend(registered)
        return functions

    def sync(self, mapping: Mapping[str, Sequence[str]]) -> None:
        """Replace the whole table with ``mapping``."""

        updated = MappingProxyType({key: tuple(values) for key, values in mapping.items()})
        with self._lock:
            self._lookup = updated

    def topics(self) -> set[str]:
        return set(self._snapshot())

    def __len__(self) -> int:
        return len(self._snapshot())

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        name = getattr(self._match_func, "__name__", repr(self._match_func))
        return f"RoutingTable(topics={len(self)}, match_func={name})"
