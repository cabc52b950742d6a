"""Tests for the routing table and bundled topic matchers."""

from __future__ import annotations

import threading

import pytest

from topicrelay.routing import (
    RoutingTable,
    match_case_insensitive,
    match_exact,
    match_glob,
)


def test_default_match_is_exact_equality() -> None:
    table = RoutingTable()
    table.sync({"payment": ["a.fn"]})

    assert table.match("payment") == ["a.fn"]
    assert table.match("Payment") == []
    assert table.match_func is match_exact


def test_match_concatenates_lists_in_key_order_without_dedup() -> None:
    table = RoutingTable(lambda received, registered: registered.startswith(received))
    table.sync({"orders.created": ["a", "b"], "users": ["c"], "orders.paid": ["b", "a", "a"]})

    assert table.match("orders") == ["a", "b", "b", "a", "a"]
    assert table.match("nothing") == []


def test_sync_replaces_instead_of_merging() -> None:
    table = RoutingTable()
    table.sync({"old": ["x"], "kept": ["y"]})
    table.sync({"kept": ["z"]})

    assert table.topics() == {"kept"}
    assert table.match("old") == []
    assert table.match("kept") == ["z"]
    assert len(table) == 1


def test_sync_copies_the_mapping() -> None:
    mapping = {"t": ["a"]}
    table = RoutingTable()
    table.sync(mapping)
    mapping["t"].append("b")
    mapping["u"] = ["c"]

    assert table.match("t") == ["a"]
    assert table.topics() == {"t"}

    result = table.match("t")
    result.append("mutated")
    assert table.match("t") == ["a"]


def test_new_table_is_empty() -> None:
    table = RoutingTable(None)
    assert table.topics() == set()
    assert table.match("anything") == []


@pytest.mark.parametrize(
    ("matcher", "received", "registered", "expected"),
    [
        (match_case_insensitive, "Payment", "payment", True),
        (match_case_insensitive, "payments", "payment", False),
        (match_glob, "orders.created", "orders.*", True),
        (match_glob, "users.created", "orders.*", False),
        (match_glob, "orders", "orders", True),
    ],
)
def test_bundled_matchers(matcher, received: str, registered: str, expected: bool) -> None:
    assert matcher(received, registered) is expected


def test_concurrent_sync_never_exposes_mixed_tables() -> None:
    old = {f"t{i}": ["old"] for i in range(50)}
    new = {f"t{i}": ["new"] for i in range(50)}
    table = RoutingTable(lambda received, registered: True)
    table.sync(old)
    stop = threading.Event()
    torn: list[list[str]] = []

    def _writer() -> None:
        while not stop.is_set():
            table.sync(new)
            table.sync(old)

    writer = threading.Thread(target=_writer)
    writer.start()
    try:
        for _ in range(2000):
            seen = table.match("any")
            if len(set(seen)) != 1 or len(seen) != 50:
                torn.append(seen)
    finally:
        stop.set()
        writer.join()

    assert torn == []
