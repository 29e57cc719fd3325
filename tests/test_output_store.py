"""Tests for RunOutputStore and input resolution."""

from flowrun.graph.edge import EdgeSpec
from flowrun.graph.output_store import (
    NO_INPUT,
    SEPARATOR,
    OutputKey,
    RunOutputStore,
    join_values,
    value_of,
)


def _edge(source, port=None):
    return EdgeSpec(id=f"{source}:{port}", source=source, target="t", source_port=port)


def test_output_key_str():
    assert str(OutputKey("node")) == "node"
    assert str(OutputKey("node", "true")) == "node:true"


def test_ids_containing_colons_do_not_collide_with_ports():
    store = RunOutputStore()
    store.record("a:b", "whole node")
    store.record("a", "primary", {"b": "port value"})

    assert store.get("a:b") == "whole node"
    assert store.get("a", "b") == "port value"
    assert store.get("a") == "primary"
    assert len(store) == 3


def test_record_keeps_primary_and_ports():
    store = RunOutputStore()
    store.record("fn", "T", {"true": "T", "false": ""})

    assert OutputKey("fn") in store
    assert OutputKey("fn", "false") in store
    assert len(store) == 3
    store.clear()
    assert len(store) == 0


def test_resolve_input_joins_in_edge_order_and_drops_empties():
    store = RunOutputStore()
    store.record("x", "first")
    store.record("y", "")
    store.record("z", "third")

    resolved = store.resolve_input([_edge("x"), _edge("y"), _edge("z"), _edge("missing")], "seed")

    assert resolved.text == f"first{SEPARATOR}third"
    assert resolved.values == ["first", "third"]
    assert resolved.connection_count == 4
    assert resolved.from_connections


def test_resolve_input_falls_back_to_seed_then_placeholder():
    store = RunOutputStore()
    store.record("fn", "", {"true": "", "false": "value"})

    with_seed = store.resolve_input([_edge("fn", "true")], "seed")
    without_seed = store.resolve_input([], "")

    assert with_seed.text == "seed"
    assert not with_seed.from_connections
    assert without_seed.text == NO_INPUT


def test_port_edge_reads_only_that_port():
    store = RunOutputStore()
    store.record("fn", f"T{SEPARATOR}F", {"true": "T", "false": "F"})

    assert store.resolve_edge(_edge("fn", "false")) == "F"
    assert store.resolve_edge(_edge("fn")) == f"T{SEPARATOR}F"


def test_value_of_handles_port_maps():
    output = {"a": "A", "b": "", "c": "C"}

    assert value_of(output, "a") == "A"
    assert value_of(output, "zzz") is None
    assert value_of(output) == f"A{SEPARATOR}C"
    assert value_of("plain", "ignored") == "plain"
    assert value_of(None) is None


def test_join_values_skips_empty_and_none():
    assert join_values(["a", None, "", "b"]) == f"a{SEPARATOR}b"
    assert join_values([]) == ""
