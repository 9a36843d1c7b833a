"""Tests for trace pruning and the root invocation policies."""

import json

import pytest

from tests.fixtures import invocation, subcall, trace_bytes
from tracecheck.contracts import ExecutionTraceNode, TraceDecodeError, TraceSchemaVersion
from tracecheck.engine.trace_filter import filter_invocations, filter_subcalls, filter_trace, policy_a, policy_b

WATCHED = frozenset({"f0100"})


def node(from_: str, to: str, *children: ExecutionTraceNode, exit_code: int = 0) -> ExecutionTraceNode:
    return ExecutionTraceNode(from_address=from_, to_address=to, exit_code=exit_code, children=children)


class TestFilterSubcalls:
    def test_matches_become_leaves(self) -> None:
        tree = [node("f0100", "f0200", node("f0200", "f0100"))]

        matches = filter_subcalls(tree, WATCHED)

        assert [(m.from_address, m.to_address) for m in matches] == [("f0100", "f0200"), ("f0200", "f0100")]
        assert all(m.children == () for m in matches)

    def test_level_order(self) -> None:
        tree = [
            node("f0900", "f0901", node("f0100", "f0001")),
            node("f0100", "f0002"),
        ]

        matches = filter_subcalls(tree, WATCHED)

        # The second root-level subcall comes before the deeper match
        assert [m.to_address for m in matches] == ["f0002", "f0001"]

    def test_error_subtree_is_dropped(self) -> None:
        tree = [node("f0100", "f0200", node("f0200", "f0100"), exit_code=33)]

        assert filter_subcalls(tree, WATCHED) == []

    def test_non_matching_parent_still_contributes_descendants(self) -> None:
        tree = [node("f0900", "f0901", node("f0901", "f0902", node("f0902", "f0100")))]

        matches = filter_subcalls(tree, WATCHED)

        assert [m.to_address for m in matches] == ["f0100"]

    def test_missing_receipt_is_not_an_error(self) -> None:
        tree = [ExecutionTraceNode(from_address="f0100", to_address="f0200", exit_code=None)]

        assert len(filter_subcalls(tree, WATCHED)) == 1

    def test_input_is_not_modified(self) -> None:
        child = node("f0200", "f0100")
        tree = [node("f0100", "f0200", child)]

        filter_subcalls(tree, WATCHED)

        assert tree[0].children == (child,)


class TestPolicies:
    def test_policy_a_keeps_invocation_with_matching_descendants(self) -> None:
        root = node("f0900", "f0901")
        descendant = node("f0901", "f0100")

        assert policy_a(root, [descendant], WATCHED)
        assert not policy_a(root, [], WATCHED)

    def test_policy_b_keeps_own_matches_only(self) -> None:
        root = node("f0900", "f0901")

        assert not policy_b(root, [node("f0901", "f0100")], WATCHED)
        assert policy_b(node("f0100", "f0901"), [], WATCHED)

    @pytest.mark.parametrize(
        ("version", "kept"),
        [(TraceSchemaVersion.V1, 1), (TraceSchemaVersion.V2, 0)],
    )
    def test_version_selects_policy(self, version: TraceSchemaVersion, kept: int) -> None:
        roots = [node("f0900", "f0901", node("f0901", "f0100"))]

        assert len(filter_invocations(roots, WATCHED, version)) == kept

    def test_kept_invocation_carries_flattened_descendants(self) -> None:
        roots = [node("f0100", "f0200", node("f0200", "f0300", node("f0300", "f0100")))]

        (kept,) = filter_invocations(roots, WATCHED, TraceSchemaVersion.V2)

        assert [(c.from_address, c.to_address) for c in kept.children] == [("f0300", "f0100")]
        assert kept.children[0].children == ()

    def test_erroring_invocation_is_dropped(self) -> None:
        roots = [node("f0100", "f0200", exit_code=1)]

        assert filter_invocations(roots, WATCHED, TraceSchemaVersion.V1) == ()


class TestFilterTrace:
    def test_filters_and_re_encodes(self) -> None:
        data = trace_bytes(
            invocation("f0100", "f0200", 5, subcalls=[subcall("f0200", "f0300", 1), subcall("f0200", "f0100", 2)]),
            invocation("f0900", "f0901", 7),
        )

        raw = json.loads(filter_trace(500000, WATCHED, data))

        assert len(raw["Trace"]) == 1
        assert raw["Trace"][0]["Msg"]["From"] == "f0100"
        subcalls = raw["Trace"][0]["ExecutionTrace"]["Subcalls"]
        assert [s["Msg"]["To"] for s in subcalls] == ["f0100"]
        assert raw["Root"] == {"/": "bafyroot"}

    def test_upgrade_height_selects_policy(self) -> None:
        data = trace_bytes(invocation("f0900", "f0901", subcalls=[subcall("f0901", "f0100", 1)]))

        v1 = json.loads(filter_trace(10, WATCHED, data, upgrade_height=10))
        v2 = json.loads(filter_trace(11, WATCHED, data, upgrade_height=10))

        assert len(v1["Trace"]) == 1
        assert v2["Trace"] == []

    def test_malformed_trace_raises(self) -> None:
        with pytest.raises(TraceDecodeError):
            filter_trace(1, WATCHED, b"{")
