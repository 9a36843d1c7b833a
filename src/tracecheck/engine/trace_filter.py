# src/tracecheck/engine/trace_filter.py
"""Prune a height's execution trace down to calls touching watched addresses.

Descendants are filtered level by level: a node with an error receipt is
dropped with its whole subtree; every other node that touches the watched
set is emitted as a leaf, and the children of every surviving node (matched
or not) form the next level. Matches of a deeper level come after those of
the level above.

Root invocations are kept according to a policy that depends on the trace
schema version:

- policy_a (V1): keep a matching invocation, or a non-matching one whose
  filtered descendants are non-empty.
- policy_b (V2): keep only matching invocations.

A kept invocation carries its filtered descendants as flat children.
"""

import dataclasses
from collections.abc import Callable, Iterable, Sequence

from tracecheck.contracts.enums import TraceSchemaVersion
from tracecheck.contracts.trace import ExecutionTraceNode, TraceDocument
from tracecheck.core import trace_codec
from tracecheck.core.config import NV20_UPGRADE_HEIGHT

WatchedAddressSet = frozenset[str]

# (invocation, filtered descendants, watched) -> keep invocation?
RootPolicy = Callable[[ExecutionTraceNode, Sequence[ExecutionTraceNode], WatchedAddressSet], bool]


def filter_subcalls(subcalls: Iterable[ExecutionTraceNode], watched: WatchedAddressSet) -> list[ExecutionTraceNode]:
    """Matching non-erroring descendants as leaves, in level order."""
    matches: list[ExecutionTraceNode] = []
    level = list(subcalls)
    while level:
        next_level: list[ExecutionTraceNode] = []
        for node in level:
            if node.is_error:
                continue
            next_level.extend(node.children)
            if node.touches(watched):
                matches.append(dataclasses.replace(node, children=()))
        level = next_level
    return matches


def policy_a(
    invocation: ExecutionTraceNode,
    descendants: Sequence[ExecutionTraceNode],
    watched: WatchedAddressSet,
) -> bool:
    """Keep on own match, or when any descendant matched."""
    return invocation.touches(watched) or len(descendants) > 0


def policy_b(
    invocation: ExecutionTraceNode,
    descendants: Sequence[ExecutionTraceNode],
    watched: WatchedAddressSet,
) -> bool:
    """Keep on own match only."""
    return invocation.touches(watched)


_POLICIES: dict[TraceSchemaVersion, RootPolicy] = {
    TraceSchemaVersion.V1: policy_a,
    TraceSchemaVersion.V2: policy_b,
}


def filter_invocations(
    invocations: Iterable[ExecutionTraceNode],
    watched: WatchedAddressSet,
    version: TraceSchemaVersion,
) -> tuple[ExecutionTraceNode, ...]:
    """Root invocations kept under the version's policy, with flattened children."""
    keep = _POLICIES[version]
    kept: list[ExecutionTraceNode] = []
    for invocation in invocations:
        if invocation.is_error:
            continue
        descendants = filter_subcalls(invocation.children, watched)
        if keep(invocation, descendants, watched):
            kept.append(dataclasses.replace(invocation, children=tuple(descendants)))
    return tuple(kept)


def filter_document(document: TraceDocument, watched: WatchedAddressSet) -> TraceDocument:
    return dataclasses.replace(
        document,
        invocations=filter_invocations(document.invocations, watched, document.version),
    )


def filter_trace(
    height: int,
    watched: WatchedAddressSet,
    data: bytes,
    upgrade_height: int = NV20_UPGRADE_HEIGHT,
) -> bytes:
    """Decode, filter and re-encode the trace bytes of a height.

    Raises:
        TraceDecodeError: If data is not a nested trace document
    """
    version = trace_codec.schema_version_for_height(height, upgrade_height)
    document = trace_codec.decode(data, version)
    return trace_codec.encode(filter_document(document, watched))
