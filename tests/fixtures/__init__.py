# tests/fixtures/__init__.py
"""Shared fakes and builders for tracecheck tests."""

from tests.fixtures.chain import (
    FakeChainStateReader,
    FakeEventProvider,
    FakeTraceParser,
    FakeTraceSource,
    actor_address,
    id_address,
    invocation,
    null_trace,
    secp_address,
    subcall,
    tipset_key_for,
    trace_bytes,
)

__all__ = [
    "FakeChainStateReader",
    "FakeEventProvider",
    "FakeTraceParser",
    "FakeTraceSource",
    "actor_address",
    "id_address",
    "invocation",
    "null_trace",
    "secp_address",
    "subcall",
    "tipset_key_for",
    "trace_bytes",
]
