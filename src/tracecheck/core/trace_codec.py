# src/tracecheck/core/trace_codec.py
"""Decode and encode the nested trace JSON of a height.

The document is the node's compute-state output::

    {"Root": ..., "Trace": [InvocResult, ...]}

Each root invocation carries ``Msg``, ``MsgRct`` and an ``ExecutionTrace``
whose ``Subcalls`` nest recursively as ``{"Msg", "MsgRct", "Subcalls"}``.
Fields the engine does not look at are kept in each node's payload so a
filtered document re-encodes without loss for the trace parser.
"""

import json
from collections.abc import Mapping
from typing import Any

from tracecheck.contracts.enums import TraceSchemaVersion
from tracecheck.contracts.errors import TraceDecodeError
from tracecheck.contracts.trace import ExecutionTraceNode, TraceDocument
from tracecheck.core.config import NV20_UPGRADE_HEIGHT

# Node release whose trace layout each schema version follows.
_NODE_VERSIONS: dict[TraceSchemaVersion, str] = {
    TraceSchemaVersion.V1: "v1.22",
    TraceSchemaVersion.V2: "v1.34",
}


def schema_version_for_height(height: int, upgrade_height: int = NV20_UPGRADE_HEIGHT) -> TraceSchemaVersion:
    """Heights up to and including the upgrade use the V1 layout."""
    if height <= upgrade_height:
        return TraceSchemaVersion.V1
    return TraceSchemaVersion.V2


def node_version_for_height(height: int, upgrade_height: int = NV20_UPGRADE_HEIGHT) -> str:
    return _NODE_VERSIONS[schema_version_for_height(height, upgrade_height)]


def _optional_object(raw: Mapping[str, Any], field: str, where: str) -> Mapping[str, Any] | None:
    value = raw.get(field)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise TraceDecodeError(f"{where}.{field} must be an object")
    return value


def _optional_str(raw: Mapping[str, Any], field: str, where: str) -> str | None:
    value = raw.get(field)
    if value is None or isinstance(value, str):
        return value
    raise TraceDecodeError(f"{where}.{field} must be a string")


def _optional_int(raw: Mapping[str, Any], field: str, where: str) -> int | None:
    value = raw.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TraceDecodeError(f"{where}.{field} must be an integer")
    return value


def _subcall_list(raw: Mapping[str, Any], where: str) -> list[Any]:
    subcalls = raw.get("Subcalls")
    if subcalls is None:
        return []
    if not isinstance(subcalls, list):
        raise TraceDecodeError(f"{where}.Subcalls must be a list")
    return subcalls


def _decode_call(
    msg: Mapping[str, Any] | None,
    rct: Mapping[str, Any] | None,
    children: tuple[ExecutionTraceNode, ...],
    payload: Mapping[str, Any],
    where: str,
) -> ExecutionTraceNode:
    return ExecutionTraceNode(
        from_address=_optional_str(msg, "From", f"{where}.Msg") if msg is not None else None,
        to_address=_optional_str(msg, "To", f"{where}.Msg") if msg is not None else None,
        exit_code=_optional_int(rct, "ExitCode", f"{where}.MsgRct") if rct is not None else None,
        method=_optional_int(msg, "Method", f"{where}.Msg") if msg is not None else None,
        params=_optional_str(msg, "Params", f"{where}.Msg") if msg is not None else None,
        children=children,
        payload=payload,
    )


def _decode_subcall(raw: Any, version: TraceSchemaVersion, where: str) -> ExecutionTraceNode:
    if not isinstance(raw, Mapping):
        raise TraceDecodeError(f"{where} must be an object")
    msg = _optional_object(raw, "Msg", where)
    rct = _optional_object(raw, "MsgRct", where)
    # V2 subcalls always carry their message and return trace
    if version == TraceSchemaVersion.V2 and (msg is None or rct is None):
        raise TraceDecodeError(f"{where} is missing Msg or MsgRct")
    children = tuple(
        _decode_subcall(child, version, f"{where}.Subcalls[{i}]") for i, child in enumerate(_subcall_list(raw, where))
    )
    return _decode_call(msg, rct, children, raw, where)


def _decode_invocation(raw: Any, version: TraceSchemaVersion, where: str) -> ExecutionTraceNode:
    if not isinstance(raw, Mapping):
        raise TraceDecodeError(f"{where} must be an object")
    execution = _optional_object(raw, "ExecutionTrace", where) or {}
    exec_where = f"{where}.ExecutionTrace"
    children = tuple(
        _decode_subcall(child, version, f"{exec_where}.Subcalls[{i}]")
        for i, child in enumerate(_subcall_list(execution, exec_where))
    )
    return _decode_call(
        _optional_object(raw, "Msg", where),
        _optional_object(raw, "MsgRct", where),
        children,
        raw,
        where,
    )


def decode(data: bytes, version: TraceSchemaVersion) -> TraceDocument:
    """Decode trace bytes into a TraceDocument.

    Raises:
        TraceDecodeError: If the bytes are not a nested trace document
    """
    try:
        raw = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise TraceDecodeError(f"trace is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise TraceDecodeError("trace document must be a JSON object")

    trace = raw.get("Trace")
    if trace is None:
        trace = []
    if not isinstance(trace, list):
        raise TraceDecodeError("Trace must be a list")

    invocations = tuple(_decode_invocation(item, version, f"Trace[{i}]") for i, item in enumerate(trace))
    extra = {k: v for k, v in raw.items() if k != "Trace"}
    return TraceDocument(version=version, invocations=invocations, extra=extra)


def _overlay_call_fields(node: ExecutionTraceNode, out: dict[str, Any]) -> None:
    # Node fields win over the payload so hand-built nodes encode too
    msg_fields = {"From": node.from_address, "To": node.to_address, "Method": node.method, "Params": node.params}
    if out.get("Msg") is not None or any(v is not None for v in msg_fields.values()):
        msg = dict(out.get("Msg") or {})
        msg.update({k: v for k, v in msg_fields.items() if v is not None})
        out["Msg"] = msg
    if node.exit_code is not None:
        rct = dict(out.get("MsgRct") or {})
        rct["ExitCode"] = node.exit_code
        out["MsgRct"] = rct


def _encode_subcall(node: ExecutionTraceNode) -> dict[str, Any]:
    out = dict(node.payload)
    _overlay_call_fields(node, out)
    out["Subcalls"] = [_encode_subcall(child) for child in node.children]
    return out


def _encode_invocation(node: ExecutionTraceNode) -> dict[str, Any]:
    out = dict(node.payload)
    _overlay_call_fields(node, out)
    execution = dict(out.get("ExecutionTrace") or {})
    execution["Subcalls"] = [_encode_subcall(child) for child in node.children]
    out["ExecutionTrace"] = execution
    return out


def encode(document: TraceDocument) -> bytes:
    """Encode a TraceDocument back to trace JSON bytes.

    Children always come from the node, never from its payload, so a
    filtered tree encodes as filtered.
    """
    raw = dict(document.extra)
    raw["Trace"] = [_encode_invocation(node) for node in document.invocations]
    return json.dumps(raw, separators=(",", ":")).encode("utf-8")
