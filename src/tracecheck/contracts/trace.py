"""Trace and parser output contracts.

ExecutionTraceNode models one call in the nested execution trace of a
height. Children are owned by their parent (a tuple), so a filtered tree
is always a fresh structure and never aliases the input tree.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tracecheck.contracts.enums import TraceSchemaVersion


@dataclass(frozen=True)
class ExecutionTraceNode:
    """One invocation (or subcall) in an execution trace.

    Attributes:
        from_address: Message sender, None when the message is absent
        to_address: Message recipient, None when the message is absent
        exit_code: Receipt exit code, None when the receipt is absent
        method: Invoked method number, if known
        params: Encoded method parameters (base64), if any
        children: Owned subcalls in execution order
        payload: Remaining raw JSON fields, kept so the node re-encodes
            without loss for the trace parser
    """

    from_address: str | None
    to_address: str | None
    exit_code: int | None = None
    method: int | None = None
    params: str | None = None
    children: tuple["ExecutionTraceNode", ...] = ()
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_error(self) -> bool:
        """Whether the call exited with a non-zero code.

        A missing receipt is not an error.
        """
        return self.exit_code is not None and self.exit_code != 0

    def touches(self, watched: frozenset[str]) -> bool:
        """Whether either message endpoint is in the watched set."""
        return (self.to_address is not None and self.to_address in watched) or (
            self.from_address is not None and self.from_address in watched
        )


@dataclass(frozen=True)
class TraceDocument:
    """Decoded trace output for one height.

    Attributes:
        version: Schema version the document was decoded with
        invocations: Root-level invocations
        extra: Top-level JSON fields other than the invocation list
    """

    version: TraceSchemaVersion
    invocations: tuple[ExecutionTraceNode, ...]
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_null(self) -> bool:
        """A height without invocations (null round)."""
        return not self.invocations


@dataclass(frozen=True)
class ParsedTransaction:
    """A value transfer recovered from the trace by the parser.

    Attributes:
        tx_from: Sender address string
        tx_to: Recipient address string
        amount: Transferred amount in attoFIL, None when the parser
            could not attach a value to the transaction
        status: Execution status, "Ok" for successful transactions
        tipset_cid: Identifier of the tipset the transaction belongs to
    """

    tx_from: str
    tx_to: str
    amount: int | None
    status: str
    tipset_cid: str = ""


@dataclass(frozen=True)
class MultisigEvent:
    """A multisig state change recovered from the parsed transactions.

    Attributes:
        action_type: Action name (see MultisigAction for the handled ones)
        value: JSON-encoded action parameters
    """

    action_type: str
    value: str
