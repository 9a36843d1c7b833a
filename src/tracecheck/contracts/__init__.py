"""Shared contracts: data types, enums, errors and collaborator protocols.

Leaf package: imports nothing else from tracecheck.
"""

from tracecheck.contracts.chain import EMPTY_TIPSET_KEY, Actor, ActorState, BlockHeader, TipSet, TipSetKey
from tracecheck.contracts.enums import AddressProtocol, CheckName, MultisigAction, TraceSchemaVersion, UnitStatus
from tracecheck.contracts.errors import (
    BalanceMismatch,
    CheckCancelled,
    EventProviderError,
    InputError,
    InvalidAddressError,
    InvalidHeightRangeError,
    InvalidKeyError,
    LockedBalanceMismatch,
    MinerMismatch,
    NegativeBalance,
    NullBlockMismatch,
    ReconciliationMismatch,
    ResolutionError,
    RpcError,
    SetupError,
    SignerCountMismatch,
    SignerMismatch,
    StateDecodeError,
    TraceCheckError,
    TraceDecodeError,
    TraceFetchError,
    TraceParseError,
    UnlockDurationMismatch,
    UpstreamError,
)
from tracecheck.contracts.ledger import BalanceLedgerState, LedgerState, MultisigLedgerState
from tracecheck.contracts.progress import (
    ADDRESS_HEIGHT_SEPARATOR,
    PROGRESS_OK,
    AddressHeightUnit,
    HeightUnit,
    ProgressRecord,
    ResumePoint,
    Unit,
)
from tracecheck.contracts.protocols import ChainStateReader, EventHeightProvider, TraceParser, TraceSource
from tracecheck.contracts.trace import ExecutionTraceNode, MultisigEvent, ParsedTransaction, TraceDocument

__all__ = [
    "ADDRESS_HEIGHT_SEPARATOR",
    "EMPTY_TIPSET_KEY",
    "PROGRESS_OK",
    "Actor",
    "ActorState",
    "AddressHeightUnit",
    "AddressProtocol",
    "BalanceLedgerState",
    "BalanceMismatch",
    "BlockHeader",
    "ChainStateReader",
    "CheckCancelled",
    "CheckName",
    "EventHeightProvider",
    "EventProviderError",
    "ExecutionTraceNode",
    "HeightUnit",
    "InputError",
    "InvalidAddressError",
    "InvalidHeightRangeError",
    "InvalidKeyError",
    "LedgerState",
    "LockedBalanceMismatch",
    "MinerMismatch",
    "MultisigAction",
    "MultisigEvent",
    "MultisigLedgerState",
    "NegativeBalance",
    "NullBlockMismatch",
    "ParsedTransaction",
    "ProgressRecord",
    "ReconciliationMismatch",
    "ResolutionError",
    "ResumePoint",
    "RpcError",
    "SetupError",
    "SignerCountMismatch",
    "SignerMismatch",
    "StateDecodeError",
    "TipSet",
    "TipSetKey",
    "TraceCheckError",
    "TraceDecodeError",
    "TraceDocument",
    "TraceFetchError",
    "TraceParseError",
    "TraceParser",
    "TraceSchemaVersion",
    "TraceSource",
    "Unit",
    "UnitStatus",
    "UnlockDurationMismatch",
    "UpstreamError",
]
