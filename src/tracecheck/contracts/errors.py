"""Exception hierarchy for tracecheck.

Four families, distinguished by how the driver treats them:

- InputError: malformed input for one unit (address, checkpoint key).
  Recorded as a failed progress record; the run continues.
- UpstreamError: RPC, trace source, event provider or decode failure.
  Recorded as a failed progress record; the run continues.
- ReconciliationMismatch: replayed state disagrees with the chain.
  Recorded as a failed progress record; the run continues.
- SetupError: required collaborators or parameters are unusable.
  Raised before any unit is processed and aborts the run.

CheckCancelled is a control flow signal, not a failure of the unit.
"""


class TraceCheckError(Exception):
    """Base class for all tracecheck errors."""


# =============================================================================
# Input errors
# =============================================================================


class InputError(TraceCheckError):
    """Malformed input that affects a single unit."""


class InvalidAddressError(InputError):
    """Raised when a string is not a valid Filecoin address."""

    def __init__(self, address: str, reason: str) -> None:
        self.address = address
        self.reason = reason
        super().__init__(f"invalid address {address!r}: {reason}")


class InvalidKeyError(InputError):
    """Raised when a checkpoint key is empty."""


class InvalidHeightRangeError(InputError):
    """Raised when an end height is before the start height."""

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(f"end height {end} is less than start height {start}")


# =============================================================================
# Upstream errors
# =============================================================================


class UpstreamError(TraceCheckError):
    """A collaborator (node, trace source, event provider) failed."""


class RpcError(UpstreamError):
    """Raised when a JSON-RPC call to the node fails.

    Attributes:
        method: JSON-RPC method name
        code: JSON-RPC error code, or None for transport failures
    """

    def __init__(self, method: str, message: str, *, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"{method}: {message}")


class TraceFetchError(UpstreamError):
    """Raised when trace bytes for a height cannot be retrieved."""


class TraceDecodeError(UpstreamError):
    """Raised when trace bytes are not a valid nested trace document."""


class TraceParseError(UpstreamError):
    """Raised when the trace parser fails on a height."""


class StateDecodeError(UpstreamError):
    """Raised when on-chain actor state is missing an expected field."""


class EventProviderError(UpstreamError):
    """Raised when the event height provider fails."""


class ResolutionError(UpstreamError):
    """Raised when the equivalent addresses of an actor cannot be resolved."""


# =============================================================================
# Reconciliation mismatches
# =============================================================================


class ReconciliationMismatch(TraceCheckError):
    """Replayed local state disagrees with authoritative chain state."""


class NegativeBalance(ReconciliationMismatch):
    """More was sent than received by the replayed ledger."""


class BalanceMismatch(ReconciliationMismatch):
    """Replayed balance differs from the on-chain actor balance."""


class SignerCountMismatch(ReconciliationMismatch):
    """Replayed signer list length differs from the on-chain one."""


class SignerMismatch(ReconciliationMismatch):
    """A replayed signer is not among the on-chain signers."""


class LockedBalanceMismatch(ReconciliationMismatch):
    """Replayed locked balance differs from the on-chain initial balance."""


class UnlockDurationMismatch(ReconciliationMismatch):
    """Replayed unlock duration differs from the on-chain one."""


class MinerMismatch(ReconciliationMismatch):
    """Block reward recipients in the trace differ from the tipset's miners."""


class NullBlockMismatch(ReconciliationMismatch):
    """Trace and tipset disagree on whether a height is a null round."""


# =============================================================================
# Fatal and control flow
# =============================================================================


class SetupError(TraceCheckError):
    """A required collaborator or parameter is unusable; the run cannot start."""


class CheckCancelled(TraceCheckError):
    """Raised at a blocking call boundary once the run is cancelled."""
