# src/tracecheck/engine/ledgers.py
"""Incremental ledgers replaying parsed data into a local state.

BalanceLedger folds value transfers into received/sent totals.
MultisigLedger folds multisig events into the signer list and vesting
parameters. Both replay one height at a time, in order.
"""

from collections.abc import Iterable, Sequence
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from tracecheck.contracts.enums import MultisigAction
from tracecheck.contracts.errors import TraceParseError
from tracecheck.contracts.ledger import BalanceLedgerState, MultisigLedgerState
from tracecheck.contracts.multisig import (
    AddSignerParams,
    ConstructorParams,
    LockBalanceParams,
    RemoveSignerParams,
    SwapSignerParams,
)
from tracecheck.contracts.trace import MultisigEvent, ParsedTransaction
from tracecheck.core.equivalence import EquivalentAddressResolver

# Parsed transaction status of a successful execution.
STATUS_OK = "Ok"


class BalanceLedger:
    """Received/sent totals of one actor, identified by its equivalent addresses."""

    def __init__(self, state: BalanceLedgerState | None = None) -> None:
        self.state = state if state is not None else BalanceLedgerState()

    def apply(self, height: int, watched: frozenset[str], transactions: Iterable[ParsedTransaction]) -> None:
        """Fold the successful transactions of a height into the totals.

        A transaction without an amount still marks the sender as having
        sent (zero), but adds nothing to the recipient.
        """
        state = self.state
        for tx in transactions:
            if tx.status != STATUS_OK:
                continue
            to_watched = tx.tx_to in watched
            from_watched = tx.tx_from in watched
            if not (to_watched or from_watched):
                continue
            state.height = height
            if to_watched and tx.amount is not None:
                state.received = tx.amount if state.received is None else state.received + tx.amount
            if from_watched:
                total = tx.amount or 0
                state.sent = total if state.sent is None else state.sent + total


ModelT = TypeVar("ModelT", bound=BaseModel)


def _decode(model: type[ModelT], event: MultisigEvent) -> ModelT:
    try:
        return model.model_validate_json(event.value)
    except ValidationError as exc:
        raise TraceParseError(f"cannot decode {event.action_type} payload {event.value!r}: {exc}") from exc


class MultisigLedger:
    """Signers and vesting parameters of one multisig actor.

    Signer removal and swaps match every equivalent form of the signer,
    so the ledger needs a resolver.
    """

    def __init__(self, resolver: EquivalentAddressResolver, state: MultisigLedgerState | None = None) -> None:
        self._resolver = resolver
        self.state = state if state is not None else MultisigLedgerState()

    def apply(self, height: int, events: Sequence[MultisigEvent]) -> None:
        """Replay the events of a height.

        The batch runs on a working copy that replaces the state only once
        every event decoded and resolved. The height is stamped even for an
        empty batch.

        Raises:
            TraceParseError: If an event payload does not decode
            InvalidAddressError: If a signer to remove or swap is malformed
            ResolutionError: If a signer's equivalent addresses cannot be resolved
        """
        working = self.state.copy()
        for event in events:
            self._apply_event(working, event)
        working.height = height
        self.state = working

    def _apply_event(self, state: MultisigLedgerState, event: MultisigEvent) -> None:
        match event.action_type:
            case MultisigAction.CONSTRUCTOR:
                constructor = _decode(ConstructorParams, event)
                state.signers = list(constructor.signers)
                state.locked_balance = constructor.locked_balance
                state.unlock_duration = constructor.unlock_duration
            case MultisigAction.ADD_SIGNER:
                add = _decode(AddSignerParams, event)
                state.signers.append(add.signer)
            case MultisigAction.SWAP_SIGNER:
                swap = _decode(SwapSignerParams, event)
                replaced = self._resolver.resolve(swap.from_signer)
                state.signers = [swap.to_signer, *(s for s in state.signers if s not in replaced)]
            case MultisigAction.REMOVE_SIGNER:
                remove = _decode(RemoveSignerParams, event)
                removed = self._resolver.resolve(remove.signer)
                state.signers = [s for s in state.signers if s not in removed]
            case MultisigAction.LOCK_BALANCE:
                lock = _decode(LockBalanceParams, event)
                state.locked_balance = lock.amount
                state.unlock_duration = lock.unlock_duration
            case _:
                # Proposals, approvals and threshold changes do not touch signers or locks
                pass
