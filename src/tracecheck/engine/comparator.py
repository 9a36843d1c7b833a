# src/tracecheck/engine/comparator.py
"""Reconcile replayed local state against the chain.

Each check returns None when local and on-chain state agree and raises a
ReconciliationMismatch subclass describing the first disagreement found.
Replayed state at height H is compared with on-chain state read at the
tipset of height H+1, where the effects of H's messages are visible.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from tracecheck.contracts.chain import TipSet
from tracecheck.contracts.errors import (
    BalanceMismatch,
    LockedBalanceMismatch,
    MinerMismatch,
    NegativeBalance,
    NullBlockMismatch,
    SignerCountMismatch,
    SignerMismatch,
    StateDecodeError,
    UnlockDurationMismatch,
)
from tracecheck.contracts.ledger import BalanceLedgerState, MultisigLedgerState
from tracecheck.contracts.protocols import ChainStateReader
from tracecheck.core.equivalence import EquivalentAddressResolver


def check_balance(
    address: str,
    state: BalanceLedgerState,
    next_tipset: TipSet,
    reader: ChainStateReader,
) -> None:
    """Replayed balance must be non-negative and equal the on-chain balance.

    Raises:
        NegativeBalance: Before any RPC, if more was sent than received
        BalanceMismatch: If the actor balance at next_tipset differs
    """
    parsed = state.balance
    if parsed < 0:
        raise NegativeBalance(f"negative balance for {address}: parsed={parsed}")
    onchain = reader.get_actor(address, next_tipset.key).balance
    if onchain != parsed:
        raise BalanceMismatch(f"balance mismatch for {address}: onchain={onchain}, parsed={parsed}")


def _field(state: Mapping[str, Any], name: str) -> Any:
    try:
        return state[name]
    except KeyError:
        raise StateDecodeError(f"multisig state has no {name}") from None


def decode_multisig_state(state: Mapping[str, Any]) -> tuple[list[str], str, int]:
    """(signers, initial balance, unlock duration) of an on-chain multisig state.

    Raises:
        StateDecodeError: If a field is missing or has the wrong type
    """
    unlock_raw = _field(state, "UnlockDuration")
    if isinstance(unlock_raw, bool) or not isinstance(unlock_raw, int | float):
        raise StateDecodeError(f"multisig UnlockDuration is not a number: {unlock_raw!r}")

    signers = _field(state, "Signers")
    if not isinstance(signers, list) or not all(isinstance(s, str) for s in signers):
        raise StateDecodeError(f"multisig Signers is not a list of addresses: {signers!r}")

    balance_raw = _field(state, "InitialBalance")
    if not isinstance(balance_raw, str):
        raise StateDecodeError(f"multisig InitialBalance is not a string: {balance_raw!r}")
    try:
        initial_balance = int(balance_raw, 10)
    except ValueError:
        raise StateDecodeError(f"multisig InitialBalance is not a decimal: {balance_raw!r}") from None

    return signers, str(initial_balance), int(unlock_raw)


def check_multisig(
    address: str,
    state: MultisigLedgerState,
    next_tipset: TipSet,
    reader: ChainStateReader,
    resolver: EquivalentAddressResolver,
) -> None:
    """Replayed signers, locked balance and unlock duration must match the chain.

    Checks run in order: signer count, signer membership (through every
    equivalent form of the on-chain signers), locked balance, unlock
    duration.
    """
    actor_state = reader.read_state(address, next_tipset.key)
    onchain_signers, onchain_locked, onchain_unlock = decode_multisig_state(actor_state.state)

    if len(state.signers) != len(onchain_signers):
        raise SignerCountMismatch(
            f"multisig signers mismatch for {address} at height {next_tipset.height}: "
            f"onchain={len(onchain_signers)}, parsed={len(state.signers)}"
        )

    known: set[str] = set()
    for signer in onchain_signers:
        known.add(signer)
        known.update(resolver.resolve(signer))
    missing = [signer for signer in state.signers if signer not in known]
    if missing:
        raise SignerMismatch(
            f"multisig signer mismatch for {address} at height {next_tipset.height}: "
            f"onchain={sorted(known)}, parsed={state.signers}"
        )

    if state.effective_locked_balance != onchain_locked:
        raise LockedBalanceMismatch(
            f"multisig locked balance mismatch for {address} at height {next_tipset.height}: "
            f"onchain={onchain_locked}, parsed={state.effective_locked_balance}"
        )

    if state.unlock_duration != onchain_unlock:
        raise UnlockDurationMismatch(
            f"multisig unlock duration mismatch for {address} at height {next_tipset.height}: "
            f"onchain={onchain_unlock}, parsed={state.unlock_duration}"
        )


def check_null_block(height: int, trace_is_null: bool, tipset: TipSet) -> None:
    """A height is a null round in the trace exactly when it is on chain.

    For a null round the node answers with an earlier tipset.
    """
    tipset_is_null = tipset.height != height
    if trace_is_null != tipset_is_null:
        if trace_is_null:
            raise NullBlockMismatch(f"trace is null but tipset at height {height} is not")
        raise NullBlockMismatch(f"tipset at height {height} is null but trace is not")


def check_miners(trace_miners: Iterable[str], tipset: TipSet, resolver: EquivalentAddressResolver) -> None:
    """Block reward recipients in the trace must be the tipset's block miners.

    Raises:
        MinerMismatch: On a count difference, or for the first trace miner
            none of whose equivalent addresses mined a block
    """
    rewarded = set(trace_miners)
    onchain = tipset.miners
    if len(rewarded) != len(onchain):
        raise MinerMismatch(f"length of miners do not match: trace={len(rewarded)}, onchain={len(onchain)}")
    for miner in sorted(rewarded):
        if not resolver.resolve(miner) & onchain:
            raise MinerMismatch(f"miner {miner} not found")
