"""Ledger state contracts and their checkpoint snapshots.

Snapshots are our own data, written by StateStore after a completed unit.
A snapshot missing a field is corruption and raises KeyError rather than
being coerced to a default.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol, Self


class LedgerState(Protocol):
    """Shape shared by ledger states that the checkpoint store persists."""

    height: int

    def to_snapshot(self) -> dict[str, Any]: ...

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> Self: ...


@dataclass
class BalanceLedgerState:
    """Running received/sent totals of one address.

    None means the direction was never touched; 0 means it was touched with
    a zero amount. The two are distinct and survive a snapshot round trip.
    """

    height: int = 0
    received: int | None = None
    sent: int | None = None

    def to_snapshot(self) -> dict[str, Any]:
        return {"height": self.height, "received": self.received, "sent": self.sent}

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> Self:
        return cls(height=snapshot["height"], received=snapshot["received"], sent=snapshot["sent"])

    @property
    def balance(self) -> int:
        """received - sent, untouched directions counting as zero."""
        return (self.received or 0) - (self.sent or 0)


@dataclass
class MultisigLedgerState:
    """Signer list and vesting parameters of one multisig actor.

    ``signers`` keeps insertion order and duplicates. ``locked_balance`` is a
    decimal string; the empty string means it was never set.
    """

    UNSET_LOCKED_BALANCE: ClassVar[str] = ""

    height: int = 0
    signers: list[str] = field(default_factory=list)
    locked_balance: str = UNSET_LOCKED_BALANCE
    unlock_duration: int = 0

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "height": self.height,
            "signers": list(self.signers),
            "locked_balance": self.locked_balance,
            "unlock_duration": self.unlock_duration,
        }

    @classmethod
    def from_snapshot(cls, snapshot: dict[str, Any]) -> Self:
        return cls(
            height=snapshot["height"],
            signers=list(snapshot["signers"]),
            locked_balance=snapshot["locked_balance"],
            unlock_duration=snapshot["unlock_duration"],
        )

    @property
    def effective_locked_balance(self) -> str:
        return self.locked_balance or "0"

    def copy(self) -> Self:
        return copy.deepcopy(self)
