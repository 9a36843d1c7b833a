"""Progress and resume contracts.

A check processes units: either a bare height, or an (address, height)
pair. Each unit has a progress key in the check's progress bucket.
"""

from dataclasses import dataclass
from typing import Any, Generic, Self, TypeVar

# Separates the address from the height in address-scoped progress keys.
ADDRESS_HEIGHT_SEPARATOR = "_"

PROGRESS_OK = "ok"


@dataclass(frozen=True)
class HeightUnit:
    height: int

    @property
    def key(self) -> str:
        return str(self.height)


@dataclass(frozen=True)
class AddressHeightUnit:
    address: str
    height: int

    @property
    def key(self) -> str:
        return f"{self.address}{ADDRESS_HEIGHT_SEPARATOR}{self.height}"


Unit = HeightUnit | AddressHeightUnit


@dataclass(frozen=True)
class ProgressRecord:
    """Verdict of one processed unit."""

    key: str
    success: bool
    message: str

    def to_value(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message}

    @classmethod
    def from_value(cls, key: str, value: dict[str, Any]) -> Self:
        return cls(key=key, success=value["success"], message=value["message"])


StateT = TypeVar("StateT")


@dataclass(frozen=True)
class ResumePoint(Generic[StateT]):
    """Where an address-scoped check picks up.

    Attributes:
        start_height: First height to process
        state: Ledger state to continue from (fresh when restarted)
        restarted: True when a stored snapshot was discarded because it
            did not line up with the latest recorded height
    """

    start_height: int
    state: StateT
    restarted: bool = False
