"""On-chain state contracts returned by a ChainStateReader."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# A tipset key is the ordered list of block CIDs of the tipset.
TipSetKey = tuple[str, ...]

# The empty key asks the node for its current head.
EMPTY_TIPSET_KEY: TipSetKey = ()


@dataclass(frozen=True)
class Actor:
    """Actor summary at a tipset.

    Attributes:
        balance: Balance in attoFIL
        code: Actor code CID
        delegated_address: f4 address of the actor, if it has one
    """

    balance: int
    code: str
    delegated_address: str | None = None


@dataclass(frozen=True)
class BlockHeader:
    """The parts of a block header the checks use."""

    miner: str


@dataclass(frozen=True)
class TipSet:
    """A tipset as returned by ChainGetTipSetByHeight.

    For a null round the node returns the closest earlier tipset, so
    ``height`` differs from the requested height.
    """

    key: TipSetKey
    height: int
    blocks: tuple[BlockHeader, ...] = ()

    @property
    def miners(self) -> frozenset[str]:
        return frozenset(block.miner for block in self.blocks)

    @property
    def cid(self) -> str:
        """First block CID, used as the tipset identifier by parsers."""
        return self.key[0] if self.key else ""


@dataclass(frozen=True)
class ActorState:
    """Actor state as returned by StateReadState.

    ``state`` is the actor-specific state object decoded as JSON.
    """

    balance: int
    code: str
    state: Mapping[str, Any] = field(default_factory=dict)
