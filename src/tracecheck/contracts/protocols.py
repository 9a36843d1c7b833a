"""Collaborator protocols.

The reconciliation engine only talks to the outside world through these
interfaces. Builtin implementations live in tracecheck.plugins; a trace
parser always comes from an external plugin.
"""

from collections.abc import Sequence
from typing import Any, ClassVar, Protocol, runtime_checkable

from tracecheck.contracts.chain import Actor, ActorState, TipSet, TipSetKey
from tracecheck.contracts.enums import TraceSchemaVersion
from tracecheck.contracts.trace import MultisigEvent, ParsedTransaction


@runtime_checkable
class ChainStateReader(Protocol):
    """Read-only view of a full node.

    Every method may raise UpstreamError (RpcError for node failures).
    """

    def get_actor(self, address: str, tipset_key: TipSetKey) -> Actor: ...

    def lookup_id(self, address: str, tipset_key: TipSetKey) -> str: ...

    def lookup_robust_address(self, address: str, tipset_key: TipSetKey) -> str: ...

    def account_key(self, address: str, tipset_key: TipSetKey) -> str: ...

    def get_tipset_by_height(self, height: int, tipset_key: TipSetKey) -> TipSet: ...

    def read_state(self, address: str, tipset_key: TipSetKey) -> ActorState: ...


class TraceSource(Protocol):
    """Supplies the decompressed nested trace JSON of a height."""

    name: ClassVar[str]

    def __init__(self, options: dict[str, Any]) -> None: ...

    def get_trace(self, height: int) -> bytes: ...


class TraceParser(Protocol):
    """Turns filtered traces into transactions and multisig events."""

    name: ClassVar[str]

    def __init__(self, options: dict[str, Any]) -> None: ...

    def parse_transactions(self, traces: bytes, tipset: TipSet, version: TraceSchemaVersion) -> Sequence[ParsedTransaction]: ...

    def parse_multisig_events(
        self,
        transactions: Sequence[ParsedTransaction],
        tipset_cid: str,
        tipset_key: TipSetKey,
    ) -> Sequence[MultisigEvent]: ...

    def award_block_reward_miner(self, height: int, params: str) -> str:
        """Decode AwardBlockReward params and return the rewarded miner."""
        ...


class EventHeightProvider(Protocol):
    """Lists the heights at which an address has activity."""

    name: ClassVar[str]

    def __init__(self, options: dict[str, Any]) -> None: ...

    def get_address_event_heights(self, address: str) -> list[int]:
        """Return ascending, unique heights."""
        ...

    def close(self) -> None:
        """Release network resources."""
        ...
