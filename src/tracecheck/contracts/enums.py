"""Status codes, names and kinds shared across subsystem boundaries."""

from enum import IntEnum, StrEnum


class CheckName(StrEnum):
    """Name of a check.

    Also the name of the check's progress bucket in the checkpoint database.
    The ledger snapshot bucket is the check name with a ``.state`` suffix.
    """

    VALIDATE_JSON = "validate-json"
    NULL_BLOCKS = "validate-null-blocks"
    CANONICAL_CHAIN = "validate-canonical-chain"
    ADDRESS_BALANCE = "validate-address-balance"
    ADDRESS_BALANCE_SEQUENTIAL = "validate-address-balance-sequential"
    MULTISIG_STATE = "validate-multisig-state"
    MULTISIG_STATE_SEQUENTIAL = "validate-multisig-state-sequential"

    @property
    def state_bucket(self) -> str:
        return f"{self.value}.state"


class TraceSchemaVersion(StrEnum):
    """Shape of the nested trace JSON, selected by height.

    V1: traces produced before the nv20 upgrade (older node versions).
    V2: traces produced after it.
    """

    V1 = "v1"
    V2 = "v2"


class MultisigAction(StrEnum):
    """Multisig event action types the multisig ledger understands.

    Parsers may emit other action types (proposals, approvals, ...);
    those do not change signer/lock state and are ignored.
    """

    CONSTRUCTOR = "Constructor"
    ADD_SIGNER = "AddSigner"
    SWAP_SIGNER = "SwapSigner"
    REMOVE_SIGNER = "RemoveSigner"
    LOCK_BALANCE = "LockBalance"


class AddressProtocol(IntEnum):
    """Filecoin address protocol, the digit after the network prefix."""

    ID = 0
    SECP256K1 = 1
    ACTOR = 2
    BLS = 3
    DELEGATED = 4


class UnitStatus(StrEnum):
    """Outcome of a unit check that did not raise."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
