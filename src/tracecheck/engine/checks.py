# src/tracecheck/engine/checks.py
"""The checks.

Height-only checks scan an inclusive height range and record one verdict
per height:

- ValidateJsonCheck: the height's trace decodes
- NullBlocksCheck: trace and chain agree on null rounds
- CanonicalChainCheck: block reward recipients are the tipset's miners

Address-scoped checks replay a ledger per address and compare it with the
chain after every height carrying transactions:

- AddressBalanceCheck / MultisigStateCheck: heights come from an event
  provider, one address at a time
- AddressBalanceSequentialCheck / MultisigStateSequentialCheck: every
  height of a range, all addresses sharing one filtered trace
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from typing import ClassVar, Generic, Protocol, TypeVar

from tracecheck.contracts.enums import CheckName, UnitStatus
from tracecheck.contracts.errors import InvalidHeightRangeError, SetupError, TraceParseError
from tracecheck.contracts.ledger import BalanceLedgerState, LedgerState, MultisigLedgerState
from tracecheck.contracts.progress import PROGRESS_OK, AddressHeightUnit, HeightUnit, ProgressRecord
from tracecheck.contracts.protocols import ChainStateReader, EventHeightProvider
from tracecheck.contracts.trace import TraceDocument
from tracecheck.core import trace_codec
from tracecheck.core.checkpoint import CheckpointDB, ProgressStore, StateStore
from tracecheck.core.checkpoint.recovery import resume_addresses, resume_events, resume_height_scan
from tracecheck.core.context import CheckContext
from tracecheck.core.equivalence import EquivalentAddressResolver
from tracecheck.engine.comparator import check_balance, check_miners, check_multisig, check_null_block
from tracecheck.engine.driver import UNIT_FAILURES, CheckDriver, EventDriver, SequentialDriver
from tracecheck.engine.ledgers import BalanceLedger, MultisigLedger
from tracecheck.engine.pipeline import HeightData, TracePipeline

# Reward actor and its AwardBlockReward method number.
REWARD_ACTOR_ADDRESSES = frozenset({"f02", "t02"})
METHOD_AWARD_BLOCK_REWARD = 2

StateT = TypeVar("StateT", bound=LedgerState)


def validate_height_range(start: int, end: int) -> None:
    """Raises InvalidHeightRangeError when end is before start."""
    if end < start:
        raise InvalidHeightRangeError(start, end)


class Check(ABC):
    """A named check writing to its own progress bucket."""

    name: ClassVar[CheckName]

    def __init__(self, context: CheckContext, db: CheckpointDB) -> None:
        self._context = context.bind(check=self.name.value)
        self.progress = ProgressStore(db, self.name)


# =============================================================================
# Height-only checks
# =============================================================================


class HeightScanCheck(Check):
    """Scans a height range, resuming at the latest recorded height."""

    def __init__(self, context: CheckContext, db: CheckpointDB, pipeline: TracePipeline) -> None:
        super().__init__(context, db)
        self._pipeline = pipeline
        self._upgrade_height = context.settings.trace_schema.upgrade_height

    def run(self, start: int, end: int) -> list[ProgressRecord]:
        validate_height_range(start, end)
        latest = self.progress.latest_height()
        first = resume_height_scan(latest, start)
        if first != start:
            self._context.logger.info("Resuming from latest height", latest_height=latest)
        self._context.logger.info("Starting height scan", start=first, end=end)
        return SequentialDriver(self._context, self.progress).run(first, end, self.check_height)

    def _decode(self, height: int) -> TraceDocument:
        version = trace_codec.schema_version_for_height(height, self._upgrade_height)
        return trace_codec.decode(self._pipeline.fetch(height), version)

    @abstractmethod
    def check_height(self, unit: HeightUnit) -> UnitStatus: ...


class ValidateJsonCheck(HeightScanCheck):
    name = CheckName.VALIDATE_JSON

    def check_height(self, unit: HeightUnit) -> UnitStatus:
        self._decode(unit.height)
        return UnitStatus.COMPLETED


class NullBlocksCheck(HeightScanCheck):
    name = CheckName.NULL_BLOCKS

    def check_height(self, unit: HeightUnit) -> UnitStatus:
        document = self._decode(unit.height)
        tipset = self._pipeline.tipset(unit.height)
        check_null_block(unit.height, document.is_null, tipset)
        return UnitStatus.COMPLETED


class CanonicalChainCheck(HeightScanCheck):
    """Miners rewarded in the trace must be the miners of the tipset's blocks."""

    name = CheckName.CANONICAL_CHAIN

    def __init__(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        resolver: EquivalentAddressResolver,
    ) -> None:
        super().__init__(context, db, pipeline)
        pipeline.require_parser()
        self._resolver = resolver

    def rewarded_miners(self, height: int, document: TraceDocument) -> set[str]:
        """Miners of the AwardBlockReward invocations of a height.

        Params the parser cannot decode are logged and skipped; the miner
        count comparison then reports the gap.
        """
        miners: set[str] = set()
        for invocation in document.invocations:
            if invocation.to_address not in REWARD_ACTOR_ADDRESSES or invocation.method != METHOD_AWARD_BLOCK_REWARD:
                continue
            if invocation.params is None:
                self._context.logger.warning("Block reward without params", height=height)
                continue
            try:
                miner = self._pipeline.award_block_reward_miner(height, invocation.params)
            except TraceParseError as exc:
                self._context.logger.warning("Could not parse block reward params", height=height, error=str(exc))
                continue
            if not miner:
                self._context.logger.warning("Found empty miner", height=height)
                continue
            miners.add(miner)
        return miners

    def check_height(self, unit: HeightUnit) -> UnitStatus:
        document = self._decode(unit.height)
        miners = self.rewarded_miners(unit.height, document)
        tipset = self._pipeline.tipset(unit.height)
        check_miners(miners, tipset, self._resolver)
        return UnitStatus.COMPLETED


# =============================================================================
# Ledger audits
# =============================================================================


@dataclass
class AuditedAddress(Generic[StateT]):
    """An address under audit, its equivalent forms and its replayed state.

    replayed_height is the last height whose transactions reached the
    ledger; only then is the snapshot saved.
    """

    address: str
    watched: frozenset[str]
    state: StateT
    replayed_height: int | None = None


class LedgerAudit(Protocol[StateT]):
    """Replays one height into an address's state and reconciles it."""

    state_cls: type[StateT]

    def audit(self, target: AuditedAddress[StateT], data: HeightData) -> None:
        """Replay data into target.state, then compare with the chain.

        target.state holds the replayed state, and target.replayed_height
        names data.height, even when the comparison raises.
        """
        ...


class BalanceAudit:
    state_cls = BalanceLedgerState

    def __init__(self, reader: ChainStateReader) -> None:
        self._reader = reader

    def audit(self, target: AuditedAddress[BalanceLedgerState], data: HeightData) -> None:
        ledger = BalanceLedger(target.state)
        ledger.apply(data.height, target.watched, data.transactions)
        target.state = ledger.state
        target.replayed_height = data.height
        check_balance(target.address, target.state, data.next_tipset, self._reader)


class MultisigAudit:
    state_cls = MultisigLedgerState

    def __init__(self, reader: ChainStateReader, resolver: EquivalentAddressResolver, pipeline: TracePipeline) -> None:
        self._reader = reader
        self._resolver = resolver
        self._pipeline = pipeline

    def audit(self, target: AuditedAddress[MultisigLedgerState], data: HeightData) -> None:
        events = self._pipeline.multisig_events(data, target.watched)
        ledger = MultisigLedger(self._resolver, target.state)
        ledger.apply(data.height, events)
        target.state = ledger.state
        target.replayed_height = data.height
        check_multisig(target.address, target.state, data.next_tipset, self._reader, self._resolver)


# =============================================================================
# Address-scoped checks
# =============================================================================


class AddressCheck(Check, Generic[StateT]):
    """Shared wiring of the address-scoped checks.

    The snapshot of an address is saved after each recorded unit whose
    transactions were replayed, stamped with the unit's height. A unit that
    failed before replay leaves the snapshot untouched, so a rerun fetches
    that height again.
    """

    def __init__(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        resolver: EquivalentAddressResolver,
        audit: LedgerAudit[StateT],
    ) -> None:
        super().__init__(context, db)
        pipeline.require_parser()
        self.states = StateStore(db, self.name)
        self._pipeline = pipeline
        self._resolver = resolver
        self._audit = audit

    def _audit_unit(self, target: AuditedAddress[StateT], data: HeightData, unit: AddressHeightUnit) -> UnitStatus:
        self._audit.audit(target, data)
        return UnitStatus.COMPLETED

    def _persist(self, target: AuditedAddress[StateT], height: int) -> None:
        if target.replayed_height != height:
            self._context.logger.debug("Height not replayed, snapshot unchanged", address=target.address, height=height)
            return
        target.state.height = height
        self.states.save(target.address, target.state)


class EventAddressCheck(AddressCheck[StateT]):
    """Audits each address at the heights its event provider lists.

    Heights at or below a stored snapshot's height are skipped.
    """

    def __init__(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        resolver: EquivalentAddressResolver,
        provider: EventHeightProvider,
        audit: LedgerAudit[StateT],
    ) -> None:
        super().__init__(context, db, pipeline, resolver, audit)
        self._provider = provider

    def run(self, addresses: Sequence[str]) -> list[ProgressRecord]:
        records: list[ProgressRecord] = []
        for address in addresses:
            records.extend(self.run_address(address))
        return records

    def run_address(self, address: str) -> list[ProgressRecord]:
        """Audit one address.

        A failure to resolve the address or list its heights is recorded
        under height 0. Once the address is done, the last replayed height
        is recorded ok under its bare height.
        """
        try:
            self._context.cancellation.raise_if_cancelled()
            watched = self._resolver.resolve(address)
            self._context.cancellation.raise_if_cancelled()
            heights = self._provider.get_address_event_heights(address)
        except UNIT_FAILURES as exc:
            return [EventDriver(self._context, self.progress).fail(AddressHeightUnit(address, 0), exc)]

        state = self.states.load(address, self._audit.state_cls) or self._audit.state_cls()
        pending = resume_events(state, heights)
        self._context.logger.info(
            "Auditing address",
            address=address,
            event_heights=len(heights),
            pending_heights=len(pending),
        )
        target = AuditedAddress(address=address, watched=watched, state=state)

        def check(unit: AddressHeightUnit) -> UnitStatus:
            data = self._pipeline.load(unit.height, target.watched)
            if not data.transactions:
                return UnitStatus.SKIPPED
            return self._audit_unit(target, data, unit)

        driver = EventDriver(self._context, self.progress, on_complete=lambda unit: self._persist(target, unit.height))
        records = driver.run(address, pending, check)
        if target.replayed_height is not None:
            self.progress.record_height(target.replayed_height, True, PROGRESS_OK)
        return records


class SequentialAddressCheck(AddressCheck[StateT]):
    """Audits every address at every height of a range.

    The trace of a height is filtered once by the union of all watched
    sets. Each address gets its own record per height, then the height is
    recorded ok.
    """

    def run(self, addresses: Sequence[str], start: int, end: int) -> list[ProgressRecord]:
        validate_height_range(start, end)
        targets: dict[str, AuditedAddress[StateT]] = {}

        def persist(unit: AddressHeightUnit) -> None:
            self._persist(targets[unit.address], unit.height)

        address_driver: CheckDriver[AddressHeightUnit] = CheckDriver(self._context, self.progress, on_complete=persist)

        watched_by_address: dict[str, frozenset[str]] = {}
        for address in addresses:
            self._context.cancellation.raise_if_cancelled()
            try:
                watched_by_address[address] = self._resolver.resolve(address)
            except UNIT_FAILURES as exc:
                address_driver.fail(AddressHeightUnit(address, 0), exc)
        if not watched_by_address:
            raise SetupError("no address could be resolved")

        latest = self.progress.latest_height()
        point = resume_addresses(self.states, list(watched_by_address), latest, start, self._audit.state_cls)
        first = point.start_height
        if point.restarted:
            self._context.logger.info("Snapshot behind latest height, restarting all addresses", latest_height=latest, start=start)
        elif first != start:
            self._context.logger.info("Resuming from latest height", latest_height=latest)
        for address, watched in watched_by_address.items():
            targets[address] = AuditedAddress(address=address, watched=watched, state=point.state[address])
        all_watched = frozenset().union(*watched_by_address.values())

        def check_height(unit: HeightUnit) -> UnitStatus:
            data = self._pipeline.load(unit.height, all_watched)
            if not data.transactions:
                return UnitStatus.SKIPPED
            for target in targets.values():
                address_driver.process(
                    AddressHeightUnit(target.address, unit.height),
                    partial(self._audit_unit, target, data),
                )
            return UnitStatus.COMPLETED

        self._context.logger.info("Starting sequential audit", start=first, end=end, addresses=len(targets))
        return SequentialDriver(self._context, self.progress).run(first, end, check_height)


# =============================================================================
# Concrete address checks
# =============================================================================


class AddressBalanceCheck(EventAddressCheck[BalanceLedgerState]):
    name = CheckName.ADDRESS_BALANCE

    def __init__(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        reader: ChainStateReader,
        provider: EventHeightProvider,
    ) -> None:
        super().__init__(context, db, pipeline, EquivalentAddressResolver(reader), provider, BalanceAudit(reader))


class MultisigStateCheck(EventAddressCheck[MultisigLedgerState]):
    name = CheckName.MULTISIG_STATE

    def __init__(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        reader: ChainStateReader,
        provider: EventHeightProvider,
    ) -> None:
        resolver = EquivalentAddressResolver(reader)
        super().__init__(context, db, pipeline, resolver, provider, MultisigAudit(reader, resolver, pipeline))


class AddressBalanceSequentialCheck(SequentialAddressCheck[BalanceLedgerState]):
    name = CheckName.ADDRESS_BALANCE_SEQUENTIAL

    def __init__(self, context: CheckContext, db: CheckpointDB, pipeline: TracePipeline, reader: ChainStateReader) -> None:
        super().__init__(context, db, pipeline, EquivalentAddressResolver(reader), BalanceAudit(reader))


class MultisigStateSequentialCheck(SequentialAddressCheck[MultisigLedgerState]):
    name = CheckName.MULTISIG_STATE_SEQUENTIAL

    def __init__(self, context: CheckContext, db: CheckpointDB, pipeline: TracePipeline, reader: ChainStateReader) -> None:
        resolver = EquivalentAddressResolver(reader)
        super().__init__(context, db, pipeline, resolver, MultisigAudit(reader, resolver, pipeline))
