"""Tests for the height-scan and address-scoped checks."""

import json

import pytest

from tests.fixtures import (
    FakeChainStateReader,
    FakeEventProvider,
    FakeTraceParser,
    FakeTraceSource,
    actor_address,
    invocation,
    null_trace,
    secp_address,
    trace_bytes,
)
from tracecheck.contracts import (
    BalanceLedgerState,
    CheckName,
    EventProviderError,
    InvalidHeightRangeError,
    MultisigEvent,
    MultisigLedgerState,
    SetupError,
)
from tracecheck.core.checkpoint import CheckpointDB, ProgressStore
from tracecheck.core.context import CheckContext
from tracecheck.core.equivalence import EquivalentAddressResolver
from tracecheck.engine.checks import (
    AddressBalanceCheck,
    AddressBalanceSequentialCheck,
    CanonicalChainCheck,
    MultisigStateCheck,
    MultisigStateSequentialCheck,
    NullBlocksCheck,
    ValidateJsonCheck,
)
from tracecheck.engine.pipeline import TracePipeline


def verdicts(records: list) -> list[tuple[str, bool]]:
    return [(r.key, r.success) for r in records]


# =============================================================================
# Height-only checks
# =============================================================================


class TestValidateJson:
    def test_records_each_height(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        source: FakeTraceSource,
    ) -> None:
        source.traces[1] = trace_bytes(invocation("f0100", "f0200", 1))
        source.traces[2] = b'{"Root": '
        source.traces[3] = null_trace()

        records = ValidateJsonCheck(context, db, pipeline).run(1, 4)

        assert verdicts(records) == [("1", True), ("2", False), ("3", True), ("4", False)]
        assert records[3].message == "no trace for height 4"

    def test_resumes_at_latest_height(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        source: FakeTraceSource,
    ) -> None:
        for height in range(1, 6):
            source.traces[height] = null_trace()
        check = ValidateJsonCheck(context, db, pipeline)
        check.progress.record_height(3, True, "ok")

        check.run(1, 5)

        assert source.fetched == [3, 4, 5]

    def test_end_before_start(self, context: CheckContext, db: CheckpointDB, pipeline: TracePipeline) -> None:
        with pytest.raises(InvalidHeightRangeError):
            ValidateJsonCheck(context, db, pipeline).run(5, 4)


class TestNullBlocks:
    def test_agreement_and_disagreement(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        source: FakeTraceSource,
        reader: FakeChainStateReader,
    ) -> None:
        reader.null_rounds = {2}
        source.traces[1] = trace_bytes(invocation("f0100", "f0200", 1))
        source.traces[2] = null_trace()
        source.traces[3] = null_trace()

        records = NullBlocksCheck(context, db, pipeline).run(1, 3)

        assert verdicts(records) == [("1", True), ("2", True), ("3", False)]
        assert "trace is null" in records[2].message


class TestCanonicalChain:
    @pytest.fixture
    def check(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        reader: FakeChainStateReader,
    ) -> CanonicalChainCheck:
        reader.add_account("f01000", secp_address(1))
        reader.add_account("f01001", secp_address(2))
        return CanonicalChainCheck(context, db, pipeline, EquivalentAddressResolver(reader))

    def test_rewarded_miner_matches_tipset(
        self,
        check: CanonicalChainCheck,
        source: FakeTraceSource,
        parser: FakeTraceParser,
    ) -> None:
        parser.miners["cGFyYW1z"] = "f01000"
        source.traces[10] = trace_bytes(
            invocation("f00", "f02", method=2, params="cGFyYW1z"),
            invocation("f0100", "f0200", 5),
        )

        assert verdicts(check.run(10, 10)) == [("10", True)]

    def test_missing_parser_aborts_before_any_unit(
        self,
        context: CheckContext,
        db: CheckpointDB,
        source: FakeTraceSource,
        reader: FakeChainStateReader,
    ) -> None:
        pipeline = TracePipeline(context, source, reader)

        with pytest.raises(SetupError, match="no trace parser configured"):
            CanonicalChainCheck(context, db, pipeline, EquivalentAddressResolver(reader)).run(1, 3)

        assert ProgressStore(db, CheckName.CANONICAL_CHAIN).dump_all() == {}
        assert source.fetched == []

    def test_foreign_miner_fails(
        self,
        check: CanonicalChainCheck,
        source: FakeTraceSource,
        parser: FakeTraceParser,
    ) -> None:
        parser.miners["b3RoZXI="] = "f01001"
        source.traces[10] = trace_bytes(invocation("f00", "f02", method=2, params="b3RoZXI="))

        (record,) = check.run(10, 10)

        assert not record.success
        assert record.message.startswith("miner f01001 not found")

    def test_undecodable_params_are_skipped(
        self,
        check: CanonicalChainCheck,
        source: FakeTraceSource,
    ) -> None:
        source.traces[10] = trace_bytes(invocation("f00", "f02", method=2, params="Z2FyYmFnZQ=="))

        (record,) = check.run(10, 10)

        assert not record.success
        assert "length of miners do not match" in record.message

    def test_other_reward_methods_are_ignored(
        self,
        check: CanonicalChainCheck,
        source: FakeTraceSource,
        parser: FakeTraceParser,
    ) -> None:
        parser.miners["cGFyYW1z"] = "f01000"
        source.traces[10] = trace_bytes(
            invocation("f00", "f02", method=2, params="cGFyYW1z"),
            invocation("f00", "f02", method=4, params="b3RoZXI="),
        )

        assert verdicts(check.run(10, 10)) == [("10", True)]


# =============================================================================
# Balance checks
# =============================================================================


@pytest.fixture
def funded(reader: FakeChainStateReader, source: FakeTraceSource) -> FakeChainStateReader:
    """f0100 receives 50 at height 10 and sends 20 at height 12."""
    reader.add_account("f0100", secp_address(1))
    source.traces[10] = trace_bytes(invocation("f0900", "f0100", 50))
    source.traces[11] = trace_bytes(invocation("f0900", "f0901", 3))
    source.traces[12] = trace_bytes(invocation("f0100", "f0900", 20))
    reader.set_balance("f0100", 11, 50)
    reader.set_balance("f0100", 13, 30)
    return reader


class TestAddressBalanceSequential:
    def test_audits_every_height(self, context: CheckContext, db: CheckpointDB, pipeline: TracePipeline, funded: FakeChainStateReader) -> None:
        check = AddressBalanceSequentialCheck(context, db, pipeline, funded)

        records = check.run(["f0100"], 10, 12)

        assert verdicts(records) == [("10", True), ("12", True)]
        assert list(check.progress.dump_all()) == ["10", "12", "f0100_10", "f0100_12"]
        assert check.states.load("f0100", BalanceLedgerState) == BalanceLedgerState(height=12, received=50, sent=20)

    def test_mismatch_fails_the_address_not_the_height(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
    ) -> None:
        funded.set_balance("f0100", 11, 49)
        check = AddressBalanceSequentialCheck(context, db, pipeline, funded)

        check.run(["f0100"], 10, 10)

        progress = check.progress.dump_all()
        assert progress["10"]["success"] is True
        assert progress["f0100_10"] == {"success": False, "message": "balance mismatch for f0100: onchain=49, parsed=50"}

    def test_mismatch_still_advances_the_snapshot(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
    ) -> None:
        funded.set_balance("f0100", 11, 49)
        check = AddressBalanceSequentialCheck(context, db, pipeline, funded)

        check.run(["f0100"], 10, 12)

        assert check.states.load("f0100", BalanceLedgerState) == BalanceLedgerState(height=12, received=50, sent=20)
        assert check.progress.dump_all()["f0100_12"]["success"] is True

    def test_resume_after_completed_run(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
        source: FakeTraceSource,
    ) -> None:
        AddressBalanceSequentialCheck(context, db, pipeline, funded).run(["f0100"], 10, 12)
        source.fetched.clear()

        records = AddressBalanceSequentialCheck(context, db, pipeline, funded).run(["f0100"], 10, 12)

        assert records == []
        assert source.fetched == []

    def test_snapshot_behind_latest_height_restarts(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
        source: FakeTraceSource,
    ) -> None:
        check = AddressBalanceSequentialCheck(context, db, pipeline, funded)
        check.progress.record_height(12, True, "ok")
        check.states.save("f0100", BalanceLedgerState(height=10, received=50))

        check.run(["f0100"], 10, 12)

        assert source.fetched == [10, 11, 12]
        assert check.states.load("f0100", BalanceLedgerState) == BalanceLedgerState(height=12, received=50, sent=20)

    def test_unresolvable_address_is_recorded_at_zero(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
    ) -> None:
        check = AddressBalanceSequentialCheck(context, db, pipeline, funded)

        check.run(["f0100", "f0999"], 10, 10)

        progress = check.progress.dump_all()
        assert progress["f0999_0"]["success"] is False
        assert progress["f0100_10"]["success"] is True

    def test_no_resolvable_address_is_setup_error(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        reader: FakeChainStateReader,
    ) -> None:
        with pytest.raises(SetupError):
            AddressBalanceSequentialCheck(context, db, pipeline, reader).run(["f0999"], 10, 12)

    def test_missing_parser_aborts_before_any_unit(
        self,
        context: CheckContext,
        db: CheckpointDB,
        source: FakeTraceSource,
        funded: FakeChainStateReader,
    ) -> None:
        pipeline = TracePipeline(context, source, funded)

        with pytest.raises(SetupError, match="no trace parser configured"):
            AddressBalanceSequentialCheck(context, db, pipeline, funded).run(["f0100", "not-an-address"], 1, 2)

        assert ProgressStore(db, CheckName.ADDRESS_BALANCE_SEQUENTIAL).dump_all() == {}


class TestAddressBalanceEvents:
    def test_audits_provider_heights(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
        source: FakeTraceSource,
    ) -> None:
        provider = FakeEventProvider()
        provider.heights["f0100"] = [12, 10]
        check = AddressBalanceCheck(context, db, pipeline, funded, provider)

        records = check.run(["f0100"])

        assert verdicts(records) == [("f0100_10", True), ("f0100_12", True)]
        assert source.fetched == [10, 12]
        assert check.states.load("f0100", BalanceLedgerState) == BalanceLedgerState(height=12, received=50, sent=20)

    def test_height_without_own_transactions_is_skipped(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
    ) -> None:
        provider = FakeEventProvider()
        provider.heights["f0100"] = [10, 11]
        check = AddressBalanceCheck(context, db, pipeline, funded, provider)

        records = check.run(["f0100"])

        assert verdicts(records) == [("f0100_10", True)]
        assert check.states.load("f0100", BalanceLedgerState).height == 10

    def test_resume_skips_processed_heights(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
        source: FakeTraceSource,
    ) -> None:
        provider = FakeEventProvider()
        provider.heights["f0100"] = [10, 12]
        check = AddressBalanceCheck(context, db, pipeline, funded, provider)
        check.states.save("f0100", BalanceLedgerState(height=10, received=50))

        records = check.run(["f0100"])

        assert verdicts(records) == [("f0100_12", True)]
        assert source.fetched == [12]

    def test_last_replayed_height_is_recorded(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
    ) -> None:
        provider = FakeEventProvider()
        provider.heights["f0100"] = [10, 11, 12]
        check = AddressBalanceCheck(context, db, pipeline, funded, provider)

        records = check.run(["f0100"])

        assert verdicts(records) == [("f0100_10", True), ("f0100_12", True)]
        assert check.progress.dump_all()["12"] == {"success": True, "message": "ok"}

    def test_failure_before_replay_leaves_the_snapshot(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
        source: FakeTraceSource,
    ) -> None:
        trace = source.traces.pop(10)
        provider = FakeEventProvider()
        provider.heights["f0100"] = [10]
        check = AddressBalanceCheck(context, db, pipeline, funded, provider)

        (failed,) = check.run(["f0100"])

        assert (failed.key, failed.success) == ("f0100_10", False)
        assert check.states.load("f0100", BalanceLedgerState) is None
        assert "10" not in check.progress.dump_all()

        source.traces[10] = trace
        source.fetched.clear()
        records = check.run(["f0100"])

        assert verdicts(records) == [("f0100_10", True)]
        assert source.fetched == [10]
        assert check.states.load("f0100", BalanceLedgerState) == BalanceLedgerState(height=10, received=50)

    def test_mismatch_after_replay_advances_the_snapshot(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
        source: FakeTraceSource,
    ) -> None:
        funded.set_balance("f0100", 11, 49)
        provider = FakeEventProvider()
        provider.heights["f0100"] = [10]
        check = AddressBalanceCheck(context, db, pipeline, funded, provider)

        check.run(["f0100"])
        source.fetched.clear()
        records = check.run(["f0100"])

        assert records == []
        assert source.fetched == []
        assert check.states.load("f0100", BalanceLedgerState) == BalanceLedgerState(height=10, received=50)

    def test_provider_failure_is_recorded_at_zero(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        funded: FakeChainStateReader,
    ) -> None:
        provider = FakeEventProvider()
        provider.error = EventProviderError("API request failed with status 500: oops")

        (record,) = AddressBalanceCheck(context, db, pipeline, funded, provider).run(["f0100"])

        assert (record.key, record.success) == ("f0100_0", False)
        assert "status 500" in record.message


# =============================================================================
# Multisig checks
# =============================================================================

MSIG = "f0900"


def constructor(*signers: str) -> MultisigEvent:
    payload = {"Signers": list(signers), "NumApprovalsThreshold": 1, "UnlockDuration": 0, "StartEpoch": 0}
    return MultisigEvent(action_type="Constructor", value=json.dumps(payload))


@pytest.fixture
def multisig(reader: FakeChainStateReader, source: FakeTraceSource, parser: FakeTraceParser) -> FakeChainStateReader:
    """f0900 is created at height 10 and gains a signer at height 12."""
    reader.add_multisig(MSIG, actor_address(9))
    reader.add_account("f0100", secp_address(1))
    reader.add_account("f0200", secp_address(2))
    source.traces[10] = trace_bytes(invocation("f0100", MSIG))
    source.traces[11] = trace_bytes(invocation("f0300", "f0301", 1))
    source.traces[12] = trace_bytes(invocation("f0100", MSIG))
    parser.events[10] = [constructor("f0100")]
    parser.events[12] = [MultisigEvent(action_type="AddSigner", value=json.dumps({"Signer": "f0200", "Increase": False}))]
    reader.set_multisig_state(MSIG, 11, signers=["f0100"])
    reader.set_multisig_state(MSIG, 13, signers=["f0100", "f0200"])
    return reader


class TestMultisigStateSequential:
    def test_replays_events(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        multisig: FakeChainStateReader,
    ) -> None:
        check = MultisigStateSequentialCheck(context, db, pipeline, multisig)

        records = check.run([MSIG], 10, 12)

        assert verdicts(records) == [("10", True), ("12", True)]
        progress = check.progress.dump_all()
        assert progress["f0900_10"]["success"] is True
        assert progress["f0900_12"]["success"] is True
        assert check.states.load(MSIG, MultisigLedgerState) == MultisigLedgerState(height=12, signers=["f0100", "f0200"])

    def test_signer_mismatch_is_recorded(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        multisig: FakeChainStateReader,
    ) -> None:
        multisig.set_multisig_state(MSIG, 13, signers=["f0100"])
        check = MultisigStateSequentialCheck(context, db, pipeline, multisig)

        check.run([MSIG], 10, 12)

        assert check.progress.dump_all()["f0900_12"]["success"] is False

    def test_each_multisig_gets_its_own_events(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        multisig: FakeChainStateReader,
        source: FakeTraceSource,
        parser: FakeTraceParser,
    ) -> None:
        multisig.add_multisig("f0901", actor_address(10))
        multisig.set_multisig_state("f0901", 11, signers=[])
        source.traces[10] = trace_bytes(invocation("f0100", MSIG), invocation("f0200", "f0901"))
        parser.events[10] = []

        MultisigStateSequentialCheck(context, db, pipeline, multisig).run([MSIG, "f0901"], 10, 10)

        recipients = [{tx.tx_to for tx in transactions} for transactions, _ in parser.event_requests]
        assert recipients == [{MSIG}, {"f0901"}]


class TestMultisigStateEvents:
    def test_replays_provider_heights(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        multisig: FakeChainStateReader,
    ) -> None:
        provider = FakeEventProvider()
        provider.heights[MSIG] = [10, 12]
        check = MultisigStateCheck(context, db, pipeline, multisig, provider)

        records = check.run([MSIG])

        assert verdicts(records) == [("f0900_10", True), ("f0900_12", True)]
        assert check.states.load(MSIG, MultisigLedgerState).signers == ["f0100", "f0200"]

    def test_malformed_address_is_recorded_at_zero(
        self,
        context: CheckContext,
        db: CheckpointDB,
        pipeline: TracePipeline,
        multisig: FakeChainStateReader,
    ) -> None:
        check = MultisigStateCheck(context, db, pipeline, multisig, FakeEventProvider())

        (record,) = check.run(["not-an-address"])

        assert (record.key, record.success) == ("not-an-address_0", False)
