"""Property tests for the checkpoint store and ledger replay."""

from hypothesis import given
from hypothesis import strategies as st

from tests.property.settings import SLOW_SETTINGS, STANDARD_SETTINGS
from tracecheck.contracts import ParsedTransaction
from tracecheck.core.checkpoint import CheckpointDB, CheckpointStore
from tracecheck.engine.ledgers import BalanceLedger

heights = st.integers(min_value=1, max_value=10**9)


@given(recorded=st.lists(heights, min_size=1, max_size=20), addresses=st.lists(st.sampled_from(["f0100", "f0200"]), max_size=3))
@SLOW_SETTINGS
def test_latest_height_is_the_bytewise_last_height_key(recorded: list[int], addresses: list[str]) -> None:
    db = CheckpointDB.in_memory()
    try:
        store = CheckpointStore(db, "validate-json")
        for height in recorded:
            store.insert(str(height), {"success": True, "message": "ok"})
        for address in addresses:
            store.insert(f"{address}_{max(recorded) + 1}", {"success": True, "message": "ok"})

        expected = max((str(height) for height in recorded), key=lambda key: key.encode("utf-8"))
        assert store.get_latest_height() == int(expected)
    finally:
        db.close()


transfers = st.lists(
    st.tuples(
        st.sampled_from(["f0100", "f0900"]),
        st.sampled_from(["f0100", "f0900"]),
        st.integers(min_value=0, max_value=10**24),
        st.sampled_from(["Ok", "Error"]),
    ),
    max_size=30,
)


@given(batches=st.lists(transfers, max_size=5))
@STANDARD_SETTINGS
def test_balance_is_received_minus_sent(batches: list[list[tuple[str, str, int, str]]]) -> None:
    watched = frozenset({"f0100"})
    ledger = BalanceLedger()

    for height, batch in enumerate(batches, start=1):
        ledger.apply(
            height,
            watched,
            [ParsedTransaction(tx_from=f, tx_to=t, amount=amount, status=status) for f, t, amount, status in batch],
        )

    ok = [tx for batch in batches for tx in batch if tx[3] == "Ok"]
    received = sum(amount for f, t, amount, _ in ok if t == "f0100")
    sent = sum(amount for f, t, amount, _ in ok if f == "f0100")
    assert ledger.state.balance == received - sent
