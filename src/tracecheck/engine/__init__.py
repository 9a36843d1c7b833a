# src/tracecheck/engine/__init__.py
"""Reconciliation engine: trace filtering, ledgers, comparators, drivers and checks.

Example:
    from tracecheck.core.checkpoint import CheckpointDB
    from tracecheck.engine import AddressBalanceSequentialCheck, TracePipeline

    db = CheckpointDB.from_path("./tracecheck-db", AddressBalanceSequentialCheck.name)
    pipeline = TracePipeline(context, source, reader, parser)
    check = AddressBalanceSequentialCheck(context, db, pipeline, reader)
    records = check.run(["f01234"], start=1, end=1000)
"""

from tracecheck.engine.checks import (
    AddressBalanceCheck,
    AddressBalanceSequentialCheck,
    CanonicalChainCheck,
    MultisigStateCheck,
    MultisigStateSequentialCheck,
    NullBlocksCheck,
    ValidateJsonCheck,
)
from tracecheck.engine.driver import CheckDriver, EventDriver, SequentialDriver
from tracecheck.engine.ledgers import BalanceLedger, MultisigLedger
from tracecheck.engine.pipeline import HeightData, TracePipeline
from tracecheck.engine.trace_filter import filter_invocations, filter_subcalls, filter_trace, policy_a, policy_b

__all__ = [
    "AddressBalanceCheck",
    "AddressBalanceSequentialCheck",
    "BalanceLedger",
    "CanonicalChainCheck",
    "CheckDriver",
    "EventDriver",
    "HeightData",
    "MultisigLedger",
    "MultisigStateCheck",
    "MultisigStateSequentialCheck",
    "NullBlocksCheck",
    "SequentialDriver",
    "TracePipeline",
    "ValidateJsonCheck",
    "filter_invocations",
    "filter_subcalls",
    "filter_trace",
    "policy_a",
    "policy_b",
]
