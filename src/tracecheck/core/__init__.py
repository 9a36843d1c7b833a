# src/tracecheck/core/__init__.py
"""Core infrastructure: configuration, logging, run context, addresses, trace codec, checkpoints."""

from tracecheck.core.address import Address, format_address, parse_address, read_address_file
from tracecheck.core.checkpoint import CheckpointDB, CheckpointStore, ProgressStore, StateStore
from tracecheck.core.config import TraceCheckSettings, load_settings
from tracecheck.core.context import CancellationToken, CheckContext
from tracecheck.core.equivalence import EquivalentAddressResolver
from tracecheck.core.logging import configure_logging, get_logger

__all__ = [
    "Address",
    "CancellationToken",
    "CheckContext",
    "CheckpointDB",
    "CheckpointStore",
    "EquivalentAddressResolver",
    "ProgressStore",
    "StateStore",
    "TraceCheckSettings",
    "configure_logging",
    "format_address",
    "get_logger",
    "load_settings",
    "parse_address",
    "read_address_file",
]
