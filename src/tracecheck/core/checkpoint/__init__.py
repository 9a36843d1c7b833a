"""Checkpoint subsystem for resumable checks.

Provides:
- CheckpointDB: SQLite connection management (one file per check)
- CheckpointStore: bucketed key-value store with byte-ordered keys
- ProgressStore / StateStore: progress records and ledger snapshots of a check
- resume / resume_addresses / resume_events / resume_height_scan: resume policies
"""

from tracecheck.core.checkpoint.database import CheckpointDB
from tracecheck.core.checkpoint.recovery import resume, resume_addresses, resume_events, resume_height_scan
from tracecheck.core.checkpoint.store import CheckpointStore, ProgressStore, StateStore

__all__ = [
    "CheckpointDB",
    "CheckpointStore",
    "ProgressStore",
    "StateStore",
    "resume",
    "resume_addresses",
    "resume_events",
    "resume_height_scan",
]
