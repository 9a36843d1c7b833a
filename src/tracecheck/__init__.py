"""
tracecheck: read-only auditor for a Filecoin chain indexer.

Replays parsed transactions and multisig events recovered from execution
traces and reconciles the replayed state against a full node.
"""

__version__ = "0.1.0"
