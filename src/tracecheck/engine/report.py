# src/tracecheck/engine/report.py
"""Progress report: a check's progress bucket dumped as JSON."""

import json
from pathlib import Path
from typing import Any

from tracecheck.contracts.enums import CheckName
from tracecheck.core.checkpoint import CheckpointDB, ProgressStore


def build_report(db: CheckpointDB, check: CheckName) -> dict[str, Any]:
    """Every progress record of the check, keyed as stored."""
    return ProgressStore(db, check).dump_all()


def summarize(report: dict[str, Any]) -> dict[str, int]:
    failed = sum(1 for value in report.values() if not value["success"])
    return {"total": len(report), "succeeded": len(report) - failed, "failed": failed}


def write_report(db: CheckpointDB, check: CheckName, report_path: Path) -> dict[str, int]:
    """Write the report of a check to report_path and return its summary."""
    report = build_report(db, check)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return summarize(report)
