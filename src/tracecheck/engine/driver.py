# src/tracecheck/engine/driver.py
"""Unit drivers: run a check per unit and record its verdict.

A unit is a bare height or an (address, height) pair. The driver observes
cancellation, runs the injected check, records a ProgressRecord and then
calls the completion hook (ledger snapshot persistence). A failing unit is
recorded and the run moves on; only cancellation stops it.
"""

from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

from tracecheck.contracts.enums import UnitStatus
from tracecheck.contracts.errors import InputError, ReconciliationMismatch, UpstreamError
from tracecheck.contracts.progress import PROGRESS_OK, AddressHeightUnit, HeightUnit, ProgressRecord, Unit
from tracecheck.core.checkpoint.store import ProgressStore
from tracecheck.core.context import CheckContext

UnitT = TypeVar("UnitT", HeightUnit, AddressHeightUnit)

# Errors that fail one unit without stopping the run.
UNIT_FAILURES: tuple[type[Exception], ...] = (InputError, UpstreamError, ReconciliationMismatch)


def _log_fields(unit: Unit) -> dict[str, object]:
    if isinstance(unit, AddressHeightUnit):
        return {"address": unit.address, "height": unit.height}
    return {"height": unit.height}


class CheckDriver(Generic[UnitT]):
    """Processes units of one type against one progress store."""

    def __init__(
        self,
        context: CheckContext,
        progress: ProgressStore,
        on_complete: Callable[[UnitT], None] | None = None,
    ) -> None:
        self._context = context
        self._progress = progress
        self._on_complete = on_complete

    def process(self, unit: UnitT, check: Callable[[UnitT], UnitStatus]) -> ProgressRecord | None:
        """Run check on unit and record the verdict.

        Returns:
            The recorded ProgressRecord, or None for a skipped unit

        Raises:
            CheckCancelled: If the run was cancelled; nothing is recorded
        """
        self._context.cancellation.raise_if_cancelled()
        log = self._context.logger.bind(**_log_fields(unit))
        try:
            status = check(unit)
        except UNIT_FAILURES as exc:
            record = self.fail(unit, exc)
        else:
            if status is UnitStatus.SKIPPED:
                log.debug("Unit skipped, nothing to compare")
                return None
            record = self._progress.record(unit, True, PROGRESS_OK)
            log.info("Unit reconciled")
        if self._on_complete is not None:
            self._on_complete(unit)
        return record

    def fail(self, unit: UnitT, error: Exception) -> ProgressRecord:
        """Record a failed verdict for unit."""
        self._context.logger.error(
            "Unit check failed",
            error=str(error),
            error_type=type(error).__name__,
            **_log_fields(unit),
        )
        return self._progress.record(unit, False, str(error))


class SequentialDriver(CheckDriver[HeightUnit]):
    """Scans an inclusive height range."""

    def run(self, start: int, end: int, check: Callable[[HeightUnit], UnitStatus]) -> list[ProgressRecord]:
        records: list[ProgressRecord] = []
        for height in range(start, end + 1):
            record = self.process(HeightUnit(height), check)
            if record is not None:
                records.append(record)
        return records


class EventDriver(CheckDriver[AddressHeightUnit]):
    """Walks the provider-supplied heights of one address."""

    def run(
        self,
        address: str,
        heights: Iterable[int],
        check: Callable[[AddressHeightUnit], UnitStatus],
    ) -> list[ProgressRecord]:
        records: list[ProgressRecord] = []
        for unit in self._units(address, heights):
            record = self.process(unit, check)
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def _units(address: str, heights: Iterable[int]) -> Iterator[AddressHeightUnit]:
        for height in heights:
            yield AddressHeightUnit(address, height)
