# src/tracecheck/core/checkpoint/recovery.py
"""Where a check resumes after an earlier, possibly interrupted, run.

Address-scoped sequential checks trust a stored ledger snapshot only when
its height equals the latest recorded height; anything else means the
snapshot and the progress bucket drifted apart, and the address is
replayed from the configured start.
"""

from collections.abc import Iterable, Sequence
from typing import TypeVar

from tracecheck.contracts.ledger import LedgerState
from tracecheck.contracts.progress import ResumePoint
from tracecheck.core.checkpoint.store import StateStore

StateT = TypeVar("StateT", bound=LedgerState)


def resume(
    state_store: StateStore,
    address: str,
    latest_height: int,
    start_height: int,
    state_cls: type[StateT],
) -> ResumePoint[StateT]:
    """Resume point of one address in a sequential check."""
    state = state_store.load(address, state_cls) or state_cls()
    if state.height > 0 and state.height != latest_height:
        return ResumePoint(start_height=start_height, state=state_cls(), restarted=True)
    if latest_height > 0 and latest_height >= start_height:
        return ResumePoint(start_height=latest_height + 1, state=state)
    return ResumePoint(start_height=start_height, state=state)


def resume_addresses(
    state_store: StateStore,
    addresses: Sequence[str],
    latest_height: int,
    start_height: int,
    state_cls: type[StateT],
) -> ResumePoint[dict[str, StateT]]:
    """Common resume point for every address of a sequential check.

    All addresses share one height loop, so if any address restarts, all of
    them restart from start_height with fresh states.
    """
    points = {address: resume(state_store, address, latest_height, start_height, state_cls) for address in addresses}
    if any(point.restarted for point in points.values()):
        return ResumePoint(
            start_height=start_height,
            state={address: state_cls() for address in addresses},
            restarted=True,
        )
    start = max((point.start_height for point in points.values()), default=start_height)
    return ResumePoint(start_height=start, state={address: point.state for address, point in points.items()})


def resume_events(state: LedgerState, heights: Iterable[int]) -> list[int]:
    """Provider heights still to process, given the loaded state.

    Heights at or below the state's height are already processed, whether
    or not they were contiguous.
    """
    if state.height <= 0:
        return list(heights)
    return [height for height in heights if height > state.height]


def resume_height_scan(latest_height: int, start_height: int) -> int:
    """Start height of a height-only check.

    The latest recorded height is processed again.
    """
    if latest_height > 0 and latest_height > start_height:
        return latest_height
    return start_height
