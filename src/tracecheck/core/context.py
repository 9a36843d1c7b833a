# src/tracecheck/core/context.py
"""Run context shared by the collaborators of one check run.

CheckContext carries what used to be ambient (settings, logger) plus the
run's CancellationToken. It is built once by the CLI and passed into
every constructor that needs it.
"""

import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog

from tracecheck.contracts.errors import CheckCancelled
from tracecheck.core.config import TraceCheckSettings
from tracecheck.core.logging import get_logger


class CancellationToken:
    """Cooperative cancellation with an optional deadline.

    Blocking call sites invoke raise_if_cancelled() before they block;
    nothing is interrupted mid-call.
    """

    def __init__(
        self,
        *,
        deadline_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + deadline_seconds if deadline_seconds is not None else None
        self._reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if self._reason is None:
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CheckCancelled(self._reason or "cancelled")

    @contextmanager
    def on_signals(self) -> Iterator["CancellationToken"]:
        """Cancel on SIGINT/SIGTERM for the duration of the block.

        The first signal cancels and restores the default SIGINT handler,
        so a second Ctrl-C raises KeyboardInterrupt. Outside the main
        thread no handlers are installed.
        """
        if threading.current_thread() is not threading.main_thread():
            yield self
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, frame: Any) -> None:
            self.cancel(f"received signal {signal.Signals(signum).name}")
            signal.signal(signal.SIGINT, signal.default_int_handler)

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
        try:
            yield self
        finally:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)


@dataclass
class CheckContext:
    """Settings, logger and cancellation for one run."""

    settings: TraceCheckSettings
    logger: structlog.stdlib.BoundLogger = field(default_factory=lambda: get_logger("tracecheck"))
    cancellation: CancellationToken = field(default_factory=CancellationToken)

    def bind(self, **values: Any) -> "CheckContext":
        """Copy of the context whose logger carries extra fields."""
        return CheckContext(settings=self.settings, logger=self.logger.bind(**values), cancellation=self.cancellation)
