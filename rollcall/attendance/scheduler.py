"""Periodic trigger for attendance import runs.

The scheduler loop only sleeps and dispatches runs as tasks; it never awaits
a run itself. Stopping therefore cancels future ticks without interrupting a
run that is already merging facts.
"""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from rollcall.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from .importer import AttendanceImportService

logger = get_logger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class SchedulerStartResult:
    """Result of a start request."""

    started: bool
    interval_s: float
    reason: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class SchedulerStopResult:
    """Result of a stop request."""

    stopped: bool
    reason: str | None = None


class ImportScheduler:
    """Trigger :meth:`AttendanceImportService.run_scheduled` on an interval."""

    def __init__(
        self,
        service: AttendanceImportService,
        *,
        interval_s: float = 20.0,
        run_immediately: bool = True,
    ) -> None:
        """Bind the scheduler to a service with default timing."""
        if interval_s <= 0:
            msg = f"interval_s must be positive, got: {interval_s}"
            raise ValueError(msg)
        self._service = service
        self._default_interval_s = interval_s
        self._default_run_immediately = run_immediately
        self._interval_s = interval_s
        self._loop_task: asyncio.Task[None] | None = None
        self._runs: set[asyncio.Task[object]] = set()

    @property
    def is_running(self) -> bool:
        """Return whether the timer loop is active."""
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def interval_s(self) -> float:
        """Return the interval of the active (or last started) loop."""
        return self._interval_s

    def start(
        self,
        interval_s: float | None = None,
        *,
        run_immediately: bool | None = None,
    ) -> SchedulerStartResult:
        """Start the timer loop; a second start is a no-op.

        Must be called from a running event loop.
        """
        if self.is_running:
            return SchedulerStartResult(
                started=False, interval_s=self._interval_s, reason="already running"
            )
        interval = self._default_interval_s if interval_s is None else interval_s
        if interval <= 0:
            msg = f"interval_s must be positive, got: {interval}"
            raise ValueError(msg)
        immediate = (
            self._default_run_immediately
            if run_immediately is None
            else run_immediately
        )
        self._interval_s = interval
        if immediate:
            self._dispatch()
        self._loop_task = asyncio.create_task(
            self._tick_loop(interval), name="rollcall-import-scheduler"
        )
        log_info(
            logger,
            "Import scheduler started interval_s=%.3f run_immediately=%s",
            interval,
            immediate,
        )
        return SchedulerStartResult(started=True, interval_s=interval)

    def stop(self) -> SchedulerStopResult:
        """Cancel future ticks; an in-flight run completes normally."""
        task = self._loop_task
        if task is None or task.done():
            return SchedulerStopResult(stopped=False, reason="not running")
        task.cancel()
        self._loop_task = None
        log_info(logger, "Import scheduler stopped")
        return SchedulerStopResult(stopped=True)

    async def wait_idle(self) -> None:
        """Wait for every dispatched run to finish."""
        while self._runs:
            await asyncio.gather(*tuple(self._runs), return_exceptions=True)

    async def aclose(self) -> None:
        """Stop the loop and drain dispatched runs."""
        self.stop()
        await self.wait_idle()

    async def _tick_loop(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            self._dispatch()

    def _dispatch(self) -> None:
        task = asyncio.create_task(
            self._service.run_scheduled(), name="rollcall-import-run"
        )
        self._runs.add(task)
        task.add_done_callback(self._runs.discard)
