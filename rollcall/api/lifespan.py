"""ASGI lifespan middleware starting and stopping the import scheduler."""

from __future__ import annotations

import typing as typ

from rollcall.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from rollcall.attendance.scheduler import ImportScheduler

__all__ = ["ImportLifespan"]

logger = get_logger(__name__)

type LifecycleHook = cabc.Callable[[], cabc.Awaitable[None]]


class ImportLifespan:
    """Falcon middleware bound to ASGI startup and shutdown events.

    Parameters
    ----------
    scheduler
        Scheduler owned by the application.
    autostart
        Start the scheduler when the server starts.
    startup
        Coroutines run at startup before the scheduler starts, for example
        creating the database schema.
    closers
        Coroutines run at shutdown after the scheduler drains, for example
        closing the HTTP client and disposing the database engine.

    """

    def __init__(
        self,
        scheduler: ImportScheduler | None,
        *,
        autostart: bool = False,
        startup: cabc.Sequence[LifecycleHook] = (),
        closers: cabc.Sequence[LifecycleHook] = (),
    ) -> None:
        """Configure the lifespan hooks."""
        self._scheduler = scheduler
        self._autostart = autostart
        self._startup = tuple(startup)
        self._closers = tuple(closers)

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Run startup hooks, then start the scheduler when autostart is set."""
        for hook in self._startup:
            await hook()
        if self._scheduler is None or not self._autostart:
            return
        result = self._scheduler.start()
        log_info(
            logger,
            "Scheduler autostart started=%s interval_s=%.3f",
            result.started,
            result.interval_s,
        )

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Stop the scheduler, wait for in-flight runs and release resources."""
        if self._scheduler is not None:
            await self._scheduler.aclose()
        for close in self._closers:
            await close()
