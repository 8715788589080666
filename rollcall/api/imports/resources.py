"""Import resources: on-demand runs, last-run status and scheduler control.

Failures raised by the import service are mapped to HTTP statuses by the
handlers registered in :func:`rollcall.api.app.create_app`: an overlapping
run is 409, a fetch or payload failure is 502 and a missing source URL is
503.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import msgspec

from rollcall.api.errors import InvalidInputError
from rollcall.attendance.models import run_to_builtins

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from rollcall.api.auth import ImportSecretGuard
    from rollcall.attendance.importer import AttendanceImportService
    from rollcall.attendance.scheduler import ImportScheduler

__all__ = [
    "ImportResourceDependencies",
    "ImportRunResource",
    "LastImportResource",
    "SchedulerResource",
    "SchedulerStartRequest",
]


class SchedulerStartRequest(msgspec.Struct, kw_only=True):
    """Optional body of ``POST /imports/scheduler``."""

    interval_ms: int | None = None
    run_immediately: bool | None = None


@dc.dataclass(frozen=True, slots=True)
class ImportResourceDependencies:
    """Collaborators for the import resources."""

    service: AttendanceImportService
    guard: ImportSecretGuard
    scheduler: ImportScheduler | None = None


class ImportRunResource:
    """``POST /imports`` runs one import pass and returns its outcome."""

    def __init__(self, dependencies: ImportResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.service
        self._guard = dependencies.guard

    async def on_post(self, req: Request, resp: Response) -> None:
        """Run the pipeline once; errors propagate to the registered handlers."""
        self._guard.require(req)
        outcome = await self._service.run_import_once()
        resp.media = run_to_builtins(outcome)
        resp.status = falcon.HTTP_200


class LastImportResource:
    """``GET /imports/last`` reports the latest run and latest success."""

    def __init__(self, dependencies: ImportResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.service
        self._scheduler = dependencies.scheduler

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Return the last-run record, which may be a failure marker."""
        resp.media = {
            "last_run": run_to_builtins(self._service.last_run),
            "last_success": run_to_builtins(self._service.last_success),
            "running": self._service.is_running,
            "scheduler_running": (
                self._scheduler is not None and self._scheduler.is_running
            ),
        }
        resp.status = falcon.HTTP_200


class SchedulerResource:
    """``POST`` starts and ``DELETE`` stops the import scheduler."""

    def __init__(
        self, dependencies: ImportResourceDependencies, scheduler: ImportScheduler
    ) -> None:
        """Configure the resource with its dependencies and scheduler."""
        self._guard = dependencies.guard
        self._scheduler = scheduler

    async def on_post(self, req: Request, resp: Response) -> None:
        """Start the scheduler; a running scheduler reports ``started=false``."""
        self._guard.require(req)
        media = await req.get_media(default_when_empty=None)
        try:
            body = msgspec.convert(media or {}, SchedulerStartRequest)
        except msgspec.ValidationError as exc:
            raise InvalidInputError(str(exc)) from exc
        if body.interval_ms is not None and body.interval_ms < 1:
            raise InvalidInputError("must be positive", field="interval_ms")

        result = self._scheduler.start(
            None if body.interval_ms is None else body.interval_ms / 1000,
            run_immediately=body.run_immediately,
        )
        resp.media = {
            "started": result.started,
            "interval_ms": round(result.interval_s * 1000),
            "reason": result.reason,
        }
        resp.status = falcon.HTTP_200

    async def on_delete(self, req: Request, resp: Response) -> None:
        """Stop the scheduler; in-flight runs complete normally."""
        self._guard.require(req)
        result = self._scheduler.stop()
        resp.media = {"stopped": result.stopped, "reason": result.reason}
        resp.status = falcon.HTTP_200
