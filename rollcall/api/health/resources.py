"""Health probe resources for liveness and readiness checks.

``/health`` is stateless. ``/ready`` round-trips the fact store when one is
wired so the service reports unready while its database is unreachable.

Usage
-----
Register health endpoints on the Falcon app::

    from rollcall.api.health.resources import HealthResource, ReadyResource

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(store))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from sqlalchemy.exc import SQLAlchemyError

from rollcall.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from rollcall.attendance.store import AttendanceFactStore

__all__ = ["HealthResource", "ReadyResource"]

logger = get_logger(__name__)


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource returning ``{"status": "ready"}``.

    Responds with HTTP 503 and ``{"status": "unavailable"}`` when the fact
    store cannot answer a trivial query.
    """

    def __init__(self, store: AttendanceFactStore | None = None) -> None:
        """Optionally bind the probe to the fact store."""
        self._store = store

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        if self._store is not None:
            try:
                await self._store.ping()
            except SQLAlchemyError as exc:
                log_warning(logger, "Readiness check failed: %s", exc)
                resp.media = {"status": "unavailable"}
                resp.status = HTTPStatus.SERVICE_UNAVAILABLE
                return
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK
