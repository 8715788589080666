"""Rollcall runtime entrypoint.

This module provides the ASGI application factory used by Granian. It
delegates to :func:`rollcall.api.app.create_app` while keeping the
``rollcall.runtime:create_app`` entrypoint stable.

When ``ROLLCALL_DATABASE_URL`` is set, the runtime builds the fact store,
the HTTP attendance source, the import service and its scheduler, so the app
serves the attendance and import endpoints. Otherwise it starts in
health-only mode.

Configuration is driven by environment variables:

- ``ROLLCALL_HOST``: Bind address (default ``0.0.0.0``)
- ``ROLLCALL_PORT``: Listen port (default ``8080``)
- ``ROLLCALL_LOG_LEVEL``: Log level (default ``INFO``)
- ``ROLLCALL_DATABASE_URL``: Database connection URL (optional; enables
  attendance endpoints when set)
- ``ROLLCALL_IMPORT_SECRET``: Shared secret for mutating routes
- ``ROLLCALL_ATTENDANCE_URL`` and the other ``ImportConfig`` variables

Run the service directly with ``python -m rollcall.runtime``.
"""

from __future__ import annotations

import functools
import os
import typing as typ

from rollcall.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid ROLLCALL_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Schema creation runs on ASGI startup, before the scheduler is started,
    so the factory itself performs no I/O.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    from rollcall.api.app import create_app as _create_api_app

    database_url = os.environ.get("ROLLCALL_DATABASE_URL")

    if database_url is None:
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from rollcall.api.app import AppDependencies
    from rollcall.attendance.config import ImportConfig
    from rollcall.attendance.importer import AttendanceImportService
    from rollcall.attendance.scheduler import ImportScheduler
    from rollcall.attendance.source import HttpAttendanceSource, HttpSourceConfig
    from rollcall.attendance.storage import init_attendance_storage
    from rollcall.attendance.store import AttendanceFactStore

    config = ImportConfig.from_env()
    if config.attendance_url is None:
        log_warning(
            logger,
            "ROLLCALL_ATTENDANCE_URL is not set; import runs will fail until "
            "it is configured",
        )

    engine = create_async_engine(database_url)
    store = AttendanceFactStore(async_sessionmaker(engine, expire_on_commit=False))
    source = HttpAttendanceSource(HttpSourceConfig.from_import_config(config))
    service = AttendanceImportService(store, source)
    scheduler = ImportScheduler(
        service,
        interval_s=config.interval_s,
        run_immediately=config.run_immediately,
    )

    return _create_api_app(
        AppDependencies(
            import_service=service,
            scheduler=scheduler,
            import_secret=os.environ.get("ROLLCALL_IMPORT_SECRET"),
            autostart=config.autostart,
            startup=(functools.partial(init_attendance_storage, engine),),
            closers=(source.aclose, engine.dispose),
        )
    )


def main() -> None:
    """Start the Rollcall runtime server using Granian.

    Reads ``ROLLCALL_HOST``, ``ROLLCALL_PORT``, and ``ROLLCALL_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("ROLLCALL_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("ROLLCALL_PORT", "8080")
    port = _parse_port(port_str)
    log_level_str = os.environ.get("ROLLCALL_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid ROLLCALL_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Rollcall runtime on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "rollcall.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
