"""Application factory for the Rollcall Falcon ASGI application.

This module provides ``create_app()`` which builds the Falcon ASGI
application with health endpoints and, when an import service is supplied,
the attendance and import endpoints.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app::

    from rollcall.api.app import AppDependencies, create_app

    deps = AppDependencies(
        import_service=service,
        scheduler=ImportScheduler(service),
        import_secret="s3cret",
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from rollcall.api.auth import ImportSecretGuard
from rollcall.api.errors import (
    InvalidInputError,
    UnauthorizedError,
    handle_import_in_progress,
    handle_invalid_input,
    handle_source_config_error,
    handle_source_failure,
    handle_unauthorized,
)
from rollcall.api.health.resources import HealthResource, ReadyResource
from rollcall.api.lifespan import ImportLifespan
from rollcall.attendance.errors import (
    AttendanceFetchError,
    AttendanceSourceConfigError,
    ImportInProgressError,
    MalformedPayloadError,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from rollcall.api.lifespan import LifecycleHook
    from rollcall.attendance.importer import AttendanceImportService
    from rollcall.attendance.scheduler import ImportScheduler

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    import_service
        Service backing the attendance and import endpoints. When ``None``
        only health endpoints are registered.
    scheduler
        Scheduler controlled by ``/imports/scheduler``; the route is omitted
        when ``None``.
    import_secret
        Shared secret required by mutating routes. When ``None`` those routes
        always answer 401.
    autostart
        Start the scheduler on ASGI startup.
    startup
        Coroutines awaited on ASGI startup before the scheduler starts.
    closers
        Coroutines awaited on ASGI shutdown after the scheduler drains.

    """

    import_service: AttendanceImportService | None = None
    scheduler: ImportScheduler | None = None
    import_secret: str | None = None
    autostart: bool = False
    startup: cabc.Sequence[LifecycleHook] = ()
    closers: cabc.Sequence[LifecycleHook] = ()


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` (or without an
        import service) only ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or AppDependencies()
    middleware: list[object] = [
        ImportLifespan(
            deps.scheduler,
            autostart=deps.autostart,
            startup=deps.startup,
            closers=deps.closers,
        )
    ]
    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    service = deps.import_service
    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(None if service is None else service.store))

    if service is not None:
        from rollcall.api.attendance.resources import (
            AttendanceListResource,
            AttendanceResourceDependencies,
            ManualEditResource,
            UploadResource,
        )
        from rollcall.api.imports.resources import (
            ImportResourceDependencies,
            ImportRunResource,
            LastImportResource,
            SchedulerResource,
        )

        guard = ImportSecretGuard(deps.import_secret)
        attendance_deps = AttendanceResourceDependencies(service=service, guard=guard)
        import_deps = ImportResourceDependencies(
            service=service, guard=guard, scheduler=deps.scheduler
        )
        app.add_route("/attendance", AttendanceListResource(service))
        app.add_route("/attendance/edits", ManualEditResource(attendance_deps))
        app.add_route("/attendance/uploads", UploadResource(attendance_deps))
        app.add_route("/imports", ImportRunResource(import_deps))
        app.add_route("/imports/last", LastImportResource(import_deps))
        if deps.scheduler is not None:
            app.add_route(
                "/imports/scheduler", SchedulerResource(import_deps, deps.scheduler)
            )

    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(UnauthorizedError, handle_unauthorized)
    app.add_error_handler(ImportInProgressError, handle_import_in_progress)
    app.add_error_handler(AttendanceFetchError, handle_source_failure)
    app.add_error_handler(MalformedPayloadError, handle_source_failure)
    app.add_error_handler(AttendanceSourceConfigError, handle_source_config_error)

    return app
