"""Dramatiq actor and helpers for running one import outside the HTTP runtime.

Usage
-----
Queue an import:

>>> import_attendance_job.send(database_url="postgresql+asyncpg://...")

Run one synchronously (what the CLI does):

>>> run_import_sync("sqlite+aiosqlite:///rollcall.db")

"""

from __future__ import annotations

import asyncio
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ._broker import ensure_broker_configured
from .config import ImportConfig
from .importer import AttendanceImportService
from .models import run_to_builtins
from .source import HttpAttendanceSource, HttpSourceConfig
from .storage import init_attendance_storage
from .store import AttendanceFactStore

if typ.TYPE_CHECKING:
    from .models import ImportRunOutcome
    from .source import AttendanceSource


async def run_import_from_url(
    database_url: str,
    config: ImportConfig | None = None,
    *,
    source: AttendanceSource | None = None,
) -> ImportRunOutcome:
    """Ensure the schema exists, run one import and dispose of the engine.

    An HTTP source is built from ``config`` (or the environment) unless
    ``source`` is supplied; only the built source is closed afterwards.
    """
    owned: HttpAttendanceSource | None = None
    if source is None:
        import_config = config or ImportConfig.from_env()
        owned = HttpAttendanceSource(
            HttpSourceConfig.from_import_config(import_config)
        )
        source = owned
    engine = create_async_engine(database_url, future=True)
    try:
        await init_attendance_storage(engine)
        store = AttendanceFactStore(async_sessionmaker(engine, expire_on_commit=False))
        service = AttendanceImportService(store, source)
        return await service.run_import_once()
    finally:
        if owned is not None:
            await owned.aclose()
        await engine.dispose()


def run_import_sync(
    database_url: str, config: ImportConfig | None = None
) -> ImportRunOutcome:
    """Run :func:`run_import_from_url` for blocking contexts."""
    return asyncio.run(run_import_from_url(database_url, config))


ensure_broker_configured()


@dramatiq.actor
def import_attendance_job(database_url: str) -> dict[str, typ.Any]:
    """Dramatiq actor running one attendance import.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the fact store.

    Returns
    -------
    dict[str, typing.Any]
        The run outcome as JSON-compatible builtins.

    Raises
    ------
    AttendanceImportError
        If the source is unconfigured, unreachable or malformed.

    """
    outcome = run_to_builtins(run_import_sync(database_url))
    assert outcome is not None  # noqa: S101 - a completed run is never None
    return outcome
