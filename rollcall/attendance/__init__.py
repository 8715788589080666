"""Attendance reconciliation and import engine.

The package turns a remote attendance snapshot into durable per-person,
per-date, per-period facts:

* **Normalization** - alias resolution, status defaults and payload shape
  detection (:mod:`rollcall.attendance.normalizer`).
* **Reconciliation** - latest-wins selection per ``(date, period)`` group and
  absentee derivation from the roster (:mod:`rollcall.attendance.grouping`).
* **Storage** - the conflict-resolving fact store with manual-edit
  protection (:mod:`rollcall.attendance.store`).
* **Orchestration** - the import service, its scheduler and a Dramatiq actor
  (import ``rollcall.attendance.actor`` explicitly; it configures a broker on
  import).

Quick example
-------------

    >>> from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
    >>> from rollcall.attendance import (
    ...     AttendanceFactStore,
    ...     AttendanceImportService,
    ...     HttpAttendanceSource,
    ...     HttpSourceConfig,
    ...     init_attendance_storage,
    ... )
    >>> engine = create_async_engine("sqlite+aiosqlite:///rollcall.db")
    >>> await init_attendance_storage(engine)
    >>> store = AttendanceFactStore(async_sessionmaker(engine, expire_on_commit=False))
    >>> source = HttpAttendanceSource(
    ...     HttpSourceConfig(attendance_url="https://example.test/attendance.json")
    ... )
    >>> outcome = await AttendanceImportService(store, source).run_import_once()

"""

from rollcall.attendance.config import ImportConfig
from rollcall.attendance.errors import (
    AttendanceFetchError,
    AttendanceImportError,
    AttendanceSourceConfigError,
    ImportInProgressError,
    InvalidManualEditError,
    MalformedPayloadError,
)
from rollcall.attendance.grouping import derive_absentees, group_observations, reconcile
from rollcall.attendance.importer import AttendanceImportService, UploadResult
from rollcall.attendance.models import (
    AttendanceFact,
    AttendanceObservation,
    FactCandidate,
    FactKey,
    ImportRunFailure,
    ImportRunOutcome,
    MergeOutcome,
)
from rollcall.attendance.normalizer import (
    locate_payload,
    normalize_payload,
    normalize_record,
)
from rollcall.attendance.scheduler import (
    ImportScheduler,
    SchedulerStartResult,
    SchedulerStopResult,
)
from rollcall.attendance.source import (
    AttendanceSource,
    HttpAttendanceSource,
    HttpSourceConfig,
    RemotePayloads,
)
from rollcall.attendance.storage import init_attendance_storage
from rollcall.attendance.store import AttendanceFactStore, resolve_merge

__all__ = [
    "AttendanceFact",
    "AttendanceFactStore",
    "AttendanceFetchError",
    "AttendanceImportError",
    "AttendanceImportService",
    "AttendanceObservation",
    "AttendanceSource",
    "AttendanceSourceConfigError",
    "FactCandidate",
    "FactKey",
    "HttpAttendanceSource",
    "HttpSourceConfig",
    "ImportConfig",
    "ImportInProgressError",
    "ImportRunFailure",
    "ImportRunOutcome",
    "ImportScheduler",
    "InvalidManualEditError",
    "MalformedPayloadError",
    "MergeOutcome",
    "RemotePayloads",
    "SchedulerStartResult",
    "SchedulerStopResult",
    "UploadResult",
    "derive_absentees",
    "group_observations",
    "init_attendance_storage",
    "locate_payload",
    "normalize_payload",
    "normalize_record",
    "reconcile",
    "resolve_merge",
]
