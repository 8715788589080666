"""Import pipeline: fetch, normalize, group, derive absentees and merge.

:class:`AttendanceImportService` owns the process-wide in-flight guard and
the "last run" state. The scheduler, the HTTP surface, the CLI and the task
queue actor all trigger runs through one service instance, so at most one
pipeline pass executes at a time.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from rollcall.common.time import utcnow

from .errors import ImportInProgressError, InvalidManualEditError
from .grouping import reconcile
from .models import (
    FactCandidate,
    FactKey,
    ImportRunFailure,
    ImportRunOutcome,
    MergeOutcome,
)
from .normalizer import locate_payload, normalize_payload
from .observability import ImportEventLogger, categorize_error
from .uploads import validate_upload_row

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .models import AttendanceObservation, LastRun
    from .source import AttendanceSource
    from .store import AttendanceFactStore


@dataclasses.dataclass(slots=True)
class _MergeTally:
    """Mutable per-run merge counters."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def count(self, outcome: MergeOutcome | None) -> None:
        match outcome:
            case MergeOutcome.INSERTED:
                self.inserted += 1
            case MergeOutcome.UPDATED:
                self.updated += 1
            case MergeOutcome.SKIPPED:
                self.skipped += 1
            case None:
                self.failed += 1


@dataclasses.dataclass(frozen=True, slots=True)
class UploadResult:
    """Summary of a bulk upload of hand-supplied rows."""

    accepted: int
    rejected: int
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


class AttendanceImportService:
    """Run import passes against one store and one remote source."""

    def __init__(
        self,
        store: AttendanceFactStore,
        source: AttendanceSource,
        *,
        event_logger: ImportEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the service to its store, source and observability hooks."""
        self._store = store
        self._source = source
        self._event_logger = event_logger or ImportEventLogger()
        self._clock = clock
        self._running = False
        self._last_run: LastRun | None = None
        self._last_success: ImportRunOutcome | None = None

    @property
    def store(self) -> AttendanceFactStore:
        """Return the store runs merge into."""
        return self._store

    @property
    def source_label(self) -> str:
        """Return the label of the configured source."""
        return self._source.label

    @property
    def is_running(self) -> bool:
        """Return whether a pipeline pass is executing."""
        return self._running

    @property
    def last_run(self) -> LastRun | None:
        """Return the most recent run outcome or failure marker.

        A failed run replaces the previous entry with an
        :class:`ImportRunFailure`; counts are never reset to zero.
        """
        return self._last_run

    @property
    def last_success(self) -> ImportRunOutcome | None:
        """Return the most recent successful run, surviving later failures."""
        return self._last_success

    async def run_import_once(self) -> ImportRunOutcome:
        """Execute one fetch→normalize→group→derive→merge pass.

        Raises
        ------
        ImportInProgressError
            If another pass is already executing.
        AttendanceImportError
            If the source is unconfigured, unreachable or malformed. The
            failure is recorded as the last run before the error propagates.

        """
        if self._running:
            raise ImportInProgressError
        self._running = True
        try:
            return await self._run()
        finally:
            self._running = False

    async def run_scheduled(self) -> ImportRunOutcome | None:
        """Run one pass for a timer tick.

        Returns ``None`` without running when a pass is already in flight, and
        ``None`` after a failed pass (the failure is already recorded and
        logged by :meth:`run_import_once`).
        """
        if self._running:
            self._event_logger.log_run_skipped(
                source_label=self.source_label, reason="run in progress"
            )
            return None
        try:
            return await self.run_import_once()
        except Exception:  # noqa: BLE001 - recorded as last run; keep ticking
            return None

    async def _run(self) -> ImportRunOutcome:
        started_at = self._clock()
        self._event_logger.log_run_started(
            source_label=self.source_label, started_at=started_at
        )
        try:
            outcome = await self._run_pipeline()
        except Exception as exc:
            self._record_failure(exc, started_at)
            raise
        self._last_run = outcome
        self._last_success = outcome
        self._event_logger.log_run_completed(
            outcome, outcome.completed_at - started_at
        )
        return outcome

    async def _run_pipeline(self) -> ImportRunOutcome:
        payloads = await self._source.fetch()
        batch = normalize_payload(locate_payload(payloads.attendance, payloads.roster))
        if batch.dropped_records:
            self._event_logger.log_records_dropped(
                source_label=self.source_label, dropped=batch.dropped_records
            )

        tally = _MergeTally()
        imported = 0
        absent = 0
        for group in reconcile(batch.observations, batch.roster):
            for observation in group.observed:
                outcome = await self._merge(observation)
                tally.count(outcome)
                imported += outcome is not None
            for observation in group.absentees:
                outcome = await self._merge(observation)
                tally.count(outcome)
                absent += outcome is not None

        return ImportRunOutcome(
            imported_count=imported,
            absent_count=absent,
            completed_at=self._clock(),
            source_label=self.source_label,
            inserted=tally.inserted,
            updated=tally.updated,
            skipped=tally.skipped,
            failed=tally.failed,
            dropped_records=batch.dropped_records,
        )

    async def _merge(self, observation: AttendanceObservation) -> MergeOutcome | None:
        try:
            return await self._store.merge_fact(
                observation.key, observation.as_candidate(), is_manual_edit=False
            )
        except SQLAlchemyError as exc:
            self._event_logger.log_merge_failed(observation.key, exc)
            return None

    def _record_failure(self, exc: Exception, started_at: dt.datetime) -> None:
        failed_at = self._clock()
        self._last_run = ImportRunFailure(
            failed_at=failed_at,
            source_label=self.source_label,
            error_type=type(exc).__name__,
            error_category=categorize_error(exc),
            message=str(exc),
        )
        self._event_logger.log_run_failed(
            source_label=self.source_label,
            error=exc,
            duration=failed_at - started_at,
        )

    async def apply_manual_edit(  # noqa: PLR0913
        self,
        person_id: str,
        date: str,
        period: str | None,
        status: str,
        time: str | None = None,
        name: str | None = None,
    ) -> MergeOutcome:
        """Merge a human correction; the fact becomes protected from imports.

        Raises
        ------
        InvalidManualEditError
            If ``person_id``, ``date`` or ``status`` is empty.

        """
        clean_id = _clean(person_id)
        clean_date = _clean(date)
        clean_status = _clean(status)
        if clean_id is None:
            raise InvalidManualEditError("person_id")
        if clean_date is None:
            raise InvalidManualEditError("date")
        if clean_status is None:
            raise InvalidManualEditError("status")
        return await self._store.merge_fact(
            FactKey(person_id=clean_id, date=clean_date, period=_clean(period)),
            FactCandidate(
                status=clean_status.lower(),
                time=_clean(time),
                person_name=_clean(name),
            ),
            is_manual_edit=True,
        )

    async def upload_rows(self, rows: cabc.Iterable[object]) -> UploadResult:
        """Validate hand-uploaded rows and merge the valid ones.

        Uploaded rows merge like imported observations (they never set the
        manual-edit protection) and do not trigger absentee derivation.
        """
        tally = _MergeTally()
        accepted = 0
        rejected = 0
        for row in rows:
            observation = validate_upload_row(row)
            if observation is None:
                rejected += 1
                continue
            accepted += 1
            tally.count(await self._merge(observation))
        return UploadResult(
            accepted=accepted,
            rejected=rejected,
            inserted=tally.inserted,
            updated=tally.updated,
            skipped=tally.skipped,
            failed=tally.failed,
        )
