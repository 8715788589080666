"""Structured log events for attendance import runs.

Events are emitted through femtologging as ``[event] key=value`` lines so
log aggregators can parse run throughput and failures without a metrics
backend.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from rollcall.logging import get_logger, log_error, log_info, log_warning

from .errors import (
    AttendanceFetchError,
    AttendanceSourceConfigError,
    ImportInProgressError,
    MalformedPayloadError,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import FactKey, ImportRunOutcome

logger = get_logger(__name__)


class ImportEventType(enum.StrEnum):
    """Structured log event types for import observability."""

    RUN_STARTED = "import.run.started"
    RUN_COMPLETED = "import.run.completed"
    RUN_FAILED = "import.run.failed"
    RUN_SKIPPED = "import.run.skipped"
    MERGE_FAILED = "import.merge.failed"
    RECORDS_DROPPED = "import.records.dropped"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    SCHEMA_DRIFT = "schema_drift"
    CONCURRENCY = "concurrency"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (AttendanceSourceConfigError, ErrorCategory.CONFIGURATION),
    (AttendanceFetchError, ErrorCategory.TRANSPORT),
    (MalformedPayloadError, ErrorCategory.SCHEMA_DRIFT),
    (ImportInProgressError, ErrorCategory.CONCURRENCY),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alert routing."""
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class ImportEventLogger:
    """Emit structured import events via femtologging.

    Successful runs log at INFO, skipped ticks and dropped records at
    WARNING, and failures at ERROR.
    """

    def log_run_started(self, *, source_label: str, started_at: dt.datetime) -> None:
        """Log the start of an import run."""
        log_info(
            logger,
            "[%s] source=%s started_at=%s",
            ImportEventType.RUN_STARTED,
            source_label,
            started_at.isoformat(),
        )

    def log_run_completed(
        self, outcome: ImportRunOutcome, duration: dt.timedelta
    ) -> None:
        """Log a completed run with its merge counts."""
        log_info(
            logger,
            "[%s] source=%s duration_seconds=%.3f imported=%d absent=%d "
            "inserted=%d updated=%d skipped=%d failed=%d dropped_records=%d",
            ImportEventType.RUN_COMPLETED,
            outcome.source_label,
            duration.total_seconds(),
            outcome.imported_count,
            outcome.absent_count,
            outcome.inserted,
            outcome.updated,
            outcome.skipped,
            outcome.failed,
            outcome.dropped_records,
        )

    def log_run_failed(
        self,
        *,
        source_label: str,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log an aborted run with error categorization."""
        log_error(
            logger,
            "[%s] source=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            ImportEventType.RUN_FAILED,
            source_label,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_run_skipped(self, *, source_label: str, reason: str) -> None:
        """Log a scheduler tick skipped because a run was in flight."""
        log_warning(
            logger,
            "[%s] source=%s reason=%s",
            ImportEventType.RUN_SKIPPED,
            source_label,
            reason,
        )

    def log_merge_failed(self, key: FactKey, error: BaseException) -> None:
        """Log a single merge that raised; the run continues."""
        log_error(
            logger,
            "[%s] person_id=%s date=%s period=%s error_type=%s "
            "error_category=%s error_message=%s",
            ImportEventType.MERGE_FAILED,
            key.person_id,
            key.date,
            key.period,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_records_dropped(self, *, source_label: str, dropped: int) -> None:
        """Log records excluded by normalization."""
        log_warning(
            logger,
            "[%s] source=%s dropped_records=%d",
            ImportEventType.RECORDS_DROPPED,
            source_label,
            dropped,
        )
