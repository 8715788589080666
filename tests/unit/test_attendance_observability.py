"""Unit tests for import observability events."""

from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from rollcall.attendance.errors import (
    AttendanceFetchError,
    AttendanceSourceConfigError,
    ImportInProgressError,
    MalformedPayloadError,
)
from rollcall.attendance.models import FactKey, ImportRunOutcome
from rollcall.attendance.observability import (
    ErrorCategory,
    ImportEventLogger,
    ImportEventType,
    categorize_error,
)
from tests.helpers.femtologging_capture import capture_femto_logs

LOGGER_NAME = "rollcall.attendance.observability"


@pytest.mark.parametrize(
    ("error", "category"),
    [
        (
            AttendanceSourceConfigError.missing_attendance_url(),
            ErrorCategory.CONFIGURATION,
        ),
        (
            AttendanceFetchError.http_error("https://x.test", 500),
            ErrorCategory.TRANSPORT,
        ),
        (MalformedPayloadError.not_an_array(), ErrorCategory.SCHEMA_DRIFT),
        (ImportInProgressError(), ErrorCategory.CONCURRENCY),
        (
            OperationalError("SELECT 1", {}, Exception("gone")),
            ErrorCategory.DATABASE_CONNECTIVITY,
        ),
        (IntegrityError("INSERT", {}, Exception("dup")), ErrorCategory.DATABASE_ERROR),
        (KeyError("x"), ErrorCategory.UNKNOWN),
    ],
)
def test_categorize_error(error: BaseException, category: ErrorCategory) -> None:
    """Exceptions map onto alert categories."""
    assert categorize_error(error) is category


class TestImportEventLogger:
    """Structured event lines emitted through femtologging."""

    def test_run_completed_is_info_with_counts(self) -> None:
        """Completion carries every count as key=value."""
        outcome = ImportRunOutcome(
            imported_count=3,
            absent_count=2,
            completed_at=dt.datetime(2024, 5, 6, 9, tzinfo=dt.UTC),
            source_label="school-a",
            inserted=4,
            updated=1,
            failed=1,
            dropped_records=2,
        )
        with capture_femto_logs(LOGGER_NAME) as capture:
            ImportEventLogger().log_run_completed(outcome, dt.timedelta(seconds=1.5))
            capture.wait_for_count(1)

        record = capture.records[0]
        assert record.level == "INFO"
        assert ImportEventType.RUN_COMPLETED in record.message
        for fragment in (
            "source=school-a",
            "duration_seconds=1.500",
            "imported=3",
            "absent=2",
            "inserted=4",
            "updated=1",
            "failed=1",
            "dropped_records=2",
        ):
            assert fragment in record.message

    def test_run_failed_is_error_with_category(self) -> None:
        """Failures log at ERROR with type, category and exception attached."""
        error = AttendanceFetchError.http_error("https://x.test/a.json", 502)
        with capture_femto_logs(LOGGER_NAME) as capture:
            ImportEventLogger().log_run_failed(
                source_label="school-a", error=error, duration=dt.timedelta(0)
            )
            capture.wait_for_count(1)

        record = capture.records[0]
        assert record.level == "ERROR"
        assert "error_type=AttendanceFetchError" in record.message
        assert "error_category=transport" in record.message
        assert record.exc_info is not None

    def test_run_skipped_is_warning(self) -> None:
        """Skipped ticks are warnings naming the reason."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            ImportEventLogger().log_run_skipped(
                source_label="school-a", reason="run in progress"
            )
            capture.wait_for_count(1)

        record = capture.find(ImportEventType.RUN_SKIPPED)
        assert record.level == "WARN"
        assert "reason=run in progress" in record.message

    def test_merge_failed_names_the_key(self) -> None:
        """A failed merge identifies the fact key."""
        with capture_femto_logs(LOGGER_NAME) as capture:
            ImportEventLogger().log_merge_failed(
                FactKey("S1", "2024-05-06", "2"), RuntimeError("locked")
            )
            capture.wait_for_count(1)

        record = capture.records[0]
        assert "person_id=S1 date=2024-05-06 period=2" in record.message
        assert "error_message=locked" in record.message
