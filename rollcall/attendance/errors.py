"""Attendance import error types."""

from __future__ import annotations


class AttendanceImportError(RuntimeError):
    """Base class for failures that abort a whole import run."""


class AttendanceSourceConfigError(AttendanceImportError):
    """Raised when the import source is not configured."""

    @classmethod
    def missing_attendance_url(cls) -> AttendanceSourceConfigError:
        """Return an error for a missing attendance source URL."""
        return cls("ROLLCALL_ATTENDANCE_URL is required to run an import")


class AttendanceFetchError(AttendanceImportError):
    """Raised when a remote source cannot be fetched."""

    def __init__(
        self, message: str, *, url: str, status_code: int | None = None
    ) -> None:
        """Record the failing URL and optional HTTP status code."""
        self.url = url
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, url: str, status_code: int) -> AttendanceFetchError:
        """Return an error for a non-2xx response."""
        return cls(
            f"failed to fetch {url}: HTTP {status_code}",
            url=url,
            status_code=status_code,
        )

    @classmethod
    def transport_error(cls, url: str, exc: Exception) -> AttendanceFetchError:
        """Return an error for network-level failures and timeouts."""
        return cls(f"failed to fetch {url}: {exc}", url=url)


class MalformedPayloadError(AttendanceImportError):
    """Raised when a remote payload does not carry an attendance array."""

    @classmethod
    def invalid_json(cls, url: str) -> MalformedPayloadError:
        """Return an error for bodies that are not valid JSON."""
        return cls(f"response from {url} is not valid JSON")

    @classmethod
    def not_an_array(cls) -> MalformedPayloadError:
        """Return an error when no attendance array can be located."""
        return cls("attendance payload must be an array")


class ImportInProgressError(AttendanceImportError):
    """Raised when an on-demand run is requested while another is executing."""

    def __init__(self) -> None:
        """Use a fixed message so callers can surface it verbatim."""
        super().__init__("an attendance import is already running")


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self, column: str = "timestamp") -> None:
        """Name the offending column in the message."""
        super().__init__(f"{column} must be timezone aware")


class InvalidManualEditError(ValueError):
    """Raised when a manual edit lacks a person, date or status."""

    def __init__(self, field: str) -> None:
        """Record the missing field name."""
        self.field = field
        super().__init__(f"{field} is required for a manual edit")
