"""Domain exceptions and Falcon error handlers for the API layer.

Usage
-----
Handlers are registered by :func:`rollcall.api.app.create_app`::

    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(ImportInProgressError, handle_import_in_progress)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from rollcall.attendance.errors import (
        AttendanceImportError,
        AttendanceSourceConfigError,
        ImportInProgressError,
    )

__all__ = [
    "InvalidInputError",
    "UnauthorizedError",
    "handle_import_in_progress",
    "handle_invalid_input",
    "handle_source_config_error",
    "handle_source_failure",
    "handle_unauthorized",
]


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


class UnauthorizedError(Exception):
    """Raised when a protected route is called without a valid import secret."""

    def __init__(self, reason: str = "a valid import secret is required") -> None:
        """Initialize with the refusal reason."""
        self.reason = reason
        super().__init__(reason)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response."""
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_unauthorized(
    _req: Request,
    resp: Response,
    ex: UnauthorizedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UnauthorizedError`` to an HTTP 401 JSON response."""
    resp.status = falcon.HTTP_401
    resp.media = {"title": "Unauthorized", "description": ex.reason}


async def handle_import_in_progress(
    _req: Request,
    resp: Response,
    ex: ImportInProgressError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``ImportInProgressError`` to an HTTP 409 JSON response."""
    resp.status = falcon.HTTP_409
    resp.media = {"title": "Import in progress", "description": str(ex)}


async def handle_source_failure(
    _req: Request,
    resp: Response,
    ex: AttendanceImportError,
    _params: dict[str, typ.Any],
) -> None:
    """Map fetch and payload failures to an HTTP 502 JSON response.

    The remote source is an upstream dependency; its failures are reported as
    a bad gateway rather than a server fault.
    """
    resp.status = falcon.HTTP_502
    resp.media = {
        "title": "Attendance source failed",
        "description": str(ex),
        "error_type": type(ex).__name__,
    }


async def handle_source_config_error(
    _req: Request,
    resp: Response,
    ex: AttendanceSourceConfigError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a missing source configuration to an HTTP 503 JSON response."""
    resp.status = falcon.HTTP_503
    resp.media = {"title": "Import not configured", "description": str(ex)}
