"""Attendance fact resources: listing, manual edits and bulk uploads.

Usage
-----
Register the resources on the Falcon app::

    deps = AttendanceResourceDependencies(service=service, guard=guard)
    app.add_route("/attendance", AttendanceListResource(service))
    app.add_route("/attendance/edits", ManualEditResource(deps))
    app.add_route("/attendance/uploads", UploadResource(deps))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import msgspec

from rollcall.api.errors import InvalidInputError
from rollcall.attendance.models import FactKey, fact_to_builtins
from rollcall.attendance.normalizer import is_calendar_date

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from rollcall.api.auth import ImportSecretGuard
    from rollcall.attendance.importer import AttendanceImportService

__all__ = [
    "AttendanceListResource",
    "AttendanceResourceDependencies",
    "ManualEditRequest",
    "ManualEditResource",
    "UploadRequest",
    "UploadResource",
]


class ManualEditRequest(msgspec.Struct, kw_only=True):
    """Body of ``POST /attendance/edits``."""

    person_id: str
    date: str
    status: str
    period: str | None = None
    time: str | None = None
    name: str | None = None


class UploadRequest(msgspec.Struct, kw_only=True):
    """Body of ``POST /attendance/uploads`` when sent as an object."""

    rows: list[typ.Any]


@dc.dataclass(frozen=True, slots=True)
class AttendanceResourceDependencies:
    """Collaborators shared by the mutating attendance resources."""

    service: AttendanceImportService
    guard: ImportSecretGuard


def _decode[T](media: object, struct_type: type[T]) -> T:
    """Convert decoded JSON into ``struct_type`` or raise ``InvalidInputError``."""
    try:
        return msgspec.convert(media, struct_type)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc


def _required(value: str, field: str) -> str:
    text = value.strip()
    if not text:
        raise InvalidInputError("must not be empty", field=field)
    return text


def _optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class AttendanceListResource:
    """``GET /attendance`` returns stored facts, newest first."""

    def __init__(self, service: AttendanceImportService) -> None:
        """Bind the resource to the import service."""
        self._service = service

    async def on_get(self, req: Request, resp: Response) -> None:
        """List facts, optionally restricted with ``?date=YYYY-MM-DD``."""
        date = req.get_param("date")
        if date is not None and not is_calendar_date(date):
            raise InvalidInputError("expected YYYY-MM-DD", field="date")
        facts = await self._service.store.list_facts(date=date)
        resp.media = {"facts": [fact_to_builtins(fact) for fact in facts]}
        resp.status = falcon.HTTP_200


class ManualEditResource:
    """``POST /attendance/edits`` applies a human correction.

    The corrected fact is protected from later automated imports.
    """

    def __init__(self, dependencies: AttendanceResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.service
        self._guard = dependencies.guard

    async def on_post(self, req: Request, resp: Response) -> None:
        """Validate the body, merge the edit and return the resulting fact."""
        self._guard.require(req)
        body = _decode(await req.get_media(), ManualEditRequest)
        person_id = _required(body.person_id, "person_id")
        date = _required(body.date, "date")
        status = _required(body.status, "status")
        if not is_calendar_date(date):
            raise InvalidInputError("expected YYYY-MM-DD", field="date")
        period = _optional(body.period)

        outcome = await self._service.apply_manual_edit(
            person_id,
            date,
            period,
            status,
            time=_optional(body.time),
            name=_optional(body.name),
        )
        fact = await self._service.store.get_fact(
            FactKey(person_id=person_id, date=date, period=period)
        )
        resp.media = {
            "outcome": str(outcome),
            "fact": None if fact is None else fact_to_builtins(fact),
        }
        resp.status = falcon.HTTP_200


class UploadResource:
    """``POST /attendance/uploads`` merges hand-supplied rows.

    Accepts either a JSON array of rows or ``{"rows": [...]}``.
    """

    def __init__(self, dependencies: AttendanceResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.service
        self._guard = dependencies.guard

    async def on_post(self, req: Request, resp: Response) -> None:
        """Validate and merge the uploaded rows, reporting per-row counts."""
        self._guard.require(req)
        media = await req.get_media()
        rows = media if isinstance(media, list) else _decode(media, UploadRequest).rows
        if not rows:
            raise InvalidInputError("no rows supplied", field="rows")

        result = await self._service.upload_rows(rows)
        resp.media = dc.asdict(result)
        resp.status = falcon.HTTP_200
