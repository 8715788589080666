"""Validation of hand-uploaded attendance rows."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from rollcall.common.time import utc_today_iso

from .models import ABSENT, LATE, PRESENT, AttendanceObservation
from .normalizer import is_calendar_date, resolve_field

UPLOAD_ID_FIELDS: typ.Final = ("id", "studentid")
UPLOAD_NAME_FIELDS: typ.Final = ("name", "fullname")
UPLOAD_STATUSES: typ.Final = frozenset({PRESENT, ABSENT, LATE})

MAX_NAME_LENGTH = 200
MAX_ID_LENGTH = 100


def validate_upload_row(
    raw: object, *, today: cabc.Callable[[], str] = utc_today_iso
) -> AttendanceObservation | None:
    """Return an observation for a valid uploaded row, else ``None``.

    Rows need a name (at most 200 characters) and an id (at most 100).
    The date defaults to today and must be ``YYYY-MM-DD``. Unknown statuses
    are coerced to ``present``. Uploaded rows carry no period or time.
    """
    if not isinstance(raw, cabc.Mapping):
        return None
    name = resolve_field(raw, UPLOAD_NAME_FIELDS)
    if name is None or len(name) > MAX_NAME_LENGTH:
        return None
    person_id = resolve_field(raw, UPLOAD_ID_FIELDS)
    if person_id is None or len(person_id) > MAX_ID_LENGTH:
        return None
    date = resolve_field(raw, ("date",)) or today()
    if not is_calendar_date(date):
        return None
    status = (resolve_field(raw, ("status",)) or PRESENT).lower()
    if status not in UPLOAD_STATUSES:
        status = PRESENT
    return AttendanceObservation(
        person_id=person_id,
        person_name=name,
        date=date,
        status=status,
    )
