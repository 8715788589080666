"""Normalize untrusted remote attendance payloads into typed observations.

Remote sources disagree on field names, so each logical field is resolved
from an ordered tuple of aliases exactly once, here. Downstream components
only ever see :class:`~rollcall.attendance.models.AttendanceObservation` and
:class:`~rollcall.attendance.models.RosterEntry` values.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import typing as typ

from .errors import MalformedPayloadError
from .models import PRESENT, AttendanceObservation, RosterEntry

type RawRecord = cabc.Mapping[str, typ.Any]

PERSON_ID_FIELDS: typ.Final = (
    "register_no",
    "registerNo",
    "reg_no",
    "id",
    "studentid",
)
NAME_FIELDS: typ.Final = ("name", "fullname")
DATE_FIELDS: typ.Final = ("date", "day")
PERIOD_FIELDS: typ.Final = ("period",)
TIME_FIELDS: typ.Final = ("time",)
STATUS_FIELDS: typ.Final = ("status",)

ATTENDANCE_KEYS: typ.Final = ("attendance", "records", "rows")
ROSTER_KEYS: typ.Final = ("students", "students_list")

# Some exporters serialise missing statuses as the string "null".
_NULL_STATUS = "null"
_ISO_DATE_LENGTH = 10


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def resolve_field(record: RawRecord, fields: cabc.Iterable[str]) -> str | None:
    """Return the first non-empty, trimmed value among ``fields``."""
    for field in fields:
        text = _text(record.get(field))
        if text:
            return text
    return None


def resolve_person_id(record: RawRecord) -> str | None:
    """Return the stable person identifier for ``record``, if any."""
    return resolve_field(record, PERSON_ID_FIELDS)


def normalize_status(value: object) -> str:
    """Lowercase a status value, defaulting to ``present``."""
    status = _text(value).lower()
    if not status or status == _NULL_STATUS:
        return PRESENT
    return status


def is_calendar_date(value: str) -> bool:
    """Return whether ``value`` is an ISO ``YYYY-MM-DD`` calendar date."""
    try:
        dt.date.fromisoformat(value)
    except ValueError:
        return False
    return len(value) == _ISO_DATE_LENGTH


def normalize_record(record: object) -> AttendanceObservation | None:
    """Turn one raw attendance record into an observation.

    Returns ``None`` for records that cannot be used: non-objects, records
    without a person identifier and records without a valid calendar date.
    """
    if not isinstance(record, cabc.Mapping):
        return None
    person_id = resolve_person_id(record)
    date = resolve_field(record, DATE_FIELDS)
    if person_id is None or date is None or not is_calendar_date(date):
        return None
    return AttendanceObservation(
        person_id=person_id,
        person_name=resolve_field(record, NAME_FIELDS) or "",
        date=date,
        period=resolve_field(record, PERIOD_FIELDS),
        time=resolve_field(record, TIME_FIELDS),
        status=normalize_status(resolve_field(record, STATUS_FIELDS)),
    )


def normalize_roster_entry(record: object) -> RosterEntry | None:
    """Turn one raw roster record into a roster entry, or ``None``."""
    if not isinstance(record, cabc.Mapping):
        return None
    person_id = resolve_person_id(record)
    if person_id is None:
        return None
    name = resolve_field(record, NAME_FIELDS) or ""
    return RosterEntry(person_id=person_id, name=name)


@dataclasses.dataclass(frozen=True, slots=True)
class SourcePayload:
    """Attendance rows and optional roster rows located in remote payloads."""

    attendance: list[typ.Any]
    roster: list[typ.Any] | None = None


def _first_list(
    payload: cabc.Mapping[str, typ.Any], keys: tuple[str, ...]
) -> list[typ.Any] | None:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return None


def locate_payload(
    attendance_payload: object, roster_payload: object = None
) -> SourcePayload:
    """Locate the attendance array and optional roster array.

    ``attendance_payload`` may be a bare array or an object carrying the
    array under one of :data:`ATTENDANCE_KEYS`; such an object may also carry
    a roster under :data:`ROSTER_KEYS`. A separately fetched
    ``roster_payload`` takes precedence over an embedded roster. Rosters
    that are not arrays are ignored.

    Raises
    ------
    MalformedPayloadError
        If no attendance array can be found.

    """
    embedded_roster: list[typ.Any] | None = None
    if isinstance(attendance_payload, list):
        attendance = attendance_payload
    elif isinstance(attendance_payload, cabc.Mapping):
        located = _first_list(attendance_payload, ATTENDANCE_KEYS)
        if located is None:
            raise MalformedPayloadError.not_an_array()
        attendance = located
        embedded_roster = _first_list(attendance_payload, ROSTER_KEYS)
    else:
        raise MalformedPayloadError.not_an_array()

    roster = roster_payload if isinstance(roster_payload, list) else embedded_roster
    return SourcePayload(attendance=attendance, roster=roster)


@dataclasses.dataclass(frozen=True, slots=True)
class NormalizedBatch:
    """Observations and roster for one import run."""

    observations: tuple[AttendanceObservation, ...]
    roster: dict[str, str]
    dropped_records: int = 0


def build_roster(
    roster_rows: cabc.Iterable[object] | None,
    attendance_rows: cabc.Iterable[object],
) -> dict[str, str]:
    """Build the ``person_id -> name`` roster for a run.

    Supplied roster rows come first. Every identifiable person in the
    attendance rows is then added if missing, so without a roster source the
    roster is exactly the set of people seen in this payload.
    """
    roster: dict[str, str] = {}
    for row in roster_rows or ():
        entry = normalize_roster_entry(row)
        if entry is not None:
            roster[entry.person_id] = entry.name
    for row in attendance_rows:
        entry = normalize_roster_entry(row)
        if entry is not None and entry.person_id not in roster:
            roster[entry.person_id] = entry.name
    return roster


def normalize_payload(payload: SourcePayload) -> NormalizedBatch:
    """Normalize every attendance row and build the run's roster."""
    observations: list[AttendanceObservation] = []
    dropped = 0
    for row in payload.attendance:
        observation = normalize_record(row)
        if observation is None:
            dropped += 1
            continue
        observations.append(observation)
    return NormalizedBatch(
        observations=tuple(observations),
        roster=build_roster(payload.roster, payload.attendance),
        dropped_records=dropped,
    )
