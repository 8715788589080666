"""Typed domain models for attendance reconciliation."""

from __future__ import annotations

import dataclasses
import datetime as dt  # noqa: TC003
import enum
import typing as typ

import msgspec

ABSENT = "absent"
PRESENT = "present"
LATE = "late"


@dataclasses.dataclass(frozen=True, slots=True)
class FactKey:
    """Natural key of a stored attendance fact.

    ``period=None`` is a real key value ("no period subdivision") and never
    matches a literal empty-string period.
    """

    person_id: str
    date: str
    period: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class AttendanceObservation:
    """One normalized remote attendance record for one person, date and period."""

    person_id: str
    date: str
    status: str
    person_name: str = ""
    period: str | None = None
    time: str | None = None

    @property
    def key(self) -> FactKey:
        """Return the store key this observation merges into."""
        return FactKey(person_id=self.person_id, date=self.date, period=self.period)

    def as_candidate(self) -> FactCandidate:
        """Return the mergeable attributes of this observation."""
        return FactCandidate(
            status=self.status, time=self.time, person_name=self.person_name
        )


@dataclasses.dataclass(frozen=True, slots=True)
class RosterEntry:
    """A person known to the run, used for absentee derivation."""

    person_id: str
    name: str = ""


@dataclasses.dataclass(frozen=True, slots=True)
class FactCandidate:
    """Attributes proposed for a fact by a single merge call."""

    status: str
    time: str | None = None
    person_name: str | None = None


class MergeOutcome(enum.StrEnum):
    """Result of a single merge call against the store."""

    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


class AttendanceFact(msgspec.Struct, kw_only=True, frozen=True):
    """Detached snapshot of a stored attendance fact.

    Attributes
    ----------
    person_id, date, period
        Natural key of the fact.
    person_name
        Best-known display name; may be empty.
    time
        Reported observation time, ``None`` for derived absences.
    status
        Lowercase attendance status.
    edited
        ``True`` once a human has corrected the fact; automated imports no
        longer change it.
    created_at, updated_at
        UTC timestamps of the first and latest accepted write.

    """

    person_id: str
    date: str
    period: str | None
    person_name: str
    time: str | None
    status: str
    edited: bool
    created_at: dt.datetime
    updated_at: dt.datetime

    @property
    def key(self) -> FactKey:
        """Return the natural key of this fact."""
        return FactKey(person_id=self.person_id, date=self.date, period=self.period)


class ImportRunOutcome(
    msgspec.Struct, kw_only=True, frozen=True, tag_field="state", tag="completed"
):
    """Counts published after a successful import run.

    ``imported_count`` covers merges of observed records and
    ``absent_count`` covers merges of derived absences; merges that raised
    are excluded from both and reported in ``failed``.
    """

    imported_count: int
    absent_count: int
    completed_at: dt.datetime
    source_label: str
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    dropped_records: int = 0


class ImportRunFailure(
    msgspec.Struct, kw_only=True, frozen=True, tag_field="state", tag="failed"
):
    """Marker recorded as the last run when an import run aborts."""

    failed_at: dt.datetime
    source_label: str
    error_type: str
    error_category: str
    message: str


type LastRun = ImportRunOutcome | ImportRunFailure


def run_to_builtins(run: LastRun | None) -> dict[str, typ.Any] | None:
    """Convert a last-run record to JSON-ready builtins.

    The msgspec tag is exposed as ``state`` (``completed`` or ``failed``).
    """
    if run is None:
        return None
    return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(run))


def fact_to_builtins(fact: AttendanceFact) -> dict[str, typ.Any]:
    """Convert a fact snapshot to JSON-ready builtins."""
    return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(fact))
