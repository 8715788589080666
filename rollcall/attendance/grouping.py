"""Group observations per (date, period) and derive implicit absences."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

from .models import ABSENT, AttendanceObservation

type GroupKey = tuple[str, str | None]
type SelectedMap = dict[str, AttendanceObservation]


def supersedes(
    candidate: AttendanceObservation, existing: AttendanceObservation
) -> bool:
    """Return whether ``candidate`` replaces ``existing`` for the same person.

    Only a non-empty time strictly later than the existing time wins; an
    observation without a time never displaces one that has a time, and ties
    keep the observation already selected.
    """
    if not candidate.time:
        return False
    return candidate.time > (existing.time or "")


def group_observations(
    observations: cabc.Iterable[AttendanceObservation],
) -> dict[GroupKey, SelectedMap]:
    """Partition observations by ``(date, period)`` keeping the latest per person.

    Groups keep first-seen order. ``period=None`` and ``period=""`` are
    separate groups.
    """
    groups: dict[GroupKey, SelectedMap] = {}
    for observation in observations:
        selected = groups.setdefault((observation.date, observation.period), {})
        current = selected.get(observation.person_id)
        if current is None or supersedes(observation, current):
            selected[observation.person_id] = observation
    return groups


def derive_absentees(
    group: GroupKey,
    selected: cabc.Mapping[str, AttendanceObservation],
    roster: cabc.Mapping[str, str],
) -> list[AttendanceObservation]:
    """Synthesize ``absent`` observations for roster people missing from a group."""
    date, period = group
    return [
        AttendanceObservation(
            person_id=person_id,
            person_name=name,
            date=date,
            period=period,
            time=None,
            status=ABSENT,
        )
        for person_id, name in roster.items()
        if person_id not in selected
    ]


@dataclasses.dataclass(frozen=True, slots=True)
class ReconciledGroup:
    """Final observations for one ``(date, period)`` group."""

    key: GroupKey
    observed: tuple[AttendanceObservation, ...]
    absentees: tuple[AttendanceObservation, ...]


def _with_roster_name(
    observation: AttendanceObservation, roster: cabc.Mapping[str, str]
) -> AttendanceObservation:
    if observation.person_name:
        return observation
    name = roster.get(observation.person_id, "")
    if not name:
        return observation
    return dataclasses.replace(observation, person_name=name)


def reconcile(
    observations: cabc.Iterable[AttendanceObservation],
    roster: cabc.Mapping[str, str],
) -> typ.Iterator[ReconciledGroup]:
    """Yield each group's selected observations and derived absentees.

    Selection for every group completes before any absentees are derived.
    Observed records without a name borrow the roster name.
    """
    groups = group_observations(observations)
    for key, selected in groups.items():
        yield ReconciledGroup(
            key=key,
            observed=tuple(
                _with_roster_name(observation, roster)
                for observation in selected.values()
            ),
            absentees=tuple(derive_absentees(key, selected, roster)),
        )
