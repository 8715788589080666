"""Conflict-resolving store for attendance facts.

Every write to ``attendance_facts`` goes through :meth:`AttendanceFactStore.
merge_fact`, which applies the reconciliation policy:

1. A fact corrected by a human (``edited``) is never changed by automation.
2. Automation never downgrades ``present`` to ``absent``.
3. Automation skips candidates that carry no newer time and no new status.
4. Anything else is applied; a missing fact is inserted.
"""

from __future__ import annotations

import asyncio
import collections
import contextlib
import dataclasses
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rollcall.attendance.models import (
    ABSENT,
    PRESENT,
    AttendanceFact,
    FactCandidate,
    FactKey,
    MergeOutcome,
)
from rollcall.attendance.storage import AttendanceFactRecord
from rollcall.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class _FactState(typ.Protocol):
    status: str
    time: str | None
    person_name: str
    edited: bool


@dataclasses.dataclass(frozen=True, slots=True)
class FactUpdate:
    """Attribute values to write when a merge is accepted."""

    status: str
    time: str | None
    person_name: str
    edited: bool


def resolve_merge(
    fact: _FactState, candidate: FactCandidate, *, is_manual_edit: bool
) -> FactUpdate | None:
    """Apply the merge policy to an existing fact.

    Returns the values to write, or ``None`` when the candidate must be
    skipped.
    """
    if not is_manual_edit:
        if fact.edited:
            return None
        if fact.status == PRESENT and candidate.status == ABSENT:
            return None
        if (
            fact.time
            and candidate.time
            and candidate.time <= fact.time
            and candidate.status == fact.status
        ):
            return None

    time = candidate.time
    if is_manual_edit and not time:
        time = fact.time
    return FactUpdate(
        status=candidate.status,
        time=time,
        person_name=candidate.person_name or fact.person_name,
        edited=True if is_manual_edit else fact.edited,
    )


def _select_key(key: FactKey) -> Select[tuple[AttendanceFactRecord]]:
    return select(AttendanceFactRecord).where(
        AttendanceFactRecord.person_id == key.person_id,
        AttendanceFactRecord.date == key.date,
        AttendanceFactRecord.period.is_not_distinct_from(key.period),
    )


class _KeyLocks:
    """Per-key asyncio locks, released from memory once uncontended."""

    def __init__(self) -> None:
        self._locks: dict[FactKey, asyncio.Lock] = {}
        self._holders: collections.Counter[FactKey] = collections.Counter()

    @contextlib.asynccontextmanager
    async def hold(self, key: FactKey) -> typ.AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] <= 0:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class AttendanceFactStore:
    """Durable attendance facts keyed by (person, date, period)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Store the session factory used for every merge and query."""
        self._session_factory = session_factory
        self._locks = _KeyLocks()

    async def merge_fact(
        self,
        key: FactKey,
        candidate: FactCandidate,
        *,
        is_manual_edit: bool = False,
    ) -> MergeOutcome:
        """Merge ``candidate`` into the fact stored for ``key``.

        Merges on the same key are serialized in-process and each runs in its
        own transaction. An insert that loses a race with another process is
        retried once against the row that won.
        """
        async with self._locks.hold(key):
            try:
                return await self._merge_once(
                    key, candidate, is_manual_edit=is_manual_edit
                )
            except IntegrityError:
                log_warning(
                    logger,
                    "Concurrent insert for person_id=%s date=%s period=%s; retrying",
                    key.person_id,
                    key.date,
                    key.period,
                )
                return await self._merge_once(
                    key, candidate, is_manual_edit=is_manual_edit
                )

    async def _merge_once(
        self,
        key: FactKey,
        candidate: FactCandidate,
        *,
        is_manual_edit: bool,
    ) -> MergeOutcome:
        async with self._session_factory() as session, session.begin():
            record = await session.scalar(_select_key(key).with_for_update())
            if record is None:
                session.add(
                    AttendanceFactRecord(
                        person_id=key.person_id,
                        date=key.date,
                        period=key.period,
                        person_name=candidate.person_name or "",
                        time=candidate.time,
                        status=candidate.status,
                        edited=is_manual_edit,
                    )
                )
                return MergeOutcome.INSERTED

            update = resolve_merge(record, candidate, is_manual_edit=is_manual_edit)
            if update is None:
                return MergeOutcome.SKIPPED

            record.status = update.status
            record.time = update.time
            record.person_name = update.person_name
            record.edited = update.edited
            return MergeOutcome.UPDATED

    async def ping(self) -> None:
        """Round-trip a trivial query; raises ``SQLAlchemyError`` when down."""
        async with self._session_factory() as session:
            await session.execute(select(1))

    async def get_fact(self, key: FactKey) -> AttendanceFact | None:
        """Return the fact stored for ``key``, if any."""
        async with self._session_factory() as session:
            record = await session.scalar(_select_key(key))
            return None if record is None else record.to_fact()

    async def list_facts(self, *, date: str | None = None) -> list[AttendanceFact]:
        """Return facts, most recent date and time first.

        ``date`` restricts the listing to one calendar day.
        """
        stmt = select(AttendanceFactRecord).order_by(
            AttendanceFactRecord.date.desc(),
            AttendanceFactRecord.time.desc().nulls_last(),
            AttendanceFactRecord.person_id,
            AttendanceFactRecord.period.asc().nulls_first(),
        )
        if date is not None:
            stmt = stmt.where(AttendanceFactRecord.date == date)
        async with self._session_factory() as session:
            records = (await session.scalars(stmt)).all()
            return [record.to_fact() for record in records]
