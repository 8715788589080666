"""Persistence models for reconciled attendance facts."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

from rollcall.attendance.errors import TimezoneAwareRequiredError
from rollcall.attendance.models import AttendanceFact
from rollcall.common.time import utcnow


class Base(DeclarativeBase):
    """Base declarative class for attendance models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and bind aware values as UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return stored datetimes as aware UTC values."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class AttendanceFactRecord(Base):
    """Authoritative attendance state for one (person, date, period).

    ``period`` is nullable and NULL is a distinct key value; lookups must
    compare it with ``IS NOT DISTINCT FROM`` rather than ``=``.
    """

    __tablename__ = "attendance_facts"
    __table_args__ = (
        UniqueConstraint(
            "person_id", "date", "period", name="uq_attendance_facts_key"
        ),
        Index("ix_attendance_facts_date_time", "date", "time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    person_id: Mapped[str] = mapped_column(String(100))
    date: Mapped[str] = mapped_column(String(32))
    period: Mapped[str | None] = mapped_column(String(64), default=None)
    person_name: Mapped[str] = mapped_column(String(200), default="")
    time: Mapped[str | None] = mapped_column(String(64), default=None)
    status: Mapped[str] = mapped_column(String(32))
    edited: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    def to_fact(self) -> AttendanceFact:
        """Return a detached snapshot of this row."""
        return AttendanceFact(
            person_id=self.person_id,
            date=self.date,
            period=self.period,
            person_name=self.person_name,
            time=self.time,
            status=self.status,
            edited=self.edited,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


async def init_attendance_storage(engine: AsyncEngine) -> None:
    """Create all tables registered with Base if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
