"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rollcall.attendance.storage import init_attendance_storage
from rollcall.attendance.store import AttendanceFactStore

if typ.TYPE_CHECKING:
    from pathlib import Path


async def _setup_sqlite(tmp_path: Path) -> AsyncEngine:
    """Create a SQLite engine with the attendance schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rollcall_test.db'}")
    try:
        await init_attendance_storage(engine)
    except Exception:
        await engine.dispose()
        raise
    return engine


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = await _setup_sqlite(tmp_path)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def fact_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> AttendanceFactStore:
    """Return a fact store bound to the sqlite session factory."""
    return AttendanceFactStore(session_factory)
