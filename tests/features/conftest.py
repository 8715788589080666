"""Shared fixtures and steps for the attendance feature tests."""

from __future__ import annotations

import typing as typ

import pytest
from pytest_bdd import given, parsers, then, when
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from rollcall.attendance.errors import AttendanceFetchError, AttendanceImportError
from rollcall.attendance.importer import AttendanceImportService
from rollcall.attendance.models import ImportRunFailure, ImportRunOutcome
from rollcall.attendance.storage import init_attendance_storage
from rollcall.attendance.store import AttendanceFactStore
from tests.helpers.attendance_builders import StaticSource, attendance_row
from tests.helpers.attendance_context import (
    AttendanceContext,
    run_async,
    stored_fact,
)

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def attendance_context(tmp_path: Path) -> typ.Iterator[AttendanceContext]:
    """Provision a fresh database, source and service for each scenario."""
    # Each step runs on its own event loop, so connections must not be pooled.
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'attendance.db'}", poolclass=NullPool
    )
    run_async(init_attendance_storage(engine))
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    store = AttendanceFactStore(session_factory)
    source = StaticSource(label="remote")
    yield {
        "session_factory": session_factory,
        "store": store,
        "source": source,
        "service": AttendanceImportService(store, source),
    }
    run_async(engine.dispose())


@given("an empty attendance store")
def empty_store(attendance_context: AttendanceContext) -> None:
    """Assert the scenario starts without facts."""
    assert run_async(attendance_context["store"].list_facts()) == []


@given(parsers.parse('the roster lists "{entries}"'))
def roster_lists(attendance_context: AttendanceContext, entries: str) -> None:
    """Configure the roster from ``id=name`` pairs."""
    roster = []
    for entry in entries.split(","):
        person_id, _, name = entry.partition("=")
        roster.append({"id": person_id.strip(), "name": name.strip()})
    attendance_context["source"].roster = roster


@given(
    parsers.parse(
        'the remote source reports "{person_id}" as "{status}" at "{time}" '
        'on "{date}" period "{period}"'
    )
)
def remote_reports(  # noqa: PLR0913
    attendance_context: AttendanceContext,
    person_id: str,
    status: str,
    time: str,
    date: str,
    period: str,
) -> None:
    """Append a row to the remote attendance snapshot."""
    source = attendance_context["source"]
    assert isinstance(source.attendance, list)
    source.attendance.append(
        attendance_row(person_id, status=status, time=time, date=date, period=period)
    )


@when("an import run completes")
def import_run_completes(attendance_context: AttendanceContext) -> None:
    """Run one import pass, which must succeed."""
    run_async(attendance_context["service"].run_import_once())


@when("the remote source starts failing")
def remote_source_fails(attendance_context: AttendanceContext) -> None:
    """Make every later fetch fail at the transport level."""
    attendance_context["source"].error = AttendanceFetchError.transport_error(
        "https://school.test/attendance.json", ConnectionError("connection refused")
    )


@when("an import run fails")
def import_run_fails(attendance_context: AttendanceContext) -> None:
    """Run one import pass, which must abort."""
    with pytest.raises(AttendanceImportError):
        run_async(attendance_context["service"].run_import_once())


@then(parsers.parse('"{person_id}" is "{status}" on "{date}" period "{period}"'))
def fact_has_status(
    attendance_context: AttendanceContext,
    person_id: str,
    status: str,
    date: str,
    period: str,
) -> None:
    """Assert the stored status of one fact."""
    fact = stored_fact(attendance_context, person_id, date, period)
    assert fact.status == status


@then(parsers.parse("the store holds {count:d} facts"))
def store_holds(attendance_context: AttendanceContext, count: int) -> None:
    """Assert the number of stored facts."""
    assert len(run_async(attendance_context["store"].list_facts())) == count


@then(parsers.parse("the last run imported {imported:d} and marked {absent:d} absent"))
def last_run_counts(
    attendance_context: AttendanceContext, imported: int, absent: int
) -> None:
    """Assert the counts of the latest run."""
    last_run = attendance_context["service"].last_run
    assert isinstance(last_run, ImportRunOutcome)
    assert (last_run.imported_count, last_run.absent_count) == (imported, absent)


@then(
    parsers.parse(
        "the last successful run imported {imported:d} and marked {absent:d} absent"
    )
)
def last_success_counts(
    attendance_context: AttendanceContext, imported: int, absent: int
) -> None:
    """Assert the counts of the latest successful run."""
    last_success = attendance_context["service"].last_success
    assert last_success is not None
    assert (last_success.imported_count, last_success.absent_count) == (
        imported,
        absent,
    )


@then(parsers.parse('the last run is a "{category}" failure'))
def last_run_failed(attendance_context: AttendanceContext, category: str) -> None:
    """Assert the latest run aborted with the given error category."""
    last_run = attendance_context["service"].last_run
    assert isinstance(last_run, ImportRunFailure)
    assert last_run.error_category == category
