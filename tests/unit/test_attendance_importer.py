"""Unit tests for AttendanceImportService against a sqlite fact store."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sqlalchemy.exc import OperationalError

from rollcall.attendance.errors import (
    AttendanceFetchError,
    AttendanceSourceConfigError,
    ImportInProgressError,
    InvalidManualEditError,
    MalformedPayloadError,
)
from rollcall.attendance.importer import AttendanceImportService, UploadResult
from rollcall.attendance.models import (
    FactKey,
    ImportRunFailure,
    ImportRunOutcome,
    MergeOutcome,
)
from tests.helpers.attendance_builders import StaticSource, attendance_row
from tests.helpers.femtologging_capture import capture_femto_logs

if typ.TYPE_CHECKING:
    from rollcall.attendance.store import AttendanceFactStore

ROSTER = [{"id": "S1", "name": "Alice"}, {"id": "S2", "name": "Bob"}]
EXAMPLE_ROWS = [
    {
        "register_no": "S1",
        "date": "2024-05-01",
        "period": "1",
        "time": "09:00",
        "status": "Present",
    }
]


def _service(
    store: AttendanceFactStore, source: StaticSource
) -> AttendanceImportService:
    return AttendanceImportService(store, source)


async def _snapshot(store: AttendanceFactStore) -> list[tuple[object, ...]]:
    return [
        (f.person_id, f.date, f.period, f.status, f.time, f.edited)
        for f in await store.list_facts()
    ]


@pytest.mark.asyncio
async def test_worked_example(fact_store: AttendanceFactStore) -> None:
    """One run records the observed person and derives the missing one."""
    service = _service(fact_store, StaticSource(EXAMPLE_ROWS, roster=ROSTER))

    outcome = await service.run_import_once()

    assert (outcome.imported_count, outcome.absent_count) == (1, 1)
    alice = await fact_store.get_fact(FactKey("S1", "2024-05-01", "1"))
    bob = await fact_store.get_fact(FactKey("S2", "2024-05-01", "1"))
    assert alice is not None
    assert bob is not None
    assert (alice.status, alice.time, alice.edited) == ("present", "09:00", False)
    assert (bob.status, bob.time, bob.edited) == ("absent", None, False)
    assert bob.person_name == "Bob"


@pytest.mark.asyncio
async def test_reimport_is_idempotent(fact_store: AttendanceFactStore) -> None:
    """Replaying the same payload leaves the fact set unchanged."""
    service = _service(fact_store, StaticSource(EXAMPLE_ROWS, roster=ROSTER))

    first = await service.run_import_once()
    before = await _snapshot(fact_store)
    second = await service.run_import_once()

    assert first.inserted == 2
    assert second.inserted == 0
    assert second.updated + second.skipped == 2
    assert await _snapshot(fact_store) == before


@pytest.mark.asyncio
async def test_absentee_completeness(fact_store: AttendanceFactStore) -> None:
    """Roster members missing from a group are recorded absent for it."""
    roster = [{"id": person} for person in ("A", "B", "C")]
    rows = [attendance_row("A", period="P", time="08:00", status="late")]
    service = _service(fact_store, StaticSource(rows, roster=roster))

    await service.run_import_once()

    facts = {f.person_id: f.status for f in await fact_store.list_facts()}
    assert facts == {"A": "late", "B": "absent", "C": "absent"}


@pytest.mark.asyncio
async def test_manual_edit_survives_import(fact_store: AttendanceFactStore) -> None:
    """An import never changes a manually corrected fact."""
    service = _service(fact_store, StaticSource(EXAMPLE_ROWS, roster=ROSTER))
    await service.apply_manual_edit("S2", "2024-05-01", "1", "Late", time="09:20")

    outcome = await service.run_import_once()

    bob = await fact_store.get_fact(FactKey("S2", "2024-05-01", "1"))
    assert bob is not None
    assert (bob.status, bob.time, bob.edited) == ("late", "09:20", True)
    assert outcome.skipped == 1


@pytest.mark.asyncio
async def test_present_is_not_downgraded_by_later_absence(
    fact_store: AttendanceFactStore,
) -> None:
    """A later payload that omits a present person does not mark them absent."""
    source = StaticSource(
        [attendance_row("S1", time="09:00"), attendance_row("S2", time="09:05")]
    )
    service = _service(fact_store, source)
    await service.run_import_once()

    source.attendance = [attendance_row("S2", time="09:10")]
    source.roster = [{"id": "S1"}, {"id": "S2"}]
    await service.run_import_once()

    s1 = await fact_store.get_fact(FactKey("S1", "2024-05-06"))
    assert s1 is not None
    assert s1.status == "present"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        AttendanceSourceConfigError.missing_attendance_url(),
        AttendanceFetchError.http_error("https://x.test/a.json", 500),
    ],
)
async def test_failure_is_recorded_and_raised(
    fact_store: AttendanceFactStore, error: Exception
) -> None:
    """A failed run leaves stored facts and the last success untouched."""
    source = StaticSource(EXAMPLE_ROWS, roster=ROSTER)
    service = _service(fact_store, source)
    success = await service.run_import_once()
    before = await fact_store.list_facts()

    source.error = error
    with pytest.raises(type(error)):
        await service.run_import_once()

    assert await fact_store.list_facts() == before

    assert isinstance(service.last_run, ImportRunFailure)
    assert service.last_run.error_type == type(error).__name__
    assert service.last_success == success
    assert not service.is_running


@pytest.mark.asyncio
async def test_malformed_payload_touches_nothing(
    fact_store: AttendanceFactStore,
) -> None:
    """A payload without an array aborts before any merge."""
    service = _service(fact_store, StaticSource({"data": []}))

    with pytest.raises(MalformedPayloadError):
        await service.run_import_once()

    assert await fact_store.list_facts() == []
    assert isinstance(service.last_run, ImportRunFailure)
    assert service.last_run.error_category == "schema_drift"
    assert service.last_success is None


@pytest.mark.asyncio
async def test_overlapping_run_is_rejected(fact_store: AttendanceFactStore) -> None:
    """A second on-demand run during a run raises ImportInProgressError."""
    gate = asyncio.Event()
    source = StaticSource(EXAMPLE_ROWS, roster=ROSTER, gate=gate)
    service = _service(fact_store, source)

    first = asyncio.create_task(service.run_import_once())
    await asyncio.sleep(0)
    assert service.is_running
    with pytest.raises(ImportInProgressError):
        await service.run_import_once()

    gate.set()
    assert isinstance(await first, ImportRunOutcome)
    assert source.fetch_count == 1


@pytest.mark.asyncio
async def test_scheduled_run_skips_while_busy(fact_store: AttendanceFactStore) -> None:
    """A tick during a run is skipped and logged instead of raising."""
    gate = asyncio.Event()
    service = _service(fact_store, StaticSource(EXAMPLE_ROWS, gate=gate))
    first = asyncio.create_task(service.run_import_once())
    await asyncio.sleep(0)

    with capture_femto_logs("rollcall.attendance.observability") as capture:
        assert await service.run_scheduled() is None
        capture.wait_for_count(1)
    assert capture.find("import.run.skipped").level == "WARN"

    gate.set()
    await first


@pytest.mark.asyncio
async def test_scheduled_run_swallows_recorded_failures(
    fact_store: AttendanceFactStore,
) -> None:
    """Timer-driven failures are recorded, not raised."""
    missing_url = AttendanceSourceConfigError.missing_attendance_url()
    service = _service(fact_store, StaticSource(error=missing_url))

    assert await service.run_scheduled() is None
    assert isinstance(service.last_run, ImportRunFailure)
    assert service.last_run.error_category == "configuration"


@pytest.mark.asyncio
async def test_failing_merge_is_counted_and_run_continues(
    fact_store: AttendanceFactStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A merge raising SQLAlchemyError is logged and counted as failed."""
    original = fact_store.merge_fact

    async def flaky(key: FactKey, *args: object, **kwargs: object) -> MergeOutcome:
        if key.person_id == "S2":
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        return await original(key, *args, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(fact_store, "merge_fact", flaky)
    service = _service(fact_store, StaticSource(EXAMPLE_ROWS, roster=ROSTER))

    with capture_femto_logs("rollcall.attendance.observability") as capture:
        outcome = await service.run_import_once()
        capture.wait_for_count(3)

    assert (outcome.imported_count, outcome.absent_count, outcome.failed) == (1, 0, 1)
    assert capture.find("import.merge.failed").level == "ERROR"


@pytest.mark.asyncio
async def test_dropped_records_are_counted(fact_store: AttendanceFactStore) -> None:
    """Records without an id or date are dropped and reported."""
    rows = [attendance_row("S1"), {"name": "nobody"}, attendance_row("S2", date="")]
    service = _service(fact_store, StaticSource(rows))

    outcome = await service.run_import_once()

    assert outcome.dropped_records == 2


class TestManualEdit:
    """apply_manual_edit input handling."""

    @pytest.mark.asyncio
    async def test_normalizes_input(self, fact_store: AttendanceFactStore) -> None:
        """Status is lowercased and blank optional fields become None."""
        service = _service(fact_store, StaticSource())

        outcome = await service.apply_manual_edit(
            " S1 ", "2024-05-06", "  ", " ABSENT ", time="", name=" Ada "
        )

        fact = await fact_store.get_fact(FactKey("S1", "2024-05-06"))
        assert outcome is MergeOutcome.INSERTED
        assert fact is not None
        assert (fact.status, fact.time, fact.person_name, fact.edited) == (
            "absent",
            None,
            "Ada",
            True,
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("person_id", "date", "status", "field"),
        [
            ("", "2024-05-06", "late", "person_id"),
            ("S1", " ", "late", "date"),
            ("S1", "2024-05-06", "", "status"),
        ],
    )
    async def test_rejects_missing_fields(  # noqa: PLR0913
        self,
        fact_store: AttendanceFactStore,
        person_id: str,
        date: str,
        status: str,
        field: str,
    ) -> None:
        """Blank required fields raise InvalidManualEditError."""
        service = _service(fact_store, StaticSource())
        with pytest.raises(InvalidManualEditError) as excinfo:
            await service.apply_manual_edit(person_id, date, None, status)
        assert excinfo.value.field == field


@pytest.mark.asyncio
async def test_upload_rows(fact_store: AttendanceFactStore) -> None:
    """Valid uploaded rows merge; invalid ones are counted as rejected."""
    service = _service(fact_store, StaticSource())

    result = await service.upload_rows(
        [
            {"id": "S1", "name": "Ada", "date": "2024-05-06", "status": "Late"},
            {"studentid": "S2", "fullname": "Grace", "date": "2024-05-06"},
            {"id": "S3", "date": "2024-05-06"},
            "junk",
        ]
    )

    assert result == UploadResult(accepted=2, rejected=2, inserted=2)
    facts = {f.person_id: (f.status, f.edited) for f in await fact_store.list_facts()}
    assert facts == {"S1": ("late", False), "S2": ("present", False)}
