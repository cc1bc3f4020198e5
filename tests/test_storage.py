"""Tests for the storage implementations."""

import dataclasses
from datetime import date
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from conftest import MONDAY, TEST_DATABASE_URL, WEEK_START
from workforce_engine import database
from workforce_engine.database import create_schema, get_session, make_session_factory
from workforce_engine.domain import (
    Approval,
    ApprovalStatus,
    ApproverType,
    Client,
    RecordStatus,
    Timesheet,
    WorkflowRecord,
)
from workforce_engine.exceptions import (
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from workforce_engine.storage import SqlAlchemyStorage, require_record


@pytest.fixture
def timesheet(seeded) -> Timesheet:
    return Timesheet(
        user_id=seeded.employee.id,
        week_start_date=WEEK_START,
        week_end_date=date(2024, 3, 9),
    )


class TestRecords:
    """Test adding, reading and saving records."""

    @pytest.mark.asyncio
    async def test_reads_are_snapshots(self, storage, seeded):
        project = await storage.get_by_id(type(seeded.apollo), seeded.apollo.id)
        project.name = "Renamed locally"

        again = await storage.get_by_id(type(seeded.apollo), seeded.apollo.id)
        assert again.name == "Apollo"

    @pytest.mark.asyncio
    async def test_duplicate_add(self, storage, seeded):
        with pytest.raises(PersistenceError) as exc_info:
            await storage.add(dataclasses.replace(seeded.acme))

        assert exc_info.value.operation == "add"

    @pytest.mark.asyncio
    async def test_save_unknown_record(self, storage, timesheet):
        with pytest.raises(PersistenceError):
            await storage.save(timesheet)

    @pytest.mark.asyncio
    async def test_require_record(self, storage, seeded, timesheet):
        client = await require_record(storage, type(seeded.acme), seeded.acme.id)
        assert client.name == "Acme Corp"

        with pytest.raises(RecordNotFoundError) as exc_info:
            await require_record(storage, Timesheet, timesheet.id)

        assert exc_info.value.record_type == "Timesheet"

    @pytest.mark.asyncio
    async def test_find_timesheet(self, storage, seeded, timesheet):
        await storage.add(timesheet)

        found = await storage.find_timesheet(seeded.employee.id, WEEK_START)

        assert found.id == timesheet.id
        assert await storage.find_timesheet(seeded.employee.id, MONDAY) is None


class TestCompareAndSet:
    """Test the optimistic status update."""

    @pytest.mark.asyncio
    async def test_matching_status_and_version(self, storage, timesheet):
        await storage.add(timesheet)

        changed = await storage.compare_and_set(
            timesheet, RecordStatus.DRAFT, 1, {"status": RecordStatus.SUBMITTED}
        )

        stored = await storage.get_by_id(Timesheet, timesheet.id)
        assert changed is True
        assert stored.status == RecordStatus.SUBMITTED
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_stale_version_changes_nothing(self, storage, timesheet):
        await storage.add(timesheet)
        await storage.compare_and_set(
            timesheet, RecordStatus.DRAFT, 1, {"status": RecordStatus.SUBMITTED}
        )

        changed = await storage.compare_and_set(
            timesheet, RecordStatus.DRAFT, 1, {"status": RecordStatus.SUBMITTED}
        )

        stored = await storage.get_by_id(Timesheet, timesheet.id)
        assert changed is False
        assert stored.version == 2


class TestPendingApprovals:
    """Test that one pending decision exists per record and approver type."""

    @pytest.mark.asyncio
    async def test_second_pending_slot_is_refused(self, storage, timesheet):
        await storage.add(timesheet)
        await storage.add(Approval.for_record(timesheet, approver_type=ApproverType.CLIENT))

        with pytest.raises(PersistenceError):
            await storage.add(Approval.for_record(timesheet, approver_type=ApproverType.CLIENT))

    @pytest.mark.asyncio
    async def test_decided_slots_do_not_block(self, storage, timesheet):
        first = Approval.for_record(timesheet, approver_type=ApproverType.CLIENT)
        await storage.add(timesheet)
        await storage.add(first)
        await storage.save(dataclasses.replace(first, status=ApprovalStatus.REJECTED))

        await storage.add(Approval.for_record(timesheet, approver_type=ApproverType.CLIENT))
        await storage.add(Approval.for_record(timesheet, approver_type=ApproverType.PAYROLL))

        approvals = await storage.list_approvals(timesheet)
        assert len(approvals) == 3

    def test_approval_needs_exactly_one_target(self):
        with pytest.raises(ValidationError) as exc_info:
            Approval(approver_type=ApproverType.CLIENT)

        assert "exactly one" in str(exc_info.value)

    def test_workflow_record_base_is_abstract(self):
        with pytest.raises(TypeError):
            WorkflowRecord(user_id=uuid4())


class TestSessionScope:
    """Test the committing session context manager."""

    @pytest_asyncio.fixture
    async def engine(self, monkeypatch):
        engine = create_async_engine(
            TEST_DATABASE_URL, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
        await create_schema(engine)
        monkeypatch.setattr(database, "_engine", engine)
        monkeypatch.setattr(database, "_session_factory", make_session_factory(engine))
        yield engine
        await engine.dispose()

    @pytest.mark.asyncio
    async def test_commits_on_success(self, engine):
        client = Client(name="Initech")
        async with get_session() as session:
            await SqlAlchemyStorage(session).add(client)

        async with get_session() as session:
            stored = await SqlAlchemyStorage(session).get_by_id(Client, client.id)
        assert stored.name == "Initech"

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, engine):
        client = Client(name="Initech")
        with pytest.raises(RuntimeError):
            async with get_session() as session:
                await SqlAlchemyStorage(session).add(client)
                raise RuntimeError("abort")

        async with get_session() as session:
            assert await SqlAlchemyStorage(session).get_by_id(Client, client.id) is None
