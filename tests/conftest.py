"""Pytest fixtures for workforce engine tests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from workforce_engine.config import Settings
from workforce_engine.database import create_schema, make_session_factory
from workforce_engine.domain import (
    Client,
    ExpenseCategory,
    Project,
    RateEntry,
    TimeEntry,
    User,
    UserRole,
)
from workforce_engine.services import ApprovalService, EntryService
from workforce_engine.storage import InMemoryStorage, SqlAlchemyStorage

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Week of Sunday 2024-03-03 .. Saturday 2024-03-09
WEEK_START = date(2024, 3, 3)
MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
WEDNESDAY = date(2024, 3, 6)
SATURDAY = date(2024, 3, 9)


class TickingClock:
    """Clock that advances one second per call so timestamps are ordered."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 3, 11, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@dataclass
class Roster:
    """Seeded clients, projects, users, categories and rates."""

    acme: Client
    globex: Client
    apollo: Project
    gemini: Project
    grant_project: Project
    employee: User
    other_employee: User
    acme_approver: User
    globex_approver: User
    payroll: User
    travel: ExpenseCategory
    meals: ExpenseCategory


def build_roster() -> Roster:
    acme = Client(name="Acme Corp")
    globex = Client(name="Globex")
    apollo = Project(client_id=acme.id, name="Apollo", code="ACM-001")
    gemini = Project(client_id=globex.id, name="Gemini", code="GLX-001")
    grant_project = Project(
        client_id=acme.id,
        name="Clean Water",
        code="ACM-GR1",
        budget=Decimal("10000.00"),
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
        grant_number="EPA-2024-17",
        funding_source="EPA",
    )
    return Roster(
        acme=acme,
        globex=globex,
        apollo=apollo,
        gemini=gemini,
        grant_project=grant_project,
        employee=User(
            email="jane@example.com", first_name="Jane", last_name="Doe", role=UserRole.EMPLOYEE
        ),
        other_employee=User(
            email="sam@example.com", first_name="Sam", last_name="Lee", role=UserRole.EMPLOYEE
        ),
        acme_approver=User(
            email="ann@acme.example",
            first_name="Ann",
            last_name="Approver",
            role=UserRole.CLIENT_APPROVER,
            client_id=acme.id,
        ),
        globex_approver=User(
            email="gus@globex.example",
            first_name="Gus",
            last_name="Approver",
            role=UserRole.CLIENT_APPROVER,
            client_id=globex.id,
        ),
        payroll=User(
            email="pat@example.com", first_name="Pat", last_name="Payroll", role=UserRole.PAYROLL
        ),
        travel=ExpenseCategory(name="Travel", spending_limit=Decimal("500.00"), is_billable=True),
        meals=ExpenseCategory(name="Meals", spending_limit=Decimal("75.00")),
    )


def roster_rates(roster: Roster) -> list[RateEntry]:
    """$50/h for the employee everywhere, $60/h project-wide on Gemini."""
    return [
        RateEntry(
            hourly_rate=Decimal("50.00"),
            effective_date=date(2024, 1, 1),
            user_id=roster.employee.id,
        ),
        RateEntry(
            hourly_rate=Decimal("40.00"),
            effective_date=date(2024, 1, 1),
            user_id=roster.other_employee.id,
        ),
        RateEntry(
            hourly_rate=Decimal("60.00"),
            effective_date=date(2024, 1, 1),
            project_id=roster.gemini.id,
        ),
    ]


def make_entry(user: User, project: Project, work_date: date, hours: float, **kwargs) -> TimeEntry:
    return TimeEntry(
        user_id=user.id,
        project_id=project.id,
        task_id=None,
        date=work_date,
        total_minutes=int(hours * 60),
        **kwargs,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        log_level="DEBUG",
        expense_amount_ceiling=Decimal("999999.99"),
        regular_hours_per_day=Decimal("8"),
        overtime_multiplier=Decimal("1.5"),
        weekend_multiplier=Decimal("2.0"),
        holiday_multiplier=Decimal("2.0"),
        week_start=6,
    )


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def roster() -> Roster:
    return build_roster()


@pytest_asyncio.fixture(params=["memory", "sqlalchemy"])
async def storage(request) -> AsyncGenerator[InMemoryStorage | SqlAlchemyStorage, None]:
    """Each storage-backed test runs against both implementations."""
    if request.param == "memory":
        yield InMemoryStorage()
        return

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    session_factory = make_session_factory(engine)
    async with session_factory() as session:
        yield SqlAlchemyStorage(session)
        await session.rollback()
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(storage, roster) -> Roster:
    """Storage populated with the roster and its rate table."""
    for record in (
        roster.acme,
        roster.globex,
        roster.apollo,
        roster.gemini,
        roster.grant_project,
        roster.employee,
        roster.other_employee,
        roster.acme_approver,
        roster.globex_approver,
        roster.payroll,
        roster.travel,
        roster.meals,
        *roster_rates(roster),
    ):
        await storage.add(record)
    return roster


@pytest.fixture
def entries(storage, settings) -> EntryService:
    return EntryService(storage, settings)


@pytest.fixture
def approvals(storage, clock) -> ApprovalService:
    return ApprovalService(storage, clock=clock)


@pytest_asyncio.fixture
async def draft_timesheet(seeded, entries):
    """Jane's week on Apollo: 6h Monday, 9h Tuesday, 4h Saturday."""
    for work_date, hours in ((MONDAY, 6), (TUESDAY, 9), (SATURDAY, 4)):
        await entries.record_time_entry(
            seeded.employee, make_entry(seeded.employee, seeded.apollo, work_date, hours)
        )
    return await entries.open_timesheet(seeded.employee, MONDAY)


@pytest_asyncio.fixture
async def submitted_timesheet(draft_timesheet, seeded, approvals):
    return await approvals.submit(draft_timesheet, seeded.employee)
