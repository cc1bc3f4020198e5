"""Aggregation of approved records into payroll, billing and compliance rows.

Only payroll-approved records are exported. A record that cannot be
exported (missing user or project, unresolved rate, malformed entries) is
skipped with a warning and the rest of the batch still exports.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from workforce_engine.calculators.pay_calculator import (
    DEFAULT_POLICY,
    BucketMinutes,
    PayPolicy,
    minutes_to_hours,
    round_to_cents,
)
from workforce_engine.calculators.period_pay import ProjectPay, calculate_period_pay
from workforce_engine.calculators.rate_resolver import RateResolver
from workforce_engine.domain.enums import (
    ApprovalStatus,
    ApproverType,
    ComplianceStatus,
    ExportType,
    ProjectStatus,
    RecordStatus,
)
from workforce_engine.domain.types import (
    Client,
    ExpenseItem,
    Project,
    TimeEntry,
    Timesheet,
    User,
    WorkflowRecord,
)
from workforce_engine.exceptions import PersistenceError, ValidationError, WorkforceEngineError
from workforce_engine.exports.rows import (
    BillingExportRow,
    ComplianceExportRow,
    ExportRow,
    PayrollExportRow,
)
from workforce_engine.services.entry_service import load_record_entries
from workforce_engine.storage.base import Storage, require_record

logger = logging.getLogger(__name__)

REVIEW_THRESHOLD = Decimal("0.10")

GroupKey = tuple[UUID, UUID | None, UUID | None, date, date]


@dataclass
class ExportLine:
    """One record's contribution to one (employee, client, project, period)."""

    user: User
    client: Client | None
    project: Project | None
    period_start: date
    period_end: date
    minutes: BucketMinutes = field(default_factory=BucketMinutes)
    gross_pay: Decimal = Decimal("0.00")
    straight_time_amount: Decimal = Decimal("0.00")
    expense_amount: Decimal = Decimal("0.00")
    approved_at: datetime | None = None
    approver_name: str | None = None

    @property
    def key(self) -> GroupKey:
        return (
            self.user.id,
            self.client.id if self.client else None,
            self.project.id if self.project else None,
            self.period_start,
            self.period_end,
        )

    @property
    def hourly_rate(self) -> Decimal | None:
        """Blended straight-time rate, None when no hours were worked."""
        if self.minutes.total == 0:
            return None
        return round_to_cents(
            self.straight_time_amount * Decimal(60) / Decimal(self.minutes.total)
        )

    def merge(self, other: ExportLine) -> None:
        self.minutes.add(other.minutes)
        self.gross_pay += other.gross_pay
        self.straight_time_amount += other.straight_time_amount
        self.expense_amount += other.expense_amount
        if other.approved_at is None:
            return
        if self.approved_at is None or other.approved_at > self.approved_at:
            self.approved_at = other.approved_at
            self.approver_name = other.approver_name


def compliance_status(project: Project, remaining: Decimal) -> ComplianceStatus:
    """Classify a funded project's budget position.

    at_risk when over budget, review_required when under 10% of the budget
    remains, compliant when a completed project stayed within budget,
    otherwise on_track.
    """
    budget = project.budget or Decimal("0")
    if remaining < 0:
        return ComplianceStatus.AT_RISK
    if remaining < budget * REVIEW_THRESHOLD:
        return ComplianceStatus.REVIEW_REQUIRED
    if project.status == ProjectStatus.COMPLETED:
        return ComplianceStatus.COMPLIANT
    return ComplianceStatus.ON_TRACK


class ExportBuilder:
    """Builds export rows from a batch of Timesheets and ExpenseReports."""

    def __init__(
        self,
        storage: Storage,
        rate_resolver: RateResolver | None = None,
        holidays: Iterable[date] = frozenset(),
        policy: PayPolicy = DEFAULT_POLICY,
    ):
        self.storage = storage
        self.rate_resolver = rate_resolver or RateResolver(storage)
        self.holidays = frozenset(holidays)
        self.policy = policy

    async def build_export_rows(
        self,
        records: Sequence[WorkflowRecord],
        export_type: ExportType,
    ) -> list[ExportRow]:
        """Aggregate approved records into rows for one export type.

        Records that are not payroll-approved never contribute, whatever
        the export type. Billing and compliance count billable expenses only.
        """
        export_type = ExportType(export_type)
        seen: set[UUID] = set()
        approved: list[WorkflowRecord] = []
        for record in records:
            if record.status != RecordStatus.PAYROLL_APPROVED or record.id in seen:
                continue
            seen.add(record.id)
            approved.append(record)

        if len(approved) < len(records):
            logger.debug(
                "%d of %d records are not payroll-approved or repeated; excluded from %s export",
                len(records) - len(approved),
                len(records),
                export_type.value,
            )

        grouped: dict[GroupKey, ExportLine] = {}
        for record in approved:
            try:
                record_lines = await self._record_lines(record, export_type)
            except PersistenceError:
                raise
            except WorkforceEngineError as e:
                logger.warning(
                    "Skipping %s %s in %s export: %s",
                    record.RECORD_TYPE,
                    record.id,
                    export_type.value,
                    e,
                )
                continue

            for line in record_lines:
                if line.key in grouped:
                    grouped[line.key].merge(line)
                else:
                    grouped[line.key] = line

        lines = sorted(grouped.values(), key=_line_sort_key)
        if export_type == ExportType.PAYROLL:
            return [self._payroll_row(line) for line in lines]
        if export_type == ExportType.BILLING:
            return [self._billing_row(line) for line in lines]
        return self._compliance_rows(lines)

    # ===== Record aggregation =====

    async def _record_lines(
        self, record: WorkflowRecord, export_type: ExportType
    ) -> list[ExportLine]:
        """Every line a record contributes; raises instead of returning a partial set."""
        user = await require_record(self.storage, User, record.user_id)
        approved_at, approver_name = await self._payroll_approval(record)
        entries = await load_record_entries(self.storage, record)

        if isinstance(record, Timesheet):
            per_project = await self._project_pay(record, entries)  # type: ignore[arg-type]
            lines = []
            for project_id, project_pay in per_project.items():
                project, client = await self._project_and_client(project_id)
                lines.append(
                    ExportLine(
                        user=user,
                        client=client,
                        project=project,
                        period_start=record.period_start,
                        period_end=record.period_end,
                        minutes=project_pay.minutes,
                        gross_pay=project_pay.gross_pay,
                        straight_time_amount=project_pay.straight_time_amount,
                        approved_at=approved_at,
                        approver_name=approver_name,
                    )
                )
            return lines

        items: list[ExpenseItem] = entries  # type: ignore[assignment]
        if export_type != ExportType.PAYROLL:
            items = [i for i in items if i.is_billable]

        amounts: dict[UUID | None, Decimal] = defaultdict(lambda: Decimal("0.00"))
        for item in items:
            if item.project_id is None and export_type != ExportType.PAYROLL:
                raise ValidationError(
                    f"Billable expense item {item.id} has no project", field="project_id"
                )
            amounts[item.project_id] += item.amount

        lines = []
        for project_id, amount in amounts.items():
            project, client = (
                await self._project_and_client(project_id) if project_id else (None, None)
            )
            lines.append(
                ExportLine(
                    user=user,
                    client=client,
                    project=project,
                    period_start=record.period_start,
                    period_end=record.period_end,
                    expense_amount=amount,
                    approved_at=approved_at,
                    approver_name=approver_name,
                )
            )
        return lines

    async def _project_pay(
        self, record: WorkflowRecord, entries: list[TimeEntry]
    ) -> dict[UUID, ProjectPay]:
        rates: dict[tuple[UUID, date], Decimal] = {}
        for entry in entries:
            key = (entry.project_id, entry.date)
            if entry.total_minutes == 0 or key in rates:
                continue
            rates[key] = await self.rate_resolver.resolve_rate(
                record.user_id, entry.project_id, entry.date
            )

        period = calculate_period_pay(
            entries,
            rates,
            user_id=record.user_id,
            period_start=record.period_start,
            period_end=record.period_end,
            holidays=self.holidays,
            policy=self.policy,
        )
        return {pid: pay for pid, pay in period.projects.items() if pay.minutes.total}

    async def _project_and_client(self, project_id: UUID) -> tuple[Project, Client]:
        project = await require_record(self.storage, Project, project_id)
        client = await require_record(self.storage, Client, project.client_id)
        return project, client

    async def _payroll_approval(
        self, record: WorkflowRecord
    ) -> tuple[datetime | None, str | None]:
        """When payroll approved the record and who did it."""
        decided = [
            a
            for a in await self.storage.list_approvals(record)
            if a.approver_type == ApproverType.PAYROLL and a.status == ApprovalStatus.APPROVED
        ]
        if not decided:
            return record.payroll_approved_at, None

        approval = decided[-1]
        approver = None
        if approval.approver_id is not None:
            approver = await self.storage.get_by_id(User, approval.approver_id)
        return (
            approval.approved_at or record.payroll_approved_at,
            approver.full_name if approver else None,
        )

    # ===== Row construction =====

    @staticmethod
    def _payroll_row(line: ExportLine) -> PayrollExportRow:
        return PayrollExportRow(
            employee_id=line.user.id,
            first_name=line.user.first_name,
            last_name=line.user.last_name,
            client=line.client.name if line.client else None,
            project=line.project.name if line.project else None,
            period_start=line.period_start,
            period_end=line.period_end,
            regular_hours=minutes_to_hours(line.minutes.regular),
            overtime_hours=minutes_to_hours(line.minutes.overtime),
            weekend_hours=minutes_to_hours(line.minutes.weekend),
            holiday_hours=minutes_to_hours(line.minutes.holiday),
            hourly_rate=line.hourly_rate,
            total_gross=line.gross_pay,
            expense_reimbursement=line.expense_amount,
            approval_date=line.approved_at.date() if line.approved_at else None,
            approver_name=line.approver_name,
        )

    @staticmethod
    def _billing_row(line: ExportLine) -> BillingExportRow:
        return BillingExportRow(
            client=line.client.name,
            project=line.project.name,
            project_code=line.project.code,
            employee=line.user.full_name,
            employee_id=line.user.id,
            period_start=line.period_start,
            period_end=line.period_end,
            hours=minutes_to_hours(line.minutes.total),
            hourly_rate=line.hourly_rate,
            labor_amount=line.straight_time_amount,
            expense_amount=line.expense_amount,
            total_amount=line.straight_time_amount + line.expense_amount,
            approval_date=line.approved_at.date() if line.approved_at else None,
        )

    @staticmethod
    def _compliance_rows(lines: list[ExportLine]) -> list[ComplianceExportRow]:
        by_project: dict[UUID, list[ExportLine]] = defaultdict(list)
        projects: dict[UUID, Project] = {}
        for line in lines:
            if line.project is None or not line.project.is_funded:
                continue
            by_project[line.project.id].append(line)
            projects[line.project.id] = line.project

        rows = []
        for project_id, project_lines in by_project.items():
            project = projects[project_id]
            budget = project.budget or Decimal("0.00")
            minutes = sum(line.minutes.total for line in project_lines)
            billed = sum(
                (line.straight_time_amount + line.expense_amount for line in project_lines),
                Decimal("0.00"),
            )
            remaining = budget - billed
            funding_period = None
            if project.start_date and project.end_date:
                funding_period = f"{project.start_date} to {project.end_date}"
            rows.append(
                ComplianceExportRow(
                    project_name=project.name,
                    project_code=project.code,
                    grant_number=project.grant_number,
                    funding_source=project.funding_source,
                    funding_period=funding_period,
                    total_budget=budget,
                    hours_used=minutes_to_hours(minutes),
                    amount_billed=billed,
                    remaining_budget=remaining,
                    compliance_status=compliance_status(project, remaining),
                    contractor_count=len({line.user.id for line in project_lines}),
                )
            )
        return sorted(rows, key=lambda r: (r.project_name, r.project_code))


def _line_sort_key(line: ExportLine) -> tuple:
    return (
        line.user.last_name,
        line.user.first_name,
        str(line.user.id),
        line.client.name if line.client else "",
        line.project.name if line.project else "",
        str(line.project.id) if line.project else "",
        line.period_start,
    )
