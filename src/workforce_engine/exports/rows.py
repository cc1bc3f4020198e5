"""Export row schemas.

One row per (employee, client, project, pay period) for payroll and billing,
one row per funded project for compliance. Field order is column order.
"""

from datetime import date
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from workforce_engine.domain.enums import ComplianceStatus, ExportType, RecordStatus


class ExportRow(BaseModel):
    """Base export row."""

    model_config = ConfigDict(frozen=True)

    # Header layout reserved for this row type's external system
    SYSTEM_LAYOUT: ClassVar[str] = ""


# ============================================================================
# Payroll (EOR upload)
# ============================================================================


class PayrollExportRow(ExportRow):
    """Employee pay for one client project over one pay period."""

    SYSTEM_LAYOUT: ClassVar[str] = "eor"

    employee_id: UUID
    first_name: str
    last_name: str
    client: str | None = None
    project: str | None = None
    period_start: date
    period_end: date
    regular_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    weekend_hours: Decimal = Decimal("0")
    holiday_hours: Decimal = Decimal("0")
    hourly_rate: Decimal | None = None
    total_gross: Decimal = Decimal("0.00")
    expense_reimbursement: Decimal = Decimal("0.00")
    approval_date: date | None = None
    approver_name: str | None = None


# ============================================================================
# Billing (ATS)
# ============================================================================


class BillingExportRow(ExportRow):
    """Billable labor and expenses for one employee on one client project."""

    SYSTEM_LAYOUT: ClassVar[str] = "ats"

    client: str
    project: str
    project_code: str
    employee: str
    employee_id: UUID
    period_start: date
    period_end: date
    hours: Decimal = Decimal("0")
    hourly_rate: Decimal | None = None
    labor_amount: Decimal = Decimal("0.00")
    expense_amount: Decimal = Decimal("0.00")
    total_amount: Decimal = Decimal("0.00")
    approval_status: RecordStatus = RecordStatus.PAYROLL_APPROVED
    approval_date: date | None = None


# ============================================================================
# Compliance (audit)
# ============================================================================


class ComplianceExportRow(ExportRow):
    """Budget position of a funded project."""

    SYSTEM_LAYOUT: ClassVar[str] = "audit"

    project_name: str
    project_code: str
    grant_number: str | None = None
    funding_source: str | None = None
    funding_period: str | None = None
    total_budget: Decimal
    hours_used: Decimal = Decimal("0")
    amount_billed: Decimal = Decimal("0.00")
    remaining_budget: Decimal
    compliance_status: ComplianceStatus
    contractor_count: int = 0


ROW_TYPES: dict[ExportType, type[ExportRow]] = {
    ExportType.PAYROLL: PayrollExportRow,
    ExportType.BILLING: BillingExportRow,
    ExportType.COMPLIANCE: ComplianceExportRow,
}
