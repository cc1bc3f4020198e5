"""Export row building and serialization."""

from workforce_engine.exports.builder import ExportBuilder, compliance_status
from workforce_engine.exports.rows import (
    ROW_TYPES,
    BillingExportRow,
    ComplianceExportRow,
    ExportRow,
    PayrollExportRow,
)
from workforce_engine.exports.serializers import (
    export_filename,
    headers_for,
    rows_to_csv,
    rows_to_json,
)

__all__ = [
    "ROW_TYPES",
    "BillingExportRow",
    "ComplianceExportRow",
    "ExportBuilder",
    "ExportRow",
    "PayrollExportRow",
    "compliance_status",
    "export_filename",
    "headers_for",
    "rows_to_csv",
    "rows_to_json",
]
