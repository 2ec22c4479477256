"""
Data Models Package

This package contains all Pydantic models used by the dues ledger.
All data flowing through the system must conform to these schemas.
"""

from src.models.ledger import (
    Amount,
    Donation,
    Expense,
    LedgerModel,
    Member,
    Payment,
    PaymentKey,
    PaymentUpsert,
    utcnow,
)
from src.models.report import (
    CurrentStats,
    LedgerSummary,
    MemberPaymentStatus,
    PeriodSummary,
    ReportPayload,
    ReportRow,
    SummaryCards,
    WeekRange,
    WeekSummary,
    WeeklyAnalysis,
)
from src.models.validation import ValidationIssue, ValidationResult
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Stored records
    "Amount",
    "Donation",
    "Expense",
    "LedgerModel",
    "Member",
    "Payment",
    "PaymentKey",
    "PaymentUpsert",
    "utcnow",
    # Derived read models
    "CurrentStats",
    "LedgerSummary",
    "MemberPaymentStatus",
    "PeriodSummary",
    "ReportPayload",
    "ReportRow",
    "SummaryCards",
    "WeekRange",
    "WeekSummary",
    "WeeklyAnalysis",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
