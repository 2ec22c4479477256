"""
Audit Models for the Dues Ledger

Every write to the ledger is logged for audit purposes.
This provides:
1. Traceability of who-paid-what changes, including replaced payments
2. Debugging information when figures look wrong
3. A record of deletions, which are otherwise irreversible

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Members
    MEMBER_CREATED = "member_created"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DELETED = "member_deleted"

    # Payments
    PAYMENT_RECORDED = "payment_recorded"
    PAYMENT_REPLACED = "payment_replaced"
    PAYMENT_DELETED = "payment_deleted"

    # Cash book
    EXPENSE_RECORDED = "expense_recorded"
    EXPENSE_DELETED = "expense_deleted"
    DONATION_RECORDED = "donation_recorded"

    # Reporting
    REPORT_GENERATED = "report_generated"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every ledger write creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'member', 'payment', 'expense')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one request)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by an admin action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.member_created(member_id, name, correlation_id)
        event = AuditEventBuilder.payment_recorded(payment_id, ..., correlation_id)
    """

    @staticmethod
    def member_created(
        member_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_CREATED,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Member created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def member_updated(
        member_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_UPDATED,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Member updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def member_deleted(
        member_id: UUID,
        name: str,
        orphaned_payments: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MEMBER_DELETED,
            severity=AuditSeverity.WARNING if orphaned_payments else AuditSeverity.INFO,
            entity_type="member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Member deleted: {name}",
            details={
                "name": name,
                "orphaned_payments": orphaned_payments,
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_recorded(
        payment_id: UUID,
        member_id: UUID,
        week_number: int,
        year: int,
        amount: str,
        replaced_payment_id: Optional[UUID] = None,
        replaced_amount: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        details = {
            "member_id": str(member_id),
            "week_number": week_number,
            "year": year,
            "amount": amount,
        }
        if replaced_payment_id is not None:
            details["replaced_payment_id"] = str(replaced_payment_id)
            details["replaced_amount"] = replaced_amount
            event_type = AuditEventType.PAYMENT_REPLACED
            description = f"Payment for week {week_number}/{year} replaced: ₹{replaced_amount} -> ₹{amount}"
        else:
            event_type = AuditEventType.PAYMENT_RECORDED
            description = f"Payment recorded for week {week_number}/{year}: ₹{amount}"

        return AuditEvent(
            event_type=event_type,
            entity_type="payment",
            entity_id=payment_id,
            correlation_id=correlation_id,
            description=description,
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def entity_deleted(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} deleted: ₹{amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_recorded(
        expense_id: UUID,
        description: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense recorded: {description} - ₹{amount}",
            details={
                "description": description,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def donation_recorded(
        donation_id: UUID,
        donor_name: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DONATION_RECORDED,
            entity_type="donation",
            entity_id=donation_id,
            correlation_id=correlation_id,
            description=f"Donation recorded: {donor_name} - ₹{amount}",
            details={
                "donor_name": donor_name,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def report_generated(
        year: int,
        month: Optional[int],
        week_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            entity_type="report",
            correlation_id=correlation_id,
            description=f"Weekly report generated for {year} covering {week_count} weeks",
            details={
                "year": year,
                "month": month,
                "week_count": week_count,
            },
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage unavailable during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
