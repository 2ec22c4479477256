"""
Audit Logger

DESIGN DECISION: Every write to the ledger is logged.
This provides:
1. Complete traceability of dues, expenses and donations
2. Debugging capability when weekly totals look wrong
3. A record of replaced and deleted payments

The audit logger:
- Is async so it composes with the storage calls around it
- Never lets a failed audit write break the ledger operation that caused it
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from src.models.ledger import Donation, Expense, Member, Payment
from src.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog's JSON lines through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # The ledger write already happened; report, don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_member_created(
        self,
        member: Member,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.member_created(
            member_id=member.id,
            name=member.name,
            correlation_id=correlation_id,
        ))

    async def log_member_updated(
        self,
        member: Member,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.member_updated(
            member_id=member.id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_member_deleted(
        self,
        member: Member,
        orphaned_payments: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.member_deleted(
            member_id=member.id,
            name=member.name,
            orphaned_payments=orphaned_payments,
            correlation_id=correlation_id,
        ))

    async def log_payment_recorded(
        self,
        payment: Payment,
        replaced: Optional[Payment] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a payment write, noting the payment it replaced if any."""
        await self.log(AuditEventBuilder.payment_recorded(
            payment_id=payment.id,
            member_id=payment.member_id,
            week_number=payment.week_number,
            year=payment.year,
            amount=str(payment.amount),
            replaced_payment_id=replaced.id if replaced else None,
            replaced_amount=str(replaced.amount) if replaced else None,
            correlation_id=correlation_id,
        ))

    async def log_payment_deleted(
        self,
        payment: Payment,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entity_deleted(
            event_type=AuditEventType.PAYMENT_DELETED,
            entity_type="payment",
            entity_id=payment.id,
            amount=str(payment.amount),
            correlation_id=correlation_id,
        ))

    async def log_expense_recorded(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_recorded(
            expense_id=expense.id,
            description=expense.description,
            amount=str(expense.amount),
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entity_deleted(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense.id,
            amount=str(expense.amount),
            correlation_id=correlation_id,
        ))

    async def log_donation_recorded(
        self,
        donation: Donation,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.donation_recorded(
            donation_id=donation.id,
            donor_name=donation.donor_name,
            amount=str(donation.amount),
            correlation_id=correlation_id,
        ))

    async def log_report_generated(
        self,
        year: int,
        month: Optional[int],
        week_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.report_generated(
            year=year,
            month=month,
            week_count=week_count,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through
    all subsequent operations.
    """
    return uuid4()
