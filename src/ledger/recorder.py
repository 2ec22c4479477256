"""
Payment Recorder

Records a member's dues for a week. There is exactly one payment per
(member, week, year): recording again for the same week replaces the
earlier payment entirely ("latest write wins").

DESIGN DECISION: There is no cached "has this member paid" view to keep
fresh. Payment status is always read from the stored payments for the
week in question (see AggregationEngine.member_statuses).
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.models.ledger import Payment
from src.services.storage import DependencyError, LedgerStorageInterface, NotFoundError
from src.validation import LedgerValidator, ValidationError


logger = structlog.get_logger(__name__)


class PaymentRecorder:
    """
    Validates and writes payments through the ledger store.

    GUARANTEES:
    - Never writes a payment for a member that does not resolve
    - Never leaves two payments for the same week key
    - Every write and deletion is audited
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._validator = validator or LedgerValidator(self._settings)
        self._audit_logger = audit_logger or AuditLogger()

    async def record(
        self,
        member_id: Any,
        amount: Any,
        week_number: Any,
        year: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        """
        Record (or replace) a member's payment for a week.

        Arguments are raw values as received: numbers, numeric strings,
        UUIDs or UUID strings.

        Raises:
            ValidationError: A field is missing, non-numeric or out of range
            NotFoundError: member_id does not resolve to a member
            ConflictError: Strict upsert policy and the week is already paid
            DependencyError: The store is unreachable
        """
        result = self._validator.validate_payment({
            "memberId": member_id,
            "amount": amount,
            "weekNumber": week_number,
            "year": year,
        })
        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                entity_type="payment",
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ],
                correlation_id=correlation_id,
            )
            raise ValidationError("payment", result.issues)

        values = result.values
        try:
            member = await self._storage.get_member(values["member_id"])
            if member is None:
                raise NotFoundError(f"Member not found: {values['member_id']}")

            payment = Payment(**values)
            outcome = await self._storage.upsert_payment(
                payment,
                replace_existing=self._settings.upsert_policy == "replace",
            )
        except DependencyError as e:
            await self._audit_logger.log_storage_error(
                operation="record payment",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        if outcome.replaced is not None:
            logger.info(
                "payment_replaced",
                member_id=str(payment.member_id),
                week_number=payment.week_number,
                year=payment.year,
                previous_amount=str(outcome.replaced.amount),
                amount=str(payment.amount),
            )
        await self._audit_logger.log_payment_recorded(
            payment=outcome.payment,
            replaced=outcome.replaced,
            correlation_id=correlation_id,
        )
        return outcome.payment

    async def delete(
        self,
        payment_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        """
        Delete a payment by ID.

        Raises:
            NotFoundError: If the payment does not exist
        """
        payment = await self._storage.get_payment(payment_id)
        if payment is None or not await self._storage.delete_payment(payment_id):
            raise NotFoundError(f"Payment not found: {payment_id}")

        await self._audit_logger.log_payment_deleted(payment, correlation_id=correlation_id)
        return payment

    async def payments_for_week(self, week_number: int, year: int) -> list[Payment]:
        """Payments filed under the given week, newest first."""
        return await self._storage.list_payments(week_number=week_number, year=year)
