"""
Cash Book

Expenses and donations. Both are simple append records; expenses can be
deleted, donations cannot.
"""

from typing import Any, Optional
from uuid import UUID

from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.models.ledger import Donation, Expense
from src.services.storage import LedgerStorageInterface, NotFoundError
from src.validation import LedgerValidator, ValidationError


class CashBook:
    """Records expenses and donations."""

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

    async def record_expense(
        self,
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record an expense from a raw body (description, amount, optional createdAt).

        createdAt decides which week the expense is reported under.
        """
        result = self._validator.validate_expense(data)
        if not result.is_valid:
            raise ValidationError("expense", result.issues)

        expense = Expense(**result.values)
        await self._storage.save_expense(expense)
        await self._audit_logger.log_expense_recorded(expense, correlation_id=correlation_id)
        return expense

    async def delete_expense(
        self,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        expense = await self._storage.get_expense(expense_id)
        if expense is None or not await self._storage.delete_expense(expense_id):
            raise NotFoundError(f"Expense not found: {expense_id}")

        await self._audit_logger.log_expense_deleted(expense, correlation_id=correlation_id)
        return expense

    async def list_expenses(self) -> list[Expense]:
        return await self._storage.list_expenses()

    async def record_donation(
        self,
        data: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> Donation:
        """Record a donation from a raw body (donorName, amount)."""
        result = self._validator.validate_donation(data)
        if not result.is_valid:
            raise ValidationError("donation", result.issues)

        donation = Donation(**result.values)
        await self._storage.save_donation(donation)
        await self._audit_logger.log_donation_recorded(donation, correlation_id=correlation_id)
        return donation

    async def list_donations(self) -> list[Donation]:
        return await self._storage.list_donations()
