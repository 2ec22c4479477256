"""
Abstract Storage Interface

DESIGN DECISION: Ledger rules never talk to a backend directly.
Everything goes through the interfaces below, so the ledger runs the same
against a spreadsheet, a database or a dict in a test.

Only the operations the ledger needs are here: per-collection CRUD, one
constrained payment write, and a reachability check.

CRITICAL: upsert_payment is the only write with a consistency guarantee.
Implementations must make "drop the old payment for this key, store the
new one" a single step, serialised per key, so that a key never has two
payments and never visibly has zero while being replaced.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from src.models.ledger import (
    Donation,
    Expense,
    Member,
    Payment,
    PaymentUpsert,
)
from src.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Members, payments, expenses and donations.

    Ordering contract for list methods:
    - members by name ascending (case-sensitive, code point order)
    - payments, expenses and donations newest first unless
      newest_first=False is passed
    """

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_member(self, member: Member) -> Member:
        """
        Save a new member.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_member(self, member_id: UUID) -> Optional[Member]:
        """Retrieve a member by ID, None if absent."""
        pass

    @abstractmethod
    async def update_member(self, member: Member) -> Member:
        """
        Replace an existing member's mutable fields.

        Raises:
            NotFoundError: If the member doesn't exist
        """
        pass

    @abstractmethod
    async def delete_member(self, member_id: UUID) -> bool:
        """
        Delete a member by ID.

        Payments referencing the member are left in place.

        Returns:
            True if a member was deleted
        """
        pass

    @abstractmethod
    async def list_members(self) -> list[Member]:
        """All members sorted by name."""
        pass

    @abstractmethod
    async def count_members(self) -> int:
        pass

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_payment(
        self,
        payment: Payment,
        replace_existing: bool = True,
    ) -> PaymentUpsert:
        """
        Store a payment, replacing any payment with the same key.

        The replaced record is discarded entirely (no field merge).

        Args:
            payment: The new payment
            replace_existing: When False, an existing payment for the same
                key raises ConflictError instead of being replaced

        Returns:
            PaymentUpsert(payment, replaced)

        Raises:
            ConflictError: If replace_existing is False and the key is taken
        """
        pass

    @abstractmethod
    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        pass

    @abstractmethod
    async def delete_payment(self, payment_id: UUID) -> bool:
        """Delete a payment by ID. True if one was deleted."""
        pass

    @abstractmethod
    async def list_payments(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
        member_id: Optional[UUID] = None,
        newest_first: bool = True,
    ) -> list[Payment]:
        """
        List payments with optional filters.

        Args:
            week_number: Filter by week number
            year: Filter by year
            member_id: Filter by member
            newest_first: Sort by creation time descending (default)
        """
        pass

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_expense(self, expense: Expense) -> Expense:
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_expenses(self, newest_first: bool = True) -> list[Expense]:
        pass

    # ------------------------------------------------------------------
    # Donations (no delete)
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_donation(self, donation: Donation) -> Donation:
        pass

    @abstractmethod
    async def list_donations(self, newest_first: bool = True) -> list[Donation]:
        pass

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @abstractmethod
    async def ping(self) -> bool:
        """
        Check that the backend is reachable.

        Raises:
            DependencyError: If it is not
        """
        pass


class AuditStorageInterface(ABC):
    """
    Append-only store for AuditEvents.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Returns True once the event is persisted."""
        pass


class StorageError(Exception):
    """Base class for every failure raised by a storage backend."""
    pass


class NotFoundError(StorageError):
    """A referenced member, payment or expense does not exist."""
    pass


class ConflictError(StorageError):
    """A payment already exists for the key and replacement was not allowed."""
    pass


class DependencyError(StorageError):
    """Could not reach the storage backend."""
    pass
