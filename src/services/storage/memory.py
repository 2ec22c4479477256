"""
In-Memory Storage Implementation

Keeps every collection in a dict keyed by record ID. Used for tests and for
running the ledger locally without Google credentials. Nothing survives a
restart.
"""

from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.ledger import (
    Donation,
    Expense,
    Member,
    Payment,
    PaymentUpsert,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    LedgerStorageInterface,
    NotFoundError,
)
from src.services.storage.locks import KeyedLock


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(self):
        self._members: dict[UUID, Member] = {}
        self._payments: dict[UUID, Payment] = {}
        self._expenses: dict[UUID, Expense] = {}
        self._donations: dict[UUID, Donation] = {}
        self._key_locks = KeyedLock()

    # Members

    async def save_member(self, member: Member) -> Member:
        self._members[member.id] = member.model_copy()
        return member

    async def get_member(self, member_id: UUID) -> Optional[Member]:
        member = self._members.get(member_id)
        return member.model_copy() if member else None

    async def update_member(self, member: Member) -> Member:
        if member.id not in self._members:
            raise NotFoundError(f"Member not found: {member.id}")
        self._members[member.id] = member.model_copy()
        return member

    async def delete_member(self, member_id: UUID) -> bool:
        return self._members.pop(member_id, None) is not None

    async def list_members(self) -> list[Member]:
        members = [m.model_copy() for m in self._members.values()]
        members.sort(key=lambda m: (m.name, m.created_at))
        return members

    async def count_members(self) -> int:
        return len(self._members)

    # Payments

    async def upsert_payment(
        self,
        payment: Payment,
        replace_existing: bool = True,
    ) -> PaymentUpsert:
        async with self._key_locks.hold(payment.key):
            replaced = None
            for existing in self._payments.values():
                if existing.key == payment.key:
                    replaced = existing
                    break

            if replaced is not None and not replace_existing:
                raise ConflictError(
                    f"Payment already recorded for member {payment.member_id} "
                    f"in week {payment.week_number}/{payment.year}"
                )

            # No await between removal and insert: the swap is atomic
            if replaced is not None:
                del self._payments[replaced.id]
            self._payments[payment.id] = payment.model_copy()

        return PaymentUpsert(payment=payment, replaced=replaced)

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        payment = self._payments.get(payment_id)
        return payment.model_copy() if payment else None

    async def delete_payment(self, payment_id: UUID) -> bool:
        return self._payments.pop(payment_id, None) is not None

    async def list_payments(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
        member_id: Optional[UUID] = None,
        newest_first: bool = True,
    ) -> list[Payment]:
        payments = []
        for payment in self._payments.values():
            if week_number is not None and payment.week_number != week_number:
                continue
            if year is not None and payment.year != year:
                continue
            if member_id is not None and payment.member_id != member_id:
                continue
            payments.append(payment.model_copy())

        payments.sort(key=lambda p: p.created_at, reverse=newest_first)
        return payments

    # Expenses

    async def save_expense(self, expense: Expense) -> Expense:
        self._expenses[expense.id] = expense.model_copy()
        return expense

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def list_expenses(self, newest_first: bool = True) -> list[Expense]:
        expenses = [e.model_copy() for e in self._expenses.values()]
        expenses.sort(key=lambda e: e.created_at, reverse=newest_first)
        return expenses

    # Donations

    async def save_donation(self, donation: Donation) -> Donation:
        self._donations[donation.id] = donation.model_copy()
        return donation

    async def list_donations(self, newest_first: bool = True) -> list[Donation]:
        donations = [d.model_copy() for d in self._donations.values()]
        donations.sort(key=lambda d: d.created_at, reverse=newest_first)
        return donations

    async def ping(self) -> bool:
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True
