"""Tests for the ledger write paths: payments, members, expenses, donations."""

import asyncio
import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from src.audit import AuditLogger
from src.ledger import PaymentRecorder
from src.models.audit import AuditEventType, AuditSeverity
from src.services.storage import (
    ConflictError,
    DependencyError,
    InMemoryLedgerStorage,
    NotFoundError,
)
from src.validation import ValidationError
from tests.factories import add_member, add_payment


class UnreachableStorage(InMemoryLedgerStorage):
    """A store whose reads fail as if the backend were down."""

    async def get_member(self, member_id):
        raise DependencyError("store unreachable")


def event_types(audit_storage) -> list[AuditEventType]:
    return [e.event_type for e in audit_storage.events]


class TestPaymentRecorder:
    """Tests for recording payments."""

    async def test_record_payment(self, recorder, storage, audit_storage):
        member = await add_member(storage, "Alice")
        payment = await recorder.record(str(member.id), "20", "1", "2025")

        assert payment.member_id == member.id
        assert payment.amount == Decimal("20")
        assert payment.week_number == 1
        assert event_types(audit_storage) == [AuditEventType.PAYMENT_RECORDED]

    async def test_latest_write_wins(self, recorder, storage, audit_storage):
        """Test 20 then 25 for the same week leaves one payment of 25."""
        member = await add_member(storage, "Alice")
        await recorder.record(member.id, 20, 1, 2025)
        await recorder.record(member.id, 25, 1, 2025)

        payments = await recorder.payments_for_week(1, 2025)
        assert len(payments) == 1
        assert payments[0].amount == Decimal("25")
        assert event_types(audit_storage)[-1] == AuditEventType.PAYMENT_REPLACED

    @pytest.mark.parametrize("amounts", [[20], [20, 25], [5, 10, 15, 20], [30, 10]])
    async def test_at_most_one_payment_per_key(self, recorder, storage, amounts):
        member = await add_member(storage, "Alice")
        for amount in amounts:
            await recorder.record(member.id, amount, 4, 2025)
        payments = await storage.list_payments(member_id=member.id)
        assert [p.amount for p in payments] == [Decimal(amounts[-1])]

    async def test_concurrent_records_for_one_key(self, recorder, storage):
        member = await add_member(storage, "Alice")
        await asyncio.gather(*[recorder.record(member.id, 20, 2, 2025) for _ in range(5)])
        assert len(await storage.list_payments(week_number=2, year=2025)) == 1

    async def test_unknown_member(self, recorder, storage):
        with pytest.raises(NotFoundError):
            await recorder.record(uuid4(), 20, 1, 2025)
        assert await storage.list_payments() == []

    async def test_missing_amount(self, recorder, storage, audit_storage):
        """Test a bad body is refused and audited as a validation failure."""
        member = await add_member(storage, "Alice")
        with pytest.raises(ValidationError) as exc_info:
            await recorder.record(member.id, None, 1, 2025)
        assert exc_info.value.fields == ["amount"]
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    async def test_strict_policy_conflict(self, storage, strict_settings, audit_logger):
        recorder = PaymentRecorder(storage, audit_logger, settings=strict_settings)
        member = await add_member(storage, "Alice")
        await recorder.record(member.id, 20, 1, 2025)
        with pytest.raises(ConflictError):
            await recorder.record(member.id, 25, 1, 2025)

    async def test_zero_amount_allowed_by_default(self, recorder, storage):
        member = await add_member(storage, "Alice")
        payment = await recorder.record(member.id, 0, 1, 2025)
        assert payment.amount == Decimal("0")

    async def test_zero_amount_refused_when_strict(self, storage, strict_settings):
        recorder = PaymentRecorder(storage, AuditLogger(), settings=strict_settings)
        member = await add_member(storage, "Alice")
        with pytest.raises(ValidationError):
            await recorder.record(member.id, 0, 1, 2025)

    async def test_dependency_error_is_audited_and_raised(self, ledger_settings, audit_logger, audit_storage):
        recorder = PaymentRecorder(UnreachableStorage(), audit_logger, settings=ledger_settings)
        with pytest.raises(DependencyError):
            await recorder.record(uuid4(), 20, 1, 2025)
        assert audit_storage.events[-1].event_type == AuditEventType.STORAGE_ERROR
        assert audit_storage.events[-1].severity == AuditSeverity.ERROR

    async def test_delete_payment(self, recorder, storage, audit_storage):
        member = await add_member(storage, "Alice")
        payment = await add_payment(storage, member, 20, 1)
        await recorder.delete(payment.id)
        assert await storage.get_payment(payment.id) is None
        assert event_types(audit_storage) == [AuditEventType.PAYMENT_DELETED]

    async def test_delete_missing_payment(self, recorder):
        with pytest.raises(NotFoundError):
            await recorder.delete(uuid4())


class TestMemberRegistry:
    """Tests for member lifecycle."""

    async def test_create_member(self, registry, audit_storage):
        member = await registry.create({"name": "Alice", "phone": "98765"})
        assert member.active is True
        assert event_types(audit_storage) == [AuditEventType.MEMBER_CREATED]

    async def test_create_requires_phone(self, registry):
        with pytest.raises(ValidationError):
            await registry.create({"name": "Alice"})

    async def test_update_is_partial(self, registry, audit_storage):
        member = await registry.create({"name": "Alice", "phone": "98765"})
        updated = await registry.update(member.id, {"phone": "11111", "id": "ignored"})

        assert updated.id == member.id
        assert updated.name == "Alice"
        assert updated.phone == "11111"
        assert updated.updated_at >= member.updated_at
        assert audit_storage.events[-1].details["changed_fields"] == ["phone"]

    async def test_update_missing_member(self, registry):
        with pytest.raises(NotFoundError):
            await registry.update(uuid4(), {"name": "Ghost"})

    async def test_delete_leaves_payments_orphaned(self, registry, storage, audit_storage):
        """Test deleting a member keeps their payments and reports the orphans."""
        member = await registry.create({"name": "Alice", "phone": "98765"})
        await add_payment(storage, member, 20, 1)
        await add_payment(storage, member, 20, 2)

        await registry.delete(member.id)

        assert await storage.get_member(member.id) is None
        assert len(await storage.list_payments(member_id=member.id)) == 2
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.MEMBER_DELETED
        assert event.details["orphaned_payments"] == 2

    async def test_delete_missing_member(self, registry):
        with pytest.raises(NotFoundError):
            await registry.delete(uuid4())

    async def test_list_all_sorted(self, registry):
        await registry.create({"name": "bob", "phone": "1"})
        await registry.create({"name": "Alice", "phone": "2"})
        assert [m.name for m in await registry.list_all()] == ["Alice", "bob"]


class TestCashBook:
    """Tests for expenses and donations."""

    async def test_record_expense_with_date(self, cashbook):
        expense = await cashbook.record_expense({
            "description": "Nets",
            "amount": 300,
            "createdAt": "2025-01-16T10:00:00",
        })
        assert expense.created_at == datetime(2025, 1, 16, 10, 0)

    async def test_expense_requires_amount(self, cashbook):
        with pytest.raises(ValidationError):
            await cashbook.record_expense({"description": "Nets"})

    async def test_delete_expense(self, cashbook, audit_storage):
        expense = await cashbook.record_expense({"description": "Nets", "amount": 300})
        await cashbook.delete_expense(expense.id)
        assert await cashbook.list_expenses() == []
        assert event_types(audit_storage)[-1] == AuditEventType.EXPENSE_DELETED

    async def test_delete_missing_expense(self, cashbook):
        with pytest.raises(NotFoundError):
            await cashbook.delete_expense(uuid4())

    async def test_record_donation(self, cashbook, audit_storage):
        donation = await cashbook.record_donation({"donorName": "Well Wisher", "amount": "500"})
        assert donation.amount == Decimal("500")
        assert [d.id for d in await cashbook.list_donations()] == [donation.id]
        assert event_types(audit_storage) == [AuditEventType.DONATION_RECORDED]
