"""
Tests for the storage backends.

The Google Sheets backend runs against an in-process fake worksheet that
implements the handful of gspread calls the backend makes.
"""

import asyncio
import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from src.models.audit import AuditEventBuilder
from src.models.ledger import Member, Payment
from src.services.storage import (
    ConflictError,
    DependencyError,
    GoogleSheetsAuditStorage,
    GoogleSheetsLedgerStorage,
    InMemoryLedgerStorage,
    KeyedLock,
    NotFoundError,
)
from src.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    DONATION_COLUMNS,
    EXPENSE_COLUMNS,
    MEMBER_COLUMNS,
    PAYMENT_COLUMNS,
)
from tests.factories import add_expense, add_member


def make_payment(member_id, amount, week_number=1, year=2025, created_at=None) -> Payment:
    payment = Payment(
        member_id=member_id,
        amount=Decimal(str(amount)),
        week_number=week_number,
        year=year,
    )
    if created_at is not None:
        payment = payment.model_copy(update={"created_at": created_at})
    return payment


class FakeWorksheet:
    """Minimal stand-in for gspread.Worksheet backed by a list of rows."""

    def __init__(self, columns: list[str]):
        self.rows: list[list[str]] = [list(columns)]
        self.updates = 0

    def get_all_values(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update(self, range_name=None, values=None, value_input_option=None):
        idx = int(range_name.lstrip("A"))
        self.rows[idx - 1] = [str(v) for v in values[0]]
        self.updates += 1

    def delete_rows(self, idx):
        del self.rows[idx - 1]


class FakeSheetsClient:
    """Stand-in for GoogleSheetsClient holding one fake worksheet per collection."""

    def __init__(self):
        self.members = FakeWorksheet(MEMBER_COLUMNS)
        self.payments = FakeWorksheet(PAYMENT_COLUMNS)
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.donations = FakeWorksheet(DONATION_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_spreadsheet(self):
        return object()

    def get_members_sheet(self):
        return self.members

    def get_payments_sheet(self):
        return self.payments

    def get_expenses_sheet(self):
        return self.expenses

    def get_donations_sheet(self):
        return self.donations

    def get_audit_sheet(self):
        return self.audit


class UnreachableSheetsClient(FakeSheetsClient):
    """Every call fails the way a dropped connection does."""

    def get_spreadsheet(self):
        raise ConnectionError("network unreachable")

    def get_payments_sheet(self):
        raise ConnectionError("network unreachable")

    def get_members_sheet(self):
        raise ConnectionError("network unreachable")


class TestKeyedLock:
    """Tests for the per-key lock registry."""

    async def test_lock_released_after_use(self):
        locks = KeyedLock()
        async with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_same_key_serialises(self):
        """Test a second holder waits until the first releases."""
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("key"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )


class TestInMemoryStorage:
    """Tests for the dict-backed store."""

    async def test_members_sorted_by_name(self, storage):
        for name in ["charlie", "Alice", "bob"]:
            await add_member(storage, name)
        assert [m.name for m in await storage.list_members()] == ["Alice", "bob", "charlie"]

    async def test_member_sort_is_case_sensitive(self, storage):
        """Test upper-case names sort before lower-case ones, as a binary sort does."""
        for name in ["alice", "Bob", "Carol"]:
            await add_member(storage, name)
        assert [m.name for m in await storage.list_members()] == ["Bob", "Carol", "alice"]

    async def test_payments_newest_first(self, storage):
        member = await add_member(storage, "Alice")
        await storage.upsert_payment(make_payment(member.id, 10, 1, created_at=datetime(2025, 6, 1)))
        await storage.upsert_payment(make_payment(member.id, 10, 2, created_at=datetime(2025, 6, 9)))
        weeks = [p.week_number for p in await storage.list_payments()]
        assert weeks == [2, 1]
        oldest_first = await storage.list_payments(newest_first=False)
        assert [p.week_number for p in oldest_first] == [1, 2]

    async def test_upsert_replaces_existing_key(self, storage):
        """Test a second payment for the same key replaces the first."""
        member = await add_member(storage, "Alice")
        first = await storage.upsert_payment(make_payment(member.id, 20))
        second = await storage.upsert_payment(make_payment(member.id, 25))

        assert first.replaced is None
        assert second.replaced.id == first.payment.id
        payments = await storage.list_payments(week_number=1, year=2025)
        assert len(payments) == 1
        assert payments[0].amount == Decimal("25")

    async def test_upsert_different_years_are_different_keys(self, storage):
        member = await add_member(storage, "Alice")
        await storage.upsert_payment(make_payment(member.id, 20, year=2025))
        await storage.upsert_payment(make_payment(member.id, 20, year=2026))
        assert len(await storage.list_payments()) == 2

    async def test_upsert_strict_raises_conflict(self, storage):
        member = await add_member(storage, "Alice")
        await storage.upsert_payment(make_payment(member.id, 20))
        with pytest.raises(ConflictError):
            await storage.upsert_payment(make_payment(member.id, 25), replace_existing=False)
        payments = await storage.list_payments()
        assert [p.amount for p in payments] == [Decimal("20")]

    async def test_concurrent_upserts_leave_one_payment(self, storage):
        """Test concurrent writes for one key never produce duplicates."""
        member = await add_member(storage, "Alice")
        await asyncio.gather(*[
            storage.upsert_payment(make_payment(member.id, amount))
            for amount in range(10, 30)
        ])
        assert len(await storage.list_payments(week_number=1, year=2025)) == 1

    async def test_update_missing_member(self, storage):
        with pytest.raises(NotFoundError):
            await storage.update_member(Member(name="Ghost", phone="0"))

    async def test_returned_records_are_copies(self, storage):
        member = await add_member(storage, "Alice")
        fetched = await storage.get_member(member.id)
        fetched.name = "Changed"
        assert (await storage.get_member(member.id)).name == "Alice"

    async def test_delete_expense(self, storage):
        expense = await add_expense(storage, 10, datetime(2025, 1, 16))
        assert await storage.delete_expense(expense.id)
        assert not await storage.delete_expense(expense.id)


class TestGoogleSheetsStorage:
    """Tests for the Google Sheets backend against a fake worksheet."""

    @pytest.fixture
    def client(self):
        return FakeSheetsClient()

    @pytest.fixture
    def sheets(self, client):
        return GoogleSheetsLedgerStorage(client)

    async def test_member_round_trip(self, sheets, client):
        member = Member(name="Alice", phone="98765")
        await sheets.save_member(member)
        assert len(client.members.rows) == 2

        fetched = await sheets.get_member(member.id)
        assert fetched.name == "Alice"
        assert fetched.active is True

    async def test_members_sorted_case_sensitively(self, sheets):
        for name in ["alice", "Bob"]:
            await sheets.save_member(Member(name=name, phone="1"))
        assert [m.name for m in await sheets.list_members()] == ["Bob", "alice"]

    async def test_update_member_in_place(self, sheets, client):
        member = Member(name="Alice", phone="98765")
        await sheets.save_member(member)
        await sheets.update_member(member.model_copy(update={"name": "Alicia"}))
        assert len(client.members.rows) == 2
        assert (await sheets.get_member(member.id)).name == "Alicia"

    async def test_upsert_overwrites_row_in_place(self, sheets, client):
        """Test replacing a payment is one range update, not delete+append."""
        member_id = uuid4()
        await sheets.upsert_payment(make_payment(member_id, 20))
        outcome = await sheets.upsert_payment(make_payment(member_id, 25))

        assert outcome.replaced.amount == Decimal("20")
        assert client.payments.updates == 1
        assert len(client.payments.rows) == 2
        payments = await sheets.list_payments()
        assert [p.amount for p in payments] == [Decimal("25")]

    async def test_upsert_removes_stray_duplicates(self, sheets, client):
        """Test duplicates written by an older writer are cleaned up."""
        member_id = uuid4()
        for amount in (10, 15, 20):
            client.payments.append_row(sheets._payment_to_row(make_payment(member_id, amount)))

        await sheets.upsert_payment(make_payment(member_id, 30))
        payments = await sheets.list_payments()
        assert [p.amount for p in payments] == [Decimal("30")]

    async def test_upsert_strict_conflict(self, sheets):
        member_id = uuid4()
        await sheets.upsert_payment(make_payment(member_id, 20))
        with pytest.raises(ConflictError):
            await sheets.upsert_payment(make_payment(member_id, 25), replace_existing=False)

    async def test_malformed_rows_are_skipped(self, sheets, client):
        client.payments.append_row(["bad-id", "x", "abc", "1", "2025", "not-a-date"])
        await sheets.upsert_payment(make_payment(uuid4(), 20))
        assert len(await sheets.list_payments()) == 1

    async def test_filters_payments(self, sheets):
        member_id = uuid4()
        await sheets.upsert_payment(make_payment(member_id, 20, week_number=1))
        await sheets.upsert_payment(make_payment(member_id, 20, week_number=2))
        assert len(await sheets.list_payments(week_number=2, year=2025)) == 1
        assert len(await sheets.list_payments(member_id=uuid4())) == 0

    async def test_delete_payment(self, sheets):
        payment = make_payment(uuid4(), 20)
        await sheets.upsert_payment(payment)
        assert await sheets.delete_payment(payment.id)
        assert await sheets.get_payment(payment.id) is None

    async def test_expenses_and_donations(self, sheets):
        expense = await add_expense(sheets, "12.50", datetime(2025, 1, 16, 9, 30))
        fetched = await sheets.get_expense(expense.id)
        assert fetched.amount == Decimal("12.50")
        assert fetched.created_at == datetime(2025, 1, 16, 9, 30)

    async def test_transport_errors_become_dependency_errors(self):
        """Test a dropped connection surfaces as DependencyError."""
        sheets = GoogleSheetsLedgerStorage(UnreachableSheetsClient())
        with pytest.raises(DependencyError):
            await sheets.list_payments()
        with pytest.raises(DependencyError):
            await sheets.upsert_payment(make_payment(uuid4(), 20))
        with pytest.raises(DependencyError):
            await sheets.ping()

    async def test_ping(self, sheets):
        assert await sheets.ping() is True


class TestGoogleSheetsAuditStorage:
    """Tests for the append-only audit sheet."""

    async def test_append_writes_one_row(self):
        client = FakeSheetsClient()
        audit = GoogleSheetsAuditStorage(client)
        correlation_id = uuid4()
        event = AuditEventBuilder.payment_recorded(
            payment_id=uuid4(),
            member_id=uuid4(),
            week_number=1,
            year=2025,
            amount="20",
            correlation_id=correlation_id,
        )
        assert await audit.append_event(event) is True

        assert len(client.audit.rows) == 2
        row = client.audit.rows[1]
        assert row[0] == str(event.event_id)
        assert row[2] == "payment_recorded"
        assert row[6] == str(correlation_id)
        assert row[10] == "True"


class TestStorageIsolation:
    """Each in-memory store is independent."""

    async def test_fresh_store_is_empty(self):
        storage = InMemoryLedgerStorage()
        assert await storage.count_members() == 0
        assert await storage.list_donations() == []
