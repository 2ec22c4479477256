"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the durable backend because:
1. Treasurers can view the ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a club ledger is small)
- No transactions or unique indexes: payment upserts are serialised with
  a per-key lock in this process, and a replacement overwrites the old row
  in a single range update instead of delete + append
- Limited query capabilities (we filter in Python)
- Several processes writing the same sheet are NOT serialised

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing ledger logic.
"""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from src.config import GoogleSheetsSettings, get_settings
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
    DependencyError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from src.services.storage.locks import KeyedLock


logger = structlog.get_logger(__name__)


MEMBER_COLUMNS = [
    "id",
    "name",
    "phone",
    "photo",
    "active",
    "created_at",
    "updated_at",
]

PAYMENT_COLUMNS = [
    "id",
    "member_id",
    "amount",
    "week_number",
    "year",
    "created_at",
]

EXPENSE_COLUMNS = [
    "id",
    "description",
    "amount",
    "created_at",
]

DONATION_COLUMNS = [
    "id",
    "donor_name",
    "amount",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate gspread/network failures into the storage exception family."""
    try:
        yield
    except StorageError:
        raise
    except (gspread.exceptions.GSpreadException, OSError) as e:
        raise DependencyError(f"Google Sheets unavailable during {operation}: {e}") from e
    except Exception as e:
        raise StorageError(f"Failed to {operation}: {e}") from e


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise DependencyError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise DependencyError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise DependencyError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_members_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.members_sheet_name, MEMBER_COLUMNS)

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.payments_sheet_name, PAYMENT_COLUMNS, rows=5000)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_donations_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.donations_sheet_name, DONATION_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Each collection lives in its own worksheet, one record per row,
    with the record ID in column A.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._key_locks = KeyedLock()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _member_to_row(member: Member) -> list:
        return [
            str(member.id),
            member.name,
            member.phone,
            member.photo,
            str(member.active),
            member.created_at.isoformat(),
            member.updated_at.isoformat(),
        ]

    @staticmethod
    def _row_to_member(row: list) -> Member:
        return Member(
            id=UUID(_safe_get(row, 0)),
            name=_safe_get(row, 1),
            phone=_safe_get(row, 2),
            photo=_safe_get(row, 3) or Member.model_fields["photo"].default,
            active=_safe_get(row, 4, "True").lower() == "true",
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
            updated_at=datetime.fromisoformat(_safe_get(row, 6) or _safe_get(row, 5)),
        )

    @staticmethod
    def _payment_to_row(payment: Payment) -> list:
        return [
            str(payment.id),
            str(payment.member_id),
            str(payment.amount),
            str(payment.week_number),
            str(payment.year),
            payment.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_payment(row: list) -> Payment:
        return Payment(
            id=UUID(_safe_get(row, 0)),
            member_id=UUID(_safe_get(row, 1)),
            amount=Decimal(_safe_get(row, 2)),
            week_number=int(_safe_get(row, 3)),
            year=int(_safe_get(row, 4)),
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
        )

    @staticmethod
    def _expense_to_row(expense: Expense) -> list:
        return [
            str(expense.id),
            expense.description,
            str(expense.amount),
            expense.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_expense(row: list) -> Expense:
        return Expense(
            id=UUID(_safe_get(row, 0)),
            description=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            created_at=datetime.fromisoformat(_safe_get(row, 3)),
        )

    @staticmethod
    def _donation_to_row(donation: Donation) -> list:
        return [
            str(donation.id),
            donation.donor_name,
            str(donation.amount),
            donation.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_donation(row: list) -> Donation:
        return Donation(
            id=UUID(_safe_get(row, 0)),
            donor_name=_safe_get(row, 1),
            amount=Decimal(_safe_get(row, 2)),
            created_at=datetime.fromisoformat(_safe_get(row, 3)),
        )

    # ------------------------------------------------------------------
    # Generic row helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_rows(sheet: gspread.Worksheet, parse, collection: str) -> list:
        """Parse every data row, skipping blank and malformed rows."""
        records = []
        for row in sheet.get_all_values()[1:]:  # Skip header
            if not row or not row[0]:
                continue
            try:
                records.append(parse(row))
            except (ValueError, ArithmeticError) as e:
                logger.warning(
                    "malformed_row_skipped",
                    collection=collection,
                    row_id=row[0],
                    error=str(e),
                )
        return records

    @staticmethod
    def _find_row_index(sheet: gspread.Worksheet, record_id: UUID) -> Optional[int]:
        """1-based sheet row of the record (row 1 is the header)."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == str(record_id):
                return idx
        return None

    def _get_by_id(self, sheet: gspread.Worksheet, record_id: UUID, parse):
        for row in sheet.get_all_values()[1:]:
            if row and row[0] == str(record_id):
                return parse(row)
        return None

    def _delete_by_id(self, sheet: gspread.Worksheet, record_id: UUID) -> bool:
        idx = self._find_row_index(sheet, record_id)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def save_member(self, member: Member) -> Member:
        with storage_errors("save member"):
            sheet = self._client.get_members_sheet()
            sheet.append_row(self._member_to_row(member), value_input_option="RAW")
        return member

    async def get_member(self, member_id: UUID) -> Optional[Member]:
        with storage_errors("get member"):
            return self._get_by_id(self._client.get_members_sheet(), member_id, self._row_to_member)

    async def update_member(self, member: Member) -> Member:
        with storage_errors("update member"):
            sheet = self._client.get_members_sheet()
            idx = self._find_row_index(sheet, member.id)
            if idx is None:
                raise NotFoundError(f"Member not found: {member.id}")
            sheet.update(
                range_name=f"A{idx}",
                values=[self._member_to_row(member)],
                value_input_option="RAW",
            )
        return member

    async def delete_member(self, member_id: UUID) -> bool:
        with storage_errors("delete member"):
            return self._delete_by_id(self._client.get_members_sheet(), member_id)

    async def list_members(self) -> list[Member]:
        with storage_errors("list members"):
            members = self._parse_rows(
                self._client.get_members_sheet(), self._row_to_member, "members"
            )
        members.sort(key=lambda m: (m.name, m.created_at))
        return members

    async def count_members(self) -> int:
        return len(await self.list_members())

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def upsert_payment(
        self,
        payment: Payment,
        replace_existing: bool = True,
    ) -> PaymentUpsert:
        """
        Replace-or-append under the per-key lock.

        An existing row for the key is overwritten in one range update, so
        readers see either the old payment or the new one, never neither.
        Stray duplicates left by older writers are removed afterwards.
        """
        async with self._key_locks.hold(payment.key):
            with storage_errors("upsert payment"):
                sheet = self._client.get_payments_sheet()

                matches: list[tuple[int, Payment]] = []
                for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                    if not row or not row[0]:
                        continue
                    try:
                        existing = self._row_to_payment(row)
                    except (ValueError, ArithmeticError):
                        continue
                    if existing.key == payment.key:
                        matches.append((idx, existing))

                replaced = matches[0][1] if matches else None
                if replaced is not None and not replace_existing:
                    raise ConflictError(
                        f"Payment already recorded for member {payment.member_id} "
                        f"in week {payment.week_number}/{payment.year}"
                    )

                new_row = self._payment_to_row(payment)
                if matches:
                    sheet.update(
                        range_name=f"A{matches[0][0]}",
                        values=[new_row],
                        value_input_option="RAW",
                    )
                    # Bottom-up so earlier indexes stay valid
                    for idx, _ in reversed(matches[1:]):
                        sheet.delete_rows(idx)
                    if len(matches) > 1:
                        logger.warning(
                            "duplicate_payments_removed",
                            member_id=str(payment.member_id),
                            week_number=payment.week_number,
                            year=payment.year,
                            removed=len(matches) - 1,
                        )
                else:
                    sheet.append_row(new_row, value_input_option="RAW")

        return PaymentUpsert(payment=payment, replaced=replaced)

    async def get_payment(self, payment_id: UUID) -> Optional[Payment]:
        with storage_errors("get payment"):
            return self._get_by_id(self._client.get_payments_sheet(), payment_id, self._row_to_payment)

    async def delete_payment(self, payment_id: UUID) -> bool:
        with storage_errors("delete payment"):
            return self._delete_by_id(self._client.get_payments_sheet(), payment_id)

    async def list_payments(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
        member_id: Optional[UUID] = None,
        newest_first: bool = True,
    ) -> list[Payment]:
        with storage_errors("list payments"):
            payments = self._parse_rows(
                self._client.get_payments_sheet(), self._row_to_payment, "payments"
            )

        payments = [
            p for p in payments
            if (week_number is None or p.week_number == week_number)
            and (year is None or p.year == year)
            and (member_id is None or p.member_id == member_id)
        ]
        payments.sort(key=lambda p: p.created_at, reverse=newest_first)
        return payments

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def save_expense(self, expense: Expense) -> Expense:
        with storage_errors("save expense"):
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
        return expense

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        with storage_errors("get expense"):
            return self._get_by_id(self._client.get_expenses_sheet(), expense_id, self._row_to_expense)

    async def delete_expense(self, expense_id: UUID) -> bool:
        with storage_errors("delete expense"):
            return self._delete_by_id(self._client.get_expenses_sheet(), expense_id)

    async def list_expenses(self, newest_first: bool = True) -> list[Expense]:
        with storage_errors("list expenses"):
            expenses = self._parse_rows(
                self._client.get_expenses_sheet(), self._row_to_expense, "expenses"
            )
        expenses.sort(key=lambda e: e.created_at, reverse=newest_first)
        return expenses

    # ------------------------------------------------------------------
    # Donations
    # ------------------------------------------------------------------

    async def save_donation(self, donation: Donation) -> Donation:
        with storage_errors("save donation"):
            sheet = self._client.get_donations_sheet()
            sheet.append_row(self._donation_to_row(donation), value_input_option="RAW")
        return donation

    async def list_donations(self, newest_first: bool = True) -> list[Donation]:
        with storage_errors("list donations"):
            donations = self._parse_rows(
                self._client.get_donations_sheet(), self._row_to_donation, "donations"
            )
        donations.sort(key=lambda d: d.created_at, reverse=newest_first)
        return donations

    async def ping(self) -> bool:
        with storage_errors("ping"):
            self._client.get_spreadsheet()
        return True


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        with storage_errors("append audit event"):
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True
