"""
Main Orchestrator for the Dues Ledger

This module ties together all the components and exposes one facade,
LedgerService, whose operations mirror the HTTP endpoints of the ledger:
members, payments, expenses, donations, statistics and reports.

DESIGN DECISION: The orchestrator owns no rules of its own.
- Bodies arrive as JSON-shaped dicts and leave as JSON-shaped dicts
- Validation happens in the validator, persistence in the store
- The only implicit parameters are year (current calendar year) and
  week number (current week from the week clock)

Transport concerns (status codes, headers, auth) belong to whatever
serves this facade, not to the facade.
"""

from datetime import date
from typing import Any, Callable, Optional
from uuid import UUID

import structlog

from src.analysis import AggregationEngine
from src.audit import AuditLogger, configure_logging, create_correlation_id
from src.config import Settings, get_settings
from src.ledger import CashBook, MemberRegistry, PaymentRecorder
from src.models.ledger import amount_to_number, utcnow
from src.reports import ReportAssembler
from src.services.storage import (
    AuditStorageInterface,
    DependencyError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)
from src.validation import LedgerValidator
from src.weeks import WeekClock, week_index_for


logger = structlog.get_logger(__name__)


def _as_uuid(value: Any, entity: str) -> UUID:
    """Parse an ID from a path segment; malformed IDs cannot exist."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(f"{entity} not found: {value}")


class LedgerService:
    """
    Facade over the ledger core.

    Each public coroutine corresponds to one endpoint and returns plain
    dicts/lists with camelCase keys.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        clock: WeekClock,
        members: MemberRegistry,
        recorder: PaymentRecorder,
        cashbook: CashBook,
        engine: AggregationEngine,
        reports: ReportAssembler,
        validator: LedgerValidator,
    ):
        self._storage = storage
        self._clock = clock
        self._members = members
        self._recorder = recorder
        self._cashbook = cashbook
        self._engine = engine
        self._reports = reports
        self._validator = validator

    @property
    def clock(self) -> WeekClock:
        return self._clock

    def _period(self, week_number: Any = None, year: Any = None, month: Any = None) -> dict[str, Any]:
        """Parsed query parameters; ValidationError when any is malformed."""
        return self._validator.require_valid(
            self._validator.validate_period(week_number=week_number, year=year, month=month)
        )

    def _default_week(self, week_number: Any, year: Any) -> tuple[int, int]:
        period = self._period(week_number, year)
        week_number, year = period["week_number"], period["year"]
        if week_number is None:
            week_number = self._clock.current_week().week_number
        if year is None:
            year = self._clock.current_year()
        return week_number, year

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    async def list_members(self, include_private: bool = False) -> list[dict]:
        """
        All members sorted by name.

        Anonymous callers get the public projection (no phone number).
        """
        members = await self._members.list_all()
        if include_private:
            return [m.to_dict() for m in members]
        return [m.public_view() for m in members]

    async def get_member(self, member_id: Any) -> dict:
        member = await self._members.get(_as_uuid(member_id, "Member"))
        return member.to_dict()

    async def create_member(self, body: dict[str, Any]) -> dict:
        member = await self._members.create(body, correlation_id=create_correlation_id())
        return member.to_dict()

    async def update_member(self, member_id: Any, body: dict[str, Any]) -> dict:
        member = await self._members.update(
            _as_uuid(member_id, "Member"),
            body,
            correlation_id=create_correlation_id(),
        )
        return member.to_dict()

    async def delete_member(self, member_id: Any) -> dict:
        member = await self._members.delete(
            _as_uuid(member_id, "Member"),
            correlation_id=create_correlation_id(),
        )
        return {"message": "Member deleted successfully", "id": str(member.id)}

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def list_payments(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[dict]:
        """
        Payments newest first, each with the paying member joined in.

        Filters are optional; an orphaned payment (member deleted) carries
        member = None.
        """
        period = self._period(week_number, year)
        payments = await self._storage.list_payments(
            week_number=period["week_number"],
            year=period["year"],
        )
        members = {m.id: m for m in await self._storage.list_members()}

        rows = []
        for payment in payments:
            row = payment.to_dict()
            member = members.get(payment.member_id)
            row["member"] = (
                {"id": str(member.id), "name": member.name, "phone": member.phone}
                if member else None
            )
            rows.append(row)
        return rows

    async def record_payment(self, body: dict[str, Any]) -> dict:
        """Record or replace a payment. Accepts member/memberId as the member key."""
        member_id = body.get("member", body.get("memberId", body.get("member_id")))
        payment = await self._recorder.record(
            member_id=member_id,
            amount=body.get("amount"),
            week_number=body.get("weekNumber", body.get("week_number")),
            year=body.get("year"),
            correlation_id=create_correlation_id(),
        )
        return payment.to_dict()

    async def delete_payment(self, payment_id: Any) -> dict:
        payment = await self._recorder.delete(
            _as_uuid(payment_id, "Payment"),
            correlation_id=create_correlation_id(),
        )
        return {"message": "Payment deleted successfully", "id": str(payment.id)}

    async def payment_stats(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> dict:
        stats = await self._engine.current_stats(*self._default_week(week_number, year))
        return stats.to_dict()

    async def payment_statuses(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[dict]:
        """Paid flag per member for the week, read from the stored payments."""
        statuses = await self._engine.member_statuses(*self._default_week(week_number, year))
        return [s.to_dict() for s in statuses]

    # ------------------------------------------------------------------
    # Analysis and reports
    # ------------------------------------------------------------------

    async def weekly_analysis(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> dict:
        period = self._period(year=year, month=month)
        analysis = await self._reports.weekly_analysis(
            period["year"] or self._clock.current_year(),
            period["month"],
        )
        return analysis.to_dict()

    async def export_report(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> dict:
        period = self._period(year=year, month=month)
        payload = await self._reports.export(
            period["year"] or self._clock.current_year(),
            period["month"],
            correlation_id=create_correlation_id(),
        )
        return payload.to_dict()

    async def summary(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> dict:
        summary = await self._engine.summary(*self._default_week(week_number, year))
        return summary.to_dict()

    async def summary_cards(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> dict:
        cards = await self._reports.summary_cards(*self._default_week(week_number, year))
        return cards.to_dict()

    # ------------------------------------------------------------------
    # Expenses and donations
    # ------------------------------------------------------------------

    async def list_expenses(self) -> list[dict]:
        return [e.to_dict() for e in await self._cashbook.list_expenses()]

    async def record_expense(self, body: dict[str, Any]) -> dict:
        expense = await self._cashbook.record_expense(body, correlation_id=create_correlation_id())
        return expense.to_dict()

    async def delete_expense(self, expense_id: Any) -> dict:
        expense = await self._cashbook.delete_expense(
            _as_uuid(expense_id, "Expense"),
            correlation_id=create_correlation_id(),
        )
        return {"message": "Expense deleted successfully", "id": str(expense.id)}

    async def expense_stats(self) -> dict:
        total = await self._engine.total_expenses()
        return {"totalExpenses": amount_to_number(total)}

    async def list_donations(self) -> list[dict]:
        return [d.to_dict() for d in await self._cashbook.list_donations()]

    async def record_donation(self, body: dict[str, Any]) -> dict:
        donation = await self._cashbook.record_donation(body, correlation_id=create_correlation_id())
        return donation.to_dict()

    async def donation_stats(self) -> dict:
        total = await self._engine.total_donations()
        return {"totalDonations": amount_to_number(total)}

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def health(self) -> dict:
        """
        Liveness plus store reachability.

        An unreachable store is reported, not raised: a health check must
        answer even when the dependency is down.
        """
        try:
            connected = await self._storage.ping()
        except DependencyError as e:
            logger.error("health_check_store_unreachable", error=str(e))
            connected = False

        return {
            "status": "ok",
            "storage": "connected" if connected else "disconnected",
            "timestamp": utcnow().isoformat(),
        }


def create_ledger_components(
    settings: Optional[Settings] = None,
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    today: Optional[Callable[[], date]] = None,
) -> LedgerService:
    """
    Factory function to create all application components.

    Args:
        settings: Settings container (defaults to get_settings())
        storage: Ledger store to use instead of the configured backend
        audit_storage: Audit store to use instead of the configured backend
        today: Provider of the current date, for a fixed clock in tests

    Returns:
        A fully wired LedgerService
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger
    configure_logging(settings.app.log_level)

    if storage is None:
        if ledger_settings.storage_backend == "google_sheets":
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            storage = GoogleSheetsLedgerStorage(sheets_client)
            if audit_storage is None:
                audit_storage = GoogleSheetsAuditStorage(sheets_client)
        else:
            storage = InMemoryLedgerStorage()
    if audit_storage is None:
        audit_storage = InMemoryAuditStorage()

    logger.info(
        "ledger_components_created",
        storage=type(storage).__name__,
        epoch=ledger_settings.epoch_date.isoformat(),
        upsert_policy=ledger_settings.upsert_policy,
        expense_week_scheme=ledger_settings.expense_week_scheme,
    )

    clock = WeekClock(ledger_settings.epoch_date, today=today)
    audit_logger = AuditLogger(audit_storage)
    validator = LedgerValidator(ledger_settings)

    engine = AggregationEngine(
        storage,
        clock,
        expense_week_index=week_index_for(ledger_settings.expense_week_scheme, clock),
    )
    return LedgerService(
        storage=storage,
        clock=clock,
        members=MemberRegistry(storage, audit_logger, validator, ledger_settings),
        recorder=PaymentRecorder(storage, audit_logger, validator, ledger_settings),
        cashbook=CashBook(storage, audit_logger, validator, ledger_settings),
        engine=engine,
        reports=ReportAssembler(engine, clock, ledger_settings, audit_logger),
        validator=validator,
    )
