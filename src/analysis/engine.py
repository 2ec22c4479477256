"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and STATELESS.
Every figure is recomputed from stored records on each call; nothing is
cached between calls and nothing is written back.

Weekly breakdown rules:
1. Payments of the year are grouped by their recorded week number.
   members_paid counts payment records, not distinct members (the two
   agree as long as the one-payment-per-week-key rule holds).
2. Expenses created in the calendar year are grouped by the expense week
   index chosen at construction. The default day-of-year scheme does NOT
   line up with epoch-anchored payment weeks; see src/weeks/clock.py.
3. The two groupings are outer-joined on week number, missing sides are 0,
   and net = collected - expenses.
4. Weeks are returned in ascending order.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional
from uuid import UUID

import structlog

from src.models.ledger import Payment
from src.models.report import (
    CurrentStats,
    LedgerSummary,
    MemberPaymentStatus,
    PeriodSummary,
    WeekSummary,
)
from src.services.storage import LedgerStorageInterface
from src.weeks import WeekClock, WeekIndexStrategy


logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


class AggregationEngine:
    """
    Computes weekly and period figures from the ledger store.

    GUARANTEES:
    - Only reports what is in storage, never estimates
    - Empty periods produce zeros, never a division error
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        clock: WeekClock,
        expense_week_index: WeekIndexStrategy,
    ):
        """
        Args:
            storage: Ledger store to read from
            clock: Week clock for default week/year
            expense_week_index: How expenses are bucketed into weeks.
                Required on purpose: the two available schemes disagree.
        """
        self._storage = storage
        self._clock = clock
        self._expense_week_index = expense_week_index

    @property
    def expense_week_index(self) -> WeekIndexStrategy:
        return self._expense_week_index

    async def weekly_breakdown(
        self,
        year: int,
        include_expense_only_weeks: bool = True,
    ) -> list[WeekSummary]:
        """
        Per-week collections, payment counts, expenses and net for a year.

        Args:
            year: Calendar year the payments are filed under
            include_expense_only_weeks: Also emit weeks that have expenses
                but no payments (with total_collected = 0)
        """
        collected: dict[int, Decimal] = defaultdict(lambda: ZERO)
        paid_counts: dict[int, int] = defaultdict(int)
        for payment in await self._storage.list_payments(year=year, newest_first=False):
            collected[payment.week_number] += payment.amount
            paid_counts[payment.week_number] += 1

        expenses: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for expense in await self._storage.list_expenses(newest_first=False):
            if expense.created_at.year == year:
                week = self._expense_week_index.week_of(expense.created_at)
                expenses[week] += expense.amount

        weeks = set(collected)
        if include_expense_only_weeks:
            weeks |= set(expenses)

        breakdown = []
        for week in sorted(weeks):
            total_collected = collected.get(week, ZERO)
            week_expenses = expenses.get(week, ZERO)
            breakdown.append(WeekSummary(
                week_number=week,
                total_collected=total_collected,
                members_paid=paid_counts.get(week, 0),
                expenses=week_expenses,
                net_amount=total_collected - week_expenses,
            ))
        return breakdown

    @staticmethod
    def period_summary(weeks: Iterable[WeekSummary]) -> PeriodSummary:
        """
        Totals and average weekly collection over a sequence of weeks.

        The average divides by the number of weeks given and is 0 when
        there are none. It is rounded half-up to two decimals.
        """
        weeks = list(weeks)
        total_collected = _total(w.total_collected for w in weeks)
        total_expenses = _total(w.expenses for w in weeks)
        net_amount = _total(w.net_amount for w in weeks)

        average = ZERO
        if weeks:
            average = (total_collected / len(weeks)).quantize(CENT, rounding=ROUND_HALF_UP)

        return PeriodSummary(
            total_collected=total_collected,
            total_expenses=total_expenses,
            net_amount=net_amount,
            average_weekly_collection=average,
        )

    async def current_stats(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> CurrentStats:
        """All-time collections plus the count and total for one week."""
        week_number, year = self._resolve_week(week_number, year)

        all_payments = await self._storage.list_payments()
        weekly = [p for p in all_payments if p.week_number == week_number and p.year == year]

        return CurrentStats(
            week_number=week_number,
            year=year,
            total_collected_all_time=_total(p.amount for p in all_payments),
            weekly_paid_count=len(weekly),
            weekly_total=_total(p.amount for p in weekly),
        )

    async def summary(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> LedgerSummary:
        """
        System-wide figures for one week.

        Defaults to the clock's current week and the current calendar year.
        """
        stats = await self.current_stats(week_number, year)
        total_members = await self._storage.count_members()
        unpaid = total_members - stats.weekly_paid_count
        if unpaid < 0:
            logger.warning(
                "paid_count_exceeds_members",
                week_number=stats.week_number,
                year=stats.year,
                total_members=total_members,
                weekly_paid_count=stats.weekly_paid_count,
            )

        return LedgerSummary(
            week_number=stats.week_number,
            year=stats.year,
            total_members=total_members,
            weekly_paid_count=stats.weekly_paid_count,
            weekly_unpaid_count=unpaid,
            weekly_collection=stats.weekly_total,
            total_collections=stats.total_collected_all_time,
            total_expenses=await self.total_expenses(),
            total_donations=await self.total_donations(),
        )

    async def total_expenses(self) -> Decimal:
        return _total(e.amount for e in await self._storage.list_expenses())

    async def total_donations(self) -> Decimal:
        return _total(d.amount for d in await self._storage.list_donations())

    async def paid_member_ids(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> set[UUID]:
        """Members with a payment on file for the week."""
        week_number, year = self._resolve_week(week_number, year)
        payments = await self._storage.list_payments(week_number=week_number, year=year)
        return {p.member_id for p in payments}

    async def member_statuses(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[MemberPaymentStatus]:
        """Paid/unpaid flag for every member for one week, in name order."""
        week_number, year = self._resolve_week(week_number, year)
        payments: dict[UUID, Payment] = {
            p.member_id: p
            for p in await self._storage.list_payments(week_number=week_number, year=year)
        }

        statuses = []
        for member in await self._storage.list_members():
            payment = payments.get(member.id)
            statuses.append(MemberPaymentStatus(
                member_id=member.id,
                name=member.name,
                active=member.active,
                paid=payment is not None,
                amount=payment.amount if payment else None,
            ))
        return statuses

    def _resolve_week(
        self,
        week_number: Optional[int],
        year: Optional[int],
    ) -> tuple[int, int]:
        if week_number is None:
            week_number = self._clock.current_week().week_number
        if year is None:
            year = self._clock.current_year()
        return week_number, year
