"""
Report Assembler

Shapes AggregationEngine output for the outside world:
- the weekly-analysis table (optionally narrowed to one month)
- the export payload handed to a tabular or PDF renderer
- the dashboard summary cards

DESIGN DECISION: The assembler is stateless. Every call recomputes from the
store through the engine; nothing is kept between calls.

Month filtering looks only at the START date of each week (from the week
clock). A week that starts on 29 June and ends on 5 July belongs to June.
Months are 1-based (January = 1).
"""

import calendar
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

import structlog

from src.analysis import AggregationEngine
from src.audit import AuditLogger
from src.config import LedgerSettings, get_settings
from src.models.report import (
    ReportPayload,
    ReportRow,
    SummaryCards,
    WeeklyAnalysis,
)
from src.validation.validator import ValidationError, month_out_of_range
from src.weeks import WeekClock


logger = structlog.get_logger(__name__)

REPORT_TITLE = "Weekly Analysis Report"
REPORT_COLUMNS = ["Week", "Collections", "Members Paid", "Expenses", "Net Amount"]


def _group_digits(digits: str, indian: bool) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    if not indian:
        return f"{int(head):,},{tail}"
    # Lakh/crore grouping: pairs of digits above the last three
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(amount: Decimal, symbol: str = "₹", indian_grouping: bool = True) -> str:
    """
    Format an amount in whole currency units, e.g. "₹1,25,000" or "-₹40".

    Fractions are rounded half-up; reports never show paise.
    """
    whole = Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if whole < 0 else ""
    return f"{sign}{symbol}{_group_digits(str(abs(int(whole))), indian_grouping)}"


def format_day(day: date) -> str:
    """Short display date, e.g. "1 Jun 2025"."""
    return f"{day.day} {day:%b %Y}"


def period_label(year: int, month: Optional[int] = None) -> str:
    """Display label: "Year 2025" for a full year, "June 2025" for a month."""
    if month is None:
        return f"Year {year}"
    return f"{calendar.month_name[month]} {year}"


class ReportAssembler:
    """Builds report shapes from the aggregation engine."""

    def __init__(
        self,
        engine: AggregationEngine,
        clock: WeekClock,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._engine = engine
        self._clock = clock
        self._settings = settings or get_settings().ledger
        self._audit_logger = audit_logger or AuditLogger()

    def _money(self, amount: Decimal) -> str:
        return format_currency(
            amount,
            symbol=self._settings.currency_symbol,
            indian_grouping=self._settings.currency_code == "INR",
        )

    async def weekly_analysis(
        self,
        year: int,
        month: Optional[int] = None,
    ) -> WeeklyAnalysis:
        """
        Weekly breakdown for a year, optionally filtered to one month.

        The period summary is recomputed over the weeks that survive the
        filter, so a month view never shows full-year totals.

        Raises:
            ValidationError: If month is outside 1-12
        """
        if month is not None and not 1 <= month <= 12:
            raise ValidationError("report", [month_out_of_range(month)])

        weeks = await self._engine.weekly_breakdown(year)
        if month is not None:
            weeks = [
                week for week in weeks
                if self._clock.range_of(week.week_number).start.month == month
            ]

        return WeeklyAnalysis(
            year=year,
            month=month,
            weekly_analysis=weeks,
            summary=self._engine.period_summary(weeks),
        )

    def build_export(self, analysis: WeeklyAnalysis) -> ReportPayload:
        """Turn a weekly analysis into a render-ready report payload."""
        organization = self._settings.organization_name
        label = period_label(analysis.year, analysis.month)
        summary = analysis.summary

        rows = []
        for week in analysis.weekly_analysis:
            week_range = self._clock.range_of(week.week_number)
            week_label = (
                f"Week {week.week_number} "
                f"({format_day(week_range.start)} - {format_day(week_range.end)})"
            )
            rows.append(ReportRow(
                week_number=week.week_number,
                week_label=week_label,
                week_start=week_range.start,
                week_end=week_range.end,
                collections=week.total_collected,
                members_paid=week.members_paid,
                expenses=week.expenses,
                net_amount=week.net_amount,
                display=[
                    week_label,
                    self._money(week.total_collected),
                    str(week.members_paid),
                    self._money(week.expenses),
                    self._money(week.net_amount),
                ],
            ))

        return ReportPayload(
            title=REPORT_TITLE,
            organization=organization,
            period_label=label,
            file_name=f"{organization}-Analysis-{label}.pdf".replace(" ", "-"),
            summary=summary,
            summary_rows=[
                ["Total Collections", self._money(summary.total_collected)],
                ["Total Expenses", self._money(summary.total_expenses)],
                ["Net Amount", self._money(summary.net_amount)],
                ["Average Weekly Collection", self._money(summary.average_weekly_collection)],
            ],
            columns=list(REPORT_COLUMNS),
            rows=rows,
        )

    async def export(
        self,
        year: int,
        month: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReportPayload:
        """Weekly analysis plus export payload in one step. Audited."""
        analysis = await self.weekly_analysis(year, month)
        payload = self.build_export(analysis)
        logger.info(
            "report_assembled",
            year=year,
            month=month,
            weeks=len(payload.rows),
            file_name=payload.file_name,
        )
        await self._audit_logger.log_report_generated(
            year=year,
            month=month,
            week_count=len(payload.rows),
            correlation_id=correlation_id,
        )
        return payload

    async def summary_cards(
        self,
        week_number: Optional[int] = None,
        year: Optional[int] = None,
    ) -> SummaryCards:
        """
        Dashboard cards for one week.

        balance = all-time collections + donations - expenses
        """
        summary = await self._engine.summary(week_number, year)
        return SummaryCards(
            week_number=summary.week_number,
            year=summary.year,
            total_members=summary.total_members,
            paid_this_week=summary.weekly_paid_count,
            unpaid_this_week=summary.weekly_unpaid_count,
            weekly_collection=summary.weekly_collection,
            total_collections=summary.total_collections,
            total_expenses=summary.total_expenses,
            total_donations=summary.total_donations,
            balance=summary.total_collections + summary.total_donations - summary.total_expenses,
        )
