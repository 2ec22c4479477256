"""
Derived Read Models

Everything in this module is computed from stored records on demand.
None of it is ever persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from src.models.ledger import Amount, LedgerModel, utcnow


class WeekRange(LedgerModel):
    """First and last calendar day of an epoch-anchored week."""

    week_number: int = Field(..., ge=1)
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class WeekSummary(LedgerModel):
    """One row of the weekly breakdown."""

    week_number: int = Field(..., ge=1)
    total_collected: Amount = Decimal("0")
    members_paid: int = Field(default=0, ge=0)
    expenses: Amount = Decimal("0")
    net_amount: Amount = Decimal("0")


class PeriodSummary(LedgerModel):
    """Totals over a sequence of weeks."""

    total_collected: Amount = Decimal("0")
    total_expenses: Amount = Decimal("0")
    net_amount: Amount = Decimal("0")
    average_weekly_collection: Amount = Decimal("0")


class CurrentStats(LedgerModel):
    """Payment statistics for a single week plus the all-time total."""

    week_number: int
    year: int
    total_collected_all_time: Amount = Decimal("0")
    weekly_paid_count: int = 0
    weekly_total: Amount = Decimal("0")


class LedgerSummary(LedgerModel):
    """
    System-wide summary for one week.

    weekly_unpaid_count is total_members - weekly_paid_count and is only
    negative when payment rows reference more members than exist.
    """

    week_number: int
    year: int
    total_members: int = 0
    weekly_paid_count: int = 0
    weekly_unpaid_count: int = 0
    weekly_collection: Amount = Decimal("0")
    total_collections: Amount = Decimal("0")
    total_expenses: Amount = Decimal("0")
    total_donations: Amount = Decimal("0")


class MemberPaymentStatus(LedgerModel):
    """Whether a member has a payment on file for a given week."""

    member_id: UUID
    name: str
    active: bool = True
    paid: bool = False
    amount: Optional[Amount] = None


class SummaryCards(LedgerModel):
    """Dashboard card values."""

    week_number: int
    year: int
    total_members: int
    paid_this_week: int
    unpaid_this_week: int
    weekly_collection: Amount
    total_collections: Amount
    total_expenses: Amount
    total_donations: Amount
    balance: Amount


class WeeklyAnalysis(LedgerModel):
    """Weekly breakdown for a year, optionally narrowed to one month."""

    year: int
    month: Optional[int] = Field(default=None, ge=1, le=12)
    weekly_analysis: list[WeekSummary] = Field(default_factory=list)
    summary: PeriodSummary = Field(default_factory=PeriodSummary)


class ReportRow(LedgerModel):
    """One table row of the exported report."""

    week_number: int
    week_label: str
    week_start: date
    week_end: date
    collections: Amount
    members_paid: int
    expenses: Amount
    net_amount: Amount
    display: list[str] = Field(
        default_factory=list,
        description="Formatted cells: week, collections, members paid, expenses, net"
    )


class ReportPayload(LedgerModel):
    """Everything a tabular or PDF renderer needs for the weekly report."""

    title: str
    organization: str
    period_label: str
    file_name: str
    generated_at: datetime = Field(default_factory=utcnow)
    summary: PeriodSummary
    summary_rows: list[list[str]] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    rows: list[ReportRow] = Field(default_factory=list)
