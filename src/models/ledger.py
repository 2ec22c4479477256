"""
Core Ledger Models

These models define the strict schemas for the four stored record types:
Member, Payment, Expense and Donation.

They are designed to:
1. Enforce type safety at runtime
2. Serialize to the camelCase JSON shapes the web layer exchanges
3. Keep amounts as Decimal internally and plain numbers on the wire

DESIGN DECISION: No record carries its own aggregates. Totals, counts and
"has this member paid" flags are always recomputed from the stored rows.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, NamedTuple, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

from src.config.settings import DEFAULT_MEMBER_PHOTO


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def amount_to_number(value: Decimal) -> Union[int, float]:
    """Render a Decimal amount as a JSON number, int when integral."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


Amount = Annotated[
    Decimal,
    PlainSerializer(amount_to_number, when_used="json"),
]


class LedgerModel(BaseModel):
    """Base model: whitespace stripped, camelCase aliases on the wire."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict:
        """JSON-ready dictionary with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# STORED RECORDS
# =============================================================================

class Member(LedgerModel):
    """
    A dues-paying member.

    The id never changes after creation. Everything else is admin-mutable.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique member ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    phone: str = Field(
        ...,
        min_length=1,
        max_length=30,
        description="Contact phone number"
    )
    photo: str = Field(
        default=DEFAULT_MEMBER_PHOTO,
        description="Photo URI"
    )
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public_view(self) -> dict:
        """Projection shown to anonymous visitors (no phone number)."""
        return {
            "id": str(self.id),
            "name": self.name,
            "photo": self.photo,
            "active": self.active,
        }


class PaymentKey(NamedTuple):
    """The (member, week, year) triple that is unique among payments."""
    member_id: UUID
    week_number: int
    year: int


class Payment(LedgerModel):
    """
    A member's dues payment for one week.

    CRITICAL: At most one Payment exists per PaymentKey. The store enforces
    this; recording a second payment for the same key replaces the first.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique payment ID"
    )
    member_id: UUID = Field(
        ...,
        description="Member this payment belongs to"
    )
    amount: Amount = Field(
        ...,
        decimal_places=2,
        description="Amount paid"
    )
    week_number: int = Field(
        ...,
        ge=1,
        description="Epoch-anchored week index"
    )
    year: int = Field(
        ...,
        ge=1000,
        le=9999,
        description="Calendar year the week is filed under"
    )
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> PaymentKey:
        return PaymentKey(self.member_id, self.week_number, self.year)


class Expense(LedgerModel):
    """An expense. created_at doubles as the date it is attributed to."""

    id: UUID = Field(default_factory=uuid4)
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    amount: Amount = Field(..., decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)


class Donation(LedgerModel):
    """A donation. Donations cannot be deleted."""

    id: UUID = Field(default_factory=uuid4)
    donor_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Amount = Field(..., decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow)


class PaymentUpsert(NamedTuple):
    """Outcome of a payment upsert: the stored payment and the one it replaced."""
    payment: Payment
    replaced: Optional[Payment]
