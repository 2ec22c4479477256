"""
Tests for the Dues Ledger models

Test strategy:
1. Unit tests for individual components (models, validators, clock)
2. Integration tests for flows against the in-memory store
3. No real API calls in tests (Google Sheets is faked)
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from src.config import DEFAULT_MEMBER_PHOTO
from src.models.ledger import Donation, Expense, Member, Payment, PaymentKey
from src.models.report import PeriodSummary, WeekRange, WeekSummary, WeeklyAnalysis
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.validation import ValidationIssue, ValidationResult


class TestLedgerModels:
    """Tests for the stored record models."""

    def test_member_defaults(self):
        """Test Member gets an id, placeholder photo and active flag."""
        member = Member(name="Arun", phone="9876543210")
        assert member.id is not None
        assert member.photo == DEFAULT_MEMBER_PHOTO
        assert member.active is True
        assert member.created_at <= member.updated_at

    def test_member_strips_whitespace(self):
        """Test that whitespace is stripped from member name."""
        member = Member(name="  Arun  ", phone=" 98765 ")
        assert member.name == "Arun"
        assert member.phone == "98765"

    def test_member_requires_name(self):
        """Test that an empty name is rejected."""
        with pytest.raises(ValueError):
            Member(name="", phone="9876543210")

    def test_member_public_view_hides_phone(self):
        """Test the anonymous projection never contains the phone number."""
        member = Member(name="Arun", phone="9876543210")
        view = member.public_view()
        assert "phone" not in view
        assert view["name"] == "Arun"
        assert view["id"] == str(member.id)

    def test_member_to_dict_uses_camel_case(self):
        """Test the wire shape uses camelCase keys."""
        data = Member(name="Arun", phone="1").to_dict()
        assert "createdAt" in data
        assert "updatedAt" in data
        assert "created_at" not in data

    def test_payment_key(self):
        """Test a payment exposes its (member, week, year) key."""
        member_id = uuid4()
        payment = Payment(member_id=member_id, amount=Decimal("20"), week_number=3, year=2025)
        assert payment.key == PaymentKey(member_id, 3, 2025)

    def test_payment_rejects_week_zero(self):
        """Test that week numbers start at 1."""
        with pytest.raises(ValueError):
            Payment(member_id=uuid4(), amount=Decimal("20"), week_number=0, year=2025)

    def test_payment_rejects_short_year(self):
        """Test that the year must have four digits."""
        with pytest.raises(ValueError):
            Payment(member_id=uuid4(), amount=Decimal("20"), week_number=1, year=25)

    def test_payment_accepts_camel_case_input(self):
        """Test that camelCase keys populate the model."""
        payment = Payment(memberId=uuid4(), amount=Decimal("20"), weekNumber=2, year=2025)
        assert payment.week_number == 2

    def test_amounts_serialize_as_numbers(self):
        """Test whole amounts become ints and fractional ones floats."""
        whole = Payment(member_id=uuid4(), amount=Decimal("20"), week_number=1, year=2025)
        fractional = Expense(description="Tape", amount=Decimal("12.50"))
        assert whole.to_dict()["amount"] == 20
        assert fractional.to_dict()["amount"] == 12.5

    def test_donation_creation(self):
        """Test Donation model creation."""
        donation = Donation(donor_name="Well Wisher", amount=Decimal("500"))
        assert donation.to_dict()["donorName"] == "Well Wisher"


class TestReportModels:
    """Tests for derived read models."""

    def test_week_range_contains(self):
        """Test WeekRange bounds are inclusive."""
        week = WeekRange(week_number=1, start=date(2025, 6, 1), end=date(2025, 6, 7))
        assert week.contains(date(2025, 6, 1))
        assert week.contains(date(2025, 6, 7))
        assert not week.contains(date(2025, 6, 8))

    def test_week_summary_to_dict(self):
        """Test WeekSummary serializes with camelCase keys."""
        data = WeekSummary(
            week_number=3,
            total_collected=Decimal("50"),
            members_paid=2,
            expenses=Decimal("10"),
            net_amount=Decimal("40"),
        ).to_dict()
        assert data == {
            "weekNumber": 3,
            "totalCollected": 50,
            "membersPaid": 2,
            "expenses": 10,
            "netAmount": 40,
        }

    def test_weekly_analysis_rejects_month_13(self):
        """Test months are 1-based and bounded."""
        with pytest.raises(ValueError):
            WeeklyAnalysis(year=2025, month=13)

    def test_empty_period_summary_defaults(self):
        """Test an empty PeriodSummary is all zeros."""
        summary = PeriodSummary()
        assert summary.average_weekly_collection == Decimal("0")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.MEMBER_CREATED,
            description="Member created",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            description="Payment recorded",
            details={"amount": "20"},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "payment_recorded"
        assert log_dict["details"] == {"amount": "20"}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to spreadsheet row."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_RECORDED,
            description="Expense recorded",
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "expense_recorded"
        assert row[10] == "False"

    def test_payment_recorded_builder(self):
        """Test the builder emits PAYMENT_RECORDED for a new payment."""
        event = AuditEventBuilder.payment_recorded(
            payment_id=uuid4(),
            member_id=uuid4(),
            week_number=1,
            year=2025,
            amount="20",
        )
        assert event.event_type == AuditEventType.PAYMENT_RECORDED
        assert "replaced_payment_id" not in event.details

    def test_payment_replaced_builder(self):
        """Test the builder emits PAYMENT_REPLACED when a payment was replaced."""
        replaced_id = uuid4()
        event = AuditEventBuilder.payment_recorded(
            payment_id=uuid4(),
            member_id=uuid4(),
            week_number=1,
            year=2025,
            amount="25",
            replaced_payment_id=replaced_id,
            replaced_amount="20",
        )
        assert event.event_type == AuditEventType.PAYMENT_REPLACED
        assert event.details["replaced_payment_id"] == str(replaced_id)
        assert event.details["replaced_amount"] == "20"

    def test_member_deleted_with_orphans_is_warning(self):
        """Test deleting a member with payments is flagged."""
        event = AuditEventBuilder.member_deleted(uuid4(), "Arun", orphaned_payments=2)
        assert event.severity == AuditSeverity.WARNING
        assert event.details["orphaned_payments"] == 2


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            entity_type="payment",
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="missing",
                    message="Amount is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors
        assert not result.is_valid
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            entity_type="payment",
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="non_positive",
                    message="Amount should be greater than zero",
                    severity="warning",
                ),
            ],
        )
        assert not result.has_errors
        assert result.is_valid
        assert len(result.warnings) == 1
