"""
Ledger Input Validation

Raw records arrive as JSON-shaped dictionaries: numbers may be strings,
keys may be camelCase or snake_case, fields may be missing. The validator
turns them into typed values or a list of issues.

Issues have two severities that matter:
- error: the write is refused (missing field, non-numeric amount, bad ID)
- warning: the write proceeds but the issue is reported

IMPORTANT: Validation NEVER silently fixes issues. A blank photo falls back
to the configured placeholder because that is the documented default, not
a correction.

Known gaps kept as explicit rules:
- Non-positive amounts are a warning unless LEDGER_STRICT_AMOUNTS is set,
  in which case they are an error.
- Whether a referenced member still exists is checked by the recorder, not
  here; payments can still be orphaned by a later member deletion.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import structlog

from src.config import LedgerSettings, get_settings
from src.models.validation import ValidationIssue, ValidationResult
from src.weeks import last_week_for


logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


class ValidationError(ValueError):
    """
    Input failed validation.

    Carries every issue found so the caller can correct all of them at once.
    """

    def __init__(self, entity_type: str, issues: list[ValidationIssue]):
        self.entity_type = entity_type
        self.issues = issues
        errors = [i.message for i in issues if i.severity == "error"]
        super().__init__(f"Invalid {entity_type}: {'; '.join(errors)}")

    @property
    def fields(self) -> list[str]:
        return [i.field for i in self.issues if i.severity == "error"]

    def to_dict(self) -> dict:
        return {
            "message": str(self),
            "issues": [issue.model_dump() for issue in self.issues],
        }


def _pick(data: dict, *names: str) -> Any:
    """First non-None value among the given keys."""
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def month_out_of_range(month: int) -> ValidationIssue:
    return ValidationIssue(
        field="month",
        issue_type="out_of_range",
        message=f"Month must be between 1 and 12, got {month}",
        severity="error",
    )


class LedgerValidator:
    """Validates raw member, payment, expense and donation input."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # ------------------------------------------------------------------
    # Field parsers. Each appends to `issues` and returns None on failure.
    # ------------------------------------------------------------------

    @staticmethod
    def _missing(field: str, label: str) -> ValidationIssue:
        return ValidationIssue(
            field=field,
            issue_type="missing",
            message=f"{label} is required",
            severity="error",
            suggested_fix=f"Provide a value for {field}",
        )

    def _parse_amount(
        self,
        value: Any,
        issues: list[ValidationIssue],
        field: str = "amount",
    ) -> Optional[Decimal]:
        if _is_blank(value):
            issues.append(self._missing(field, "Amount"))
            return None

        amount = None
        if not isinstance(value, bool):
            try:
                amount = Decimal(str(value).strip())
            except InvalidOperation:
                amount = None
        if amount is None or not amount.is_finite():
            issues.append(ValidationIssue(
                field=field,
                issue_type="not_numeric",
                message=f"Amount must be a number, got {value!r}",
                severity="error",
            ))
            return None

        try:
            quantized = amount.quantize(CENT)
        except InvalidOperation:
            quantized = None
        if quantized is None or quantized != amount:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_precise",
                message=f"Amount {amount} has more than two decimal places",
                severity="error",
                suggested_fix="Round the amount to the smallest currency unit",
            ))
            return None
        if amount.as_tuple().exponent < -2:
            amount = quantized

        if amount <= 0:
            issues.append(ValidationIssue(
                field=field,
                issue_type="non_positive",
                message=f"Amount should be greater than zero, got {amount}",
                severity="error" if self._settings.strict_amounts else "warning",
                suggested_fix="Check the amount was entered correctly",
            ))
        return amount

    @staticmethod
    def _parse_int(
        value: Any,
        issues: list[ValidationIssue],
        field: str,
        label: str,
    ) -> Optional[int]:
        if _is_blank(value):
            issues.append(LedgerValidator._missing(field, label))
            return None

        number = None
        if isinstance(value, bool):
            number = None
        elif isinstance(value, int):
            number = value
        elif isinstance(value, float):
            number = int(value) if value.is_integer() else None
        elif isinstance(value, (str, Decimal)):
            try:
                parsed = Decimal(str(value).strip())
                if parsed.is_finite() and parsed == parsed.to_integral_value():
                    number = int(parsed)
            except InvalidOperation:
                number = None

        if number is None:
            issues.append(ValidationIssue(
                field=field,
                issue_type="not_numeric",
                message=f"{label} must be a whole number, got {value!r}",
                severity="error",
            ))
        return number

    @staticmethod
    def _parse_uuid(
        value: Any,
        issues: list[ValidationIssue],
        field: str,
        label: str,
    ) -> Optional[UUID]:
        if _is_blank(value):
            issues.append(LedgerValidator._missing(field, label))
            return None
        if isinstance(value, UUID):
            return value
        try:
            return UUID(str(value).strip())
        except ValueError:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_id",
                message=f"{label} is not a valid identifier: {value!r}",
                severity="error",
            ))
            return None

    @staticmethod
    def _parse_text(
        value: Any,
        issues: list[ValidationIssue],
        field: str,
        label: str,
        max_length: int,
    ) -> Optional[str]:
        if _is_blank(value):
            issues.append(LedgerValidator._missing(field, label))
            return None
        text = str(value).strip()
        if len(text) > max_length:
            issues.append(ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{label} must be at most {max_length} characters",
                severity="error",
            ))
            return None
        return text

    @staticmethod
    def _parse_bool(
        value: Any,
        issues: list[ValidationIssue],
        field: str,
    ) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        issues.append(ValidationIssue(
            field=field,
            issue_type="not_boolean",
            message=f"{field} must be true or false, got {value!r}",
            severity="error",
        ))
        return None

    @staticmethod
    def _parse_timestamp(
        value: Any,
        issues: list[ValidationIssue],
        field: str,
    ) -> Optional[datetime]:
        """ISO-8601 timestamp, normalised to naive UTC."""
        if isinstance(value, datetime):
            moment = value
        else:
            try:
                moment = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
            except ValueError:
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="invalid_format",
                    message=f"{field} must be an ISO-8601 timestamp, got {value!r}",
                    severity="error",
                ))
                return None
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
        return moment

    def _finish(self, entity_type: str, issues: list[ValidationIssue], values: dict) -> ValidationResult:
        result = ValidationResult(
            entity_type=entity_type,
            issues=issues,
            values=values if not any(i.severity == "error" for i in issues) else {},
        )
        for issue in result.warnings:
            logger.warning(
                "validation_warning",
                entity_type=entity_type,
                field=issue.field,
                issue_type=issue.issue_type,
                message=issue.message,
            )
        return result

    # ------------------------------------------------------------------
    # Record validators
    # ------------------------------------------------------------------

    def validate_payment(self, data: dict) -> ValidationResult:
        """
        Validate a payment body.

        Accepts `member`, `memberId` or `member_id` for the member reference,
        `weekNumber` or `week_number` for the week.
        """
        issues: list[ValidationIssue] = []
        values = {
            "member_id": self._parse_uuid(
                _pick(data, "member", "memberId", "member_id"), issues, "memberId", "Member ID"
            ),
            "amount": self._parse_amount(_pick(data, "amount"), issues),
            "week_number": self._parse_int(
                _pick(data, "weekNumber", "week_number"), issues, "weekNumber", "Week number"
            ),
            "year": self._parse_int(_pick(data, "year"), issues, "year", "Year"),
        }

        self._check_week(values["week_number"], issues)
        self._check_year(values["year"], issues)

        return self._finish("payment", issues, values)

    def _check_week(self, week_number: Optional[int], issues: list[ValidationIssue]) -> None:
        if week_number is None:
            return
        last_week = last_week_for(self._settings.epoch_date)
        if not 1 <= week_number <= last_week:
            issues.append(ValidationIssue(
                field="weekNumber",
                issue_type="out_of_range",
                message=f"Week number must be between 1 and {last_week}, got {week_number}",
                severity="error",
            ))

    @staticmethod
    def _check_year(year: Optional[int], issues: list[ValidationIssue]) -> None:
        if year is not None and not 1000 <= year <= 9999:
            issues.append(ValidationIssue(
                field="year",
                issue_type="out_of_range",
                message=f"Year must have four digits, got {year}",
                severity="error",
            ))

    def validate_period(
        self,
        week_number: Any = None,
        year: Any = None,
        month: Any = None,
    ) -> ValidationResult:
        """
        Validate optional weekNumber/year/month query parameters.

        Absent parameters stay None in the values; present ones must parse
        and be in range.
        """
        issues: list[ValidationIssue] = []
        values: dict[str, Any] = {"week_number": None, "year": None, "month": None}

        if week_number is not None:
            values["week_number"] = self._parse_int(week_number, issues, "weekNumber", "Week number")
            self._check_week(values["week_number"], issues)
        if year is not None:
            values["year"] = self._parse_int(year, issues, "year", "Year")
            self._check_year(values["year"], issues)
        if month is not None:
            values["month"] = self._parse_int(month, issues, "month", "Month")
            if values["month"] is not None and not 1 <= values["month"] <= 12:
                issues.append(month_out_of_range(values["month"]))

        return self._finish("period", issues, values)

    def validate_member(self, data: dict, partial: bool = False) -> ValidationResult:
        """
        Validate a member body.

        With partial=True (updates) only the keys present are checked and
        returned; name and phone may be omitted but not blanked.
        """
        issues: list[ValidationIssue] = []
        values: dict[str, Any] = {}

        if not partial or "name" in data:
            values["name"] = self._parse_text(data.get("name"), issues, "name", "Name", 200)
        if not partial or "phone" in data:
            values["phone"] = self._parse_text(data.get("phone"), issues, "phone", "Phone", 30)

        if "photo" in data:
            photo = data.get("photo")
            values["photo"] = (
                self._settings.default_member_photo if _is_blank(photo) else str(photo).strip()
            )
        elif not partial:
            values["photo"] = self._settings.default_member_photo

        if "active" in data and data.get("active") is not None:
            values["active"] = self._parse_bool(data.get("active"), issues, "active")
        elif not partial:
            values["active"] = True

        return self._finish("member", issues, values)

    def validate_expense(self, data: dict) -> ValidationResult:
        issues: list[ValidationIssue] = []
        values: dict[str, Any] = {
            "description": self._parse_text(
                data.get("description"), issues, "description", "Description", 500
            ),
            "amount": self._parse_amount(_pick(data, "amount"), issues),
        }
        created_at = _pick(data, "createdAt", "created_at")
        if created_at is not None:
            values["created_at"] = self._parse_timestamp(created_at, issues, "createdAt")
        return self._finish("expense", issues, values)

    def validate_donation(self, data: dict) -> ValidationResult:
        issues: list[ValidationIssue] = []
        values: dict[str, Any] = {
            "donor_name": self._parse_text(
                _pick(data, "donorName", "donor_name"), issues, "donorName", "Donor name", 200
            ),
            "amount": self._parse_amount(_pick(data, "amount"), issues),
        }
        created_at = _pick(data, "createdAt", "created_at")
        if created_at is not None:
            values["created_at"] = self._parse_timestamp(created_at, issues, "createdAt")
        return self._finish("donation", issues, values)

    @staticmethod
    def require_valid(result: ValidationResult) -> dict[str, Any]:
        """Parsed values of a valid result; ValidationError otherwise."""
        if not result.is_valid:
            raise ValidationError(result.entity_type, result.issues)
        return result.values

    @staticmethod
    def get_user_friendly_summary(result: ValidationResult) -> str:
        """One line per issue, errors first."""
        if not result.issues:
            return f"The {result.entity_type} looks good."
        ordered = sorted(result.issues, key=lambda i: i.severity != "error")
        lines = []
        for issue in ordered:
            marker = "❌" if issue.severity == "error" else "⚠️"
            line = f"{marker} {issue.message}"
            if issue.suggested_fix:
                line += f" ({issue.suggested_fix})"
            lines.append(line)
        return "\n".join(lines)
