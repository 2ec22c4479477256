"""Input validation package."""

from src.validation.validator import LedgerValidator, ValidationError

__all__ = ["LedgerValidator", "ValidationError"]
