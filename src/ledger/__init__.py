"""Ledger write paths: members, payments, expenses and donations."""

from src.ledger.cashbook import CashBook
from src.ledger.members import MemberRegistry
from src.ledger.recorder import PaymentRecorder

__all__ = ["CashBook", "MemberRegistry", "PaymentRecorder"]
