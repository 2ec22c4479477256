"""
Shared fixtures.

Every test runs against the in-memory store with a week clock pinned to
15 June 2025 (week 3 when the epoch is 1 June 2025). No network access.
"""

from datetime import date

import pytest

from src.audit import AuditLogger
from src.config import LedgerSettings, Settings, get_settings
from src.ledger import CashBook, MemberRegistry, PaymentRecorder
from src.orchestrator import create_ledger_components
from src.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage
from src.validation import LedgerValidator
from src.weeks import DayOfYearWeekIndex, WeekClock


EPOCH = date(2025, 6, 1)
TODAY = date(2025, 6, 15)


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(_env_file=None, epoch_date=EPOCH)


@pytest.fixture
def strict_settings() -> LedgerSettings:
    return LedgerSettings(
        _env_file=None,
        epoch_date=EPOCH,
        strict_amounts=True,
        upsert_policy="strict",
    )


@pytest.fixture
def clock() -> WeekClock:
    return WeekClock(EPOCH, today=lambda: TODAY)


@pytest.fixture
def storage() -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def validator(ledger_settings) -> LedgerValidator:
    return LedgerValidator(ledger_settings)


@pytest.fixture
def recorder(storage, audit_logger, validator, ledger_settings) -> PaymentRecorder:
    return PaymentRecorder(storage, audit_logger, validator, ledger_settings)


@pytest.fixture
def registry(storage, audit_logger, validator, ledger_settings) -> MemberRegistry:
    return MemberRegistry(storage, audit_logger, validator, ledger_settings)


@pytest.fixture
def cashbook(storage, audit_logger, validator, ledger_settings) -> CashBook:
    return CashBook(storage, audit_logger, validator, ledger_settings)


@pytest.fixture
def expense_index() -> DayOfYearWeekIndex:
    return DayOfYearWeekIndex()


@pytest.fixture
def env_settings(monkeypatch) -> Settings:
    """Settings loaded from a controlled environment."""
    monkeypatch.setenv("LEDGER_EPOCH_DATE", EPOCH.isoformat())
    monkeypatch.setenv("LEDGER_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("LEDGER_ORGANIZATION_NAME", "Dues Ledger")
    monkeypatch.delenv("LEDGER_UPSERT_POLICY", raising=False)
    monkeypatch.delenv("LEDGER_STRICT_AMOUNTS", raising=False)
    monkeypatch.delenv("LEDGER_EXPENSE_WEEK_SCHEME", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def service(env_settings, storage, audit_storage):
    return create_ledger_components(
        settings=env_settings,
        storage=storage,
        audit_storage=audit_storage,
        today=lambda: TODAY,
    )
