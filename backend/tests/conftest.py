"""
Pytest configuration and fixtures

Tests run against in-memory SQLite (StaticPool) with the RQ-backed collaborators
(settlement scheduler, webhook dispatcher, live adapter) replaced by recording fakes.
"""

import os
import time
from typing import List, Optional, Tuple

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Set test environment variables before importing app
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-jwt-secret-min-32-chars-for-testing-only"
os.environ["SETTLEMENT_CALLBACK_SECRET"] = "test-settlement-callback-secret"
os.environ["METRICS_TOKEN"] = "test-metrics-token"

from paychain.infrastructure.database import Base, SessionLocal, engine, get_db  # noqa: E402
from paychain.main import app  # noqa: E402
from paychain.api.dependencies import (  # noqa: E402
    get_live_settlement_adapter,
    get_settlement_scheduler,
    get_webhook_dispatcher,
)
from paychain.core.accounts.models import Account, AccountStatus  # noqa: E402
from paychain.core.transactions.models import Transaction  # noqa: E402
from paychain.infrastructure.settings import get_settings  # noqa: E402
from paychain.services.credentials import fingerprint_credential, generate_sandbox_key, issue_live_key  # noqa: E402
from paychain.services.settlement import (  # noqa: E402
    LiveSettlementAdapter,
    ScheduledSettlement,
    SettlementScheduler,
    WebhookDispatcher,
)

CALLBACK_SECRET = os.environ["SETTLEMENT_CALLBACK_SECRET"]


class RecordingScheduler(SettlementScheduler):
    """Records sandbox settlements instead of enqueuing them"""

    def __init__(self):
        self.scheduled: List[Tuple[str, int]] = []

    def schedule_sandbox_settlement(self, transaction_id: str, delay_seconds: int) -> ScheduledSettlement:
        self.scheduled.append((transaction_id, delay_seconds))
        return ScheduledSettlement(transaction_id)


class RecordingDispatcher(WebhookDispatcher):
    def __init__(self):
        self.resolved: List[str] = []

    def transaction_resolved(self, transaction_id: str) -> None:
        self.resolved.append(transaction_id)


class RecordingLiveAdapter(LiveSettlementAdapter):
    def __init__(self):
        self.initiated: List[str] = []

    def initiate(self, transaction: Transaction) -> None:
        self.initiated.append(transaction.id)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Fresh schema per test. Worker jobs open their own SessionLocal sessions on the
    same in-memory database.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def live_adapter() -> RecordingLiveAdapter:
    return RecordingLiveAdapter()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture(scope="function")
def client(db_session: Session, scheduler, dispatcher, live_adapter):
    """FastAPI test client with the database and RQ collaborators overridden"""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settlement_scheduler] = lambda: scheduler
    app.dependency_overrides[get_webhook_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_live_settlement_adapter] = lambda: live_adapter

    yield TestClient(app)

    app.dependency_overrides.clear()


def make_account(
    db: Session,
    email: str,
    status: AccountStatus = AccountStatus.EMAIL_VERIFIED,
    business_name: str = "Test Merchant",
) -> Account:
    account = Account(
        business_name=business_name,
        email=email,
        status=status,
        sandbox_api_key=generate_sandbox_key(),
    )
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def sandbox_account(db_session: Session) -> Account:
    """Unverified-for-live merchant holding only a sandbox key"""
    return make_account(db_session, "sandbox@example.com")


@pytest.fixture
def live_account(db_session: Session) -> Tuple[Account, str]:
    """APPROVED merchant with an issued live key; returns (account, plaintext key)"""
    account = make_account(db_session, "live@example.com", status=AccountStatus.APPROVED)
    live_key = issue_live_key(db_session, account)
    return account, live_key


@pytest.fixture
def pending_live_account(db_session: Session) -> Tuple[Account, str]:
    """
    Merchant whose KYC is under review but who still holds a live key
    (e.g. compliance was reopened after issuance).
    """
    account = make_account(db_session, "pending@example.com", status=AccountStatus.PENDING)
    live_key = "sk_live_kzh_" + "ab" * 16
    account.live_key_hash = fingerprint_credential(live_key)
    account.live_key_last_four = live_key[-4:]
    db_session.commit()
    return account, live_key


def make_admin_token(
    roles: List[str],
    subject: str = "operator-1",
    expires_in: int = 3600,
    secret: Optional[str] = None,
) -> str:
    now = int(time.time())
    return jwt.encode(
        {"sub": subject, "roles": roles, "iat": now, "exp": now + expires_in},
        secret or os.environ["JWT_SECRET"],
        algorithm="HS256",
    )


def admin_headers(*roles: str) -> dict:
    return {"Authorization": f"Bearer {make_admin_token(list(roles))}"}


def count_transactions(db: Session) -> int:
    return db.query(Transaction).count()
