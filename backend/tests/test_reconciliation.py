"""
Tests for the reconciliation sweep over stale PENDING transactions
"""

import random
from datetime import timedelta
from decimal import Decimal

import pytest

from paychain.core.accounts.models import OperatingMode
from paychain.core.common.base_model import utcnow
from paychain.core.transactions.models import PaymentRail, TransactionStatus
from paychain.services.ledger import NewTransaction, TransactionLedger
from paychain.services.reconciliation import SETTLEMENT_TIMEOUT_REASON, reconcile_stale_transactions
from paychain.services.settlement import SandboxSettlementSimulator
from paychain.workers import jobs

from conftest import RecordingDispatcher

STALE_AFTER = timedelta(minutes=15)


@pytest.fixture
def ledger(db_session):
    return TransactionLedger(db_session)


def create(ledger, account, mode, age=timedelta(hours=1)) -> str:
    transaction = ledger.create(
        NewTransaction(
            account_id=account.id,
            amount=10000,
            currency="KES",
            phone="254712345678",
            payment_method=PaymentRail.MPESA,
            fee_amount=2250,
            fee_rate=Decimal("0.025"),
            mode=OperatingMode(mode),
        )
    )
    transaction.created_at = utcnow() - age
    ledger.db.commit()
    return transaction.id


def test_sweep_resolves_stale_transactions(db_session, ledger, sandbox_account, live_account):
    account, _ = live_account
    sandbox_id = create(ledger, sandbox_account, "sandbox")
    live_id = create(ledger, account, "live")
    fresh_id = create(ledger, account, "live", age=timedelta(seconds=5))
    dispatcher = RecordingDispatcher()
    simulator = SandboxSettlementSimulator(ledger, success_rate=1.0, rng=random.Random(1), dispatcher=dispatcher)

    summary = reconcile_stale_transactions(db_session, STALE_AFTER, simulator, dispatcher=dispatcher)

    assert summary["scanned"] == 2
    assert summary["sandbox_settled"] == 1
    assert summary["live_timed_out"] == 1
    assert summary["skipped"] == 0
    assert set(summary["transaction_ids"]) == {sandbox_id, live_id}

    db_session.expire_all()
    sandbox_tx = ledger.get(sandbox_id)
    assert sandbox_tx.status == TransactionStatus.SUCCESS
    assert sandbox_tx.meta["sandbox_simulated"] is True

    live_tx = ledger.get(live_id)
    assert live_tx.status == TransactionStatus.FAILED
    assert live_tx.meta["failure_reason"] == SETTLEMENT_TIMEOUT_REASON
    assert live_tx.completed_at is not None

    assert ledger.get(fresh_id).status == TransactionStatus.PENDING
    assert sorted(dispatcher.resolved) == sorted([sandbox_id, live_id])


def test_dry_run_changes_nothing(db_session, ledger, sandbox_account):
    transaction_id = create(ledger, sandbox_account, "sandbox")
    simulator = SandboxSettlementSimulator(ledger, success_rate=1.0)

    summary = reconcile_stale_transactions(db_session, STALE_AFTER, simulator, dry_run=True)

    assert summary["dry_run"] is True
    assert summary["transaction_ids"] == [transaction_id]
    assert summary["sandbox_settled"] == 0
    db_session.expire_all()
    assert ledger.get(transaction_id).status == TransactionStatus.PENDING


def test_sweep_is_idempotent(db_session, ledger, sandbox_account):
    create(ledger, sandbox_account, "sandbox")
    simulator = SandboxSettlementSimulator(ledger, success_rate=0.0)

    reconcile_stale_transactions(db_session, STALE_AFTER, simulator)
    second = reconcile_stale_transactions(db_session, STALE_AFTER, simulator)

    assert second["scanned"] == 0


def test_reconciliation_job(db_session, ledger, live_account, monkeypatch):
    account, _ = live_account
    transaction_id = create(ledger, account, "live")
    monkeypatch.setattr(jobs, "_dispatcher", lambda: RecordingDispatcher())

    summary = jobs.run_reconciliation()

    assert summary["live_timed_out"] == 1
    db_session.expire_all()
    assert ledger.get(transaction_id).status == TransactionStatus.FAILED
