"""
Tests for the transaction ledger - creation, guarded settlement, escrow transitions
"""

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from paychain.core.accounts.models import OperatingMode
from paychain.core.common.base_model import utcnow
from paychain.core.transactions.models import PaymentRail, Transaction, TransactionStatus
from paychain.infrastructure.database import Base
from paychain.services.exceptions import InvalidTransitionError, TransactionNotFoundError
from paychain.services.ledger import (
    DuplicateExternalRefError,
    NewTransaction,
    TransactionLedger,
    assert_transition,
    generate_transaction_id,
)

from conftest import make_account


def new_transaction(account_id, external_ref=None, amount=10000, mode=OperatingMode.SANDBOX) -> NewTransaction:
    return NewTransaction(
        account_id=account_id,
        amount=amount,
        currency="KES",
        phone="254712345678",
        payment_method=PaymentRail.MPESA,
        mode=mode,
        fee_amount=2250,
        fee_rate=Decimal("0.025"),
        external_ref=external_ref,
        metadata={"ip": "unknown"},
    )


@pytest.fixture
def ledger(db_session):
    return TransactionLedger(db_session)


@pytest.fixture
def pending(ledger, sandbox_account) -> Transaction:
    return ledger.create(new_transaction(sandbox_account.id))


class TestCreate:
    def test_transaction_id_format(self):
        assert re.fullmatch(r"txn_[0-9a-f]{24}", generate_transaction_id())

    def test_creates_pending_without_completed_at(self, pending):
        assert pending.status == TransactionStatus.PENDING
        assert pending.completed_at is None
        assert pending.provider_ref is None
        assert pending.fee_amount == 2250
        assert pending.mode == "sandbox"

    def test_duplicate_external_ref_rejected(self, ledger, sandbox_account):
        ledger.create(new_transaction(sandbox_account.id, external_ref="order-1"))
        with pytest.raises(DuplicateExternalRefError):
            ledger.create(new_transaction(sandbox_account.id, external_ref="order-1"))

    def test_external_ref_scoped_per_account(self, db_session, ledger, sandbox_account):
        other = make_account(db_session, "other@example.com")
        ledger.create(new_transaction(sandbox_account.id, external_ref="order-1"))
        created = ledger.create(new_transaction(other.id, external_ref="order-1"))
        assert created.account_id == other.id

    def test_external_ref_scoped_per_mode(self, ledger, sandbox_account):
        sandbox = ledger.create(new_transaction(sandbox_account.id, external_ref="order-1"))
        live = ledger.create(new_transaction(sandbox_account.id, external_ref="order-1", mode=OperatingMode.LIVE))
        assert live.id != sandbox.id
        assert live.mode == "live"

        assert ledger.find_by_external_ref(sandbox_account.id, OperatingMode.SANDBOX, "order-1").id == sandbox.id
        assert ledger.find_by_external_ref(sandbox_account.id, OperatingMode.LIVE, "order-1").id == live.id
        assert ledger.find_by_external_ref(sandbox_account.id, OperatingMode.LIVE, "order-2") is None

    def test_get_scoped_to_account(self, db_session, ledger, pending):
        other = make_account(db_session, "other@example.com")
        assert ledger.get(pending.id, account_id=pending.account_id) is not None
        assert ledger.get(pending.id, account_id=other.id) is None


class TestResolve:
    def test_success_sets_provider_ref_and_completed_at(self, db_session, ledger, pending):
        assert ledger.resolve(pending.id, status=TransactionStatus.SUCCESS, provider_ref="SANDBOX_1")

        db_session.expire_all()
        settled = ledger.get(pending.id)
        assert settled.status == TransactionStatus.SUCCESS
        assert settled.provider_ref == "SANDBOX_1"
        assert settled.completed_at is not None

    def test_failed_never_carries_provider_ref(self, db_session, ledger, pending):
        ledger.resolve(
            pending.id,
            status=TransactionStatus.FAILED,
            provider_ref="IGNORED",
            metadata_updates={"failure_reason": "insufficient_funds"},
        )

        db_session.expire_all()
        settled = ledger.get(pending.id)
        assert settled.status == TransactionStatus.FAILED
        assert settled.provider_ref is None
        assert settled.meta["failure_reason"] == "insufficient_funds"
        assert settled.meta["ip"] == "unknown"

    def test_second_resolution_is_noop(self, db_session, ledger, pending):
        assert ledger.resolve(pending.id, status=TransactionStatus.SUCCESS, provider_ref="REF_A") is True
        assert ledger.resolve(pending.id, status=TransactionStatus.FAILED) is False

        db_session.expire_all()
        settled = ledger.get(pending.id)
        assert settled.status == TransactionStatus.SUCCESS
        assert settled.provider_ref == "REF_A"

    def test_non_settlement_outcome_rejected(self, ledger, pending):
        with pytest.raises(ValueError):
            ledger.resolve(pending.id, status=TransactionStatus.HELD)

    def test_unknown_transaction(self, ledger, sandbox_account):
        with pytest.raises(TransactionNotFoundError):
            ledger.resolve("txn_doesnotexist", status=TransactionStatus.SUCCESS)


class TestEscrowTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (TransactionStatus.PENDING, TransactionStatus.HELD),
            (TransactionStatus.FAILED, TransactionStatus.SUCCESS),
            (TransactionStatus.RELEASED, TransactionStatus.REFUNDED),
            (TransactionStatus.REFUNDED, TransactionStatus.HELD),
            (TransactionStatus.SUCCESS, TransactionStatus.PENDING),
        ],
    )
    def test_illegal_transitions(self, current, target):
        with pytest.raises(InvalidTransitionError):
            assert_transition(current, target)

    def test_hold_then_release(self, db_session, ledger, pending):
        ledger.resolve(pending.id, status=TransactionStatus.SUCCESS, provider_ref="REF")

        assert ledger.transition(pending.id, from_status=TransactionStatus.SUCCESS, to_status=TransactionStatus.HELD)
        db_session.expire_all()
        held = ledger.get(pending.id)
        assert held.status == TransactionStatus.HELD
        assert held.completed_at is None

        assert ledger.transition(pending.id, from_status=TransactionStatus.HELD, to_status=TransactionStatus.RELEASED)
        db_session.expire_all()
        released = ledger.get(pending.id)
        assert released.status == TransactionStatus.RELEASED
        assert released.completed_at is not None

    def test_transition_from_stale_status_is_noop(self, ledger, pending):
        ledger.resolve(pending.id, status=TransactionStatus.SUCCESS, provider_ref="REF")
        assert ledger.transition(pending.id, from_status=TransactionStatus.SUCCESS, to_status=TransactionStatus.REFUNDED)
        assert not ledger.transition(pending.id, from_status=TransactionStatus.SUCCESS, to_status=TransactionStatus.HELD)


class TestStalePending:
    def test_lists_only_old_pending(self, db_session, ledger, sandbox_account):
        old = ledger.create(new_transaction(sandbox_account.id))
        fresh = ledger.create(new_transaction(sandbox_account.id))
        settled = ledger.create(new_transaction(sandbox_account.id))

        old.created_at = utcnow() - timedelta(hours=1)
        settled.created_at = utcnow() - timedelta(hours=1)
        db_session.commit()
        ledger.resolve(settled.id, status=TransactionStatus.FAILED)

        stale_ids = [t.id for t in ledger.list_stale_pending(timedelta(minutes=15))]
        assert stale_ids == [old.id]
        assert fresh.id not in stale_ids


def test_concurrent_resolution_has_single_winner(tmp_path):
    """Racing settlements on separate connections: exactly one UPDATE applies"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False)

    with Session() as setup:
        account = make_account(setup, "race@example.com")
        transaction_id = TransactionLedger(setup).create(new_transaction(account.id)).id

    workers = 8
    barrier = threading.Barrier(workers)

    def settle(index: int) -> bool:
        outcome = TransactionStatus.SUCCESS if index % 2 == 0 else TransactionStatus.FAILED
        with Session() as db:
            barrier.wait()
            return TransactionLedger(db).resolve(transaction_id, status=outcome, provider_ref=f"REF_{index}")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(settle, range(workers)))

    assert results.count(True) == 1

    with Session() as check:
        final = TransactionLedger(check).get(transaction_id)
        assert final.status in (TransactionStatus.SUCCESS, TransactionStatus.FAILED)
        assert final.completed_at is not None

    engine.dispose()
