"""
RQ Jobs - settlement, merchant webhooks, reconciliation

Each job opens its own database session; RQ workers share nothing with the API process.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Dict, Iterator, Optional

from sqlalchemy.orm import Session

import paychain.models  # noqa: F401  (mappers must be configured in the worker process)
from paychain.infrastructure.database import SessionLocal
from paychain.infrastructure.redis_client import get_queue
from paychain.infrastructure.settings import get_settings
from paychain.services.exceptions import TransactionNotFoundError
from paychain.services.ledger import TransactionLedger
from paychain.services.reconciliation import reconcile_stale_transactions
from paychain.services.settlement import SandboxSettlementSimulator
from paychain.services.webhook_notifier import RQWebhookDispatcher, deliver_webhook

logger = logging.getLogger(__name__)


@contextmanager
def job_session() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _dispatcher() -> RQWebhookDispatcher:
    settings = get_settings()
    return RQWebhookDispatcher(get_queue(settings.WEBHOOK_QUEUE), max_retries=settings.WEBHOOK_MAX_RETRIES)


def _simulator(db: Session) -> SandboxSettlementSimulator:
    return SandboxSettlementSimulator(
        TransactionLedger(db),
        success_rate=get_settings().SANDBOX_SUCCESS_RATE,
        dispatcher=_dispatcher(),
    )


def settle_sandbox_transaction(transaction_id: str) -> Optional[str]:
    """
    Deferred sandbox settlement, enqueued by the charge orchestrator with enqueue_in.

    Returns the applied status, or None if the transaction was already resolved.
    """
    with job_session() as db:
        try:
            outcome = _simulator(db).settle(transaction_id)
        except TransactionNotFoundError:
            logger.warning("Sandbox settlement for unknown transaction", extra={"transaction_id": transaction_id})
            return None
        return outcome.value if outcome else None


def deliver_transaction_webhook(transaction_id: str) -> Optional[int]:
    """Merchant notification; WebhookDeliveryError propagates so RQ retries"""
    with job_session() as db:
        return deliver_webhook(db, transaction_id, timeout=get_settings().WEBHOOK_TIMEOUT_SECONDS)


def run_reconciliation(dry_run: bool = False) -> Dict[str, Any]:
    """Resolve transactions stuck in PENDING past PENDING_TIMEOUT_SECONDS"""
    settings = get_settings()
    with job_session() as db:
        return reconcile_stale_transactions(
            db,
            older_than=timedelta(seconds=settings.PENDING_TIMEOUT_SECONDS),
            simulator=_simulator(db),
            dispatcher=_dispatcher(),
            dry_run=dry_run,
        )
