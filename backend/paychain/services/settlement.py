"""
Settlement strategies

A PENDING transaction is resolved out-of-band by one of two strategies:
- sandbox: SandboxSettlementSimulator, run as a delayed RQ job
- live: a LiveSettlementAdapter hands the charge to the provider; the provider's
  signed callback later resolves it

Both funnel into settle_transaction(), which performs the ledger's PENDING-guarded
update and notifies the merchant only when this call won the resolution.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Optional

from redis import RedisError
from rq import Queue
from rq.job import Job

from paychain.core.transactions.models import Transaction, TransactionStatus
from paychain.services.ledger import TransactionLedger
from paychain.utils.metrics import record_settlement, record_settlement_noop

logger = logging.getLogger(__name__)

SOURCE_SANDBOX = "sandbox_simulator"
SOURCE_PROVIDER_CALLBACK = "provider_callback"
SOURCE_RECONCILIATION = "reconciliation"

SANDBOX_SETTLEMENT_JOB = "paychain.workers.jobs.settle_sandbox_transaction"


class WebhookDispatcher(ABC):
    """Schedules merchant notification for a resolved transaction"""

    @abstractmethod
    def transaction_resolved(self, transaction_id: str) -> None:
        ...


def settle_transaction(
    ledger: TransactionLedger,
    transaction_id: str,
    *,
    status: TransactionStatus,
    source: str,
    provider_ref: Optional[str] = None,
    metadata_updates: Optional[Dict[str, Any]] = None,
    dispatcher: Optional[WebhookDispatcher] = None,
) -> bool:
    """
    Resolve a PENDING transaction once.

    Returns True if this call resolved it; False if it was already terminal.
    """
    won = ledger.resolve(
        transaction_id,
        status=status,
        provider_ref=provider_ref,
        metadata_updates=metadata_updates,
    )
    if not won:
        record_settlement_noop(source)
        return False

    record_settlement(status.value, source)
    if dispatcher is not None:
        try:
            dispatcher.transaction_resolved(transaction_id)
        except RedisError:
            # Settlement is already committed; the merchant can still poll the status
            logger.error(
                "Webhook dispatch failed",
                extra={"transaction_id": transaction_id},
                exc_info=True,
            )
    return True


class SandboxSettlementSimulator:
    """
    Synthetic settlement for sandbox charges.

    Resolves to SUCCESS with probability success_rate, FAILED otherwise.
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        success_rate: float,
        rng: Optional[random.Random] = None,
        dispatcher: Optional[WebhookDispatcher] = None,
    ):
        self.ledger = ledger
        self.success_rate = success_rate
        self.rng = rng or random.Random()
        self.dispatcher = dispatcher

    def roll(self) -> TransactionStatus:
        if self.rng.random() < self.success_rate:
            return TransactionStatus.SUCCESS
        return TransactionStatus.FAILED

    def settle(self, transaction_id: str, source: str = SOURCE_SANDBOX) -> Optional[TransactionStatus]:
        """
        Resolve one sandbox transaction.

        Returns the applied outcome, or None if the transaction had already left PENDING.
        """
        outcome = self.roll()
        provider_ref = None
        if outcome == TransactionStatus.SUCCESS:
            provider_ref = f"SANDBOX_{int(time.time() * 1000)}"

        won = settle_transaction(
            self.ledger,
            transaction_id,
            status=outcome,
            source=source,
            provider_ref=provider_ref,
            metadata_updates={"sandbox_simulated": True},
            dispatcher=self.dispatcher,
        )
        if not won:
            return None

        logger.info(
            "Sandbox settlement simulated",
            extra={"transaction_id": transaction_id, "status": outcome.value, "source": source},
        )
        return outcome


class ScheduledSettlement:
    """Handle on a deferred settlement; cancelling prevents the job from running"""

    def __init__(self, transaction_id: str, job: Optional[Job] = None):
        self.transaction_id = transaction_id
        self.job = job

    @property
    def job_id(self) -> Optional[str]:
        return self.job.id if self.job is not None else None

    def cancel(self) -> None:
        if self.job is not None:
            self.job.cancel()
            logger.info("Scheduled settlement cancelled", extra={"transaction_id": self.transaction_id})


class SettlementScheduler(ABC):
    """Defers sandbox settlement off the request path"""

    @abstractmethod
    def schedule_sandbox_settlement(self, transaction_id: str, delay_seconds: int) -> ScheduledSettlement:
        ...


class RQSettlementScheduler(SettlementScheduler):
    """
    Timer-driven scheduling on RQ.

    Jobs are enqueued with enqueue_in; workers must run with the RQ scheduler enabled.
    """

    def __init__(self, queue: Queue):
        self.queue = queue

    def schedule_sandbox_settlement(self, transaction_id: str, delay_seconds: int) -> ScheduledSettlement:
        job = self.queue.enqueue_in(
            timedelta(seconds=delay_seconds),
            SANDBOX_SETTLEMENT_JOB,
            transaction_id,
            job_id=f"settle-{transaction_id}",
        )
        logger.info(
            "Sandbox settlement scheduled",
            extra={"transaction_id": transaction_id, "delay_seconds": delay_seconds, "job_id": job.id},
        )
        return ScheduledSettlement(transaction_id, job)


class LiveSettlementAdapter(ABC):
    """
    Hands a live charge to the external mobile-money network.

    Implementations must not resolve the transaction themselves; resolution
    arrives through the provider callback and settle_transaction().
    """

    @abstractmethod
    def initiate(self, transaction: Transaction) -> None:
        ...


class CallbackSettlementAdapter(LiveSettlementAdapter):
    """
    Live adapter that waits for the provider's signed callback.

    The STK push request to the network itself is not sent from here; transactions
    that never receive a callback are failed by the reconciliation sweep.
    """

    def initiate(self, transaction: Transaction) -> None:
        logger.info(
            "Live settlement awaiting provider callback",
            extra={
                "transaction_id": transaction.id,
                "payment_method": transaction.payment_method.value,
                "amount": transaction.amount,
            },
        )
