"""
Webhook Notifier - pushes terminal transaction events to the merchant's endpoint
"""

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx
from rq import Queue, Retry
from sqlalchemy.orm import Session

from paychain.core.accounts.models import Account
from paychain.core.transactions.models import Transaction, TransactionStatus
from paychain.services.ledger import TransactionLedger
from paychain.services.settlement import WebhookDispatcher
from paychain.utils.metrics import record_webhook_delivery
from paychain.utils.webhook_security import compute_hmac_signature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-PayChain-Signature"
TIMESTAMP_HEADER = "X-PayChain-Timestamp"
EVENT_HEADER = "X-PayChain-Event"

WEBHOOK_DELIVERY_JOB = "paychain.workers.jobs.deliver_transaction_webhook"

EVENT_TYPES = {
    TransactionStatus.SUCCESS: "transaction.succeeded",
    TransactionStatus.FAILED: "transaction.failed",
    TransactionStatus.HELD: "transaction.held",
    TransactionStatus.RELEASED: "transaction.released",
    TransactionStatus.REFUNDED: "transaction.refunded",
}


class WebhookDeliveryError(Exception):
    """Raised when the merchant endpoint did not acknowledge the event (RQ retries)"""

    def __init__(self, transaction_id: str, message: str):
        self.transaction_id = transaction_id
        self.message = message
        super().__init__(f"Webhook delivery failed for {transaction_id}: {message}")


def build_event(transaction: Transaction) -> Dict[str, Any]:
    return {
        "type": EVENT_TYPES.get(transaction.status, "transaction.updated"),
        "data": {
            "transaction_id": transaction.id,
            "status": transaction.status.value,
            "amount": transaction.amount,
            "currency": transaction.currency,
            "fee": transaction.fee_amount,
            "phone": transaction.phone,
            "payment_method": transaction.payment_method.value,
            "external_ref": transaction.external_ref,
            "provider_ref": transaction.provider_ref,
            "mode": transaction.mode,
            "completed_at": transaction.completed_at.isoformat() if transaction.completed_at else None,
        },
    }


def deliver_webhook(
    db: Session,
    transaction_id: str,
    *,
    timeout: float = 10.0,
    client: Optional[httpx.Client] = None,
) -> Optional[int]:
    """
    POST the transaction's current state to its account's webhook URL.

    Returns the endpoint's HTTP status, or None if the account has no webhook URL.
    Raises WebhookDeliveryError on transport errors and non-2xx responses.
    """
    transaction = TransactionLedger(db).get(transaction_id)
    if transaction is None:
        logger.warning("Webhook skipped: transaction not found", extra={"transaction_id": transaction_id})
        record_webhook_delivery("skipped")
        return None

    account: Account = transaction.account
    if not account.webhook_url:
        record_webhook_delivery("skipped")
        return None

    body = json.dumps(build_event(transaction), separators=(",", ":")).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        EVENT_HEADER: EVENT_TYPES.get(transaction.status, "transaction.updated"),
        TIMESTAMP_HEADER: str(int(time.time())),
    }
    if account.webhook_secret:
        headers[SIGNATURE_HEADER] = compute_hmac_signature(body, account.webhook_secret)

    owns_client = client is None
    http = client or httpx.Client(timeout=timeout)
    try:
        response = http.post(account.webhook_url, content=body, headers=headers)
    except httpx.HTTPError as e:
        record_webhook_delivery("failed")
        logger.warning(
            "Webhook transport error",
            extra={"transaction_id": transaction_id, "error": str(e)},
        )
        raise WebhookDeliveryError(transaction_id, str(e)) from e
    finally:
        if owns_client:
            http.close()

    if not response.is_success:
        record_webhook_delivery("failed")
        logger.warning(
            "Webhook rejected by merchant endpoint",
            extra={"transaction_id": transaction_id, "status_code": response.status_code},
        )
        raise WebhookDeliveryError(transaction_id, f"HTTP {response.status_code}")

    record_webhook_delivery("delivered")
    logger.info(
        "Webhook delivered",
        extra={"transaction_id": transaction_id, "status_code": response.status_code},
    )
    return response.status_code


class RQWebhookDispatcher(WebhookDispatcher):
    """Enqueues webhook delivery with RQ retries"""

    def __init__(self, queue: Queue, max_retries: int = 3):
        self.queue = queue
        self.max_retries = max_retries

    def transaction_resolved(self, transaction_id: str) -> None:
        self.queue.enqueue(
            WEBHOOK_DELIVERY_JOB,
            transaction_id,
            retry=Retry(max=self.max_retries, interval=[10, 60, 300]),
        )
