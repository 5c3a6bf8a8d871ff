"""
Reconciliation sweep - resolves transactions stuck in PENDING

A transaction can stay PENDING when its settlement job was lost (worker crash, Redis
outage after the insert) or when a live provider never called back. The sweep:
- sandbox: runs the simulator immediately
- live: resolves FAILED with metadata.failure_reason = "settlement_timeout"

Every resolution uses the ledger's PENDING guard, so a settlement racing the sweep
is never overwritten.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from paychain.core.accounts.models import OperatingMode
from paychain.core.transactions.models import TransactionStatus
from paychain.services.ledger import TransactionLedger
from paychain.services.settlement import (
    SOURCE_RECONCILIATION,
    SandboxSettlementSimulator,
    WebhookDispatcher,
    settle_transaction,
)

logger = logging.getLogger(__name__)

SETTLEMENT_TIMEOUT_REASON = "settlement_timeout"


def reconcile_stale_transactions(
    db: Session,
    older_than: timedelta,
    simulator: SandboxSettlementSimulator,
    dispatcher: Optional[WebhookDispatcher] = None,
    dry_run: bool = False,
    limit: int = 500,
) -> Dict[str, Any]:
    """
    Resolve PENDING transactions created more than older_than ago.

    Returns a summary:
        {"scanned": n, "sandbox_settled": n, "live_timed_out": n, "skipped": n,
         "dry_run": bool, "transaction_ids": [...]}
    """
    ledger = TransactionLedger(db)
    stale = ledger.list_stale_pending(older_than, limit=limit)

    summary: Dict[str, Any] = {
        "scanned": len(stale),
        "sandbox_settled": 0,
        "live_timed_out": 0,
        "skipped": 0,
        "dry_run": dry_run,
        "transaction_ids": [t.id for t in stale],
    }

    if dry_run:
        logger.info("Reconciliation dry run", extra={"scanned": summary["scanned"]})
        return summary

    # Snapshot (id, mode) first; each resolution commits and expires the loaded rows
    candidates = [(t.id, t.mode) for t in stale]

    for transaction_id, mode in candidates:
        if mode == OperatingMode.SANDBOX.value:
            outcome = simulator.settle(transaction_id, source=SOURCE_RECONCILIATION)
            if outcome is None:
                summary["skipped"] += 1
            else:
                summary["sandbox_settled"] += 1
            continue

        won = settle_transaction(
            ledger,
            transaction_id,
            status=TransactionStatus.FAILED,
            source=SOURCE_RECONCILIATION,
            metadata_updates={"failure_reason": SETTLEMENT_TIMEOUT_REASON},
            dispatcher=dispatcher,
        )
        if won:
            summary["live_timed_out"] += 1
        else:
            summary["skipped"] += 1

    logger.info(
        "Reconciliation completed",
        extra={
            "scanned": summary["scanned"],
            "sandbox_settled": summary["sandbox_settled"],
            "live_timed_out": summary["live_timed_out"],
            "skipped": summary["skipped"],
        },
    )
    return summary
