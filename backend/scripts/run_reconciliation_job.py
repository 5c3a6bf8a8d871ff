#!/usr/bin/env python3
"""
Reconciliation job runner - resolves transactions stuck in PENDING

Designed for cron (every 5 minutes); can also be run by hand.

Usage:
    # Regular run (threshold: PENDING_TIMEOUT_SECONDS)
    python -m scripts.run_reconciliation_job

    # List what would be resolved, change nothing
    python -m scripts.run_reconciliation_job --dry-run

    # Custom threshold and batch size
    python -m scripts.run_reconciliation_job --older-than 600 --limit 100
"""

import argparse
import json
import sys
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from dotenv import load_dotenv

# Add backend to path
sys.path.insert(0, '.')

load_dotenv()

import paychain.models  # noqa: E402,F401
from paychain.infrastructure.database import SessionLocal  # noqa: E402
from paychain.infrastructure.logging_config import setup_logging, trace_id_context  # noqa: E402
from paychain.infrastructure.redis_client import get_queue  # noqa: E402
from paychain.infrastructure.settings import get_settings  # noqa: E402
from paychain.services.ledger import TransactionLedger  # noqa: E402
from paychain.services.reconciliation import reconcile_stale_transactions  # noqa: E402
from paychain.services.settlement import SandboxSettlementSimulator  # noqa: E402
from paychain.services.webhook_notifier import RQWebhookDispatcher  # noqa: E402

JOB_NAME = "reconcile_stale_transactions"


def generate_trace_id() -> str:
    """Format: job-reconcile-YYYYMMDDHHMM-<shortuuid>"""
    stamp = datetime.now(timezone.utc).strftime('%Y%m%d%H%M')
    return f"job-reconcile-{stamp}-{str(uuid4())[:8]}"


def main():
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description='Resolve transactions stuck in PENDING',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        '--older-than',
        type=int,
        default=settings.PENDING_TIMEOUT_SECONDS,
        help=f'Age threshold in seconds (default: {settings.PENDING_TIMEOUT_SECONDS})',
    )
    parser.add_argument(
        '--limit',
        type=int,
        default=500,
        help='Maximum transactions to resolve in one run (default: 500)',
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='List stale transactions without resolving them',
    )
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)
    trace_id = generate_trace_id()
    trace_id_context.set(trace_id)

    db = SessionLocal()
    try:
        dispatcher = RQWebhookDispatcher(
            get_queue(settings.WEBHOOK_QUEUE),
            max_retries=settings.WEBHOOK_MAX_RETRIES,
        )
        simulator = SandboxSettlementSimulator(
            TransactionLedger(db),
            success_rate=settings.SANDBOX_SUCCESS_RATE,
            dispatcher=dispatcher,
        )
        summary = reconcile_stale_transactions(
            db,
            older_than=timedelta(seconds=args.older_than),
            simulator=simulator,
            dispatcher=dispatcher,
            dry_run=args.dry_run,
            limit=args.limit,
        )
        print(json.dumps({
            "job": JOB_NAME,
            "trace_id": trace_id,
            "older_than_seconds": args.older_than,
            "dry_run": args.dry_run,
            "summary": summary,
            "exit_code": 0,
        }))
        sys.exit(0)

    except Exception as e:
        print(json.dumps({
            "job": JOB_NAME,
            "trace_id": trace_id,
            "dry_run": args.dry_run,
            "error": f"Unexpected error: {type(e).__name__}: {str(e)}",
            "exit_code": 1,
        }), file=sys.stderr)
        sys.exit(1)

    finally:
        db.close()


if __name__ == "__main__":
    main()
