#!/usr/bin/env python3
"""
Create a merchant account with a sandbox key for local development

Usage:
    python -m scripts.seed_sandbox_account --email dev@example.com --business "Dev Shop"

    # Also approve compliance and issue a live key (local testing of the live path)
    python -m scripts.seed_sandbox_account --email dev@example.com --approved
"""

import argparse
import json
import sys

from dotenv import load_dotenv
from sqlalchemy import select

# Add backend to path
sys.path.insert(0, '.')

load_dotenv()

import paychain.models  # noqa: E402,F401
from paychain.core.accounts.models import Account, AccountStatus  # noqa: E402
from paychain.core.compliance.models import ComplianceRecord, ComplianceStatus  # noqa: E402
from paychain.infrastructure.database import SessionLocal  # noqa: E402
from paychain.services.credentials import generate_sandbox_key, issue_live_key  # noqa: E402


def main():
    parser = argparse.ArgumentParser(
        description='Seed a sandbox merchant account',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--email', required=True, help='Merchant email (unique)')
    parser.add_argument('--business', default='Sandbox Merchant', help='Business name')
    parser.add_argument(
        '--approved',
        action='store_true',
        help='Mark compliance APPROVED and print a live key',
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        account = db.execute(
            select(Account).where(Account.email == args.email)
        ).scalar_one_or_none()

        created = account is None
        if created:
            account = Account(
                business_name=args.business,
                email=args.email,
                status=AccountStatus.EMAIL_VERIFIED,
                sandbox_api_key=generate_sandbox_key(),
            )
            db.add(account)
            db.commit()
            db.refresh(account)

        output = {
            "account_id": str(account.id),
            "email": account.email,
            "created": created,
            "sandbox_api_key": account.sandbox_api_key,
        }

        if args.approved:
            if account.compliance_record is None:
                db.add(ComplianceRecord(account_id=account.id, status=ComplianceStatus.APPROVED))
            else:
                account.compliance_record.status = ComplianceStatus.APPROVED
            account.status = AccountStatus.APPROVED
            db.commit()
            db.refresh(account)
            output["live_api_key"] = issue_live_key(db, account)

        output["status"] = account.status.value
        print(json.dumps(output))
    finally:
        db.close()


if __name__ == "__main__":
    main()
