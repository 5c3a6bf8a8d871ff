"""
Transaction Ledger - single source of truth for transaction status

All writes go through this module:
- create() inserts a PENDING row with a freshly generated id
- resolve() settles PENDING -> SUCCESS/FAILED exactly once
- transition() drives the escrow extension (SUCCESS -> HELD -> RELEASED/REFUNDED)

Status changes are compare-and-set UPDATEs keyed on the expected current status,
so concurrent settlement attempts serialize in the database: one UPDATE matches
one row, every other attempt matches zero rows and is reported as a no-op.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from paychain.core.accounts.models import OperatingMode
from paychain.core.common.base_model import utcnow
from paychain.core.transactions.models import (
    Transaction,
    TransactionStatus,
    PaymentRail,
    OPEN_STATUSES,
)
from paychain.services.exceptions import (
    PersistenceError,
    TransactionNotFoundError,
    InvalidTransitionError,
)

logger = logging.getLogger(__name__)

TRANSACTION_ID_PREFIX = "txn_"

ALLOWED_TRANSITIONS: Dict[TransactionStatus, frozenset] = {
    TransactionStatus.PENDING: frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED}),
    TransactionStatus.SUCCESS: frozenset({TransactionStatus.HELD, TransactionStatus.REFUNDED}),
    TransactionStatus.HELD: frozenset({TransactionStatus.RELEASED, TransactionStatus.REFUNDED}),
    TransactionStatus.FAILED: frozenset(),
    TransactionStatus.RELEASED: frozenset(),
    TransactionStatus.REFUNDED: frozenset(),
}

SETTLEMENT_OUTCOMES = frozenset({TransactionStatus.SUCCESS, TransactionStatus.FAILED})


class DuplicateExternalRefError(Exception):
    """Raised when (account_id, mode, external_ref) already exists"""

    def __init__(self, account_id: UUID, mode: OperatingMode, external_ref: str):
        self.account_id = account_id
        self.mode = mode
        self.external_ref = external_ref
        super().__init__(f"{mode.value} external_ref {external_ref!r} already used by account {account_id}")


@dataclass
class NewTransaction:
    """Fields captured once, at creation time"""
    account_id: UUID
    amount: int
    currency: str
    phone: str
    payment_method: PaymentRail
    mode: OperatingMode
    fee_amount: int
    fee_rate: Decimal
    description: Optional[str] = None
    external_ref: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


def generate_transaction_id() -> str:
    """Opaque, prefixed, globally unique id (96 random bits)"""
    return TRANSACTION_ID_PREFIX + uuid.uuid4().hex[:24]


def assert_transition(current: TransactionStatus, target: TransactionStatus) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


class TransactionLedger:
    """
    Ledger bound to one SQLAlchemy session.

    Each write commits its own unit of work; callers never mutate Transaction rows directly.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(self, new: NewTransaction) -> Transaction:
        """
        Insert a PENDING transaction.

        Raises:
            DuplicateExternalRefError: (account_id, mode, external_ref) already exists
            PersistenceError: any other database failure
        """
        transaction = Transaction(
            id=generate_transaction_id(),
            account_id=new.account_id,
            amount=new.amount,
            currency=new.currency,
            phone=new.phone,
            payment_method=new.payment_method,
            mode=new.mode.value,
            status=TransactionStatus.PENDING,
            fee_amount=new.fee_amount,
            fee_rate=new.fee_rate,
            description=new.description,
            external_ref=new.external_ref,
            meta=dict(new.metadata or {}),
            created_at=utcnow(),
        )
        self.db.add(transaction)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if new.external_ref and self.find_by_external_ref(new.account_id, new.mode, new.external_ref):
                raise DuplicateExternalRefError(new.account_id, new.mode, new.external_ref) from e
            logger.error("Transaction insert violated a constraint", exc_info=True)
            raise PersistenceError() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Transaction insert failed", exc_info=True)
            raise PersistenceError() from e

        self.db.refresh(transaction)
        logger.info(
            "Transaction created",
            extra={
                "transaction_id": transaction.id,
                "account_id": str(transaction.account_id),
                "amount": transaction.amount,
                "payment_method": transaction.payment_method.value,
                "mode": transaction.mode,
            },
        )
        return transaction

    def get(self, transaction_id: str, account_id: Optional[UUID] = None) -> Optional[Transaction]:
        """Point lookup; optionally scoped to the owning account"""
        query = select(Transaction).where(Transaction.id == transaction_id)
        if account_id is not None:
            query = query.where(Transaction.account_id == account_id)
        return self.db.execute(query).scalar_one_or_none()

    def find_by_external_ref(
        self,
        account_id: UUID,
        mode: OperatingMode,
        external_ref: str,
    ) -> Optional[Transaction]:
        """References are scoped per account and per mode"""
        return self.db.execute(
            select(Transaction).where(
                Transaction.account_id == account_id,
                Transaction.mode == mode.value,
                Transaction.external_ref == external_ref,
            )
        ).scalar_one_or_none()

    def resolve(
        self,
        transaction_id: str,
        *,
        status: TransactionStatus,
        provider_ref: Optional[str] = None,
        metadata_updates: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Settle a PENDING transaction to SUCCESS or FAILED.

        Returns True if this call performed the resolution, False if the
        transaction had already left PENDING (duplicate callback, late simulator).

        Raises:
            ValueError: status is not a settlement outcome
            TransactionNotFoundError: no such transaction
        """
        if status not in SETTLEMENT_OUTCOMES:
            raise ValueError(f"Settlement outcome must be SUCCESS or FAILED, got {status.value}")

        values: Dict[str, Any] = {
            "provider_ref": provider_ref if status == TransactionStatus.SUCCESS else None,
        }
        return self._compare_and_set(
            transaction_id,
            expected=TransactionStatus.PENDING,
            target=status,
            values=values,
            metadata_updates=metadata_updates,
        )

    def transition(
        self,
        transaction_id: str,
        *,
        from_status: TransactionStatus,
        to_status: TransactionStatus,
        metadata_updates: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Generic guarded transition used by the escrow extension.

        Raises InvalidTransitionError if from_status -> to_status is not allowed.
        Returns False if the row is no longer in from_status.
        """
        assert_transition(from_status, to_status)
        return self._compare_and_set(
            transaction_id,
            expected=from_status,
            target=to_status,
            values={},
            metadata_updates=metadata_updates,
        )

    def list_stale_pending(self, older_than: timedelta, limit: int = 500) -> List[Transaction]:
        """PENDING transactions created before now - older_than, oldest first"""
        cutoff: datetime = utcnow() - older_than
        return list(
            self.db.execute(
                select(Transaction)
                .where(
                    Transaction.status == TransactionStatus.PENDING,
                    Transaction.created_at < cutoff,
                )
                .order_by(Transaction.created_at)
                .limit(limit)
            ).scalars()
        )

    def _compare_and_set(
        self,
        transaction_id: str,
        *,
        expected: TransactionStatus,
        target: TransactionStatus,
        values: Dict[str, Any],
        metadata_updates: Optional[Dict[str, Any]],
    ) -> bool:
        current = self.get(transaction_id)
        if current is None:
            raise TransactionNotFoundError(transaction_id)

        values = dict(values)
        values["status"] = target
        values["completed_at"] = None if target in OPEN_STATUSES else utcnow()
        values["updated_at"] = utcnow()
        if metadata_updates:
            values["meta"] = {**(current.meta or {}), **metadata_updates}

        result = self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

        won = result.rowcount == 1
        if won:
            logger.info(
                "Transaction status changed",
                extra={"transaction_id": transaction_id, "from_status": expected.value, "to_status": target.value},
            )
        else:
            logger.info(
                "Transaction status change skipped (not in expected state)",
                extra={"transaction_id": transaction_id, "expected_status": expected.value, "target_status": target.value},
            )
        return won
