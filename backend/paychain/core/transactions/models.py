"""
Transaction model - A single charge collected from a payer's mobile wallet
"""

from sqlalchemy import (
    Column, String, ForeignKey, BigInteger, Numeric, DateTime, JSON, Text, Uuid,
    Enum as SQLEnum, Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
import enum
from paychain.core.common.base_model import BaseModel


class PaymentRail(str, enum.Enum):
    """Mobile-money network a charge is collected through"""
    MPESA = "MPESA"
    AIRTEL = "AIRTEL"
    CARD = "CARD"  # Reserved


class TransactionStatus(str, enum.Enum):
    """
    Transaction status

    PENDING resolves exactly once to SUCCESS or FAILED.
    HELD / RELEASED / REFUNDED belong to the escrow extension and are only
    reachable from SUCCESS.
    """
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    HELD = "HELD"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"


# completed_at is NULL exactly while the transaction is in one of these
OPEN_STATUSES = frozenset({TransactionStatus.PENDING, TransactionStatus.HELD})


class Transaction(BaseModel):
    """
    Transaction model - Owned exclusively by the TransactionLedger

    amount, fee_amount and fee_rate are written once at creation and never updated.
    Every status change goes through a conditional UPDATE on the expected current status.
    """

    __tablename__ = "transactions"

    id = Column(String(32), primary_key=True)  # txn_<hex>, generated by the ledger
    account_id = Column(Uuid(as_uuid=True), ForeignKey("accounts.id", name="fk_transactions_account_id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)  # Minor units
    currency = Column(String(3), nullable=False)
    phone = Column(String(20), nullable=False)  # Canonical international form, digits only
    payment_method = Column(SQLEnum(PaymentRail, name="payment_rail", create_constraint=True), nullable=False, index=True)
    mode = Column(String(10), nullable=False)  # OperatingMode value of the credential that created it
    status = Column(
        SQLEnum(TransactionStatus, name="transaction_status", create_constraint=True),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )
    fee_amount = Column(BigInteger, nullable=False)
    fee_rate = Column(Numeric(8, 6), nullable=False)  # Snapshot of the rate applied
    description = Column(Text, nullable=True)
    external_ref = Column(String(255), nullable=True, index=True)  # Caller-supplied reconciliation reference
    provider_ref = Column(String(255), nullable=True)  # Set on SUCCESS only
    meta = Column("metadata", JSON, nullable=True)  # ip, settlement, sandbox_simulated, failure_reason, ...
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    account = relationship("Account", back_populates="transactions")

    __table_args__ = (
        CheckConstraint('amount > 0', name='check_transactions_amount_positive'),
        CheckConstraint('fee_amount >= 0', name='check_transactions_fee_non_negative'),
        CheckConstraint("mode IN ('sandbox', 'live')", name='check_transactions_mode'),
        Index('ix_transactions_status_created_at', 'status', 'created_at'),
        # Sandbox and live references are separate namespaces; NULL external_ref values never collide
        UniqueConstraint('account_id', 'mode', 'external_ref', name='uq_transactions_account_mode_external_ref'),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status not in OPEN_STATUSES
