"""
Account model - Merchant accounts and their API credentials
"""

from sqlalchemy import Column, String, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from paychain.core.common.base_model import BaseModel


class AccountStatus(str, enum.Enum):
    """Merchant operating status"""
    UNVERIFIED = "UNVERIFIED"  # Signed up, email not verified
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    PENDING = "PENDING"  # KYC submitted, awaiting review
    APPROVED = "APPROVED"  # KYC approved - live mode unlocked
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"  # Suspended by an operator (never hard-deleted)


class OperatingMode(str, enum.Enum):
    """Mode resolved from the credential class that matched"""
    SANDBOX = "sandbox"
    LIVE = "live"


class Account(BaseModel):
    """
    Account model - A merchant collecting payments through PayChain

    Credentials:
    - sandbox_api_key is stored in clear (test-only, shown on the dashboard)
    - live keys are never stored; only a SHA-256 fingerprint and the last four chars

    Both credential columns are unique-indexed: authentication is a point lookup.
    An account may only charge in live mode while status == APPROVED.
    """

    __tablename__ = "accounts"

    business_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    status = Column(
        SQLEnum(AccountStatus, name="account_status", create_constraint=True),
        nullable=False,
        default=AccountStatus.UNVERIFIED,
        index=True,
    )

    sandbox_api_key = Column(String(64), unique=True, nullable=True, index=True)
    live_key_hash = Column(String(64), unique=True, nullable=True, index=True)
    live_key_last_four = Column(String(4), nullable=True)

    webhook_url = Column(String(2048), nullable=True)
    webhook_secret = Column(String(64), nullable=True)  # HMAC secret for outbound webhooks

    # Relationships
    compliance_record = relationship(
        "ComplianceRecord", back_populates="account", uselist=False, lazy="select"
    )
    transactions = relationship("Transaction", back_populates="account", lazy="select")

    @property
    def is_live_enabled(self) -> bool:
        return self.status == AccountStatus.APPROVED
