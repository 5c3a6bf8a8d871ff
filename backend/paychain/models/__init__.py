"""
Models registry for Alembic - Import all models here to ensure Base.metadata is complete

Import order matters to avoid circular dependencies:
1. Base and enums first
2. Account (no foreign keys)
3. Models with foreign keys to Account
"""

# Import Base first
from paychain.infrastructure.database import Base

# 1. Security models (no dependencies)
from paychain.core.security.models import Role

# 2. Account model
from paychain.core.accounts.models import Account, AccountStatus, OperatingMode

# 3. Compliance models (depend on Account and Role)
from paychain.core.compliance.models import ComplianceRecord, ComplianceStatus, AuditLog

# 4. Transaction model (depends on Account)
from paychain.core.transactions.models import Transaction, TransactionStatus, PaymentRail

__all__ = [
    "Base",
    "Role",
    "Account",
    "AccountStatus",
    "OperatingMode",
    "ComplianceRecord",
    "ComplianceStatus",
    "AuditLog",
    "Transaction",
    "TransactionStatus",
    "PaymentRail",
]
