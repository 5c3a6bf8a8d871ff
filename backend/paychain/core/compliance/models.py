"""
Compliance models - KYC records and the audit trail
"""

from sqlalchemy import Column, String, ForeignKey, JSON, Text, BigInteger, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from paychain.core.common.base_model import BaseModel
from paychain.core.security.models import Role


class ComplianceStatus(str, enum.Enum):
    """KYC record status"""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ComplianceRecord(BaseModel):
    """
    ComplianceRecord model - One KYC submission per merchant account

    Transitions: DRAFT -> PENDING -> {APPROVED, REJECTED}; REJECTED may resubmit to PENDING.
    The merchant creates/updates the record; an operator approves or rejects it.
    Document files live in external storage; only their references are kept here.
    """

    __tablename__ = "compliance_records"

    account_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("accounts.id", name="fk_compliance_records_account_id"),
        nullable=False,
        unique=True,
        index=True,
    )
    status = Column(
        SQLEnum(ComplianceStatus, name="compliance_status", create_constraint=True),
        nullable=False,
        default=ComplianceStatus.DRAFT,
        index=True,
    )

    director_name = Column(String(255), nullable=True)
    director_id_number = Column(String(64), nullable=True)
    physical_address = Column(Text, nullable=True)
    tax_pin = Column(String(64), nullable=True)
    monthly_volume = Column(BigInteger, nullable=True)  # Declared, minor units
    id_document_ref = Column(String(1024), nullable=True)
    registration_document_ref = Column(String(1024), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Relationships
    account = relationship("Account", back_populates="compliance_record")


class AuditLog(BaseModel):
    """
    AuditLog model - Audit trail for operator actions
    """

    __tablename__ = "audit_logs"

    actor_subject = Column(String(255), nullable=True, index=True)  # JWT sub of the operator
    actor_role = Column(SQLEnum(Role, name="actor_role", create_constraint=True), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(64), nullable=True, index=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    ip = Column(String(45), nullable=True)  # IPv6 max length
