"""
Compliance workflow - KYC submission, operator review, account suspension

The KYC record's status gates live mode: approval moves the account to APPROVED,
which is the only status authenticate_credential() accepts for live keys.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from paychain.core.accounts.models import Account, AccountStatus
from paychain.core.compliance.models import AuditLog, ComplianceRecord, ComplianceStatus
from paychain.core.security.models import Role
from paychain.services.exceptions import (
    AccountNotFoundError,
    ComplianceStateError,
    ValidationError,
)

logger = logging.getLogger(__name__)

KYC_FIELDS = (
    "director_name",
    "director_id_number",
    "physical_address",
    "tax_pin",
    "monthly_volume",
    "id_document_ref",
    "registration_document_ref",
)

# Fields that must be present before a record can leave DRAFT
REQUIRED_FOR_SUBMISSION = (
    "director_name",
    "director_id_number",
    "physical_address",
    "tax_pin",
    "id_document_ref",
    "registration_document_ref",
)

EDITABLE_STATUSES = frozenset({ComplianceStatus.DRAFT, ComplianceStatus.REJECTED})


def _snapshot(record: Optional[ComplianceRecord]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {
        "status": record.status.value,
        "rejection_reason": record.rejection_reason,
    }


def write_audit_log(
    db: Session,
    *,
    actor_subject: Optional[str],
    actor_role: Role,
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
    ip: Optional[str] = None,
) -> AuditLog:
    """Stage an audit row; the caller's commit persists it with the change it records"""
    audit_log = AuditLog(
        actor_subject=actor_subject,
        actor_role=actor_role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before=before,
        after=after,
        reason=reason,
        ip=ip,
    )
    db.add(audit_log)
    return audit_log


def get_account(db: Session, account_id: UUID) -> Account:
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


def submit_compliance(
    db: Session,
    account: Account,
    fields: Dict[str, Any],
    submit: bool = True,
) -> ComplianceRecord:
    """
    Create or update the account's KYC record.

    With submit=True the record moves to PENDING (and the account with it);
    otherwise it is saved as DRAFT. Records under review or approved are read-only.
    """
    record = account.compliance_record
    if record is not None and record.status not in EDITABLE_STATUSES:
        raise ComplianceStateError(
            f"Compliance record is {record.status.value} and can no longer be edited"
        )

    updates = {name: fields[name] for name in KYC_FIELDS if fields.get(name) is not None}

    if submit:
        missing = [
            name for name in REQUIRED_FOR_SUBMISSION
            if not updates.get(name) and not (record is not None and getattr(record, name))
        ]
        if missing:
            raise ValidationError(f"Missing required compliance fields: {', '.join(missing)}")

    if record is None:
        record = ComplianceRecord(account_id=account.id, status=ComplianceStatus.DRAFT)
        db.add(record)

    for name, value in updates.items():
        setattr(record, name, value)

    if submit:
        record.status = ComplianceStatus.PENDING
        record.rejection_reason = None
        account.status = AccountStatus.PENDING
    else:
        record.status = ComplianceStatus.DRAFT

    db.commit()
    db.refresh(record)

    logger.info(
        "Compliance record saved",
        extra={"account_id": str(account.id), "compliance_status": record.status.value},
    )
    return record


def approve_compliance(
    db: Session,
    account_id: UUID,
    *,
    actor_subject: Optional[str],
    actor_role: Role,
    ip: Optional[str] = None,
) -> ComplianceRecord:
    """PENDING -> APPROVED; unlocks live mode for the account"""
    account = get_account(db, account_id)
    record = account.compliance_record
    if record is None or record.status != ComplianceStatus.PENDING:
        current = record.status.value if record else "MISSING"
        raise ComplianceStateError(f"Only PENDING compliance records can be approved (current: {current})")

    before = _snapshot(record)
    record.status = ComplianceStatus.APPROVED
    record.rejection_reason = None
    account.status = AccountStatus.APPROVED

    write_audit_log(
        db,
        actor_subject=actor_subject,
        actor_role=actor_role,
        action="COMPLIANCE_APPROVED",
        entity_type="ComplianceRecord",
        entity_id=str(record.id),
        before=before,
        after=_snapshot(record),
        ip=ip,
    )
    db.commit()
    db.refresh(record)

    logger.info("Compliance approved", extra={"account_id": str(account_id), "actor": actor_subject})
    return record


def reject_compliance(
    db: Session,
    account_id: UUID,
    reason: str,
    *,
    actor_subject: Optional[str],
    actor_role: Role,
    ip: Optional[str] = None,
) -> ComplianceRecord:
    """PENDING -> REJECTED; the merchant may edit and resubmit"""
    account = get_account(db, account_id)
    record = account.compliance_record
    if record is None or record.status != ComplianceStatus.PENDING:
        current = record.status.value if record else "MISSING"
        raise ComplianceStateError(f"Only PENDING compliance records can be rejected (current: {current})")

    before = _snapshot(record)
    record.status = ComplianceStatus.REJECTED
    record.rejection_reason = reason
    account.status = AccountStatus.REJECTED

    write_audit_log(
        db,
        actor_subject=actor_subject,
        actor_role=actor_role,
        action="COMPLIANCE_REJECTED",
        entity_type="ComplianceRecord",
        entity_id=str(record.id),
        before=before,
        after=_snapshot(record),
        reason=reason,
        ip=ip,
    )
    db.commit()
    db.refresh(record)

    logger.info("Compliance rejected", extra={"account_id": str(account_id), "actor": actor_subject})
    return record


def suspend_account(
    db: Session,
    account_id: UUID,
    reason: str,
    *,
    actor_subject: Optional[str],
    actor_role: Role,
    ip: Optional[str] = None,
) -> Account:
    """Accounts are never deleted; suspension blocks both sandbox and live credentials"""
    account = get_account(db, account_id)
    if account.status == AccountStatus.SUSPENDED:
        raise ComplianceStateError("Account is already suspended")

    before = {"status": account.status.value}
    account.status = AccountStatus.SUSPENDED

    write_audit_log(
        db,
        actor_subject=actor_subject,
        actor_role=actor_role,
        action="ACCOUNT_SUSPENDED",
        entity_type="Account",
        entity_id=str(account.id),
        before=before,
        after={"status": account.status.value},
        reason=reason,
        ip=ip,
    )
    db.commit()
    db.refresh(account)

    logger.warning("Account suspended", extra={"account_id": str(account_id), "actor": actor_subject})
    return account
