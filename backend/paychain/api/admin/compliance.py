"""
Compliance review endpoints - INTERNAL ONLY
"""

import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from paychain.auth.dependencies import require_compliance_or_admin
from paychain.auth.principal import Principal
from paychain.infrastructure.database import get_db
from paychain.schemas.compliance import ComplianceRecordResponse, ComplianceRejectRequest
from paychain.services.compliance_service import approve_compliance, reject_compliance

logger = logging.getLogger(__name__)

router = APIRouter()


def request_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post(
    "/compliance/{account_id}/approve",
    response_model=ComplianceRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve KYC",
    description="PENDING -> APPROVED. Unlocks live mode for the account. Requires COMPLIANCE or ADMIN role.",
)
async def approve(
    account_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_compliance_or_admin),
) -> ComplianceRecordResponse:
    record = approve_compliance(
        db,
        account_id,
        actor_subject=principal.subject,
        actor_role=principal.primary_role,
        ip=request_ip(request),
    )
    return ComplianceRecordResponse.from_record(record)


@router.post(
    "/compliance/{account_id}/reject",
    response_model=ComplianceRecordResponse,
    status_code=status.HTTP_200_OK,
    summary="Reject KYC",
    description="PENDING -> REJECTED with a mandatory reason. Requires COMPLIANCE or ADMIN role.",
)
async def reject(
    account_id: UUID,
    body: ComplianceRejectRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_compliance_or_admin),
) -> ComplianceRecordResponse:
    record = reject_compliance(
        db,
        account_id,
        body.reason,
        actor_subject=principal.subject,
        actor_role=principal.primary_role,
        ip=request_ip(request),
    )
    return ComplianceRecordResponse.from_record(record)
