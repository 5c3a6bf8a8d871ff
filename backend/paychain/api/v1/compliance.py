"""
Compliance endpoints - merchant side of the KYC workflow
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from paychain.auth.dependencies import get_authenticated_caller
from paychain.infrastructure.database import get_db
from paychain.schemas.compliance import ComplianceRecordResponse, ComplianceSubmitRequest
from paychain.services.compliance_service import submit_compliance
from paychain.services.credentials import AuthenticatedCaller

router = APIRouter()


@router.get(
    "/compliance",
    response_model=ComplianceRecordResponse,
    summary="Get compliance record",
)
async def get_compliance(
    caller: AuthenticatedCaller = Depends(get_authenticated_caller),
) -> ComplianceRecordResponse:
    record = caller.account.compliance_record
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": {"code": "COMPLIANCE_RECORD_NOT_FOUND", "message": "No compliance record submitted yet"}},
        )
    return ComplianceRecordResponse.from_record(record)


@router.put(
    "/compliance",
    response_model=ComplianceRecordResponse,
    summary="Create or update compliance record",
    description=(
        "Save KYC details. With `submit: true` (default) the record goes to review and the "
        "account moves to PENDING; `submit: false` keeps it as a draft. Records under review "
        "or approved cannot be edited."
    ),
)
async def put_compliance(
    body: ComplianceSubmitRequest,
    caller: AuthenticatedCaller = Depends(get_authenticated_caller),
    db: Session = Depends(get_db),
) -> ComplianceRecordResponse:
    fields = body.model_dump(exclude={"submit"}, exclude_none=True)
    record = submit_compliance(db, caller.account, fields, submit=body.submit)
    return ComplianceRecordResponse.from_record(record)
