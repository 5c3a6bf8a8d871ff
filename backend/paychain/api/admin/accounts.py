"""
Account administration endpoints - INTERNAL ONLY
"""

from uuid import UUID
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from paychain.api.admin.compliance import request_ip
from paychain.auth.dependencies import require_admin
from paychain.auth.principal import Principal
from paychain.infrastructure.database import get_db
from paychain.schemas.accounts import LiveKeyResponse
from paychain.schemas.compliance import AccountStatusResponse, AccountSuspendRequest
from paychain.services.compliance_service import get_account, suspend_account, write_audit_log
from paychain.services.credentials import issue_live_key, mask_live_key
from paychain.services.exceptions import ComplianceStateError, LiveModeLockedError

router = APIRouter()


@router.post(
    "/accounts/{account_id}/suspend",
    response_model=AccountStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Suspend account",
    description="Blocks both sandbox and live credentials. Accounts are never deleted. Requires ADMIN role.",
)
async def suspend(
    account_id: UUID,
    body: AccountSuspendRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> AccountStatusResponse:
    account = suspend_account(
        db,
        account_id,
        body.reason,
        actor_subject=principal.subject,
        actor_role=principal.primary_role,
        ip=request_ip(request),
    )
    return AccountStatusResponse(account_id=account.id, status=account.status.value)


@router.post(
    "/accounts/{account_id}/live-key",
    response_model=LiveKeyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue live key",
    description=(
        "Issue (or rotate) the account's live key. The plaintext key is returned once and "
        "never stored. Account must be APPROVED. Requires ADMIN role."
    ),
)
async def issue_live_api_key(
    account_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
) -> LiveKeyResponse:
    account = get_account(db, account_id)
    try:
        live_key = issue_live_key(db, account)
    except LiveModeLockedError as e:
        raise ComplianceStateError(f"Account is {account.status.value}; live keys require APPROVED") from e

    write_audit_log(
        db,
        actor_subject=principal.subject,
        actor_role=principal.primary_role,
        action="LIVE_KEY_ISSUED",
        entity_type="Account",
        entity_id=str(account.id),
        after={"live_key": mask_live_key(account.live_key_last_four)},
        ip=request_ip(request),
    )
    db.commit()

    return LiveKeyResponse(
        account_id=account.id,
        live_api_key=live_key,
        masked=mask_live_key(account.live_key_last_four),
    )
