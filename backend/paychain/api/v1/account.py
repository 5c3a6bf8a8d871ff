"""
Account settings endpoints - the merchant's own account
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from paychain.auth.dependencies import get_authenticated_caller
from paychain.core.accounts.models import Account
from paychain.infrastructure.database import get_db
from paychain.schemas.accounts import (
    AccountResponse,
    SandboxKeyResponse,
    WebhookUpdateRequest,
    WebhookUpdateResponse,
)
from paychain.services.credentials import (
    AuthenticatedCaller,
    configure_webhook,
    mask_live_key,
    rotate_sandbox_key,
)

router = APIRouter()


def build_account_response(account: Account) -> AccountResponse:
    record = account.compliance_record
    return AccountResponse(
        account_id=account.id,
        business_name=account.business_name,
        email=account.email,
        status=account.status.value,
        live_enabled=account.is_live_enabled,
        sandbox_api_key=account.sandbox_api_key,
        live_api_key=mask_live_key(account.live_key_last_four) if account.live_key_hash else None,
        webhook_url=account.webhook_url,
        compliance_status=record.status.value if record else None,
    )


@router.get(
    "/account",
    response_model=AccountResponse,
    summary="Get account",
    description="Account status, credentials (live key masked) and webhook settings.",
)
async def get_account(
    caller: AuthenticatedCaller = Depends(get_authenticated_caller),
) -> AccountResponse:
    return build_account_response(caller.account)


@router.put(
    "/account/webhook",
    response_model=WebhookUpdateResponse,
    summary="Set webhook URL",
    description="Endpoint that receives signed transaction events. The signing secret is returned once, when first generated.",
)
async def update_webhook(
    body: WebhookUpdateRequest,
    caller: AuthenticatedCaller = Depends(get_authenticated_caller),
    db: Session = Depends(get_db),
) -> WebhookUpdateResponse:
    new_secret = configure_webhook(db, caller.account, body.webhook_url)
    return WebhookUpdateResponse(webhook_url=caller.account.webhook_url, webhook_secret=new_secret)


@router.post(
    "/account/sandbox-key",
    response_model=SandboxKeyResponse,
    summary="Rotate sandbox key",
    description="Issue a new sandbox key; the previous one stops working immediately.",
)
async def rotate_sandbox_api_key(
    caller: AuthenticatedCaller = Depends(get_authenticated_caller),
    db: Session = Depends(get_db),
) -> SandboxKeyResponse:
    return SandboxKeyResponse(sandbox_api_key=rotate_sandbox_key(db, caller.account))
