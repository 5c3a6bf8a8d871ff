"""
Settlement provider callback

The provider posts the outcome of a live charge here. The callback resolves the
transaction through the same PENDING-guarded ledger update as the sandbox
simulator, so duplicate and late callbacks are no-ops.
"""

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from paychain.api.dependencies import get_webhook_dispatcher
from paychain.core.accounts.models import OperatingMode
from paychain.core.transactions.models import TransactionStatus
from paychain.infrastructure.database import get_db
from paychain.infrastructure.logging_config import trace_id_context
from paychain.schemas.webhooks import SettlementCallbackPayload, SettlementCallbackResponse
from paychain.services.exceptions import TransactionNotFoundError
from paychain.services.ledger import TransactionLedger
from paychain.services.settlement import SOURCE_PROVIDER_CALLBACK, WebhookDispatcher, settle_transaction
from paychain.utils.metrics import record_callback_rejected
from paychain.utils.webhook_security import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    verify_settlement_callback_security,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _reject(status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> HTTPException:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return HTTPException(status_code=status_code, detail={"error": error})


@router.post(
    "/settlement/callback",
    response_model=SettlementCallbackResponse,
    status_code=status.HTTP_200_OK,
    summary="Settlement provider callback",
    description=(
        "Resolve a live transaction to SUCCESS or FAILED. PROVIDER ONLY. Requires an "
        "HMAC-SHA256 signature of the raw body in X-Settlement-Signature."
    ),
)
async def settlement_callback(
    request: Request,
    x_settlement_signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
    x_settlement_timestamp: Optional[str] = Header(None, alias=TIMESTAMP_HEADER),
    db: Session = Depends(get_db),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> SettlementCallbackResponse:
    """
    1. Verify signature (and timestamp window, if sent) over the raw body
    2. Validate the payload
    3. Resolve the transaction once; repeats answer "duplicate"
    """
    trace_id = trace_id_context.get()
    body_bytes = await request.body()

    is_valid, error_code, error_details = verify_settlement_callback_security(
        payload_body=body_bytes,
        signature_header=x_settlement_signature,
        timestamp_header=x_settlement_timestamp,
    )
    if not is_valid:
        record_callback_rejected(error_code or "unknown")
        logger.warning(
            "Settlement callback rejected",
            extra={"reason": error_code, "details": error_details, "path": request.url.path},
        )
        raise _reject(
            status.HTTP_401_UNAUTHORIZED,
            error_code or "WEBHOOK_INVALID_SIGNATURE",
            "Settlement callback verification failed",
        )

    try:
        payload = SettlementCallbackPayload.model_validate_json(body_bytes)
    except PydanticValidationError as e:
        record_callback_rejected("invalid_payload")
        raise _reject(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_PAYLOAD",
            "Invalid settlement callback payload",
            details={"errors": [err.get("msg") for err in e.errors()]},
        )

    ledger = TransactionLedger(db)
    transaction = ledger.get(payload.transaction_id)
    if transaction is None:
        record_callback_rejected("unknown_transaction")
        raise TransactionNotFoundError(payload.transaction_id)

    if transaction.mode != OperatingMode.LIVE.value:
        record_callback_rejected("sandbox_transaction")
        raise _reject(
            status.HTTP_409_CONFLICT,
            "SANDBOX_TRANSACTION",
            "Sandbox transactions are settled by the simulator",
        )

    outcome = TransactionStatus(payload.status)
    metadata_updates: Dict[str, Any] = {}
    if payload.provider_event_id:
        metadata_updates["provider_event_id"] = payload.provider_event_id
    if outcome == TransactionStatus.FAILED and payload.failure_reason:
        metadata_updates["failure_reason"] = payload.failure_reason

    won = settle_transaction(
        ledger,
        payload.transaction_id,
        status=outcome,
        source=SOURCE_PROVIDER_CALLBACK,
        provider_ref=payload.provider_ref,
        metadata_updates=metadata_updates or None,
        dispatcher=dispatcher,
    )

    current = ledger.get(payload.transaction_id)
    logger.info(
        "Settlement callback processed",
        extra={
            "transaction_id": payload.transaction_id,
            "outcome": outcome.value,
            "applied": won,
            "transaction_status": current.status.value,
            "trace_id": trace_id,
        },
    )
    return SettlementCallbackResponse(
        status="accepted" if won else "duplicate",
        transaction_id=payload.transaction_id,
        transaction_status=current.status.value,
    )
