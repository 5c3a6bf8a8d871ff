"""
Charge endpoints - create a charge, poll its status
"""

import logging
from typing import Optional, Union
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from paychain.api.dependencies import get_charge_orchestrator
from paychain.auth.dependencies import get_authenticated_caller
from paychain.infrastructure.database import get_db
from paychain.infrastructure.settings import get_settings
from paychain.schemas.charges import (
    ChargeErrorResponse,
    LiveChargeResponse,
    SandboxChargeResponse,
    TransactionResponse,
)
from paychain.services.charge_service import ChargeOrchestrator
from paychain.services.credentials import AuthenticatedCaller, extract_credential
from paychain.services.exceptions import (
    ChargeError,
    InternalError,
    TransactionNotFoundError,
    TransportError,
)
from paychain.services.ledger import TransactionLedger

logger = logging.getLogger(__name__)

router = APIRouter()

REPLAY_HEADER = "Idempotent-Replayed"


def client_ip_hint(request: Request) -> str:
    """First hop of X-Forwarded-For; recorded as a hint, never trusted for auth"""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    return first or "unknown"


@router.options("/charge", include_in_schema=False)
async def charge_preflight() -> PlainTextResponse:
    """Pre-flight probe; answered without a credential"""
    settings = get_settings()
    return PlainTextResponse(
        "ok",
        headers={
            "Access-Control-Allow-Origin": ", ".join(settings.cors_allow_origins_list) or "*",
            "Access-Control-Allow-Headers": ", ".join(settings.cors_allow_headers_list),
            "Access-Control-Allow-Methods": "POST, OPTIONS",
        },
    )


@router.api_route("/charge", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def charge_wrong_method() -> None:
    raise TransportError("Method not allowed")


@router.post(
    "/charge",
    response_model=Union[SandboxChargeResponse, LiveChargeResponse],
    responses={
        400: {"model": ChargeErrorResponse},
        401: {"model": ChargeErrorResponse},
        405: {"model": ChargeErrorResponse},
        500: {"model": ChargeErrorResponse},
        503: {"model": ChargeErrorResponse},
    },
    summary="Create a charge",
    description=(
        "Collect `amount` (integer minor units) from the payer's mobile wallet. "
        "Returns immediately with a PENDING transaction; settlement happens out-of-band. "
        "Authenticate with `X-Api-Key` or `Authorization: Bearer <key>`."
    ),
)
async def create_charge(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-Api-Key"),
    authorization: Optional[str] = Header(None),
    orchestrator: ChargeOrchestrator = Depends(get_charge_orchestrator),
) -> JSONResponse:
    """
    Charge flow: authenticate -> validate -> classify phone -> fee -> PENDING
    transaction -> schedule settlement.

    A repeated external_ref returns the original acknowledgement with
    `Idempotent-Replayed: true` instead of creating a second transaction.
    """
    raw_body = await request.body()
    try:
        result = orchestrator.charge(
            extract_credential(x_api_key, authorization),
            raw_body,
            client_ip=client_ip_hint(request),
        )
    except ChargeError:
        raise
    except Exception as e:
        # The transaction, if already inserted, stays PENDING for the reconciliation sweep
        logger.error("Unexpected charge failure", exc_info=True)
        raise InternalError() from e

    request.state.account_id = str(result.transaction.account_id)
    request.state.mode = result.transaction.mode

    headers = {REPLAY_HEADER: "true"} if result.replayed else None
    return JSONResponse(status_code=200, content=result.body, headers=headers)


@router.get(
    "/transactions/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction",
    description="Current status of one of the caller's own transactions.",
)
async def get_transaction(
    transaction_id: str,
    caller: AuthenticatedCaller = Depends(get_authenticated_caller),
    db: Session = Depends(get_db),
) -> TransactionResponse:
    transaction = TransactionLedger(db).get(transaction_id, account_id=caller.account.id)
    if transaction is None:
        raise TransactionNotFoundError(transaction_id)
    return TransactionResponse.from_transaction(transaction)
