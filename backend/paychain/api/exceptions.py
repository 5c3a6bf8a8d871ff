"""
Global exception handlers

Two response shapes:
- charge-engine failures (ChargeError): {"success": false, "error": <message>}
- everything else: {"error": {"code", "message", "trace_id"}}
"""

import logging
from typing import Any, Dict
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from paychain.services.exceptions import (
    AccountNotFoundError,
    ChargeError,
    ComplianceStateError,
    InvalidTransitionError,
    TransactionNotFoundError,
    TransportError,
)
from paychain.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)

ALLOWED_CHARGE_METHODS = "POST, OPTIONS"


def _error_envelope(request: Request, code: str, message: str, **extra: Any) -> Dict[str, Any]:
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "trace_id": get_trace_id(request),
    }
    error.update(extra)
    return {"error": error}


async def charge_error_handler(request: Request, exc: ChargeError) -> JSONResponse:
    """Classified charge failures; 5xx detail stays in the logs"""
    if exc.status_code >= 500:
        logger.error(
            "Charge failed with server error",
            extra={"code": exc.code, "path": request.url.path, "trace_id": get_trace_id(request)},
        )

    headers = {"Allow": ALLOWED_CHARGE_METHODS} if isinstance(exc, TransportError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
        headers=headers,
    )


async def compliance_state_handler(request: Request, exc: ComplianceStateError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_envelope(request, exc.code, exc.message),
    )


async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_envelope(request, "INVALID_TRANSITION", str(exc)),
    )


async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    """TransactionNotFoundError / AccountNotFoundError"""
    code = "TRANSACTION_NOT_FOUND" if isinstance(exc, TransactionNotFoundError) else "ACCOUNT_NOT_FOUND"
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=_error_envelope(request, code, str(exc)),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions"""
    trace_id = get_trace_id(request)

    # Detail already shaped as {"error": {...}}: keep its code, add the trace id
    if isinstance(exc.detail, dict) and isinstance(exc.detail.get("error"), dict):
        error_response: Dict[str, Any] = {"error": dict(exc.detail["error"])}
        error_response["error"].setdefault("trace_id", trace_id)
    else:
        error_response = _error_envelope(
            request,
            f"HTTP_{exc.status_code}",
            exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Pydantic request validation (admin, account and webhook schemas)"""
    details = [
        {
            "loc": list(error.get("loc", ())),
            "msg": str(error.get("msg", "")),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_envelope(request, "VALIDATION_ERROR", "Request validation failed", details=details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything uncaught: logged with its trace id, returned without detail"""
    trace_id = get_trace_id(request)
    logger.error("Unhandled exception", exc_info=exc, extra={"trace_id": trace_id, "path": request.url.path})

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_envelope(request, "INTERNAL_ERROR", "An internal error occurred"),
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(ChargeError, charge_error_handler)
    app.add_exception_handler(ComplianceStateError, compliance_state_handler)
    app.add_exception_handler(InvalidTransitionError, invalid_transition_handler)
    app.add_exception_handler(TransactionNotFoundError, not_found_handler)
    app.add_exception_handler(AccountNotFoundError, not_found_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
