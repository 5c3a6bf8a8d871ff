"""
Authentication dependencies for FastAPI

- merchant API: API key (X-Api-Key or Bearer) -> AuthenticatedCaller
- admin API: HS256 JWT with a 'roles' claim -> Principal
"""

from typing import Optional
from fastapi import Depends, HTTPException, Header, Request, status
from sqlalchemy.orm import Session
import jwt

from paychain.auth.principal import Principal, decode_admin_token
from paychain.core.security.models import Role
from paychain.infrastructure.database import get_db
from paychain.services.credentials import AuthenticatedCaller, authenticate_credential, extract_credential


def _auth_error(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": code,
                "message": message,
            }
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_authenticated_caller(
    request: Request,
    x_api_key: Optional[str] = Header(None, alias="X-Api-Key"),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> AuthenticatedCaller:
    """
    Merchant credential for the account/compliance/transaction endpoints.

    AuthError subclasses propagate to the ChargeError handler.
    """
    caller = authenticate_credential(db, extract_credential(x_api_key, authorization))
    request.state.account_id = str(caller.account.id)
    request.state.mode = caller.mode.value
    return caller


async def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Principal:
    """Decode the operator's bearer token"""
    if not authorization:
        raise _auth_error("AUTHORIZATION_MISSING", "Authorization header missing")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _auth_error("INVALID_AUTH_SCHEME", "Authorization header must be 'Bearer <token>'")

    try:
        principal = decode_admin_token(token.strip())
    except jwt.ExpiredSignatureError:
        raise _auth_error("TOKEN_EXPIRED", "Token expired")
    except jwt.InvalidTokenError:
        raise _auth_error("INVALID_TOKEN", "Invalid token")

    request.state.actor_subject = principal.subject
    request.state.actor_role = principal.primary_role.value
    return principal


def require_roles(*roles: Role):
    """Dependency factory: the principal must hold at least one of roles"""
    names = " or ".join(role.value for role in roles)

    async def _check_role(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_any_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "INSUFFICIENT_ROLE",
                        "message": f"Insufficient permissions - {names} role required",
                    }
                },
            )
        return principal

    return _check_role


require_admin = require_roles(Role.ADMIN)
require_compliance_or_admin = require_roles(Role.COMPLIANCE, Role.ADMIN)
