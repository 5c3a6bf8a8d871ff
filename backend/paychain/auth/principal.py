"""
Operator principal decoded from an admin JWT
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jwt

from paychain.core.security.models import Role
from paychain.infrastructure.settings import get_settings

# Highest privilege first; used when a token carries several roles
ROLE_PRIORITY = (Role.ADMIN, Role.COMPLIANCE, Role.OPS, Role.READ_ONLY)


@dataclass
class Principal:
    """Authenticated operator"""
    subject: str  # JWT 'sub' claim
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    raw_claims: Dict[str, Any] = field(default_factory=dict)

    def has_any_role(self, *roles: Role) -> bool:
        held = {r.upper() for r in self.roles}
        return any(role.value in held for role in roles)

    @property
    def primary_role(self) -> Role:
        for role in ROLE_PRIORITY:
            if self.has_any_role(role):
                return role
        return Role.READ_ONLY


def decode_admin_token(token: str) -> Principal:
    """
    Verify an HS256 admin token and build the Principal.

    Raises jwt.InvalidTokenError (including ExpiredSignatureError) on failure.
    """
    settings = get_settings()
    if not settings.JWT_SECRET:
        raise jwt.InvalidTokenError("JWT_SECRET not configured")

    payload = jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["sub"]},
    )

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]

    return Principal(
        subject=payload["sub"],
        email=payload.get("email"),
        roles=list(roles),
        raw_claims=payload,
    )
