"""
Security models - Roles enum
"""

import enum


class Role(str, enum.Enum):
    """Operator RBAC roles"""
    ADMIN = "ADMIN"
    COMPLIANCE = "COMPLIANCE"
    OPS = "OPS"
    READ_ONLY = "READ_ONLY"
