"""
Role-Based Access Control (RBAC) dependencies.

Procurement staff and administrators form a hierarchy; suppliers are a separate
audience and never inherit staff permissions.
"""
from enum import Enum
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPAuthorizationCredentials

from tenderflow.core.security import decode_token, security


class Role(str, Enum):
    ADMIN = "admin"
    PROCUREMENT = "procurement"
    SUPPLIER = "supplier"


# Staff hierarchy: higher index = more permissions
ROLE_HIERARCHY = {
    Role.PROCUREMENT: 1,
    Role.ADMIN: 2,
}


def has_permission(user_role: Role, required_role: Role) -> bool:
    """Check if user role has sufficient permissions."""
    if required_role == Role.SUPPLIER:
        return user_role == Role.SUPPLIER
    return ROLE_HIERARCHY.get(user_role, 0) >= ROLE_HIERARCHY.get(required_role, 0)


def _parse_role(raw) -> Role:
    try:
        return Role(str(raw or "").lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {raw}",
        )


def build_user_context(payload: dict) -> dict:
    """Normalize token claims into the user context used by routes."""
    user_id_raw = payload.get("sub") or payload.get("user_id")
    if user_id_raw is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier (sub)",
        )
    role = _parse_role(payload.get("role"))
    return {
        "user_id": int(user_id_raw),
        "email": payload.get("email"),
        "role": role,
        "is_admin": role == Role.ADMIN,
    }


class RBACChecker:
    """Dependency for checking role-based access."""

    def __init__(self, required_role: Role):
        self.required_role = required_role

    async def __call__(
        self,
        credentials: HTTPAuthorizationCredentials = Depends(security)
    ) -> dict:
        context = build_user_context(decode_token(credentials.credentials))

        if not has_permission(context["role"], self.required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {self.required_role.value}",
            )

        return context


require_procurement = RBACChecker(Role.PROCUREMENT)
require_admin = RBACChecker(Role.ADMIN)
require_supplier = RBACChecker(Role.SUPPLIER)
