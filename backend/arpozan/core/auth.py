"""
Authentication for the Arpozan backend
Verifies bearer JWTs issued by the identity provider and resolves the caller

The identity provider owns login and sessions; this module only turns a
signed token into a CallerIdentity and gates routes by role.
"""
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from arpozan.core.config import settings
from arpozan.domain.admin_user import AdminUser
from arpozan.domain.customer import Customer
from arpozan.repositories.admin_user_repository import AdminUserRepository
from arpozan.repositories.customer_repository import CustomerRepository


# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

# Role hierarchy: super_admin > admin > manager > viewer > customer
ROLE_HIERARCHY = {
    "super_admin": 5,
    "admin": 4,
    "manager": 3,
    "viewer": 2,
    "customer": 1,
}


class CallerIdentity(BaseModel):
    """Caller resolved from a verified token"""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "customer"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> dict:
    """
    Decode and validate a bearer JWT.

    Expected claims: sub (or id), email, role, exp.
    """
    if not settings.AUTH_SECRET:
        raise _unauthorized("Authentication is not configured")
    try:
        return jwt.decode(
            token,
            settings.AUTH_SECRET,
            algorithms=[settings.AUTH_ALGORITHM],
            options={"verify_aud": False},
        )
    except JWTError as e:
        if "expired" in str(e).lower():
            raise _unauthorized("Token has expired")
        raise _unauthorized(f"Invalid token: {str(e)}")


def identity_from_payload(payload: dict) -> CallerIdentity:
    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise _unauthorized("Invalid token payload: missing user id")
    return CallerIdentity(
        id=str(user_id),
        email=payload.get("email"),
        name=payload.get("name"),
        role=payload.get("role") or "customer",
    )


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CallerIdentity:
    """
    Dependency that extracts and validates the caller from the bearer token.

    Usage:
        @router.get("/protected")
        async def protected_route(caller: CallerIdentity = Depends(get_current_identity)):
            ...
    """
    if not credentials:
        raise _unauthorized("Authentication required")
    return identity_from_payload(decode_token(credentials.credentials))


async def get_current_identity_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[CallerIdentity]:
    """Optional authentication - None when no valid token is provided"""
    if not credentials:
        return None
    try:
        return identity_from_payload(decode_token(credentials.credentials))
    except HTTPException:
        return None


async def get_current_customer(
    caller: CallerIdentity = Depends(get_current_identity)
) -> Customer:
    """The active customer record behind the caller (cart routes)"""
    envelope = CustomerRepository().get_by_user_id(caller.id)
    if not envelope.success:
        raise HTTPException(status_code=envelope.status_code, detail=envelope.error)
    customer = envelope.data
    if customer is None or not customer.is_active:
        raise _unauthorized("Customer not found")
    return customer


def effective_role(caller: CallerIdentity) -> str:
    """
    Role used for authorization

    An active admin_users record overrides the token's role claim.
    """
    envelope = AdminUserRepository().get_by_user_id(caller.id)
    if envelope.success and isinstance(envelope.data, AdminUser):
        return getattr(envelope.data.role, "value", envelope.data.role)
    return caller.role


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.delete("/products/{product_id}")
        async def delete_product(
            product_id: str,
            caller: CallerIdentity = Depends(require_role("admin"))
        ):
            ...
    """
    async def role_checker(
        caller: CallerIdentity = Depends(get_current_identity)
    ) -> CallerIdentity:
        role = effective_role(caller)
        if ROLE_HIERARCHY.get(role, 0) < ROLE_HIERARCHY.get(required_role, 0):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role}, your role: {role}"
            )
        return caller.model_copy(update={"role": role})

    return role_checker


# Convenience dependencies for common role requirements
require_admin = require_role("admin")
require_manager = require_role("manager")
