from typing import Annotated

from fastapi import Depends, Header

from src.core.auth.jwt import decode_token, principal_from_payload
from src.core.auth.models import Principal, UserRole
from src.core.exceptions import AuthenticationError, AuthorizationError


async def get_current_principal(
    authorization: Annotated[str | None, Header()] = None,
) -> Principal:
    """
    Dependency to get the authenticated principal from the bearer token.

    Usage:
        @router.get("/me")
        async def get_me(principal: Principal = Depends(get_current_principal)):
            return principal
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")

    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    token = authorization.replace("Bearer ", "")

    payload = decode_token(token, token_type="access")
    return principal_from_payload(payload)


def require_roles(*roles: UserRole):
    """
    Dependency factory to require specific roles.

    Usage:
        @router.post("/payment-requests/{request_id}/verify")
        async def verify(
            principal: Principal = Depends(require_roles(UserRole.FINANCE))
        ):
            ...
    """

    async def role_checker(
        principal: Principal = Depends(get_current_principal),
    ) -> Principal:
        if not principal.has_role(*roles):
            allowed = ", ".join(r.value for r in roles)
            raise AuthorizationError(f"Required role: {allowed}")
        return principal

    return role_checker


async def require_student(
    principal: Principal = Depends(require_roles(UserRole.STUDENT)),
) -> Principal:
    """Student principal that is linked to a student record."""
    if principal.student_id is None:
        raise AuthorizationError("Student ID not found in session. Are you logged in as a student?")
    return principal


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
