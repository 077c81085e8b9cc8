from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from src.core.auth.models import Principal, UserRole
from src.core.config import settings
from src.core.exceptions import AuthenticationError


def create_access_token(user_id: int, role: str, student_id: int | None = None) -> str:
    """Create JWT access token (used by tests and local tooling; production tokens come from the IdP)."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "role": str(role),
        "student_id": student_id,
        "type": "access",
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """
    Decode and validate JWT token.

    Args:
        token: JWT token string
        token_type: Expected token type

    Returns:
        Decoded token payload

    Raises:
        AuthenticationError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        if payload.get("type") != token_type:
            raise AuthenticationError(f"Invalid token type, expected {token_type}")

        return payload

    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {str(e)}")


def principal_from_payload(payload: dict[str, Any]) -> Principal:
    """Build a Principal from verified token claims."""
    try:
        role = UserRole(payload["role"])
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationError("Token is missing identity claims")

    student_id = payload.get("student_id")
    return Principal(
        user_id=user_id,
        role=role,
        student_id=int(student_id) if student_id is not None else None,
    )
