from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from jose import jwt

from src.core.auth.jwt import create_access_token, decode_token, principal_from_payload
from src.core.auth.models import UserRole
from src.core.config import settings
from src.core.exceptions import AuthenticationError


class TestTokens:
    """Tests for bearer token decoding."""

    def test_principal_from_student_token(self):
        token = create_access_token(100, UserRole.STUDENT.value, student_id=7)
        principal = principal_from_payload(decode_token(token))

        assert principal.user_id == 100
        assert principal.role == UserRole.STUDENT
        assert principal.student_id == 7
        assert principal.is_student

    def test_staff_token_has_no_student(self):
        token = create_access_token(2, UserRole.FINANCE.value)
        principal = principal_from_payload(decode_token(token))

        assert principal.student_id is None
        assert principal.has_role(UserRole.ADMIN, UserRole.FINANCE)
        assert not principal.has_role(UserRole.REGISTRAR)

    def test_wrong_token_type(self):
        token = jwt.encode(
            {
                "sub": "1",
                "role": "ADMIN",
                "type": "refresh",
                "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            },
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_expired_token(self):
        token = jwt.encode(
            {
                "sub": "1",
                "role": "ADMIN",
                "type": "access",
                "exp": datetime.now(timezone.utc) - timedelta(minutes=1),
            },
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_unknown_role(self):
        """Roles outside the ledger's set are refused."""
        with pytest.raises(AuthenticationError):
            principal_from_payload({"sub": "1", "role": "Janitor"})


class TestAuthEndpoints:
    """Tests for auth API endpoints."""

    async def test_get_me_unauthorized(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == "authentication_failed"

    async def test_get_me_malformed_header(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/auth/me", headers={"Authorization": "Token abc"}
        )
        assert response.status_code == 401

    async def test_get_me_authorized(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/v1/auth/me",
            headers=auth_headers(UserRole.STUDENT, 100, student_id=5),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user_id"] == 100
        assert data["role"] == "STUDENT"
        assert data["student_id"] == 5

    async def test_student_cannot_reach_finance_queue(self, client: AsyncClient, auth_headers):
        response = await client.get(
            "/api/v1/payment-requests",
            headers=auth_headers(UserRole.STUDENT, 100, student_id=5),
        )
        assert response.status_code == 403
        assert response.json()["code"] == "not_authorized"
