"""Tests for payment request API endpoints."""

from decimal import Decimal

from httpx import AsyncClient

from src.core.auth.models import UserRole
from src.modules.debts.models import ComponentType

STUDENT_USER_ID = 100


class TestPaymentRequestsAPI:
    """Student submits, finance verifies or rejects."""

    async def test_submit_and_verify(
        self, client: AsyncClient, make_ledger, auth_headers, finance_headers
    ):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        student_headers = auth_headers(
            UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id
        )

        response = await client.post(
            "/api/v1/payment-requests",
            json={"amount": "700.00", "transaction_ref": "BANK-77"},
            headers=student_headers,
        )
        assert response.status_code == 201
        request = response.json()["data"]
        assert request["status"] == "PENDING"

        response = await client.get("/api/v1/payment-requests", headers=finance_headers)
        assert response.status_code == 200
        queue = response.json()["data"]
        assert queue["total"] == 1
        assert queue["items"][0]["id"] == request["id"]

        response = await client.post(
            f"/api/v1/payment-requests/{request['id']}/verify", headers=finance_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["request"]["status"] == "VERIFIED"
        assert Decimal(data["allocation"]["new_balance"]) == Decimal("800.00")

        response = await client.get("/api/v1/debts/me", headers=student_headers)
        summary = response.json()["data"]
        assert Decimal(summary["current_balance"]) == Decimal("800.00")
        assert summary["payment_count"] == 1
        assert summary["recent_requests"][0]["status"] == "VERIFIED"

    async def test_second_verify_conflicts(
        self, client: AsyncClient, make_ledger, auth_headers, finance_headers
    ):
        student = await make_ledger([(ComponentType.LIVING_STIPEND, "500.00")])
        response = await client.post(
            "/api/v1/payment-requests",
            json={"amount": "100.00"},
            headers=auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id),
        )
        request_id = response.json()["data"]["id"]

        await client.post(f"/api/v1/payment-requests/{request_id}/verify", headers=finance_headers)
        response = await client.post(
            f"/api/v1/payment-requests/{request_id}/verify", headers=finance_headers
        )

        assert response.status_code == 409
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "request_not_pending"

    async def test_reject_without_body(
        self, client: AsyncClient, make_ledger, auth_headers, finance_headers
    ):
        student = await make_ledger([(ComponentType.LIVING_STIPEND, "500.00")])
        response = await client.post(
            "/api/v1/payment-requests",
            json={"amount": "100.00"},
            headers=auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id),
        )
        request_id = response.json()["data"]["id"]

        response = await client.post(
            f"/api/v1/payment-requests/{request_id}/reject", headers=finance_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "REJECTED"

    async def test_policy_block_is_forbidden(self, client: AsyncClient, make_ledger, auth_headers):
        student = await make_ledger(
            [(ComponentType.LIVING_STIPEND, "500.00"), (ComponentType.TUITION, "1000.00")]
        )
        response = await client.post(
            "/api/v1/payment-requests",
            json={
                "amount": "100.00",
                "semester": "2024-FALL",
                "academic_year": "2024/2025",
                "component_type": "TUITION",
            },
            headers=auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id),
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "policy_blocked"
        assert "Living stipend must be fully paid" in body["message"]

    async def test_exceeding_balance_is_bad_request(
        self, client: AsyncClient, make_ledger, auth_headers
    ):
        student = await make_ledger(balance="100.00")
        response = await client.post(
            "/api/v1/payment-requests",
            json={"amount": "100.01"},
            headers=auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id),
        )

        assert response.status_code == 400
        assert response.json()["code"] == "exceeds_total_balance"

    async def test_non_positive_amount_is_invalid(
        self, client: AsyncClient, make_ledger, auth_headers
    ):
        student = await make_ledger(balance="100.00")
        response = await client.post(
            "/api/v1/payment-requests",
            json={"amount": "0"},
            headers=auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id),
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "amount"

    async def test_student_cannot_verify(self, client: AsyncClient, make_ledger, auth_headers):
        student = await make_ledger(balance="100.00")
        headers = auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id)
        response = await client.post(
            "/api/v1/payment-requests", json={"amount": "10.00"}, headers=headers
        )
        request_id = response.json()["data"]["id"]

        response = await client.post(
            f"/api/v1/payment-requests/{request_id}/verify", headers=headers
        )
        assert response.status_code == 403

    async def test_my_requests(self, client: AsyncClient, make_ledger, auth_headers):
        student = await make_ledger(balance="100.00")
        headers = auth_headers(UserRole.STUDENT, STUDENT_USER_ID, student_id=student.id)
        await client.post("/api/v1/payment-requests", json={"amount": "10.00"}, headers=headers)

        response = await client.get("/api/v1/payment-requests/me", headers=headers)
        assert response.status_code == 200
        assert len(response.json()["data"]) == 1
