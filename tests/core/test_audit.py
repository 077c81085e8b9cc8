from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, list_audit_entries
from src.modules.debts.models import ComponentType
from src.modules.payments.schemas import PaymentRequestCreate
from src.modules.payments.service import PaymentRequestService


class TestAuditTrail:
    """Ledger changes leave audit entries."""

    async def test_verification_is_audited(self, db_session: AsyncSession, make_ledger):
        student = await make_ledger([(ComponentType.LIVING_STIPEND, "500.00")])
        service = PaymentRequestService(db_session)
        request = await service.submit(student.id, PaymentRequestCreate(amount=Decimal("100")))
        await service.verify(request.id, verifier_id=2)

        entries, total = await list_audit_entries(
            db_session, entity_type="PaymentRequest", entity_id=request.id
        )
        assert total == 2
        assert [e.action for e in entries] == [
            AuditAction.VERIFY_PAYMENT_REQUEST.value,
            AuditAction.SUBMIT_PAYMENT_REQUEST.value,
        ]
        assert entries[0].user_id == 2
        assert entries[0].new_values["status"] == "VERIFIED"

        allocations, _ = await list_audit_entries(
            db_session, action=AuditAction.ALLOCATE_PAYMENT.value
        )
        assert len(allocations) == 1
        assert allocations[0].new_values["new_balance"] == "400.00"

    async def test_audit_endpoint(
        self, client: AsyncClient, make_ledger, admin_headers, registrar_headers
    ):
        await make_ledger(balance="1000.00")

        response = await client.get(
            "/api/v1/audit-trail",
            params={"action": AuditAction.SEED_LEDGER.value},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["items"][0]["entity_type"] == "DebtRecord"

        response = await client.get("/api/v1/audit-trail", headers=registrar_headers)
        assert response.status_code == 403
