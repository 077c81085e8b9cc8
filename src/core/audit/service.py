from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog


class AuditAction(StrEnum):
    """Standard audit actions."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    # Domain-specific actions
    SEED_LEDGER = "SEED_LEDGER"
    SUBMIT_PAYMENT_REQUEST = "SUBMIT_PAYMENT_REQUEST"
    VERIFY_PAYMENT_REQUEST = "VERIFY_PAYMENT_REQUEST"
    REJECT_PAYMENT_REQUEST = "REJECT_PAYMENT_REQUEST"
    ALLOCATE_PAYMENT = "ALLOCATE_PAYMENT"
    ISSUE_CLEARANCE = "ISSUE_CLEARANCE"
    SIS_IMPORT = "SIS_IMPORT"


class AuditService:
    """Service for creating audit logs."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str | AuditAction,
        entity_type: str,
        entity_id: int,
        user_id: int | None = None,
        entity_identifier: str | None = None,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        comment: str | None = None,
    ) -> AuditLog:
        """Create an audit log entry in the current transaction."""
        audit_log = AuditLog(
            user_id=user_id,
            action=str(action),
            entity_type=entity_type,
            entity_id=entity_id,
            entity_identifier=entity_identifier,
            old_values=old_values,
            new_values=new_values,
            comment=comment,
        )

        self.db.add(audit_log)
        await self.db.flush()

        return audit_log


async def list_audit_entries(
    session: AsyncSession,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    user_id: int | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    action: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """
    List audit log entries with optional filters.
    Returns (entries, total_count).
    """
    q = select(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    count_q = select(func.count()).select_from(AuditLog)
    filters = []
    if date_from is not None:
        filters.append(AuditLog.created_at >= date_from)
    if date_to is not None:
        filters.append(AuditLog.created_at <= date_to)
    if user_id is not None:
        filters.append(AuditLog.user_id == user_id)
    if entity_type is not None:
        filters.append(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        filters.append(AuditLog.entity_id == entity_id)
    if action is not None:
        filters.append(AuditLog.action == action)
    if filters:
        q = q.where(*filters)
        count_q = count_q.where(*filters)

    total = (await session.execute(count_q)).scalar_one()

    q = q.offset((page - 1) * limit).limit(limit)
    result = await session.execute(q)
    return list(result.scalars().all()), total
