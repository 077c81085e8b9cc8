from datetime import datetime

from src.shared.schemas.base import BaseSchema


class AuditTrailEntryResponse(BaseSchema):
    """Single audit log entry."""

    id: int
    user_id: int | None
    action: str
    entity_type: str
    entity_id: int
    entity_identifier: str | None
    old_values: dict | None
    new_values: dict | None
    comment: str | None
    created_at: datetime
