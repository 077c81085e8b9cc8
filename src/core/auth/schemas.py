from src.shared.schemas import BaseSchema


class PrincipalResponse(BaseSchema):
    """Principal as seen by the ledger."""

    user_id: int
    role: str
    student_id: int | None
