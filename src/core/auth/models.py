from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class UserRole(StrEnum):
    """Roles carried in identity-provider tokens."""

    ADMIN = "ADMIN"
    FINANCE = "FINANCE"
    REGISTRAR = "REGISTRAR"
    STUDENT = "STUDENT"


class Principal(BaseModel):
    """
    Already-authenticated caller.

    Identities live in the external identity provider; the ledger only keeps
    the ``user_id`` as an opaque reference on the rows a principal touches.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    role: UserRole
    student_id: int | None = None

    def has_role(self, *roles: UserRole) -> bool:
        """Check if principal has any of the specified roles."""
        return self.role in roles

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT
