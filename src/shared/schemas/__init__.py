from src.shared.schemas.base import (
    BaseSchema,
    PaginatedResponse,
    SuccessResponse,
    ErrorResponse,
    ErrorDetail,
)

__all__ = [
    "BaseSchema",
    "PaginatedResponse",
    "SuccessResponse",
    "ErrorResponse",
    "ErrorDetail",
]
