from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    DuplicateError,
    ExceedsComponentBalanceError,
    ExceedsTotalBalanceError,
    RequestNotPendingError,
    PolicyBlockedError,
    OutstandingBalanceError,
    ConcurrencyConflictError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "DuplicateError",
    "ExceedsComponentBalanceError",
    "ExceedsTotalBalanceError",
    "RequestNotPendingError",
    "PolicyBlockedError",
    "OutstandingBalanceError",
    "ConcurrencyConflictError",
]
