from decimal import Decimal
from typing import Any


class AppException(Exception):
    """Base application exception."""

    code: str = "app_error"

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    code = "not_found"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        merged = dict(details or {})
        if field:
            merged["field"] = field
        super().__init__(message=message, status_code=422, details=merged)


class AuthenticationError(AppException):
    """Authentication failed."""

    code = "authentication_failed"

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Not authorized to perform action."""

    code = "not_authorized"

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message=message, status_code=403)


class DuplicateError(AppException):
    """Duplicate resource."""

    code = "duplicate"

    def __init__(self, resource: str, field: str, value: Any):
        message = f"{resource} with {field}={value} already exists"
        super().__init__(message=message, status_code=409, details={"field": field, "value": value})


class ExceedsComponentBalanceError(AppException):
    """Amount is larger than what is left on the targeted debt component."""

    code = "exceeds_component_balance"

    def __init__(self, component_id: int, requested: Decimal, remaining: Decimal):
        message = (
            f"Requested amount ({requested:.2f}) exceeds unpaid component balance "
            f"({remaining:.2f})"
        )
        super().__init__(
            message=message,
            status_code=400,
            details={
                "component_id": component_id,
                "requested": str(requested),
                "remaining": str(remaining),
            },
        )


class ExceedsTotalBalanceError(AppException):
    """Amount is larger than the student's total outstanding debt."""

    code = "exceeds_total_balance"

    def __init__(self, student_id: int, requested: Decimal, outstanding: Decimal):
        message = (
            f"Payment amount ({requested:.2f}) exceeds current balance ({outstanding:.2f})"
        )
        super().__init__(
            message=message,
            status_code=400,
            details={
                "student_id": student_id,
                "requested": str(requested),
                "outstanding": str(outstanding),
            },
        )


class RequestNotPendingError(AppException):
    """Payment request already reached a terminal state."""

    code = "request_not_pending"

    def __init__(self, request_id: int, status: str):
        super().__init__(
            message=f"Payment request {request_id} is not pending (status: {status})",
            status_code=409,
            details={"request_id": request_id, "status": status},
        )


class PolicyBlockedError(AppException):
    """Payment policy refuses the submission."""

    code = "policy_blocked"

    def __init__(self, message: str, blocking_components: int = 0):
        super().__init__(
            message=message,
            status_code=403,
            details={"blocking_components": blocking_components},
        )


class OutstandingBalanceError(AppException):
    """Clearance requested while the student still owes money."""

    code = "outstanding_balance"

    def __init__(self, student_id: int, amount: Decimal):
        self.amount = amount
        super().__init__(
            message=f"Outstanding balance {amount:.2f}. Clearance blocked.",
            status_code=403,
            details={"student_id": student_id, "amount": str(amount)},
        )


class ConcurrencyConflictError(AppException):
    """Lock or commit failed under contention; nothing was persisted, retry is safe."""

    code = "concurrency_conflict"

    def __init__(self, message: str = "The record was modified concurrently, please retry"):
        super().__init__(message=message, status_code=409)
