"""API endpoints for Payments module."""

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles, require_student
from src.core.auth.models import Principal, UserRole
from src.core.database.session import get_db
from src.modules.payments.models import PaymentRequestStatus
from src.modules.payments.schemas import (
    PaymentRequestCreate,
    PaymentRequestFilters,
    PaymentRequestReject,
    PaymentRequestResponse,
    VerificationResponse,
)
from src.modules.payments.service import PaymentRequestService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/payment-requests", tags=["Payment Requests"])


@router.post(
    "",
    response_model=ApiResponse[PaymentRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def submit_payment_request(
    data: PaymentRequestCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_student),
):
    """Submit a payment request for verification by finance."""
    service = PaymentRequestService(db)
    request = await service.submit(principal.student_id, data, principal.user_id)
    return ApiResponse(
        success=True,
        message="Payment request submitted for verification",
        data=PaymentRequestResponse.model_validate(request),
    )


@router.get("/me", response_model=ApiResponse[list[PaymentRequestResponse]])
async def list_my_payment_requests(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_student),
):
    """Payment requests of the calling student, newest first."""
    service = PaymentRequestService(db)
    requests = await service.list_student_requests(principal.student_id)
    return ApiResponse(
        success=True,
        data=[PaymentRequestResponse.model_validate(r) for r in requests],
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[PaymentRequestResponse]])
async def list_payment_requests(
    request_status: PaymentRequestStatus = Query(PaymentRequestStatus.PENDING, alias="status"),
    all_statuses: bool = Query(False),
    student_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.FINANCE)),
):
    """Verification queue. Pending requests unless another status is asked for."""
    filters = PaymentRequestFilters(
        status=None if all_statuses else request_status,
        student_id=student_id,
        page=page,
        limit=limit,
    )
    service = PaymentRequestService(db)
    requests, total = await service.list_requests(filters)
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[PaymentRequestResponse.model_validate(r) for r in requests],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.post("/{request_id}/verify", response_model=ApiResponse[VerificationResponse])
async def verify_payment_request(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.FINANCE)),
):
    """Verify a pending request and apply it to the student's ledger."""
    service = PaymentRequestService(db)
    request, allocation = await service.verify(request_id, principal.user_id)
    return ApiResponse(
        success=True,
        message="Payment verified and debt updated successfully",
        data=VerificationResponse(
            request=PaymentRequestResponse.model_validate(request),
            allocation=allocation,
        ),
    )


@router.post("/{request_id}/reject", response_model=ApiResponse[PaymentRequestResponse])
async def reject_payment_request(
    request_id: int,
    data: PaymentRequestReject | None = Body(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.FINANCE)),
):
    """Reject a pending request. The ledger is not changed."""
    service = PaymentRequestService(db)
    request = await service.reject(
        request_id, principal.user_id, data.reason if data else None
    )
    return ApiResponse(
        success=True,
        message="Payment request rejected",
        data=PaymentRequestResponse.model_validate(request),
    )
