"""API for dashboard summary (main page, Admin only)."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles
from src.core.auth.models import Principal, UserRole
from src.core.database.session import get_db
from src.modules.dashboard.schemas import DashboardResponse, StudentDebtRow
from src.modules.dashboard.service import DashboardService
from src.modules.students.models import EnrollmentStatus
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

DashboardUser = Depends(require_roles(UserRole.ADMIN))


@router.get("", response_model=ApiResponse[DashboardResponse])
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    principal: Principal = DashboardUser,
):
    """
    Collections, outstanding debt and pending verifications.

    Access: Admin only.
    """
    service = DashboardService(db)
    data = await service.get_summary()
    return ApiResponse(success=True, data=DashboardResponse(**data))


@router.get(
    "/student-debts",
    response_model=ApiResponse[PaginatedResponse[StudentDebtRow]],
)
async def list_student_debts(
    enrollment_status: EnrollmentStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    principal: Principal = DashboardUser,
):
    """Per student debt table for the dashboard."""
    service = DashboardService(db)
    rows, total = await service.list_student_debts(
        enrollment_status=enrollment_status, page=page, limit=limit
    )
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(items=rows, total=total, page=page, limit=limit),
    )
