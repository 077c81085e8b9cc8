"""API endpoints for Clearance module."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles, require_student
from src.core.auth.models import Principal, UserRole
from src.core.database.session import get_db
from src.modules.clearance.schemas import (
    ClearanceEligibility,
    ClearanceIssue,
    ClearanceLetterResponse,
    EligibleStudent,
    MyClearanceResponse,
)
from src.modules.clearance.service import ClearanceService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/clearance", tags=["Clearance"])


@router.get("/eligible", response_model=ApiResponse[list[EligibleStudent]])
async def list_eligible_students(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.REGISTRAR)),
):
    """Active students who owe nothing and can be cleared."""
    service = ClearanceService(db)
    students = await service.list_eligible()
    return ApiResponse(success=True, data=students)


@router.get(
    "/students/{student_id}/eligibility",
    response_model=ApiResponse[ClearanceEligibility],
)
async def get_student_eligibility(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.REGISTRAR)),
):
    service = ClearanceService(db)
    eligibility = await service.get_eligibility(student_id)
    return ApiResponse(success=True, data=eligibility)


@router.post(
    "/letters",
    response_model=ApiResponse[ClearanceLetterResponse],
    status_code=status.HTTP_201_CREATED,
)
async def issue_clearance_letter(
    data: ClearanceIssue,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.REGISTRAR)),
):
    """Issue a clearance letter. Refused while the student owes anything."""
    service = ClearanceService(db)
    letter = await service.issue(data.student_id, principal.user_id, data.notes)
    return ApiResponse(
        success=True,
        message="Clearance letter issued",
        data=ClearanceLetterResponse.model_validate(letter),
    )


@router.get("/me", response_model=ApiResponse[MyClearanceResponse])
async def get_my_clearance(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_student),
):
    """Latest clearance letter of the calling student, if any."""
    service = ClearanceService(db)
    letter = await service.get_latest_letter(principal.student_id)
    return ApiResponse(
        success=True,
        data=MyClearanceResponse(
            letter=ClearanceLetterResponse.model_validate(letter) if letter else None
        ),
    )
