"""API endpoints for Debts module."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles, require_student
from src.core.auth.models import Principal, UserRole
from src.core.database.session import get_db
from src.modules.debts.models import ComponentType
from src.modules.debts.schemas import DebtComponentResponse, DebtSummary
from src.modules.debts.service import DebtLedgerService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/debts", tags=["Debts"])


@router.get("/me", response_model=ApiResponse[DebtSummary])
async def get_my_debt(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_student),
):
    """Ledger summary of the calling student."""
    service = DebtLedgerService(db)
    summary = await service.get_summary(principal.student_id)
    return ApiResponse(success=True, data=summary)


@router.get("/me/components", response_model=ApiResponse[list[DebtComponentResponse]])
async def list_my_unpaid_components(
    component_type: ComponentType | None = Query(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_student),
):
    """Outstanding components of the calling student, earliest due first."""
    service = DebtLedgerService(db)
    components = await service.list_unpaid_components(principal.student_id, component_type)
    return ApiResponse(
        success=True,
        data=[DebtComponentResponse.model_validate(c) for c in components],
    )


@router.get("/students/{student_id}", response_model=ApiResponse[DebtSummary])
async def get_student_debt(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(
        require_roles(UserRole.ADMIN, UserRole.FINANCE, UserRole.REGISTRAR)
    ),
):
    """Ledger summary of any student."""
    service = DebtLedgerService(db)
    summary = await service.get_summary(student_id)
    return ApiResponse(success=True, data=summary)
