from fastapi import APIRouter

from src.core.auth.dependencies import CurrentPrincipal
from src.core.auth.schemas import PrincipalResponse
from src.shared.schemas import SuccessResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.get("/me", response_model=SuccessResponse[PrincipalResponse])
async def get_current_principal_info(principal: CurrentPrincipal):
    """Get the principal decoded from the bearer token."""
    return SuccessResponse(
        data=PrincipalResponse(
            user_id=principal.user_id,
            role=principal.role.value,
            student_id=principal.student_id,
        ),
        message="Principal info retrieved",
    )
