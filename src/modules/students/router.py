"""API endpoints for Students module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles
from src.core.auth.models import Principal, UserRole
from src.core.database.session import get_db
from src.modules.students.models import EnrollmentStatus
from src.modules.students.schemas import (
    DepartmentResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)
from src.modules.students.service import StudentService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/students", tags=["Students"])

StaffOnly = Depends(require_roles(UserRole.ADMIN, UserRole.FINANCE, UserRole.REGISTRAR))
AdminOnly = Depends(require_roles(UserRole.ADMIN))


@router.get("/departments", response_model=ApiResponse[list[DepartmentResponse]])
async def list_departments(
    db: AsyncSession = Depends(get_db),
    principal: Principal = StaffOnly,
):
    service = StudentService(db)
    departments = await service.list_departments()
    return ApiResponse(
        success=True,
        data=[DepartmentResponse.model_validate(d) for d in departments],
    )


@router.post(
    "",
    response_model=ApiResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    data: StudentCreate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Create a student and seed the debt ledger. Requires ADMIN role."""
    service = StudentService(db)
    student = await service.create_student(data, principal.user_id)
    return ApiResponse(
        success=True,
        message="Student created successfully",
        data=StudentResponse.model_validate(student),
    )


@router.get("", response_model=ApiResponse[PaginatedResponse[StudentResponse]])
async def list_students(
    enrollment_status: EnrollmentStatus | None = Query(None),
    department_id: int | None = Query(None),
    batch: int | None = Query(None),
    search: str | None = Query(None, min_length=1),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    principal: Principal = StaffOnly,
):
    """List students with optional filters."""
    service = StudentService(db)
    students, total = await service.list_students(
        enrollment_status=enrollment_status,
        department_id=department_id,
        batch=batch,
        search=search,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        success=True,
        data=PaginatedResponse.create(
            items=[StudentResponse.model_validate(s) for s in students],
            total=total,
            page=page,
            limit=limit,
        ),
    )


@router.get("/{student_id}", response_model=ApiResponse[StudentResponse])
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = StaffOnly,
):
    service = StudentService(db)
    student = await service.get_student_by_id(student_id)
    return ApiResponse(success=True, data=StudentResponse.model_validate(student))


@router.patch("/{student_id}", response_model=ApiResponse[StudentResponse])
async def update_student(
    student_id: int,
    data: StudentUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Change department, batch or enrollment status."""
    service = StudentService(db)
    student = await service.update_student(student_id, data, principal.user_id)
    return ApiResponse(
        success=True,
        message="Student updated successfully",
        data=StudentResponse.model_validate(student),
    )


@router.delete("/{student_id}", response_model=ApiResponse[None])
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Delete a student and the whole ledger. Requires ADMIN role."""
    service = StudentService(db)
    await service.delete_student(student_id, principal.user_id)
    return ApiResponse(success=True, message="Student deleted successfully", data=None)
