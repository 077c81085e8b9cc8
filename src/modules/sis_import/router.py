"""API endpoints for SIS import module."""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth.dependencies import require_roles
from src.core.auth.models import Principal, UserRole
from src.core.database.session import get_db
from src.modules.sis_import.schemas import (
    SisBatchStudent,
    SisImportBatchResponse,
    SisImportResult,
    SisPreviewResponse,
    SisRecordsImport,
)
from src.modules.sis_import.service import SisImportService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/sis-imports", tags=["SIS Import"])

AdminOnly = Depends(require_roles(UserRole.ADMIN))


@router.post("/preview", response_model=ApiResponse[SisPreviewResponse])
async def preview_sis_file(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Parse an SIS export and show the summary and the first rows. Nothing is saved."""
    content = await file.read()
    service = SisImportService(db)
    preview = service.preview(content, file.filename)
    return ApiResponse(success=True, data=preview)


@router.post(
    "",
    response_model=ApiResponse[SisImportResult],
    status_code=status.HTTP_201_CREATED,
)
async def import_sis_file(
    file: UploadFile = File(...),
    notes: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Import an SIS export. Refused as a whole if any row has errors."""
    content = await file.read()
    service = SisImportService(db)
    result = await service.import_file(content, file.filename, principal.user_id, notes)
    return ApiResponse(success=True, message="SIS data imported", data=result)


@router.post(
    "/records",
    response_model=ApiResponse[SisImportResult],
    status_code=status.HTTP_201_CREATED,
)
async def import_sis_records(
    data: SisRecordsImport,
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Import records that were already parsed by the client."""
    service = SisImportService(db)
    result = await service.import_records(
        data.records,
        principal.user_id,
        file_name=data.file_name,
        notes=data.notes,
    )
    return ApiResponse(success=True, message="SIS data imported", data=result)


@router.get("", response_model=ApiResponse[list[SisImportBatchResponse]])
async def list_sis_import_batches(
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    """Latest import batches, newest first."""
    service = SisImportService(db)
    batches = await service.list_batches()
    return ApiResponse(
        success=True,
        data=[SisImportBatchResponse.model_validate(b) for b in batches],
    )


@router.get("/{batch_id}/students", response_model=ApiResponse[list[SisBatchStudent]])
async def list_sis_batch_students(
    batch_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = AdminOnly,
):
    service = SisImportService(db)
    students = await service.list_batch_students(batch_id)
    return ApiResponse(success=True, data=students)
