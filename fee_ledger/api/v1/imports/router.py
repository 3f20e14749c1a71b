from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import resolve_year_code
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.config import settings
from fee_ledger.core.exceptions import ServiceError, to_http_exception
from fee_ledger.db.session import get_db

from .schemas import ExcelImportResponse, ImportResult
from . import service

router = APIRouter(prefix="/api/v1/imports", tags=["imports"])


@router.post(
    "/fee-workbook",
    response_model=ImportResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("imports", "create"))],
)
async def import_fee_workbook(
    file: UploadFile = File(..., description="Legacy fee workbook (.xlsx), one sheet per class"),
    academic_year: Optional[str] = Query(None, description="Defaults to the current academic year"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ImportResult:
    """
    Reconcile a legacy workbook into the ledger. Already-imported months are skipped;
    row failures are reported in the result rather than aborting the import.
    """
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an Excel file (.xlsx)")
    content = await file.read()
    if len(content) > settings.import_max_file_mb * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.import_max_file_mb} MB",
        )
    try:
        year = await resolve_year_code(db, academic_year)
        parsed = service.parse_fee_workbook(content)
        return await service.import_rows(
            db,
            parsed,
            year,
            current_user.id,
            file_name=file.filename,
            file_size=len(content),
        )
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "",
    response_model=List[ExcelImportResponse],
    dependencies=[Depends(check_permission("imports", "read"))],
)
async def list_imports(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ExcelImportResponse]:
    return await service.list_imports(db, limit=limit)
