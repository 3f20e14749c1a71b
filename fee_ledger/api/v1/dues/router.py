from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import resolve_year_code
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.enums import DueStatus, DueType
from fee_ledger.core.exceptions import ServiceError, to_http_exception
from fee_ledger.db.session import get_db

from .schemas import ClassDueSummary, DueFilters, DueListResponse, DueResponse, DueSummary, OneTimeChargeCreate
from . import service

router = APIRouter(prefix="/api/v1/dues", tags=["dues"])


@router.get(
    "",
    response_model=DueListResponse,
    dependencies=[Depends(check_permission("dues", "read"))],
)
async def list_dues(
    status_filter: Optional[DueStatus] = Query(None, alias="status"),
    due_type: Optional[DueType] = Query(None),
    class_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    month: Optional[str] = Query(None, description="YYYY-MM; only applied together with due_type=monthly"),
    academic_year: Optional[str] = Query(None, description="Defaults to the current academic year"),
    include_retired: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DueListResponse:
    try:
        year = await resolve_year_code(db, academic_year)
        filters = DueFilters(
            status=status_filter,
            due_type=due_type,
            class_id=class_id,
            student_id=student_id,
            month=month,
            academic_year=year,
            include_retired=include_retired,
        )
        return await service.get_student_dues(db, filters)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/summary/classes",
    response_model=List[ClassDueSummary],
    dependencies=[Depends(check_permission("dues", "read"))],
)
async def class_summary(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassDueSummary]:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.class_due_summary(db, year)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/summary/students/{student_id}",
    response_model=DueSummary,
    dependencies=[Depends(check_permission("dues", "read"))],
)
async def student_summary(
    student_id: UUID,
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DueSummary:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.student_due_summary(db, student_id, year)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post(
    "/one-time",
    response_model=DueResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("dues", "create"))],
)
async def levy_one_time_charge(
    payload: OneTimeChargeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DueResponse:
    try:
        year = await resolve_year_code(db, payload.academic_year)
        return await service.levy_one_time_charge(db, payload, year, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/{due_id}",
    response_model=DueResponse,
    dependencies=[Depends(check_permission("dues", "read"))],
)
async def get_due(
    due_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DueResponse:
    try:
        due = await service.get_due(db, due_id)
    except ServiceError as e:
        raise to_http_exception(e)
    return service._due_to_response(due)


@router.post(
    "/{due_id}/retire",
    response_model=DueResponse,
    dependencies=[Depends(check_permission("dues", "delete"))],
)
async def retire_due(
    due_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DueResponse:
    try:
        return await service.retire_due(db, due_id, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)
