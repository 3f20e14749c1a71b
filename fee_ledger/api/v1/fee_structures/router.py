from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import resolve_year_code
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.exceptions import ServiceError, to_http_exception
from fee_ledger.db.session import get_db

from .schemas import CommitResult, FeeOverviewResponse, FeeStructureResponse, FeeStructureSave, FeeTotalVariance
from . import service

router = APIRouter(prefix="/api/v1/fee-structures", tags=["fee-structures"])


@router.put(
    "",
    response_model=FeeStructureResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def save_fee_structure(
    payload: FeeStructureSave,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    """Save the editor rows for a class as a draft (create or replace)."""
    try:
        year = await resolve_year_code(db, payload.academic_year)
        return await service.save_fee_structure(db, payload, year, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post(
    "/{fee_structure_id}/commit",
    response_model=CommitResult,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def commit_fee_structure(
    fee_structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> CommitResult:
    try:
        return await service.commit_fee_structure(db, fee_structure_id, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_structures(
    academic_year: Optional[str] = Query(None),
    class_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeStructureResponse]:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.list_fee_structures(db, year, class_id=class_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/verify-totals",
    response_model=List[FeeTotalVariance],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def verify_totals(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeTotalVariance]:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.verify_fee_structure_totals(db, year)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/overview",
    response_model=FeeOverviewResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def overview(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeOverviewResponse:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.fee_structure_overview(db, year)
    except ServiceError as e:
        raise to_http_exception(e)
