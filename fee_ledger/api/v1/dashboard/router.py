from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import resolve_year_code
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.exceptions import ServiceError, to_http_exception
from fee_ledger.db.session import get_db

from .schemas import ClassCollection, DashboardStats, PendingActions, TrendPoint
from . import service

router = APIRouter(
    prefix="/api/v1/dashboard",
    tags=["dashboard"],
    dependencies=[Depends(check_permission("dashboard", "read"))],
)


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DashboardStats:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.get_dashboard_stats(db, year, datetime.utcnow())
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/class-collections", response_model=List[ClassCollection])
async def class_collections(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ClassCollection]:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.class_collections(db, year)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/collection-trend", response_model=List[TrendPoint])
async def collection_trend(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[TrendPoint]:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.collection_trend(db, year)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get("/pending-actions", response_model=PendingActions)
async def pending_actions(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PendingActions:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.pending_actions(db, year, datetime.utcnow())
    except ServiceError as e:
        raise to_http_exception(e)
