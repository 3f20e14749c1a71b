from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import resolve_year_code
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.exceptions import ServiceError, to_http_exception
from fee_ledger.db.session import get_db

from .schemas import TransportFeeCreate, TransportFeeListResponse, TransportFeeResponse
from . import service

router = APIRouter(prefix="/api/v1/transport-fees", tags=["transport-fees"])


@router.get(
    "",
    response_model=TransportFeeListResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_transport_fees(
    academic_year: Optional[str] = Query(None, description="Defaults to the current academic year"),
    route_name: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TransportFeeListResponse:
    try:
        year = await resolve_year_code(db, academic_year)
        return await service.list_transport_fees(db, year, route_name)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post(
    "",
    response_model=TransportFeeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_transport_fee(
    payload: TransportFeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> TransportFeeResponse:
    try:
        year = await resolve_year_code(db, payload.academic_year)
        return await service.create_transport_fee(db, payload, year, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)
