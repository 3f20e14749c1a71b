from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import resolve_year_code
from fee_ledger.auth.dependencies import get_current_user
from fee_ledger.auth.rbac import check_permission
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.core.enums import PaymentStatus
from fee_ledger.core.exceptions import ServiceError, to_http_exception
from fee_ledger.db.session import get_db

from .schemas import PaymentReceipt, PaymentResponse, PaymentResult, RecordPaymentRequest, RejectPaymentRequest
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("payments", "create"))],
)
async def record_payment(
    payload: RecordPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResult:
    """Record a payment split across dues and custom charges. All allocations apply or none do."""
    try:
        year = await resolve_year_code(db, payload.academic_year)
        return await service.record_payment(db, payload, year, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def list_payments(
    student_id: Optional[UUID] = Query(None),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    academic_year: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentResponse]:
    return await service.list_payments(
        db,
        student_id=student_id,
        status=status_filter,
        academic_year=academic_year,
        limit=limit,
    )


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.get_payment(db, payment_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.get(
    "/{payment_id}/receipt",
    response_model=PaymentReceipt,
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def payment_receipt(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentReceipt:
    try:
        return await service.payment_receipt(db, payment_id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post(
    "/{payment_id}/verify",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "verify"))],
)
async def verify_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.verify_payment(db, payment_id, current_user.id)
    except ServiceError as e:
        raise to_http_exception(e)


@router.post(
    "/{payment_id}/reject",
    response_model=PaymentResult,
    dependencies=[Depends(check_permission("payments", "verify"))],
)
async def reject_payment(
    payment_id: UUID,
    payload: Optional[RejectPaymentRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResult:
    try:
        reason = payload.reason if payload else None
        return await service.reject_payment(db, payment_id, current_user.id, reason)
    except ServiceError as e:
        raise to_http_exception(e)
