import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core import academic_calendar
from fee_ledger.core.audit_service import log_fee_audit
from fee_ledger.core.exceptions import ServiceError, UnknownStudent, ValidationError
from fee_ledger.core.ledger import is_whole_cents, to_money
from fee_ledger.core.models import SchoolClass, Student, TransportFee

from .schemas import TransportFeeCreate, TransportFeeListResponse, TransportFeeResponse

logger = logging.getLogger(__name__)


def _to_response(
    fee: TransportFee,
    student_name: Optional[str] = None,
    class_name: Optional[str] = None,
) -> TransportFeeResponse:
    return TransportFeeResponse(
        id=fee.id,
        student_id=fee.student_id,
        student_name=student_name,
        class_name=class_name,
        route_name=fee.route_name,
        monthly_amount=to_money(fee.monthly_amount),
        academic_year=fee.academic_year,
        start_date=fee.start_date,
        end_date=fee.end_date,
        is_active=fee.is_active,
        created_at=fee.created_at,
    )


async def create_transport_fee(
    db: AsyncSession,
    payload: TransportFeeCreate,
    academic_year: str,
    created_by: Optional[UUID],
) -> TransportFeeResponse:
    """Put a student on a van route for the year. A student holds at most one active route per year."""
    route_name = payload.route_name.strip()
    errors = []
    if not route_name:
        errors.append({"field": "route_name", "message": "must not be blank"})
    if not is_whole_cents(payload.monthly_amount):
        errors.append({"field": "monthly_amount", "message": "at most 2 decimal places"})
    start_date = payload.start_date or academic_calendar.first_day_of_month(
        academic_calendar.months_of(academic_year)[0]
    )
    if payload.end_date is not None and payload.end_date < start_date:
        errors.append({"field": "end_date", "message": "must not be before start_date"})
    if errors:
        raise ValidationError("Invalid transport fee", errors)

    student = await db.get(Student, payload.student_id)
    if student is None:
        raise UnknownStudent(payload.student_id)
    if student.status != "ACTIVE":
        raise ServiceError("Cannot assign transport to an inactive student", status.HTTP_400_BAD_REQUEST)

    existing = await db.execute(
        select(TransportFee.id).where(
            TransportFee.student_id == student.id,
            TransportFee.academic_year == academic_year,
            TransportFee.is_active.is_(True),
        )
    )
    if existing.first() is not None:
        raise ServiceError(
            f"Student already has an active transport route for {academic_year}",
            status.HTTP_409_CONFLICT,
        )

    fee = TransportFee(
        student_id=student.id,
        route_name=route_name,
        monthly_amount=to_money(payload.monthly_amount),
        academic_year=academic_year,
        start_date=start_date,
        end_date=payload.end_date,
        is_active=True,
        created_by=created_by,
    )
    db.add(fee)
    await db.flush()
    await log_fee_audit(
        db, "transport_fees", fee.id, "CREATE",
        None,
        {"student_id": str(student.id), "route_name": route_name, "monthly_amount": str(fee.monthly_amount)},
        created_by,
    )
    await db.commit()
    await db.refresh(fee)
    logger.info("Student %s assigned to route %s for %s", student.id, route_name, academic_year)
    school_class = await db.get(SchoolClass, student.class_id)
    return _to_response(fee, student.name, school_class.name if school_class else None)


async def list_transport_fees(
    db: AsyncSession,
    academic_year: str,
    route_name: Optional[str] = None,
) -> TransportFeeListResponse:
    """Active transport assignments of the year, by route then student name, with route totals."""
    stmt = (
        select(TransportFee, Student.name, SchoolClass.name)
        .join(Student, TransportFee.student_id == Student.id)
        .outerjoin(SchoolClass, Student.class_id == SchoolClass.id)
        .where(TransportFee.academic_year == academic_year, TransportFee.is_active.is_(True))
    )
    if route_name:
        stmt = stmt.where(TransportFee.route_name == route_name.strip())
    stmt = stmt.order_by(TransportFee.route_name, Student.name)
    rows = (await db.execute(stmt)).all()

    items = [_to_response(fee, student_name, class_name) for fee, student_name, class_name in rows]
    return TransportFeeListResponse(
        items=items,
        total_students=len({i.student_id for i in items}),
        monthly_revenue=sum((i.monthly_amount for i in items), Decimal("0.00")),
        route_count=len({i.route_name for i in items}),
    )
