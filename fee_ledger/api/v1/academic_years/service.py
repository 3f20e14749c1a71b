from datetime import date, timedelta
from typing import List, Optional

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core import academic_calendar
from fee_ledger.core.config import settings
from fee_ledger.core.exceptions import ServiceError, UnknownAcademicYear, ValidationError
from fee_ledger.core.models import AcademicYear

from .schemas import AcademicYearCreate, AcademicYearMonthsResponse, AcademicYearResponse


def _to_response(ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse(
        code=ay.code,
        name=ay.name,
        start_date=ay.start_date,
        end_date=ay.end_date,
        start_month=ay.start_month,
        is_active=ay.is_active,
        is_current=ay.is_current,
        created_at=ay.created_at,
        updated_at=ay.updated_at,
    )


async def create_academic_year(
    db: AsyncSession,
    payload: AcademicYearCreate,
) -> AcademicYearResponse:
    """Create academic year. If is_current=true, unset current on all other years (same transaction)."""
    code = payload.code.strip()
    span = academic_calendar.require_year_code(code)
    if span.end_year != span.start_year + 1:
        raise ValidationError(
            "Academic year must span two consecutive calendar years",
            [{"field": "code", "message": f"{code} spans {span.start_year}..{span.end_year}"}],
        )
    start_month = settings.academic_year_start_month
    start_date = payload.start_date or date(span.start_year, start_month, 1)
    # last day of the month before start_month, one calendar year later
    end_date = payload.end_date or date(span.end_year, start_month, 1) - timedelta(days=1)
    if end_date <= start_date:
        raise ValidationError(
            "end_date must be after start_date",
            [{"field": "end_date", "message": "must be after start_date"}],
        )

    if await db.get(AcademicYear, code) is not None:
        raise ServiceError(f"Academic year '{code}' already exists", status.HTTP_409_CONFLICT)
    if payload.is_current:
        await db.execute(update(AcademicYear).values(is_current=False))
    ay = AcademicYear(
        code=code,
        name=(payload.name or code).strip(),
        start_date=start_date,
        end_date=end_date,
        start_month=start_month,
        is_active=True,
        is_current=payload.is_current,
    )
    db.add(ay)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Academic year name already exists", status.HTTP_409_CONFLICT)
    await db.refresh(ay)
    return _to_response(ay)


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    result = await db.execute(select(AcademicYear).order_by(AcademicYear.code.desc()))
    return [_to_response(ay) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, code: str) -> AcademicYear:
    ay = await db.get(AcademicYear, code)
    if ay is None:
        raise UnknownAcademicYear(code)
    return ay


async def get_current_academic_year(db: AsyncSession) -> Optional[AcademicYear]:
    """The year flagged is_current. Exclusivity is enforced by the writers below."""
    result = await db.execute(select(AcademicYear).where(AcademicYear.is_current.is_(True)))
    return result.scalars().first()


async def set_current_academic_year(db: AsyncSession, code: str) -> AcademicYearResponse:
    """Set this academic year as current. All others become is_current=false (same transaction)."""
    ay = await get_academic_year(db, code)
    if not ay.is_active:
        raise ServiceError("Cannot set an inactive academic year as current", status.HTTP_400_BAD_REQUEST)
    await db.execute(update(AcademicYear).where(AcademicYear.code != code).values(is_current=False))
    ay.is_current = True
    await db.commit()
    await db.refresh(ay)
    return _to_response(ay)


async def resolve_year_code(db: AsyncSession, requested: Optional[str]) -> str:
    """Explicit year when given (must exist), otherwise the stored current year."""
    if requested:
        ay = await get_academic_year(db, requested.strip())
        return ay.code
    ay = await get_current_academic_year(db)
    if ay is None:
        raise ServiceError(
            "No current academic year is set; pass academic_year explicitly",
            status.HTTP_400_BAD_REQUEST,
        )
    return ay.code


def year_months(code: str) -> AcademicYearMonthsResponse:
    months = academic_calendar.months_of(code)
    return AcademicYearMonthsResponse(
        code=code,
        months=months,
        labels=[academic_calendar.format_month_label(m) for m in months],
    )
