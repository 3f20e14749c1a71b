"""Read-only reporting over the ledger. Every figure is computed from dues and verified payments."""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core import academic_calendar
from fee_ledger.core.enums import DueStatus, DueType, PaymentStatus
from fee_ledger.core.ledger import remaining_balance, summarize, to_money
from fee_ledger.core.models import Payment, SchoolClass, Student, StudentDue, TransportFee

from .schemas import ClassCollection, DashboardStats, PendingActions, TrendPoint

ZERO = Decimal("0.00")


def _elapsed_months(academic_year: str, now: Union[date, datetime]) -> List[str]:
    """Months of the year strictly before the current month."""
    months = academic_calendar.months_of(academic_year)
    current = academic_calendar.current_month_key(now)
    position = academic_calendar.month_position(academic_year, current)
    if position >= 0:
        return months[:position]
    current_year = academic_calendar.academic_year_of_month(current)
    # year codes share the "YYYY-.." prefix, so they order by start year
    return months if current_year > academic_year else []


def _next_month_start(key: str) -> date:
    year, month = academic_calendar.parse_month_key(key)
    return date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)


async def _verified_total(db: AsyncSession, *criteria) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status == PaymentStatus.verified.value, *criteria
        )
    )
    return to_money(result.scalar())


async def get_dashboard_stats(
    db: AsyncSession,
    academic_year: str,
    now: Union[date, datetime],
) -> DashboardStats:
    counts = (
        await db.execute(
            select(Student.is_hosteller, func.count(Student.id))
            .where(Student.status == "ACTIVE")
            .group_by(Student.is_hosteller)
        )
    ).all()
    by_mode: Dict[bool, int] = defaultdict(int)
    for is_hosteller, n in counts:
        by_mode[bool(is_hosteller)] += n

    dues = (
        await db.execute(
            select(StudentDue).where(
                StudentDue.academic_year == academic_year,
                StudentDue.is_active.is_(True),
            )
        )
    ).scalars().all()
    ledger = summarize(dues)

    current_month = academic_calendar.current_month_key(now)
    month_start = academic_calendar.first_day_of_month(current_month)
    current_collection = await _verified_total(
        db,
        Payment.payment_date >= month_start,
        Payment.payment_date < _next_month_start(current_month),
    )
    expected_monthly = sum(
        (to_money(d.amount) for d in dues if d.due_type == DueType.monthly.value and d.due_month == current_month),
        ZERO,
    )
    pending_verification = (
        await db.execute(
            select(func.count(Payment.id)).where(
                Payment.academic_year == academic_year,
                Payment.status == PaymentStatus.pending.value,
            )
        )
    ).scalar() or 0

    van_riders = select(TransportFee.student_id).where(
        TransportFee.academic_year == academic_year,
        TransportFee.is_active.is_(True),
    )
    van_collection, van_students = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0), func.count(func.distinct(Payment.student_id))).where(
                Payment.status == PaymentStatus.verified.value,
                Payment.payment_date >= month_start,
                Payment.payment_date < _next_month_start(current_month),
                Payment.student_id.in_(van_riders),
            )
        )
    ).one()

    return DashboardStats(
        academic_year=academic_year,
        current_month=current_month,
        total_students=by_mode[True] + by_mode[False],
        total_hostellers=by_mode[True],
        total_day_scholars=by_mode[False],
        total_billed=ledger.total_billed,
        total_paid=ledger.total_paid,
        total_pending=ledger.total_pending,
        verified_collection=await _verified_total(db, Payment.academic_year == academic_year),
        current_month_collection=current_collection,
        expected_monthly=expected_monthly,
        deficit=max(expected_monthly - current_collection, ZERO),
        pending_verification=pending_verification,
        van_collection=to_money(van_collection),
        van_students=van_students or 0,
    )


async def class_collections(db: AsyncSession, academic_year: str) -> List[ClassCollection]:
    """Verified collection per active class, highest first."""
    classes = (
        await db.execute(select(SchoolClass).where(SchoolClass.is_active.is_(True)))
    ).scalars().all()
    student_counts = dict(
        (
            await db.execute(
                select(Student.class_id, func.count(Student.id))
                .where(Student.status == "ACTIVE")
                .group_by(Student.class_id)
            )
        ).all()
    )
    collected = {
        class_id: to_money(total)
        for class_id, total in (
            await db.execute(
                select(Student.class_id, func.coalesce(func.sum(Payment.amount), 0))
                .join(Student, Payment.student_id == Student.id)
                .where(
                    Payment.academic_year == academic_year,
                    Payment.status == PaymentStatus.verified.value,
                )
                .group_by(Student.class_id)
            )
        ).all()
    }
    items = [
        ClassCollection(
            class_id=c.id,
            class_name=c.name,
            student_count=student_counts.get(c.id, 0),
            collection=collected.get(c.id, ZERO),
        )
        for c in classes
    ]
    items.sort(key=lambda i: (-i.collection, i.class_name))
    return items


async def collection_trend(db: AsyncSession, academic_year: str) -> List[TrendPoint]:
    """Verified amounts per month of the academic year, in academic order."""
    months = academic_calendar.months_of(academic_year)
    totals: Dict[str, Decimal] = {m: ZERO for m in months}
    rows = (
        await db.execute(
            select(Payment.payment_date, Payment.amount).where(
                Payment.academic_year == academic_year,
                Payment.status == PaymentStatus.verified.value,
            )
        )
    ).all()
    for payment_date, amount in rows:
        key = academic_calendar.month_key(payment_date.year, payment_date.month)
        if key in totals:
            totals[key] += to_money(amount)
    return [
        TrendPoint(month=m, label=academic_calendar.format_month_label(m), amount=totals[m])
        for m in months
    ]


async def pending_actions(
    db: AsyncSession,
    academic_year: str,
    now: Union[date, datetime],
) -> PendingActions:
    elapsed = _elapsed_months(academic_year, now)
    overdue = []
    if elapsed:
        overdue = (
            await db.execute(
                select(StudentDue).where(
                    StudentDue.academic_year == academic_year,
                    StudentDue.is_active.is_(True),
                    StudentDue.due_type == DueType.monthly.value,
                    StudentDue.due_month.in_(elapsed),
                    StudentDue.status != DueStatus.paid.value,
                )
            )
        ).scalars().all()
    pending = (
        await db.execute(
            select(func.count(Payment.id)).where(
                Payment.academic_year == academic_year,
                Payment.status == PaymentStatus.pending.value,
            )
        )
    ).scalar() or 0
    provisional = (
        await db.execute(
            select(func.count(Student.id)).where(
                Student.is_provisional.is_(True),
                Student.status == "ACTIVE",
            )
        )
    ).scalar() or 0
    return PendingActions(
        overdue_dues=len(overdue),
        overdue_amount=sum((remaining_balance(d.amount, d.paid_amount) for d in overdue), ZERO),
        pending_verifications=pending,
        provisional_students=provisional,
    )
