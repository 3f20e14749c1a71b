"""Due ledger: listing and filtering dues, summaries, due generation, one-time charges."""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core import academic_calendar
from fee_ledger.core.audit_service import log_fee_audit
from fee_ledger.core.enums import DueItem, DueType, OccupancyMode
from fee_ledger.core.exceptions import ServiceError, UnknownDue, UnknownStudent, ValidationError
from fee_ledger.core.ledger import derive_due_status, is_whole_cents, remaining_balance, summarize, to_money
from fee_ledger.core.models import SchoolClass, Student, StudentDue

from .schemas import ClassDueSummary, DueFilters, DueListResponse, DueResponse, DueSummary, OneTimeChargeCreate

logger = logging.getLogger(__name__)

# One-time items generated from a fee structure, in billing order
ONE_TIME_COMPONENTS: Tuple[Tuple[str, DueItem], ...] = (
    ("admission", DueItem.ADMISSION),
    ("uniform", DueItem.UNIFORM),
    ("hst_dress", DueItem.HST_DRESS),
    ("copy", DueItem.COPY),
    ("book", DueItem.BOOK),
)


def _due_to_response(
    due: StudentDue,
    student_name: Optional[str] = None,
    ledger_number: Optional[str] = None,
    class_name: Optional[str] = None,
) -> DueResponse:
    return DueResponse(
        id=due.id,
        student_id=due.student_id,
        student_name=student_name,
        ledger_number=ledger_number,
        class_id=due.class_id,
        class_name=class_name,
        academic_year=due.academic_year,
        due_type=due.due_type,
        due_month=due.due_month,
        item_type=due.item_type,
        amount=to_money(due.amount),
        paid_amount=to_money(due.paid_amount),
        balance=remaining_balance(due.amount, due.paid_amount),
        # derived on every read
        status=derive_due_status(due.amount, due.paid_amount),
        notes=due.notes,
        is_active=due.is_active,
        version=due.version,
        created_at=due.created_at,
        updated_at=due.updated_at,
    )


def summarize_dues(dues: Iterable) -> DueSummary:
    dues = list(dues)
    folded = summarize(dues)
    return DueSummary(
        total_billed=folded.total_billed,
        total_paid=folded.total_paid,
        total_pending=folded.total_pending,
        count=len(dues),
    )


async def get_due(db: AsyncSession, due_id: UUID) -> StudentDue:
    due = await db.get(StudentDue, due_id)
    if due is None:
        raise UnknownDue(due_id)
    return due


async def list_dues(db: AsyncSession, filters: DueFilters) -> List[DueResponse]:
    """Dues matching the filters. The month filter only applies when due_type is monthly."""
    stmt = (
        select(
            StudentDue,
            Student.name.label("student_name"),
            Student.ledger_number.label("ledger_number"),
            SchoolClass.name.label("class_name"),
        )
        .join(Student, StudentDue.student_id == Student.id)
        .join(SchoolClass, StudentDue.class_id == SchoolClass.id)
    )
    if not filters.include_retired:
        stmt = stmt.where(StudentDue.is_active.is_(True))
    if filters.academic_year:
        stmt = stmt.where(StudentDue.academic_year == filters.academic_year)
    if filters.student_id is not None:
        stmt = stmt.where(StudentDue.student_id == filters.student_id)
    if filters.class_id is not None:
        stmt = stmt.where(StudentDue.class_id == filters.class_id)
    if filters.due_type is not None:
        stmt = stmt.where(StudentDue.due_type == filters.due_type.value)
        if filters.due_type == DueType.monthly and filters.month:
            academic_calendar.parse_month_key(filters.month)
            stmt = stmt.where(StudentDue.due_month == filters.month)
    if filters.status is not None:
        stmt = stmt.where(StudentDue.status == filters.status.value)
    stmt = stmt.order_by(SchoolClass.name, Student.name, StudentDue.due_month.nulls_first(), StudentDue.item_type)
    result = await db.execute(stmt)
    return [
        _due_to_response(due, student_name, ledger_number, class_name)
        for due, student_name, ledger_number, class_name in result.all()
    ]


async def get_student_dues(db: AsyncSession, filters: DueFilters) -> DueListResponse:
    items = await list_dues(db, filters)
    return DueListResponse(items=items, summary=summarize_dues(items))


async def student_due_summary(db: AsyncSession, student_id: UUID, academic_year: str) -> DueSummary:
    if await db.get(Student, student_id) is None:
        raise UnknownStudent(student_id)
    items = await list_dues(db, DueFilters(student_id=student_id, academic_year=academic_year))
    return summarize_dues(items)


async def class_due_summary(db: AsyncSession, academic_year: str) -> List[ClassDueSummary]:
    """Billed/paid/pending per class for the year."""
    stmt = (
        select(StudentDue, SchoolClass.name)
        .join(SchoolClass, StudentDue.class_id == SchoolClass.id)
        .where(StudentDue.academic_year == academic_year, StudentDue.is_active.is_(True))
    )
    result = await db.execute(stmt)
    grouped: Dict[UUID, List[StudentDue]] = defaultdict(list)
    names: Dict[UUID, str] = {}
    for due, class_name in result.all():
        grouped[due.class_id].append(due)
        names[due.class_id] = class_name
    out = []
    for class_id, dues in grouped.items():
        s = summarize_dues(dues)
        out.append(
            ClassDueSummary(
                class_id=class_id,
                class_name=names[class_id],
                total_billed=s.total_billed,
                total_paid=s.total_paid,
                total_pending=s.total_pending,
                count=s.count,
            )
        )
    out.sort(key=lambda c: c.class_name)
    return out


async def generate_dues_for_class(
    db: AsyncSession,
    class_id: UUID,
    academic_year: str,
    detail,
    changed_by: Optional[UUID],
) -> int:
    """
    Create dues for every active student in the class from a fee structure detail.
    One-time dues for positive components, one monthly due per academic month.
    Dues that already exist are left untouched. Does not commit; caller must commit.
    """
    students = (
        await db.execute(
            select(Student).where(Student.class_id == class_id, Student.status == "ACTIVE")
        )
    ).scalars().all()
    if not students:
        return 0

    existing_rows = (
        await db.execute(
            select(StudentDue.student_id, StudentDue.item_type, StudentDue.due_month).where(
                StudentDue.class_id == class_id,
                StudentDue.academic_year == academic_year,
            )
        )
    ).all()
    existing = {(sid, item, month) for sid, item, month in existing_rows}
    months = academic_calendar.months_of(academic_year)

    created = 0
    for student in students:
        mode = OccupancyMode.HOSTELLER if student.is_hosteller else OccupancyMode.DAY_SCHOLAR
        components = detail.for_mode(mode)
        for attr, item in ONE_TIME_COMPONENTS:
            amount = to_money(getattr(components, attr))
            if amount <= 0 or (student.id, item.value, None) in existing:
                continue
            db.add(
                StudentDue(
                    student_id=student.id,
                    class_id=class_id,
                    academic_year=academic_year,
                    due_type=DueType.one_time.value,
                    due_month=None,
                    item_type=item.value,
                    amount=amount,
                    paid_amount=Decimal("0"),
                )
            )
            created += 1
        monthly = to_money(components.monthly)
        if monthly <= 0:
            continue
        for month in months:
            if (student.id, DueItem.MONTHLY.value, month) in existing:
                continue
            db.add(
                StudentDue(
                    student_id=student.id,
                    class_id=class_id,
                    academic_year=academic_year,
                    due_type=DueType.monthly.value,
                    due_month=month,
                    item_type=DueItem.MONTHLY.value,
                    amount=monthly,
                    paid_amount=Decimal("0"),
                )
            )
            created += 1
    await db.flush()
    await log_fee_audit(
        db, "student_dues", class_id, "GENERATE",
        None,
        {"academic_year": academic_year, "students": len(students), "dues_created": created},
        changed_by,
    )
    logger.info("Generated %d dues for class %s (%s)", created, class_id, academic_year)
    return created


async def levy_one_time_charge(
    db: AsyncSession,
    payload: OneTimeChargeCreate,
    academic_year: str,
    changed_by: Optional[UUID],
) -> DueResponse:
    student = await db.get(Student, payload.student_id)
    if student is None:
        raise UnknownStudent(payload.student_id)
    if not is_whole_cents(payload.amount):
        raise ValidationError(
            "Invalid one-time charge",
            [{"field": "amount", "message": "at most 2 decimal places"}],
        )
    if student.status != "ACTIVE":
        raise ServiceError("Cannot levy a charge on an inactive student", status.HTTP_400_BAD_REQUEST)
    due = StudentDue(
        student_id=student.id,
        class_id=student.class_id,
        academic_year=academic_year,
        due_type=DueType.one_time.value,
        due_month=None,
        item_type=payload.item_type.value,
        amount=to_money(payload.amount),
        paid_amount=Decimal("0"),
        notes=(payload.notes or "").strip() or None,
    )
    db.add(due)
    await db.flush()
    await log_fee_audit(
        db, "student_dues", due.id, "CREATE",
        None,
        {"student_id": str(student.id), "item_type": due.item_type, "amount": str(due.amount)},
        changed_by,
    )
    await db.commit()
    await db.refresh(due)
    return _due_to_response(due, student.name, student.ledger_number)


async def retire_due(db: AsyncSession, due_id: UUID, changed_by: Optional[UUID]) -> DueResponse:
    """Soft-retire a due. It stays in storage (payments may reference it) but accepts no new allocations."""
    due = await get_due(db, due_id)
    if not due.is_active:
        return _due_to_response(due)
    due.is_active = False
    await log_fee_audit(
        db, "student_dues", due.id, "RETIRE",
        {"is_active": True, "paid_amount": str(due.paid_amount)},
        {"is_active": False},
        changed_by,
    )
    await db.commit()
    await db.refresh(due)
    return _due_to_response(due)
