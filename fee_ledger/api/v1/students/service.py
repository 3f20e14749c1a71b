from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.core.exceptions import ServiceError, UnknownStudent
from fee_ledger.core.models import SchoolClass, Student

from .schemas import ClassCreate, ClassResponse, StudentCreate, StudentResponse


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        name=c.name,
        display_order=c.display_order,
        is_active=c.is_active,
        created_at=c.created_at,
    )


def _student_to_response(s: Student, class_name: Optional[str] = None) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        name=s.name,
        ledger_number=s.ledger_number,
        class_id=s.class_id,
        class_name=class_name,
        is_hosteller=bool(s.is_hosteller),
        guardian_name=s.guardian_name,
        guardian_phone=s.guardian_phone,
        status=s.status,
        is_provisional=bool(s.is_provisional),
        created_at=s.created_at,
    )


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    obj = SchoolClass(
        name=payload.name.strip(),
        display_order=payload.display_order,
        is_active=True,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Class name already exists", status.HTTP_409_CONFLICT)
    await db.refresh(obj)
    return _class_to_response(obj)


async def get_classes(db: AsyncSession, active_only: bool = True) -> List[SchoolClass]:
    stmt = select(SchoolClass)
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = stmt.order_by(SchoolClass.display_order.nulls_last(), SchoolClass.name)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_classes(db: AsyncSession) -> List[ClassResponse]:
    return [_class_to_response(c) for c in await get_classes(db)]


async def get_student(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if student is None:
        raise UnknownStudent(student_id)
    return student


async def get_student_by_ledger_number(db: AsyncSession, ledger_number: str) -> Optional[Student]:
    result = await db.execute(select(Student).where(Student.ledger_number == ledger_number))
    return result.scalar_one_or_none()


async def create_student(
    db: AsyncSession,
    payload: StudentCreate,
    is_provisional: bool = False,
) -> StudentResponse:
    school_class = await db.get(SchoolClass, payload.class_id)
    if not school_class or not school_class.is_active:
        raise ServiceError("Invalid or inactive class", status.HTTP_400_BAD_REQUEST)
    student = Student(
        name=payload.name.strip(),
        ledger_number=(payload.ledger_number or "").strip() or None,
        class_id=payload.class_id,
        is_hosteller=payload.is_hosteller,
        guardian_name=(payload.guardian_name or "").strip() or None,
        guardian_phone=(payload.guardian_phone or "").strip() or None,
        status="ACTIVE",
        is_provisional=is_provisional,
    )
    db.add(student)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError(
            f"Ledger number already in use: {payload.ledger_number}",
            status.HTTP_409_CONFLICT,
        )
    await db.refresh(student)
    return _student_to_response(student, school_class.name)


async def list_students(
    db: AsyncSession,
    class_id: Optional[UUID] = None,
    provisional_only: bool = False,
) -> List[StudentResponse]:
    stmt = (
        select(Student, SchoolClass.name.label("class_name"))
        .join(SchoolClass, Student.class_id == SchoolClass.id)
        .where(Student.status == "ACTIVE")
    )
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if provisional_only:
        stmt = stmt.where(Student.is_provisional.is_(True))
    stmt = stmt.order_by(SchoolClass.name, Student.name)
    result = await db.execute(stmt)
    return [_student_to_response(s, class_name) for s, class_name in result.all()]
