import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import get_academic_year
from fee_ledger.api.v1.dues.service import generate_dues_for_class
from fee_ledger.core.audit_service import log_fee_audit
from fee_ledger.core.enums import FeeStructureState, OccupancyMode, PaymentStatus
from fee_ledger.core.exceptions import NotFoundError
from fee_ledger.core.ledger import to_money
from fee_ledger.core.models import FeeStructure, Payment, SchoolClass, Student

from .components import FeeComponents, FeeStructureDetail, normalize_fee_blob
from .schemas import (
    ClassFeeOverview,
    CommitResult,
    FeeComponentsInput,
    FeeComponentsResponse,
    FeeOverviewResponse,
    FeeStructureResponse,
    FeeStructureSave,
    FeeTotalVariance,
)

logger = logging.getLogger(__name__)


def _components_from_input(row: FeeComponentsInput) -> FeeComponents:
    return FeeComponents(
        admission=to_money(row.admission),
        monthly=to_money(row.monthly),
        school_fees_total=to_money(row.school_fees_total) if row.school_fees_total is not None else None,
        uniform=to_money(row.uniform),
        hst_dress=to_money(row.hst_dress),
        copy=to_money(row.copy_fee),
        book=to_money(row.book),
    )


def _components_response(c: FeeComponents) -> FeeComponentsResponse:
    return FeeComponentsResponse(
        admission=to_money(c.admission),
        monthly=to_money(c.monthly),
        school_fees_total=c.school_fees_total,
        uniform=to_money(c.uniform),
        hst_dress=to_money(c.hst_dress),
        copy_fee=to_money(c.copy),
        book=to_money(c.book),
        total=c.total(),
    )


def _to_response(fs: FeeStructure, class_name: Optional[str] = None) -> FeeStructureResponse:
    detail = normalize_fee_blob(fs.description)
    mismatch = (
        to_money(fs.hosteller_amount) != detail.hosteller.total()
        or to_money(fs.day_scholar_amount) != detail.day_scholar.total()
    )
    return FeeStructureResponse(
        id=fs.id,
        class_id=fs.class_id,
        class_name=class_name,
        academic_year=fs.academic_year,
        fee_type=fs.fee_type,
        state=fs.state,
        hosteller_amount=to_money(fs.hosteller_amount),
        day_scholar_amount=to_money(fs.day_scholar_amount),
        hosteller=_components_response(detail.hosteller),
        day_scholar=_components_response(detail.day_scholar),
        total_mismatch=mismatch,
        committed_at=fs.committed_at,
        created_at=fs.created_at,
        updated_at=fs.updated_at,
    )


def _snapshot(fs: FeeStructure) -> dict:
    return {
        "state": fs.state,
        "hosteller_amount": str(fs.hosteller_amount),
        "day_scholar_amount": str(fs.day_scholar_amount),
        "description": fs.description,
    }


async def _get_class(db: AsyncSession, class_id: UUID) -> SchoolClass:
    school_class = await db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError(f"Class not found: {class_id}")
    return school_class


async def get_fee_structure(db: AsyncSession, fee_structure_id: UUID) -> FeeStructure:
    fs = await db.get(FeeStructure, fee_structure_id)
    if fs is None or not fs.is_active:
        raise NotFoundError(f"Fee structure not found: {fee_structure_id}")
    return fs


async def save_fee_structure(
    db: AsyncSession,
    payload: FeeStructureSave,
    academic_year: str,
    changed_by: Optional[UUID],
) -> FeeStructureResponse:
    """
    Save the editor's rows as a draft. Re-saving a committed structure moves it back to draft;
    dues already generated are not touched until the next commit.
    """
    school_class = await _get_class(db, payload.class_id)
    await get_academic_year(db, academic_year)
    detail = FeeStructureDetail(
        hosteller=_components_from_input(payload.hosteller),
        day_scholar=_components_from_input(payload.day_scholar),
    )

    result = await db.execute(
        select(FeeStructure).where(
            FeeStructure.class_id == school_class.id,
            FeeStructure.academic_year == academic_year,
            FeeStructure.fee_type == payload.fee_type,
        )
    )
    fs = result.scalar_one_or_none()
    old_value = _snapshot(fs) if fs is not None else None
    if fs is None:
        fs = FeeStructure(
            class_id=school_class.id,
            academic_year=academic_year,
            fee_type=payload.fee_type,
        )
        db.add(fs)
    fs.description = detail.to_blob()
    fs.hosteller_amount = detail.hosteller.total()
    fs.day_scholar_amount = detail.day_scholar.total()
    fs.state = FeeStructureState.DRAFT.value
    fs.committed_at = None
    fs.committed_by = None
    fs.is_active = True
    await db.flush()
    await log_fee_audit(
        db, "fee_structures", fs.id, "UPDATE" if old_value else "CREATE",
        old_value, _snapshot(fs), changed_by,
    )
    await db.commit()
    await db.refresh(fs)
    return _to_response(fs, school_class.name)


async def commit_fee_structure(
    db: AsyncSession,
    fee_structure_id: UUID,
    committed_by: Optional[UUID],
) -> CommitResult:
    """Commit a draft: re-derive stored totals from the components and generate dues for the class."""
    fs = await get_fee_structure(db, fee_structure_id)
    school_class = await _get_class(db, fs.class_id)
    old_value = _snapshot(fs)
    detail = normalize_fee_blob(fs.description)
    try:
        fs.description = detail.to_blob()
        fs.hosteller_amount = detail.hosteller.total()
        fs.day_scholar_amount = detail.day_scholar.total()
        created = await generate_dues_for_class(db, fs.class_id, fs.academic_year, detail, committed_by)
        fs.state = FeeStructureState.COMMITTED.value
        fs.committed_at = datetime.utcnow()
        fs.committed_by = committed_by
        await log_fee_audit(db, "fee_structures", fs.id, "COMMIT", old_value, _snapshot(fs), committed_by)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(fs)
    logger.info(
        "Committed fee structure %s for %s (%s); %d dues created",
        fs.id, school_class.name, fs.academic_year, created,
    )
    return CommitResult(fee_structure=_to_response(fs, school_class.name), dues_created=created)


async def list_fee_structures(
    db: AsyncSession,
    academic_year: str,
    class_id: Optional[UUID] = None,
) -> List[FeeStructureResponse]:
    stmt = (
        select(FeeStructure, SchoolClass.name)
        .join(SchoolClass, FeeStructure.class_id == SchoolClass.id)
        .where(FeeStructure.academic_year == academic_year, FeeStructure.is_active.is_(True))
        .order_by(SchoolClass.display_order, SchoolClass.name)
    )
    if class_id is not None:
        stmt = stmt.where(FeeStructure.class_id == class_id)
    result = await db.execute(stmt)
    return [_to_response(fs, class_name) for fs, class_name in result.all()]


async def verify_fee_structure_totals(db: AsyncSession, academic_year: str) -> List[FeeTotalVariance]:
    """Recompute every stored total from its components and report the ones that disagree."""
    stmt = (
        select(FeeStructure, SchoolClass.name)
        .join(SchoolClass, FeeStructure.class_id == SchoolClass.id)
        .where(FeeStructure.academic_year == academic_year, FeeStructure.is_active.is_(True))
    )
    variances: List[FeeTotalVariance] = []
    for fs, class_name in (await db.execute(stmt)).all():
        detail = normalize_fee_blob(fs.description)
        for mode, stored in (
            (OccupancyMode.HOSTELLER, fs.hosteller_amount),
            (OccupancyMode.DAY_SCHOLAR, fs.day_scholar_amount),
        ):
            stored = to_money(stored)
            computed = detail.for_mode(mode).total()
            if stored != computed:
                logger.warning(
                    "Fee structure %s (%s, %s): stored total %s != computed %s",
                    fs.id, class_name, mode.value, stored, computed,
                )
                variances.append(
                    FeeTotalVariance(
                        fee_structure_id=fs.id,
                        class_id=fs.class_id,
                        class_name=class_name,
                        mode=mode,
                        stored=stored,
                        computed=computed,
                        variance=computed - stored,
                    )
                )
    return variances


async def fee_structure_overview(db: AsyncSession, academic_year: str) -> FeeOverviewResponse:
    """Per class: students by mode, expected monthly/annual billing, verified collection and variance."""
    classes = (
        await db.execute(
            select(SchoolClass)
            .where(SchoolClass.is_active.is_(True))
            .order_by(SchoolClass.display_order, SchoolClass.name)
        )
    ).scalars().all()

    counts: Dict[UUID, Dict[bool, int]] = defaultdict(lambda: {True: 0, False: 0})
    count_rows = await db.execute(
        select(Student.class_id, Student.is_hosteller, func.count(Student.id))
        .where(Student.status == "ACTIVE")
        .group_by(Student.class_id, Student.is_hosteller)
    )
    for class_id, is_hosteller, n in count_rows.all():
        counts[class_id][bool(is_hosteller)] = n

    collected_rows = await db.execute(
        select(Student.class_id, func.coalesce(func.sum(Payment.amount), 0))
        .join(Student, Payment.student_id == Student.id)
        .where(Payment.academic_year == academic_year, Payment.status == PaymentStatus.verified.value)
        .group_by(Student.class_id)
    )
    collected = {class_id: to_money(total) for class_id, total in collected_rows.all()}

    structures = (
        await db.execute(
            select(FeeStructure).where(
                FeeStructure.academic_year == academic_year,
                FeeStructure.is_active.is_(True),
                FeeStructure.fee_type == "tuition",
            )
        )
    ).scalars().all()
    details = {fs.class_id: normalize_fee_blob(fs.description) for fs in structures}

    items: List[ClassFeeOverview] = []
    for school_class in classes:
        detail = details.get(school_class.id, FeeStructureDetail())
        hostellers = counts[school_class.id][True]
        day_scholars = counts[school_class.id][False]
        expected_monthly = (
            to_money(detail.hosteller.monthly) * hostellers
            + to_money(detail.day_scholar.monthly) * day_scholars
        )
        expected_annual = detail.hosteller.total() * hostellers + detail.day_scholar.total() * day_scholars
        actual = collected.get(school_class.id, Decimal("0.00"))
        items.append(
            ClassFeeOverview(
                class_id=school_class.id,
                class_name=school_class.name,
                hostellers=hostellers,
                day_scholars=day_scholars,
                hosteller_monthly=to_money(detail.hosteller.monthly),
                day_scholar_monthly=to_money(detail.day_scholar.monthly),
                expected_monthly=to_money(expected_monthly),
                expected_annual=to_money(expected_annual),
                actual_collection=actual,
                variance=to_money(actual - expected_annual),
            )
        )

    total_expected_annual = sum((i.expected_annual for i in items), Decimal("0.00"))
    total_actual = sum((i.actual_collection for i in items), Decimal("0.00"))
    return FeeOverviewResponse(
        academic_year=academic_year,
        classes=items,
        total_students=sum(i.hostellers + i.day_scholars for i in items),
        total_expected_monthly=sum((i.expected_monthly for i in items), Decimal("0.00")),
        total_expected_annual=total_expected_annual,
        total_actual_collection=total_actual,
        total_variance=to_money(total_actual - total_expected_annual),
    )
