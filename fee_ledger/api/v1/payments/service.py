"""
Payment allocation engine and verification workflow.

A payment is recorded together with its allocations in one transaction. Every due an
allocation touches is read once (locked where the engine supports it), all allocations
are validated against that snapshot with amounts summed per due, and only then are the
dues written, each with a compare-and-set on its version. Any failure rolls the whole
payment back.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import get_academic_year
from fee_ledger.api.v1.dues.service import _due_to_response
from fee_ledger.core import academic_calendar
from fee_ledger.core.audit_service import log_fee_audit
from fee_ledger.core.enums import DueItem, PaymentStatus
from fee_ledger.core.exceptions import (
    ConcurrencyError,
    ConcurrentModification,
    ConsistencyError,
    DuplicateImportKey,
    EmptyAllocationSet,
    InvalidAllocation,
    InvalidTransition,
    ServiceError,
    UnknownDue,
    UnknownPayment,
    UnknownStudent,
    ValidationError,
)
from fee_ledger.core.ledger import is_whole_cents, remaining_balance, to_money
from fee_ledger.core.models import Payment, PaymentAllocation, SchoolClass, Student, StudentDue

from .schemas import (
    AllocationInput,
    AllocationResponse,
    PaymentReceipt,
    PaymentResponse,
    PaymentResult,
    ReceiptLine,
    RecordPaymentRequest,
)

logger = logging.getLogger(__name__)

ITEM_LABELS = {
    DueItem.ADMISSION.value: "Admission fee",
    DueItem.REGISTRATION.value: "Registration fee",
    DueItem.UNIFORM.value: "Uniform",
    DueItem.COPY.value: "Copies",
    DueItem.BOOK.value: "Books",
    DueItem.HST_DRESS.value: "Hostel dress",
    DueItem.MONTHLY.value: "Monthly fee",
    DueItem.MISC.value: "Miscellaneous",
}


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        student_id=payment.student_id,
        academic_year=payment.academic_year,
        amount=to_money(payment.amount),
        payment_method=payment.payment_method,
        payment_date=payment.payment_date,
        reference_number=payment.reference_number,
        remarks=payment.remarks,
        status=payment.status,
        transaction_key=payment.transaction_key,
        created_by=payment.created_by,
        verified_by=payment.verified_by,
        verified_at=payment.verified_at,
        rejected_by=payment.rejected_by,
        rejected_at=payment.rejected_at,
        rejection_reason=payment.rejection_reason,
        created_at=payment.created_at,
        allocations=[AllocationResponse.model_validate(a) for a in payment.allocations],
    )


def _validate_allocations(allocations: List[AllocationInput]) -> None:
    """Checks that need no stored state. Raises before anything is read or written."""
    if not allocations:
        raise EmptyAllocationSet()
    errors = []
    for i, alloc in enumerate(allocations):
        if not is_whole_cents(alloc.amount):
            errors.append({"field": f"allocations[{i}].amount", "message": "at most 2 decimal places"})
        elif alloc.amount <= 0:
            errors.append({"field": f"allocations[{i}].amount", "message": "must be greater than 0"})
        if alloc.due_id is None and not any(_clean(v) for v in (alloc.label, alloc.category, alloc.notes)):
            errors.append(
                {
                    "field": f"allocations[{i}]",
                    "message": "a custom charge needs a label, category or notes",
                }
            )
    if errors:
        raise ValidationError("Invalid allocations", errors)


async def _lock_dues(db: AsyncSession, due_ids: Iterable[UUID]) -> Dict[UUID, StudentDue]:
    due_ids = list(due_ids)
    if not due_ids:
        return {}
    result = await db.execute(
        select(StudentDue)
        .where(StudentDue.id.in_(due_ids))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return {due.id: due for due in result.scalars().all()}


async def _write_paid_amount(
    db: AsyncSession,
    due_id: UUID,
    read_version: int,
    new_paid: Decimal,
) -> None:
    """Compare-and-set on the due's version; a lost race raises ConcurrentModification."""
    result = await db.execute(
        update(StudentDue)
        .where(StudentDue.id == due_id, StudentDue.version == read_version)
        .values(paid_amount=new_paid, version=read_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrentModification(due_id)


async def _refreshed_dues(db: AsyncSession, dues: Iterable[StudentDue]) -> List:
    out = []
    for due in dues:
        await db.refresh(due)
        out.append(_due_to_response(due))
    return out


async def record_payment(
    db: AsyncSession,
    payload: RecordPaymentRequest,
    academic_year: str,
    created_by: UUID,
    transaction_key: Optional[str] = None,
) -> PaymentResult:
    """
    Record one payment and apply its allocations atomically.

    Raises EmptyAllocationSet / ValidationError before touching storage, UnknownStudent,
    UnknownDue, InvalidAllocation when a due would be overdrawn (sums per due across the
    request), DuplicateImportKey for a reused transaction_key, ConcurrentModification
    when a due changed under us. Nothing persists on any error.
    """
    try:
        return await _record_payment(db, payload, academic_year, created_by, transaction_key)
    except ServiceError as e:
        await db.rollback()
        logger.info("Payment for student %s not recorded: %s", payload.student_id, e.message)
        raise


async def _record_payment(
    db: AsyncSession,
    payload: RecordPaymentRequest,
    academic_year: str,
    created_by: UUID,
    transaction_key: Optional[str],
) -> PaymentResult:
    _validate_allocations(payload.allocations)
    academic_calendar.require_year_code(academic_year)
    await get_academic_year(db, academic_year)

    student = await db.get(Student, payload.student_id)
    if student is None:
        raise UnknownStudent(payload.student_id)

    if transaction_key:
        existing = await db.execute(select(Payment.id).where(Payment.transaction_key == transaction_key))
        if existing.first() is not None:
            raise DuplicateImportKey(transaction_key)

    requested: Dict[UUID, Decimal] = defaultdict(lambda: Decimal("0.00"))
    for alloc in payload.allocations:
        if alloc.due_id is not None:
            requested[alloc.due_id] += to_money(alloc.amount)

    dues = await _lock_dues(db, requested.keys())
    # snapshot of (paid_amount, version) every check and write is made against
    snapshot: Dict[UUID, Tuple[Decimal, int]] = {}
    for due_id, total in requested.items():
        due = dues.get(due_id)
        if due is None:
            raise UnknownDue(due_id)
        if due.student_id != student.id:
            raise InvalidAllocation(f"Due {due_id} does not belong to student {student.id}", due_id)
        if not due.is_active:
            raise InvalidAllocation(f"Due {due_id} is retired", due_id)
        balance = remaining_balance(due.amount, due.paid_amount)
        if total > balance:
            raise InvalidAllocation(
                f"Allocation of {total} exceeds remaining balance {balance} on due {due_id}",
                due_id,
            )
        snapshot[due_id] = (to_money(due.paid_amount), due.version)

    now = datetime.utcnow()
    status_value = PaymentStatus.verified.value if payload.verify else PaymentStatus.pending.value
    payment = Payment(
        student_id=student.id,
        academic_year=academic_year,
        amount=sum((to_money(a.amount) for a in payload.allocations), Decimal("0.00")),
        payment_method=payload.payment_method.value,
        payment_date=payload.payment_date,
        reference_number=_clean(payload.reference_number),
        remarks=_clean(payload.remarks),
        status=status_value,
        transaction_key=transaction_key,
        created_by=created_by,
        verified_by=created_by if payload.verify else None,
        verified_at=now if payload.verify else None,
    )
    for alloc in payload.allocations:
        payment.allocations.append(
            PaymentAllocation(
                due_id=alloc.due_id,
                amount=to_money(alloc.amount),
                label=_clean(alloc.label),
                category=_clean(alloc.category),
                notes=_clean(alloc.notes),
            )
        )
    db.add(payment)
    try:
        await db.flush()
        for due_id, total in requested.items():
            paid, version = snapshot[due_id]
            await _write_paid_amount(db, due_id, version, paid + total)
        await log_fee_audit(
            db, "payments", payment.id, "CREATE",
            None,
            {
                "student_id": str(student.id),
                "amount": str(payment.amount),
                "status": payment.status,
                "allocations": [
                    {"due_id": str(a.due_id) if a.due_id else None, "amount": str(a.amount), "label": a.label}
                    for a in payment.allocations
                ],
            },
            created_by,
        )
        for due_id, total in requested.items():
            paid, version = snapshot[due_id]
            await log_fee_audit(
                db, "student_dues", due_id, "ALLOCATE",
                {"paid_amount": str(paid), "version": version},
                {"paid_amount": str(paid + total), "version": version + 1, "payment_id": str(payment.id)},
                created_by,
            )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if transaction_key:
            raise DuplicateImportKey(transaction_key)
        raise ConsistencyError("Payment violates a ledger constraint")

    updated = await _refreshed_dues(db, (dues[d] for d in requested))
    logger.info(
        "Recorded payment %s for student %s: %s across %d allocation(s), status %s",
        payment.id, student.id, payment.amount, len(payment.allocations), payment.status,
    )
    return PaymentResult(
        payment=_payment_to_response(payment),
        allocations=[AllocationResponse.model_validate(a) for a in payment.allocations],
        updated_dues=updated,
    )


async def get_payment(db: AsyncSession, payment_id: UUID) -> PaymentResponse:
    payment = await db.get(Payment, payment_id)
    if payment is None:
        raise UnknownPayment(payment_id)
    return _payment_to_response(payment)


async def list_payments(
    db: AsyncSession,
    student_id: Optional[UUID] = None,
    status: Optional[PaymentStatus] = None,
    academic_year: Optional[str] = None,
    limit: int = 100,
) -> List[PaymentResponse]:
    stmt = select(Payment)
    if student_id is not None:
        stmt = stmt.where(Payment.student_id == student_id)
    if status is not None:
        stmt = stmt.where(Payment.status == status.value)
    if academic_year:
        stmt = stmt.where(Payment.academic_year == academic_year)
    stmt = stmt.order_by(Payment.payment_date.desc(), Payment.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return [_payment_to_response(p) for p in result.scalars().all()]


async def _transition(
    db: AsyncSession,
    payment_id: UUID,
    target: PaymentStatus,
    values: dict,
) -> Payment:
    """Move a pending payment to a terminal state. Terminal states never change."""
    payment = await db.get(Payment, payment_id, with_for_update=True, populate_existing=True)
    if payment is None:
        raise UnknownPayment(payment_id)
    if payment.status != PaymentStatus.pending.value:
        raise InvalidTransition(payment.status, target.value)
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == PaymentStatus.pending.value)
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConcurrencyError(f"Payment {payment_id} was modified by another request; re-fetch and retry")
    return payment


async def verify_payment(db: AsyncSession, payment_id: UUID, verifier_id: UUID) -> PaymentResponse:
    try:
        payment = await _transition(
            db, payment_id, PaymentStatus.verified,
            {"verified_by": verifier_id, "verified_at": datetime.utcnow()},
        )
        await log_fee_audit(
            db, "payments", payment_id, "VERIFY",
            {"status": PaymentStatus.pending.value},
            {"status": PaymentStatus.verified.value},
            verifier_id,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    await db.refresh(payment)
    logger.info("Payment %s verified by %s", payment_id, verifier_id)
    return _payment_to_response(payment)


async def reject_payment(
    db: AsyncSession,
    payment_id: UUID,
    reviewer_id: UUID,
    reason: Optional[str] = None,
) -> PaymentResult:
    """
    Reject a pending payment and reverse its allocations on the dues they were applied to.
    Dues are compensated with the same version check as recording.
    """
    try:
        payment = await _transition(
            db, payment_id, PaymentStatus.rejected,
            {
                "rejected_by": reviewer_id,
                "rejected_at": datetime.utcnow(),
                "rejection_reason": _clean(reason),
            },
        )
        reversed_amounts: Dict[UUID, Decimal] = defaultdict(lambda: Decimal("0.00"))
        for alloc in payment.allocations:
            if alloc.due_id is not None:
                reversed_amounts[alloc.due_id] += to_money(alloc.amount)

        dues = await _lock_dues(db, reversed_amounts.keys())
        for due_id, total in reversed_amounts.items():
            due = dues.get(due_id)
            if due is None:
                raise UnknownDue(due_id)
            paid = to_money(due.paid_amount)
            new_paid = paid - total
            if new_paid < 0:
                raise ConsistencyError(
                    f"Due {due_id} has paid amount {paid}; cannot reverse {total} from payment {payment_id}"
                )
            await _write_paid_amount(db, due_id, due.version, new_paid)
            await log_fee_audit(
                db, "student_dues", due_id, "COMPENSATE",
                {"paid_amount": str(paid), "version": due.version},
                {"paid_amount": str(new_paid), "version": due.version + 1, "payment_id": str(payment_id)},
                reviewer_id,
            )
        await log_fee_audit(
            db, "payments", payment_id, "REJECT",
            {"status": PaymentStatus.pending.value},
            {"status": PaymentStatus.rejected.value, "reason": _clean(reason)},
            reviewer_id,
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise

    await db.refresh(payment)
    updated = await _refreshed_dues(db, (dues[d] for d in reversed_amounts))
    logger.info(
        "Payment %s rejected by %s; reversed %d due allocation(s)",
        payment_id, reviewer_id, len(reversed_amounts),
    )
    return PaymentResult(
        payment=_payment_to_response(payment),
        allocations=[AllocationResponse.model_validate(a) for a in payment.allocations],
        updated_dues=updated,
    )


async def payment_receipt(db: AsyncSession, payment_id: UUID) -> PaymentReceipt:
    payment = await db.get(Payment, payment_id)
    if payment is None:
        raise UnknownPayment(payment_id)
    student = await db.get(Student, payment.student_id)
    school_class = await db.get(SchoolClass, student.class_id) if student else None

    due_ids = [a.due_id for a in payment.allocations if a.due_id is not None]
    dues: Dict[UUID, StudentDue] = {}
    if due_ids:
        result = await db.execute(select(StudentDue).where(StudentDue.id.in_(due_ids)))
        dues = {d.id: d for d in result.scalars().all()}

    lines: List[ReceiptLine] = []
    for alloc in payment.allocations:
        due = dues.get(alloc.due_id) if alloc.due_id else None
        if due is not None:
            description = ITEM_LABELS.get(due.item_type, due.item_type)
            month = academic_calendar.format_month_label(due.due_month) if due.due_month else None
        else:
            description = alloc.label or alloc.category or alloc.notes
            month = None
        lines.append(ReceiptLine(description=description, month=month, amount=to_money(alloc.amount)))

    return PaymentReceipt(
        payment_id=payment.id,
        receipt_number=f"RCP-{payment.created_at:%Y%m%d}-{str(payment.id)[:8].upper()}",
        student_id=payment.student_id,
        student_name=student.name if student else "",
        ledger_number=student.ledger_number if student else None,
        class_name=school_class.name if school_class else None,
        academic_year=payment.academic_year,
        payment_date=payment.payment_date,
        payment_method=payment.payment_method,
        reference_number=payment.reference_number,
        status=payment.status,
        lines=lines,
        total=to_money(payment.amount),
    )
