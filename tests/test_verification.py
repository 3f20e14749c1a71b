"""Verification workflow: pending -> verified / rejected, with compensation on rejection."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from fee_ledger.api.v1.payments import service as payments_service
from fee_ledger.api.v1.payments.schemas import AllocationInput, RecordPaymentRequest
from fee_ledger.core.enums import DueStatus, PaymentStatus
from fee_ledger.core.exceptions import InvalidTransition, UnknownPayment
from fee_ledger.core.models import FeeAuditLog


async def _pay(db, user, student, *allocations, verify=False):
    request = RecordPaymentRequest(
        student_id=student.id,
        payment_date=date(2024, 6, 5),
        payment_method="upi",
        reference_number="UPI-123",
        allocations=list(allocations),
        verify=verify,
    )
    return await payments_service.record_payment(db, request, "2024-25", user.id)


@pytest.mark.asyncio
async def test_verify_pending_payment(db_session, admin_user, student, make_due) -> None:
    due = await make_due(student, "3900", due_month="2024-06")
    recorded = await _pay(db_session, admin_user, student, AllocationInput(due_id=due.id, amount=Decimal("3900")))

    verified = await payments_service.verify_payment(db_session, recorded.payment.id, admin_user.id)
    assert verified.status == PaymentStatus.verified
    assert verified.verified_by == admin_user.id


@pytest.mark.asyncio
async def test_terminal_states_do_not_transition(db_session, admin_user, student, make_due) -> None:
    due = await make_due(student, "3900", due_month="2024-06")
    recorded = await _pay(db_session, admin_user, student, AllocationInput(due_id=due.id, amount=Decimal("100")))
    payment_id, user_id = recorded.payment.id, admin_user.id

    await payments_service.verify_payment(db_session, payment_id, user_id)
    with pytest.raises(InvalidTransition) as exc:
        await payments_service.verify_payment(db_session, payment_id, user_id)
    assert exc.value.current == "verified"
    with pytest.raises(InvalidTransition):
        await payments_service.reject_payment(db_session, payment_id, user_id, "duplicate")


@pytest.mark.asyncio
async def test_reject_reverses_allocations(db_session, admin_user, student, make_due) -> None:
    monthly = await make_due(student, "3900", due_month="2024-06")
    uniform = await make_due(student, "3500")
    monthly_id, uniform_id = monthly.id, uniform.id
    recorded = await _pay(
        db_session,
        admin_user,
        student,
        AllocationInput(due_id=monthly_id, amount=Decimal("3900")),
        AllocationInput(due_id=uniform_id, amount=Decimal("1000")),
        AllocationInput(amount=Decimal("200"), label="Late fee"),
    )
    assert {d.status for d in recorded.updated_dues} == {DueStatus.paid, DueStatus.partial}

    rejected = await payments_service.reject_payment(
        db_session, recorded.payment.id, admin_user.id, "cheque bounced"
    )
    assert rejected.payment.status == PaymentStatus.rejected
    assert rejected.payment.rejection_reason == "cheque bounced"
    assert {d.id for d in rejected.updated_dues} == {monthly_id, uniform_id}
    for d in rejected.updated_dues:
        assert d.paid_amount == Decimal("0")
        assert d.status == DueStatus.due
        assert d.version == 3

    logs = (
        await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.action_type.in_(["REJECT", "COMPENSATE"])))
    ).scalars().all()
    assert sorted(log.action_type for log in logs) == ["COMPENSATE", "COMPENSATE", "REJECT"]


@pytest.mark.asyncio
async def test_rejected_balance_can_be_paid_again(db_session, admin_user, student, make_due) -> None:
    due = await make_due(student, "1000")
    recorded = await _pay(db_session, admin_user, student, AllocationInput(due_id=due.id, amount=Decimal("1000")))
    await payments_service.reject_payment(db_session, recorded.payment.id, admin_user.id)

    again = await _pay(db_session, admin_user, student, AllocationInput(due_id=due.id, amount=Decimal("1000")))
    assert again.updated_dues[0].status == DueStatus.paid


@pytest.mark.asyncio
async def test_unknown_payment(db_session, admin_user) -> None:
    import uuid

    with pytest.raises(UnknownPayment):
        await payments_service.verify_payment(db_session, uuid.uuid4(), admin_user.id)


@pytest.mark.asyncio
async def test_receipt_lines(db_session, admin_user, student, school_class, make_due) -> None:
    due = await make_due(student, "3900", due_month="2024-06")
    recorded = await _pay(
        db_session,
        admin_user,
        student,
        AllocationInput(due_id=due.id, amount=Decimal("3900")),
        AllocationInput(amount=Decimal("150"), category="fine"),
    )
    receipt = await payments_service.payment_receipt(db_session, recorded.payment.id)
    assert receipt.student_name == "Asha"
    assert receipt.class_name == "I"
    assert receipt.total == Decimal("4050")
    lines = {line.description: line for line in receipt.lines}
    assert lines["Monthly fee"].month == "June 2024"
    assert lines["Monthly fee"].amount == Decimal("3900")
    assert lines["fine"].month is None
    assert receipt.receipt_number.startswith("RCP-")
