"""Dashboard figures: pending work and van route collection."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from fee_ledger.api.v1.dashboard import service as dashboard_service
from fee_ledger.api.v1.payments import service as payments_service
from fee_ledger.api.v1.payments.schemas import AllocationInput, RecordPaymentRequest
from fee_ledger.core.models import AcademicYear, Student, TransportFee

NOW = datetime(2024, 6, 15, 10, 30)


async def _pay(db, user_id, student_id, amount: str, year: str = "2024-25", verify: bool = False, day=None):
    request = RecordPaymentRequest(
        student_id=student_id,
        payment_date=day or date(2024, 6, 5),
        allocations=[AllocationInput(amount=Decimal(amount), label="Fee")],
        verify=verify,
    )
    return await payments_service.record_payment(db, request, year, user_id)


@pytest.mark.asyncio
async def test_pending_verifications_are_counted_per_year(db_session, admin_user, student, academic_year) -> None:
    db_session.add(AcademicYear(code="2023-24", name="2023-24", start_month=4, is_active=True, is_current=False))
    await db_session.commit()
    user_id, student_id = admin_user.id, student.id

    await _pay(db_session, user_id, student_id, "500")
    await _pay(db_session, user_id, student_id, "700", year="2023-24", day=date(2024, 3, 5))

    actions = await dashboard_service.pending_actions(db_session, "2024-25", NOW)
    stats = await dashboard_service.get_dashboard_stats(db_session, "2024-25", NOW)
    assert actions.pending_verifications == 1
    assert stats.pending_verification == 1

    previous = await dashboard_service.pending_actions(db_session, "2023-24", NOW)
    assert previous.pending_verifications == 1


@pytest.mark.asyncio
async def test_van_collection_counts_route_riders_only(
    db_session, admin_user, student, school_class, academic_year
) -> None:
    walker = Student(name="Bina", ledger_number="L-002", class_id=school_class.id, is_hosteller=False, status="ACTIVE")
    db_session.add(walker)
    db_session.add(
        TransportFee(
            student_id=student.id,
            route_name="Route A",
            monthly_amount=Decimal("600"),
            academic_year="2024-25",
            start_date=date(2024, 4, 1),
        )
    )
    await db_session.commit()
    user_id, rider_id, walker_id = admin_user.id, student.id, walker.id

    await _pay(db_session, user_id, rider_id, "600", verify=True)
    await _pay(db_session, user_id, rider_id, "3900", verify=True)
    await _pay(db_session, user_id, rider_id, "600", verify=True, day=date(2024, 5, 5))  # previous month
    await _pay(db_session, user_id, rider_id, "250")  # not verified
    await _pay(db_session, user_id, walker_id, "3900", verify=True)

    stats = await dashboard_service.get_dashboard_stats(db_session, "2024-25", NOW)
    assert stats.van_collection == Decimal("4500.00")
    assert stats.van_students == 1
    assert stats.current_month_collection == Decimal("8400.00")


@pytest.mark.asyncio
async def test_van_figures_are_zero_without_routes(db_session, admin_user, student, academic_year) -> None:
    await _pay(db_session, admin_user.id, student.id, "600", verify=True)
    stats = await dashboard_service.get_dashboard_stats(db_session, "2024-25", NOW)
    assert stats.van_collection == Decimal("0")
    assert stats.van_students == 0
