"""Fee structures, due generation and the due ledger queries."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from fee_ledger.api.v1.dues import service as dues_service
from fee_ledger.api.v1.dues.schemas import DueFilters, OneTimeChargeCreate
from fee_ledger.api.v1.fee_structures import service as fee_service
from fee_ledger.api.v1.fee_structures.schemas import FeeStructureSave
from fee_ledger.api.v1.payments import service as payments_service
from fee_ledger.api.v1.payments.schemas import AllocationInput, RecordPaymentRequest
from fee_ledger.core import academic_calendar
from fee_ledger.core.enums import DueItem, DueStatus, DueType, FeeStructureState
from fee_ledger.core.exceptions import ValidationError
from fee_ledger.core.models import FeeStructure, Student


@pytest.fixture()
async def hosteller(db_session, school_class):
    s = Student(name="Bina", ledger_number="L-002", class_id=school_class.id, is_hosteller=True, status="ACTIVE")
    db_session.add(s)
    await db_session.commit()
    return s


@pytest.fixture()
async def committed_structure(db_session, admin_user, academic_year, school_class, student, hosteller):
    payload = FeeStructureSave(
        class_id=school_class.id,
        hosteller={"admission": 5500, "monthly": 4500, "hstDress": 1500},
        dayScholar={"admission": 5500, "monthly": 3900, "uniform": 3500, "copy": 700, "book": 1245},
    )
    saved = await fee_service.save_fee_structure(db_session, payload, "2024-25", admin_user.id)
    return await fee_service.commit_fee_structure(db_session, saved.id, admin_user.id)


@pytest.mark.asyncio
async def test_save_creates_draft_with_computed_totals(db_session, admin_user, academic_year, school_class) -> None:
    payload = FeeStructureSave(
        class_id=school_class.id,
        dayScholar={"admission": 5500, "monthly": 3900, "uniform": 3500, "hstDress": 1500, "copy": 700, "book": 1245},
    )
    saved = await fee_service.save_fee_structure(db_session, payload, "2024-25", admin_user.id)
    assert saved.state == FeeStructureState.DRAFT
    assert saved.day_scholar_amount == Decimal("16345")
    assert saved.day_scholar.total == Decimal("16345")
    assert saved.hosteller_amount == Decimal("0")
    assert saved.total_mismatch is False


@pytest.mark.asyncio
async def test_commit_generates_dues_per_occupancy_mode(db_session, committed_structure, student, hosteller) -> None:
    assert committed_structure.dues_created == 30
    assert committed_structure.fee_structure.state == FeeStructureState.COMMITTED

    day = await dues_service.list_dues(db_session, DueFilters(student_id=student.id, academic_year="2024-25"))
    assert len(day) == 16
    assert {d.item_type for d in day if d.due_type == DueType.one_time} == {"admission", "uniform", "copy", "book"}
    monthly = [d for d in day if d.due_type == DueType.monthly]
    assert sorted(d.due_month for d in monthly) == academic_calendar.months_of("2024-25")
    assert {d.amount for d in monthly} == {Decimal("3900")}

    hostel = await dues_service.list_dues(db_session, DueFilters(student_id=hosteller.id, academic_year="2024-25"))
    assert len(hostel) == 14
    assert {d.item_type for d in hostel if d.due_type == DueType.one_time} == {"admission", "hst_dress"}


@pytest.mark.asyncio
async def test_recommit_is_idempotent(db_session, admin_user, committed_structure) -> None:
    again = await fee_service.commit_fee_structure(db_session, committed_structure.fee_structure.id, admin_user.id)
    assert again.dues_created == 0


@pytest.mark.asyncio
async def test_month_filter_only_applies_to_monthly(db_session, committed_structure, student) -> None:
    only_june = await dues_service.list_dues(
        db_session,
        DueFilters(student_id=student.id, academic_year="2024-25", due_type=DueType.monthly, month="2024-06"),
    )
    assert [d.due_month for d in only_june] == ["2024-06"]

    ignored = await dues_service.list_dues(
        db_session, DueFilters(student_id=student.id, academic_year="2024-25", month="2024-06")
    )
    assert len(ignored) == 16


@pytest.mark.asyncio
async def test_status_filter_and_summary(db_session, admin_user, committed_structure, student) -> None:
    dues = await dues_service.list_dues(
        db_session,
        DueFilters(student_id=student.id, academic_year="2024-25", due_type=DueType.monthly, month="2024-04"),
    )
    april = dues[0]
    await payments_service.record_payment(
        db_session,
        RecordPaymentRequest(
            student_id=student.id,
            payment_date=date(2024, 4, 3),
            allocations=[AllocationInput(due_id=april.id, amount=Decimal("3900"))],
        ),
        "2024-25",
        admin_user.id,
    )

    paid = await dues_service.list_dues(
        db_session, DueFilters(student_id=student.id, academic_year="2024-25", status=DueStatus.paid)
    )
    assert [d.id for d in paid] == [april.id]

    summary = await dues_service.student_due_summary(db_session, student.id, "2024-25")
    assert summary.total_billed == Decimal("57745")  # 5500 + 3500 + 700 + 1245 + 12 * 3900
    assert summary.total_paid == Decimal("3900")
    assert summary.total_pending == Decimal("53845")
    assert summary.count == 16

    per_class = await dues_service.class_due_summary(db_session, "2024-25")
    assert len(per_class) == 1
    assert per_class[0].class_name == "I"
    assert per_class[0].total_paid == Decimal("3900")


@pytest.mark.asyncio
async def test_retired_due_is_hidden(db_session, admin_user, student, make_due) -> None:
    due = await make_due(student, "700", item_type=DueItem.COPY)
    retired = await dues_service.retire_due(db_session, due.id, admin_user.id)
    assert retired.is_active is False

    visible = await dues_service.list_dues(db_session, DueFilters(student_id=student.id))
    assert visible == []
    everything = await dues_service.list_dues(db_session, DueFilters(student_id=student.id, include_retired=True))
    assert [d.id for d in everything] == [due.id]


@pytest.mark.asyncio
async def test_levy_one_time_charge(db_session, admin_user, academic_year, student) -> None:
    due = await dues_service.levy_one_time_charge(
        db_session,
        OneTimeChargeCreate(student_id=student.id, item_type=DueItem.REGISTRATION, amount=Decimal("500"), notes="late joiner"),
        "2024-25",
        admin_user.id,
    )
    assert due.due_type == DueType.one_time
    assert due.due_month is None
    assert due.status == DueStatus.due
    assert due.balance == Decimal("500")

    with pytest.raises(ValidationError) as exc:
        await dues_service.levy_one_time_charge(
            db_session,
            OneTimeChargeCreate(student_id=student.id, amount=Decimal("10.001")),
            "2024-25",
            admin_user.id,
        )
    assert exc.value.errors[0]["field"] == "amount"


@pytest.mark.asyncio
async def test_verify_totals_reports_tampered_rows(db_session, committed_structure) -> None:
    assert await fee_service.verify_fee_structure_totals(db_session, "2024-25") == []

    fs = (await db_session.execute(select(FeeStructure))).scalar_one()
    fs.hosteller_amount = Decimal("99999")
    await db_session.commit()

    variances = await fee_service.verify_fee_structure_totals(db_session, "2024-25")
    assert len(variances) == 1
    assert variances[0].stored == Decimal("99999")
    assert variances[0].computed == Decimal("11500")
    assert variances[0].variance == Decimal("-88499")


@pytest.mark.asyncio
async def test_fee_structure_overview(db_session, committed_structure) -> None:
    overview = await fee_service.fee_structure_overview(db_session, "2024-25")
    row = overview.classes[0]
    assert (row.hostellers, row.day_scholars) == (1, 1)
    assert row.expected_monthly == Decimal("8400")
    assert row.expected_annual == Decimal("26345")
    assert row.actual_collection == Decimal("0")
    assert overview.total_variance == Decimal("-26345")
