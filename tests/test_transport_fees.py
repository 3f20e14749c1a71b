"""Van route assignments per student and year."""

from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from fee_ledger.api.v1.transport_fees import service as transport_service
from fee_ledger.api.v1.transport_fees.schemas import TransportFeeCreate
from fee_ledger.core.exceptions import ServiceError, UnknownStudent, ValidationError
from fee_ledger.core.models import FeeAuditLog, Student


@pytest.mark.asyncio
async def test_create_transport_fee(db_session, admin_user, student, academic_year) -> None:
    fee = await transport_service.create_transport_fee(
        db_session,
        TransportFeeCreate(student_id=student.id, route_name="  Route A ", monthly_amount=Decimal("600")),
        "2024-25",
        admin_user.id,
    )
    assert fee.route_name == "Route A"
    assert fee.monthly_amount == Decimal("600.00")
    assert fee.start_date == date(2024, 4, 1)
    assert fee.student_name == "Asha"
    assert fee.class_name == "I"
    assert fee.is_active is True

    audit = (
        await db_session.execute(select(FeeAuditLog).where(FeeAuditLog.reference_table == "transport_fees"))
    ).scalar_one()
    assert audit.action_type == "CREATE"
    assert audit.reference_id == str(fee.id)


@pytest.mark.asyncio
async def test_one_active_route_per_student_and_year(db_session, admin_user, student, academic_year) -> None:
    payload = TransportFeeCreate(student_id=student.id, route_name="Route A", monthly_amount=Decimal("600"))
    await transport_service.create_transport_fee(db_session, payload, "2024-25", admin_user.id)
    with pytest.raises(ServiceError) as exc:
        await transport_service.create_transport_fee(db_session, payload, "2024-25", admin_user.id)
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_invalid_transport_fee(db_session, admin_user, student, academic_year) -> None:
    with pytest.raises(ValidationError) as exc:
        await transport_service.create_transport_fee(
            db_session,
            TransportFeeCreate(
                student_id=student.id,
                route_name="Route A",
                monthly_amount=Decimal("600.005"),
                start_date=date(2024, 6, 1),
                end_date=date(2024, 5, 1),
            ),
            "2024-25",
            admin_user.id,
        )
    assert {e["field"] for e in exc.value.errors} == {"monthly_amount", "end_date"}

    with pytest.raises(UnknownStudent):
        await transport_service.create_transport_fee(
            db_session,
            TransportFeeCreate(
                student_id="00000000-0000-0000-0000-000000000000",
                route_name="Route A",
                monthly_amount=Decimal("600"),
            ),
            "2024-25",
            admin_user.id,
        )


@pytest.mark.asyncio
async def test_list_transport_fees(db_session, admin_user, student, school_class, academic_year) -> None:
    other = Student(name="Bina", ledger_number="L-002", class_id=school_class.id, is_hosteller=False, status="ACTIVE")
    third = Student(name="Chetan", ledger_number="L-003", class_id=school_class.id, is_hosteller=False, status="ACTIVE")
    db_session.add_all([other, third])
    await db_session.commit()
    for s, route, amount in ((third, "Route B", "800"), (student, "Route A", "600"), (other, "Route A", "600")):
        await transport_service.create_transport_fee(
            db_session,
            TransportFeeCreate(student_id=s.id, route_name=route, monthly_amount=Decimal(amount)),
            "2024-25",
            admin_user.id,
        )

    listing = await transport_service.list_transport_fees(db_session, "2024-25")
    assert [(i.route_name, i.student_name) for i in listing.items] == [
        ("Route A", "Asha"),
        ("Route A", "Bina"),
        ("Route B", "Chetan"),
    ]
    assert listing.total_students == 3
    assert listing.route_count == 2
    assert listing.monthly_revenue == Decimal("2000.00")

    route_b = await transport_service.list_transport_fees(db_session, "2024-25", route_name="Route B")
    assert [i.student_name for i in route_b.items] == ["Chetan"]


@pytest.mark.asyncio
async def test_transport_fee_endpoints(client: AsyncClient, auth_headers: dict, student, academic_year) -> None:
    response = await client.post(
        "/api/v1/transport-fees",
        headers=auth_headers,
        json={"student_id": str(student.id), "route_name": "Route A", "monthly_amount": "600"},
    )
    assert response.status_code == 201
    assert response.json()["academic_year"] == "2024-25"

    response = await client.get("/api/v1/transport-fees", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total_students"] == 1
    assert Decimal(body["monthly_revenue"]) == Decimal("600")
