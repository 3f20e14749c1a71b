import pytest
from httpx import AsyncClient
from jose import JWTError

from fee_ledger.auth.models import User
from fee_ledger.auth.security import create_access_token, decode_access_token


def test_token_round_trip() -> None:
    token = create_access_token(subject={"user_id": "abc", "role": "ACCOUNTANT"})
    payload = decode_access_token(token)
    assert payload["user_id"] == "abc"
    assert payload["role"] == "ACCOUNTANT"
    assert "exp" in payload


def test_expired_token_is_rejected() -> None:
    token = create_access_token(subject={"user_id": "abc"}, expires_minutes=-1)
    with pytest.raises(JWTError):
        decode_access_token(token)


@pytest.mark.asyncio
async def test_inactive_user_cannot_authenticate(client: AsyncClient, db_session) -> None:
    user = User(full_name="Former Clerk", email="former@example.com", role="ADMIN", status="INACTIVE")
    db_session.add(user)
    await db_session.commit()
    token = create_access_token(subject={"user_id": str(user.id)})

    response = await client.get("/api/v1/classes", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_role_bypasses_permission_map(client: AsyncClient, auth_headers: dict) -> None:
    response = await client.post("/api/v1/classes", headers=auth_headers, json={"name": "II", "display_order": 2})
    assert response.status_code == 201
    response = await client.get("/api/v1/classes", headers=auth_headers)
    assert [c["name"] for c in response.json()] == ["II"]
