from typing import Dict
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.auth.models import Role, User
from fee_ledger.auth.schemas import CurrentUser
from fee_ledger.auth.security import decode_access_token
from fee_ledger.db.session import get_db


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user and their permissions from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    user_id_str = payload.get("user_id") or payload.get("sub")
    if not user_id_str:
        raise credentials_exception
    try:
        user_id = UUID(str(user_id_str))
    except ValueError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or user.status != "ACTIVE":
        raise credentials_exception

    permissions: Dict[str, Dict[str, bool]] = {}
    role = None
    if user.role_id is not None:
        role = await db.get(Role, user.role_id)
    if role is None:
        role = (await db.execute(select(Role).where(Role.name == user.role))).scalar_one_or_none()
    if role and role.permissions:
        permissions = role.permissions  # type: ignore[assignment]

    return CurrentUser(id=user.id, role=user.role, permissions=permissions or {})
