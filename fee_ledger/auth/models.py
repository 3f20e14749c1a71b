import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class User(Base):
    """Staff user (accountant, admin). Credentials are issued by the external auth service."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    # High-level role: SUPER_ADMIN, ADMIN, ACCOUNTANT, CLERK, etc.
    role = Column(String(50), nullable=False)
    role_id = Column(Uuid, ForeignKey("roles.id"), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    role_obj = relationship("Role", foreign_keys=[role_id])


class Role(Base):
    """Role with JSON permissions."""

    __tablename__ = "roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    # Example shape:
    # {
    #   "payments": {"create": true, "read": true, "verify": false},
    #   "dues": {"read": true}
    # }
    permissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
