import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class Student(Base):
    """
    Student as seen by the fee ledger.
    is_provisional marks records created by bulk import from a synthesized identifier;
    they must be reconciled to a real student by hand.
    """

    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # Stable external ledger number from the school's paper/spreadsheet ledger
    ledger_number = Column(String(50), nullable=True, unique=True, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    is_hosteller = Column(Boolean, nullable=False, default=False)
    guardian_name = Column(String(255), nullable=True)
    guardian_phone = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE | INACTIVE
    is_provisional = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass")
