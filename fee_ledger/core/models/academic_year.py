from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String

from fee_ledger.db.session import Base


class AcademicYear(Base):
    """
    Academic year keyed by its code (e.g. "2024-25").
    Only one row may be is_current = true; years are never deleted, only superseded.
    """

    __tablename__ = "academic_years"

    code = Column(String(20), primary_key=True)
    name = Column(String(80), nullable=False, unique=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    start_month = Column(Integer, nullable=False, default=4)
    is_active = Column(Boolean, nullable=False, default=True)
    is_current = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
