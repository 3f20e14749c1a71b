import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class TransportFee(Base):
    """Van route a student rides in an academic year, with its monthly charge."""

    __tablename__ = "transport_fees"
    __table_args__ = (
        CheckConstraint("monthly_amount > 0", name="ck_transport_fees_amount_positive"),
        Index("ix_transport_fees_student_year", "student_id", "academic_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    route_name = Column(String(100), nullable=False)
    monthly_amount = Column(Numeric(10, 2), nullable=False)
    academic_year = Column(
        String(20), ForeignKey("academic_years.code", ondelete="RESTRICT"), nullable=False, index=True
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
