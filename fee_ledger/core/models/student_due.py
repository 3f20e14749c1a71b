"""Student due: one billable obligation (monthly or one-time). Mutated only by payment allocation."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid, case
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from fee_ledger.core.ledger import derive_due_status
from fee_ledger.db.session import Base


class StudentDue(Base):
    """
    0 <= paid_amount <= amount. Status is derived, never stored.
    version is bumped on every balance change; writers compare against the version they read.
    """

    __tablename__ = "student_dues"
    __table_args__ = (
        CheckConstraint("due_type IN ('monthly','one_time')", name="chk_student_due_type"),
        CheckConstraint("amount > 0", name="chk_student_due_amount_positive"),
        CheckConstraint(
            "paid_amount >= 0 AND paid_amount <= amount",
            name="chk_student_due_paid_within_amount",
        ),
        CheckConstraint(
            "(due_type = 'monthly' AND due_month IS NOT NULL) OR (due_type = 'one_time')",
            name="chk_student_due_month_for_monthly",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year = Column(
        String(20),
        ForeignKey("academic_years.code", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    due_type = Column(String(20), nullable=False)  # monthly, one_time
    due_month = Column(String(7), nullable=True)  # MonthKey "YYYY-MM"; monthly dues only
    item_type = Column(String(30), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    # Soft-retire flag; dues referenced by payments are never deleted
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    school_class = relationship("SchoolClass")

    @hybrid_property
    def status(self) -> str:
        return derive_due_status(self.amount, self.paid_amount).value

    @status.expression
    def status(cls):
        return case(
            (cls.paid_amount >= cls.amount, "paid"),
            (cls.paid_amount > 0, "partial"),
            else_="due",
        )
