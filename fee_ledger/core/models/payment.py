"""Payment and its allocations. Created together in one transaction; only status changes afterwards."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','verified','rejected')",
            name="chk_payment_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    academic_year = Column(
        String(20),
        ForeignKey("academic_years.code", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)  # sum of allocations
    payment_method = Column(String(30), nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    reference_number = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    # Import deduplication key: academicYear|className|studentIdentifier|monthLabel
    transaction_key = Column(String(255), nullable=True, unique=True)
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    verified_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    allocations = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PaymentAllocation.created_at",
    )


class PaymentAllocation(Base):
    """Portion of a payment applied to one due, or to a self-describing custom charge (due_id null)."""

    __tablename__ = "payment_allocations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_payment_allocation_amount_positive"),
        CheckConstraint(
            "due_id IS NOT NULL OR label IS NOT NULL OR category IS NOT NULL OR notes IS NOT NULL",
            name="chk_payment_allocation_described",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    payment_id = Column(Uuid, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    due_id = Column(Uuid, ForeignKey("student_dues.id", ondelete="RESTRICT"), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    label = Column(String(120), nullable=True)
    category = Column(String(60), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    payment = relationship("Payment", back_populates="allocations")
    due = relationship("StudentDue")
