"""Fee structure: per class per academic year, amounts for both occupancy modes."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.core.enums import FeeStructureState
from fee_ledger.db.session import Base


class FeeStructure(Base):
    """
    Fee structure per class per academic year.
    description holds the serialized component blob (see fee_structures.components);
    hosteller_amount/day_scholar_amount are derived totals and are re-verified, never trusted.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        UniqueConstraint(
            "class_id",
            "academic_year",
            "fee_type",
            name="uq_fee_structures_class_year_type",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    academic_year = Column(
        String(20),
        ForeignKey("academic_years.code", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    fee_type = Column(String(30), nullable=False, default="tuition")
    hosteller_amount = Column(Numeric(12, 2), nullable=False, default=0)
    day_scholar_amount = Column(Numeric(12, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    state = Column(String(20), nullable=False, default=FeeStructureState.DRAFT.value)  # draft, committed
    committed_at = Column(DateTime(timezone=True), nullable=True)
    committed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass")
