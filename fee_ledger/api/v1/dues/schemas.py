"""Dues schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_ledger.core.enums import DueItem, DueStatus, DueType


class DueFilters(BaseModel):
    status: Optional[DueStatus] = None
    due_type: Optional[DueType] = None
    class_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    month: Optional[str] = Field(None, description="MonthKey YYYY-MM; applies to monthly dues only")
    academic_year: Optional[str] = None
    include_retired: bool = False


class DueResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    ledger_number: Optional[str] = None
    class_id: UUID
    class_name: Optional[str] = None
    academic_year: str
    due_type: DueType
    due_month: Optional[str] = None
    item_type: str
    amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: DueStatus
    notes: Optional[str] = None
    is_active: bool
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DueSummary(BaseModel):
    total_billed: Decimal
    total_paid: Decimal
    total_pending: Decimal
    count: int = 0


class DueListResponse(BaseModel):
    items: List[DueResponse]
    summary: DueSummary


class ClassDueSummary(DueSummary):
    class_id: UUID
    class_name: str


class OneTimeChargeCreate(BaseModel):
    """Levy a one-time charge on a single student."""

    student_id: UUID
    academic_year: Optional[str] = Field(None, description="Defaults to the current academic year")
    item_type: DueItem = DueItem.MISC
    amount: Decimal = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=2000)
