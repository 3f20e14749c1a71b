"""Payment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_ledger.api.v1.dues.schemas import DueResponse
from fee_ledger.core.enums import PaymentMethod, PaymentStatus


class AllocationInput(BaseModel):
    """Portion of the payment for one due, or a custom charge described by label/category/notes."""

    due_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0)
    label: Optional[str] = Field(None, max_length=120)
    category: Optional[str] = Field(None, max_length=60)
    notes: Optional[str] = Field(None, max_length=2000)


class RecordPaymentRequest(BaseModel):
    student_id: UUID
    payment_date: date = Field(default_factory=date.today)
    payment_method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = Field(None, max_length=2000)
    academic_year: Optional[str] = Field(None, description="Defaults to the current academic year")
    allocations: List[AllocationInput] = Field(default_factory=list)
    # Create the payment already verified by the recorder
    verify: bool = False


class RejectPaymentRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class AllocationResponse(BaseModel):
    id: UUID
    payment_id: UUID
    due_id: Optional[UUID] = None
    amount: Decimal
    label: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    academic_year: str
    amount: Decimal
    payment_method: str
    payment_date: date
    reference_number: Optional[str] = None
    remarks: Optional[str] = None
    status: PaymentStatus
    transaction_key: Optional[str] = None
    created_by: UUID
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    allocations: List[AllocationResponse] = []

    class Config:
        from_attributes = True


class PaymentResult(BaseModel):
    """Outcome of a ledger-changing payment operation, with the dues it touched."""

    payment: PaymentResponse
    allocations: List[AllocationResponse]
    updated_dues: List[DueResponse]


class ReceiptLine(BaseModel):
    description: str
    month: Optional[str] = None
    amount: Decimal


class PaymentReceipt(BaseModel):
    payment_id: UUID
    receipt_number: str
    student_id: UUID
    student_name: str
    ledger_number: Optional[str] = None
    class_name: Optional[str] = None
    academic_year: str
    payment_date: date
    payment_method: str
    reference_number: Optional[str] = None
    status: PaymentStatus
    lines: List[ReceiptLine]
    total: Decimal
