"""Transport (van route) fee schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TransportFeeCreate(BaseModel):
    student_id: UUID
    route_name: str = Field(..., min_length=1, max_length=100)
    monthly_amount: Decimal = Field(..., gt=0)
    academic_year: Optional[str] = Field(None, description="Defaults to the current academic year")
    start_date: Optional[date] = Field(None, description="Defaults to the first day of the academic year")
    end_date: Optional[date] = None


class TransportFeeResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: Optional[str] = None
    class_name: Optional[str] = None
    route_name: str
    monthly_amount: Decimal
    academic_year: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TransportFeeListResponse(BaseModel):
    items: List[TransportFeeResponse]
    total_students: int
    monthly_revenue: Decimal
    route_count: int
