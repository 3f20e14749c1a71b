from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AcademicYearCreate(BaseModel):
    """Create academic year. code must be unique, e.g. 2024-25."""

    code: str = Field(..., min_length=4, max_length=20, description="e.g. 2024-25")
    name: Optional[str] = Field(None, max_length=80, description="Display name; defaults to the code")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_current: bool = Field(False, description="If true, all other years become non-current")


class AcademicYearResponse(BaseModel):
    code: str
    name: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_month: int
    is_active: bool
    is_current: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AcademicYearMonthsResponse(BaseModel):
    code: str
    months: List[str]
    labels: List[str]
