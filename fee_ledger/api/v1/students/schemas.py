from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_order: Optional[int] = None


class ClassResponse(BaseModel):
    id: UUID
    name: str
    display_order: Optional[int] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    class_id: UUID
    ledger_number: Optional[str] = Field(None, max_length=50)
    is_hosteller: bool = False
    guardian_name: Optional[str] = Field(None, max_length=255)
    guardian_phone: Optional[str] = Field(None, max_length=20)


class StudentResponse(BaseModel):
    id: UUID
    name: str
    ledger_number: Optional[str] = None
    class_id: UUID
    class_name: Optional[str] = None
    is_hosteller: bool
    guardian_name: Optional[str] = None
    guardian_phone: Optional[str] = None
    status: str
    is_provisional: bool
    created_at: datetime

    class Config:
        from_attributes = True
