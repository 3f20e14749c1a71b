"""Fee structure schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fee_ledger.core.enums import FeeStructureState, OccupancyMode


class FeeComponentsInput(BaseModel):
    """One occupancy mode's row in the fee-structure editor. Accepts camelCase keys from the editor."""

    admission: Decimal = Field(Decimal("0"), ge=0)
    monthly: Decimal = Field(Decimal("0"), ge=0)
    school_fees_total: Optional[Decimal] = Field(None, ge=0, alias="schoolFeesTotal")
    uniform: Decimal = Field(Decimal("0"), ge=0)
    hst_dress: Decimal = Field(Decimal("0"), ge=0, alias="hstDress")
    copy_fee: Decimal = Field(Decimal("0"), ge=0, alias="copy")
    book: Decimal = Field(Decimal("0"), ge=0)

    class Config:
        populate_by_name = True


class FeeComponentsResponse(BaseModel):
    admission: Decimal
    monthly: Decimal
    school_fees_total: Optional[Decimal] = None
    uniform: Decimal
    hst_dress: Decimal
    copy_fee: Decimal
    book: Decimal
    total: Decimal


class FeeStructureSave(BaseModel):
    class_id: UUID
    academic_year: Optional[str] = Field(None, description="Defaults to the current academic year")
    fee_type: str = Field("tuition", max_length=30)
    hosteller: FeeComponentsInput = Field(default_factory=FeeComponentsInput)
    day_scholar: FeeComponentsInput = Field(default_factory=FeeComponentsInput, alias="dayScholar")

    class Config:
        populate_by_name = True


class FeeStructureResponse(BaseModel):
    id: UUID
    class_id: UUID
    class_name: Optional[str] = None
    academic_year: str
    fee_type: str
    state: FeeStructureState
    hosteller_amount: Decimal
    day_scholar_amount: Decimal
    hosteller: FeeComponentsResponse
    day_scholar: FeeComponentsResponse
    # Stored totals disagree with totals recomputed from the components
    total_mismatch: bool = False
    committed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CommitResult(BaseModel):
    fee_structure: FeeStructureResponse
    dues_created: int


class FeeTotalVariance(BaseModel):
    fee_structure_id: UUID
    class_id: UUID
    class_name: Optional[str] = None
    mode: OccupancyMode
    stored: Decimal
    computed: Decimal
    variance: Decimal


class ClassFeeOverview(BaseModel):
    class_id: UUID
    class_name: str
    hostellers: int
    day_scholars: int
    hosteller_monthly: Decimal
    day_scholar_monthly: Decimal
    expected_monthly: Decimal
    expected_annual: Decimal
    actual_collection: Decimal
    variance: Decimal


class FeeOverviewResponse(BaseModel):
    academic_year: str
    classes: List[ClassFeeOverview]
    total_students: int
    total_expected_monthly: Decimal
    total_expected_annual: Decimal
    total_actual_collection: Decimal
    total_variance: Decimal
