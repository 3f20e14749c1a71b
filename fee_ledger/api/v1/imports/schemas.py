"""Bulk reconciliation import schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ImportRow(BaseModel):
    """One student row of a class sheet. month_values is keyed by position in the academic year (0 = first month)."""

    sheet: str
    row_index: int = Field(..., description="Zero-based row index within the sheet")
    ledger_number: Optional[str] = None
    student_name: str
    father_name: Optional[str] = None
    phone: Optional[str] = None
    admission_type: Optional[str] = None
    month_values: Dict[int, Any] = Field(default_factory=dict)

    @property
    def is_synthesized(self) -> bool:
        return not self.ledger_number

    @property
    def student_identifier(self) -> str:
        return self.ledger_number or f"excel-{self.sheet}-{self.row_index}"

    @property
    def is_hosteller(self) -> bool:
        return "hostel" in (self.admission_type or "").lower()


class ParsedWorkbook(BaseModel):
    sheet_names: List[str]
    rows: List[ImportRow]


class SynthesizedIdentity(BaseModel):
    identifier: str
    sheet: str
    row: int
    student_name: str
    student_id: Optional[UUID] = None


class ImportResult(BaseModel):
    import_id: Optional[UUID] = None
    file_name: Optional[str] = None
    academic_year: str
    sheets_processed: int
    sheets_ignored: List[str] = []
    records_imported: int
    records_skipped: int
    # Rows without a ledger number; their students need manual reconciliation
    synthesized_identities: List[SynthesizedIdentity] = []
    provisional_students: List[UUID] = []
    errors: List[str] = []
    import_status: str


class ExcelImportResponse(BaseModel):
    id: UUID
    file_name: str
    file_size: Optional[int] = None
    academic_year: str
    sheets_processed: int
    records_imported: int
    records_skipped: int
    import_status: str
    error_log: Optional[List[str]] = None
    imported_by: Optional[UUID] = None
    imported_at: datetime

    class Config:
        from_attributes = True
