import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Uuid

from fee_ledger.db.session import Base


class ExcelImport(Base):
    """One row per bulk reconciliation run."""

    __tablename__ = "excel_imports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=True)
    academic_year = Column(String(20), ForeignKey("academic_years.code", ondelete="RESTRICT"), nullable=False)
    sheets_processed = Column(Integer, nullable=False, default=0)
    records_imported = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    import_status = Column(String(30), nullable=False, default="processing")  # completed, completed_with_errors
    error_log = Column(JSON, nullable=True)
    synthesized_identities = Column(JSON, nullable=True)
    imported_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    imported_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
