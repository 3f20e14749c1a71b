"""
Bulk reconciliation of legacy fee workbooks.

Workbook layout: one sheet per class (sheet title = class name), IMPORT_HEADER_ROWS header
rows, then one row per student:

    0 ledger number | 1 student name | 2 father name | 3 phone | 4 admission type | 5..16 months

Every positive month cell becomes one verified payment recorded through the payment engine,
keyed by "<year>|<class>|<student identifier>|<Mon>" so a re-import skips what is already there.
"""

import io
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import UUID

from openpyxl import load_workbook
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fee_ledger.api.v1.academic_years.service import get_academic_year
from fee_ledger.api.v1.payments.schemas import AllocationInput, RecordPaymentRequest
from fee_ledger.api.v1.payments.service import record_payment
from fee_ledger.api.v1.students.schemas import StudentCreate
from fee_ledger.api.v1.students.service import create_student, get_classes, get_student_by_ledger_number
from fee_ledger.core import academic_calendar
from fee_ledger.core.config import settings
from fee_ledger.core.enums import DueItem, DueType, PaymentMethod
from fee_ledger.core.exceptions import DuplicateImportKey, ServiceError, ValidationError
from fee_ledger.core.ledger import is_whole_cents, remaining_balance, to_money
from fee_ledger.core.models import ExcelImport, Payment, StudentDue

from .schemas import ExcelImportResponse, ImportResult, ImportRow, ParsedWorkbook, SynthesizedIdentity

logger = logging.getLogger(__name__)

FIRST_MONTH_COLUMN = 5
MONTH_COLUMNS = 12


def _cell_str(row: Tuple[Any, ...], idx: int) -> Optional[str]:
    if idx >= len(row) or row[idx] is None:
        return None
    value = row[idx]
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _month_amount(value: Any) -> Optional[Decimal]:
    """Amount in a month cell; None for empty or zero. Raises ValueError for text that is not a number."""
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError(f"not an amount: {value!r}")
    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        raise ValueError(f"not an amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"not an amount: {value!r}")
    if amount == 0:
        return None
    if not is_whole_cents(amount):
        raise ValueError(f"more than 2 decimal places: {value!r}")
    return to_money(amount)


def transaction_key(academic_year: str, class_name: str, student_identifier: str, month_label: str) -> str:
    return f"{academic_year}|{class_name}|{student_identifier}|{month_label}"


def parse_fee_workbook(content: bytes, header_rows: Optional[int] = None) -> ParsedWorkbook:
    """Read every sheet into ImportRows. An unreadable workbook fails the whole import."""
    if not content:
        raise ValidationError("File is empty", [{"field": "file", "message": "empty upload"}])
    header_rows = settings.import_header_rows if header_rows is None else header_rows
    try:
        wb = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValidationError(
            "Invalid Excel file",
            [{"field": "file", "message": str(e) or type(e).__name__}],
        ) from e

    sheet_names: List[str] = []
    rows: List[ImportRow] = []
    try:
        for ws in wb.worksheets:
            sheet = str(ws.title).strip()
            sheet_names.append(sheet)
            for row_index, row in enumerate(ws.iter_rows(values_only=True)):
                if row_index < header_rows or not row or all(_is_blank(c) for c in row):
                    continue
                name = _cell_str(row, 1)
                if not name:
                    continue
                month_values = {}
                for pos in range(MONTH_COLUMNS):
                    col = FIRST_MONTH_COLUMN + pos
                    if col < len(row) and not _is_blank(row[col]):
                        month_values[pos] = row[col]
                rows.append(
                    ImportRow(
                        sheet=sheet,
                        row_index=row_index,
                        ledger_number=_cell_str(row, 0),
                        student_name=name,
                        father_name=_cell_str(row, 2),
                        phone=_cell_str(row, 3),
                        admission_type=_cell_str(row, 4),
                        month_values=month_values,
                    )
                )
    finally:
        wb.close()
    return ParsedWorkbook(sheet_names=sheet_names, rows=rows)


async def _existing_keys(db: AsyncSession, academic_year: str) -> Set[str]:
    result = await db.execute(
        select(Payment.transaction_key).where(Payment.transaction_key.like(f"{academic_year}|%"))
    )
    return {key for (key,) in result.all()}


async def _monthly_due_for(
    db: AsyncSession,
    student_id: UUID,
    academic_year: str,
    due_month: str,
    amount: Decimal,
) -> Optional[UUID]:
    """The student's open monthly due for that month, when it can absorb the whole amount."""
    result = await db.execute(
        select(StudentDue).where(
            StudentDue.student_id == student_id,
            StudentDue.academic_year == academic_year,
            StudentDue.due_type == DueType.monthly.value,
            StudentDue.due_month == due_month,
            StudentDue.is_active.is_(True),
        )
    )
    for due in result.scalars().all():
        if remaining_balance(due.amount, due.paid_amount) >= amount:
            return due.id
    return None


class _StudentResolver:
    """Maps sheet rows to student ids, creating provisional students for unknown identities."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.cache: Dict[str, UUID] = {}
        self.created: List[UUID] = []

    async def resolve(self, row: ImportRow, class_id: UUID) -> UUID:
        identifier = row.student_identifier
        if identifier in self.cache:
            return self.cache[identifier]
        # synthesized identifiers are stored as the provisional student's ledger number
        existing = await get_student_by_ledger_number(self.db, identifier)
        if existing is not None:
            student_id = existing.id
        else:
            created = await create_student(
                self.db,
                StudentCreate(
                    name=row.student_name[:255],
                    class_id=class_id,
                    ledger_number=identifier,
                    is_hosteller=row.is_hosteller,
                    guardian_name=row.father_name[:255] if row.father_name else None,
                    guardian_phone=row.phone[:20] if row.phone else None,
                ),
                is_provisional=True,
            )
            student_id = created.id
            self.created.append(student_id)
            logger.info("Created provisional student %s for %s", student_id, identifier)
        self.cache[identifier] = student_id
        return student_id


async def import_rows(
    db: AsyncSession,
    parsed: ParsedWorkbook,
    academic_year: str,
    imported_by: UUID,
    file_name: str = "upload.xlsx",
    file_size: Optional[int] = None,
) -> ImportResult:
    """
    Apply parsed rows to the ledger. Per-row and per-month failures are collected, never fatal.
    Sheets whose title does not match an active class are reported in sheets_ignored.
    """
    await get_academic_year(db, academic_year)
    months = academic_calendar.months_of(academic_year)
    labels = [academic_calendar.month_abbr(m) for m in months]

    class_ids = {c.name.strip().lower(): (c.id, c.name) for c in await get_classes(db)}
    sheets: Dict[str, Tuple[UUID, str]] = {}
    ignored: List[str] = []
    for sheet in parsed.sheet_names:
        match = class_ids.get(sheet.strip().lower())
        if match is None:
            ignored.append(sheet)
        else:
            sheets[sheet] = match

    logger.info(
        "Import %s for %s: %d row(s), sheets %s, ignored %s",
        file_name, academic_year, len(parsed.rows), sorted(sheets), ignored,
    )

    seen = await _existing_keys(db, academic_year)
    resolver = _StudentResolver(db)
    imported = skipped = 0
    errors: List[str] = []
    synthesized: List[SynthesizedIdentity] = []

    for row in parsed.rows:
        if row.sheet not in sheets:
            continue
        class_id, class_name = sheets[row.sheet]
        where = f"{row.sheet} Row {row.row_index + 1}"
        identity: Optional[SynthesizedIdentity] = None
        if row.is_synthesized:
            identity = SynthesizedIdentity(
                identifier=row.student_identifier,
                sheet=row.sheet,
                row=row.row_index + 1,
                student_name=row.student_name,
            )
            synthesized.append(identity)

        for pos, raw in sorted(row.month_values.items()):
            label = labels[pos]
            try:
                amount = _month_amount(raw)
            except ValueError as e:
                skipped += 1
                errors.append(f"{where} {label}: {e}")
                continue
            if amount is None:
                continue

            key = transaction_key(academic_year, class_name, row.student_identifier, label)
            if key in seen:
                skipped += 1
                continue
            seen.add(key)

            try:
                student_id = await resolver.resolve(row, class_id)
                if identity is not None:
                    identity.student_id = student_id
                due_id = await _monthly_due_for(db, student_id, academic_year, months[pos], amount)
                if due_id is not None:
                    allocation = AllocationInput(due_id=due_id, amount=amount)
                else:
                    allocation = AllocationInput(
                        amount=amount,
                        label=f"Monthly fee {label} {academic_year}",
                        category=DueItem.MONTHLY.value,
                        notes=f"Imported from {where}",
                    )
                request = RecordPaymentRequest(
                    student_id=student_id,
                    payment_date=academic_calendar.first_day_of_month(months[pos]),
                    payment_method=PaymentMethod.CASH,
                    remarks=f"Monthly fee for {row.student_name[:255]} ({class_name}) - {label} {academic_year}",
                    academic_year=academic_year,
                    allocations=[allocation],
                    verify=True,
                )
                await record_payment(db, request, academic_year, imported_by, transaction_key=key)
                imported += 1
            except DuplicateImportKey:
                skipped += 1
            except ServiceError as e:
                skipped += 1
                errors.append(f"{where} {label}: {e.message}")
                logger.warning("Import row failed (%s %s): %s", where, label, e.message)
            except SchemaValidationError as e:
                skipped += 1
                problems = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
                )
                errors.append(f"{where} {label}: {problems}")
                logger.warning("Import row rejected (%s %s): %s", where, label, problems)

    status_value = "completed" if not errors else "completed_with_errors"
    log = ExcelImport(
        file_name=file_name,
        file_size=file_size,
        academic_year=academic_year,
        sheets_processed=len(sheets),
        records_imported=imported,
        records_skipped=skipped,
        import_status=status_value,
        error_log=errors or None,
        synthesized_identities=[s.model_dump(mode="json") for s in synthesized] or None,
        imported_by=imported_by,
    )
    db.add(log)
    await db.commit()
    await db.refresh(log)
    logger.info(
        "Import %s finished: %d imported, %d skipped, %d error(s), %d synthesized identities",
        log.id, imported, skipped, len(errors), len(synthesized),
    )
    return ImportResult(
        import_id=log.id,
        file_name=file_name,
        academic_year=academic_year,
        sheets_processed=len(sheets),
        sheets_ignored=ignored,
        records_imported=imported,
        records_skipped=skipped,
        synthesized_identities=synthesized,
        provisional_students=resolver.created,
        errors=errors,
        import_status=status_value,
    )


async def list_imports(db: AsyncSession, limit: int = 50) -> List[ExcelImportResponse]:
    result = await db.execute(select(ExcelImport).order_by(ExcelImport.imported_at.desc()).limit(limit))
    return [ExcelImportResponse.model_validate(i) for i in result.scalars().all()]
