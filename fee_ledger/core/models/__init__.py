from fee_ledger.core.models.academic_year import AcademicYear
from fee_ledger.core.models.class_model import SchoolClass
from fee_ledger.core.models.student import Student
from fee_ledger.core.models.fee_structure import FeeStructure
from fee_ledger.core.models.student_due import StudentDue
from fee_ledger.core.models.payment import Payment, PaymentAllocation
from fee_ledger.core.models.excel_import import ExcelImport
from fee_ledger.core.models.transport_fee import TransportFee
from fee_ledger.core.models.fee_audit_log import FeeAuditLog
from fee_ledger.auth.models import Role, User

__all__ = [
    "AcademicYear",
    "SchoolClass",
    "Student",
    "FeeStructure",
    "StudentDue",
    "Payment",
    "PaymentAllocation",
    "ExcelImport",
    "TransportFee",
    "FeeAuditLog",
    "Role",
    "User",
]
