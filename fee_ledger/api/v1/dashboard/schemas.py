from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel


class DashboardStats(BaseModel):
    academic_year: str
    current_month: str
    total_students: int
    total_hostellers: int
    total_day_scholars: int
    total_billed: Decimal
    total_paid: Decimal
    total_pending: Decimal
    verified_collection: Decimal
    current_month_collection: Decimal
    expected_monthly: Decimal
    deficit: Decimal
    pending_verification: int
    # verified payments this month by students on a van route this year
    van_collection: Decimal
    van_students: int


class ClassCollection(BaseModel):
    class_id: UUID
    class_name: str
    student_count: int
    collection: Decimal


class TrendPoint(BaseModel):
    month: str
    label: str
    amount: Decimal


class PendingActions(BaseModel):
    overdue_dues: int
    overdue_amount: Decimal
    pending_verifications: int
    provisional_students: int
