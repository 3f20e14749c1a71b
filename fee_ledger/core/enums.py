from enum import Enum


class DueType(str, Enum):
    monthly = "monthly"
    one_time = "one_time"


class DueStatus(str, Enum):
    due = "due"
    partial = "partial"
    paid = "paid"


class DueItem(str, Enum):
    ADMISSION = "admission"
    REGISTRATION = "registration"
    UNIFORM = "uniform"
    COPY = "copy"
    BOOK = "book"
    HST_DRESS = "hst_dress"
    MONTHLY = "monthly"
    MISC = "misc"


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK = "bank"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    ONLINE = "online"


class PaymentStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class OccupancyMode(str, Enum):
    HOSTELLER = "hosteller"
    DAY_SCHOLAR = "dayScholar"


class FeeStructureState(str, Enum):
    DRAFT = "draft"
    COMMITTED = "committed"
