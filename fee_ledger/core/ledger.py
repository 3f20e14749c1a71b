"""Pure due-ledger arithmetic: status derivation, balances, and summary folds.

Status is always derived from ``amount`` and ``paid_amount``; it is never read
back from storage.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from fee_ledger.core.enums import DueStatus

CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_whole_cents(value: Decimal) -> bool:
    """True when the amount carries no fraction of a cent."""
    return value.is_finite() and value.normalize().as_tuple().exponent >= -2


def derive_due_status(amount: Any, paid_amount: Any) -> DueStatus:
    amount = to_money(amount)
    paid = to_money(paid_amount)
    if paid >= amount:
        return DueStatus.paid
    if paid > 0:
        return DueStatus.partial
    return DueStatus.due


def remaining_balance(amount: Any, paid_amount: Any) -> Decimal:
    """Balance still open on a due, clamped to [0, amount]."""
    amount = to_money(amount)
    collected = min(max(to_money(paid_amount), Decimal("0.00")), amount)
    return max(amount - collected, Decimal("0.00"))


@dataclass(frozen=True)
class LedgerSummary:
    total_billed: Decimal
    total_paid: Decimal
    total_pending: Decimal


def summarize(dues: Iterable[Any]) -> LedgerSummary:
    """Fold billed/paid/pending over anything with ``amount`` and ``paid_amount``.

    Corrupt rows (paid above amount, negative paid) are clamped so pending never
    goes negative.
    """
    billed = paid = pending = Decimal("0.00")
    for due in dues:
        amount = to_money(due.amount)
        collected = min(max(to_money(due.paid_amount), Decimal("0.00")), amount)
        billed += amount
        paid += collected
        pending += max(amount - collected, Decimal("0.00"))
    return LedgerSummary(total_billed=billed, total_paid=paid, total_pending=pending)
