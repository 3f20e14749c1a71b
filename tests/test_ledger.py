"""Unit tests for due status derivation and summary folds."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from fee_ledger.core.enums import DueStatus
from fee_ledger.core.ledger import derive_due_status, is_whole_cents, remaining_balance, summarize


@pytest.mark.parametrize(
    "amount,paid,expected",
    [
        ("10000", "0", DueStatus.due),
        ("10000", "0.01", DueStatus.partial),
        ("10000", "6000", DueStatus.partial),
        ("10000", "10000", DueStatus.paid),
        ("10000.00", "10000", DueStatus.paid),
    ],
)
def test_derive_due_status(amount: str, paid: str, expected: DueStatus) -> None:
    assert derive_due_status(Decimal(amount), Decimal(paid)) == expected


def test_remaining_balance_is_clamped() -> None:
    assert remaining_balance(Decimal("500"), Decimal("200")) == Decimal("300.00")
    assert remaining_balance(Decimal("500"), Decimal("900")) == Decimal("0.00")
    assert remaining_balance(Decimal("500"), Decimal("-50")) == Decimal("500.00")


def test_summarize_clamps_corrupt_rows() -> None:
    dues = [
        SimpleNamespace(amount=Decimal("1000"), paid_amount=Decimal("400")),
        SimpleNamespace(amount=Decimal("500"), paid_amount=Decimal("700")),  # overpaid
        SimpleNamespace(amount=Decimal("300"), paid_amount=Decimal("-20")),  # negative
    ]
    summary = summarize(dues)
    assert summary.total_billed == Decimal("1800.00")
    assert summary.total_paid == Decimal("900.00")
    assert summary.total_pending == Decimal("900.00")


def test_summarize_empty() -> None:
    summary = summarize([])
    assert summary.total_billed == summary.total_paid == summary.total_pending == Decimal("0")


def test_is_whole_cents() -> None:
    assert is_whole_cents(Decimal("100"))
    assert is_whole_cents(Decimal("100.50"))
    assert is_whole_cents(Decimal("100.000"))
    assert not is_whole_cents(Decimal("100.005"))
    assert not is_whole_cents(Decimal("NaN"))
