"""Fee structure component blob: totals and normalization of stored shapes."""

import json
import logging
from decimal import Decimal

from fee_ledger.api.v1.fee_structures.components import (
    BLOB_VERSION,
    FeeComponents,
    FeeStructureDetail,
    normalize_fee_blob,
    sanitize_amount,
)
from fee_ledger.core.enums import OccupancyMode


def test_total_without_school_fees_total() -> None:
    c = FeeComponents(
        admission=Decimal("5500"),
        monthly=Decimal("3900"),
        uniform=Decimal("3500"),
        hst_dress=Decimal("1500"),
        copy=Decimal("700"),
        book=Decimal("1245"),
    )
    assert c.total() == Decimal("16345")


def test_total_prefers_explicit_school_fees_total() -> None:
    c = FeeComponents(
        admission=Decimal("5500"),
        monthly=Decimal("3900"),
        school_fees_total=Decimal("50300"),
        uniform=Decimal("3500"),
    )
    assert c.total() == Decimal("53800")


def test_normalize_nested_shape() -> None:
    blob = json.dumps(
        {
            "version": 2,
            "hosteller": {"total": 999, "components": {"admission": 5500, "monthly": 4500, "hstDress": 1500}},
            "dayScholar": {"components": {"admission": 5500, "monthly": 3900}},
        }
    )
    detail = normalize_fee_blob(blob)
    assert detail.source_version == BLOB_VERSION
    assert detail.hosteller.hst_dress == Decimal("1500.00")
    assert detail.for_mode(OccupancyMode.DAY_SCHOLAR).monthly == Decimal("3900.00")
    # stored "total" is ignored; the value type recomputes it
    assert detail.hosteller.total() == Decimal("11500.00")


def test_normalize_legacy_flat_shape_with_extra_alias(caplog) -> None:
    legacy = {
        "hosteller": {"admission": "5500", "monthly": "4500", "extra": "1500", "copy": 700},
        "dayScholar": {"admission": 5500, "monthly": 3900, "book": 1245},
    }
    with caplog.at_level(logging.WARNING):
        detail = normalize_fee_blob(legacy)
    assert detail.source_version == 1
    assert detail.hosteller.hst_dress == Decimal("1500.00")
    assert detail.hosteller.copy == Decimal("700.00")
    assert detail.day_scholar.book == Decimal("1245.00")
    assert "legacy flat shape" in caplog.text


def test_normalize_unparseable_blob_is_empty(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        detail = normalize_fee_blob("{not json")
    assert detail.hosteller.total() == Decimal("0")
    assert detail.day_scholar.total() == Decimal("0")
    assert "not valid JSON" in caplog.text


def test_normalize_none_is_empty() -> None:
    assert normalize_fee_blob(None) == FeeStructureDetail()


def test_sanitize_amount() -> None:
    assert sanitize_amount("1,200") == Decimal("1200.00")
    assert sanitize_amount("abc") == Decimal("0")
    assert sanitize_amount(-5) == Decimal("0")
    assert sanitize_amount(float("nan")) == Decimal("0")
    assert sanitize_amount(True) == Decimal("0")
    assert sanitize_amount(None) == Decimal("0")


def test_written_blob_reads_back_as_current_version() -> None:
    detail = FeeStructureDetail(
        hosteller=FeeComponents(admission=Decimal("5500"), monthly=Decimal("4500")),
        day_scholar=FeeComponents(admission=Decimal("5500"), monthly=Decimal("3900"), school_fees_total=Decimal("52300")),
    )
    data = json.loads(detail.to_blob())
    assert data["version"] == BLOB_VERSION
    assert "components" in data["hosteller"]
    again = normalize_fee_blob(detail.to_blob())
    assert again.day_scholar.school_fees_total == Decimal("52300.00")
    assert again.hosteller.total() == detail.hosteller.total()
