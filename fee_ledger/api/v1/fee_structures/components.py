"""
Fee structure component blob.

The blob is stored as JSON in FeeStructure.description. Two shapes exist in the wild:

    nested (current, version 2):
        {"version": 2,
         "hosteller": {"total": 16345, "components": {"admission": 5500, "monthly": 3900, ...}},
         "dayScholar": {"total": ..., "components": {...}}}

    legacy flat (no version, components directly under the mode, "extra" for hstDress):
        {"hosteller": {"admission": 5500, "monthly": 3900, "extra": 1500, ...}, "dayScholar": {...}}

normalize_fee_blob() reads either and always returns a FeeStructureDetail. Writers only
ever produce the nested shape.
"""

import json
import logging
import math
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from fee_ledger.core.enums import OccupancyMode
from fee_ledger.core.ledger import to_money

logger = logging.getLogger(__name__)

BLOB_VERSION = 2
ZERO = Decimal("0.00")

# blob key -> attribute; first match wins
_COMPONENT_KEYS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("admission", ("admission",)),
    ("monthly", ("monthly",)),
    ("school_fees_total", ("schoolFeesTotal", "school_fees_total")),
    ("uniform", ("uniform",)),
    ("hst_dress", ("hstDress", "hst_dress", "extra")),
    ("copy", ("copy",)),
    ("book", ("book",)),
)
_MODE_KEYS = {
    OccupancyMode.HOSTELLER: ("hosteller",),
    OccupancyMode.DAY_SCHOLAR: ("dayScholar", "day_scholar"),
}


def sanitize_amount(value: Any) -> Decimal:
    """Non-numeric, negative, NaN or infinite input becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, float) and not math.isfinite(value):
        return ZERO
    try:
        amount = Decimal(str(value).strip().replace(",", "")) if isinstance(value, str) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return to_money(amount)


@dataclass(frozen=True)
class FeeComponents:
    admission: Decimal = ZERO
    monthly: Decimal = ZERO
    school_fees_total: Optional[Decimal] = None
    uniform: Decimal = ZERO
    hst_dress: Decimal = ZERO
    copy: Decimal = ZERO
    book: Decimal = ZERO
    version: int = BLOB_VERSION

    def school_fees(self) -> Decimal:
        if self.school_fees_total is not None:
            return to_money(self.school_fees_total)
        return to_money(self.admission) + to_money(self.monthly)

    def total(self) -> Decimal:
        return (
            self.school_fees()
            + to_money(self.uniform)
            + to_money(self.hst_dress)
            + to_money(self.copy)
            + to_money(self.book)
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FeeComponents":
        values: Dict[str, Any] = {}
        for attr, keys in _COMPONENT_KEYS:
            raw = next((data[k] for k in keys if k in data), None)
            if attr == "school_fees_total":
                values[attr] = sanitize_amount(raw) if raw not in (None, "") else None
            else:
                values[attr] = sanitize_amount(raw)
        return cls(**values)

    def to_mapping(self) -> Dict[str, Any]:
        data = {
            "admission": str(to_money(self.admission)),
            "monthly": str(to_money(self.monthly)),
            "uniform": str(to_money(self.uniform)),
            "hstDress": str(to_money(self.hst_dress)),
            "copy": str(to_money(self.copy)),
            "book": str(to_money(self.book)),
        }
        if self.school_fees_total is not None:
            data["schoolFeesTotal"] = str(to_money(self.school_fees_total))
        return data


@dataclass(frozen=True)
class FeeStructureDetail:
    hosteller: FeeComponents = field(default_factory=FeeComponents)
    day_scholar: FeeComponents = field(default_factory=FeeComponents)
    # Version the blob was read as; 1 means it came from the legacy flat shape
    source_version: int = BLOB_VERSION

    def for_mode(self, mode: Union[OccupancyMode, str]) -> FeeComponents:
        if OccupancyMode(mode) == OccupancyMode.HOSTELLER:
            return self.hosteller
        return self.day_scholar

    def with_mode(self, mode: Union[OccupancyMode, str], components: FeeComponents) -> "FeeStructureDetail":
        if OccupancyMode(mode) == OccupancyMode.HOSTELLER:
            return replace(self, hosteller=components)
        return replace(self, day_scholar=components)

    def to_blob(self) -> str:
        data: Dict[str, Any] = {"version": BLOB_VERSION}
        for mode, components in (
            (OccupancyMode.HOSTELLER, self.hosteller),
            (OccupancyMode.DAY_SCHOLAR, self.day_scholar),
        ):
            data[mode.value] = {"total": str(components.total()), "components": components.to_mapping()}
        return json.dumps(data, sort_keys=True)


def _mode_payload(data: Mapping[str, Any], mode: OccupancyMode) -> Tuple[Mapping[str, Any], bool]:
    """Component mapping for one mode and whether it came from the legacy flat shape."""
    raw = next((data[k] for k in _MODE_KEYS[mode] if k in data), None)
    if not isinstance(raw, Mapping):
        return {}, False
    nested = raw.get("components")
    if isinstance(nested, Mapping):
        return nested, False
    return raw, True


def normalize_fee_blob(raw: Union[str, bytes, Mapping[str, Any], None]) -> FeeStructureDetail:
    """Read a stored blob of either shape into the current value type."""
    if raw is None or raw == "":
        return FeeStructureDetail()
    data: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Fee structure blob is not valid JSON; treating as empty")
            return FeeStructureDetail()
    if not isinstance(data, Mapping):
        logger.warning("Fee structure blob has unexpected type %s; treating as empty", type(data).__name__)
        return FeeStructureDetail()

    hosteller, hosteller_legacy = _mode_payload(data, OccupancyMode.HOSTELLER)
    day_scholar, day_legacy = _mode_payload(data, OccupancyMode.DAY_SCHOLAR)
    legacy = hosteller_legacy or day_legacy
    if legacy:
        logger.warning("Fee structure blob uses the legacy flat shape; normalizing to version %s", BLOB_VERSION)
    return FeeStructureDetail(
        hosteller=FeeComponents.from_mapping(hosteller),
        day_scholar=FeeComponents.from_mapping(day_scholar),
        source_version=1 if legacy else BLOB_VERSION,
    )
