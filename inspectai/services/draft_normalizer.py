"""Draft normalization: numeric coercion, defaulting and legacy-shape fallbacks."""

import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from inspectai.schemas.draft import CleaningFrequency, PricingMode, ProposalDraft

Number = Union[int, float]

# Default unit rates used when a draft does not specify them
DEFAULT_RATES: Dict[str, Number] = {
    "baseRate": 723,
    "additionalHoodRate": 203,
    "additionalFanRate": 203,
    "stdFilterRate": 8,
    "nonStdFilterRate": 13.5,
    "fuelSurcharge": 46,
}

ADDITIONAL_HOOD = "Additional Hood"
ADDITIONAL_FAN = "Additional Fan"

QUANTITY_FIELDS = ("stdFilterQty", "nonStdFilterQty", "filterExchangeQty")
TEXT_FIELDS = ("restaurantName", "address", "proposalDate")
FREQUENCY_OVERRIDE_FIELDS = ("filterExchangeFrequency", "fuelFrequency")

_FREQUENCY_LOOKUP = {
    freq.value.lower().replace("-", "").replace(" ", ""): freq.value for freq in CleaningFrequency
}


def _finite_int(value: int) -> Optional[int]:
    """Return ``value`` when it fits in a finite float, None otherwise."""
    try:
        float(value)
    except OverflowError:
        return None
    return value


def _to_number(value: Any) -> Optional[Number]:
    """Coerce a loosely typed value to a finite number, or None when impossible."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return _finite_int(value)
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return _finite_int(int(text))
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _is_unset(value: Any) -> bool:
    return value is None or value == ""


def safe_num(value: Any) -> Number:
    """Return ``value`` as a finite number, 0 when it is missing or unparseable."""
    number = _to_number(value)
    return 0 if number is None else number


def or_default(value: Any, default: Number) -> Number:
    """Return ``value`` as a finite number, ``default`` when unset or unparseable.

    An explicit zero (``0`` or ``"0"``) is kept; only ``None`` and ``""`` count
    as unset.
    """
    if _is_unset(value):
        return default
    number = _to_number(value)
    return default if number is None else number


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def is_item_named(item: Mapping[str, Any], name: str) -> bool:
    """Case-insensitive, whitespace-trimmed description match."""
    return _text(item.get("description")).strip().lower() == name.lower()


def normalize_frequency(value: Any) -> str:
    """Map a cleaning frequency to its canonical label, or "" when unknown."""
    key = _text(value).strip().lower().replace("-", "").replace(" ", "")
    return _FREQUENCY_LOOKUP.get(key, "")


def normalize_pricing_mode(draft: Mapping[str, Any]) -> str:
    """Resolve the quantity regime, reading the legacy ``pricingTouched`` flag."""
    mode = _text(draft.get("pricingMode")).strip().lower()
    if mode in (PricingMode.DERIVED.value, PricingMode.MANUAL.value):
        return mode
    if draft.get("pricingTouched") is True:
        return PricingMode.MANUAL.value
    return PricingMode.DERIVED.value


# Additional items: each shape detector returns a normalized list or None.
ShapeDetector = Callable[[Mapping[str, Any]], Optional[List[Dict[str, Any]]]]


def _default_frequency(draft: Mapping[str, Any]) -> str:
    return _text(draft.get("cleaningFrequency"))


def _additional_items_from_list(draft: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
    items = draft.get("additionalItems")
    if not isinstance(items, (list, tuple)) or not items:
        return None

    default_freq = _default_frequency(draft)
    normalized = []
    for item in items:
        if not isinstance(item, Mapping):
            item = {}
        frequency = item.get("frequency")
        frequency = default_freq if frequency is None else str(frequency).strip()
        normalized.append(
            {
                "description": _text(item.get("description")),
                "qty": safe_num(item.get("qty")),
                "rate": or_default(item.get("rate"), DEFAULT_RATES["additionalHoodRate"]),
                "frequency": frequency or default_freq,
            }
        )
    return normalized


def _additional_items_from_legacy_fields(draft: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
    frequency = _text(draft.get("additionalFrequency")).strip() or _default_frequency(draft)
    items = []
    for description, prefix, rate_key in (
        (ADDITIONAL_HOOD, "additionalHood", "additionalHoodRate"),
        (ADDITIONAL_FAN, "additionalFan", "additionalFanRate"),
    ):
        qty = draft.get(f"{prefix}Qty")
        rate = draft.get(f"{prefix}Rate")
        if qty is None and rate is None:
            continue
        items.append(
            {
                "description": description,
                "qty": safe_num(qty),
                "rate": or_default(rate, DEFAULT_RATES[rate_key]),
                "frequency": frequency,
            }
        )
    return items or None


def _additional_items_placeholder(draft: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "description": ADDITIONAL_HOOD,
            "qty": 0,
            "rate": DEFAULT_RATES["additionalHoodRate"],
            "frequency": _default_frequency(draft),
        }
    ]


ADDITIONAL_ITEM_SHAPES: tuple[ShapeDetector, ...] = (
    _additional_items_from_list,
    _additional_items_from_legacy_fields,
    _additional_items_placeholder,
)


def normalize_additional_items(draft: Any) -> List[Dict[str, Any]]:
    """
    Normalize additional items to a non-empty list of
    ``{description, qty, rate, frequency}``.

    Shapes are tried in order: the ``additionalItems`` list, the flat legacy
    ``additionalHood*``/``additionalFan*`` fields, then a single zero-quantity
    "Additional Hood" placeholder.
    """
    if not isinstance(draft, Mapping):
        draft = {}
    for detect in ADDITIONAL_ITEM_SHAPES:
        items = detect(draft)
        if items:
            return items
    return _additional_items_placeholder(draft)


# Repairs follow the same pattern with two real shapes.
def _repairs_from_list(draft: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
    repairs = draft.get("repairs")
    if not isinstance(repairs, (list, tuple)) or not repairs:
        return None
    normalized = []
    for repair in repairs:
        if not isinstance(repair, Mapping):
            repair = {}
        normalized.append(
            {
                "description": _text(repair.get("description")),
                "amount": safe_num(repair.get("amount")),
            }
        )
    return normalized


def _repairs_from_legacy_fields(draft: Mapping[str, Any]) -> Optional[List[Dict[str, Any]]]:
    if draft.get("repairDescription") is None and draft.get("repairRate") is None:
        return None
    return [
        {
            "description": _text(draft.get("repairDescription")),
            "amount": safe_num(draft.get("repairRate")),
        }
    ]


def _repairs_placeholder(draft: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return [{"description": "", "amount": 0}]


REPAIR_SHAPES: tuple[ShapeDetector, ...] = (
    _repairs_from_list,
    _repairs_from_legacy_fields,
    _repairs_placeholder,
)


def normalize_repairs(draft: Any) -> List[Dict[str, Any]]:
    """Normalize repairs to a non-empty list of ``{description, amount}``."""
    if not isinstance(draft, Mapping):
        draft = {}
    for detect in REPAIR_SHAPES:
        repairs = detect(draft)
        if repairs:
            return repairs
    return _repairs_placeholder(draft)


def apply_defaults(raw: Any) -> Dict[str, Any]:
    """
    Convert any draft-like mapping into the canonical flat draft record.

    Never raises: anything that is not a mapping is treated as an empty draft,
    unset rates take their default, unparseable numbers degrade to the default
    (rates) or zero (quantities), and unknown keys are carried through
    untouched.

    Args:
        raw: Stored or incoming draft, possibly partial or legacy-shaped

    Returns:
        A new, fully populated draft dictionary
    """
    draft: Dict[str, Any] = dict(raw) if isinstance(raw, Mapping) else {}

    for key, default in DEFAULT_RATES.items():
        draft[key] = or_default(draft.get(key), default)
    draft["filterExchangeUnitRate"] = or_default(
        draft.get("filterExchangeUnitRate"), DEFAULT_RATES["stdFilterRate"]
    )

    for key in TEXT_FIELDS:
        draft[key] = _text(draft.get(key))
    draft["cleaningFrequency"] = normalize_frequency(draft.get("cleaningFrequency"))
    for key in FREQUENCY_OVERRIDE_FIELDS:
        draft[key] = _text(draft.get(key)).strip()

    draft["filters"] = int(safe_num(draft.get("filters")))
    for key in QUANTITY_FIELDS:
        draft[key] = safe_num(draft.get(key))

    draft["repairs"] = normalize_repairs(draft)
    draft["additionalItems"] = normalize_additional_items(draft)

    for key in ("initialHoodQty", "initialFanQty"):
        qty = draft.get(key)
        draft[key] = 1 if qty is None or safe_num(qty) < 1 else safe_num(qty)

    draft["pricingMode"] = normalize_pricing_mode(draft)
    return draft


def draft_model(raw: Any) -> ProposalDraft:
    """Apply defaults to ``raw`` and return the typed draft."""
    return ProposalDraft.model_validate(apply_defaults(raw))


def effective_frequency(draft: Mapping[str, Any], override_key: str) -> str:
    """Return the frequency override at ``override_key``, falling back to the cleaning frequency."""
    return _text(draft.get(override_key)).strip() or _text(draft.get("cleaningFrequency"))


def frequency_summary(draft: Mapping[str, Any]) -> str:
    """Join the distinct frequencies used anywhere in the draft, in display order."""
    seen: List[str] = []

    def add(value: Any) -> None:
        text = _text(value).strip()
        if text and text not in seen:
            seen.append(text)

    add(draft.get("cleaningFrequency"))
    for item in normalize_additional_items(draft):
        add(item["frequency"])
    add(draft.get("filterExchangeFrequency"))
    add(effective_frequency(draft, "fuelFrequency"))
    return " & ".join(seen) or "—"
