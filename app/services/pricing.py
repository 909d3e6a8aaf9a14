# app/services/pricing.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Open-ended age brackets
AGE_FLOOR = 0
AGE_CEILING = 999


def to_decimal(value: Any) -> Decimal:
    """Exact decimal for a DB/pandas value; missing or non-numeric values count as zero."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        if pd.isna(value):
            return ZERO
        d = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


def quantize2(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round2(value: Any) -> float:
    """Half-up rounding to cents."""
    return float(quantize2(value))


@dataclass
class PriceBreakdown:
    base_price: float
    age_modifier_total: float
    smoker_modifier_total: float
    addon_total: float
    monthly_price: float
    annual_price: float
    included_addons: List[Dict[str, Any]] = field(default_factory=list)


def _bound(value: Any, default: int) -> int:
    if value is None or pd.isna(value):
        return default
    return int(value)


def modifier_amount(mod: Mapping[str, Any], base: Decimal) -> Decimal:
    value = to_decimal(mod.get("modifier_value"))
    kind = str(mod.get("modifier_type") or "").lower()
    if kind == "flat":
        return value
    if kind == "percentage":
        return base * value / 100
    return ZERO


def age_modifier_total(modifiers: Iterable[Mapping[str, Any]], base: Decimal, age: int) -> Decimal:
    # Overlapping brackets all apply; there is no best-match selection.
    total = ZERO
    for mod in modifiers:
        if mod.get("condition_key") != "age":
            continue
        lo = _bound(mod.get("age_min"), AGE_FLOOR)
        hi = _bound(mod.get("age_max"), AGE_CEILING)
        if lo <= age <= hi:
            total += modifier_amount(mod, base)
    return total


def smoker_modifier_total(modifiers: Iterable[Mapping[str, Any]], base: Decimal, smoker: bool) -> Decimal:
    if not smoker:
        return ZERO
    total = ZERO
    for mod in modifiers:
        if mod.get("condition_key") == "smoker" and mod.get("condition_value") == "yes":
            total += modifier_amount(mod, base)
    return total


def match_addons(addons: Iterable[Mapping[str, Any]], requested: Sequence[str]):
    """Case-insensitive addon lookup; requested names the plan does not offer are skipped."""
    by_name: Dict[str, Mapping[str, Any]] = {}
    for a in addons:
        key = str(a.get("addon_name", "")).strip().lower()
        by_name.setdefault(key, a)

    total = ZERO
    included: List[Dict[str, Any]] = []
    for name in requested or ():
        hit = by_name.get(str(name).strip().lower())
        if hit is None:
            continue
        price = to_decimal(hit.get("addon_price"))
        total += price
        included.append({"name": str(hit["addon_name"]), "price": round2(price)})
    return total, included


def compose_price(
    base_price: Any,
    modifiers: Iterable[Mapping[str, Any]],
    addons: Iterable[Mapping[str, Any]],
    *,
    age: int,
    smoker: bool,
    requested_addons: Sequence[str] = (),
) -> PriceBreakdown:
    """
    monthly = base + age modifiers + smoker modifiers + selected addons.

    Components are summed unrounded; each reported figure is rounded once.
    """
    modifiers = list(modifiers)
    base = to_decimal(base_price)
    age_total = age_modifier_total(modifiers, base, int(age))
    smoker_total = smoker_modifier_total(modifiers, base, smoker)
    addon_total, included = match_addons(addons, requested_addons)

    monthly = quantize2(base + age_total + smoker_total + addon_total)
    annual = quantize2(monthly * 12)

    return PriceBreakdown(
        base_price=round2(base),
        age_modifier_total=round2(age_total),
        smoker_modifier_total=round2(smoker_total),
        addon_total=round2(addon_total),
        monthly_price=float(monthly),
        annual_price=float(annual),
        included_addons=included,
    )
