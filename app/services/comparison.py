# app/services/comparison.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .budget import apply_budget
from .catalog import CatalogStore
from .eligibility import eligible_plans
from .pricing import compose_price, round2

log = logging.getLogger(__name__)

DEFAULT_PROVIDER = "Unknown"
DEFAULT_LOGO_COLOR = "#1E40AF"


def _text(value: Any) -> Optional[str]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return str(value) or None


def _format_limit(value: float) -> str:
    """100000 -> "$100,000"; cents are shown only when present."""
    v = float(value)
    if v.is_integer():
        return f"${int(v):,}"
    return f"${v:,.2f}"


def _group_records(df: pd.DataFrame) -> Dict[int, List[Dict[str, Any]]]:
    groups: Dict[int, List[Dict[str, Any]]] = {}
    if df is None or df.empty:
        return groups
    for rec in df.to_dict("records"):
        groups.setdefault(int(rec["plan_id"]), []).append(rec)
    return groups


def _provider_fields(r: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "provider": _text(r.get("provider_name")) or DEFAULT_PROVIDER,
        "provider_logo_color": _text(r.get("provider_logo_color")) or DEFAULT_LOGO_COLOR,
        "provider_logo_url": _text(r.get("provider_logo_url")),
        "provider_website": _text(r.get("provider_website")),
        "enrollment_url": _text(r.get("enrollment_url")),
    }


def benefit_schedule(r: Mapping[str, Any]) -> Dict[str, Any]:
    """Static coverage details, copied verbatim from the plan row."""
    return {
        "drug_coverage": {
            "percentage": int(r["drug_coverage_pct"]),
            "annual_cap": float(r["drug_annual_cap"]),
            "deductible": float(r["drug_deductible"]),
        },
        "dental_coverage": {
            "basic_percentage": int(r["dental_basic_pct"]),
            "major_percentage": int(r["dental_major_pct"]),
            "annual_limit": float(r["dental_annual_limit"]),
            "orthodontic_limit": float(r["dental_orthodontic_limit"]),
        },
        "vision_coverage": {
            "exam_amount": float(r["vision_exam_amount"]),
            "eyewear_amount": float(r["vision_eyewear_amount"]),
            "frequency": str(r["vision_frequency"]),
        },
        "paramedical": {
            "massage": {
                "per_visit": float(r["massage_per_visit"]),
                "annual_max": float(r["massage_annual_max"]),
                "visit_limit": int(r["massage_visit_limit"]),
            },
            "chiropractic": {
                "per_visit": float(r["chiro_per_visit"]),
                "annual_max": float(r["chiro_annual_max"]),
                "visit_limit": int(r["chiro_visit_limit"]),
            },
            "physiotherapy": {
                "per_visit": float(r["physio_per_visit"]),
                "annual_max": float(r["physio_annual_max"]),
                "visit_limit": int(r["physio_visit_limit"]),
            },
        },
    }


def compare_plans(request, store: Optional[CatalogStore] = None) -> List[Dict[str, Any]]:
    """
    Eligibility -> price composition -> budget filter -> ascending price sort.

    Returns a possibly empty list of CompareResult dicts. Catalog failures
    propagate as CatalogUnavailableError.
    """
    store = store or CatalogStore()

    df = eligible_plans(store, request)
    if df.empty:
        return []

    plan_ids = df["plan_id"].tolist()
    modifiers = _group_records(store.modifiers_for(plan_ids))
    addons = _group_records(store.addons_for(plan_ids))
    smoker = request.is_smoker
    requested = list(request.addons or [])

    breakdowns = {}
    for r in df.to_dict("records"):
        pid = int(r["plan_id"])
        breakdowns[pid] = compose_price(
            r["base_price"],
            modifiers.get(pid, []),
            addons.get(pid, []),
            age=request.age,
            smoker=smoker,
            requested_addons=requested,
        )

    df = df.assign(monthly_price=[breakdowns[int(pid)].monthly_price for pid in df["plan_id"]])
    df = apply_budget(df, request.budget_min, request.budget_max)

    out: List[Dict[str, Any]] = []
    for r in df.to_dict("records"):
        b = breakdowns[int(r["plan_id"])]
        out.append(
            {
                "plan_id": int(r["plan_id"]),
                "plan_name": str(r["plan_name"]),
                **_provider_fields(r),
                "monthly_price": b.monthly_price,
                "annual_price": b.annual_price,
                "base_price": b.base_price,
                "age_modifier": b.age_modifier_total,
                "smoker_modifier": b.smoker_modifier_total,
                "addon_total": b.addon_total,
                "coverage_type": str(r["coverage_type"]),
                "coverage_limit": _format_limit(r["coverage_limit"]),
                "plan_type": str(r["plan_type"]),
                "deductible": float(r["deductible"]),
                **benefit_schedule(r),
                "highlights": list(r["highlights"]),
                "included_addons": b.included_addons,
                "rating": float(r["rating"]),
            }
        )

    log.info(
        "compare: province=%s age=%s smoker=%s -> %d result(s)",
        request.province, request.age, smoker, len(out),
    )
    return out


def get_all_plans(store: Optional[CatalogStore] = None) -> List[Dict[str, Any]]:
    """Whole catalog at base price, highest rating first; no personalization."""
    store = store or CatalogStore()

    df = store.all_plans()
    if df.empty:
        return []

    plan_ids = df["plan_id"].tolist()
    addons = _group_records(store.addons_for(plan_ids))
    provinces = {
        pid: [str(p["province_code"]) for p in rows]
        for pid, rows in _group_records(store.provinces_for(plan_ids)).items()
    }

    # the query already orders by rating; keep the sort explicit and stable
    df = df.sort_values("rating", ascending=False, kind="mergesort")

    out: List[Dict[str, Any]] = []
    for r in df.to_dict("records"):
        pid = int(r["plan_id"])
        base = float(r["base_price"])
        out.append(
            {
                "id": pid,
                **_provider_fields(r),
                "plan_name": str(r["plan_name"]),
                "monthly_premium": round2(base),
                "annual_premium": round2(base * 12),
                "coverage_type": str(r["coverage_type"]),
                "plan_type": str(r["plan_type"]),
                "family_option": bool(r["family_option"]),
                "deductible": float(r["deductible"]),
                "coverage_limit": float(r["coverage_limit"]),
                **benefit_schedule(r),
                "provinces": provinces.get(pid, []),
                "highlights": list(r["highlights"]),
                "available_addons": [
                    {
                        "name": str(a["addon_name"]),
                        "price": round2(a["addon_price"]),
                        "description": _text(a.get("description")),
                    }
                    for a in addons.get(pid, [])
                ],
                "rating": float(r["rating"]),
            }
        )
    return out
