# app/services/browse.py
from __future__ import annotations

from typing import Any, Callable, Dict, List

from ..schemas import BrowseOptions

# Minimum benefit that makes a plan count as covering a category
MUST_HAVE_RULES: Dict[str, Callable[[Dict[str, Any]], bool]] = {
    "drugs": lambda p: p["drug_coverage"]["percentage"] >= 70,
    "dental": lambda p: p["dental_coverage"]["annual_limit"] >= 1000,
    "vision": lambda p: p["vision_coverage"]["eyewear_amount"] >= 150,
    "massage": lambda p: p["paramedical"]["massage"]["annual_max"] >= 400,
    "chiropractic": lambda p: p["paramedical"]["chiropractic"]["annual_max"] >= 300,
    "physiotherapy": lambda p: p["paramedical"]["physiotherapy"]["annual_max"] >= 400,
}


def coverage_score(p: Dict[str, Any]) -> float:
    return (
        p["drug_coverage"]["percentage"]
        + p["dental_coverage"]["annual_limit"] / 100
        + p["vision_coverage"]["eyewear_amount"] / 50
    )


def _matches_search(p: Dict[str, Any], q: str) -> bool:
    return (
        q in p["provider"].lower()
        or q in p["plan_name"].lower()
        or any(q in h.lower() for h in p["highlights"])
    )


def browse_plans(plans: List[Dict[str, Any]], options: BrowseOptions) -> List[Dict[str, Any]]:
    """Filter and order catalog entries (as returned by get_all_plans)."""
    result = list(plans)

    if options.province:
        result = [p for p in result if options.province in p["provinces"]]
    if options.plan_type:
        result = [p for p in result if p["plan_type"].lower() == options.plan_type]
    if options.max_premium is not None:
        result = [p for p in result if p["monthly_premium"] <= options.max_premium]
    if options.min_drug_coverage > 0:
        result = [p for p in result if p["drug_coverage"]["percentage"] >= options.min_drug_coverage]
    if options.min_dental_limit > 0:
        result = [p for p in result if p["dental_coverage"]["annual_limit"] >= options.min_dental_limit]
    if options.must_haves:
        rules = [MUST_HAVE_RULES[need] for need in options.must_haves]
        result = [p for p in result if all(rule(p) for rule in rules)]
    q = (options.search or "").strip().lower()
    if q:
        result = [p for p in result if _matches_search(p, q)]

    # sorted() is stable: ties keep catalog order
    if options.sort == "price-asc":
        result = sorted(result, key=lambda p: p["monthly_premium"])
    elif options.sort == "price-desc":
        result = sorted(result, key=lambda p: p["monthly_premium"], reverse=True)
    elif options.sort == "coverage":
        result = sorted(result, key=coverage_score, reverse=True)
    elif options.sort == "rating":
        result = sorted(result, key=lambda p: p["rating"], reverse=True)
    elif options.sort == "provider":
        result = sorted(result, key=lambda p: p["provider"].lower())
    return result
