# app/services/catalog.py
from __future__ import annotations

import json
import logging
from typing import Callable, Iterable, List, Optional

import pandas as pd
from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..deps import get_engine
from ..errors import CatalogUnavailableError

log = logging.getLogger(__name__)

PLAN_COLUMNS = """
    p.id AS plan_id, p.plan_name, p.coverage_type, p.plan_type, p.base_price,
    p.min_age, p.max_age, p.smoker_allowed, p.family_option, p.deductible,
    p.coverage_limit, p.description,
    p.drug_coverage_pct, p.drug_annual_cap, p.drug_deductible,
    p.dental_basic_pct, p.dental_major_pct, p.dental_annual_limit, p.dental_orthodontic_limit,
    p.vision_exam_amount, p.vision_eyewear_amount, p.vision_frequency,
    p.massage_per_visit, p.massage_annual_max, p.massage_visit_limit,
    p.chiro_per_visit, p.chiro_annual_max, p.chiro_visit_limit,
    p.physio_per_visit, p.physio_annual_max, p.physio_visit_limit,
    p.rating, p.highlights,
    pr.name AS provider_name, pr.logo_color AS provider_logo_color,
    pr.logo_url AS provider_logo_url, pr.website AS provider_website,
    pr.enrollment_base_url AS enrollment_url
"""

Q_PROVINCE_PLAN_IDS = text(
    """
    SELECT DISTINCT plan_id
    FROM plan_provinces
    WHERE province_code = :province
    ORDER BY plan_id
    """
)

Q_PLANS_BY_ID = text(
    f"""
    SELECT {PLAN_COLUMNS}
    FROM insurance_plans p
    LEFT JOIN providers pr ON pr.id = p.provider_id
    WHERE p.id IN :ids
    ORDER BY p.id
    """
).bindparams(bindparam("ids", expanding=True))

Q_ALL_PLANS = text(
    f"""
    SELECT {PLAN_COLUMNS}
    FROM insurance_plans p
    LEFT JOIN providers pr ON pr.id = p.provider_id
    ORDER BY p.rating DESC, p.id
    """
)

Q_MODIFIERS = text(
    """
    SELECT id, plan_id, modifier_name, age_min, age_max, modifier_type,
           modifier_value, condition_key, condition_value
    FROM pricing_modifiers
    WHERE plan_id IN :ids
    ORDER BY plan_id, id
    """
).bindparams(bindparam("ids", expanding=True))

Q_ADDONS = text(
    """
    SELECT id, plan_id, addon_name, addon_price, description
    FROM plan_addons
    WHERE plan_id IN :ids
    ORDER BY plan_id, id
    """
).bindparams(bindparam("ids", expanding=True))

Q_PROVINCES = text(
    """
    SELECT plan_id, province_code
    FROM plan_provinces
    WHERE plan_id IN :ids
    ORDER BY plan_id, province_code
    """
).bindparams(bindparam("ids", expanding=True))

MONEY_COLUMNS = [
    "base_price", "deductible", "coverage_limit",
    "drug_annual_cap", "drug_deductible",
    "dental_annual_limit", "dental_orthodontic_limit",
    "vision_exam_amount", "vision_eyewear_amount",
    "massage_per_visit", "massage_annual_max",
    "chiro_per_visit", "chiro_annual_max",
    "physio_per_visit", "physio_annual_max",
    "rating",
]
INT_COLUMNS = [
    "plan_id", "min_age", "max_age",
    "drug_coverage_pct", "dental_basic_pct", "dental_major_pct",
    "massage_visit_limit", "chiro_visit_limit", "physio_visit_limit",
]
BOOL_COLUMNS = ["smoker_allowed", "family_option"]


def _decode_highlights(raw) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(h) for h in raw]
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return [str(raw)]
    return [str(h) for h in value] if isinstance(value, list) else []


def _normalize_plans(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce driver-specific column types (Decimal, 0/1 ints, JSON text) to plain values."""
    if df.empty:
        return df
    df = df.copy()
    for col in MONEY_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0).astype(float)
    for col in INT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    for col in BOOL_COLUMNS:
        df[col] = df[col].fillna(False).astype(bool)
    df["highlights"] = df["highlights"].map(_decode_highlights)
    return df


class CatalogStore:
    """
    Read-only access to the plan catalog.

    Every method issues one batched query and returns a DataFrame; any
    driver or connection failure surfaces as CatalogUnavailableError.
    """

    def __init__(self, engine_factory: Callable[[], Engine] = get_engine):
        self._engine_factory = engine_factory

    def _read(self, query, params: Optional[dict] = None) -> pd.DataFrame:
        try:
            eng = self._engine_factory()
            return pd.read_sql(query, eng, params=params or {})
        except (SQLAlchemyError, FileNotFoundError, OSError) as e:
            log.warning("Plan catalog query failed: %s", e)
            raise CatalogUnavailableError("Plan catalog is unavailable.", details=str(e)) from e

    def plan_ids_in_province(self, province: str) -> List[int]:
        df = self._read(Q_PROVINCE_PLAN_IDS, {"province": province.strip().upper()})
        return [int(v) for v in df["plan_id"].tolist()] if not df.empty else []

    def plans_by_id(self, plan_ids: Iterable[int]) -> pd.DataFrame:
        ids = list(plan_ids)
        if not ids:
            return pd.DataFrame()
        return _normalize_plans(self._read(Q_PLANS_BY_ID, {"ids": ids}))

    def all_plans(self) -> pd.DataFrame:
        """Every plan joined with its provider, highest rating first."""
        return _normalize_plans(self._read(Q_ALL_PLANS))

    def modifiers_for(self, plan_ids: Iterable[int]) -> pd.DataFrame:
        ids = list(plan_ids)
        if not ids:
            return pd.DataFrame()
        df = self._read(Q_MODIFIERS, {"ids": ids})
        if not df.empty:
            df["modifier_value"] = pd.to_numeric(df["modifier_value"], errors="coerce").fillna(0.0)
        return df

    def addons_for(self, plan_ids: Iterable[int]) -> pd.DataFrame:
        ids = list(plan_ids)
        if not ids:
            return pd.DataFrame()
        df = self._read(Q_ADDONS, {"ids": ids})
        if not df.empty:
            df["addon_price"] = pd.to_numeric(df["addon_price"], errors="coerce").fillna(0.0)
        return df

    def provinces_for(self, plan_ids: Iterable[int]) -> pd.DataFrame:
        ids = list(plan_ids)
        if not ids:
            return pd.DataFrame()
        return self._read(Q_PROVINCES, {"ids": ids})


def get_catalog() -> CatalogStore:
    """FastAPI dependency; overridden in tests with a store bound to a scratch database."""
    return CatalogStore()
