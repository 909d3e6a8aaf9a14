# app/services/eligibility.py
from __future__ import annotations

import logging

import pandas as pd

from .catalog import CatalogStore

log = logging.getLogger(__name__)


def filter_eligible(df: pd.DataFrame, profile) -> pd.DataFrame:
    """
    Apply the structural eligibility rules to an already province-gated plan frame:
      - min_age <= age <= max_age
      - smokers only see plans with smoker_allowed; non-smokers are never excluded here
      - coverage_type / plan_type, when given, must match case-insensitively
    """
    if df.empty:
        return df

    age = int(profile.age)
    df = df[(df["min_age"] <= age) & (df["max_age"] >= age)]

    if profile.smoking_status == "smoker":
        df = df[df["smoker_allowed"]]

    coverage_type = getattr(profile, "coverage_type", None)
    if coverage_type:
        df = df[df["coverage_type"].astype(str).str.lower() == coverage_type.lower()]

    plan_type = getattr(profile, "plan_type", None)
    if plan_type:
        df = df[df["plan_type"].astype(str).str.lower() == plan_type.lower()]

    return df


def eligible_plans(store: CatalogStore, profile) -> pd.DataFrame:
    """Plans the requester may buy at all, independent of price, in plan id order."""
    plan_ids = store.plan_ids_in_province(profile.province)
    if not plan_ids:
        log.info("No plans offered in province %s", profile.province)
        return pd.DataFrame()

    df = filter_eligible(store.plans_by_id(plan_ids), profile)
    log.debug("%d of %d %s plans eligible", len(df), len(plan_ids), profile.province)
    return df
