# app/services/budget.py
from __future__ import annotations

from typing import Optional

import pandas as pd


def apply_budget(
    df: pd.DataFrame,
    budget_min: Optional[float] = None,
    budget_max: Optional[float] = None,
) -> pd.DataFrame:
    """
    Drop priced candidates whose final monthly_price is outside [budget_min, budget_max]
    (either bound may be omitted), then order by monthly_price ascending.

    The sort is stable so equal prices keep their input (plan id) order.
    """
    if df.empty:
        return df

    if budget_min is not None:
        df = df[df["monthly_price"] >= float(budget_min)]
    if budget_max is not None:
        df = df[df["monthly_price"] <= float(budget_max)]

    return df.sort_values("monthly_price", ascending=True, kind="mergesort")
