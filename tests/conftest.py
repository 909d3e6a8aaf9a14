import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from app.main import app
from app.services.catalog import CatalogStore, get_catalog
from app.tables import (
    METADATA,
    plan_addons_table,
    plan_provinces_table,
    plans_table,
    pricing_modifiers_table,
    providers_table,
)

PLAN_DEFAULTS = dict(
    coverage_type="health",
    min_age=18,
    max_age=65,
    smoker_allowed=True,
    coverage_limit=100000,
    plan_type="individual",
    family_option=False,
    deductible=100,
    drug_coverage_pct=80,
    drug_annual_cap=5000,
    drug_deductible=50,
    dental_basic_pct=80,
    dental_major_pct=50,
    dental_annual_limit=1500,
    dental_orthodontic_limit=0,
    vision_exam_amount=75,
    vision_eyewear_amount=200,
    vision_frequency="every 24 months",
    massage_per_visit=50,
    massage_annual_max=500,
    massage_visit_limit=10,
    chiro_per_visit=40,
    chiro_annual_max=400,
    chiro_visit_limit=10,
    physio_per_visit=50,
    physio_annual_max=500,
    physio_visit_limit=10,
    rating=3.0,
)


def make_plan(id, provider_id, plan_name, base_price, **overrides):
    row = dict(PLAN_DEFAULTS, id=id, provider_id=provider_id, plan_name=plan_name, base_price=base_price)
    row["highlights"] = json.dumps(overrides.pop("highlights", []))
    row.update(overrides)
    return row


def age_mod(plan_id, lo, hi, value, kind="flat"):
    return dict(
        plan_id=plan_id, modifier_name=f"Age {lo}-{hi}", age_min=lo, age_max=hi,
        modifier_type=kind, modifier_value=value, condition_key="age", condition_value="range",
    )


def smoker_mod(plan_id, value, kind="percentage"):
    return dict(
        plan_id=plan_id, modifier_name="Smoker Surcharge", age_min=None, age_max=None,
        modifier_type=kind, modifier_value=value, condition_key="smoker", condition_value="yes",
    )


PROVIDERS = [
    dict(id=1, name="Acme Health", website="https://acme.example", contact_email="hi@acme.example",
         logo_color="#123456", logo_url="https://logo.example/acme", enrollment_base_url="https://acme.example/enrol"),
    dict(id=2, name="Beta Mutual", website=None, contact_email=None, logo_color="#654321",
         logo_url=None, enrollment_base_url=None),
]

PLANS = [
    # base 100, +25 at 26-40, smoker +20%
    make_plan(1, 1, "Scenario Plan", 100, rating=4.0, highlights=["Direct drug card", "Online claims"]),
    make_plan(2, 2, "Non-smoker Saver", 90, smoker_allowed=False, rating=3.5),
    make_plan(3, 2, "Family Shield", 200, plan_type="family", family_option=True, rating=4.8,
              dental_orthodontic_limit=2000, highlights=["Orthodontic coverage"]),
    make_plan(4, 1, "Nowhere Plan", 50, rating=2.0),
    make_plan(5, 1, "Youth Plan", 60, max_age=25, rating=3.1, vision_eyewear_amount=100),
    make_plan(6, 2, "Quebec Dental", 80, coverage_type="dental", rating=3.9, coverage_limit=75000.5),
]

PROVINCE_ROWS = [
    (1, "ON", "Ontario"), (1, "QC", "Quebec"),
    (2, "ON", "Ontario"), (2, "QC", "Quebec"),
    (3, "ON", "Ontario"),
    (5, "ON", "Ontario"),
    (6, "QC", "Quebec"),
]

ADDON_ROWS = [
    dict(plan_id=1, addon_name="vision", addon_price=15, description="Vision add-on"),
    dict(plan_id=1, addon_name="Dental_Plus", addon_price=25, description=None),
    dict(plan_id=2, addon_name="travel", addon_price=18, description="Travel"),
]

MODIFIER_ROWS = [
    age_mod(1, 26, 40, 25),
    smoker_mod(1, 20),
    age_mod(2, 26, 40, 10),
    age_mod(3, 18, 65, 10, kind="percentage"),
    smoker_mod(3, 30, kind="flat"),
    age_mod(5, 18, 25, 5),
]


def build_catalog(engine):
    METADATA.create_all(engine)
    with engine.begin() as conn:
        conn.execute(providers_table.insert(), PROVIDERS)
        conn.execute(plans_table.insert(), PLANS)
        conn.execute(
            plan_provinces_table.insert(),
            [dict(plan_id=p, province_code=c, province_name=n) for p, c, n in PROVINCE_ROWS],
        )
        conn.execute(plan_addons_table.insert(), ADDON_ROWS)
        conn.execute(pricing_modifiers_table.insert(), MODIFIER_ROWS)


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(f"sqlite:///{tmp_path / 'catalog.sqlite'}")
    build_catalog(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return CatalogStore(lambda: engine)


@pytest.fixture
def broken_store():
    # a database with no catalog tables behaves like an unreachable store
    empty = create_engine("sqlite://")
    return CatalogStore(lambda: empty)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_catalog] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def broken_client(broken_store):
    app.dependency_overrides[get_catalog] = lambda: broken_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
