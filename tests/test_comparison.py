import pytest

from app.errors import CatalogUnavailableError
from app.schemas import CompareRequest
from app.services.comparison import compare_plans, get_all_plans
from app.services.eligibility import eligible_plans


def req(**kw):
    base = dict(age=30, province="ON", smoking_status="non-smoker")
    base.update(kw)
    return CompareRequest(**base)


def ids(results, key="plan_id"):
    return [r[key] for r in results]


# -----------------------------
# Eligibility
# -----------------------------
def test_province_gates_plans(store):
    assert eligible_plans(store, req())["plan_id"].tolist() == [1, 2, 3]
    assert eligible_plans(store, req(province="QC"))["plan_id"].tolist() == [1, 2, 6]


def test_plan_without_provinces_is_never_eligible(store):
    for code in ("ON", "QC", "BC"):
        assert 4 not in ids(compare_plans(req(province=code), store))


def test_age_window_is_inclusive(store):
    assert 5 in eligible_plans(store, req(age=25))["plan_id"].tolist()
    assert 5 not in eligible_plans(store, req(age=26))["plan_id"].tolist()
    assert eligible_plans(store, req(age=17)).empty


def test_smokers_only_see_smoker_friendly_plans(store):
    assert eligible_plans(store, req(smoking_status="smoker"))["plan_id"].tolist() == [1, 3]


# -----------------------------
# compare_plans
# -----------------------------
def test_adult_non_smoker_in_ontario(store):
    results = compare_plans(req(), store)
    assert ids(results) == [2, 1, 3]
    by_id = {r["plan_id"]: r for r in results}
    assert by_id[1]["monthly_price"] == 125.0
    assert by_id[1]["annual_price"] == 1500.0
    assert by_id[1]["age_modifier"] == 25.0
    assert by_id[1]["smoker_modifier"] == 0.0
    assert by_id[3]["monthly_price"] == 220.0


def test_smoker_pays_surcharge(store):
    results = compare_plans(req(smoking_status="smoker"), store)
    assert ids(results) == [1, 3]
    assert results[0]["monthly_price"] == 145.0
    assert results[0]["smoker_modifier"] == 20.0
    assert results[1]["monthly_price"] == 250.0


def test_province_with_no_plans_returns_empty_list(store):
    assert compare_plans(req(province="NU"), store) == []


def test_budget_applies_to_final_price_not_base(store):
    # plan 1 has base 100 but costs 125 at age 30
    assert ids(compare_plans(req(budget_max=120), store)) == [2]
    assert ids(compare_plans(req(budget_min=120), store)) == [1, 3]


def test_type_filters_are_case_insensitive(store):
    assert ids(compare_plans(req(plan_type="FAMILY"), store)) == [3]
    results = compare_plans(req(province="QC", coverage_type="Dental"), store)
    assert ids(results) == [6]
    assert results[0]["monthly_price"] == 80.0


def test_requested_addons_are_priced_in(store):
    results = compare_plans(req(plan_type="individual", addons=["VISION", "dental_plus", "acupuncture"]), store)
    by_id = {r["plan_id"]: r for r in results}
    assert by_id[1]["addon_total"] == 40.0
    assert by_id[1]["monthly_price"] == 165.0
    assert by_id[1]["included_addons"] == [
        {"name": "vision", "price": 15.0},
        {"name": "Dental_Plus", "price": 25.0},
    ]
    assert by_id[2]["included_addons"] == []


def test_results_sorted_ascending_and_decompose(store):
    for age in (18, 22, 30, 45, 65):
        for smoking in ("smoker", "non-smoker"):
            results = compare_plans(req(age=age, smoking_status=smoking), store)
            prices = [r["monthly_price"] for r in results]
            assert prices == sorted(prices)
            for r in results:
                parts = r["base_price"] + r["age_modifier"] + r["smoker_modifier"] + r["addon_total"]
                assert r["monthly_price"] == pytest.approx(parts, abs=0.005)
                assert r["annual_price"] == pytest.approx(r["monthly_price"] * 12, abs=0.005)


def test_compare_is_deterministic(store):
    assert compare_plans(req(age=22), store) == compare_plans(req(age=22), store)


def test_result_shape(store):
    r = {x["plan_id"]: x for x in compare_plans(req(), store)}[1]
    assert r["provider"] == "Acme Health"
    assert r["provider_logo_color"] == "#123456"
    assert r["enrollment_url"] == "https://acme.example/enrol"
    assert r["coverage_limit"] == "$100,000"
    assert r["highlights"] == ["Direct drug card", "Online claims"]
    assert r["drug_coverage"] == {"percentage": 80, "annual_cap": 5000.0, "deductible": 50.0}
    assert r["paramedical"]["chiropractic"] == {"per_visit": 40.0, "annual_max": 400.0, "visit_limit": 10}

    plan2 = {x["plan_id"]: x for x in compare_plans(req(), store)}[2]
    assert plan2["provider_website"] is None
    assert plan2["provider_logo_url"] is None


def test_fractional_coverage_limit_keeps_cents(store):
    r = compare_plans(req(province="QC", coverage_type="dental"), store)[0]
    assert r["coverage_limit"] == "$75,000.50"


def test_unreachable_catalog_propagates(broken_store):
    with pytest.raises(CatalogUnavailableError):
        compare_plans(req(), broken_store)


# -----------------------------
# get_all_plans
# -----------------------------
def test_all_plans_by_rating(store):
    plans = get_all_plans(store)
    assert ids(plans, "id") == [3, 1, 6, 2, 5, 4]
    ratings = [p["rating"] for p in plans]
    assert ratings == sorted(ratings, reverse=True)


def test_all_plans_are_unpersonalized(store):
    p = {x["id"]: x for x in get_all_plans(store)}
    assert p[1]["monthly_premium"] == 100.0
    assert p[1]["annual_premium"] == 1200.0
    assert p[1]["provinces"] == ["ON", "QC"]
    assert p[1]["available_addons"] == [
        {"name": "vision", "price": 15.0, "description": "Vision add-on"},
        {"name": "Dental_Plus", "price": 25.0, "description": None},
    ]
    assert p[3]["family_option"] is True
    assert p[4]["provinces"] == []
    assert p[6]["coverage_limit"] == 75000.5


def test_all_plans_unreachable_catalog(broken_store):
    with pytest.raises(CatalogUnavailableError):
        get_all_plans(broken_store)
