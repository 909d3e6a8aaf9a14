"""
Seed the plan catalog
---------------------
Output: app/data/plans.sqlite (or whatever DATABASE_URL points at)

Run from the repo root:  python -m data_pipeline.seed_catalog

Drops and recreates every catalog table, so only run it out-of-band.
"""

import json

import pandas as pd
from sqlalchemy import create_engine

from app.deps import DATA_DIR, DATABASE_URL
from app.schemas import PROVINCES
from app.tables import METADATA

PROVIDERS = pd.DataFrame(
    [
        ("Blue Cross", "https://www.bluecross.ca", "info@bluecross.ca", "#1E40AF", "bluecross.ca", "https://www.bluecross.ca/en/health-insurance"),
        ("Manulife", "https://www.manulife.ca", "info@manulife.ca", "#047857", "manulife.ca", "https://www.manulife.ca/personal/insurance/health-insurance.html"),
        ("Canada Life", "https://www.canadalife.com", "info@canadalife.com", "#7C3AED", "canadalife.com", "https://www.canadalife.com/insurance/health-and-dental-insurance.html"),
        ("Sun Life", "https://www.sunlife.ca", "info@sunlife.ca", "#DC2626", "sunlife.ca", "https://www.sunlife.ca/en/insurance/health-insurance/"),
        ("GMS", "https://www.gms.ca", "info@gms.ca", "#0891B2", "gms.ca", "https://www.gms.ca/health-insurance"),
        ("Desjardins", "https://www.desjardins.com", "info@desjardins.com", "#059669", "desjardins.com", "https://www.desjardins.com/ca/personal/insurance/health-insurance/index.jsp"),
        ("iA Financial", "https://ia.ca", "info@ia.ca", "#1D4ED8", "ia.ca", "https://ia.ca/individuals/insurance/health-insurance"),
        ("GreenShield", "https://www.greenshield.ca", "info@greenshield.ca", "#16A34A", "greenshield.ca", "https://www.greenshield.ca/en-ca/individual-plans"),
        ("Equitable Life", "https://www.equitable.ca", "info@equitable.ca", "#B45309", "equitable.ca", "https://www.equitable.ca/en/individuals/health-and-dental"),
        ("SSQ Insurance", "https://ssq.ca", "info@ssq.ca", "#9333EA", "ssq.ca", "https://ssq.ca/en/individuals/insurance/health-insurance"),
    ],
    columns=["name", "website", "contact_email", "logo_color", "logo_domain", "enrollment_base_url"],
)

ALL_10 = ["AB", "BC", "MB", "NB", "NL", "NS", "ON", "PE", "QC", "SK"]
ALL_13 = ALL_10 + ["NT", "NU", "YT"]
Y2, Y1 = "every 24 months", "every 12 months"

PLAN_FIELDS = [
    "provider", "plan_name", "base_price", "plan_type", "family_option", "deductible",
    "coverage_limit", "smoker_allowed",
    "drug_coverage_pct", "drug_annual_cap", "drug_deductible",
    "dental_basic_pct", "dental_major_pct", "dental_annual_limit", "dental_orthodontic_limit",
    "vision_exam_amount", "vision_eyewear_amount", "vision_frequency",
    "massage_per_visit", "massage_annual_max", "massage_visit_limit",
    "chiro_per_visit", "chiro_annual_max", "chiro_visit_limit",
    "physio_per_visit", "physio_annual_max", "physio_visit_limit",
    "rating", "highlights", "provinces",
]

PLANS = [
    ("Blue Cross", "Essential Care", 89, "individual", False, 100, 100000, True,
     80, 5000, 50, 80, 50, 1500, 0, 75, 200, Y2, 50, 500, 10, 40, 400, 10, 50, 500, 10,
     3.5, ["No medical questionnaire", "Direct drug card"], ALL_10),
    ("Blue Cross", "Enhanced Family Shield", 245, "family", True, 0, 250000, True,
     90, 10000, 25, 90, 70, 3000, 2000, 100, 400, Y2, 75, 1000, 20, 60, 800, 15, 75, 1000, 20,
     4.5, ["Zero deductible", "Orthodontic coverage", "Travel emergency"], ALL_10),
    ("Manulife", "FlexCare Health", 125, "individual", False, 50, 150000, True,
     80, 7500, 25, 80, 50, 2000, 1000, 100, 300, Y2, 60, 750, 15, 50, 600, 12, 60, 750, 15,
     4.0, ["Nationwide coverage", "Online claims", "Mental health support"], ALL_13),
    ("Manulife", "Premium Family Plus", 310, "family", True, 0, 500000, True,
     100, 15000, 0, 100, 80, 5000, 3000, 150, 500, Y1, 100, 1500, 25, 80, 1200, 20, 100, 1500, 25,
     4.8, ["100% drug coverage", "Annual vision", "Premium paramedical"], ALL_13),
    ("Canada Life", "Core Health Plan", 95, "individual", False, 150, 75000, True,
     70, 4000, 75, 70, 50, 1200, 0, 75, 150, Y2, 40, 400, 10, 35, 350, 10, 45, 450, 10,
     3.2, ["Budget-friendly", "Quick approval"], ["AB", "BC", "ON", "QC", "MB", "SK"]),
    ("Canada Life", "Complete Coverage", 198, "couple", True, 50, 200000, True,
     85, 8000, 25, 85, 60, 2500, 1500, 100, 350, Y2, 65, 800, 15, 55, 700, 12, 65, 800, 15,
     4.1, ["Couples plan", "Dental orthodontics", "Travel coverage"], ["AB", "BC", "ON", "QC", "MB", "SK", "NB", "NS"]),
    ("Sun Life", "My Health Starter", 78, "individual", False, 200, 50000, True,
     70, 3000, 100, 70, 0, 1000, 0, 50, 150, Y2, 40, 300, 8, 35, 300, 8, 40, 300, 8,
     3.0, ["Lowest premium", "Easy enrollment"], ALL_10),
    ("Sun Life", "Health Advantage Plus", 175, "family", True, 50, 200000, True,
     85, 8000, 25, 85, 60, 2500, 1500, 100, 350, Y2, 70, 900, 15, 55, 700, 12, 70, 900, 15,
     4.2, ["Family dental", "High drug cap", "Wellness rewards"], ALL_10),
    ("Sun Life", "Elite Comprehensive", 340, "family", True, 0, 750000, False,
     100, 20000, 0, 100, 80, 5000, 3500, 150, 500, Y1, 100, 2000, 30, 80, 1500, 25, 100, 2000, 30,
     4.9, ["Top-tier coverage", "No limits on drugs", "Concierge support"], ALL_10),
    ("GMS", "ExtendaPlan Basic", 72, "individual", False, 200, 50000, True,
     70, 3000, 100, 60, 0, 750, 0, 50, 100, Y2, 35, 250, 8, 30, 250, 8, 35, 250, 8,
     2.8, ["No waiting period", "Simple claims"], ["AB", "SK", "MB", "ON"]),
    ("GMS", "ExtendaPlan Enhanced", 145, "family", True, 75, 150000, True,
     80, 6000, 50, 80, 50, 1750, 1000, 75, 250, Y2, 55, 600, 12, 45, 500, 12, 55, 600, 12,
     3.6, ["Family coverage", "Dental included", "Travel emergency"], ["AB", "SK", "MB", "ON", "BC"]),
    ("Desjardins", "Assurance Essentielle", 105, "individual", False, 75, 100000, True,
     80, 5000, 50, 80, 50, 1500, 0, 75, 200, Y2, 50, 500, 10, 45, 450, 10, 50, 500, 10,
     3.7, ["Bilingual service", "Quick claims", "Quebec specialist"], ["QC", "ON", "NB"]),
    ("Desjardins", "Protection Complète", 265, "family", True, 0, 300000, True,
     90, 12000, 0, 90, 70, 3500, 2500, 125, 400, Y2, 80, 1200, 20, 65, 1000, 18, 80, 1200, 20,
     4.4, ["Zero deductible", "High orthodontic", "Bilingual app"], ["QC", "ON", "NB", "NS"]),
    ("iA Financial", "Value Health", 82, "individual", False, 150, 75000, True,
     70, 3500, 75, 70, 0, 1000, 0, 50, 150, Y2, 40, 350, 8, 35, 300, 8, 40, 350, 8,
     3.1, ["Affordable", "Online portal", "Fast approval"], ["QC", "ON", "AB", "BC"]),
    ("iA Financial", "Complete Health Plus", 215, "family", True, 25, 250000, True,
     85, 9000, 25, 85, 65, 2750, 2000, 100, 350, Y2, 70, 900, 15, 55, 700, 12, 70, 900, 15,
     4.0, ["Family dental", "Low deductible", "Mental health"], ["QC", "ON", "AB", "BC", "MB", "SK"]),
    ("GreenShield", "GSC Starter", 85, "individual", False, 100, 100000, True,
     75, 4000, 50, 75, 40, 1250, 0, 75, 200, Y2, 45, 450, 10, 40, 400, 10, 50, 500, 10,
     3.4, ["Digital-first", "Fast claims", "Wellness app"], ["ON", "BC", "AB", "QC", "MB", "SK", "NS", "NB"]),
    ("GreenShield", "GSC Health Plus", 195, "couple", True, 50, 200000, True,
     85, 8500, 25, 85, 60, 2500, 1500, 100, 350, Y2, 65, 850, 15, 55, 700, 12, 65, 850, 15,
     4.0, ["Couples plan", "Virtual care", "Pharmacy network"], ["ON", "BC", "AB", "QC", "MB", "SK", "NS", "NB"]),
    ("Equitable Life", "HealthConnex Basic", 92, "individual", False, 100, 100000, True,
     75, 4500, 50, 75, 50, 1500, 0, 75, 200, Y2, 50, 500, 10, 40, 400, 10, 50, 500, 10,
     3.3, ["Guaranteed acceptance", "Stable premiums"], ["ON", "AB", "BC", "QC"]),
    ("Equitable Life", "HealthConnex Comprehensive", 225, "family", True, 0, 300000, True,
     90, 10000, 0, 90, 70, 3000, 2000, 100, 400, Y2, 75, 1000, 18, 60, 800, 15, 75, 1000, 18,
     4.3, ["Zero deductible", "High dental", "Family friendly"], ["ON", "AB", "BC", "QC", "MB", "SK"]),
    ("SSQ Insurance", "SSQ Individuel Santé", 110, "individual", False, 75, 100000, True,
     80, 5500, 50, 80, 50, 1750, 500, 75, 250, Y2, 55, 550, 10, 45, 450, 10, 55, 550, 10,
     3.6, ["Quebec focused", "Bilingual", "Competitive rates"], ["QC", "ON"]),
]

ADDONS = [
    ("vision", 15, "Enhanced vision coverage with annual eye exams and premium eyewear allowance"),
    ("prescription", 20, "Extended prescription drug coverage with higher annual caps"),
    ("dental_plus", 25, "Enhanced dental coverage including cosmetic procedures"),
    ("travel", 18, "International travel medical emergency coverage"),
    ("mental_health", 22, "Expanded mental health and counselling coverage"),
    ("wellness", 12, "Wellness spending account for gym, fitness, and nutrition"),
]

# (name, age_min, age_max, type, value, condition_key, condition_value)
MODIFIERS = [
    ("Young Adult (18-25)", 18, 25, "flat", 10, "age", "range"),
    ("Adult (26-40)", 26, 40, "flat", 25, "age", "range"),
    ("Middle Age (41-55)", 41, 55, "flat", 50, "age", "range"),
    ("Senior (56-65)", 56, 65, "flat", 85, "age", "range"),
    ("Smoker Surcharge", None, None, "percentage", 20, "smoker", "yes"),
]


def build_frames() -> dict:
    """Catalog tables as DataFrames, keyed by table name, with explicit ids."""
    providers = PROVIDERS.copy()
    providers.insert(0, "id", range(1, len(providers) + 1))
    providers["logo_url"] = "https://logo.clearbit.com/" + providers.pop("logo_domain")
    provider_ids = dict(zip(providers["name"], providers["id"]))

    raw = pd.DataFrame(PLANS, columns=PLAN_FIELDS)
    raw.insert(0, "id", range(1, len(raw) + 1))

    plans = raw.drop(columns=["provider", "provinces"]).copy()
    plans["provider_id"] = raw["provider"].map(provider_ids)
    plans["coverage_type"] = "health"
    plans["min_age"] = 18
    plans["max_age"] = 65
    plans["description"] = [
        f"{r.plan_name} by {r.provider} - comprehensive health and dental insurance for Canadians."
        for r in raw.itertuples()
    ]
    plans["highlights"] = raw["highlights"].map(json.dumps)

    provinces = raw[["id", "provinces"]].explode("provinces").rename(
        columns={"id": "plan_id", "provinces": "province_code"}
    )
    provinces["province_name"] = provinces["province_code"].map(PROVINCES)

    # 3-5 addons per plan; price varies a little by plan id
    addon_rows = []
    for pid in raw["id"]:
        n = 3 + (pid * 7) % 3
        for name, price, desc in ADDONS[:n]:
            addon_rows.append((pid, name, price + (pid % 5) * 2, desc))
    addons = pd.DataFrame(addon_rows, columns=["plan_id", "addon_name", "addon_price", "description"])

    modifier_rows = [(pid, *m) for pid in raw["id"] for m in MODIFIERS]
    modifiers = pd.DataFrame(
        modifier_rows,
        columns=["plan_id", "modifier_name", "age_min", "age_max", "modifier_type",
                 "modifier_value", "condition_key", "condition_value"],
    )
    modifiers["age_min"] = modifiers["age_min"].astype("Int64")
    modifiers["age_max"] = modifiers["age_max"].astype("Int64")

    return {
        "providers": providers,
        "insurance_plans": plans,
        "plan_provinces": provinces,
        "plan_addons": addons,
        "pricing_modifiers": modifiers,
    }


def seed(engine) -> dict:
    METADATA.drop_all(engine)
    METADATA.create_all(engine)
    frames = build_frames()
    with engine.begin() as conn:
        for table in METADATA.sorted_tables:
            df = frames[table.name]
            df.to_sql(table.name, conn, index=False, if_exists="append")
    return {name: len(df) for name, df in frames.items()}


def main():
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    engine = create_engine(DATABASE_URL)
    counts = seed(engine)
    for name, n in counts.items():
        print(f"  {name}: {n} rows")
    print(f"✅ Plan catalog seeded at {DATABASE_URL}")


if __name__ == "__main__":
    main()
