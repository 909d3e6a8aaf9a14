"""Core SQLAlchemy table definitions for the plan catalog."""

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

METADATA = MetaData()

providers_table = Table(
    "providers",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False, unique=True),
    Column("website", String(255)),
    Column("contact_email", String(255)),
    Column("logo_color", String(7), nullable=False, default="#1E40AF"),
    Column("logo_url", String(255)),
    Column("enrollment_base_url", String(255)),
)

plans_table = Table(
    "insurance_plans",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("provider_id", Integer, ForeignKey("providers.id"), nullable=False),
    Column("plan_name", String(200), nullable=False),
    Column("coverage_type", String(50), nullable=False, default="health"),
    Column("base_price", Numeric(10, 2), nullable=False),
    Column("min_age", Integer, nullable=False, default=18),
    Column("max_age", Integer, nullable=False, default=65),
    Column("smoker_allowed", Boolean, nullable=False, default=True),
    Column("coverage_limit", Numeric(12, 2), nullable=False, default=100000),
    Column("description", Text),
    Column("plan_type", String(20), nullable=False, default="individual"),
    Column("family_option", Boolean, nullable=False, default=False),
    Column("deductible", Numeric(10, 2), nullable=False, default=0),
    Column("drug_coverage_pct", Integer, nullable=False, default=80),
    Column("drug_annual_cap", Numeric(10, 2), nullable=False, default=5000),
    Column("drug_deductible", Numeric(10, 2), nullable=False, default=50),
    Column("dental_basic_pct", Integer, nullable=False, default=80),
    Column("dental_major_pct", Integer, nullable=False, default=50),
    Column("dental_annual_limit", Numeric(10, 2), nullable=False, default=1500),
    Column("dental_orthodontic_limit", Numeric(10, 2), nullable=False, default=0),
    Column("vision_exam_amount", Numeric(10, 2), nullable=False, default=75),
    Column("vision_eyewear_amount", Numeric(10, 2), nullable=False, default=200),
    Column("vision_frequency", String(50), nullable=False, default="every 24 months"),
    Column("massage_per_visit", Numeric(10, 2), nullable=False, default=50),
    Column("massage_annual_max", Numeric(10, 2), nullable=False, default=500),
    Column("massage_visit_limit", Integer, nullable=False, default=10),
    Column("chiro_per_visit", Numeric(10, 2), nullable=False, default=40),
    Column("chiro_annual_max", Numeric(10, 2), nullable=False, default=400),
    Column("chiro_visit_limit", Integer, nullable=False, default=10),
    Column("physio_per_visit", Numeric(10, 2), nullable=False, default=50),
    Column("physio_annual_max", Numeric(10, 2), nullable=False, default=500),
    Column("physio_visit_limit", Integer, nullable=False, default=10),
    Column("rating", Numeric(2, 1), nullable=False, default=3.0),
    # JSON-encoded list of strings
    Column("highlights", Text, nullable=False, default="[]"),
)

plan_provinces_table = Table(
    "plan_provinces",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("plan_id", Integer, ForeignKey("insurance_plans.id"), nullable=False, index=True),
    Column("province_code", String(2), nullable=False, index=True),
    Column("province_name", String(50), nullable=False),
    UniqueConstraint("plan_id", "province_code", name="uq_plan_province"),
)

plan_addons_table = Table(
    "plan_addons",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("plan_id", Integer, ForeignKey("insurance_plans.id"), nullable=False, index=True),
    Column("addon_name", String(100), nullable=False),
    Column("addon_price", Numeric(10, 2), nullable=False),
    Column("description", Text),
)

pricing_modifiers_table = Table(
    "pricing_modifiers",
    METADATA,
    Column("id", Integer, primary_key=True),
    Column("plan_id", Integer, ForeignKey("insurance_plans.id"), nullable=False, index=True),
    Column("modifier_name", String(100), nullable=False),
    Column("age_min", Integer),
    Column("age_max", Integer),
    Column("modifier_type", String(10), nullable=False, default="flat"),
    Column("modifier_value", Numeric(10, 2), nullable=False),
    Column("condition_key", String(50), nullable=False, default="age"),
    Column("condition_value", String(50), nullable=False, default="any"),
)
