from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from typing import Annotated, Dict, List, Literal, Optional

PROVINCES: Dict[str, str] = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia",
    "NT": "Northwest Territories",
    "NU": "Nunavut",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "YT": "Yukon",
}

ProvinceCode = Literal["AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT"]
CoverageType = Literal["health", "dental", "travel", "life", "disability", "critical_illness"]
PlanType = Literal["individual", "couple", "family"]
SmokingStatus = Literal["smoker", "non-smoker"]
Gender = Literal["male", "female", "other", "prefer_not_to_say"]
AddonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def _upper(value):
    return value.strip().upper() if isinstance(value, str) else value


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


# -----------------------------
# Comparison
# -----------------------------
class CompareRequest(BaseModel):
    age: int = Field(ge=0, le=120)
    gender: Optional[Gender] = None
    province: ProvinceCode
    smoking_status: SmokingStatus
    budget_min: Optional[float] = Field(default=None, ge=0)
    budget_max: Optional[float] = Field(default=None, ge=0)
    coverage_type: Optional[CoverageType] = None
    plan_type: Optional[PlanType] = None
    addons: List[AddonName] = []

    # JSON true/false would otherwise coerce to 1/0
    @field_validator("age", "budget_min", "budget_max", mode="before")
    @classmethod
    def reject_booleans(cls, v):
        if isinstance(v, bool):
            raise ValueError("must be a number, not a boolean")
        return v

    @field_validator("province", mode="before")
    @classmethod
    def normalize_province(cls, v):
        return _upper(v)

    @field_validator("coverage_type", "plan_type", mode="before")
    @classmethod
    def normalize_types(cls, v):
        return _lower(v)

    @property
    def is_smoker(self) -> bool:
        return self.smoking_status == "smoker"


class DrugCoverage(BaseModel):
    percentage: int
    annual_cap: float
    deductible: float


class DentalCoverage(BaseModel):
    basic_percentage: int
    major_percentage: int
    annual_limit: float
    orthodontic_limit: float


class VisionCoverage(BaseModel):
    exam_amount: float
    eyewear_amount: float
    frequency: str


class ParamedicalBenefit(BaseModel):
    per_visit: float
    annual_max: float
    visit_limit: int


class Paramedical(BaseModel):
    massage: ParamedicalBenefit
    chiropractic: ParamedicalBenefit
    physiotherapy: ParamedicalBenefit


class IncludedAddon(BaseModel):
    name: str
    price: float


class AvailableAddon(IncludedAddon):
    description: Optional[str] = None


class CompareResult(BaseModel):
    plan_id: int
    plan_name: str
    provider: str
    provider_logo_color: str
    provider_logo_url: Optional[str] = None
    provider_website: Optional[str] = None
    enrollment_url: Optional[str] = None
    monthly_price: float
    annual_price: float
    base_price: float
    age_modifier: float
    smoker_modifier: float
    addon_total: float
    coverage_type: str
    coverage_limit: str
    plan_type: str
    deductible: float
    drug_coverage: DrugCoverage
    dental_coverage: DentalCoverage
    vision_coverage: VisionCoverage
    paramedical: Paramedical
    highlights: List[str]
    included_addons: List[IncludedAddon]
    rating: float


class BudgetRange(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


class FiltersApplied(BaseModel):
    age: int
    province: str
    smoking_status: str
    coverage_type: str
    plan_type: str
    budget_range: BudgetRange
    requested_addons: List[str]


class CompareResponse(BaseModel):
    count: int
    filters_applied: FiltersApplied
    results: List[CompareResult]


# -----------------------------
# Catalog browsing
# -----------------------------
class BrowsePlan(BaseModel):
    id: int
    provider: str
    provider_logo_color: str
    provider_logo_url: Optional[str] = None
    provider_website: Optional[str] = None
    enrollment_url: Optional[str] = None
    plan_name: str
    monthly_premium: float
    annual_premium: float
    coverage_type: str
    plan_type: str
    family_option: bool
    deductible: float
    coverage_limit: float
    drug_coverage: DrugCoverage
    dental_coverage: DentalCoverage
    vision_coverage: VisionCoverage
    paramedical: Paramedical
    provinces: List[str]
    highlights: List[str]
    available_addons: List[AvailableAddon]
    rating: float


class PlansResponse(BaseModel):
    count: int
    plans: List[BrowsePlan]


CoverageCategory = Literal["drugs", "dental", "vision", "massage", "chiropractic", "physiotherapy"]
SortOption = Literal["price-asc", "price-desc", "coverage", "rating", "provider"]


class BrowseOptions(BaseModel):
    """Recognized catalog filter/sort keys; anything else is rejected."""

    model_config = ConfigDict(extra="forbid")

    province: Optional[ProvinceCode] = None
    plan_type: Optional[PlanType] = None
    max_premium: Optional[float] = Field(default=None, ge=0)
    min_drug_coverage: float = Field(default=0, ge=0, le=100)
    min_dental_limit: float = Field(default=0, ge=0)
    must_haves: List[CoverageCategory] = []
    search: Optional[str] = None
    sort: SortOption = "rating"

    @field_validator("max_premium", "min_drug_coverage", "min_dental_limit", mode="before")
    @classmethod
    def reject_booleans(cls, v):
        if isinstance(v, bool):
            raise ValueError("must be a number, not a boolean")
        return v

    @field_validator("province", mode="before")
    @classmethod
    def normalize_province(cls, v):
        return _upper(v)

    @field_validator("plan_type", mode="before")
    @classmethod
    def normalize_plan_type(cls, v):
        return _lower(v)


class Province(BaseModel):
    code: str
    name: str


class ProvincesResponse(BaseModel):
    provinces: List[Province]


# -----------------------------
# AI search (external collaborator)
# -----------------------------
class AISearchRequest(BaseModel):
    story: Optional[str] = None


class AIRecommendation(BaseModel):
    company_name: str
    policy_name: str
    logo_url: str
    explanation: str
    url: str
    coverage_highlights: List[str]
    estimated_monthly_cost: str
    rating: float = Field(ge=1, le=5)
    best_for: str


class AISearchResult(BaseModel):
    analysis_summary: str
    identified_needs: List[str]
    results: List[AIRecommendation]


class AISearchResponse(AISearchResult):
    success: bool = True


# -----------------------------
# Contact + developer console
# -----------------------------
class ContactRequest(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    subject: str = ""
    message: str = Field(min_length=1)


class ApiKeyUpdate(BaseModel):
    apiKey: str
