"""
BCBS multi-plan data, parameter and result models.

Each plan carries two experience columns. ``current`` is the older
experience period and ``renewal`` the more recent one, matching the
carrier's renewal exhibit. Plans are rated independently and then
composited by enrollment.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..ledger import PeriodPairLine


class BCBSLine(str, Enum):
    HEADER_PERIOD = "1"
    MEMBER_MONTHS = "2"
    MONTHLY_MEMBERS = "2a"
    MEDICAL_CLAIMS = "3-Med"
    MEDICAL_POOLED = "3-Med-Pool"
    MEDICAL_NET = "4-Med"
    MEDICAL_NET_PMPM = "6-Med"
    MEDICAL_IBNR = "6-Med-IBNR"
    MEDICAL_TREND = "8-Med"
    MEDICAL_PROJECTED = "9-Med"
    RX_CLAIMS = "3-Rx"
    RX_POOLED = "3-Rx-Pool"
    RX_NET = "4-Rx"
    RX_NET_PMPM = "6-Rx"
    RX_IBNR = "6-Rx-IBNR"
    RX_TREND = "8-Rx"
    RX_PROJECTED = "9-Rx"
    TOTAL_PROJECTED = "10"
    FFS_AGE = "11a"
    AGE_ADJUSTED = "12"
    POOLING_CHARGES = "13"
    BENEFIT_ADJUSTMENT = "14"
    ADJUSTED_PROJECTED = "15"
    EXPERIENCE_WEIGHTS = "16"
    WEIGHTED_EXPERIENCE = "17"
    MEMBER_BASED_CHARGES = "18"
    PROJECTED_EXPERIENCE = "19"
    MANUAL_CLAIMS = "20"
    CREDIBILITY = "21"
    CREDIBILITY_ADJUSTED = "22"
    RETENTION = "23"
    PREMIUM_TAX = "24"
    ACA_ADJUSTMENTS = "24a"
    UNDERWRITER_ADJUSTMENT = "25"
    REQUIRED_PREMIUM = "26"
    PATHWAY_TO_SAVINGS = "27"
    POST_P2S_PREMIUM = "27a"
    CURRENT_PREMIUM = "28"
    RATE_ACTION = "29"


# Enrollment tier rate relativities to the single rate.
TIER_FACTORS = {
    "single": 1.0,
    "couple": 2.0,
    "spmd": 1.8,
    "family": 3.0,
}


class PeriodPair(BaseModel):
    """A value for the older (current) and more recent (renewal) column."""

    model_config = ConfigDict(frozen=True)

    current: float
    renewal: float


class BCBSClaims(BaseModel):
    """
    Claims for one coverage and period.

    ``pooled_claims`` is the claimant-level excess over the pooling level.
    When omitted, the excess of the aggregate over the level is used.
    """

    total_claims: float = Field(..., ge=0)
    pooled_claims: Optional[float] = Field(None, ge=0)


class BCBSCoverageClaims(BaseModel):
    current: BCBSClaims
    renewal: BCBSClaims


class BCBSMemberMonths(BaseModel):
    current_total: float = Field(..., ge=0)
    renewal_total: float = Field(..., ge=0)
    projected_monthly_members: Optional[PeriodPair] = None


class TierEnrollment(BaseModel):
    count: int = Field(0, ge=0)
    rate: float = Field(0.0, ge=0)


class EnrollmentTotal(BaseModel):
    count: int = Field(..., ge=0)
    monthly_premium: float = Field(0.0, ge=0)
    annual_premium: Optional[float] = Field(None, ge=0)

    @model_validator(mode="after")
    def default_annual(self) -> "EnrollmentTotal":
        if self.annual_premium is None:
            self.annual_premium = self.monthly_premium * 12
        return self


class EnrollmentTiers(BaseModel):
    single: TierEnrollment = Field(default_factory=TierEnrollment)
    couple: TierEnrollment = Field(default_factory=TierEnrollment)
    spmd: TierEnrollment = Field(default_factory=TierEnrollment, description="Single parent plus dependents")
    family: TierEnrollment = Field(default_factory=TierEnrollment)
    total: EnrollmentTotal


class BCBSEnrollment(BaseModel):
    current: EnrollmentTiers
    renewal: Optional[EnrollmentTiers] = None


class BCBSPlanData(BaseModel):
    """Experience and enrollment for one BCBS plan."""

    plan_id: str = Field(..., min_length=1)
    plan_name: Optional[str] = None
    current_period: Optional[str] = Field(None, description="Display label, e.g. '2/23 - 1/24'")
    renewal_period: Optional[str] = None
    member_months: BCBSMemberMonths
    medical_claims: BCBSCoverageClaims
    pharmacy_claims: BCBSCoverageClaims
    enrollment: BCBSEnrollment


class TrendSchedule(BaseModel):
    """
    Annual trend factors and months of trend per column.

    Compounded factors default to ``annual ** (months / 12)``.
    """

    model_config = ConfigDict(frozen=True)

    annual_current: float = Field(..., gt=0)
    annual_renewal: float = Field(..., gt=0)
    months_current: float = Field(..., ge=0)
    months_renewal: float = Field(..., ge=0)
    compounded_current: Optional[float] = Field(None, gt=0)
    compounded_renewal: Optional[float] = Field(None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def compound(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if data.get("compounded_current") is None and "annual_current" in data:
                data["compounded_current"] = data["annual_current"] ** (data.get("months_current", 0) / 12)
            if data.get("compounded_renewal") is None and "annual_renewal" in data:
                data["compounded_renewal"] = data["annual_renewal"] ** (data.get("months_renewal", 0) / 12)
        return data


class BCBSCoverageFactors(BaseModel):
    model_config = ConfigDict(frozen=True)

    medical: PeriodPair
    pharmacy: PeriodPair


class BCBSTrendFactors(BaseModel):
    model_config = ConfigDict(frozen=True)

    medical: TrendSchedule
    pharmacy: TrendSchedule


class BCBSAdjustmentFactors(BaseModel):
    model_config = ConfigDict(frozen=True)

    ffs_age: PeriodPair
    benefit_adjustment: float = Field(1.0, gt=0)
    underwriter_adjustment: float = Field(1.0, gt=0)
    pathway_to_savings: float = Field(1.0, gt=0)


class BCBSRetentionComponents(BaseModel):
    """Retention, premium tax and ACA loads in PMPM dollars."""

    model_config = ConfigDict(frozen=True)

    retention_pmpm: PeriodPair
    ppo_premium_tax: PeriodPair
    aca_adjustments: PeriodPair


class BCBSPlanParameters(BaseModel):
    """Resolved rating assumptions for one plan."""

    model_config = ConfigDict(frozen=True)

    plan_id: str
    plan_name: str
    pooling_level: float = Field(..., gt=0)
    experience_weights: PeriodPair
    credibility_factor: float = Field(..., ge=0, le=1)
    ibnr_factors: BCBSCoverageFactors
    trend_factors: BCBSTrendFactors
    adjustment_factors: BCBSAdjustmentFactors
    retention_components: BCBSRetentionComponents
    current_premium_pmpm: float = Field(..., gt=0)
    manual_claims_pmpm: PeriodPair
    member_based_charges: PeriodPair = Field(
        default_factory=lambda: PeriodPair(current=0.0, renewal=0.0)
    )


class BCBSOverrides(BaseModel):
    """
    Caller-supplied BCBS assumptions.

    ``plans`` replaces the derived per-plan parameters entirely. The scalar
    fields only adjust derived plans.
    """

    plans: Optional[List[BCBSPlanParameters]] = None
    total_enrollment: Optional[float] = Field(None, gt=0)
    pooling_level: Optional[float] = Field(None, gt=0)
    experience_weights: Optional[PeriodPair] = None
    credibility_factor: Optional[float] = Field(None, ge=0, le=1)
    current_premium_pmpm: Optional[float] = Field(None, gt=0)


class BCBSParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    plans: List[BCBSPlanParameters] = Field(..., min_length=1)
    total_enrollment: Optional[float] = Field(
        None,
        gt=0,
        description="Defaults to the sum of plan enrollments"
    )


RateStatus = Literal["increase", "decrease", "minimal"]


class BCBSPlanMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    projected_premium_pmpm: float
    required_premium_pmpm: float
    current_premium_pmpm: float
    rate_action: float
    status: RateStatus


class BCBSIntermediateResults(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_projected_pmpm: float
    adjusted_projected_pmpm: float
    credibility_adjusted_pmpm: float
    weighted_experience_claims: float


class BCBSPlanResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: str
    plan_name: str
    enrollment: int
    calculations: List[PeriodPairLine]
    final_metrics: BCBSPlanMetrics
    intermediate_results: BCBSIntermediateResults


class BCBSWeightedAverages(BaseModel):
    model_config = ConfigDict(frozen=True)

    projected_pmpm: float
    required_pmpm: float
    current_pmpm: float


class BCBSCompositeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    composite_rate_action: float
    total_enrollment: float
    weighted_averages: BCBSWeightedAverages
    enrollment_weights: Dict[str, float]
    status: RateStatus


class PlanEnrollmentShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: str
    plan_name: str
    enrollment: int
    percentage: float


class BCBSEnrollmentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_enrollment: int
    total_monthly_premium: float
    total_annual_premium: float
    plan_breakdown: List[PlanEnrollmentShare]


class RateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    minimum: float
    maximum: float


class BCBSResult(BaseModel):
    """Composite and per-plan BCBS renewal result."""

    model_config = ConfigDict(frozen=True)

    carrier: str = "BCBS"
    composite: BCBSCompositeResult
    individual_plans: List[BCBSPlanResult]
    enrollment_summary: BCBSEnrollmentSummary
    rate_range: RateRange
    warnings: List[str]
    data_completeness: float = Field(..., ge=0, le=1)
    parameters: BCBSParameters

