"""
AETNA parameter and result models.

The AETNA exhibit has 28 numbered lines with medical, rx and total
columns for the current and prior experience periods.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..ledger import CoverageValues, LedgerLine
from ..models import DataQuality, ExperiencePeriods, PooledClaimantRow


class AetnaLine(str, Enum):
    INCURRED_CLAIMS = "1"
    DEDUCTIBLE_SUPPRESSION = "2"
    SUPPRESSED_CLAIMS = "3"
    POOLED_CLAIMS = "4"
    POOLING_CHARGE = "5"
    CLAIMS_WITH_POOLING = "6"
    NETWORK_ADJUSTMENT = "7"
    PLAN_ADJUSTMENT = "8"
    DEMOGRAPHIC_ADJUSTMENT = "9"
    UNDERWRITING_ADJUSTMENT = "10"
    CLAIMS_WITH_FACTORS = "11"
    TREND = "12"
    PROJECTED_CLAIMS = "13"
    PERIOD_WEIGHTING = "14"
    WEIGHTED_PROJECTED_CLAIMS = "15"
    CREDIBILITY = "16"
    MANUAL_CLAIMS = "17"
    BLENDED_CLAIMS = "18"
    LARGE_CLAIM_ADJUSTMENT = "19"
    NON_BENEFIT_EXPENSES = "20"
    RETENTION = "21"
    PROJECTED_PREMIUM = "22"
    RATE_ADJUSTMENT = "23"
    PROPOSED_PREMIUM = "24"
    PRODUCER_SERVICE_FEE = "25"
    TOTAL_AMOUNT_DUE = "26"
    CURRENT_PREMIUM = "27"
    RATE_CHANGE = "28"


AETNA_LINE_DESCRIPTIONS = {
    AetnaLine.INCURRED_CLAIMS: "Incurred Claims",
    AetnaLine.DEDUCTIBLE_SUPPRESSION: "Deductible Suppression Factor",
    AetnaLine.SUPPRESSED_CLAIMS: "Incurred Claims x Deductible Suppression Factor",
    AetnaLine.POOLED_CLAIMS: "Pooled Claims",
    AetnaLine.POOLING_CHARGE: "Pooling Charge",
    AetnaLine.CLAIMS_WITH_POOLING: "Incurred Claims w/ Pooling",
    AetnaLine.NETWORK_ADJUSTMENT: "Network Adjustment",
    AetnaLine.PLAN_ADJUSTMENT: "Plan Adjustment",
    AetnaLine.DEMOGRAPHIC_ADJUSTMENT: "Demographic Adjustment",
    AetnaLine.UNDERWRITING_ADJUSTMENT: "Underwriting Adjustment",
    AetnaLine.CLAIMS_WITH_FACTORS: "Incurred Claims x Factors",
    AetnaLine.TREND: "Trend Application",
    AetnaLine.PROJECTED_CLAIMS: "Projected Claims PMPM",
    AetnaLine.PERIOD_WEIGHTING: "Experience Period Weighting",
    AetnaLine.WEIGHTED_PROJECTED_CLAIMS: "Experience Weighted Projected Claims",
    AetnaLine.CREDIBILITY: "Experience Credibility",
    AetnaLine.MANUAL_CLAIMS: "Manual Projected Claims",
    AetnaLine.BLENDED_CLAIMS: "Blended Projected Claims",
    AetnaLine.LARGE_CLAIM_ADJUSTMENT: "Large Claim Adjustment",
    AetnaLine.NON_BENEFIT_EXPENSES: "Non-Benefit Expenses",
    AetnaLine.RETENTION: "Total Retention Charges",
    AetnaLine.PROJECTED_PREMIUM: "Projected Premium",
    AetnaLine.RATE_ADJUSTMENT: "Rate Adjustment",
    AetnaLine.PROPOSED_PREMIUM: "Proposed Premium",
    AetnaLine.PRODUCER_SERVICE_FEE: "Producer Service Fee",
    AetnaLine.TOTAL_AMOUNT_DUE: "Total Amount Due",
    AetnaLine.CURRENT_PREMIUM: "Estimated Current Premium",
    AetnaLine.RATE_CHANGE: "Required Rate Change",
}


class AetnaTrend(BaseModel):
    """Annual trend factors (1.0969 = 9.69%) compounded over ``months``."""

    model_config = ConfigDict(frozen=True)

    medical: float = Field(..., gt=0)
    rx: float = Field(..., gt=0)
    months: float = Field(..., ge=0)


class PeriodWeighting(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: float = Field(..., ge=0, le=1)
    prior: float = Field(..., ge=0, le=1)


class CredibilityParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    minimum_credibility: float = Field(0.25, ge=0, le=1)
    full_credibility_member_months: float = Field(12000, gt=0)
    credibility_formula: Literal["sqrt", "linear"] = "sqrt"


class AetnaManualRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    medical: float = Field(..., ge=0)
    rx: float = Field(..., ge=0)


class AetnaRetentionComponents(BaseModel):
    """Retention charges in PMPM dollars."""

    model_config = ConfigDict(frozen=True)

    admin: float = Field(0.0, ge=0)
    commissions: float = Field(0.0, ge=0)
    premium_tax: float = Field(0.0, ge=0)
    risk_margin: float = Field(0.0, ge=0)
    other: float = Field(0.0, ge=0)

    @property
    def total(self) -> float:
        return self.admin + self.commissions + self.premium_tax + self.risk_margin + self.other


class AetnaOverrides(BaseModel):
    deductible_suppression_factor: Optional[float] = Field(None, gt=0)
    pooling_level: Optional[float] = Field(None, gt=0)
    pooling_charges_pmpm: Optional[float] = Field(None, ge=0)
    network_adjustment: Optional[float] = Field(None, gt=0)
    plan_adjustment: Optional[float] = Field(None, gt=0)
    demographic_adjustment: Optional[float] = Field(None, gt=0)
    underwriting_adjustment: Optional[float] = Field(None, gt=0)
    trend_factor: Optional[AetnaTrend] = None
    period_weighting: Optional[PeriodWeighting] = None
    credibility_parameters: Optional[CredibilityParameters] = None
    manual_rates: Optional[AetnaManualRates] = None
    large_claim_adjustment: Optional[float] = None
    non_benefit_expenses_pmpm: Optional[float] = Field(None, ge=0)
    retention_components: Optional[AetnaRetentionComponents] = None
    rate_adjustment: Optional[float] = Field(None, gt=0)
    producer_service_fee_pmpm: Optional[float] = Field(None, ge=0)
    current_premium_pmpm: Optional[float] = Field(None, gt=0)


class AetnaParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    deductible_suppression_factor: float = Field(..., gt=0)
    pooling_level: float = Field(..., gt=0)
    pooling_charges_pmpm: float = Field(..., ge=0)
    network_adjustment: float = Field(1.0, gt=0)
    plan_adjustment: float = Field(1.0, gt=0)
    demographic_adjustment: float = Field(1.0, gt=0)
    underwriting_adjustment: float = Field(1.0, gt=0)
    trend_factor: AetnaTrend
    period_weighting: PeriodWeighting
    credibility_parameters: CredibilityParameters = Field(default_factory=CredibilityParameters)
    manual_rates: AetnaManualRates
    large_claim_adjustment: float = 0.0
    non_benefit_expenses_pmpm: float = Field(0.0, ge=0)
    retention_components: AetnaRetentionComponents = Field(default_factory=AetnaRetentionComponents)
    rate_adjustment: float = Field(1.0, gt=0)
    producer_service_fee_pmpm: float = Field(0.0, ge=0)
    current_premium_pmpm: float = Field(
        ...,
        gt=0,
        description="Used when no month carries earned premium"
    )


class MemberMonthsUsed(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: float
    prior: float
    weighted: float


class AetnaSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    incurred_claims_pmpm: CoverageValues
    projected_claims_pmpm: CoverageValues
    total_retention_pmpm: float
    member_months_used: MemberMonthsUsed


class AetnaResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    carrier: str = "AETNA"
    final_premium: CoverageValues
    rate_change: float
    current_premium_pmpm: float
    calculations: List[LedgerLine]
    periods: ExperiencePeriods
    summary: AetnaSummary
    warnings: List[str]
    data_quality: DataQuality
    pooled_claimants: List[PooledClaimantRow] = Field(default_factory=list)
    parameters: AetnaParameters
