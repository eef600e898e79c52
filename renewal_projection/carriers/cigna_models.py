"""
CIGNA parameter and result models.

CIGNA rates a single experience period and reports every line twice:
as PMPM and as an annual amount over projected member months.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..ledger import DualColumnLine
from ..models import DataQuality, PooledClaimantRow


class CignaLine(str, Enum):
    TOTAL_PAID_CLAIMS = "1"
    POOLED_CLAIMS = "2"
    EXPERIENCE_CLAIM_COST = "3"
    DEMOGRAPHIC_FACTOR = "4"
    DEMOGRAPHIC_ADJUSTED = "5"
    ANNUAL_TREND = "6"
    MIDPOINT_MONTHS = "7"
    EFFECTIVE_TREND = "8"
    TRENDED_CLAIMS = "9"
    LARGE_CLAIM_ADD_BACK = "10"
    TOTAL_PROJECTED = "11"
    EXPERIENCE_WEIGHT = "12"
    MANUAL_CLAIM_COST = "13"
    MANUAL_WEIGHT = "14"
    BLENDED_CLAIMS = "15"
    FLUCTUATION_CORRIDOR = "16"
    FINAL_CLAIMS = "17"
    ADMINISTRATION = "18"
    COMMISSIONS = "19"
    PREMIUM_TAX = "20"
    PROFIT_AND_CONTINGENCY = "21"
    OTHER_EXPENSES = "22"
    TOTAL_REQUIRED_PREMIUM = "23"
    CURRENT_PREMIUM = "24"
    REQUIRED_RATE_CHANGE = "25"


CIGNA_LINE_DESCRIPTIONS = {
    CignaLine.TOTAL_PAID_CLAIMS: "Total Paid Claims",
    CignaLine.POOLED_CLAIMS: "Less Pooled Claims over ${threshold:,.0f}",
    CignaLine.EXPERIENCE_CLAIM_COST: "Experience Claim Cost",
    CignaLine.DEMOGRAPHIC_FACTOR: "Demographic Adjustment Factor",
    CignaLine.DEMOGRAPHIC_ADJUSTED: "Demographically Adjusted Claims",
    CignaLine.ANNUAL_TREND: "Annual Trend",
    CignaLine.MIDPOINT_MONTHS: "Midpoint Months",
    CignaLine.EFFECTIVE_TREND: "Effective Trend",
    CignaLine.TRENDED_CLAIMS: "Trended Experience Claims",
    CignaLine.LARGE_CLAIM_ADD_BACK: "Large Claim Add Back",
    CignaLine.TOTAL_PROJECTED: "Total Projected Claims",
    CignaLine.EXPERIENCE_WEIGHT: "Experience Weight",
    CignaLine.MANUAL_CLAIM_COST: "Manual Claim Cost",
    CignaLine.MANUAL_WEIGHT: "Manual Weight",
    CignaLine.BLENDED_CLAIMS: "Blended Claims Cost",
    CignaLine.FLUCTUATION_CORRIDOR: "Claims Fluctuation Corridor",
    CignaLine.FINAL_CLAIMS: "Final Claims Cost",
    CignaLine.ADMINISTRATION: "Administration Expense",
    CignaLine.COMMISSIONS: "Commissions",
    CignaLine.PREMIUM_TAX: "Premium Tax",
    CignaLine.PROFIT_AND_CONTINGENCY: "Profit and Contingency",
    CignaLine.OTHER_EXPENSES: "Other Expenses",
    CignaLine.TOTAL_REQUIRED_PREMIUM: "Total Required Premium",
    CignaLine.CURRENT_PREMIUM: "Current Premium",
    CignaLine.REQUIRED_RATE_CHANGE: "Required Rate Change",
}


class CignaTrend(BaseModel):
    """Annual trend as a factor (1.085 = 8.5%) and months to the rating midpoint."""

    model_config = ConfigDict(frozen=True)

    annual: float = Field(..., gt=0)
    midpoint_months: float = Field(..., ge=0)


class LargeClaimAddBack(BaseModel):
    model_config = ConfigDict(frozen=True)

    pmpm: float = Field(..., ge=0)
    annual: Optional[float] = Field(None, ge=0)


class CignaManualRates(BaseModel):
    model_config = ConfigDict(frozen=True)

    medical: float = Field(..., ge=0)
    pharmacy: float = Field(..., ge=0)
    total: float = Field(..., ge=0)


class ClaimsFluctuationCorridor(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    lower_bound: float = Field(0.85, gt=0)
    upper_bound: float = Field(1.15, gt=0)


class ExpenseLoadings(BaseModel):
    """Caller-supplied expense loads in PMPM dollars; None means use the percentage."""

    model_config = ConfigDict(frozen=True)

    administration: Optional[float] = Field(None, ge=0)
    commissions: Optional[float] = Field(None, ge=0)
    premium_tax: Optional[float] = Field(None, ge=0)
    profit_and_contingency: Optional[float] = Field(None, ge=0)
    other: Optional[float] = Field(None, ge=0)


class ExpensePercentages(BaseModel):
    """
    Fallback expense loads as fractions.

    Premium tax applies to claims plus administration and commissions; the
    rest apply to final claims cost.
    """

    model_config = ConfigDict(frozen=True)

    administration: float = 0.10
    commissions: float = 0.04
    premium_tax: float = 0.025
    profit_and_contingency: float = 0.05
    other: float = 0.02


class CignaOverrides(BaseModel):
    pooling_level: Optional[float] = Field(None, gt=0)
    demographic_adjustment: Optional[float] = Field(None, gt=0)
    trend_factor: Optional[CignaTrend] = None
    large_claim_add_back: Optional[LargeClaimAddBack] = None
    manual_rates: Optional[CignaManualRates] = None
    experience_weight: Optional[float] = Field(None, ge=0, le=1)
    claims_fluctuation_corridor: Optional[ClaimsFluctuationCorridor] = None
    expense_loadings: Optional[ExpenseLoadings] = None
    current_premium_pmpm: Optional[float] = Field(None, gt=0)
    projected_member_months: Optional[float] = Field(None, gt=0)


class CignaParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    pooling_level: float = Field(..., gt=0)
    demographic_adjustment: float = Field(..., gt=0)
    trend_factor: CignaTrend
    large_claim_add_back: Optional[LargeClaimAddBack] = Field(
        None,
        description="Estimated from pooled claims when omitted"
    )
    add_back_factor: float = Field(0.30, ge=0)
    manual_rates: CignaManualRates
    experience_weight: float = Field(..., ge=0, le=1)
    claims_fluctuation_corridor: ClaimsFluctuationCorridor = Field(default_factory=ClaimsFluctuationCorridor)
    expense_loadings: ExpenseLoadings = Field(default_factory=ExpenseLoadings)
    expense_percentages: ExpensePercentages = Field(default_factory=ExpensePercentages)
    current_premium_pmpm: float = Field(..., gt=0)
    projected_member_months: Optional[float] = Field(
        None,
        gt=0,
        description="Defaults to the period's average monthly members x 12"
    )


class DualAmount(BaseModel):
    model_config = ConfigDict(frozen=True)

    pmpm: float
    annual: float


class CignaPeriodAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    months: int
    member_months: float
    projected_member_months: float


class CignaSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_paid_claims: DualAmount
    experience_claim_cost: DualAmount
    projected_claim_cost: DualAmount
    total_expenses: DualAmount


class CFCAnalysis(BaseModel):
    """The corridor is reported but not applied to the final claims cost."""

    model_config = ConfigDict(frozen=True)

    original_premium: float
    adjusted_premium: float
    adjustment_applied: bool = False
    adjustment_percent: float = 0.0
    corridor: Optional[str] = None


class CignaResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    carrier: str = "CIGNA"
    calculations: List[DualColumnLine]
    final_premium: DualAmount
    rate_change: float
    period: CignaPeriodAnalysis
    warnings: List[str]
    summary: CignaSummary
    cfc_analysis: CFCAnalysis
    data_quality: DataQuality
    pooled_claimants: List[PooledClaimantRow] = Field(default_factory=list)
    parameters: CignaParameters
