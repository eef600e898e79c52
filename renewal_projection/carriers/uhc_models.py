"""
UHC parameter and result models.

Lines A through AM follow the carrier's renewal worksheet: experience rating
(A-R), manual rating (S-V) and renewal action (W-AM).
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..ledger import CoverageValues, LedgerLine
from ..models import DataQuality, ExperiencePeriods, PooledClaimantRow


class UHCLine(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"
    G = "G"
    H = "H"
    I = "I"
    J = "J"
    K = "K"
    L = "L"
    M = "M"
    N = "N"
    O = "O"
    P = "P"
    Q = "Q"
    R = "R"
    S = "S"
    T = "T"
    U = "U"
    V = "V"
    W = "W"
    X = "X"
    Y = "Y"
    Z = "Z"
    AA = "AA"
    AB = "AB"
    AC = "AC"
    AD = "AD"
    AE = "AE"
    AF = "AF"
    AG = "AG"
    AH = "AH"
    AI = "AI"
    AJ = "AJ"
    AK = "AK"
    AL = "AL"
    AM = "AM"


# Placeholders are filled from the resolved parameters at run time.
UHC_LINE_DESCRIPTIONS = {
    UHCLine.A: "Incurred Medical Claims PMPM",
    UHCLine.B: "Pooled Claims Over ${threshold:,.0f}",
    UHCLine.C: "Adjusted Medical Claims (A - B)",
    UHCLine.D: "Incurred Rx Claims PMPM",
    UHCLine.E: "Total Incurred Claims (C + D)",
    UHCLine.F: "UW Adjustment",
    UHCLine.G: "Trend Factor (Current {current_months:g} mos, Prior {prior_months:g} mos)",
    UHCLine.H: "Plan Change Adjustment",
    UHCLine.I: "Trended/Adjusted Claims (E x F x G x H)",
    UHCLine.J: "Claim Period Weighting ({current_weight:.0%} / {prior_weight:.0%})",
    UHCLine.K: "Adj for Member Change Between Plans",
    UHCLine.L: "Pooling charge for ${threshold:,.0f}",
    UHCLine.M: "Expected claims (J x K + L)",
    UHCLine.N: "Administration",
    UHCLine.O: "State Taxes and Assessments",
    UHCLine.P: "Other adjustment",
    UHCLine.Q: "Total retention (N + O + P)",
    UHCLine.R: "Experience Premium PMPM (M / (1 - Q))",
    UHCLine.S: "Manual Premium PMPM (unadjusted)",
    UHCLine.T: "Age/Sex Adjustment",
    UHCLine.U: "Other Adjustment",
    UHCLine.V: "Manual Premium PMPM (S x T x U)",
    UHCLine.W: "Experience Rating (with credibility)",
    UHCLine.X: "Manual Rating (with credibility)",
    UHCLine.Y: "Initial Calculated Renewal Cost PMPM (W + X)",
    UHCLine.Z: "Other Adjustment",
    UHCLine.AA: "PMPM Prior to Reform Items, Commission, Fees (Y x Z)",
    UHCLine.AB: "Reform Items",
    UHCLine.AC: "Commission",
    UHCLine.AD: "Fees",
    UHCLine.AE: "Calculated Renewal Cost PMPM (AA + AB + AC + AD)",
    UHCLine.AF: "Current Revenue PMPM",
    UHCLine.AG: "Calculated Renewal Action % ((AE - AF) / AF)",
    UHCLine.AH: "Suggested Renewal Action %",
    UHCLine.AI: "Revenue PMPM with Suggested Action (AF x (1 + AH))",
    UHCLine.AJ: "Revenue vs Cost Difference (AI - AE)",
    UHCLine.AK: "Margin % (AJ / AI)",
    UHCLine.AL: "Loss Ratio (AE / AI)",
    UHCLine.AM: "Final Rate Action Summary",
}


class TrendRates(BaseModel):
    """Annual trend rates as fractions (0.0969 = 9.69%)."""

    model_config = ConfigDict(frozen=True)

    medical: float
    rx: float


class ProjectionMonths(BaseModel):
    """Months from each period's midpoint to the renewal midpoint."""

    model_config = ConfigDict(frozen=True)

    current: float = Field(..., gt=0)
    prior: float = Field(..., gt=0)


class CredibilityWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    experience: float = Field(..., ge=0, le=1)
    manual: float = Field(..., ge=0, le=1)


class UHCRetention(BaseModel):
    """Retention components as fractions of premium (lines N, O, P)."""

    model_config = ConfigDict(frozen=True)

    administrative: float = Field(..., ge=0)
    taxes: float = Field(..., ge=0)
    other: float = Field(..., ge=0)


class UHCOverrides(BaseModel):
    """Caller-supplied UHC assumptions; anything left as None is derived."""

    pooling_threshold: Optional[float] = Field(None, gt=0)
    pooling_factor: Optional[float] = Field(None, ge=0)
    underwriting_adjustment: Optional[float] = Field(None, gt=0)
    plan_change_adjustment: Optional[float] = Field(None, gt=0)
    trend_rates: Optional[TrendRates] = None
    projection_months: Optional[ProjectionMonths] = None
    experience_weights: Optional[List[float]] = None
    credibility_weights: Optional[CredibilityWeights] = None
    base_manual_pmpm: Optional[float] = Field(None, ge=0)
    age_sex_adjustment: Optional[float] = Field(None, gt=0)
    manual_other_adjustment: Optional[float] = Field(None, gt=0)
    retention: Optional[UHCRetention] = None
    member_change_adjustment: Optional[float] = Field(None, gt=0)
    current_revenue_pmpm: Optional[float] = Field(None, gt=0)
    reform_items: Optional[float] = None
    commission: Optional[float] = None
    fees: Optional[float] = None
    suggested_renewal_action: Optional[float] = Field(None, gt=-1)
    other_adjustment: Optional[float] = Field(None, gt=0)


class UHCParameters(BaseModel):
    """Fully resolved UHC assumptions consumed by the engine."""

    model_config = ConfigDict(frozen=True)

    pooling_threshold: float = Field(..., gt=0)
    pooling_factor: float = Field(..., ge=0)
    underwriting_adjustment: float
    plan_change_adjustment: float
    trend_rates: TrendRates
    projection_months: ProjectionMonths
    experience_weights: List[float] = Field(..., description="[current, prior]")
    credibility_weights: Optional[CredibilityWeights] = Field(
        ...,
        description="Experience/manual credibility; must be supplied"
    )
    base_manual_pmpm: float = Field(..., ge=0)
    age_sex_adjustment: float
    manual_other_adjustment: float
    retention: UHCRetention
    member_change_adjustment: float
    current_revenue_pmpm: float = Field(..., gt=0)
    reform_items: float
    commission: float
    fees: float
    suggested_renewal_action: Optional[float] = Field(None, gt=-1)
    other_adjustment: float


class CredibilitySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    experience: float
    manual: float
    credibility_factor: float


class UHCSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    weighted_experience: CoverageValues
    credibility_weighting: CredibilitySummary
    total_retention: float
    projected_annual_premium: float


class PeriodExperience(BaseModel):
    model_config = ConfigDict(frozen=True)

    member_months: float
    medical_pmpm: float
    rx_pmpm: float
    total_pmpm: float


class UHCPeriodAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: PeriodExperience
    prior: Optional[PeriodExperience] = None


class UHCResult(BaseModel):
    """Complete UHC renewal result."""

    model_config = ConfigDict(frozen=True)

    carrier: str = "UHC"
    final_premium: CoverageValues
    rate_change: float
    calculated_rate_change: float
    current_revenue_pmpm: float
    calculations: List[LedgerLine]
    periods: ExperiencePeriods
    summary: UHCSummary
    period_analysis: UHCPeriodAnalysis
    warnings: List[str]
    data_quality: DataQuality
    pooled_claimants: List[PooledClaimantRow] = Field(default_factory=list)
    parameters: UHCParameters
