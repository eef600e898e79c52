"""
Data models for group experience data and renewal results shared by every carrier.
"""

import re
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .carriers.bcbs_models import BCBSPlanData


_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})")


class Carrier(str, Enum):
    """Carrier tags understood by the dispatcher."""

    UHC = "UHC"
    BCBS = "BCBS"
    CIGNA = "CIGNA"
    AETNA = "AETNA"


class MemberMonths(BaseModel):
    """Member-month exposure for one month."""

    model_config = ConfigDict(frozen=True)

    medical: Optional[float] = Field(None, description="Medical member months", ge=0)
    rx: Optional[float] = Field(None, description="Pharmacy member months", ge=0)
    total: float = Field(..., description="Total member months", ge=0)

    @model_validator(mode="before")
    @classmethod
    def default_total(cls, data: Any) -> Any:
        """Fall back to medical member months when no total is given."""
        if isinstance(data, dict) and data.get("total") is None:
            data = dict(data)
            data["total"] = data.get("medical") or 0.0
        return data


class ClaimAmounts(BaseModel):
    """Medical, pharmacy and total dollar amounts."""

    model_config = ConfigDict(frozen=True)

    medical: float = Field(0.0, description="Medical claims", ge=0)
    rx: float = Field(0.0, description="Pharmacy claims", ge=0)
    total: float = Field(0.0, description="Total claims", ge=0)

    @model_validator(mode="before")
    @classmethod
    def default_total(cls, data: Any) -> Any:
        """Total defaults to medical + rx when omitted."""
        if isinstance(data, dict) and data.get("total") is None:
            data = dict(data)
            data["total"] = (data.get("medical") or 0.0) + (data.get("rx") or 0.0)
        return data


class EarnedPremium(BaseModel):
    """Premium earned in a month."""

    model_config = ConfigDict(frozen=True)

    total: Optional[float] = Field(None, ge=0)
    medical: Optional[float] = Field(None, ge=0)
    rx: Optional[float] = Field(None, ge=0)


class MonthlyClaimsRecord(BaseModel):
    """One calendar month of experience for a group."""

    model_config = ConfigDict(frozen=True)

    month: str = Field(..., description="Year-month key (YYYY-MM)")
    member_months: MemberMonths
    incurred_claims: ClaimAmounts
    paid_claims: Optional[ClaimAmounts] = None
    earned_premium: Optional[EarnedPremium] = None

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: str) -> str:
        """Normalize to YYYY-MM; a full ISO date is truncated to its month."""
        match = _MONTH_PATTERN.match(v.strip())
        if not match:
            raise ValueError(f"Month must be in YYYY-MM format, got '{v}'")
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month number in '{v}'")
        return f"{year:04d}-{month:02d}"


class LargeClaimant(BaseModel):
    """A single high-cost claimant episode."""

    model_config = ConfigDict(frozen=True)

    claimant_id: str = Field(..., description="Opaque claimant identifier")
    incurred_date: date = Field(..., description="Date the claim was incurred")
    total_amount: float = Field(..., description="Total incurred amount", ge=0)
    medical_amount: Optional[float] = Field(None, ge=0)
    rx_amount: Optional[float] = Field(None, ge=0)
    diagnosis: Optional[str] = None
    claim_type: Optional[str] = Field(None, description="medical, pharmacy or combined")

    @field_validator("claimant_id")
    @classmethod
    def validate_claimant_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Claimant ID cannot be empty")
        return v.strip()


class ManualRates(BaseModel):
    """Manual (book) rate basis in PMPM."""

    model_config = ConfigDict(frozen=True)

    medical: float = Field(..., description="Medical manual PMPM", ge=0)
    rx: float = Field(..., description="Pharmacy manual PMPM", ge=0)
    total: Optional[float] = Field(None, description="Total manual PMPM", ge=0)

    @property
    def total_pmpm(self) -> float:
        return self.total if self.total else self.medical + self.rx


class EffectiveDates(BaseModel):
    """Renewal effective-date range."""

    model_config = ConfigDict(frozen=True)

    renewal_start: date
    renewal_end: date

    @model_validator(mode="after")
    def check_order(self) -> "EffectiveDates":
        if self.renewal_end <= self.renewal_start:
            raise ValueError("Renewal end date must be after renewal start date")
        return self


class RenewalInput(BaseModel):
    """
    Carrier-agnostic input record.

    ``carrier_parameters`` holds raw, possibly partial overrides for the
    selected carrier. Anything omitted is derived from the experience data.
    """

    carrier: Optional[Carrier] = None
    case_id: str = Field(..., description="Group or case identifier")
    effective_dates: EffectiveDates
    monthly_claims: List[MonthlyClaimsRecord] = Field(..., min_length=1)
    large_claimants: List[LargeClaimant] = Field(default_factory=list)
    manual_rates: ManualRates
    carrier_parameters: Dict[str, Any] = Field(default_factory=dict)
    plans: Optional[List[BCBSPlanData]] = Field(
        None,
        description="Per-plan experience and enrollment, used by BCBS"
    )

    @field_validator("carrier", mode="before")
    @classmethod
    def normalize_carrier(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class Period(BaseModel):
    """A contiguous experience date range."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    months: int = Field(..., ge=1)
    label: Optional[str] = None

    @property
    def midpoint(self) -> date:
        return date.fromordinal((self.start.toordinal() + self.end.toordinal()) // 2)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def months_to(self, target: date) -> int:
        """Whole months from the period midpoint to ``target``."""
        mid = self.midpoint
        return (target.year - mid.year) * 12 + (target.month - mid.month)


class ExperiencePeriods(BaseModel):
    """Current period plus the preceding 12 months when 24+ months exist."""

    model_config = ConfigDict(frozen=True)

    current: Period
    prior: Optional[Period] = None


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class AnnualizedClaims(BaseModel):
    """Claims and member months scaled up to a 12-month basis."""

    model_config = ConfigDict(frozen=True)

    annualized_claims: ClaimAmounts
    annualized_member_months: float
    annualization_factor: float
    actual_months: int


class ValidationWarning(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    field: Optional[str] = None
    severity: str = "warning"
    category: str = "data"


class CalculationStep(BaseModel):
    """Headline step exposed in the generic result envelope."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: Union[float, str]
    description: Optional[str] = None
    line_id: Optional[str] = None


class DataQuality(BaseModel):
    model_config = ConfigDict(frozen=True)

    data_completeness: float = Field(..., ge=0, le=1)
    annualization_applied: bool
    credibility_score: Optional[float] = None


class PooledClaimantRow(BaseModel):
    """Audit row describing one large claimant against the pooling threshold."""

    model_config = ConfigDict(frozen=True)

    claimant_id: str
    incurred_date: date
    period_label: Optional[str]
    total_amount: float
    excess_amount: float
    medical_excess: float
    rx_excess: float
