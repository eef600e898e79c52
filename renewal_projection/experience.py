"""
Group-level experience totals shared by the parameter normalizer and the engines.
"""

from dataclasses import dataclass
from typing import Sequence

from .models import ManualRates, MonthlyClaimsRecord


@dataclass(frozen=True)
class RetentionTiers:
    """Retention percentage (in percentage points) by total member months."""

    large_group_member_months: float = 30000
    medium_group_member_months: float = 10000
    large_group_pct: float = 12.5
    medium_group_pct: float = 14.0
    small_group_pct: float = 15.5

    def percentage_for(self, member_months: float) -> float:
        if member_months > self.large_group_member_months:
            return self.large_group_pct
        if member_months > self.medium_group_member_months:
            return self.medium_group_pct
        return self.small_group_pct


DEFAULT_RETENTION_TIERS = RetentionTiers()


def medical_share_of_claims(
    total_medical: float,
    total_rx: float,
    manual_rates: ManualRates,
) -> float:
    """
    Medical share of combined claims.

    Falls back to the manual rate split when there are no claims, and to
    all-medical when the manual rates are zero as well.
    """
    total = total_medical + total_rx
    if total > 0:
        return total_medical / total
    manual_total = manual_rates.medical + manual_rates.rx
    if manual_total > 0:
        return manual_rates.medical / manual_total
    return 1.0


@dataclass(frozen=True)
class ExperienceSummary:
    """Totals across every monthly record of a group."""

    total_medical: float
    total_rx: float
    total_member_months: float
    months: int
    manual_rates: ManualRates
    retention_pct: float

    @property
    def has_exposure(self) -> bool:
        return self.total_member_months > 0

    @property
    def experience_pmpm(self) -> float:
        if not self.has_exposure:
            return 0.0
        return (self.total_medical + self.total_rx) / self.total_member_months

    @property
    def medical_pmpm(self) -> float:
        return self.total_medical / self.total_member_months if self.has_exposure else 0.0

    @property
    def rx_pmpm(self) -> float:
        return self.total_rx / self.total_member_months if self.has_exposure else 0.0

    @property
    def medical_share(self) -> float:
        return medical_share_of_claims(self.total_medical, self.total_rx, self.manual_rates)

    @property
    def average_monthly_members(self) -> float:
        return self.total_member_months / self.months if self.months else 0.0

    def manual_rates_from_experience(self, load: float = 1.15) -> ManualRates:
        """Experience PMPM loaded by ``load``; the input manual rates when there is no exposure."""
        if not self.has_exposure:
            return ManualRates(
                medical=self.manual_rates.medical,
                rx=self.manual_rates.rx,
                total=self.manual_rates.total_pmpm,
            )
        return ManualRates(
            medical=self.medical_pmpm * load,
            rx=self.rx_pmpm * load,
            total=self.experience_pmpm * load,
        )


def summarize_experience(
    records: Sequence[MonthlyClaimsRecord],
    manual_rates: ManualRates,
    tiers: RetentionTiers = DEFAULT_RETENTION_TIERS,
) -> ExperienceSummary:
    """Sum claims and member months across all records and pick the retention tier."""
    total_medical = sum(r.incurred_claims.medical for r in records)
    total_rx = sum(r.incurred_claims.rx for r in records)
    total_mm = sum(r.member_months.total for r in records)

    return ExperienceSummary(
        total_medical=total_medical,
        total_rx=total_rx,
        total_member_months=total_mm,
        months=len(records),
        manual_rates=manual_rates,
        retention_pct=tiers.percentage_for(total_mm),
    )
