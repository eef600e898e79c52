"""
Experience period resolution and pooling utilities.

Every carrier engine calls these to split monthly experience into current
and prior periods, total claims and member months over a period, pool
large claimants above a threshold, and annualize short periods.
"""

import calendar
import logging
from collections import Counter
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import DataValidationError, InsufficientDataError
from .models import (
    AnnualizedClaims,
    ClaimAmounts,
    ExperiencePeriods,
    LargeClaimant,
    MemberMonths,
    MonthlyClaimsRecord,
    Period,
    PooledClaimantRow,
    ValidationResult,
)

logger = logging.getLogger(__name__)

MINIMUM_MONTHS = 4
TWO_PERIOD_MONTHS = 24


def month_bounds(month: str) -> Tuple[date, date]:
    """First and last day of a YYYY-MM month key."""
    year, mon = int(month[:4]), int(month[5:7])
    last_day = calendar.monthrange(year, mon)[1]
    return date(year, mon, 1), date(year, mon, last_day)


def sort_records_descending(records: Iterable[MonthlyClaimsRecord]) -> List[MonthlyClaimsRecord]:
    return sorted(records, key=lambda r: r.month, reverse=True)


def determine_experience_periods(
    records: Sequence[MonthlyClaimsRecord],
    renewal_effective_date: Optional[date] = None,
) -> ExperiencePeriods:
    """
    Determine current and prior experience periods from monthly data.

    With 24 or more months, the current period is the most recent 12 months
    and the prior period is the 12 months before that. Otherwise the current
    period spans every available month and there is no prior period.

    Args:
        records: Monthly claims records in any order
        renewal_effective_date: Renewal start date, used only for logging the
            distance from the current period midpoint

    Returns:
        ExperiencePeriods with ``prior`` set to None below 24 months

    Raises:
        InsufficientDataError: If fewer than 4 months are supplied
        DataValidationError: If a month appears more than once
    """
    ordered = sort_records_descending(records)
    counts = Counter(r.month for r in ordered)
    duplicates = sorted(month for month, count in counts.items() if count > 1)
    if duplicates:
        raise DataValidationError([f"Duplicate month: {month}" for month in duplicates])
    available = len(ordered)
    if available < MINIMUM_MONTHS:
        raise InsufficientDataError(available, MINIMUM_MONTHS)

    newest_end = month_bounds(ordered[0].month)[1]

    if available >= TWO_PERIOD_MONTHS:
        current = Period(
            start=month_bounds(ordered[11].month)[0],
            end=newest_end,
            months=12,
            label="Current",
        )
        prior = Period(
            start=month_bounds(ordered[23].month)[0],
            end=month_bounds(ordered[12].month)[1],
            months=12,
            label="Prior",
        )
    else:
        current = Period(
            start=month_bounds(ordered[-1].month)[0],
            end=newest_end,
            months=available,
            label="Current",
        )
        prior = None

    logger.debug(
        f"Resolved periods: current {current.start} to {current.end} ({current.months} months), "
        f"prior {'none' if prior is None else f'{prior.start} to {prior.end}'}"
    )
    if renewal_effective_date is not None:
        logger.debug(
            f"Current period midpoint is {current.months_to(renewal_effective_date)} months "
            f"before renewal {renewal_effective_date}"
        )

    return ExperiencePeriods(current=current, prior=prior)


def trailing_period(
    records: Sequence[MonthlyClaimsRecord],
    period: Period,
    months: int = 12,
) -> Period:
    """Narrow ``period`` to its most recent ``months`` months of data."""
    inside = sort_records_descending(get_records_for_period(records, period))
    if len(inside) <= months:
        return period
    window = inside[:months]
    return Period(
        start=month_bounds(window[-1].month)[0],
        end=month_bounds(window[0].month)[1],
        months=months,
        label=period.label,
    )


def get_records_for_period(
    records: Iterable[MonthlyClaimsRecord],
    period: Period,
) -> List[MonthlyClaimsRecord]:
    """Records whose month starts inside the period (inclusive)."""
    return [r for r in records if period.contains(month_bounds(r.month)[0])]


def get_member_months_for_period(
    records: Iterable[MonthlyClaimsRecord],
    period: Period,
) -> MemberMonths:
    medical = rx = total = 0.0
    for record in get_records_for_period(records, period):
        mm = record.member_months
        medical += mm.medical if mm.medical is not None else mm.total
        rx += mm.rx if mm.rx is not None else mm.total
        total += mm.total
    return MemberMonths(medical=medical, rx=rx, total=total)


def get_claims_for_period(
    records: Iterable[MonthlyClaimsRecord],
    period: Period,
) -> ClaimAmounts:
    medical = rx = total = 0.0
    for record in get_records_for_period(records, period):
        medical += record.incurred_claims.medical
        rx += record.incurred_claims.rx
        total += record.incurred_claims.total
    return ClaimAmounts(medical=medical, rx=rx, total=total)


def get_claimants_for_period(
    claimants: Iterable[LargeClaimant],
    period: Period,
) -> List[LargeClaimant]:
    return [c for c in claimants if period.contains(c.incurred_date)]


def calculate_pooled_claims_for_period(
    claimants: Iterable[LargeClaimant],
    period: Period,
    threshold: float,
) -> ClaimAmounts:
    """
    Sum claimant dollars above the pooling threshold within a period.

    A claimant's medical and rx excess are each measured against the
    threshold when the claimant carries its own split. Without a split,
    the whole excess is attributed to medical.

    Args:
        claimants: Large claimant records
        period: Period whose incurred dates are included
        threshold: Pooling level in dollars

    Returns:
        ClaimAmounts of pooled (excess) dollars
    """
    medical = rx = total = 0.0
    for claimant in get_claimants_for_period(claimants, period):
        excess = max(0.0, claimant.total_amount - threshold)
        total += excess
        if claimant.medical_amount is not None:
            medical += max(0.0, claimant.medical_amount - threshold)
        else:
            medical += excess
        if claimant.rx_amount is not None:
            rx += max(0.0, claimant.rx_amount - threshold)
    return ClaimAmounts(medical=medical, rx=rx, total=total)


def annualize_claims(
    records: Sequence[MonthlyClaimsRecord],
    actual_months: int,
) -> AnnualizedClaims:
    """
    Scale claims and member months of a partial year to 12 months.

    Raises:
        ValueError: If ``actual_months`` is 12 or more, or below 1
    """
    if actual_months >= 12:
        raise ValueError("Annualization only applies to periods shorter than 12 months")
    if actual_months < 1:
        raise ValueError("Cannot annualize a period with no months")

    factor = 12 / actual_months
    medical = sum(r.incurred_claims.medical for r in records)
    rx = sum(r.incurred_claims.rx for r in records)
    total = sum(r.incurred_claims.total for r in records)
    member_months = sum(r.member_months.total for r in records)

    return AnnualizedClaims(
        annualized_claims=ClaimAmounts(medical=medical * factor, rx=rx * factor, total=total * factor),
        annualized_member_months=member_months * factor,
        annualization_factor=factor,
        actual_months=actual_months,
    )


def validate_large_claimant_periods(
    claimants: Iterable[LargeClaimant],
    periods: ExperiencePeriods,
) -> ValidationResult:
    """Flag claimants incurred outside both experience periods."""
    warnings = []
    for claimant in claimants:
        in_current = periods.current.contains(claimant.incurred_date)
        in_prior = periods.prior is not None and periods.prior.contains(claimant.incurred_date)
        if not (in_current or in_prior):
            warnings.append(
                f"Large claimant {claimant.claimant_id} incurred {claimant.incurred_date.isoformat()} "
                f"falls outside the experience periods"
            )
    return ValidationResult(valid=not warnings, warnings=warnings)


def validate_data_quality(
    records: Sequence[MonthlyClaimsRecord],
    claimants: Sequence[LargeClaimant],
    periods: ExperiencePeriods,
) -> ValidationResult:
    """
    Collect data-quality findings for an experience series.

    Months without member months are errors since every PMPM divides by
    them. Everything else is a warning.
    """
    errors = []
    warnings = []

    months = periods.current.months
    if months < 12:
        warnings.append(f"Limited data: only {months} months available. Claims will be annualized.")
    if months < 6:
        warnings.append(f"Very limited data: only {months} months available. Results may not be reliable.")
    if periods.prior is None:
        warnings.append("No prior period data available. Using current period only.")

    no_claims = sorted(r.month for r in records if r.incurred_claims.total <= 0)
    if no_claims:
        warnings.append(f"Months with no claims data: {', '.join(no_claims)}")

    no_members = sorted(r.month for r in records if r.member_months.total <= 0)
    if no_members:
        errors.append(f"Months with no member months data: {', '.join(no_members)}")

    warnings.extend(validate_large_claimant_periods(claimants, periods).warnings)

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def data_completeness(periods: ExperiencePeriods) -> float:
    """Fraction of a full 12-month current period that is present."""
    return min(1.0, periods.current.months / 12)


def pooled_claimant_audit(
    claimants: Iterable[LargeClaimant],
    periods: ExperiencePeriods,
    threshold: float,
) -> List[PooledClaimantRow]:
    """One audit row per claimant showing its period and pooled excess."""
    rows = []
    for claimant in claimants:
        if periods.current.contains(claimant.incurred_date):
            label = periods.current.label
        elif periods.prior is not None and periods.prior.contains(claimant.incurred_date):
            label = periods.prior.label
        else:
            label = None

        excess = max(0.0, claimant.total_amount - threshold)
        medical = (
            max(0.0, claimant.medical_amount - threshold)
            if claimant.medical_amount is not None else excess
        )
        rx = max(0.0, claimant.rx_amount - threshold) if claimant.rx_amount is not None else 0.0

        rows.append(PooledClaimantRow(
            claimant_id=claimant.claimant_id,
            incurred_date=claimant.incurred_date,
            period_label=label,
            total_amount=claimant.total_amount,
            excess_amount=excess,
            medical_excess=medical,
            rx_excess=rx,
        ))
    return rows
