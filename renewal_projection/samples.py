"""
Deterministic synthetic inputs for demos and tests.
"""

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from .carriers.bcbs_models import (
    TIER_FACTORS,
    BCBSClaims,
    BCBSCoverageClaims,
    BCBSEnrollment,
    BCBSMemberMonths,
    BCBSPlanData,
    EnrollmentTiers,
    EnrollmentTotal,
    TierEnrollment,
)
from .models import (
    ClaimAmounts,
    EffectiveDates,
    LargeClaimant,
    ManualRates,
    MemberMonths,
    MonthlyClaimsRecord,
    RenewalInput,
)


def _shift_month(year: int, month: int, offset: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _interpolate(bounds: Tuple[float, float], position: int, count: int) -> float:
    start, end = bounds
    if count == 1:
        return start
    return start + (end - start) * position / (count - 1)


def linear_monthly_series(
    months: int = 24,
    start: str = "2022-01",
    member_months: Tuple[float, float] = (1000, 1110),
    medical_claims: Tuple[float, float] = (350000, 405000),
    rx_claims: Tuple[float, float] = (85000, 131000),
) -> List[MonthlyClaimsRecord]:
    """
    Monthly records in ascending order with values interpolated linearly
    from the first to the last month.
    """
    year, month = int(start[:4]), int(start[5:7])
    records = []
    for i in range(months):
        y, m = _shift_month(year, month, i)
        mm = round(_interpolate(member_months, i, months))
        records.append(MonthlyClaimsRecord(
            month=f"{y:04d}-{m:02d}",
            member_months=MemberMonths(medical=mm, rx=mm, total=mm),
            incurred_claims=ClaimAmounts(
                medical=_interpolate(medical_claims, i, months),
                rx=_interpolate(rx_claims, i, months),
            ),
        ))
    return records


def sample_large_claimants(records: List[MonthlyClaimsRecord]) -> List[LargeClaimant]:
    """Three claimants placed 3, 8 and 17 months before the newest month (where data reaches)."""
    newest_first = sorted(records, key=lambda r: r.month, reverse=True)
    placements = [
        (3, "LC-001", 310000, 280000, 30000, "Oncology"),
        (8, "LC-002", 140000, None, None, "Cardiac surgery"),
        (17, "LC-003", 210000, 195000, 15000, "Transplant"),
    ]
    claimants = []
    for offset, claimant_id, total, medical, rx, diagnosis in placements:
        if offset >= len(newest_first):
            continue
        month = newest_first[offset].month
        claimants.append(LargeClaimant(
            claimant_id=claimant_id,
            incurred_date=date(int(month[:4]), int(month[5:7]), 15),
            total_amount=total,
            medical_amount=medical,
            rx_amount=rx,
            diagnosis=diagnosis,
        ))
    return claimants


def renewal_dates(records: List[MonthlyClaimsRecord], lag_months: int = 4) -> EffectiveDates:
    """A 12-month renewal starting ``lag_months`` after the newest month."""
    newest = max(r.month for r in records)
    y, m = _shift_month(int(newest[:4]), int(newest[5:7]), lag_months)
    start = date(y, m, 1)
    end_y, end_m = _shift_month(y, m, 12)
    return EffectiveDates(renewal_start=start, renewal_end=date(end_y, end_m, 1) - timedelta(days=1))


def _tiers(count: int, single_rate: float) -> EnrollmentTiers:
    single = int(round(count * 0.4))
    couple = int(round(count * 0.3))
    spmd = int(round(count * 0.1))
    family = count - single - couple - spmd
    tiers = {
        "single": TierEnrollment(count=single, rate=single_rate * TIER_FACTORS["single"]),
        "couple": TierEnrollment(count=couple, rate=single_rate * TIER_FACTORS["couple"]),
        "spmd": TierEnrollment(count=spmd, rate=single_rate * TIER_FACTORS["spmd"]),
        "family": TierEnrollment(count=family, rate=single_rate * TIER_FACTORS["family"]),
    }
    monthly = sum(t.count * t.rate for t in tiers.values())
    return EnrollmentTiers(**tiers, total=EnrollmentTotal(count=count, monthly_premium=monthly))


def _plan(
    plan_id: str,
    plan_name: str,
    member_months: Tuple[float, float],
    medical: Tuple[float, float],
    rx: Tuple[float, float],
    enrollment: int,
    single_rate: float,
    medical_pooled: Tuple[Optional[float], Optional[float]] = (0.0, 0.0),
    rx_pooled: Tuple[Optional[float], Optional[float]] = (0.0, 0.0),
) -> BCBSPlanData:
    return BCBSPlanData(
        plan_id=plan_id,
        plan_name=plan_name,
        current_period="1/22 - 12/22",
        renewal_period="1/23 - 12/23",
        member_months=BCBSMemberMonths(current_total=member_months[0], renewal_total=member_months[1]),
        medical_claims=BCBSCoverageClaims(
            current=BCBSClaims(total_claims=medical[0], pooled_claims=medical_pooled[0]),
            renewal=BCBSClaims(total_claims=medical[1], pooled_claims=medical_pooled[1]),
        ),
        pharmacy_claims=BCBSCoverageClaims(
            current=BCBSClaims(total_claims=rx[0], pooled_claims=rx_pooled[0]),
            renewal=BCBSClaims(total_claims=rx[1], pooled_claims=rx_pooled[1]),
        ),
        enrollment=BCBSEnrollment(current=_tiers(enrollment, single_rate)),
    )


def sample_bcbs_plans() -> List[BCBSPlanData]:
    """A three-plan BCBS book of business with claimant-level pooled amounts."""
    return [
        _plan("PPO1000", "PPO $1000", (4800, 5100), (1900000, 2150000), (420000, 470000),
              425, 480.0, medical_pooled=(150000, 0.0)),
        _plan("HDHP3000", "BCE Saver $3000 with Coinsurance", (3600, 3720), (1150000, 1260000),
              (260000, 285000), 310, 410.0, medical_pooled=(0.0, 45000)),
        _plan("HMO", "HMO Value", (1200, 1320), (380000, 455000), (95000, 110000), 110, 390.0),
    ]


def sample_renewal_input(
    carrier: Optional[str] = "UHC",
    months: int = 24,
    carrier_parameters: Optional[Dict[str, Any]] = None,
    with_plans: bool = False,
) -> RenewalInput:
    """A complete renewal input built from the linear series and sample claimants."""
    records = linear_monthly_series(months=months)
    return RenewalInput(
        carrier=carrier,
        case_id=f"SAMPLE-{months}M",
        effective_dates=renewal_dates(records),
        monthly_claims=records,
        large_claimants=sample_large_claimants(records),
        manual_rates=ManualRates(medical=380.0, rx=95.0),
        carrier_parameters=carrier_parameters or {},
        plans=sample_bcbs_plans() if with_plans else None,
    )
