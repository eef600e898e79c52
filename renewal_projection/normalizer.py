"""
Carrier parameter resolution.

Each carrier takes a set of raw overrides (every field optional) and turns
it into a fully populated, frozen parameter model. Anything the caller did
not supply is derived from the group's experience summary using that
carrier's default table below.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .carriers.aetna_models import (
    AetnaManualRates,
    AetnaOverrides,
    AetnaParameters,
    AetnaRetentionComponents,
    AetnaTrend,
    CredibilityParameters,
    PeriodWeighting,
)
from .carriers.bcbs_models import (
    TIER_FACTORS,
    BCBSAdjustmentFactors,
    BCBSClaims,
    BCBSCoverageClaims,
    BCBSCoverageFactors,
    BCBSEnrollment,
    BCBSMemberMonths,
    BCBSOverrides,
    BCBSParameters,
    BCBSPlanData,
    BCBSPlanParameters,
    BCBSRetentionComponents,
    BCBSTrendFactors,
    EnrollmentTiers,
    EnrollmentTotal,
    PeriodPair,
    TierEnrollment,
    TrendSchedule,
)
from .carriers.cigna_models import CignaManualRates, CignaOverrides, CignaParameters, CignaTrend
from .carriers.uhc_models import (
    CredibilityWeights,
    ProjectionMonths,
    TrendRates,
    UHCOverrides,
    UHCParameters,
    UHCRetention,
)
from .errors import DataValidationError
from .experience import ExperienceSummary
from .models import Period, RenewalInput
from .periods import (
    calculate_pooled_claims_for_period,
    determine_experience_periods,
    get_claims_for_period,
    get_member_months_for_period,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UHCDefaults:
    """UHC assumptions used where the caller supplies no override."""

    pooling_threshold: float = 125000
    pooling_factor: float = 0.156
    underwriting_adjustment: float = 1.0
    plan_change_adjustment: float = 1.002
    medical_trend: float = 0.0969
    rx_trend: float = 0.0788
    current_projection_months: float = 20
    prior_projection_months: float = 28
    experience_weights: Tuple[float, float] = (0.70, 0.30)
    experience_credibility: float = 0.42
    manual_credibility: float = 0.58
    manual_load: float = 1.15
    age_sex_adjustment: float = 1.168
    manual_other_adjustment: float = 1.0
    # Shares of the tiered retention percentage
    administrative_share: float = 0.33
    taxes_share: float = 0.17
    other_share: float = 0.10
    member_change_adjustment: float = 1.0
    revenue_load: float = 1.16
    reform_items: float = 0.0
    # PMPM dollars per retention percentage point
    commission_per_point: float = 0.27
    fees_per_point: float = 0.13
    other_adjustment: float = 1.0


@dataclass(frozen=True)
class AetnaDefaults:
    deductible_suppression_factor: float = 1.0
    pooling_level: float = 175000
    pooling_charge_rate: float = 0.097
    medical_trend: float = 1.0969
    rx_trend: float = 1.0788
    trend_months: float = 19
    current_weight: float = 0.75
    prior_weight: float = 0.25
    minimum_credibility: float = 0.25
    full_credibility_member_months: float = 12000
    manual_load: float = 1.15
    retention_rate: float = 0.127
    non_benefit_share: float = 0.40
    admin_share: float = 0.35
    commission_share: float = 0.25
    premium_tax_share: float = 0.15
    risk_margin_share: float = 0.20
    other_share: float = 0.05
    premium_load: float = 1.16


@dataclass(frozen=True)
class CignaDefaults:
    pooling_level: float = 50000
    demographic_adjustment: float = 1.0
    annual_trend: float = 1.085
    midpoint_months: float = 12
    manual_load: float = 1.20
    experience_weight: float = 0.80
    premium_load: float = 1.22


@dataclass(frozen=True)
class BCBSDefaults:
    """
    BCBS per-plan assumptions.

    Pairs are (current column, renewal column). Retention, premium tax and
    ACA loads are fractions of the plan's experience PMPM.
    """

    plan_id: str = "plan1"
    plan_name: str = "BCE Saver $3000 with Coinsurance"
    pooling_level: float = 225000
    experience_weights: Tuple[float, float] = (0.33, 0.67)
    credibility_factor: float = 1.0
    medical_ibnr: Tuple[float, float] = (1.0, 1.024)
    pharmacy_ibnr: Tuple[float, float] = (1.0, 1.002)
    medical_trend: Tuple[float, float] = (1.1000, 1.1003)
    pharmacy_trend: Tuple[float, float] = (1.1073, 1.1136)
    trend_months: Tuple[float, float] = (35, 23)
    ffs_age: Tuple[float, float] = (1.0375, 1.0214)
    benefit_adjustment: float = 1.0
    underwriter_adjustment: float = 1.0
    pathway_to_savings: float = 0.995
    retention_rate: Tuple[float, float] = (0.15, 0.17)
    premium_tax_rate: Tuple[float, float] = (0.0104, 0.0116)
    aca_rate: Tuple[float, float] = (0.0004, 0.0005)
    premium_load: float = 1.16
    manual_load: float = 1.15
    manual_spread: Tuple[float, float] = (0.8, 1.2)
    tier_mix: Tuple[Tuple[str, float], ...] = (
        ("single", 0.4),
        ("couple", 0.3),
        ("spmd", 0.1),
        ("family", 0.2),
    )


DEFAULT_UHC = UHCDefaults()
DEFAULT_AETNA = AetnaDefaults()
DEFAULT_CIGNA = CignaDefaults()
DEFAULT_BCBS = BCBSDefaults()


def _pick(override, default):
    return default if override is None else override


def _require_exposure(experience: ExperienceSummary) -> None:
    if not experience.has_exposure:
        raise DataValidationError(["No member months in experience data"])


def resolve_uhc_parameters(
    overrides: UHCOverrides,
    experience: ExperienceSummary,
    defaults: UHCDefaults = DEFAULT_UHC,
) -> UHCParameters:
    """
    Build UHC parameters from overrides and the experience summary.

    Retention, commission and fees scale with the group-size retention
    percentage; current revenue and the manual base scale with experience PMPM.

    Raises:
        DataValidationError: If the experience has no member months
    """
    _require_exposure(experience)
    pct = experience.retention_pct

    retention = overrides.retention or UHCRetention(
        administrative=pct * defaults.administrative_share / 100,
        taxes=pct * defaults.taxes_share / 100,
        other=pct * defaults.other_share / 100,
    )
    base_manual = _pick(
        overrides.base_manual_pmpm,
        experience.manual_rates_from_experience(defaults.manual_load).total_pmpm,
    )

    return UHCParameters(
        pooling_threshold=_pick(overrides.pooling_threshold, defaults.pooling_threshold),
        pooling_factor=_pick(overrides.pooling_factor, defaults.pooling_factor),
        underwriting_adjustment=_pick(overrides.underwriting_adjustment, defaults.underwriting_adjustment),
        plan_change_adjustment=_pick(overrides.plan_change_adjustment, defaults.plan_change_adjustment),
        trend_rates=overrides.trend_rates or TrendRates(medical=defaults.medical_trend, rx=defaults.rx_trend),
        projection_months=overrides.projection_months or ProjectionMonths(
            current=defaults.current_projection_months,
            prior=defaults.prior_projection_months,
        ),
        experience_weights=_pick(overrides.experience_weights, list(defaults.experience_weights)),
        credibility_weights=overrides.credibility_weights or CredibilityWeights(
            experience=defaults.experience_credibility,
            manual=defaults.manual_credibility,
        ),
        base_manual_pmpm=base_manual,
        age_sex_adjustment=_pick(overrides.age_sex_adjustment, defaults.age_sex_adjustment),
        manual_other_adjustment=_pick(overrides.manual_other_adjustment, defaults.manual_other_adjustment),
        retention=retention,
        member_change_adjustment=_pick(overrides.member_change_adjustment, defaults.member_change_adjustment),
        current_revenue_pmpm=_pick(
            overrides.current_revenue_pmpm,
            experience.experience_pmpm * defaults.revenue_load,
        ),
        reform_items=_pick(overrides.reform_items, defaults.reform_items),
        commission=_pick(overrides.commission, pct * defaults.commission_per_point),
        fees=_pick(overrides.fees, pct * defaults.fees_per_point),
        suggested_renewal_action=overrides.suggested_renewal_action,
        other_adjustment=_pick(overrides.other_adjustment, defaults.other_adjustment),
    )


def resolve_aetna_parameters(
    overrides: AetnaOverrides,
    experience: ExperienceSummary,
    defaults: AetnaDefaults = DEFAULT_AETNA,
) -> AetnaParameters:
    """Build AETNA parameters; retention and pooling charges are shares of experience PMPM."""
    _require_exposure(experience)
    experience_pmpm = experience.experience_pmpm
    retention_pmpm = experience_pmpm * defaults.retention_rate
    manual = experience.manual_rates_from_experience(defaults.manual_load)

    return AetnaParameters(
        deductible_suppression_factor=_pick(
            overrides.deductible_suppression_factor, defaults.deductible_suppression_factor
        ),
        pooling_level=_pick(overrides.pooling_level, defaults.pooling_level),
        pooling_charges_pmpm=_pick(overrides.pooling_charges_pmpm, experience_pmpm * defaults.pooling_charge_rate),
        network_adjustment=_pick(overrides.network_adjustment, 1.0),
        plan_adjustment=_pick(overrides.plan_adjustment, 1.0),
        demographic_adjustment=_pick(overrides.demographic_adjustment, 1.0),
        underwriting_adjustment=_pick(overrides.underwriting_adjustment, 1.0),
        trend_factor=overrides.trend_factor or AetnaTrend(
            medical=defaults.medical_trend,
            rx=defaults.rx_trend,
            months=defaults.trend_months,
        ),
        period_weighting=overrides.period_weighting or PeriodWeighting(
            current=defaults.current_weight,
            prior=defaults.prior_weight,
        ),
        credibility_parameters=overrides.credibility_parameters or CredibilityParameters(
            minimum_credibility=defaults.minimum_credibility,
            full_credibility_member_months=defaults.full_credibility_member_months,
        ),
        manual_rates=overrides.manual_rates or AetnaManualRates(medical=manual.medical, rx=manual.rx),
        large_claim_adjustment=_pick(overrides.large_claim_adjustment, 0.0),
        non_benefit_expenses_pmpm=_pick(
            overrides.non_benefit_expenses_pmpm, retention_pmpm * defaults.non_benefit_share
        ),
        retention_components=overrides.retention_components or AetnaRetentionComponents(
            admin=retention_pmpm * defaults.admin_share,
            commissions=retention_pmpm * defaults.commission_share,
            premium_tax=retention_pmpm * defaults.premium_tax_share,
            risk_margin=retention_pmpm * defaults.risk_margin_share,
            other=retention_pmpm * defaults.other_share,
        ),
        rate_adjustment=_pick(overrides.rate_adjustment, 1.0),
        producer_service_fee_pmpm=_pick(overrides.producer_service_fee_pmpm, 0.0),
        current_premium_pmpm=_pick(overrides.current_premium_pmpm, experience_pmpm * defaults.premium_load),
    )


def resolve_cigna_parameters(
    overrides: CignaOverrides,
    experience: ExperienceSummary,
    defaults: CignaDefaults = DEFAULT_CIGNA,
) -> CignaParameters:
    """Build CIGNA parameters; the manual rate follows the group's own medical/rx mix."""
    _require_exposure(experience)
    experience_pmpm = experience.experience_pmpm

    manual_rates = overrides.manual_rates
    if manual_rates is None:
        manual_total = experience_pmpm * defaults.manual_load
        share = experience.medical_share
        manual_rates = CignaManualRates(
            medical=manual_total * share,
            pharmacy=manual_total * (1 - share),
            total=manual_total,
        )

    values = dict(
        pooling_level=_pick(overrides.pooling_level, defaults.pooling_level),
        demographic_adjustment=_pick(overrides.demographic_adjustment, defaults.demographic_adjustment),
        trend_factor=overrides.trend_factor or CignaTrend(
            annual=defaults.annual_trend,
            midpoint_months=defaults.midpoint_months,
        ),
        large_claim_add_back=overrides.large_claim_add_back,
        manual_rates=manual_rates,
        experience_weight=_pick(overrides.experience_weight, defaults.experience_weight),
        current_premium_pmpm=_pick(overrides.current_premium_pmpm, experience_pmpm * defaults.premium_load),
        projected_member_months=overrides.projected_member_months,
    )
    if overrides.claims_fluctuation_corridor is not None:
        values["claims_fluctuation_corridor"] = overrides.claims_fluctuation_corridor
    if overrides.expense_loadings is not None:
        values["expense_loadings"] = overrides.expense_loadings
    return CignaParameters(**values)


def _pair(values: Tuple[float, float]) -> PeriodPair:
    return PeriodPair(current=values[0], renewal=values[1])


def _tier_enrollment(count: int, premium_pmpm: float, defaults: BCBSDefaults) -> EnrollmentTiers:
    """Split a head count across tiers by the default mix; the family tier takes the remainder."""
    tiers: Dict[str, TierEnrollment] = {}
    assigned = 0
    for position, (tier, share) in enumerate(defaults.tier_mix):
        if position == len(defaults.tier_mix) - 1:
            tier_count = count - assigned
        else:
            tier_count = int(round(count * share))
            assigned += tier_count
        tiers[tier] = TierEnrollment(count=max(tier_count, 0), rate=premium_pmpm * TIER_FACTORS[tier])
    return EnrollmentTiers(
        **tiers,
        total=EnrollmentTotal(count=count, monthly_premium=premium_pmpm * count),
    )


def _period_label(period: Period) -> str:
    return f"{period.start.month}/{period.start:%y} - {period.end.month}/{period.end:%y}"


def bcbs_plan_from_experience(
    renewal_input: RenewalInput,
    experience: ExperienceSummary,
    defaults: BCBSDefaults = DEFAULT_BCBS,
    pooling_level: Optional[float] = None,
) -> BCBSPlanData:
    """
    Build single-plan BCBS data from the group's monthly experience.

    The renewal column is the most recent experience period and the
    current column the one before it. With under 24 months both columns
    use the single available period.

    Raises:
        InsufficientDataError: If fewer than 4 months of data are supplied
        DataValidationError: If the experience has no member months
    """
    _require_exposure(experience)
    records = renewal_input.monthly_claims
    claimants = renewal_input.large_claimants
    level = _pick(pooling_level, defaults.pooling_level)

    periods = determine_experience_periods(records, renewal_input.effective_dates.renewal_start)
    renewal_period = periods.current
    current_period = periods.prior or periods.current

    def coverage(period: Period) -> Tuple[BCBSClaims, BCBSClaims]:
        claims = get_claims_for_period(records, period)
        pooled = calculate_pooled_claims_for_period(claimants, period, level)
        return (
            BCBSClaims(total_claims=claims.medical, pooled_claims=pooled.medical),
            BCBSClaims(total_claims=claims.rx, pooled_claims=pooled.rx),
        )

    medical_current, rx_current = coverage(current_period)
    medical_renewal, rx_renewal = coverage(renewal_period)
    renewal_mm = get_member_months_for_period(records, renewal_period).total

    count = int(round(renewal_mm / renewal_period.months))
    premium = experience.experience_pmpm * defaults.premium_load
    logger.debug(f"Derived BCBS plan {defaults.plan_id} with {count} enrolled members")

    return BCBSPlanData(
        plan_id=defaults.plan_id,
        plan_name=defaults.plan_name,
        current_period=_period_label(current_period),
        renewal_period=_period_label(renewal_period),
        member_months=BCBSMemberMonths(
            current_total=get_member_months_for_period(records, current_period).total,
            renewal_total=renewal_mm,
        ),
        medical_claims=BCBSCoverageClaims(current=medical_current, renewal=medical_renewal),
        pharmacy_claims=BCBSCoverageClaims(current=rx_current, renewal=rx_renewal),
        enrollment=BCBSEnrollment(current=_tier_enrollment(count, premium, defaults)),
    )


def _plan_experience_pmpm(plan: BCBSPlanData, fallback: float) -> float:
    member_months = plan.member_months.renewal_total
    if member_months <= 0:
        return fallback
    claims = plan.medical_claims.renewal.total_claims + plan.pharmacy_claims.renewal.total_claims
    return claims / member_months


def _bcbs_plan_parameters(
    plan: BCBSPlanData,
    overrides: BCBSOverrides,
    experience_pmpm: float,
    defaults: BCBSDefaults,
) -> BCBSPlanParameters:
    manual_total = experience_pmpm * defaults.manual_load
    low, high = defaults.manual_spread

    def loads(rates: Tuple[float, float]) -> PeriodPair:
        return PeriodPair(current=experience_pmpm * rates[0], renewal=experience_pmpm * rates[1])

    def trend(annual: Tuple[float, float]) -> TrendSchedule:
        return TrendSchedule(
            annual_current=annual[0],
            annual_renewal=annual[1],
            months_current=defaults.trend_months[0],
            months_renewal=defaults.trend_months[1],
        )

    return BCBSPlanParameters(
        plan_id=plan.plan_id,
        plan_name=plan.plan_name or plan.plan_id,
        pooling_level=_pick(overrides.pooling_level, defaults.pooling_level),
        experience_weights=overrides.experience_weights or _pair(defaults.experience_weights),
        credibility_factor=_pick(overrides.credibility_factor, defaults.credibility_factor),
        ibnr_factors=BCBSCoverageFactors(
            medical=_pair(defaults.medical_ibnr),
            pharmacy=_pair(defaults.pharmacy_ibnr),
        ),
        trend_factors=BCBSTrendFactors(
            medical=trend(defaults.medical_trend),
            pharmacy=trend(defaults.pharmacy_trend),
        ),
        adjustment_factors=BCBSAdjustmentFactors(
            ffs_age=_pair(defaults.ffs_age),
            benefit_adjustment=defaults.benefit_adjustment,
            underwriter_adjustment=defaults.underwriter_adjustment,
            pathway_to_savings=defaults.pathway_to_savings,
        ),
        retention_components=BCBSRetentionComponents(
            retention_pmpm=loads(defaults.retention_rate),
            ppo_premium_tax=loads(defaults.premium_tax_rate),
            aca_adjustments=loads(defaults.aca_rate),
        ),
        current_premium_pmpm=_pick(overrides.current_premium_pmpm, experience_pmpm * defaults.premium_load),
        manual_claims_pmpm=PeriodPair(current=manual_total * low, renewal=manual_total * high),
    )


def resolve_bcbs_parameters(
    overrides: BCBSOverrides,
    experience: ExperienceSummary,
    plans: List[BCBSPlanData],
    defaults: BCBSDefaults = DEFAULT_BCBS,
) -> BCBSParameters:
    """
    Build BCBS parameters for every plan.

    Overrides carrying explicit plan parameters are used as given. Otherwise
    each plan's loads, manual claims and current premium scale with that
    plan's own renewal-period PMPM.

    Raises:
        DataValidationError: If the experience has no member months
    """
    if overrides.plans:
        return BCBSParameters(plans=overrides.plans, total_enrollment=overrides.total_enrollment)

    _require_exposure(experience)
    resolved = [
        _bcbs_plan_parameters(
            plan,
            overrides,
            _plan_experience_pmpm(plan, experience.experience_pmpm),
            defaults,
        )
        for plan in plans
    ]
    return BCBSParameters(plans=resolved, total_enrollment=overrides.total_enrollment)
