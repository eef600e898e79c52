"""
AETNA renewal engine.

Implements the 28-line AETNA exhibit. Lines 1-14 are computed for both
the current and prior periods; line 15 blends them by the period
weighting and everything after it is a single blended column. Line 16
carries the manual complement (1 - credibility) in its prior column.
"""

import logging
import math
from typing import List, Optional

from ..ledger import CoverageValues, Ledger, LedgerLine
from ..models import DataQuality, Period, RenewalInput
from ..periods import (
    annualize_claims,
    calculate_pooled_claims_for_period,
    data_completeness,
    get_claims_for_period,
    get_member_months_for_period,
    get_records_for_period,
    pooled_claimant_audit,
    sort_records_descending,
)
from .aetna_models import (
    AETNA_LINE_DESCRIPTIONS,
    AetnaLine,
    AetnaParameters,
    AetnaResult,
    AetnaSummary,
    MemberMonthsUsed,
)
from .common import log_warnings, prepare_experience

logger = logging.getLogger(__name__)

FACTOR_LINES = (
    (AetnaLine.NETWORK_ADJUSTMENT, "network_adjustment", "Network change adjustment factor"),
    (AetnaLine.PLAN_ADJUSTMENT, "plan_adjustment", "Plan design change adjustment factor"),
    (AetnaLine.DEMOGRAPHIC_ADJUSTMENT, "demographic_adjustment", "Age/sex demographic adjustment factor"),
    (AetnaLine.UNDERWRITING_ADJUSTMENT, "underwriting_adjustment", "Underwriting adjustment factor"),
)


def credibility_factor(
    member_months: float,
    full_credibility_member_months: float,
    minimum: float,
    formula: str = "sqrt",
) -> float:
    """
    Experience credibility for a block of member months.

    Args:
        member_months: Exposure across the experience periods
        full_credibility_member_months: Exposure at which credibility reaches 1
        minimum: Floor applied after the cap
        formula: ``"sqrt"`` for the square-root rule, ``"linear"`` otherwise

    Returns:
        Credibility between ``minimum`` and 1
    """
    ratio = member_months / full_credibility_member_months
    credibility = min(1.0, math.sqrt(ratio) if formula == "sqrt" else ratio)
    return max(credibility, minimum)


class AetnaRenewalCalculator:
    """
    Calculates an AETNA renewal.

    Example:
        >>> result = AetnaRenewalCalculator(renewal_input, parameters).calculate()
        >>> result.final_premium.total
    """

    def __init__(self, renewal_input: RenewalInput, parameters: AetnaParameters):
        self.input = renewal_input
        self.parameters = parameters
        self.ledger: Optional[Ledger[AetnaLine, LedgerLine]] = None
        self.has_prior = False

    def calculate(self) -> AetnaResult:
        """
        Run lines 1 through 28.

        Raises:
            InsufficientDataError: If fewer than 4 months of data are supplied
            DataValidationError: If any month has no member months
        """
        periods, warnings = prepare_experience(self.input)
        weighting = self.parameters.period_weighting
        if periods.prior is not None and not math.isclose(weighting.current + weighting.prior, 1.0):
            warnings.append(
                f"AETNA period weights sum to {weighting.current + weighting.prior:.2f}, not 100%"
            )
        log_warnings("AETNA", warnings)

        records = self.input.monthly_claims
        self.has_prior = periods.prior is not None
        current_mm = get_member_months_for_period(records, periods.current).total
        prior_mm = get_member_months_for_period(records, periods.prior).total if self.has_prior else 0.0

        self.ledger = Ledger(AetnaLine)
        self._experience_lines(periods.current, periods.prior, current_mm, prior_mm)
        self._projection_lines(current_mm + prior_mm)
        self._premium_lines()

        result = self._build_result(periods, current_mm, prior_mm, warnings)
        logger.info(
            f"AETNA renewal for {self.input.case_id}: "
            f"${result.final_premium.total:.2f} PMPM, rate change {result.rate_change:.2%}"
        )
        return result

    def _add(self, line_id: AetnaLine, current: CoverageValues,
             prior: Optional[CoverageValues] = None, calculation: Optional[str] = None) -> LedgerLine:
        return self.ledger.append(line_id, LedgerLine(
            line_id=line_id.value,
            description=AETNA_LINE_DESCRIPTIONS[line_id],
            current=current,
            prior=prior,
            calculation=calculation,
        ))

    def _both(self, line_id: AetnaLine, value: CoverageValues, calculation: Optional[str] = None):
        """A line whose value applies to both periods."""
        return self._add(line_id, value, value if self.has_prior else None, calculation)

    def _combine(self, line_id: AetnaLine, fn, sources, calculation: str) -> LedgerLine:
        """Apply ``fn`` column by column to earlier lines."""
        current = fn(*[self.ledger[s].current for s in sources])
        prior = fn(*[self.ledger[s].prior for s in sources]) if self.has_prior else None
        return self._add(line_id, current, prior, calculation)

    def _period_pmpm(self, period: Period, member_months: float) -> CoverageValues:
        """Incurred PMPM, annualizing partial-year periods first."""
        records = self.input.monthly_claims
        if period.months < 12:
            annualized = annualize_claims(get_records_for_period(records, period), period.months)
            claims = annualized.annualized_claims
            member_months = annualized.annualized_member_months
        else:
            claims = get_claims_for_period(records, period)
        return CoverageValues(
            medical=claims.medical / member_months,
            rx=claims.rx / member_months,
            total=claims.total / member_months,
        )

    def _experience_lines(self, current: Period, prior: Optional[Period],
                          current_mm: float, prior_mm: float) -> None:
        params = self.parameters
        logger.debug("AETNA experience lines 1-14")

        self._add(
            AetnaLine.INCURRED_CLAIMS,
            self._period_pmpm(current, current_mm),
            self._period_pmpm(prior, prior_mm) if prior is not None else None,
            "Total Claims / Member Months",
        )
        self._both(AetnaLine.DEDUCTIBLE_SUPPRESSION,
                   CoverageValues.uniform(params.deductible_suppression_factor),
                   "Fixed factor applied to both periods")
        self._combine(AetnaLine.SUPPRESSED_CLAIMS, lambda a, b: a * b,
                      (AetnaLine.INCURRED_CLAIMS, AetnaLine.DEDUCTIBLE_SUPPRESSION), "Line 1 x Line 2")

        def pooled_pmpm(period: Period, member_months: float) -> CoverageValues:
            pooled = calculate_pooled_claims_for_period(
                self.input.large_claimants, period, params.pooling_level
            )
            return CoverageValues(
                medical=pooled.medical / member_months,
                rx=pooled.rx / member_months,
                total=pooled.total / member_months,
            )

        self._add(
            AetnaLine.POOLED_CLAIMS,
            pooled_pmpm(current, current_mm),
            pooled_pmpm(prior, prior_mm) if prior is not None else None,
            f"Claims over ${params.pooling_level:,.0f} / Member Months",
        )
        self._both(AetnaLine.POOLING_CHARGE, CoverageValues.medical_only(params.pooling_charges_pmpm),
                   "Fixed pooling charges PMPM")
        self._combine(
            AetnaLine.CLAIMS_WITH_POOLING, lambda claims, pooled, charge: claims - pooled + charge,
            (AetnaLine.SUPPRESSED_CLAIMS, AetnaLine.POOLED_CLAIMS, AetnaLine.POOLING_CHARGE),
            "Line 3 - Line 4 + Line 5",
        )

        for line_id, field, calculation in FACTOR_LINES:
            self._both(line_id, CoverageValues.uniform(getattr(params, field)), calculation)
        self._combine(
            AetnaLine.CLAIMS_WITH_FACTORS, lambda base, *factors: math.prod(factors, start=base),
            (AetnaLine.CLAIMS_WITH_POOLING,) + tuple(line_id for line_id, _, _ in FACTOR_LINES),
            "Line 6 x Lines 7-10",
        )

        trend = params.trend_factor
        medical_trend = trend.medical ** (trend.months / 12)
        rx_trend = trend.rx ** (trend.months / 12)
        claims = self.ledger[AetnaLine.CLAIMS_WITH_FACTORS].current
        if claims.total > 0:
            total_trend = (claims.medical * medical_trend + claims.rx * rx_trend) / claims.total
        else:
            total_trend = (medical_trend + rx_trend) / 2
        self._both(
            AetnaLine.TREND,
            CoverageValues(medical=medical_trend, rx=rx_trend, total=total_trend),
            f"Med: {trend.medical}^({trend.months:g}/12), Rx: {trend.rx}^({trend.months:g}/12)",
        )
        self._combine(AetnaLine.PROJECTED_CLAIMS, lambda a, b: a * b,
                      (AetnaLine.CLAIMS_WITH_FACTORS, AetnaLine.TREND), "Line 11 x Line 12")

        weighting = params.period_weighting
        if self.has_prior:
            self._add(AetnaLine.PERIOD_WEIGHTING, CoverageValues.uniform(weighting.current),
                      CoverageValues.uniform(weighting.prior),
                      f"Current: {weighting.current}, Prior: {weighting.prior}")
        else:
            self._add(AetnaLine.PERIOD_WEIGHTING, CoverageValues.uniform(1.0),
                      calculation="100% current period (no prior period)")

    def _projection_lines(self, total_member_months: float) -> None:
        params = self.parameters
        logger.debug("AETNA projection lines 15-18")

        projected = self.ledger[AetnaLine.PROJECTED_CLAIMS]
        weights = self.ledger[AetnaLine.PERIOD_WEIGHTING]
        if self.has_prior:
            weighted = projected.current * weights.current + projected.prior * weights.prior
            calculation = "Line 13 Current x Line 14 Current + Line 13 Prior x Line 14 Prior"
        else:
            weighted = projected.current
            calculation = "Line 13 Current (no prior period)"
        self._add(AetnaLine.WEIGHTED_PROJECTED_CLAIMS, weighted, calculation=calculation)

        cred_params = params.credibility_parameters
        credibility = credibility_factor(
            total_member_months,
            cred_params.full_credibility_member_months,
            cred_params.minimum_credibility,
            cred_params.credibility_formula,
        )
        self._add(
            AetnaLine.CREDIBILITY,
            CoverageValues.uniform(credibility),
            CoverageValues.uniform(1 - credibility),
            f"{cred_params.credibility_formula}({total_member_months:,.0f} / "
            f"{cred_params.full_credibility_member_months:,.0f}) = {credibility:.3f}",
        )

        manual = params.manual_rates
        self._add(AetnaLine.MANUAL_CLAIMS, CoverageValues.combine(manual.medical, manual.rx),
                  calculation="Manual rates from carrier")

        experience = self.ledger[AetnaLine.WEIGHTED_PROJECTED_CLAIMS].current
        manual_claims = self.ledger[AetnaLine.MANUAL_CLAIMS].current
        self._add(
            AetnaLine.BLENDED_CLAIMS,
            experience * credibility + manual_claims * (1 - credibility),
            calculation="Line 15 x Line 16 Experience + Line 17 x Line 16 Manual",
        )

    def _premium_lines(self) -> None:
        params = self.parameters
        logger.debug("AETNA premium lines 19-28")

        self._add(AetnaLine.LARGE_CLAIM_ADJUSTMENT, CoverageValues.medical_only(params.large_claim_adjustment),
                  calculation="Additional large claim loading")
        self._add(AetnaLine.NON_BENEFIT_EXPENSES, CoverageValues.medical_only(params.non_benefit_expenses_pmpm),
                  calculation="Fixed non-benefit expenses PMPM")
        retention = params.retention_components
        self._add(
            AetnaLine.RETENTION, CoverageValues.medical_only(retention.total),
            calculation=(
                f"Admin({retention.admin:.2f}) + Comm({retention.commissions:.2f}) + "
                f"Tax({retention.premium_tax:.2f}) + Risk({retention.risk_margin:.2f}) + "
                f"Other({retention.other:.2f})"
            ),
        )
        self._add(
            AetnaLine.PROJECTED_PREMIUM,
            self.ledger[AetnaLine.BLENDED_CLAIMS].current
            + self.ledger[AetnaLine.LARGE_CLAIM_ADJUSTMENT].current
            + self.ledger[AetnaLine.NON_BENEFIT_EXPENSES].current
            + self.ledger[AetnaLine.RETENTION].current,
            calculation="Lines 18 + 19 + 20 + 21",
        )
        self._add(AetnaLine.RATE_ADJUSTMENT, CoverageValues.uniform(params.rate_adjustment),
                  calculation="Rate cap/floor adjustment factor")
        self._add(
            AetnaLine.PROPOSED_PREMIUM,
            self.ledger[AetnaLine.PROJECTED_PREMIUM].current * self.ledger[AetnaLine.RATE_ADJUSTMENT].current,
            calculation="Line 22 x Line 23",
        )
        self._add(AetnaLine.PRODUCER_SERVICE_FEE, CoverageValues.medical_only(params.producer_service_fee_pmpm),
                  calculation="Producer service fee PMPM")
        self._add(
            AetnaLine.TOTAL_AMOUNT_DUE,
            self.ledger[AetnaLine.PROPOSED_PREMIUM].current + self.ledger[AetnaLine.PRODUCER_SERVICE_FEE].current,
            calculation="Line 24 + Line 25",
        )

        current_premium, note = self._current_premium()
        self._add(AetnaLine.CURRENT_PREMIUM, CoverageValues.medical_only(current_premium), calculation=note)
        rate_change = self.ledger[AetnaLine.TOTAL_AMOUNT_DUE].current.total / current_premium - 1
        self._add(AetnaLine.RATE_CHANGE, CoverageValues.medical_only(rate_change),
                  calculation="(Line 26 / Line 27) - 1")

    def _current_premium(self):
        """Earned premium PMPM over the 12 most recent months that carry it."""
        with_premium = [
            record for record in sort_records_descending(self.input.monthly_claims)
            if record.earned_premium is not None
            and record.earned_premium.total
            and record.member_months.total > 0
        ][:12]
        if with_premium:
            earned = sum(record.earned_premium.total for record in with_premium)
            member_months = sum(record.member_months.total for record in with_premium)
            return earned / member_months, f"Calculated from earned premium data ({len(with_premium)} months)"
        return self.parameters.current_premium_pmpm, "Current premium from parameters"

    def _build_result(self, periods, current_mm: float, prior_mm: float, warnings: List[str]) -> AetnaResult:
        weighting = self.parameters.period_weighting
        if self.has_prior:
            weighted_mm = current_mm * weighting.current + prior_mm * weighting.prior
        else:
            weighted_mm = current_mm

        return AetnaResult(
            final_premium=self.ledger[AetnaLine.TOTAL_AMOUNT_DUE].current,
            rate_change=self.ledger[AetnaLine.RATE_CHANGE].current.total,
            current_premium_pmpm=self.ledger[AetnaLine.CURRENT_PREMIUM].current.total,
            calculations=self.ledger.lines(),
            periods=periods,
            summary=AetnaSummary(
                incurred_claims_pmpm=self.ledger[AetnaLine.INCURRED_CLAIMS].current,
                projected_claims_pmpm=self.ledger[AetnaLine.BLENDED_CLAIMS].current,
                total_retention_pmpm=self.ledger[AetnaLine.RETENTION].current.total,
                member_months_used=MemberMonthsUsed(
                    current=current_mm,
                    prior=prior_mm,
                    weighted=weighted_mm,
                ),
            ),
            warnings=warnings,
            data_quality=DataQuality(
                data_completeness=data_completeness(periods),
                annualization_applied=periods.current.months < 12,
                credibility_score=self.ledger[AetnaLine.CREDIBILITY].current.total,
            ),
            pooled_claimants=pooled_claimant_audit(
                self.input.large_claimants, periods, self.parameters.pooling_level
            ),
            parameters=self.parameters,
        )
