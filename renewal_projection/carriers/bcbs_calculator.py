"""
BCBS multi-plan renewal engine.

Each plan is rated on its own two-column exhibit (medical and pharmacy
sub-ledgers merged into a total ledger). Plan results are then composited
by enrollment:

    weight_i = enrollment_i / total_enrollment
    composite = sum(weight_i * projected_i) / sum(weight_i * current_i) - 1
"""

import logging
from typing import List, Optional, Tuple

from ..errors import DataValidationError, MissingParameterError, PlanDataNotFoundError
from ..ledger import Ledger, PeriodPairLine
from ..models import RenewalInput
from .bcbs_models import (
    BCBSCompositeResult,
    BCBSCoverageClaims,
    BCBSEnrollmentSummary,
    BCBSIntermediateResults,
    BCBSLine,
    BCBSParameters,
    BCBSPlanData,
    BCBSPlanMetrics,
    BCBSPlanParameters,
    BCBSPlanResult,
    BCBSResult,
    BCBSWeightedAverages,
    PeriodPair,
    PlanEnrollmentShare,
    RateRange,
    TrendSchedule,
)
from .common import log_warnings

logger = logging.getLogger(__name__)

SIGNIFICANT_RATE_CHANGE = 0.25
MINIMAL_RATE_CHANGE = 0.01


def rate_status(rate_action: float) -> str:
    if abs(rate_action) < MINIMAL_RATE_CHANGE:
        return "minimal"
    return "increase" if rate_action > 0 else "decrease"


class BCBSRenewalCalculator:
    """
    Rates every BCBS plan independently and composites them by enrollment.

    Plans do not depend on one another, so each plan ledger is built in
    isolation and only the composite step sees all plan results.
    """

    def __init__(self, renewal_input: RenewalInput, parameters: BCBSParameters):
        self.input = renewal_input
        self.parameters = parameters

    def calculate(self) -> BCBSResult:
        """
        Rate all plans and build the composite.

        Raises:
            MissingParameterError: If the input carries no plan data
            PlanDataNotFoundError: If a plan parameter entry has no plan data
            DataValidationError: If a plan has no member months or enrollment
        """
        plan_pairs = self._match_plans()
        for plan_data, _ in plan_pairs:
            self._validate_plan(plan_data)

        individual_plans = [
            self._calculate_plan(plan_data, plan_params)
            for plan_data, plan_params in plan_pairs
        ]
        composite = self._calculate_composite(individual_plans)
        warnings = self._generate_warnings(individual_plans)
        log_warnings("BCBS", warnings)

        rate_actions = [plan.final_metrics.rate_action for plan in individual_plans]
        result = BCBSResult(
            composite=composite,
            individual_plans=individual_plans,
            enrollment_summary=self._enrollment_summary(plan_pairs, individual_plans),
            rate_range=RateRange(minimum=min(rate_actions), maximum=max(rate_actions)),
            warnings=warnings,
            data_completeness=self._assess_data_quality([data for data, _ in plan_pairs]),
            parameters=self.parameters,
        )
        logger.info(
            f"BCBS renewal for {self.input.case_id}: {len(individual_plans)} plans, "
            f"composite rate action {composite.composite_rate_action:.2%}"
        )
        return result

    def _match_plans(self) -> List[Tuple[BCBSPlanData, BCBSPlanParameters]]:
        if not self.input.plans:
            raise MissingParameterError("BCBS requires plan data")
        by_id = {plan.plan_id: plan for plan in self.input.plans}
        pairs = []
        for plan_params in self.parameters.plans:
            plan_data = by_id.get(plan_params.plan_id)
            if plan_data is None:
                raise PlanDataNotFoundError(plan_params.plan_id)
            pairs.append((plan_data, plan_params))
        return pairs

    def _validate_plan(self, plan_data: BCBSPlanData) -> None:
        errors = []
        if plan_data.member_months.current_total <= 0:
            errors.append(f"Plan {plan_data.plan_id} has no current period member months")
        if plan_data.member_months.renewal_total <= 0:
            errors.append(f"Plan {plan_data.plan_id} has no renewal period member months")
        if plan_data.enrollment.current.total.count <= 0:
            errors.append(f"Plan {plan_data.plan_id} has no current enrollment")
        if errors:
            raise DataValidationError(errors)

    def _calculate_plan(
        self,
        plan_data: BCBSPlanData,
        plan_params: BCBSPlanParameters,
    ) -> BCBSPlanResult:
        logger.debug(f"BCBS rating plan {plan_params.plan_id} ({plan_params.plan_name})")
        ledger: Ledger[BCBSLine, PeriodPairLine] = Ledger(BCBSLine)

        self._header_lines(ledger, plan_data)
        medical = self._coverage_section(
            ledger, plan_data, plan_params, plan_data.medical_claims,
            plan_params.ibnr_factors.medical, plan_params.trend_factors.medical, "medical",
        )
        pharmacy = self._coverage_section(
            ledger, plan_data, plan_params, plan_data.pharmacy_claims,
            plan_params.ibnr_factors.pharmacy, plan_params.trend_factors.pharmacy, "pharmacy",
        )
        totals = self._total_section(ledger, plan_data, plan_params, medical, pharmacy)

        return BCBSPlanResult(
            plan_id=plan_data.plan_id,
            plan_name=plan_params.plan_name,
            enrollment=plan_data.enrollment.current.total.count,
            calculations=ledger.lines(),
            final_metrics=BCBSPlanMetrics(
                projected_premium_pmpm=totals["projected_premium"],
                required_premium_pmpm=totals["required_premium"],
                current_premium_pmpm=plan_params.current_premium_pmpm,
                rate_action=totals["rate_action"],
                status=rate_status(totals["rate_action"]),
            ),
            intermediate_results=BCBSIntermediateResults(
                total_projected_pmpm=totals["total_projected"],
                adjusted_projected_pmpm=totals["adjusted_projected"],
                credibility_adjusted_pmpm=totals["credibility_adjusted"],
                weighted_experience_claims=totals["weighted_experience"],
            ),
        )

    @staticmethod
    def _line(
        ledger: Ledger,
        line_id: BCBSLine,
        description: str,
        formula: str,
        current: Optional[float] = None,
        renewal: Optional[float] = None,
        result: Optional[float] = None,
        unit: str = "$",
        section: str = "total",
    ) -> PeriodPairLine:
        if result is None:
            result = current if current is not None else 0.0
        return ledger.append(line_id, PeriodPairLine(
            line_id=line_id.value,
            description=description,
            formula=formula,
            current=current,
            renewal=renewal,
            result=result,
            unit=unit,
            section=section,
        ))

    def _header_lines(self, ledger: Ledger, plan_data: BCBSPlanData) -> None:
        periods = f"{plan_data.current_period or 'current'} / {plan_data.renewal_period or 'renewal'}"
        self._line(ledger, BCBSLine.HEADER_PERIOD, "Experience Period / Enrollment Period",
                   periods, result=0.0, unit="period")

        mm = plan_data.member_months
        self._line(ledger, BCBSLine.MEMBER_MONTHS, "Member Months Total",
                   "Total member months per period",
                   mm.current_total, mm.renewal_total, unit="member_months")

        members = mm.projected_monthly_members or PeriodPair(
            current=mm.current_total / 12, renewal=mm.renewal_total / 12
        )
        self._line(ledger, BCBSLine.MONTHLY_MEMBERS, "Projected Total Monthly Mbrs.",
                   "Average monthly members", members.current, members.renewal, unit="members")

    def _coverage_section(
        self,
        ledger: Ledger,
        plan_data: BCBSPlanData,
        plan_params: BCBSPlanParameters,
        claims: BCBSCoverageClaims,
        ibnr: PeriodPair,
        trend: TrendSchedule,
        section: str,
    ) -> dict:
        """Lines 3 through 9 for one coverage; returns pooled and projected PMPMs."""
        if section == "medical":
            ids = (BCBSLine.MEDICAL_CLAIMS, BCBSLine.MEDICAL_POOLED, BCBSLine.MEDICAL_NET,
                   BCBSLine.MEDICAL_NET_PMPM, BCBSLine.MEDICAL_IBNR, BCBSLine.MEDICAL_TREND,
                   BCBSLine.MEDICAL_PROJECTED)
            label = "Medical"
        else:
            ids = (BCBSLine.RX_CLAIMS, BCBSLine.RX_POOLED, BCBSLine.RX_NET,
                   BCBSLine.RX_NET_PMPM, BCBSLine.RX_IBNR, BCBSLine.RX_TREND,
                   BCBSLine.RX_PROJECTED)
            label = "Pharmacy"
        claims_id, pooled_id, net_id, pmpm_id, ibnr_id, trend_id, projected_id = ids

        level = plan_params.pooling_level
        mm = plan_data.member_months

        def pooled(period_claims) -> float:
            if period_claims.pooled_claims is not None:
                return min(period_claims.pooled_claims, period_claims.total_claims)
            return max(0.0, period_claims.total_claims - level)

        total_cur = claims.current.total_claims
        total_ren = claims.renewal.total_claims
        self._line(ledger, claims_id, f"{label} Claims",
                   f"Total {label.lower()} claims for experience period",
                   total_cur, total_ren, section=section)

        pooled_cur = pooled(claims.current)
        pooled_ren = pooled(claims.renewal)
        self._line(ledger, pooled_id, f"(-) Pooled {label} Claims",
                   f"Claims over pooling level ${level:,.0f}",
                   pooled_cur, pooled_ren, section=section)

        net_cur = total_cur - pooled_cur
        net_ren = total_ren - pooled_ren
        self._line(ledger, net_id, f"Net {label} Claims", "Total claims - pooled claims",
                   net_cur, net_ren, section=section)

        net_pmpm_cur = net_cur / mm.current_total
        net_pmpm_ren = net_ren / mm.renewal_total
        self._line(ledger, pmpm_id, f"Net {label} PMPM", "Net claims / member months",
                   net_pmpm_cur, net_pmpm_ren, section=section)

        adjusted_cur = net_pmpm_cur * ibnr.current
        adjusted_ren = net_pmpm_ren * ibnr.renewal
        self._line(ledger, ibnr_id, f"(*) {label} IBNR / Adjusted Net {label} PMPM",
                   f"Net PMPM x IBNR ({ibnr.current:.4f} / {ibnr.renewal:.4f})",
                   adjusted_cur, adjusted_ren, section=section)

        self._line(
            ledger, trend_id,
            f"Annual {label} Trend / Months of Trend / (*) Compounded {label} Trend",
            f"{trend.annual_current:.4f}^({trend.months_current:g}/12), "
            f"{trend.annual_renewal:.4f}^({trend.months_renewal:g}/12)",
            trend.compounded_current, trend.compounded_renewal,
            unit="factor", section=section,
        )

        projected_cur = adjusted_cur * trend.compounded_current
        projected_ren = adjusted_ren * trend.compounded_renewal
        self._line(ledger, projected_id, f"Projected {label} PMPM", "Adjusted PMPM x compounded trend",
                   projected_cur, projected_ren, section=section)

        return {
            "pooled": PeriodPair(current=pooled_cur, renewal=pooled_ren),
            "projected": PeriodPair(current=projected_cur, renewal=projected_ren),
        }

    def _total_section(
        self,
        ledger: Ledger,
        plan_data: BCBSPlanData,
        plan_params: BCBSPlanParameters,
        medical: dict,
        pharmacy: dict,
    ) -> dict:
        weights = plan_params.experience_weights
        factors = plan_params.adjustment_factors
        retention = plan_params.retention_components
        mm = plan_data.member_months

        def weighted(pair: PeriodPair) -> float:
            return pair.current * weights.current + pair.renewal * weights.renewal

        total_cur = medical["projected"].current + pharmacy["projected"].current
        total_ren = medical["projected"].renewal + pharmacy["projected"].renewal
        self._line(ledger, BCBSLine.TOTAL_PROJECTED, "Total Projected PMPM",
                   "Projected Medical PMPM + Projected Pharmacy PMPM", total_cur, total_ren)

        self._line(ledger, BCBSLine.FFS_AGE, "FFS Age Adjustment for PMPM",
                   "Age adjustment factor by period",
                   factors.ffs_age.current, factors.ffs_age.renewal, unit="factor")
        age_cur = total_cur * factors.ffs_age.current
        age_ren = total_ren * factors.ffs_age.renewal
        self._line(ledger, BCBSLine.AGE_ADJUSTED, "Sub Total FFS Age Adj. PMPM",
                   "Total Projected PMPM x FFS Age Adjustment", age_cur, age_ren)

        pool_cur = (medical["pooled"].current + pharmacy["pooled"].current) / mm.current_total
        pool_ren = (medical["pooled"].renewal + pharmacy["pooled"].renewal) / mm.renewal_total
        self._line(ledger, BCBSLine.POOLING_CHARGES, "Total Pooling Charges",
                   "Pooled claims spread across member months", pool_cur, pool_ren)

        benefit = factors.benefit_adjustment
        self._line(ledger, BCBSLine.BENEFIT_ADJUSTMENT, "(*) Benefit Adjustment",
                   "Benefit design adjustment factor", result=benefit, unit="factor")
        adjusted_cur = (age_cur + pool_cur) * benefit
        adjusted_ren = (age_ren + pool_ren) * benefit
        self._line(ledger, BCBSLine.ADJUSTED_PROJECTED, "Adjusted Projected PMPM",
                   "(FFS Age Adj + Pooling Charges) x Benefit Adjustment", adjusted_cur, adjusted_ren)

        self._line(ledger, BCBSLine.EXPERIENCE_WEIGHTS, "Experience Weights",
                   "Current vs Renewal experience weighting",
                   weights.current, weights.renewal, unit="percentage")
        weighted_experience = weighted(PeriodPair(current=adjusted_cur, renewal=adjusted_ren))
        self._line(ledger, BCBSLine.WEIGHTED_EXPERIENCE, "Weighted Experience Claims",
                   "Current x Current Weight + Renewal x Renewal Weight",
                   adjusted_cur, adjusted_ren, result=weighted_experience)

        mbc = plan_params.member_based_charges
        weighted_mbc = weighted(mbc)
        self._line(ledger, BCBSLine.MEMBER_BASED_CHARGES, "Member Based Charges",
                   "Weighted member-based charges PMPM", mbc.current, mbc.renewal, result=weighted_mbc)
        projected_experience = weighted_experience + weighted_mbc
        self._line(ledger, BCBSLine.PROJECTED_EXPERIENCE, "Projected Experience Claim PMPM (incl MBC)",
                   "Weighted Experience Claims + Member Based Charges", result=projected_experience)

        manual = plan_params.manual_claims_pmpm
        weighted_manual = weighted(manual)
        self._line(ledger, BCBSLine.MANUAL_CLAIMS, "Manual Claims PMPM", "Weighted manual rates PMPM",
                   manual.current, manual.renewal, result=weighted_manual)

        credibility = plan_params.credibility_factor
        self._line(ledger, BCBSLine.CREDIBILITY, "Credibility Factor",
                   "Experience credibility weighting", result=credibility, unit="factor")
        credibility_adjusted = projected_experience * credibility + weighted_manual * (1 - credibility)
        self._line(ledger, BCBSLine.CREDIBILITY_ADJUSTED, "Credibility Adjusted Claim PMPM",
                   "Experience x Credibility + Manual x (1 - Credibility)", result=credibility_adjusted)

        weighted_retention = weighted(retention.retention_pmpm)
        self._line(ledger, BCBSLine.RETENTION, "Retention PMPM", "Weighted retention costs PMPM",
                   retention.retention_pmpm.current, retention.retention_pmpm.renewal,
                   result=weighted_retention)
        weighted_tax = weighted(retention.ppo_premium_tax)
        self._line(ledger, BCBSLine.PREMIUM_TAX, "PPO Premium Tax PMPM", "Weighted PPO premium tax PMPM",
                   retention.ppo_premium_tax.current, retention.ppo_premium_tax.renewal,
                   result=weighted_tax)
        weighted_aca = weighted(retention.aca_adjustments)
        self._line(ledger, BCBSLine.ACA_ADJUSTMENTS, "Affordable Care Act Adjustments PMPM",
                   "Weighted ACA adjustments PMPM",
                   retention.aca_adjustments.current, retention.aca_adjustments.renewal,
                   result=weighted_aca)

        underwriter = factors.underwriter_adjustment
        self._line(ledger, BCBSLine.UNDERWRITER_ADJUSTMENT, "Underwriter Adjustment Factor",
                   "Underwriter discretionary adjustment", result=underwriter, unit="factor")
        required = (credibility_adjusted + weighted_retention + weighted_tax + weighted_aca) * underwriter
        self._line(ledger, BCBSLine.REQUIRED_PREMIUM, "Required Premium PMPM",
                   "(Claims + Retention + Tax + ACA) x Underwriter Adj", result=required)

        p2s = factors.pathway_to_savings
        self._line(ledger, BCBSLine.PATHWAY_TO_SAVINGS, "Pathway to Savings Adjustment",
                   "P2S discount factor", result=p2s, unit="factor")
        post_p2s = required * p2s
        self._line(ledger, BCBSLine.POST_P2S_PREMIUM, "Post P2S Adj. Required Premium PMPM",
                   "Required Premium x P2S Adjustment", result=post_p2s)

        current_premium = plan_params.current_premium_pmpm
        self._line(ledger, BCBSLine.CURRENT_PREMIUM, "Current Premium PMPM",
                   "Current premium based on latest enrollment", result=current_premium)
        rate_action = post_p2s / current_premium - 1
        self._line(ledger, BCBSLine.RATE_ACTION, "Rate Action",
                   "(Required Premium / Current Premium) - 1", result=rate_action, unit="percentage")

        return {
            "total_projected": total_cur,
            "adjusted_projected": adjusted_cur,
            "weighted_experience": weighted_experience,
            "credibility_adjusted": credibility_adjusted,
            "required_premium": required,
            "projected_premium": post_p2s,
            "rate_action": rate_action,
        }

    def _calculate_composite(self, plans: List[BCBSPlanResult]) -> BCBSCompositeResult:
        total_enrollment = self.parameters.total_enrollment or sum(plan.enrollment for plan in plans)

        weights = {}
        projected = required = current = 0.0
        for plan in plans:
            weight = plan.enrollment / total_enrollment
            weights[plan.plan_id] = weight
            projected += plan.final_metrics.projected_premium_pmpm * weight
            required += plan.final_metrics.required_premium_pmpm * weight
            current += plan.final_metrics.current_premium_pmpm * weight

        composite_rate_action = projected / current - 1
        return BCBSCompositeResult(
            composite_rate_action=composite_rate_action,
            total_enrollment=total_enrollment,
            weighted_averages=BCBSWeightedAverages(
                projected_pmpm=projected,
                required_pmpm=required,
                current_pmpm=current,
            ),
            enrollment_weights=weights,
            status=rate_status(composite_rate_action),
        )

    @staticmethod
    def _enrollment_summary(plan_pairs, plans: List[BCBSPlanResult]) -> BCBSEnrollmentSummary:
        total_enrollment = 0
        total_monthly_premium = 0.0
        total_annual_premium = 0.0
        for plan_data, _ in plan_pairs:
            total = plan_data.enrollment.current.total
            total_enrollment += total.count
            total_monthly_premium += total.monthly_premium
            total_annual_premium += total.annual_premium

        breakdown = [
            PlanEnrollmentShare(
                plan_id=plan.plan_id,
                plan_name=plan.plan_name,
                enrollment=plan.enrollment,
                percentage=plan.enrollment / total_enrollment,
            )
            for plan in plans
        ]
        return BCBSEnrollmentSummary(
            total_enrollment=total_enrollment,
            total_monthly_premium=total_monthly_premium,
            total_annual_premium=total_annual_premium,
            plan_breakdown=breakdown,
        )

    @staticmethod
    def _generate_warnings(plans: List[BCBSPlanResult]) -> List[str]:
        warnings = []
        for plan in plans:
            rate_action = plan.final_metrics.rate_action
            if abs(rate_action) > SIGNIFICANT_RATE_CHANGE:
                warnings.append(
                    f"Plan {plan.plan_name} has significant rate change: {rate_action * 100:.1f}%"
                )
        return warnings

    @staticmethod
    def _assess_data_quality(plan_data: List[BCBSPlanData]) -> float:
        passed = 0
        checks = 0
        for plan in plan_data:
            checks += 4
            passed += plan.medical_claims.current.total_claims > 0
            passed += plan.pharmacy_claims.current.total_claims > 0
            passed += plan.member_months.current_total > 0
            passed += plan.enrollment.current.total.count > 0
        return passed / checks if checks else 0.0
