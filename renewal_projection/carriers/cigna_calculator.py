"""
CIGNA renewal engine.

Single-period methodology: the most recent (up to 12) months are pooled,
demographically adjusted, trended to the rating midpoint, blended with
the manual claim cost and loaded for expenses. Every line is reported as
PMPM and as an annual amount over projected member months.
"""

import logging
from typing import List, Optional

from ..ledger import DualColumnLine, Ledger
from ..models import DataQuality, ExperiencePeriods, RenewalInput
from ..periods import (
    calculate_pooled_claims_for_period,
    data_completeness,
    get_claims_for_period,
    get_member_months_for_period,
    pooled_claimant_audit,
    trailing_period,
)
from .cigna_models import (
    CIGNA_LINE_DESCRIPTIONS,
    CFCAnalysis,
    CignaLine,
    CignaParameters,
    CignaPeriodAnalysis,
    CignaResult,
    CignaSummary,
    DualAmount,
)
from .common import log_warnings, prepare_experience

logger = logging.getLogger(__name__)

EXPENSE_LINES = (
    CignaLine.ADMINISTRATION,
    CignaLine.COMMISSIONS,
    CignaLine.PREMIUM_TAX,
    CignaLine.PROFIT_AND_CONTINGENCY,
    CignaLine.OTHER_EXPENSES,
)


def _percent(fraction: float, places: int = 2) -> str:
    return f"{fraction * 100:.{places}f}%"


class CignaRenewalCalculator:
    """
    Calculates a CIGNA renewal on the trailing 12 months of experience.

    Example:
        >>> result = CignaRenewalCalculator(renewal_input, parameters).calculate()
        >>> result.final_premium.pmpm, result.final_premium.annual
    """

    def __init__(self, renewal_input: RenewalInput, parameters: CignaParameters):
        self.input = renewal_input
        self.parameters = parameters
        self.ledger: Optional[Ledger[CignaLine, DualColumnLine]] = None
        self.projected_member_months = 0.0

    def calculate(self) -> CignaResult:
        """
        Run lines 1 through 25.

        Raises:
            InsufficientDataError: If fewer than 4 months of data are supplied
            DataValidationError: If any month has no member months
        """
        periods, warnings = prepare_experience(self.input)
        log_warnings("CIGNA", warnings)

        records = self.input.monthly_claims
        period = trailing_period(records, periods.current, 12)
        member_months = get_member_months_for_period(records, period).total
        self.projected_member_months = (
            self.parameters.projected_member_months
            if self.parameters.projected_member_months is not None
            else member_months / period.months * 12
        )
        logger.debug(
            f"CIGNA period {period.start} to {period.end} ({period.months} months), "
            f"projected member months {self.projected_member_months:,.0f}"
        )

        self.ledger = Ledger(CignaLine)
        self._claims_lines(period, member_months)
        self._blending_lines()
        self._expense_lines()

        result = self._build_result(period, member_months, warnings)
        logger.info(
            f"CIGNA renewal for {self.input.case_id}: "
            f"${result.final_premium.pmpm:.2f} PMPM, rate change {result.rate_change:.2%}"
        )
        return result

    def _add(self, line_id: CignaLine, pmpm, annual=None, calculation: Optional[str] = None,
             notes: Optional[str] = None) -> DualColumnLine:
        """Record a line; numeric annual values default to PMPM x projected member months."""
        if annual is None:
            annual = pmpm * self.projected_member_months if not isinstance(pmpm, str) else pmpm
        description = CIGNA_LINE_DESCRIPTIONS[line_id].format(threshold=self.parameters.pooling_level)
        return self.ledger.append(line_id, DualColumnLine(
            line_id=line_id.value,
            description=description,
            pmpm=pmpm,
            annual=annual,
            calculation=calculation,
            notes=notes,
        ))

    def _value(self, line_id: CignaLine) -> DualColumnLine:
        return self.ledger[line_id]

    def _claims_lines(self, period, member_months: float) -> None:
        params = self.parameters
        records = self.input.monthly_claims

        claims = get_claims_for_period(records, period)
        paid_pmpm = claims.total / member_months
        self._add(CignaLine.TOTAL_PAID_CLAIMS, paid_pmpm, calculation="Total claims / member months")

        pooled = calculate_pooled_claims_for_period(self.input.large_claimants, period, params.pooling_level)
        self._add(
            CignaLine.POOLED_CLAIMS,
            pooled.total / member_months,
            pooled.total * (self.projected_member_months / member_months),
            calculation="Claimant excess / member months",
        )

        paid = self._value(CignaLine.TOTAL_PAID_CLAIMS)
        pooled_line = self._value(CignaLine.POOLED_CLAIMS)
        self._add(CignaLine.EXPERIENCE_CLAIM_COST, paid.pmpm - pooled_line.pmpm,
                  paid.annual - pooled_line.annual, calculation="Line 1 - Line 2")

        demographic = params.demographic_adjustment
        self._add(CignaLine.DEMOGRAPHIC_FACTOR, f"{demographic:.4f}", f"{demographic:.4f}")
        experience = self._value(CignaLine.EXPERIENCE_CLAIM_COST)
        self._add(CignaLine.DEMOGRAPHIC_ADJUSTED, experience.pmpm * demographic,
                  experience.annual * demographic, calculation="Line 3 x Line 4")

        trend = params.trend_factor
        effective = trend.annual ** (trend.midpoint_months / 12)
        self._add(CignaLine.ANNUAL_TREND, _percent(trend.annual - 1), _percent(trend.annual - 1))
        self._add(CignaLine.MIDPOINT_MONTHS, trend.midpoint_months, trend.midpoint_months)
        self._add(CignaLine.EFFECTIVE_TREND, _percent(effective - 1), _percent(effective - 1),
                  calculation=f"{trend.annual}^({trend.midpoint_months:g}/12)")
        adjusted = self._value(CignaLine.DEMOGRAPHIC_ADJUSTED)
        self._add(CignaLine.TRENDED_CLAIMS, adjusted.pmpm * effective, adjusted.annual * effective,
                  calculation="Line 5 x effective trend")

        if params.large_claim_add_back is not None:
            add_back = params.large_claim_add_back
            self._add(CignaLine.LARGE_CLAIM_ADD_BACK, add_back.pmpm, add_back.annual,
                      notes="Supplied add-back")
        else:
            add_back_pmpm = pooled.total * params.add_back_factor / member_months
            self._add(CignaLine.LARGE_CLAIM_ADD_BACK, add_back_pmpm,
                      notes=f"Estimated as {params.add_back_factor:.0%} of pooled claims")

        trended = self._value(CignaLine.TRENDED_CLAIMS)
        add_back_line = self._value(CignaLine.LARGE_CLAIM_ADD_BACK)
        self._add(CignaLine.TOTAL_PROJECTED, trended.pmpm + add_back_line.pmpm,
                  trended.annual + add_back_line.annual, calculation="Line 9 + Line 10")

    def _blending_lines(self) -> None:
        params = self.parameters
        weight = params.experience_weight
        self._add(CignaLine.EXPERIENCE_WEIGHT, _percent(weight, 1), _percent(weight, 1))
        self._add(CignaLine.MANUAL_CLAIM_COST, params.manual_rates.total,
                  calculation="Manual rate PMPM")
        self._add(CignaLine.MANUAL_WEIGHT, _percent(1 - weight, 1), _percent(1 - weight, 1))

        projected = self._value(CignaLine.TOTAL_PROJECTED)
        manual = self._value(CignaLine.MANUAL_CLAIM_COST)
        self._add(
            CignaLine.BLENDED_CLAIMS,
            projected.pmpm * weight + manual.pmpm * (1 - weight),
            projected.annual * weight + manual.annual * (1 - weight),
            calculation="Line 11 x Line 12 + Line 13 x Line 14",
        )

        corridor = params.claims_fluctuation_corridor
        if corridor.enabled:
            band = f"{corridor.lower_bound * 100:.1f}% to {corridor.upper_bound * 100:.1f}%"
        else:
            band = "Not Applied"
        self._add(CignaLine.FLUCTUATION_CORRIDOR, band, band, notes="Informational only")

        blended = self._value(CignaLine.BLENDED_CLAIMS)
        self._add(CignaLine.FINAL_CLAIMS, blended.pmpm, blended.annual, calculation="Line 15")

    def _expense_lines(self) -> None:
        loadings = self.parameters.expense_loadings
        percentages = self.parameters.expense_percentages
        claims = self._value(CignaLine.FINAL_CLAIMS).pmpm

        def load(line_id: CignaLine, supplied: Optional[float], base: float, pct: float, basis: str):
            if supplied is not None:
                self._add(line_id, supplied, notes="Supplied loading")
            else:
                self._add(line_id, base * pct, calculation=f"{_percent(pct, 1)} of {basis}")

        load(CignaLine.ADMINISTRATION, loadings.administration, claims,
             percentages.administration, "claims")
        load(CignaLine.COMMISSIONS, loadings.commissions, claims,
             percentages.commissions, "claims")
        tax_base = (
            claims
            + self._value(CignaLine.ADMINISTRATION).pmpm
            + self._value(CignaLine.COMMISSIONS).pmpm
        )
        load(CignaLine.PREMIUM_TAX, loadings.premium_tax, tax_base,
             percentages.premium_tax, "claims, administration and commissions")
        load(CignaLine.PROFIT_AND_CONTINGENCY, loadings.profit_and_contingency, claims,
             percentages.profit_and_contingency, "claims")
        load(CignaLine.OTHER_EXPENSES, loadings.other, claims, percentages.other, "claims")

        lines = [self._value(CignaLine.FINAL_CLAIMS)] + [self._value(line_id) for line_id in EXPENSE_LINES]
        self._add(
            CignaLine.TOTAL_REQUIRED_PREMIUM,
            sum(line.pmpm for line in lines),
            sum(line.annual for line in lines),
            calculation="Line 17 + Lines 18-22",
        )

        self._add(CignaLine.CURRENT_PREMIUM, self.parameters.current_premium_pmpm)
        required = self._value(CignaLine.TOTAL_REQUIRED_PREMIUM).pmpm
        current = self._value(CignaLine.CURRENT_PREMIUM).pmpm
        change = _percent((required - current) / current)
        self._add(CignaLine.REQUIRED_RATE_CHANGE, change, change, calculation="(Line 23 - Line 24) / Line 24")

    def _dual(self, line_id: CignaLine) -> DualAmount:
        line = self._value(line_id)
        return DualAmount(pmpm=line.pmpm, annual=line.annual)

    def _build_result(self, period, member_months: float, warnings: List[str]) -> CignaResult:
        required = self._dual(CignaLine.TOTAL_REQUIRED_PREMIUM)
        current = self._value(CignaLine.CURRENT_PREMIUM).pmpm
        expenses = [self._value(line_id) for line_id in EXPENSE_LINES]
        single_period = ExperiencePeriods(current=period)
        corridor = self._value(CignaLine.FLUCTUATION_CORRIDOR).pmpm

        return CignaResult(
            calculations=self.ledger.lines(),
            final_premium=required,
            rate_change=(required.pmpm - current) / current,
            period=CignaPeriodAnalysis(
                start=period.start,
                end=period.end,
                months=period.months,
                member_months=member_months,
                projected_member_months=self.projected_member_months,
            ),
            warnings=warnings,
            summary=CignaSummary(
                total_paid_claims=self._dual(CignaLine.TOTAL_PAID_CLAIMS),
                experience_claim_cost=self._dual(CignaLine.EXPERIENCE_CLAIM_COST),
                projected_claim_cost=self._dual(CignaLine.TOTAL_PROJECTED),
                total_expenses=DualAmount(
                    pmpm=sum(line.pmpm for line in expenses),
                    annual=sum(line.annual for line in expenses),
                ),
            ),
            cfc_analysis=CFCAnalysis(
                original_premium=required.pmpm,
                adjusted_premium=required.pmpm,
                corridor=corridor,
            ),
            data_quality=DataQuality(
                data_completeness=data_completeness(single_period),
                annualization_applied=period.months < 12,
                credibility_score=self.parameters.experience_weight,
            ),
            pooled_claimants=pooled_claimant_audit(
                self.input.large_claimants, single_period, self.parameters.pooling_level
            ),
            parameters=self.parameters,
        )
