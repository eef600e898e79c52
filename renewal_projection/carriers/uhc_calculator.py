"""
UHC renewal engine.

Implements the 39-line UHC worksheet:

- Experience rating (A-R): medical and rx PMPM, pooled claims over the
  pooling threshold, underwriting, trend, plan change, a 70/30 style
  current/prior blend, member change, pooling charge and retention gross-up.
- Manual rating (S-V): base manual PMPM split by the group's actual
  medical/rx mix, then age/sex and other adjustments.
- Renewal action (W-AM): experience/manual credibility blend, other
  adjustment, reform items, commission and fees, then comparison with
  current revenue.
"""

import logging
from typing import List, Optional

from ..errors import MissingParameterError
from ..experience import medical_share_of_claims
from ..ledger import CoverageValues, Ledger, LedgerLine
from ..models import DataQuality, Period, RenewalInput
from ..periods import (
    calculate_pooled_claims_for_period,
    data_completeness,
    get_claims_for_period,
    get_member_months_for_period,
    pooled_claimant_audit,
)
from .common import log_warnings, prepare_experience
from .uhc_models import (
    UHC_LINE_DESCRIPTIONS,
    CredibilitySummary,
    PeriodExperience,
    UHCLine,
    UHCParameters,
    UHCPeriodAnalysis,
    UHCResult,
    UHCSummary,
)

logger = logging.getLogger(__name__)

STANDARD_POOLING_THRESHOLD = 125000


class UHCRenewalCalculator:
    """
    Calculates a UHC renewal from monthly experience and resolved parameters.

    Example:
        >>> calculator = UHCRenewalCalculator(renewal_input, parameters)
        >>> result = calculator.calculate()
        >>> print(f"Final premium: ${result.final_premium.total:.2f} PMPM")
    """

    def __init__(self, renewal_input: RenewalInput, parameters: UHCParameters):
        """
        Initialize the calculator.

        Args:
            renewal_input: Monthly claims, large claimants and manual rates
            parameters: Resolved UHC parameters (see ``resolve_uhc_parameters``)
        """
        self.input = renewal_input
        self.parameters = parameters

    def calculate(self) -> UHCResult:
        """
        Run lines A through AM.

        Returns:
            UHCResult with the full ledger, summary and data-quality block

        Raises:
            InsufficientDataError: If fewer than 4 months of data are supplied
            DataValidationError: If any month has no member months
            MissingParameterError: If credibility or experience weights are malformed
        """
        warnings = self._validate_parameters()
        periods, data_warnings = prepare_experience(self.input)
        warnings.extend(data_warnings)
        log_warnings("UHC", warnings)

        records = self.input.monthly_claims
        current_mm = get_member_months_for_period(records, periods.current).total
        prior_mm = (
            get_member_months_for_period(records, periods.prior).total
            if periods.prior is not None else None
        )
        medical_share = medical_share_of_claims(
            sum(r.incurred_claims.medical for r in records),
            sum(r.incurred_claims.rx for r in records),
            self.input.manual_rates,
        )

        ledger: Ledger[UHCLine, LedgerLine] = Ledger(UHCLine)
        self._experience_rating(ledger, periods.current, periods.prior, current_mm, prior_mm)
        self._manual_rating(ledger, medical_share)
        self._renewal_action(ledger, medical_share)

        result = self._build_result(ledger, periods, current_mm, prior_mm, warnings)
        logger.info(
            f"UHC renewal for {self.input.case_id}: "
            f"${result.final_premium.total:.2f} PMPM, rate change {result.rate_change:.2%}"
        )
        return result

    def _validate_parameters(self) -> List[str]:
        params = self.parameters
        if params.credibility_weights is None:
            raise MissingParameterError("UHC requires credibility weights (experience/manual)")
        if params.experience_weights is None or len(params.experience_weights) != 2:
            raise MissingParameterError("UHC requires experience period weights [current, prior]")
        retention = params.retention
        if retention.administrative + retention.taxes + retention.other >= 1:
            raise MissingParameterError("UHC total retention must be below 100%")

        warnings = []
        if params.pooling_threshold != STANDARD_POOLING_THRESHOLD:
            warnings.append(
                f"UHC typically uses ${STANDARD_POOLING_THRESHOLD:,} pooling threshold"
            )
        return warnings

    def _add(
        self,
        ledger: Ledger,
        line_id: UHCLine,
        current: CoverageValues,
        prior: Optional[CoverageValues] = None,
        calculation: Optional[str] = None,
    ) -> LedgerLine:
        params = self.parameters
        description = UHC_LINE_DESCRIPTIONS[line_id].format(
            threshold=params.pooling_threshold,
            current_months=params.projection_months.current,
            prior_months=params.projection_months.prior,
            current_weight=params.experience_weights[0],
            prior_weight=params.experience_weights[1],
        )
        return ledger.append(line_id, LedgerLine(
            line_id=line_id.value,
            description=description,
            current=current,
            prior=prior,
            calculation=calculation,
        ))

    def _period_lines(self, period: Period, member_months: float):
        """Medical PMPM, pooled PMPM and rx PMPM for one period (lines A, B, D)."""
        claims = get_claims_for_period(self.input.monthly_claims, period)
        pooled = calculate_pooled_claims_for_period(
            self.input.large_claimants, period, self.parameters.pooling_threshold
        )
        medical = CoverageValues.medical_only(claims.medical / member_months)
        pooled_pmpm = CoverageValues.medical_only(pooled.total / member_months)
        rx_pmpm = claims.rx / member_months
        rx = CoverageValues(medical=0.0, rx=rx_pmpm, total=rx_pmpm)
        return medical, pooled_pmpm, rx

    def _experience_rating(
        self,
        ledger: Ledger,
        current: Period,
        prior: Optional[Period],
        current_mm: float,
        prior_mm: Optional[float],
    ) -> None:
        params = self.parameters
        logger.debug("UHC experience rating lines A-R")

        a_cur, b_cur, d_cur = self._period_lines(current, current_mm)
        a_pri = b_pri = d_pri = None
        if prior is not None:
            a_pri, b_pri, d_pri = self._period_lines(prior, prior_mm)

        def both(fn, *lines):
            cur = fn(*[line.current for line in lines])
            pri = fn(*[line.prior for line in lines]) if prior is not None else None
            return cur, pri

        self._add(ledger, UHCLine.A, a_cur, a_pri, "Medical claims / member months")
        self._add(ledger, UHCLine.B, b_cur, b_pri, "Claimant excess over threshold / member months")
        c = both(lambda a, b: CoverageValues.medical_only(a.medical - b.medical),
                 ledger[UHCLine.A], ledger[UHCLine.B])
        self._add(ledger, UHCLine.C, *c, calculation="A - B")
        self._add(ledger, UHCLine.D, d_cur, d_pri, "Rx claims / member months")
        e = both(lambda c_, d: CoverageValues.combine(c_.medical, d.rx),
                 ledger[UHCLine.C], ledger[UHCLine.D])
        self._add(ledger, UHCLine.E, *e, calculation="C + D")

        uw = params.underwriting_adjustment
        f = both(lambda e_: CoverageValues.combine(e_.medical * uw, e_.rx * uw), ledger[UHCLine.E])
        self._add(ledger, UHCLine.F, *f, calculation=f"E x {uw:.4f}")

        trend = params.trend_rates
        months = params.projection_months
        cur_med_trend = (1 + trend.medical) ** (months.current / 12)
        cur_rx_trend = (1 + trend.rx) ** (months.current / 12)
        pri_med_trend = (1 + trend.medical) ** (months.prior / 12)
        pri_rx_trend = (1 + trend.rx) ** (months.prior / 12)
        f_line = ledger[UHCLine.F]
        g_cur = CoverageValues.combine(f_line.current.medical * cur_med_trend, f_line.current.rx * cur_rx_trend)
        g_pri = None
        if prior is not None:
            g_pri = CoverageValues.combine(f_line.prior.medical * pri_med_trend, f_line.prior.rx * pri_rx_trend)
        self._add(
            ledger, UHCLine.G, g_cur, g_pri,
            f"F x (1 + trend)^(months/12); current {cur_med_trend:.4f}/{cur_rx_trend:.4f}, "
            f"prior {pri_med_trend:.4f}/{pri_rx_trend:.4f}",
        )

        pc = params.plan_change_adjustment
        h = both(lambda g: CoverageValues.combine(g.medical * pc, g.rx * pc), ledger[UHCLine.G])
        self._add(ledger, UHCLine.H, *h, calculation=f"G x {pc:.4f}")
        i_line = ledger[UHCLine.H]
        self._add(ledger, UHCLine.I, i_line.current, i_line.prior, "E x F x G x H")

        # J onward is the blended result and carries no prior column.
        w_current, w_prior = params.experience_weights
        i_line = ledger[UHCLine.I]
        if i_line.prior is not None:
            j = CoverageValues.combine(
                i_line.current.medical * w_current + i_line.prior.medical * w_prior,
                i_line.current.rx * w_current + i_line.prior.rx * w_prior,
            )
            j_calc = f"I current x {w_current:.2f} + I prior x {w_prior:.2f}"
        else:
            j = i_line.current
            j_calc = "100% current period (no prior period)"
        self._add(ledger, UHCLine.J, j, calculation=j_calc)

        mc = params.member_change_adjustment
        j = ledger[UHCLine.J].current
        self._add(ledger, UHCLine.K, CoverageValues.combine(j.medical * mc, j.rx * mc),
                  calculation=f"J x {mc:.4f}")

        pooling_charge = params.pooling_threshold * params.pooling_factor / current_mm
        self._add(
            ledger, UHCLine.L, CoverageValues.medical_only(pooling_charge),
            calculation=f"{params.pooling_threshold:,.0f} x {params.pooling_factor} / {current_mm:,.0f}",
        )
        self._add(ledger, UHCLine.M, ledger[UHCLine.K].current + ledger[UHCLine.L].current,
                  calculation="K + L")

        retention = params.retention
        self._add(ledger, UHCLine.N, CoverageValues.uniform(retention.administrative))
        self._add(ledger, UHCLine.O, CoverageValues.uniform(retention.taxes))
        self._add(ledger, UHCLine.P, CoverageValues.uniform(retention.other))
        total_retention = retention.administrative + retention.taxes + retention.other
        self._add(ledger, UHCLine.Q, CoverageValues.uniform(total_retention), calculation="N + O + P")
        self._add(ledger, UHCLine.R, ledger[UHCLine.M].current / (1 - total_retention),
                  calculation="M / (1 - Q)")

    def _manual_rating(self, ledger: Ledger, medical_share: float) -> None:
        params = self.parameters
        logger.debug(f"UHC manual rating lines S-V, medical share {medical_share:.4f}")

        self._add(ledger, UHCLine.S, CoverageValues.split(params.base_manual_pmpm, medical_share),
                  calculation="Base manual split by actual medical/rx mix")
        self._add(ledger, UHCLine.T, ledger[UHCLine.S].current * params.age_sex_adjustment,
                  calculation=f"S x {params.age_sex_adjustment:.4f}")
        self._add(ledger, UHCLine.U, ledger[UHCLine.T].current * params.manual_other_adjustment,
                  calculation=f"T x {params.manual_other_adjustment:.4f}")
        self._add(ledger, UHCLine.V, ledger[UHCLine.U].current, calculation="S x T x U")

    def _renewal_action(self, ledger: Ledger, medical_share: float) -> None:
        params = self.parameters
        credibility = params.credibility_weights
        logger.debug("UHC renewal action lines W-AM")

        self._add(ledger, UHCLine.W, ledger[UHCLine.R].current * credibility.experience,
                  calculation=f"R x {credibility.experience:.2f}")
        self._add(ledger, UHCLine.X, ledger[UHCLine.V].current * credibility.manual,
                  calculation=f"V x {credibility.manual:.2f}")
        self._add(ledger, UHCLine.Y, ledger[UHCLine.W].current + ledger[UHCLine.X].current,
                  calculation="W + X")
        self._add(ledger, UHCLine.Z, CoverageValues.uniform(params.other_adjustment))
        self._add(ledger, UHCLine.AA, ledger[UHCLine.Y].current * params.other_adjustment,
                  calculation="Y x Z")

        self._add(ledger, UHCLine.AB, CoverageValues.split(params.reform_items, medical_share))
        self._add(ledger, UHCLine.AC, CoverageValues.split(params.commission, medical_share))
        self._add(ledger, UHCLine.AD, CoverageValues.split(params.fees, medical_share))
        ae = (
            ledger[UHCLine.AA].current
            + ledger[UHCLine.AB].current
            + ledger[UHCLine.AC].current
            + ledger[UHCLine.AD].current
        )
        self._add(ledger, UHCLine.AE, ae, calculation="AA + AB + AC + AD")

        revenue = params.current_revenue_pmpm
        self._add(ledger, UHCLine.AF, CoverageValues.split(revenue, medical_share))
        calculated_action = (ae.total - revenue) / revenue
        self._add(ledger, UHCLine.AG, CoverageValues.uniform(calculated_action),
                  calculation="(AE - AF) / AF")

        if params.suggested_renewal_action is None:
            suggested = calculated_action
            note = "Calculated renewal action"
        else:
            suggested = params.suggested_renewal_action
            note = "Suggested renewal action supplied"
        self._add(ledger, UHCLine.AH, CoverageValues.uniform(suggested), calculation=note)

        ai = CoverageValues.split(revenue * (1 + suggested), medical_share)
        self._add(ledger, UHCLine.AI, ai, calculation="AF x (1 + AH)")
        aj = ai - ae
        self._add(ledger, UHCLine.AJ, aj, calculation="AI - AE")
        self._add(ledger, UHCLine.AK, CoverageValues.uniform(aj.total / ai.total), calculation="AJ / AI")
        self._add(ledger, UHCLine.AL, CoverageValues.uniform(ae.total / ai.total), calculation="AE / AI")
        self._add(ledger, UHCLine.AM, CoverageValues.uniform(suggested), calculation="AH")

    def _build_result(self, ledger, periods, current_mm, prior_mm, warnings) -> UHCResult:
        params = self.parameters
        line_a = ledger[UHCLine.A]
        line_d = ledger[UHCLine.D]

        prior_analysis = None
        if periods.prior is not None:
            prior_analysis = PeriodExperience(
                member_months=prior_mm,
                medical_pmpm=line_a.prior.medical,
                rx_pmpm=line_d.prior.rx,
                total_pmpm=line_a.prior.medical + line_d.prior.rx,
            )

        final = ledger[UHCLine.AE].current
        return UHCResult(
            final_premium=final,
            rate_change=ledger[UHCLine.AH].current.total,
            calculated_rate_change=ledger[UHCLine.AG].current.total,
            current_revenue_pmpm=params.current_revenue_pmpm,
            calculations=ledger.lines(),
            periods=periods,
            summary=UHCSummary(
                weighted_experience=ledger[UHCLine.J].current,
                credibility_weighting=CredibilitySummary(
                    experience=params.credibility_weights.experience,
                    manual=params.credibility_weights.manual,
                    credibility_factor=params.credibility_weights.experience,
                ),
                total_retention=ledger[UHCLine.Q].current.total,
                projected_annual_premium=final.total * current_mm,
            ),
            period_analysis=UHCPeriodAnalysis(
                current=PeriodExperience(
                    member_months=current_mm,
                    medical_pmpm=line_a.current.medical,
                    rx_pmpm=line_d.current.rx,
                    total_pmpm=line_a.current.medical + line_d.current.rx,
                ),
                prior=prior_analysis,
            ),
            warnings=warnings,
            data_quality=DataQuality(
                data_completeness=data_completeness(periods),
                annualization_applied=periods.current.months < 12,
                credibility_score=params.credibility_weights.experience,
            ),
            pooled_claimants=pooled_claimant_audit(
                self.input.large_claimants, periods, params.pooling_threshold
            ),
            parameters=params,
        )
