"""
Carrier dispatch.

Routes a carrier-agnostic renewal input to the matching engine and wraps
the carrier-native result in a common envelope.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .carriers.aetna_calculator import AetnaRenewalCalculator
from .carriers.aetna_models import AetnaOverrides, AetnaResult
from .carriers.bcbs_calculator import BCBSRenewalCalculator
from .carriers.bcbs_models import BCBSOverrides, BCBSResult
from .carriers.cigna_calculator import CignaRenewalCalculator
from .carriers.cigna_models import CignaOverrides, CignaResult
from .carriers.uhc_calculator import UHCRenewalCalculator
from .carriers.uhc_models import UHCOverrides, UHCResult
from .errors import CarrierCalculationError, UnsupportedCarrierError
from .experience import DEFAULT_RETENTION_TIERS, ExperienceSummary, RetentionTiers, summarize_experience
from .models import (
    CalculationStep,
    Carrier,
    ExperiencePeriods,
    Period,
    RenewalInput,
    ValidationWarning,
)
from .normalizer import (
    DEFAULT_AETNA,
    DEFAULT_BCBS,
    DEFAULT_CIGNA,
    DEFAULT_UHC,
    AetnaDefaults,
    BCBSDefaults,
    CignaDefaults,
    UHCDefaults,
    bcbs_plan_from_experience,
    resolve_aetna_parameters,
    resolve_bcbs_parameters,
    resolve_cigna_parameters,
    resolve_uhc_parameters,
)

logger = logging.getLogger(__name__)


class CarrierSpecificResults(BaseModel):
    """Full native result, keyed by carrier."""

    model_config = ConfigDict(frozen=True)

    uhc: Optional[UHCResult] = None
    bcbs: Optional[BCBSResult] = None
    cigna: Optional[CignaResult] = None
    aetna: Optional[AetnaResult] = None


class MemberMonthsSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: Optional[float] = None
    prior: Optional[float] = None
    projected: Optional[float] = None


class CalculationResult(BaseModel):
    """
    Carrier-neutral result envelope.

    Rate changes are fractions (0.05 = 5%).
    """

    model_config = ConfigDict(frozen=True)

    carrier: Carrier
    current_premium_pmpm: float
    projected_premium_pmpm: float
    required_rate_change: float
    proposed_rate_change: float
    calculation_steps: List[CalculationStep]
    warnings: List[ValidationWarning] = Field(default_factory=list)
    detailed_results: CarrierSpecificResults
    experience_periods: Optional[ExperiencePeriods] = None
    member_months: MemberMonthsSummary = Field(default_factory=MemberMonthsSummary)


class CarrierComparison(BaseModel):
    """Side-by-side results; carriers that failed are listed with their error."""

    model_config = ConfigDict(frozen=True)

    results: Dict[str, CalculationResult] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)


def _warnings(messages: Iterable[str], category: str = "data") -> List[ValidationWarning]:
    return [ValidationWarning(message=message, category=category) for message in messages]


class RenewalDispatcher:
    """
    Builds carrier parameters and runs the matching renewal engine.

    Example:
        >>> dispatcher = RenewalDispatcher()
        >>> result = dispatcher.dispatch(renewal_input, "UHC")
        >>> print(f"Rate change: {result.required_rate_change:.1%}")
    """

    def __init__(
        self,
        uhc_defaults: UHCDefaults = DEFAULT_UHC,
        aetna_defaults: AetnaDefaults = DEFAULT_AETNA,
        cigna_defaults: CignaDefaults = DEFAULT_CIGNA,
        bcbs_defaults: BCBSDefaults = DEFAULT_BCBS,
        retention_tiers: RetentionTiers = DEFAULT_RETENTION_TIERS,
    ):
        """
        Initialize the dispatcher.

        Args:
            uhc_defaults: UHC default assumptions
            aetna_defaults: AETNA default assumptions
            cigna_defaults: CIGNA default assumptions
            bcbs_defaults: BCBS default assumptions
            retention_tiers: Group-size retention percentages shared by all carriers
        """
        self.uhc_defaults = uhc_defaults
        self.aetna_defaults = aetna_defaults
        self.cigna_defaults = cigna_defaults
        self.bcbs_defaults = bcbs_defaults
        self.retention_tiers = retention_tiers

        self._runners: Dict[Carrier, Callable[[RenewalInput, ExperienceSummary], CalculationResult]] = {
            Carrier.UHC: self._run_uhc,
            Carrier.BCBS: self._run_bcbs,
            Carrier.CIGNA: self._run_cigna,
            Carrier.AETNA: self._run_aetna,
        }

    def supported_carriers(self) -> List[str]:
        return [carrier.value for carrier in self._runners]

    def dispatch(
        self,
        renewal_input: RenewalInput,
        carrier: Optional[Union[Carrier, str]] = None,
    ) -> CalculationResult:
        """
        Run one carrier's renewal.

        Args:
            renewal_input: Group experience and raw carrier overrides
            carrier: Carrier tag; defaults to the input's own carrier

        Returns:
            CalculationResult envelope with the native result attached

        Raises:
            UnsupportedCarrierError: If the tag is missing or unknown
            CarrierCalculationError: If parameter resolution or the engine fails
        """
        selected = self._resolve_carrier(carrier if carrier is not None else renewal_input.carrier)
        logger.info(f"Dispatching {renewal_input.case_id} to {selected.value}")

        try:
            summary = summarize_experience(
                renewal_input.monthly_claims,
                renewal_input.manual_rates,
                self.retention_tiers,
            )
            return self._runners[selected](renewal_input, summary)
        except (ValueError, ArithmeticError) as e:
            logger.error(f"{selected.value} calculation failed for {renewal_input.case_id}: {e}")
            raise CarrierCalculationError(selected.value, str(e), e) from e

    def compare(
        self,
        renewal_input: RenewalInput,
        carriers: Optional[Iterable[Union[Carrier, str]]] = None,
    ) -> CarrierComparison:
        """
        Run several carriers on the same input.

        A failing carrier is recorded in ``failures`` and does not stop the
        others. Unknown tags still raise.
        """
        selected = [self._resolve_carrier(c) for c in (carriers or list(self._runners))]
        results = {}
        failures = {}
        for carrier in selected:
            try:
                results[carrier.value] = self.dispatch(renewal_input, carrier)
            except CarrierCalculationError as e:
                failures[carrier.value] = e.reason
        return CarrierComparison(results=results, failures=failures)

    def _resolve_carrier(self, carrier: Optional[Union[Carrier, str]]) -> Carrier:
        if carrier is None:
            raise UnsupportedCarrierError("None")
        if isinstance(carrier, Carrier):
            return carrier
        try:
            return Carrier(str(carrier).strip().upper())
        except ValueError:
            raise UnsupportedCarrierError(str(carrier)) from None

    def _run_uhc(self, renewal_input: RenewalInput, summary: ExperienceSummary) -> CalculationResult:
        overrides = UHCOverrides.model_validate(renewal_input.carrier_parameters)
        parameters = resolve_uhc_parameters(overrides, summary, self.uhc_defaults)
        result = UHCRenewalCalculator(renewal_input, parameters).calculate()

        analysis = result.period_analysis
        current_months = result.periods.current.months
        return CalculationResult(
            carrier=Carrier.UHC,
            current_premium_pmpm=result.current_revenue_pmpm,
            projected_premium_pmpm=result.final_premium.total,
            required_rate_change=result.calculated_rate_change,
            proposed_rate_change=result.rate_change,
            calculation_steps=[
                CalculationStep(label="Final Premium PMPM", value=result.final_premium.total, line_id="AE"),
                CalculationStep(label="Current Revenue PMPM", value=result.current_revenue_pmpm, line_id="AF"),
                CalculationStep(label="Calculated Rate Change", value=result.calculated_rate_change, line_id="AG"),
                CalculationStep(label="Suggested Rate Change", value=result.rate_change, line_id="AH"),
                CalculationStep(
                    label="Experience Credibility",
                    value=result.summary.credibility_weighting.experience,
                ),
                CalculationStep(label="Total Retention", value=result.summary.total_retention, line_id="Q"),
            ],
            warnings=_warnings(result.warnings),
            detailed_results=CarrierSpecificResults(uhc=result),
            experience_periods=result.periods,
            member_months=MemberMonthsSummary(
                current=analysis.current.member_months,
                prior=analysis.prior.member_months if analysis.prior else None,
                projected=analysis.current.member_months / current_months * 12,
            ),
        )

    def _run_bcbs(self, renewal_input: RenewalInput, summary: ExperienceSummary) -> CalculationResult:
        overrides = BCBSOverrides.model_validate(renewal_input.carrier_parameters)
        if not renewal_input.plans and not overrides.plans:
            plan = bcbs_plan_from_experience(renewal_input, summary, self.bcbs_defaults, overrides.pooling_level)
            renewal_input = renewal_input.model_copy(update={"plans": [plan]})
        parameters = resolve_bcbs_parameters(overrides, summary, renewal_input.plans or [], self.bcbs_defaults)
        result = BCBSRenewalCalculator(renewal_input, parameters).calculate()

        composite = result.composite
        steps = [
            CalculationStep(label="Composite Rate Action", value=composite.composite_rate_action),
            CalculationStep(label="Total Enrollment", value=composite.total_enrollment),
            CalculationStep(label="Total Plans", value=float(len(result.individual_plans))),
        ]
        steps.extend(
            CalculationStep(
                label=f"{plan.plan_name} Rate Action",
                value=plan.final_metrics.rate_action,
                line_id="29",
            )
            for plan in result.individual_plans
        )

        return CalculationResult(
            carrier=Carrier.BCBS,
            current_premium_pmpm=composite.weighted_averages.current_pmpm,
            projected_premium_pmpm=composite.weighted_averages.projected_pmpm,
            required_rate_change=composite.composite_rate_action,
            proposed_rate_change=composite.composite_rate_action,
            calculation_steps=steps,
            warnings=_warnings(result.warnings, category="rate"),
            detailed_results=CarrierSpecificResults(bcbs=result),
            member_months=MemberMonthsSummary(
                current=sum(p.member_months.renewal_total for p in renewal_input.plans),
                prior=sum(p.member_months.current_total for p in renewal_input.plans),
            ),
        )

    def _run_cigna(self, renewal_input: RenewalInput, summary: ExperienceSummary) -> CalculationResult:
        overrides = CignaOverrides.model_validate(renewal_input.carrier_parameters)
        parameters = resolve_cigna_parameters(overrides, summary, self.cigna_defaults)
        result = CignaRenewalCalculator(renewal_input, parameters).calculate()

        period = result.period
        current_premium = parameters.current_premium_pmpm
        return CalculationResult(
            carrier=Carrier.CIGNA,
            current_premium_pmpm=current_premium,
            projected_premium_pmpm=result.final_premium.pmpm,
            required_rate_change=result.rate_change,
            proposed_rate_change=result.rate_change,
            calculation_steps=[
                CalculationStep(label="Total Required Premium PMPM", value=result.final_premium.pmpm, line_id="23"),
                CalculationStep(label="Annual Premium", value=result.final_premium.annual, line_id="23"),
                CalculationStep(label="Current Premium PMPM", value=current_premium, line_id="24"),
                CalculationStep(label="Required Rate Change", value=result.rate_change, line_id="25"),
            ],
            warnings=_warnings(result.warnings),
            detailed_results=CarrierSpecificResults(cigna=result),
            experience_periods=ExperiencePeriods(
                current=Period(start=period.start, end=period.end, months=period.months, label="Current"),
            ),
            member_months=MemberMonthsSummary(
                current=period.member_months,
                projected=period.projected_member_months,
            ),
        )

    def _run_aetna(self, renewal_input: RenewalInput, summary: ExperienceSummary) -> CalculationResult:
        overrides = AetnaOverrides.model_validate(renewal_input.carrier_parameters)
        parameters = resolve_aetna_parameters(overrides, summary, self.aetna_defaults)
        result = AetnaRenewalCalculator(renewal_input, parameters).calculate()

        used = result.summary.member_months_used
        return CalculationResult(
            carrier=Carrier.AETNA,
            current_premium_pmpm=result.current_premium_pmpm,
            projected_premium_pmpm=result.final_premium.total,
            required_rate_change=result.rate_change,
            proposed_rate_change=result.rate_change,
            calculation_steps=[
                CalculationStep(label="Total Amount Due PMPM", value=result.final_premium.total, line_id="26"),
                CalculationStep(label="Current Premium PMPM", value=result.current_premium_pmpm, line_id="27"),
                CalculationStep(label="Required Rate Change", value=result.rate_change, line_id="28"),
                CalculationStep(
                    label="Total Retention PMPM",
                    value=result.summary.total_retention_pmpm,
                    line_id="21",
                ),
                CalculationStep(label="Total Lines", value=float(len(result.calculations))),
            ],
            warnings=_warnings(result.warnings),
            detailed_results=CarrierSpecificResults(aetna=result),
            experience_periods=result.periods,
            member_months=MemberMonthsSummary(
                current=used.current,
                prior=used.prior if result.periods.prior else None,
                projected=used.weighted,
            ),
        )
