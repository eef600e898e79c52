"""
Tests for carrier dispatch and the common result envelope.

Run with: pytest test_dispatcher.py -v
"""

import pytest

from renewal_projection import RenewalDispatcher
from renewal_projection.errors import (
    CarrierCalculationError,
    InsufficientDataError,
    MissingParameterError,
    UnsupportedCarrierError,
)
from renewal_projection.models import Carrier
from renewal_projection.normalizer import UHCDefaults
from renewal_projection.samples import sample_renewal_input


@pytest.fixture
def dispatcher():
    return RenewalDispatcher()


@pytest.fixture
def renewal_input():
    return sample_renewal_input("UHC", months=24)


class TestDispatchRouting:
    """Test carrier selection."""

    def test_supported_carriers(self, dispatcher):
        assert dispatcher.supported_carriers() == ["UHC", "BCBS", "CIGNA", "AETNA"]

    def test_uses_input_carrier(self, dispatcher, renewal_input):
        result = dispatcher.dispatch(renewal_input)
        assert result.carrier == Carrier.UHC
        assert result.detailed_results.uhc is not None
        assert result.detailed_results.aetna is None

    def test_explicit_carrier_overrides_input(self, dispatcher, renewal_input):
        result = dispatcher.dispatch(renewal_input, "aetna")
        assert result.carrier == Carrier.AETNA
        assert result.detailed_results.aetna is not None

    def test_missing_carrier_raises(self, dispatcher):
        with pytest.raises(UnsupportedCarrierError):
            dispatcher.dispatch(sample_renewal_input(carrier=None))

    def test_unknown_carrier_raises(self, dispatcher, renewal_input):
        with pytest.raises(UnsupportedCarrierError) as exc_info:
            dispatcher.dispatch(renewal_input, "KAISER")
        assert exc_info.value.carrier == "KAISER"


class TestEnvelope:
    """Test the carrier-neutral result fields."""

    def test_uhc_envelope(self, dispatcher, renewal_input):
        result = dispatcher.dispatch(renewal_input, "UHC")
        native = result.detailed_results.uhc

        assert result.projected_premium_pmpm == pytest.approx(native.final_premium.total)
        assert result.current_premium_pmpm == pytest.approx(native.current_revenue_pmpm)
        assert result.required_rate_change == pytest.approx(native.calculated_rate_change)
        assert result.experience_periods.prior is not None
        assert result.member_months.projected == pytest.approx(result.member_months.current)
        assert "Final Premium PMPM" in [step.label for step in result.calculation_steps]

    def test_cigna_envelope(self, dispatcher, renewal_input):
        result = dispatcher.dispatch(renewal_input, "CIGNA")
        native = result.detailed_results.cigna

        assert result.projected_premium_pmpm == pytest.approx(native.final_premium.pmpm)
        assert result.required_rate_change == pytest.approx(native.rate_change)
        assert result.experience_periods.prior is None
        assert result.experience_periods.current.months == 12

    def test_aetna_envelope(self, dispatcher, renewal_input):
        result = dispatcher.dispatch(renewal_input, "AETNA")
        native = result.detailed_results.aetna

        assert result.projected_premium_pmpm == pytest.approx(native.final_premium.total)
        assert result.required_rate_change == result.proposed_rate_change
        step = next(s for s in result.calculation_steps if s.label == "Total Lines")
        assert step.value == 28

    def test_bcbs_derives_single_plan(self, dispatcher, renewal_input):
        result = dispatcher.dispatch(renewal_input, "BCBS")
        native = result.detailed_results.bcbs

        assert [plan.plan_id for plan in native.individual_plans] == ["plan1"]
        assert result.required_rate_change == pytest.approx(native.composite.composite_rate_action)
        assert result.projected_premium_pmpm == pytest.approx(
            native.composite.weighted_averages.projected_pmpm
        )

    def test_bcbs_with_plans(self, dispatcher):
        result = dispatcher.dispatch(sample_renewal_input("BCBS", with_plans=True))
        native = result.detailed_results.bcbs

        assert len(native.individual_plans) == 3
        assert all(w.category == "rate" for w in result.warnings)
        assert result.member_months.current == pytest.approx(5100 + 3720 + 1320)

    def test_carrier_parameters_flow_through(self, dispatcher):
        renewal_input = sample_renewal_input("UHC", carrier_parameters={"suggested_renewal_action": 0.08})
        result = dispatcher.dispatch(renewal_input)

        assert result.proposed_rate_change == pytest.approx(0.08)
        assert result.required_rate_change != pytest.approx(0.08)

    def test_dispatcher_defaults_apply(self, renewal_input):
        dispatcher = RenewalDispatcher(uhc_defaults=UHCDefaults(pooling_threshold=100000))
        result = dispatcher.dispatch(renewal_input)

        messages = [w.message for w in result.warnings]
        assert "UHC typically uses $125,000 pooling threshold" in messages


class TestErrorWrapping:
    """Test failures surfaced at the dispatch boundary."""

    def test_engine_error_is_wrapped(self, dispatcher):
        with pytest.raises(CarrierCalculationError) as exc_info:
            dispatcher.dispatch(sample_renewal_input("CIGNA", months=2))

        error = exc_info.value
        assert error.carrier == "CIGNA"
        assert isinstance(error.__cause__, InsufficientDataError)
        assert error.original is error.__cause__

    def test_parameter_error_is_wrapped(self, dispatcher):
        renewal_input = sample_renewal_input("UHC", carrier_parameters={"experience_weights": [0.5, 0.3, 0.2]})
        with pytest.raises(CarrierCalculationError) as exc_info:
            dispatcher.dispatch(renewal_input)
        assert isinstance(exc_info.value.__cause__, MissingParameterError)

    def test_invalid_override_is_wrapped(self, dispatcher):
        renewal_input = sample_renewal_input("AETNA", carrier_parameters={"pooling_level": -1})
        with pytest.raises(CarrierCalculationError) as exc_info:
            dispatcher.dispatch(renewal_input)
        assert isinstance(exc_info.value.__cause__, ValueError)


class TestCompare:
    """Test running several carriers on one input."""

    def test_all_carriers(self, dispatcher, renewal_input):
        comparison = dispatcher.compare(renewal_input)

        assert set(comparison.results) == {"UHC", "BCBS", "CIGNA", "AETNA"}
        assert comparison.failures == {}

    def test_selected_carriers(self, dispatcher, renewal_input):
        comparison = dispatcher.compare(renewal_input, ["uhc", "CIGNA"])
        assert list(comparison.results) == ["UHC", "CIGNA"]

    def test_failures_collected(self, dispatcher):
        comparison = dispatcher.compare(sample_renewal_input("UHC", months=2))

        assert comparison.results == {}
        assert set(comparison.failures) == {"UHC", "BCBS", "CIGNA", "AETNA"}
        assert "Insufficient data" in comparison.failures["UHC"]

    def test_unknown_carrier_still_raises(self, dispatcher, renewal_input):
        with pytest.raises(UnsupportedCarrierError):
            dispatcher.compare(renewal_input, ["UHC", "HUMANA"])
