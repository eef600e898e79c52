"""
Tests for the UHC renewal engine.

Run with: pytest test_uhc_calculator.py -v
"""

import pytest

from renewal_projection.carriers.uhc_calculator import UHCRenewalCalculator
from renewal_projection.carriers.uhc_models import CredibilityWeights, UHCLine, UHCOverrides
from renewal_projection.errors import DataValidationError, InsufficientDataError, MissingParameterError
from renewal_projection.experience import summarize_experience
from renewal_projection.models import ClaimAmounts, MemberMonths, MonthlyClaimsRecord
from renewal_projection.normalizer import resolve_uhc_parameters
from renewal_projection.periods import determine_experience_periods, get_member_months_for_period
from renewal_projection.samples import sample_renewal_input


def build_parameters(renewal_input, **overrides):
    summary = summarize_experience(renewal_input.monthly_claims, renewal_input.manual_rates)
    return resolve_uhc_parameters(UHCOverrides(**overrides), summary)


@pytest.fixture
def renewal_input():
    """24 months: member months 1000 -> 1110, medical 350000 -> 405000, rx 85000 -> 131000."""
    return sample_renewal_input("UHC", months=24)


@pytest.fixture
def parameters(renewal_input):
    return build_parameters(
        renewal_input,
        pooling_threshold=125000,
        pooling_factor=0.156,
        experience_weights=[0.70, 0.30],
        credibility_weights={"experience": 0.42, "manual": 0.58},
    )


@pytest.fixture
def result(renewal_input, parameters):
    return UHCRenewalCalculator(renewal_input, parameters).calculate()


def line(result, line_id):
    return next(entry for entry in result.calculations if entry.line_id == line_id.value)


class TestUHCLedgerShape:
    """Test the 39-line ledger structure."""

    def test_thirty_nine_lines_in_order(self, result):
        assert len(result.calculations) == 39
        assert [entry.line_id for entry in result.calculations] == [line_id.value for line_id in UHCLine]

    def test_prior_column_through_line_i(self, result):
        for line_id in list(UHCLine)[:9]:
            assert line(result, line_id).prior is not None, line_id

    def test_no_prior_column_from_line_j(self, result):
        for line_id in list(UHCLine)[9:]:
            assert line(result, line_id).prior is None, line_id

    def test_final_premium_positive(self, result):
        assert result.final_premium.total > 0
        assert result.final_premium == line(result, UHCLine.AE).current

    def test_descriptions_carry_threshold(self, result):
        assert line(result, UHCLine.B).description == "Pooled Claims Over $125,000"
        assert "70% / 30%" in line(result, UHCLine.J).description


class TestUHCIdentities:
    """Test conservation and credibility identities across the ledger."""

    def test_total_claims_is_adjusted_medical_plus_rx(self, result):
        e, c, d = line(result, UHCLine.E), line(result, UHCLine.C), line(result, UHCLine.D)
        assert e.current.total == pytest.approx(c.current.total + d.current.total, abs=1e-6)
        assert e.prior.total == pytest.approx(c.prior.total + d.prior.total, abs=1e-6)

    def test_expected_claims_is_member_change_plus_pooling(self, result):
        m, k, l_line = line(result, UHCLine.M), line(result, UHCLine.K), line(result, UHCLine.L)
        assert m.current.total == pytest.approx(k.current.total + l_line.current.total, abs=1e-6)

    def test_renewal_cost_is_experience_plus_manual(self, result):
        y, w, x = line(result, UHCLine.Y), line(result, UHCLine.W), line(result, UHCLine.X)
        assert y.current.total == pytest.approx(w.current.total + x.current.total, abs=1e-6)

    @pytest.mark.parametrize("experience,manual", [(0.42, 0.58), (1.0, 0.0), (0.0, 1.0), (0.25, 0.75)])
    def test_credibility_blend(self, renewal_input, parameters, experience, manual):
        params = parameters.model_copy(update={
            "credibility_weights": CredibilityWeights(experience=experience, manual=manual),
        })
        result = UHCRenewalCalculator(renewal_input, params).calculate()

        assert line(result, UHCLine.W).current.total == pytest.approx(
            line(result, UHCLine.R).current.total * experience, abs=1e-6
        )
        assert line(result, UHCLine.X).current.total == pytest.approx(
            line(result, UHCLine.V).current.total * manual, abs=1e-6
        )

    def test_period_weighting(self, result):
        i, j = line(result, UHCLine.I), line(result, UHCLine.J)
        assert j.current.total == pytest.approx(i.current.total * 0.70 + i.prior.total * 0.30)

    def test_pooling_charge(self, renewal_input, result):
        periods = determine_experience_periods(renewal_input.monthly_claims)
        current_mm = get_member_months_for_period(renewal_input.monthly_claims, periods.current).total
        assert line(result, UHCLine.L).current.total == pytest.approx(125000 * 0.156 / current_mm)

    def test_pooled_claims_per_period(self, renewal_input, result):
        periods = determine_experience_periods(renewal_input.monthly_claims)
        records = renewal_input.monthly_claims
        current_mm = get_member_months_for_period(records, periods.current).total
        prior_mm = get_member_months_for_period(records, periods.prior).total

        b = line(result, UHCLine.B)
        # LC-001 (310000) and LC-002 (140000) are current; LC-003 (210000) is prior
        assert b.current.total == pytest.approx((185000 + 15000) / current_mm)
        assert b.prior.total == pytest.approx(85000 / prior_mm)

    def test_retention_gross_up(self, result):
        m, q, r = line(result, UHCLine.M), line(result, UHCLine.Q), line(result, UHCLine.R)
        assert r.current.total == pytest.approx(m.current.total / (1 - q.current.total))

    def test_calculated_rate_change(self, result):
        ae = line(result, UHCLine.AE).current.total
        af = line(result, UHCLine.AF).current.total
        assert result.calculated_rate_change == pytest.approx((ae - af) / af)
        assert result.rate_change == pytest.approx(result.calculated_rate_change)


class TestUHCScenarios:
    """Test parameter variations and degraded inputs."""

    def test_suggested_action_overrides(self, renewal_input, parameters):
        params = parameters.model_copy(update={"suggested_renewal_action": 0.08})
        result = UHCRenewalCalculator(renewal_input, params).calculate()

        assert result.rate_change == pytest.approx(0.08)
        assert line(result, UHCLine.AI).current.total == pytest.approx(params.current_revenue_pmpm * 1.08)
        ai = line(result, UHCLine.AI).current.total
        ae = line(result, UHCLine.AE).current.total
        assert line(result, UHCLine.AL).current.total == pytest.approx(ae / ai)

    def test_twelve_months_uses_current_only(self):
        renewal_input = sample_renewal_input("UHC", months=12)
        result = UHCRenewalCalculator(renewal_input, build_parameters(renewal_input)).calculate()

        assert result.periods.prior is None
        assert line(result, UHCLine.A).prior is None
        assert line(result, UHCLine.J).current == line(result, UHCLine.I).current
        assert result.period_analysis.prior is None
        assert "No prior period data available. Using current period only." in result.warnings

    def test_nonstandard_threshold_warns(self, renewal_input, parameters):
        params = parameters.model_copy(update={"pooling_threshold": 100000})
        result = UHCRenewalCalculator(renewal_input, params).calculate()
        assert "UHC typically uses $125,000 pooling threshold" in result.warnings

    def test_result_detail(self, renewal_input, result):
        assert result.summary.projected_annual_premium == pytest.approx(
            result.final_premium.total * result.period_analysis.current.member_months
        )
        assert result.summary.credibility_weighting.experience == 0.42
        assert result.data_quality.data_completeness == 1.0
        assert result.data_quality.annualization_applied is False
        assert {row.claimant_id for row in result.pooled_claimants} == {"LC-001", "LC-002", "LC-003"}

    def test_missing_credibility_raises(self, renewal_input, parameters):
        params = parameters.model_copy(update={"credibility_weights": None})
        with pytest.raises(MissingParameterError):
            UHCRenewalCalculator(renewal_input, params).calculate()

    def test_wrong_length_experience_weights_raises(self, renewal_input, parameters):
        params = parameters.model_copy(update={"experience_weights": [0.5, 0.3, 0.2]})
        with pytest.raises(MissingParameterError):
            UHCRenewalCalculator(renewal_input, params).calculate()

    def test_two_months_is_insufficient(self, parameters):
        renewal_input = sample_renewal_input("UHC", months=2)
        with pytest.raises(InsufficientDataError):
            UHCRenewalCalculator(renewal_input, parameters).calculate()

    def test_zero_member_months_rejected(self, renewal_input, parameters):
        records = list(renewal_input.monthly_claims)
        records[-1] = MonthlyClaimsRecord(
            month=records[-1].month,
            member_months=MemberMonths(total=0),
            incurred_claims=ClaimAmounts(medical=1000.0, rx=0.0),
        )
        broken = renewal_input.model_copy(update={"monthly_claims": records})
        with pytest.raises(DataValidationError):
            UHCRenewalCalculator(broken, parameters).calculate()
