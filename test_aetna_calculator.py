"""
Tests for the AETNA renewal engine.

Run with: pytest test_aetna_calculator.py -v
"""

import math

import pytest

from renewal_projection.carriers.aetna_calculator import AetnaRenewalCalculator, credibility_factor
from renewal_projection.carriers.aetna_models import AetnaLine, AetnaOverrides, PeriodWeighting
from renewal_projection.experience import summarize_experience
from renewal_projection.models import EarnedPremium
from renewal_projection.normalizer import resolve_aetna_parameters
from renewal_projection.samples import sample_renewal_input


def build_parameters(renewal_input, **overrides):
    summary = summarize_experience(renewal_input.monthly_claims, renewal_input.manual_rates)
    return resolve_aetna_parameters(AetnaOverrides(**overrides), summary)


def run(renewal_input, parameters=None):
    return AetnaRenewalCalculator(renewal_input, parameters or build_parameters(renewal_input)).calculate()


@pytest.fixture
def renewal_input():
    return sample_renewal_input("AETNA", months=24)


@pytest.fixture
def parameters(renewal_input):
    return build_parameters(renewal_input)


@pytest.fixture
def result(renewal_input, parameters):
    return run(renewal_input, parameters)


def line(result, line_id):
    return next(entry for entry in result.calculations if entry.line_id == line_id.value)


class TestCredibilityFactor:
    """Test the credibility rule."""

    @pytest.mark.parametrize("member_months,expected", [
        (3000, 0.5),
        (12000, 1.0),
        (48000, 1.0),
        (300, 0.25),
    ])
    def test_square_root_rule(self, member_months, expected):
        assert credibility_factor(member_months, 12000, 0.25) == pytest.approx(expected)

    def test_linear_rule(self):
        assert credibility_factor(6000, 12000, 0.25, "linear") == pytest.approx(0.5)
        assert credibility_factor(1200, 12000, 0.25, "linear") == pytest.approx(0.25)


class TestAetnaLedger:
    """Test the 28-line exhibit."""

    def test_twenty_eight_lines_in_order(self, result):
        assert [entry.line_id for entry in result.calculations] == [line_id.value for line_id in AetnaLine]

    def test_prior_column_through_line_14(self, result):
        for line_id in list(AetnaLine)[:14]:
            assert line(result, line_id).prior is not None, line_id
        assert line(result, AetnaLine.WEIGHTED_PROJECTED_CLAIMS).prior is None

    def test_claims_with_pooling(self, result):
        claims = line(result, AetnaLine.CLAIMS_WITH_POOLING)
        suppressed = line(result, AetnaLine.SUPPRESSED_CLAIMS)
        pooled = line(result, AetnaLine.POOLED_CLAIMS)
        charge = line(result, AetnaLine.POOLING_CHARGE)

        assert claims.current.total == pytest.approx(
            suppressed.current.total - pooled.current.total + charge.current.total
        )
        assert claims.prior.total == pytest.approx(
            suppressed.prior.total - pooled.prior.total + charge.prior.total
        )

    def test_trend_compounds_over_months(self, result, parameters):
        trend = line(result, AetnaLine.TREND).current
        months = parameters.trend_factor.months

        assert trend.medical == pytest.approx(1.0969 ** (months / 12))
        assert trend.rx == pytest.approx(1.0788 ** (months / 12))

    def test_period_weighting(self, result):
        projected = line(result, AetnaLine.PROJECTED_CLAIMS)
        weighted = line(result, AetnaLine.WEIGHTED_PROJECTED_CLAIMS)

        assert weighted.current.total == pytest.approx(
            projected.current.total * 0.75 + projected.prior.total * 0.25
        )

    def test_full_credibility_for_large_group(self, result):
        credibility = line(result, AetnaLine.CREDIBILITY)
        assert credibility.current.total == pytest.approx(1.0)
        assert credibility.prior.total == pytest.approx(0.0)
        assert line(result, AetnaLine.BLENDED_CLAIMS).current.total == pytest.approx(
            line(result, AetnaLine.WEIGHTED_PROJECTED_CLAIMS).current.total
        )

    def test_partial_credibility_blends_manual(self, renewal_input):
        params = build_parameters(renewal_input, credibility_parameters={
            "minimum_credibility": 0.25,
            "full_credibility_member_months": 101280,
        })
        result = run(renewal_input, params)

        credibility = line(result, AetnaLine.CREDIBILITY).current.total
        experience = line(result, AetnaLine.WEIGHTED_PROJECTED_CLAIMS).current.total
        manual = line(result, AetnaLine.MANUAL_CLAIMS).current.total

        assert 0.25 <= credibility < 1.0
        assert line(result, AetnaLine.BLENDED_CLAIMS).current.total == pytest.approx(
            experience * credibility + manual * (1 - credibility)
        )

    def test_projected_premium(self, result):
        parts = [
            AetnaLine.BLENDED_CLAIMS, AetnaLine.LARGE_CLAIM_ADJUSTMENT,
            AetnaLine.NON_BENEFIT_EXPENSES, AetnaLine.RETENTION,
        ]
        assert line(result, AetnaLine.PROJECTED_PREMIUM).current.total == pytest.approx(
            sum(line(result, p).current.total for p in parts)
        )

    def test_rate_change(self, result):
        due = line(result, AetnaLine.TOTAL_AMOUNT_DUE).current.total
        current = line(result, AetnaLine.CURRENT_PREMIUM).current.total

        assert result.rate_change == pytest.approx(due / current - 1)
        assert result.current_premium_pmpm == pytest.approx(current)
        assert result.final_premium.total == pytest.approx(due)

    def test_producer_fee_added(self, renewal_input):
        result = run(renewal_input, build_parameters(renewal_input, producer_service_fee_pmpm=12.5))
        assert line(result, AetnaLine.TOTAL_AMOUNT_DUE).current.total == pytest.approx(
            line(result, AetnaLine.PROPOSED_PREMIUM).current.total + 12.5
        )


class TestAetnaScenarios:
    """Test degraded and alternative inputs."""

    def test_no_prior_period_uses_current_only(self):
        renewal_input = sample_renewal_input("AETNA", months=12)
        result = run(renewal_input)

        assert result.periods.prior is None
        assert line(result, AetnaLine.PERIOD_WEIGHTING).current.total == 1.0
        assert line(result, AetnaLine.WEIGHTED_PROJECTED_CLAIMS).current.total == pytest.approx(
            line(result, AetnaLine.PROJECTED_CLAIMS).current.total
        )
        used = result.summary.member_months_used
        assert used.prior == 0.0
        assert used.weighted == pytest.approx(used.current)

    def test_weights_not_summing_to_one_warn(self, renewal_input):
        params = build_parameters(renewal_input, period_weighting=PeriodWeighting(current=0.6, prior=0.3))
        result = run(renewal_input, params)
        assert "AETNA period weights sum to 0.90, not 100%" in result.warnings

    def test_partial_year_is_annualized(self):
        renewal_input = sample_renewal_input("AETNA", months=6)
        result = run(renewal_input)

        records = renewal_input.monthly_claims
        expected = sum(r.incurred_claims.total for r in records) / sum(r.member_months.total for r in records)
        assert result.data_quality.annualization_applied is True
        assert line(result, AetnaLine.INCURRED_CLAIMS).current.total == pytest.approx(expected)

    def test_earned_premium_sets_current_premium(self, renewal_input):
        records = [
            record.model_copy(update={"earned_premium": EarnedPremium(total=record.member_months.total * 510.0)})
            for record in renewal_input.monthly_claims
        ]
        result = run(renewal_input.model_copy(update={"monthly_claims": records}))

        current = line(result, AetnaLine.CURRENT_PREMIUM)
        assert current.current.total == pytest.approx(510.0)
        assert current.calculation == "Calculated from earned premium data (12 months)"

    def test_parameter_premium_without_earned_data(self, result, parameters):
        current = line(result, AetnaLine.CURRENT_PREMIUM)
        assert current.current.total == pytest.approx(parameters.current_premium_pmpm)
        assert current.calculation == "Current premium from parameters"

    def test_weighted_member_months(self, result):
        used = result.summary.member_months_used
        assert used.weighted == pytest.approx(used.current * 0.75 + used.prior * 0.25)
        assert not math.isclose(used.current, used.prior)
