"""
Tests for the CIGNA renewal engine.

Run with: pytest test_cigna_calculator.py -v
"""

from datetime import date

import pytest

from renewal_projection.carriers.cigna_calculator import CignaRenewalCalculator
from renewal_projection.carriers.cigna_models import CignaLine, CignaOverrides, ExpenseLoadings
from renewal_projection.errors import InsufficientDataError
from renewal_projection.experience import summarize_experience
from renewal_projection.models import EffectiveDates, LargeClaimant, ManualRates, RenewalInput
from renewal_projection.normalizer import resolve_cigna_parameters
from renewal_projection.samples import linear_monthly_series, sample_renewal_input


def flat_input(months, claimants=None):
    """Flat series: 1000 member months and $435,000 of claims every month."""
    records = linear_monthly_series(
        months=months,
        start="2023-01",
        member_months=(1000, 1000),
        medical_claims=(350000, 350000),
        rx_claims=(85000, 85000),
    )
    return RenewalInput(
        carrier="CIGNA",
        case_id="CIGNA-TEST",
        effective_dates=EffectiveDates(renewal_start=date(2024, 1, 1), renewal_end=date(2024, 12, 31)),
        monthly_claims=records,
        large_claimants=claimants or [],
        manual_rates=ManualRates(medical=380.0, rx=95.0),
    )


def build_parameters(renewal_input, **overrides):
    summary = summarize_experience(renewal_input.monthly_claims, renewal_input.manual_rates)
    return resolve_cigna_parameters(CignaOverrides(**overrides), summary)


@pytest.fixture
def four_month_input():
    claimant = LargeClaimant(claimant_id="C1", incurred_date=date(2023, 2, 10), total_amount=110000)
    return flat_input(4, [claimant])


@pytest.fixture
def parameters(four_month_input):
    return build_parameters(four_month_input, pooling_level=50000)


@pytest.fixture
def result(four_month_input, parameters):
    return CignaRenewalCalculator(four_month_input, parameters).calculate()


def line(result, line_id):
    return next(entry for entry in result.calculations if entry.line_id == line_id.value)


class TestCignaShortPeriod:
    """Test the four-month scenario."""

    def test_calculates_with_annualization(self, result):
        assert len(result.calculations) == 25
        assert result.data_quality.annualization_applied is True
        assert result.period.months == 4
        assert result.data_quality.data_completeness == pytest.approx(4 / 12)

    def test_paid_claims_pmpm(self, result):
        paid = line(result, CignaLine.TOTAL_PAID_CLAIMS)
        assert paid.pmpm == pytest.approx(435.0)
        assert paid.annual == pytest.approx(435.0 * 12000)

    def test_projected_member_months(self, result):
        assert result.period.member_months == pytest.approx(4000)
        assert result.period.projected_member_months == pytest.approx(12000)

    def test_pooled_claims(self, result):
        pooled = line(result, CignaLine.POOLED_CLAIMS)
        assert pooled.pmpm == pytest.approx(60000 / 4000)
        assert pooled.annual == pytest.approx(60000 * 3)
        assert pooled.description == "Less Pooled Claims over $50,000"

    def test_experience_claim_cost(self, result):
        assert line(result, CignaLine.EXPERIENCE_CLAIM_COST).pmpm == pytest.approx(435.0 - 15.0)

    def test_estimated_add_back(self, result):
        add_back = line(result, CignaLine.LARGE_CLAIM_ADD_BACK)
        assert add_back.pmpm == pytest.approx(60000 * 0.30 / 4000)
        assert add_back.annual == pytest.approx(add_back.pmpm * 12000)

    def test_display_rows(self, result):
        assert line(result, CignaLine.DEMOGRAPHIC_FACTOR).pmpm == "1.0000"
        assert line(result, CignaLine.ANNUAL_TREND).pmpm == "8.50%"
        assert line(result, CignaLine.EFFECTIVE_TREND).pmpm == "8.50%"
        assert line(result, CignaLine.EXPERIENCE_WEIGHT).pmpm == "80.0%"
        assert line(result, CignaLine.MANUAL_WEIGHT).pmpm == "20.0%"
        assert line(result, CignaLine.FLUCTUATION_CORRIDOR).pmpm == "85.0% to 115.0%"

    def test_trended_claims(self, result):
        adjusted = line(result, CignaLine.DEMOGRAPHIC_ADJUSTED).pmpm
        assert line(result, CignaLine.TRENDED_CLAIMS).pmpm == pytest.approx(adjusted * 1.085)

    def test_blend(self, result):
        projected = line(result, CignaLine.TOTAL_PROJECTED).pmpm
        manual = line(result, CignaLine.MANUAL_CLAIM_COST).pmpm
        assert line(result, CignaLine.BLENDED_CLAIMS).pmpm == pytest.approx(projected * 0.8 + manual * 0.2)
        assert line(result, CignaLine.FINAL_CLAIMS).pmpm == line(result, CignaLine.BLENDED_CLAIMS).pmpm

    def test_expense_percentages(self, result):
        claims = line(result, CignaLine.FINAL_CLAIMS).pmpm
        admin = line(result, CignaLine.ADMINISTRATION).pmpm
        commissions = line(result, CignaLine.COMMISSIONS).pmpm

        assert admin == pytest.approx(claims * 0.10)
        assert commissions == pytest.approx(claims * 0.04)
        assert line(result, CignaLine.PREMIUM_TAX).pmpm == pytest.approx((claims + admin + commissions) * 0.025)

    def test_total_required_premium(self, result):
        parts = [
            CignaLine.FINAL_CLAIMS, CignaLine.ADMINISTRATION, CignaLine.COMMISSIONS,
            CignaLine.PREMIUM_TAX, CignaLine.PROFIT_AND_CONTINGENCY, CignaLine.OTHER_EXPENSES,
        ]
        total = line(result, CignaLine.TOTAL_REQUIRED_PREMIUM)
        assert total.pmpm == pytest.approx(sum(line(result, p).pmpm for p in parts))
        assert total.annual == pytest.approx(sum(line(result, p).annual for p in parts))
        assert result.final_premium.pmpm == pytest.approx(total.pmpm)

    def test_rate_change(self, result, parameters):
        current = parameters.current_premium_pmpm
        assert result.rate_change == pytest.approx((result.final_premium.pmpm - current) / current)
        assert line(result, CignaLine.REQUIRED_RATE_CHANGE).pmpm == f"{result.rate_change * 100:.2f}%"

    def test_corridor_not_applied(self, result):
        assert result.cfc_analysis.adjustment_applied is False
        assert result.cfc_analysis.adjusted_premium == result.cfc_analysis.original_premium


class TestCignaParameters:
    """Test supplied values and longer histories."""

    def test_supplied_loading_used(self, four_month_input):
        params = build_parameters(four_month_input, expense_loadings=ExpenseLoadings(administration=42.0))
        result = CignaRenewalCalculator(four_month_input, params).calculate()

        assert line(result, CignaLine.ADMINISTRATION).pmpm == pytest.approx(42.0)
        assert line(result, CignaLine.ADMINISTRATION).notes == "Supplied loading"

    def test_zero_loading_is_not_replaced_by_percentage(self, four_month_input):
        params = build_parameters(four_month_input, expense_loadings=ExpenseLoadings(administration=0.0))
        result = CignaRenewalCalculator(four_month_input, params).calculate()

        admin = line(result, CignaLine.ADMINISTRATION)
        claims = line(result, CignaLine.FINAL_CLAIMS).pmpm
        commissions = line(result, CignaLine.COMMISSIONS).pmpm

        assert admin.pmpm == 0.0
        assert admin.annual == 0.0
        assert admin.notes == "Supplied loading"
        assert line(result, CignaLine.PREMIUM_TAX).pmpm == pytest.approx((claims + commissions) * 0.025)

    def test_projected_member_months_override(self, four_month_input):
        params = build_parameters(four_month_input, projected_member_months=15000)
        result = CignaRenewalCalculator(four_month_input, params).calculate()

        paid = line(result, CignaLine.TOTAL_PAID_CLAIMS)
        assert paid.annual == pytest.approx(paid.pmpm * 15000)

    def test_supplied_add_back(self, four_month_input):
        params = build_parameters(four_month_input, large_claim_add_back={"pmpm": 7.5, "annual": 90000})
        result = CignaRenewalCalculator(four_month_input, params).calculate()

        add_back = line(result, CignaLine.LARGE_CLAIM_ADD_BACK)
        assert add_back.pmpm == pytest.approx(7.5)
        assert add_back.annual == pytest.approx(90000)

    def test_uses_trailing_twelve_months(self):
        renewal_input = sample_renewal_input("CIGNA", months=24)
        result = CignaRenewalCalculator(renewal_input, build_parameters(renewal_input)).calculate()

        assert result.period.months == 12
        assert result.period.start == date(2023, 1, 1)
        assert result.data_quality.annualization_applied is False

    def test_two_months_is_insufficient(self, parameters):
        with pytest.raises(InsufficientDataError):
            CignaRenewalCalculator(flat_input(2), parameters).calculate()
