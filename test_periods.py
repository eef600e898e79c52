"""
Tests for experience periods, pooling, annualization and the ledger.

Run with: pytest test_periods.py -v
"""

from datetime import date, timedelta

import pytest

from renewal_projection.errors import DataValidationError, InsufficientDataError
from renewal_projection.ledger import CoverageValues, Ledger, LedgerLine
from renewal_projection.carriers.uhc_models import UHCLine
from renewal_projection.models import (
    ClaimAmounts,
    ExperiencePeriods,
    LargeClaimant,
    MemberMonths,
    MonthlyClaimsRecord,
    Period,
)
from renewal_projection.periods import (
    annualize_claims,
    calculate_pooled_claims_for_period,
    data_completeness,
    determine_experience_periods,
    get_claims_for_period,
    get_member_months_for_period,
    pooled_claimant_audit,
    trailing_period,
    validate_data_quality,
)
from renewal_projection.samples import linear_monthly_series


@pytest.fixture
def two_years():
    return linear_monthly_series(months=24, start="2022-01")


@pytest.fixture
def year_period():
    return Period(start=date(2023, 1, 1), end=date(2023, 12, 31), months=12, label="Current")


@pytest.fixture
def claimants():
    return [
        LargeClaimant(claimant_id="A", incurred_date=date(2023, 3, 1), total_amount=300000),
        LargeClaimant(claimant_id="B", incurred_date=date(2023, 6, 1), total_amount=150000,
                      medical_amount=120000, rx_amount=30000),
        LargeClaimant(claimant_id="C", incurred_date=date(2023, 9, 1), total_amount=60000),
    ]


class TestExperiencePeriods:
    """Test current/prior period selection."""

    def test_twenty_four_months_gives_two_periods(self, two_years):
        periods = determine_experience_periods(two_years)

        assert periods.current.months == 12
        assert periods.prior is not None
        assert periods.prior.months == 12
        assert periods.current.start == date(2023, 1, 1)
        assert periods.current.end == date(2023, 12, 31)
        assert periods.prior.start == date(2022, 1, 1)
        assert periods.prior.end == date(2022, 12, 31)

    def test_periods_are_contiguous(self, two_years):
        periods = determine_experience_periods(two_years)
        assert periods.prior.end + timedelta(days=1) == periods.current.start

    def test_order_of_records_does_not_matter(self, two_years):
        assert determine_experience_periods(list(reversed(two_years))) == determine_experience_periods(two_years)

    def test_more_than_twenty_four_months_uses_most_recent(self):
        records = linear_monthly_series(months=30, start="2021-07")
        periods = determine_experience_periods(records)

        assert periods.current.end == date(2023, 12, 31)
        assert periods.current.start == date(2023, 1, 1)
        assert periods.prior.start == date(2022, 1, 1)

    @pytest.mark.parametrize("months", [4, 10, 23])
    def test_under_twenty_four_months_is_single_period(self, months):
        records = linear_monthly_series(months=months, start="2023-01")
        periods = determine_experience_periods(records)

        assert periods.prior is None
        assert periods.current.months == months
        assert periods.current.start == date(2023, 1, 1)

    def test_fewer_than_four_months_raises(self):
        records = linear_monthly_series(months=3)
        with pytest.raises(InsufficientDataError) as exc_info:
            determine_experience_periods(records)
        assert exc_info.value.available_months == 3

    def test_duplicate_months_raise(self):
        records = linear_monthly_series(months=20, start="2022-01")
        records += [records[0], records[5], records[5], records[9], records[12]]
        with pytest.raises(DataValidationError) as exc_info:
            determine_experience_periods(records)
        assert exc_info.value.errors == [
            "Duplicate month: 2022-01",
            "Duplicate month: 2022-06",
            "Duplicate month: 2022-10",
            "Duplicate month: 2023-01",
        ]

    def test_months_to_renewal(self, year_period):
        assert year_period.midpoint == date(2023, 7, 2)
        assert year_period.months_to(date(2024, 7, 1)) == 12

    def test_trailing_period_narrows_to_recent_months(self):
        records = linear_monthly_series(months=18, start="2022-07")
        periods = determine_experience_periods(records)
        trailing = trailing_period(records, periods.current, 12)

        assert periods.current.months == 18
        assert trailing.months == 12
        assert trailing.start == date(2023, 1, 1)
        assert trailing.end == date(2023, 12, 31)

    def test_trailing_period_keeps_short_period(self):
        records = linear_monthly_series(months=6, start="2023-07")
        periods = determine_experience_periods(records)
        assert trailing_period(records, periods.current, 12) == periods.current


class TestPeriodTotals:
    """Test claims and member-month totals over a period."""

    def test_member_months_sum(self, two_years, year_period):
        expected = sum(r.member_months.total for r in two_years[12:])
        assert get_member_months_for_period(two_years, year_period).total == pytest.approx(expected)

    def test_claims_sum(self, two_years, year_period):
        claims = get_claims_for_period(two_years, year_period)
        assert claims.medical == pytest.approx(sum(r.incurred_claims.medical for r in two_years[12:]))
        assert claims.total == pytest.approx(claims.medical + claims.rx)


class TestPooling:
    """Test large claimant pooling."""

    def test_pooled_is_excess_over_threshold(self, claimants, year_period):
        pooled = calculate_pooled_claims_for_period(claimants, year_period, 125000)
        assert pooled.total == pytest.approx(175000 + 25000)

    def test_split_measured_per_coverage(self, claimants, year_period):
        pooled = calculate_pooled_claims_for_period(claimants, year_period, 100000)
        # A has no split so its excess is medical; B's medical 120000 and rx 30000
        assert pooled.medical == pytest.approx(200000 + 20000)
        assert pooled.rx == pytest.approx(0.0)

    def test_pooling_is_monotonic_in_threshold(self, claimants, year_period):
        thresholds = [400000, 300000, 200000, 125000, 100000, 50000, 0]
        totals = [calculate_pooled_claims_for_period(claimants, year_period, t).total for t in thresholds]
        assert totals == sorted(totals)

    def test_zero_when_all_below_threshold(self, claimants, year_period):
        assert calculate_pooled_claims_for_period(claimants, year_period, 300000).total == 0.0

    def test_claimants_outside_period_ignored(self, claimants):
        prior = Period(start=date(2022, 1, 1), end=date(2022, 12, 31), months=12, label="Prior")
        assert calculate_pooled_claims_for_period(claimants, prior, 0).total == 0.0

    def test_audit_rows_label_period(self, claimants, two_years):
        periods = determine_experience_periods(two_years)
        outside = LargeClaimant(claimant_id="D", incurred_date=date(2021, 5, 1), total_amount=500000)
        rows = pooled_claimant_audit(claimants + [outside], periods, 125000)

        assert [row.period_label for row in rows] == ["Current", "Current", "Current", None]
        assert rows[0].excess_amount == pytest.approx(175000)
        assert rows[2].excess_amount == 0.0


class TestAnnualization:
    """Test scaling partial years to 12 months."""

    def test_six_months_doubles(self):
        records = linear_monthly_series(months=6, start="2023-07")
        annualized = annualize_claims(records, 6)

        assert annualized.annualized_member_months == pytest.approx(
            2 * sum(r.member_months.total for r in records)
        )
        assert annualized.annualized_claims.total == pytest.approx(
            2 * sum(r.incurred_claims.total for r in records)
        )
        assert annualized.annualization_factor == pytest.approx(2.0)

    @pytest.mark.parametrize("months", [12, 13, 24])
    def test_full_year_raises(self, months):
        records = linear_monthly_series(months=months)
        with pytest.raises(ValueError):
            annualize_claims(records, months)

    def test_zero_months_raises(self):
        with pytest.raises(ValueError):
            annualize_claims([], 0)


class TestDataQuality:
    """Test data-quality validation."""

    def test_full_data_is_clean(self, two_years):
        periods = determine_experience_periods(two_years)
        result = validate_data_quality(two_years, [], periods)

        assert result.valid
        assert result.warnings == []
        assert data_completeness(periods) == 1.0

    def test_short_series_warnings(self):
        records = linear_monthly_series(months=5, start="2023-08")
        periods = determine_experience_periods(records)
        result = validate_data_quality(records, [], periods)

        assert result.valid
        assert any("Limited data: only 5 months" in w for w in result.warnings)
        assert any("Very limited data" in w for w in result.warnings)
        assert "No prior period data available. Using current period only." in result.warnings
        assert data_completeness(periods) == pytest.approx(5 / 12)

    def test_zero_member_months_is_error(self, two_years):
        broken = two_years[:-1] + [MonthlyClaimsRecord(
            month="2023-12",
            member_months=MemberMonths(total=0),
            incurred_claims=ClaimAmounts(medical=1000.0, rx=100.0),
        )]
        periods = determine_experience_periods(broken)
        result = validate_data_quality(broken, [], periods)

        assert not result.valid
        assert result.errors == ["Months with no member months data: 2023-12"]

    def test_claimant_outside_periods_warns(self, two_years):
        periods = determine_experience_periods(two_years)
        stray = LargeClaimant(claimant_id="OLD", incurred_date=date(2020, 1, 1), total_amount=200000)
        result = validate_data_quality(two_years, [stray], periods)

        assert result.valid
        assert any("OLD" in w for w in result.warnings)


class TestLedger:
    """Test ordered ledger bookkeeping."""

    def _line(self, line_id, value=1.0):
        return LedgerLine(line_id=line_id.value, description="test", current=CoverageValues.uniform(value))

    def test_lines_kept_in_order(self):
        ledger = Ledger(UHCLine)
        ledger.append(UHCLine.A, self._line(UHCLine.A))
        ledger.append(UHCLine.B, self._line(UHCLine.B))

        assert [line.line_id for line in ledger] == ["A", "B"]
        assert not ledger.is_complete

    def test_out_of_order_raises(self):
        ledger = Ledger(UHCLine)
        with pytest.raises(ValueError):
            ledger.append(UHCLine.B, self._line(UHCLine.B))

    def test_lookup_before_compute_raises(self):
        ledger = Ledger(UHCLine)
        ledger.append(UHCLine.A, self._line(UHCLine.A))
        with pytest.raises(KeyError):
            ledger[UHCLine.C]

    def test_coverage_arithmetic(self):
        a = CoverageValues.combine(300.0, 100.0)
        b = CoverageValues.medical_only(50.0)

        assert (a + b).total == pytest.approx(450.0)
        assert (a - b).medical == pytest.approx(250.0)
        assert (a * 2).rx == pytest.approx(200.0)
        assert (a * CoverageValues.uniform(0.5)).total == pytest.approx(200.0)
        assert (a / 4).total == pytest.approx(100.0)

    def test_split_preserves_total(self):
        split = CoverageValues.split(500.0, 0.8)
        assert split.medical + split.rx == pytest.approx(split.total)
        assert split.medical == pytest.approx(400.0)

    def test_prior_none_differs_from_zero(self):
        line = LedgerLine(line_id="J", description="test", current=CoverageValues.uniform(0.0))
        assert line.prior is None
        assert ExperiencePeriods(
            current=Period(start=date(2023, 1, 1), end=date(2023, 12, 31), months=12)
        ).prior is None
