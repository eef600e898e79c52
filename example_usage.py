"""
Example usage of the renewal projection engines.

This script demonstrates each carrier methodology on synthetic group
experience.
"""

from renewal_projection import RenewalDispatcher
from renewal_projection.export import result_to_frame
from renewal_projection.samples import sample_renewal_input


def example_1_uhc_two_period():
    """Example 1: UHC renewal on 24 months of experience."""
    print("=" * 80)
    print("Example 1: UHC Renewal (24 months, two periods)")
    print("=" * 80)

    dispatcher = RenewalDispatcher()
    result = dispatcher.dispatch(sample_renewal_input("UHC"))
    uhc = result.detailed_results.uhc

    print(f"\nCurrent period: {uhc.periods.current.start} to {uhc.periods.current.end}")
    print(f"Prior period:   {uhc.periods.prior.start} to {uhc.periods.prior.end}")
    print(f"\n{'Line':<6} {'Description':<55} {'Total':>12}")
    print("-" * 80)
    for line in uhc.calculations:
        print(f"{line.line_id:<6} {line.description[:55]:<55} {line.current.total:>12,.4f}")

    print(f"\n{'Renewal cost PMPM:':<30} ${result.projected_premium_pmpm:>10,.2f}")
    print(f"{'Current revenue PMPM:':<30} ${result.current_premium_pmpm:>10,.2f}")
    print(f"{'Calculated renewal action:':<30} {result.required_rate_change:>11.2%}")
    print()


def example_2_suggested_action():
    """Example 2: UHC with an underwriter's suggested action."""
    print("=" * 80)
    print("Example 2: UHC with Suggested Renewal Action of 8%")
    print("=" * 80)

    renewal_input = sample_renewal_input("UHC", carrier_parameters={
        "suggested_renewal_action": 0.08,
        "credibility_weights": {"experience": 0.60, "manual": 0.40},
    })
    result = RenewalDispatcher().dispatch(renewal_input)

    print(f"\nCalculated action: {result.required_rate_change:.2%}")
    print(f"Proposed action:   {result.proposed_rate_change:.2%}")
    summary = result.detailed_results.uhc.calculations[-1]
    print(f"Summary line {summary.line_id}: {summary.current.total:.2%} ({summary.calculation})")
    print()


def example_3_bcbs_multi_plan():
    """Example 3: BCBS composite across three plans."""
    print("=" * 80)
    print("Example 3: BCBS Multi-Plan Composite")
    print("=" * 80)

    result = RenewalDispatcher().dispatch(sample_renewal_input("BCBS", with_plans=True))
    bcbs = result.detailed_results.bcbs

    print(f"\n{'Plan':<36} {'Enrolled':>9} {'Weight':>8} {'Rate Action':>12}")
    print("-" * 80)
    for plan in bcbs.individual_plans:
        weight = bcbs.composite.enrollment_weights[plan.plan_id]
        print(f"{plan.plan_name:<36} {plan.enrollment:>9} {weight:>8.1%} {plan.final_metrics.rate_action:>12.2%}")

    print(f"\n{'Composite rate action:':<30} {bcbs.composite.composite_rate_action:.2%} ({bcbs.composite.status})")
    print(f"{'Rate range:':<30} {bcbs.rate_range.minimum:.2%} to {bcbs.rate_range.maximum:.2%}")
    for warning in result.warnings:
        print(f"  - {warning.message}")
    print()


def example_4_cigna_short_period():
    """Example 4: CIGNA on six months of data."""
    print("=" * 80)
    print("Example 4: CIGNA with 6 Months of Experience")
    print("=" * 80)

    result = RenewalDispatcher().dispatch(sample_renewal_input("CIGNA", months=6))
    cigna = result.detailed_results.cigna

    print(f"\n{'Line':<6} {'Description':<40} {'PMPM':>12} {'Annual':>16}")
    print("-" * 80)
    for line in cigna.calculations:
        pmpm = f"{line.pmpm:,.2f}" if isinstance(line.pmpm, float) else line.pmpm
        annual = f"{line.annual:,.0f}" if isinstance(line.annual, float) else line.annual
        print(f"{line.line_id:<6} {line.description[:40]:<40} {pmpm:>12} {annual:>16}")

    print(f"\nAnnualization applied: {cigna.data_quality.annualization_applied}")
    print()


def example_5_carrier_comparison():
    """Example 5: All four carriers on the same group."""
    print("=" * 80)
    print("Example 5: Carrier Comparison")
    print("=" * 80)

    comparison = RenewalDispatcher().compare(sample_renewal_input(None, with_plans=True))

    print(f"\n{'Carrier':<10} {'Projected PMPM':>16} {'Rate Change':>12}")
    print("-" * 40)
    for carrier, result in comparison.results.items():
        print(f"{carrier:<10} {result.projected_premium_pmpm:>16,.2f} {result.required_rate_change:>12.2%}")
    for carrier, reason in comparison.failures.items():
        print(f"{carrier:<10} failed: {reason}")
    print()


def example_6_ledger_export():
    """Example 6: AETNA ledger as a DataFrame."""
    print("=" * 80)
    print("Example 6: AETNA Ledger Export")
    print("=" * 80)

    result = RenewalDispatcher().dispatch(sample_renewal_input("AETNA"))
    frame = result_to_frame(result)
    print()
    print(frame[["line_id", "description", "current_total", "prior_total"]].to_string(index=False))
    print()


def main():
    """Run all examples."""
    print("\n")
    print("*" * 80)
    print("RENEWAL PROJECTION - EXAMPLE USAGE")
    print("*" * 80)
    print("\n")

    example_1_uhc_two_period()
    example_2_suggested_action()
    example_3_bcbs_multi_plan()
    example_4_cigna_short_period()
    example_5_carrier_comparison()
    example_6_ledger_export()

    print("=" * 80)
    print("All examples completed successfully!")
    print("=" * 80)


if __name__ == "__main__":
    main()
