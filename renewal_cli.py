#!/usr/bin/env python
"""
Command-line interface for renewal projections.

Runs a carrier renewal on a JSON input file, a monthly claims CSV, or the
built-in sample group.
"""

import argparse
import logging
import sys
from pathlib import Path

from renewal_projection import RenewalDispatcher, RenewalInput, determine_experience_periods
from renewal_projection.export import load_monthly_claims_csv, result_to_frame, write_ledger_csv
from renewal_projection.periods import (
    data_completeness,
    get_claims_for_period,
    get_member_months_for_period,
    pooled_claimant_audit,
    validate_data_quality,
)
from renewal_projection.samples import renewal_dates, sample_large_claimants, sample_renewal_input


def load_input(args) -> RenewalInput:
    """Build the renewal input from --input, --claims-csv or the sample group."""
    if args.input:
        return RenewalInput.model_validate_json(Path(args.input).read_text())

    renewal_input = sample_renewal_input(carrier=None, months=args.months, with_plans=args.plans)
    if args.claims_csv:
        records = load_monthly_claims_csv(args.claims_csv)
        renewal_input = renewal_input.model_copy(update={
            "case_id": Path(args.claims_csv).stem,
            "monthly_claims": records,
            "large_claimants": sample_large_claimants(records) if args.sample_claimants else [],
            "effective_dates": renewal_dates(records),
        })
    return renewal_input


def print_result(result) -> None:
    print("\n" + "=" * 60)
    print(f"{result.carrier.value} RENEWAL PROJECTION")
    print("=" * 60)
    print(f"Current Premium PMPM:   ${result.current_premium_pmpm:,.2f}")
    print(f"Projected Premium PMPM: ${result.projected_premium_pmpm:,.2f}")
    print(f"Required Rate Change:   {result.required_rate_change:.2%}")
    print(f"Proposed Rate Change:   {result.proposed_rate_change:.2%}")
    print()
    print("Calculation Steps:")
    for step in result.calculation_steps:
        value = f"{step.value:,.4f}" if isinstance(step.value, float) else step.value
        print(f"  {step.label:<34} {value}")
    if result.warnings:
        print()
        print("Warnings:")
        for warning in result.warnings:
            print(f"  - {warning.message}")
    print("=" * 60)
    print()


def calculate(args):
    """Run one carrier."""
    try:
        result = RenewalDispatcher().dispatch(load_input(args), args.carrier)
    except ValueError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print_result(result)


def compare(args):
    """Run several carriers side by side."""
    try:
        comparison = RenewalDispatcher().compare(load_input(args), args.carriers)
    except ValueError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 72)
    print("CARRIER COMPARISON")
    print("=" * 72)
    print(f"{'Carrier':<8} {'Current PMPM':>14} {'Projected PMPM':>16} {'Required':>10} {'Proposed':>10}")
    print("-" * 72)
    for carrier, result in comparison.results.items():
        print(
            f"{carrier:<8} {result.current_premium_pmpm:>14,.2f} {result.projected_premium_pmpm:>16,.2f} "
            f"{result.required_rate_change:>10.2%} {result.proposed_rate_change:>10.2%}"
        )
    for carrier, reason in comparison.failures.items():
        print(f"{carrier:<8} FAILED: {reason}")
    print("=" * 72)
    print()

    if comparison.failures and not comparison.results:
        sys.exit(1)


def periods(args):
    """Show resolved experience periods and data-quality findings."""
    try:
        renewal_input = load_input(args)
        resolved = determine_experience_periods(
            renewal_input.monthly_claims,
            renewal_input.effective_dates.renewal_start,
        )
    except ValueError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)

    records = renewal_input.monthly_claims
    validation = validate_data_quality(records, renewal_input.large_claimants, resolved)

    print("\n" + "=" * 60)
    print(f"EXPERIENCE PERIODS: {renewal_input.case_id}")
    print("=" * 60)
    for period in (resolved.current, resolved.prior):
        if period is None:
            print("Prior:   none (fewer than 24 months)")
            continue
        mm = get_member_months_for_period(records, period).total
        claims = get_claims_for_period(records, period).total
        print(f"{period.label + ':':<8} {period.start} to {period.end} ({period.months} months)")
        print(f"         member months {mm:,.0f}, claims ${claims:,.0f}, PMPM ${claims / mm if mm else 0:,.2f}")
    print(f"Data completeness: {data_completeness(resolved):.0%}")

    rows = pooled_claimant_audit(renewal_input.large_claimants, resolved, args.threshold)
    if rows:
        print()
        print(f"Large claimants (pooling at ${args.threshold:,.0f}):")
        for row in rows:
            print(
                f"  {row.claimant_id:<10} {row.incurred_date} {row.period_label or 'outside':<8} "
                f"${row.total_amount:>12,.0f}  excess ${row.excess_amount:>12,.0f}"
            )

    for error in validation.errors:
        print(f"ERROR: {error}")
    for warning in validation.warnings:
        print(f"WARNING: {warning}")
    print("=" * 60)
    print()

    if not validation.valid:
        sys.exit(1)


def ledger(args):
    """Print or export the full line ledger."""
    try:
        result = RenewalDispatcher().dispatch(load_input(args), args.carrier)
    except ValueError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        path = write_ledger_csv(result, args.output)
        print(f"Ledger written to {path}")
    else:
        print(result_to_frame(result).to_string(index=False))


def add_input_arguments(parser):
    parser.add_argument('--input', help='RenewalInput JSON file')
    parser.add_argument('--claims-csv', help='Monthly claims CSV (used with the sample group settings)')
    parser.add_argument('--months', type=int, default=24, help='Months of sample data (default: 24)')
    parser.add_argument('--plans', action='store_true', help='Attach the sample three-plan BCBS book')
    parser.add_argument('--sample-claimants', action='store_true',
                        help='Add sample large claimants to CSV data')


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Health Insurance Renewal Projection CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # UHC renewal on 24 months of sample data
  %(prog)s calculate UHC

  # CIGNA renewal on a short sample series
  %(prog)s calculate CIGNA --months 6

  # All carriers side by side
  %(prog)s compare --plans

  # Experience periods for a claims file
  %(prog)s periods --claims-csv claims.csv

  # Export the AETNA ledger
  %(prog)s ledger AETNA --output aetna_ledger.csv
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    calculate_parser = subparsers.add_parser('calculate', help='Run one carrier renewal')
    calculate_parser.add_argument('carrier', help='UHC, BCBS, CIGNA or AETNA')
    add_input_arguments(calculate_parser)
    calculate_parser.set_defaults(func=calculate)

    compare_parser = subparsers.add_parser('compare', help='Compare carriers on the same group')
    compare_parser.add_argument('--carriers', nargs='+', help='Carriers to run (default: all)')
    add_input_arguments(compare_parser)
    compare_parser.set_defaults(func=compare)

    periods_parser = subparsers.add_parser('periods', help='Show experience periods and data quality')
    periods_parser.add_argument('--threshold', type=float, default=125000,
                                help='Pooling threshold for the claimant audit (default: 125000)')
    add_input_arguments(periods_parser)
    periods_parser.set_defaults(func=periods)

    ledger_parser = subparsers.add_parser('ledger', help='Print or export the line ledger')
    ledger_parser.add_argument('carrier', help='UHC, BCBS, CIGNA or AETNA')
    ledger_parser.add_argument('--output', help='Write the ledger to this CSV file')
    add_input_arguments(ledger_parser)
    ledger_parser.set_defaults(func=ledger)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == '__main__':
    main()
