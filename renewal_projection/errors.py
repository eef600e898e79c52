"""
Exception types raised by the renewal calculation engines.

All errors derive from ValueError so callers that already guard
calculations with ``except ValueError`` keep working.
"""

from typing import Optional


class RenewalCalculationError(ValueError):
    """Base class for every failure raised by a renewal calculation."""


class InsufficientDataError(RenewalCalculationError):
    """Raised when fewer months of experience exist than a calculation needs."""

    def __init__(self, available_months: int, required_months: int = 4):
        self.available_months = available_months
        self.required_months = required_months
        super().__init__(
            f"Insufficient data: {required_months} months of claims data required, "
            f"{available_months} available"
        )


class DataValidationError(RenewalCalculationError):
    """Raised when input data fails validation before any ledger line is built."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"Data validation failed: {', '.join(self.errors)}")


class MissingParameterError(RenewalCalculationError):
    """Raised when a required carrier parameter is absent or malformed."""


class PlanDataNotFoundError(RenewalCalculationError):
    """Raised when a BCBS plan parameter entry has no matching plan data."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan data not found for plan ID: {plan_id}")


class UnsupportedCarrierError(RenewalCalculationError):
    """Raised when the dispatcher receives a carrier tag it cannot route."""

    def __init__(self, carrier: str):
        self.carrier = carrier
        super().__init__(f"Unsupported carrier: {carrier}")


class CarrierCalculationError(RenewalCalculationError):
    """
    Engine failure re-raised at the dispatch boundary with carrier context.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, carrier: str, reason: str, original: Optional[BaseException] = None):
        self.carrier = carrier
        self.reason = reason
        self.original = original
        super().__init__(f"{carrier} calculation failed: {reason}")
