"""
Health Insurance Renewal Projection

Projects group health insurance renewal premiums from historical claims
experience using the UHC, BCBS, CIGNA and AETNA rating methodologies.
"""

from .models import (
    Carrier,
    LargeClaimant,
    ManualRates,
    MonthlyClaimsRecord,
    RenewalInput,
)
from .errors import (
    CarrierCalculationError,
    DataValidationError,
    InsufficientDataError,
    MissingParameterError,
    PlanDataNotFoundError,
    RenewalCalculationError,
    UnsupportedCarrierError,
)
from .periods import determine_experience_periods
from .dispatcher import CalculationResult, RenewalDispatcher

__version__ = "1.0.0"
__all__ = [
    "Carrier",
    "LargeClaimant",
    "ManualRates",
    "MonthlyClaimsRecord",
    "RenewalInput",
    "CarrierCalculationError",
    "DataValidationError",
    "InsufficientDataError",
    "MissingParameterError",
    "PlanDataNotFoundError",
    "RenewalCalculationError",
    "UnsupportedCarrierError",
    "determine_experience_periods",
    "CalculationResult",
    "RenewalDispatcher",
]
