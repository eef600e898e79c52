"""
Setup steps shared by the carrier engines.
"""

import logging
from typing import List, Tuple

from ..errors import DataValidationError
from ..models import ExperiencePeriods, RenewalInput
from ..periods import determine_experience_periods, validate_data_quality

logger = logging.getLogger(__name__)


def prepare_experience(renewal_input: RenewalInput) -> Tuple[ExperiencePeriods, List[str]]:
    """
    Resolve experience periods and run data-quality validation.

    Returns:
        Tuple of (periods, warnings)

    Raises:
        InsufficientDataError: If fewer than 4 months of data are supplied
        DataValidationError: If any month lacks member months
    """
    periods = determine_experience_periods(
        renewal_input.monthly_claims,
        renewal_input.effective_dates.renewal_start,
    )
    validation = validate_data_quality(
        renewal_input.monthly_claims,
        renewal_input.large_claimants,
        periods,
    )
    if not validation.valid:
        raise DataValidationError(validation.errors)
    return periods, list(validation.warnings)


def log_warnings(carrier: str, warnings: List[str]) -> None:
    for warning in warnings:
        logger.warning(f"{carrier}: {warning}")
