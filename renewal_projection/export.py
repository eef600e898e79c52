"""
Tabular export of renewal ledgers and CSV loading of monthly experience.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel

from .dispatcher import CalculationResult
from .errors import DataValidationError
from .ledger import LedgerLine
from .models import ClaimAmounts, EarnedPremium, MemberMonths, MonthlyClaimsRecord

logger = logging.getLogger(__name__)

CLAIMS_CSV_COLUMNS = [
    "month",
    "medical_member_months",
    "rx_member_months",
    "total_member_months",
    "medical_claims",
    "rx_claims",
    "total_claims",
]
OPTIONAL_CSV_COLUMNS = ["earned_premium"]

COVERAGES = ("medical", "rx", "total")


def _ledger_row(line: BaseModel) -> Dict[str, Any]:
    if not isinstance(line, LedgerLine):
        return line.model_dump()

    row: Dict[str, Any] = {"line_id": line.line_id, "description": line.description}
    for column in ("current", "prior"):
        values = getattr(line, column)
        for coverage in COVERAGES:
            row[f"{column}_{coverage}"] = getattr(values, coverage) if values is not None else None
    row["calculation"] = line.calculation
    row["notes"] = line.notes
    return row


def ledger_to_frame(lines: Sequence[BaseModel]) -> pd.DataFrame:
    """
    Convert ledger lines to a DataFrame with one row per line.

    Coverage ledgers expand to ``current_medical`` ... ``prior_total``
    columns; a line without a prior column has empty prior cells.
    """
    return pd.DataFrame([_ledger_row(line) for line in lines])


def result_to_frame(result: CalculationResult) -> pd.DataFrame:
    """
    Ledger of any dispatched result.

    BCBS plans are stacked with a leading ``plan_id`` column.
    """
    detail = result.detailed_results
    if detail.bcbs is not None:
        frames = []
        for plan in detail.bcbs.individual_plans:
            frame = ledger_to_frame(plan.calculations)
            frame.insert(0, "plan_id", plan.plan_id)
            frames.append(frame)
        return pd.concat(frames, ignore_index=True)

    native = detail.uhc or detail.cigna or detail.aetna
    return ledger_to_frame(native.calculations)


def write_ledger_csv(result: CalculationResult, path: Union[str, Path]) -> Path:
    path = Path(path)
    frame = result_to_frame(result)
    frame.to_csv(path, index=False)
    logger.info(f"Wrote {len(frame)} {result.carrier.value} ledger rows to {path}")
    return path


def _optional_float(value) -> Optional[float]:
    if pd.isna(value):
        return None
    return float(value)


def load_monthly_claims_csv(path: Union[str, Path]) -> List[MonthlyClaimsRecord]:
    """
    Load monthly experience from a CSV with fixed column names.

    Args:
        path: CSV with the columns in ``CLAIMS_CSV_COLUMNS`` and optionally
            ``earned_premium``. Blank cells are treated as missing.

    Returns:
        One MonthlyClaimsRecord per row

    Raises:
        DataValidationError: If required columns are missing or a row is invalid
    """
    df = pd.read_csv(path, dtype={"month": str})
    df.columns = df.columns.str.strip()
    logger.info(f"Loaded {len(df)} rows from {path}")

    missing = [column for column in CLAIMS_CSV_COLUMNS if column not in df.columns]
    if missing:
        raise DataValidationError([f"Missing column: {column}" for column in missing])

    records = []
    errors = []
    for index, row in df.iterrows():
        try:
            earned = None
            if "earned_premium" in df.columns and not pd.isna(row["earned_premium"]):
                earned = EarnedPremium(total=float(row["earned_premium"]))
            records.append(MonthlyClaimsRecord(
                month=str(row["month"]),
                member_months=MemberMonths(
                    medical=_optional_float(row["medical_member_months"]),
                    rx=_optional_float(row["rx_member_months"]),
                    total=_optional_float(row["total_member_months"]),
                ),
                incurred_claims=ClaimAmounts(
                    medical=_optional_float(row["medical_claims"]) or 0.0,
                    rx=_optional_float(row["rx_claims"]) or 0.0,
                    total=_optional_float(row["total_claims"]),
                ),
                earned_premium=earned,
            ))
        except ValueError as e:
            errors.append(f"Row {index + 2}: {e}")

    if errors:
        raise DataValidationError(errors)
    return records
