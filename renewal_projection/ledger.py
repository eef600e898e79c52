"""
Ordered calculation ledgers.

A ledger is built from a closed Enum of line identifiers. Lines must be
appended in enum order, and a line can only be looked up once it has
been computed, so every line reads only lines that come before it.
"""

from enum import Enum
from typing import Dict, Generic, Iterator, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict


class CoverageValues(BaseModel):
    """Medical, rx and total values for one column of a ledger line."""

    model_config = ConfigDict(frozen=True)

    medical: float
    rx: float
    total: float

    @classmethod
    def uniform(cls, value: float) -> "CoverageValues":
        """Same value in every coverage, used for factor lines."""
        return cls(medical=value, rx=value, total=value)

    @classmethod
    def medical_only(cls, value: float) -> "CoverageValues":
        return cls(medical=value, rx=0.0, total=value)

    @classmethod
    def split(cls, total: float, medical_share: float) -> "CoverageValues":
        """Split ``total`` into medical and rx by the medical share."""
        return cls(medical=total * medical_share, rx=total * (1 - medical_share), total=total)

    @classmethod
    def combine(cls, medical: float, rx: float) -> "CoverageValues":
        return cls(medical=medical, rx=rx, total=medical + rx)

    def __add__(self, other: "CoverageValues") -> "CoverageValues":
        return CoverageValues(
            medical=self.medical + other.medical,
            rx=self.rx + other.rx,
            total=self.total + other.total,
        )

    def __sub__(self, other: "CoverageValues") -> "CoverageValues":
        return CoverageValues(
            medical=self.medical - other.medical,
            rx=self.rx - other.rx,
            total=self.total - other.total,
        )

    def __mul__(self, other: Union[float, "CoverageValues"]) -> "CoverageValues":
        if isinstance(other, CoverageValues):
            return CoverageValues(
                medical=self.medical * other.medical,
                rx=self.rx * other.rx,
                total=self.total * other.total,
            )
        return CoverageValues(medical=self.medical * other, rx=self.rx * other, total=self.total * other)

    __rmul__ = __mul__

    def __truediv__(self, divisor: float) -> "CoverageValues":
        return CoverageValues(
            medical=self.medical / divisor,
            rx=self.rx / divisor,
            total=self.total / divisor,
        )


class LedgerLine(BaseModel):
    """
    One row of a coverage ledger.

    ``prior`` is None when the line has no prior-period concept, which is
    different from a prior value of zero.
    """

    model_config = ConfigDict(frozen=True)

    line_id: str
    description: str
    current: CoverageValues
    prior: Optional[CoverageValues] = None
    calculation: Optional[str] = None
    notes: Optional[str] = None


class DualColumnLine(BaseModel):
    """One row of a PMPM/annual ledger. Factor rows hold display strings."""

    model_config = ConfigDict(frozen=True)

    line_id: str
    description: str
    pmpm: Union[float, str]
    annual: Union[float, str]
    calculation: Optional[str] = None
    notes: Optional[str] = None


class PeriodPairLine(BaseModel):
    """One row of a current/renewal ledger with a headline result."""

    model_config = ConfigDict(frozen=True)

    line_id: str
    description: str
    formula: str
    current: Optional[float] = None
    renewal: Optional[float] = None
    result: float
    unit: str = "$"
    section: str = "total"


LineId = TypeVar("LineId", bound=Enum)
Line = TypeVar("Line", LedgerLine, DualColumnLine, PeriodPairLine)


class Ledger(Generic[LineId, Line]):
    """
    Lines keyed by a closed Enum and appended strictly in enum order.

    Example:
        >>> ledger = Ledger(UHCLine)
        >>> ledger.append(UHCLine.A, LedgerLine(...))
        >>> ledger[UHCLine.A].current.total
    """

    def __init__(self, line_ids: Type[LineId]):
        self._order: List[LineId] = list(line_ids)
        self._lines: Dict[LineId, Line] = {}

    def append(self, line_id: LineId, line: Line) -> Line:
        """
        Record the next line.

        Raises:
            ValueError: If ``line_id`` is not the next identifier in order, or
                the line's own id does not match
        """
        if len(self._lines) >= len(self._order):
            raise ValueError(f"Ledger is already complete; cannot add line {line_id.value}")
        expected = self._order[len(self._lines)]
        if line_id is not expected:
            raise ValueError(f"Line {line_id.value} added out of order; expected {expected.value}")
        if line.line_id != line_id.value:
            raise ValueError(f"Line id mismatch: {line.line_id} recorded under {line_id.value}")
        self._lines[line_id] = line
        return line

    def __getitem__(self, line_id: LineId) -> Line:
        try:
            return self._lines[line_id]
        except KeyError:
            raise KeyError(f"Line {line_id.value} has not been computed yet") from None

    def __iter__(self) -> Iterator[Line]:
        return iter(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def is_complete(self) -> bool:
        return len(self._lines) == len(self._order)

    def lines(self) -> List[Line]:
        return list(self._lines.values())
