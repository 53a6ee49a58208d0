"""
Data types for the pipeline orchestrator.

Provides the failure policy, per-candidate failure records, the aggregated
scan result and the observer protocol used for tracing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Protocol

import numpy as np

from barscan.common.errors import BarcodeError
from barscan.common.types import CodeInfo, Quadrilateral


class FailurePolicy(str, Enum):
    """What a raised per-candidate error does to the whole pass."""

    ABORT = "abort"  # First error (in candidate order) propagates
    ISOLATE = "isolate"  # Error recorded, other candidates still processed


@dataclass
class CandidateFailure:
    """
    A candidate that produced no CodeInfo.

    Attributes:
        index: Position of the candidate in detection order.
        points: Original source-space corners, shape (4, 2).
        error: Why the candidate failed.
    """

    index: int
    points: np.ndarray
    error: BarcodeError

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "points": [{"x": float(x), "y": float(y)} for x, y in self.points],
            "error": self.error.to_dict(),
        }


@dataclass
class ScanResult:
    """
    Output from one detection/decode pass.

    Attributes:
        codes: Decoded symbols in detection order.
        failures: Candidates that produced no symbol, in detection order.
        candidate_count: Number of candidates returned by detection.
    """

    codes: List[CodeInfo] = field(default_factory=list)
    failures: List[CandidateFailure] = field(default_factory=list)
    candidate_count: int = 0

    def is_empty(self) -> bool:
        """True when detection succeeded but nothing decoded."""
        return not self.codes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "codes": [c.to_dict() for c in self.codes],
            "failures": [f.to_dict() for f in self.failures],
            "candidate_count": self.candidate_count,
        }


class CandidateObserver(Protocol):
    """Tracing hook called once per candidate after enhancement."""

    def __call__(
        self,
        index: int,
        quad: Quadrilateral,
        rectified: np.ndarray,
        enhanced: np.ndarray,
    ) -> None: ...
