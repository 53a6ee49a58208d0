"""
Error taxonomy for the barcode pipeline.

Every failure carries a numeric code and a message. The code range identifies
the category so callers can branch without string matching:

    1xx  acquisition (reading/decoding the input image)
    2xx  detection (no candidates, detector failure)
    3xx  geometry (degenerate quadrilateral, unsolvable transform)
    4xx  symbol decoding
    5xx  enhancement
"""

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCode(IntEnum):
    """Numeric error codes grouped by category range."""

    FILE_UNREADABLE = 100
    INVALID_BASE64 = 101
    UNDECODABLE_IMAGE = 102
    TRANSPORT_FAILURE = 110
    HTTP_STATUS = 111

    NO_BARCODE_DETECTED = 200
    DETECTOR_FAILURE = 210

    DEGENERATE_GEOMETRY = 300
    UNSOLVABLE_TRANSFORM = 301
    INVALID_QUADRILATERAL = 302

    DECODER_FAILURE = 400
    INVALID_TEXT = 401
    NO_SYMBOL = 402

    ENHANCEMENT_FAILURE = 500


class BarcodeError(Exception):
    """
    Base class for all pipeline errors.

    Attributes:
        code: Numeric error code (see ErrorCode for ranges).
        message: Human-readable explanation.
    """

    default_code: ErrorCode = ErrorCode.DECODER_FAILURE

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = int(code if code is not None else self.default_code)
        self.message = message

    @property
    def category(self) -> str:
        """Category name derived from the code range."""
        return _CATEGORY_BY_HUNDREDS.get(self.code // 100, "unknown")

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, message={self.message!r})"


class AcquisitionError(BarcodeError):
    """Input image could not be read, fetched or decoded."""

    default_code = ErrorCode.UNDECODABLE_IMAGE


class NoBarcodeDetected(BarcodeError):
    """Detection produced zero candidates or malformed candidate geometry."""

    default_code = ErrorCode.NO_BARCODE_DETECTED


class DetectionError(BarcodeError):
    """The detection capability itself raised."""

    default_code = ErrorCode.DETECTOR_FAILURE


class GeometryError(BarcodeError):
    """Degenerate or invalid quadrilateral."""

    default_code = ErrorCode.DEGENERATE_GEOMETRY


class DecodeError(BarcodeError):
    """No symbol could be read, or the payload is not valid text."""

    default_code = ErrorCode.DECODER_FAILURE


class EnhancementError(BarcodeError):
    """An enhancement strategy failed on a candidate raster."""

    default_code = ErrorCode.ENHANCEMENT_FAILURE


_CATEGORY_BY_HUNDREDS = {
    1: "acquisition",
    2: "detection",
    3: "geometry",
    4: "decode",
    5: "enhancement",
}
