"""
Common types and errors shared across the barcode pipeline.
"""

from barscan.common.errors import (
    AcquisitionError,
    BarcodeError,
    DecodeError,
    DetectionError,
    EnhancementError,
    ErrorCode,
    GeometryError,
    NoBarcodeDetected,
)
from barscan.common.types import CodeInfo, Point2D, Quadrilateral

__all__ = [
    "Point2D",
    "Quadrilateral",
    "CodeInfo",
    "ErrorCode",
    "BarcodeError",
    "AcquisitionError",
    "NoBarcodeDetected",
    "DetectionError",
    "GeometryError",
    "DecodeError",
    "EnhancementError",
]
