"""
barscan: barcode candidate rectification, enhancement and decoding.

Detection and symbol decoding are delegated to injected capabilities
(OpenCV's barcode module by default). barscan owns what happens in between:
perspective rectification of every candidate, a configurable enhancement
strategy, and the per-candidate orchestration.

Example:
    >>> import cv2
    >>> from barscan import detect_and_decode
    >>> gray = cv2.imread("shelf.jpg", cv2.IMREAD_GRAYSCALE)
    >>> [info.code for info in detect_and_decode(gray)]
"""

from barscan.common import (
    AcquisitionError,
    BarcodeError,
    CodeInfo,
    DecodeError,
    DetectionError,
    EnhancementError,
    ErrorCode,
    GeometryError,
    NoBarcodeDetected,
    Point2D,
    Quadrilateral,
)
from barscan.enhancement import EnhancementConfig, enhance
from barscan.pipeline import (
    BarcodePipeline,
    FailurePolicy,
    PipelineConfig,
    ScanResult,
    detect_and_decode,
)
from barscan.rectification import ExpansionPolicy, extract_region

__version__ = "0.1.0"

__all__ = [
    "BarcodePipeline",
    "detect_and_decode",
    "PipelineConfig",
    "FailurePolicy",
    "ScanResult",
    "ExpansionPolicy",
    "EnhancementConfig",
    "extract_region",
    "enhance",
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
