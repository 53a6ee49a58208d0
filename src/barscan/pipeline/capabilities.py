"""External detect/decode capabilities.

The pipeline never localizes or decodes symbols itself. It talks to two
injected collaborators:

- a *detector* returning candidate corner points for a whole image
- a *decoder* reading the symbol inside a rectified raster

Both are structural protocols, so tests can pass plain stub objects.
``OpenCVBarcodeEngine`` implements both on top of OpenCV's barcode module.

Example:
    >>> engine = OpenCVBarcodeEngine()
    >>> ok, points = engine.detect(gray)
    >>> text = engine.decode(crop, np.array([[0, 0], [w, 0], [w, h], [0, h]], np.float32))
"""

import logging
import threading
from typing import Any, Optional, Protocol, Tuple, Union, runtime_checkable

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DecodedPayload = Union[str, bytes, None]


@runtime_checkable
class CandidateDetector(Protocol):
    """Localizes barcode candidates in a full image."""

    def detect(self, image: np.ndarray) -> Tuple[bool, Optional[np.ndarray]]:
        """Return (success, flat corner points reshapeable to (N, 2))."""
        ...


@runtime_checkable
class SymbolDecoder(Protocol):
    """Reads a symbol from a rectified raster."""

    def decode(self, image: np.ndarray, points: np.ndarray) -> DecodedPayload:
        """Return the payload as text or UTF-8 bytes; empty/None if no symbol."""
        ...


class OpenCVBarcodeEngine:
    """Detector and decoder backed by ``cv2.barcode.BarcodeDetector``.

    Args:
        sr_prototxt: Optional super-resolution model definition.
        sr_model: Optional super-resolution model weights.

    Attributes:
        engine: BarcodeDetector instance of the calling thread (lazy-loaded).

    Note:
        The OpenCV detector is created on first use so constructing a
        pipeline stays cheap when stubs replace one of the capabilities.
        Every thread gets its own detector, since OpenCV does not promise
        that one BarcodeDetector can be used from several threads at once.
    """

    def __init__(self, sr_prototxt: Optional[str] = None, sr_model: Optional[str] = None):
        self.sr_prototxt = sr_prototxt
        self.sr_model = sr_model
        self._local = threading.local()  # Lazy-loaded, one detector per thread

    @property
    def engine(self):
        """Lazy-load the OpenCV barcode detector for the calling thread.

        Raises:
            RuntimeError: If this OpenCV build has no barcode module or
                the detector cannot be created.
        """
        detector = getattr(self._local, "detector", None)
        if detector is None:
            detector = self._create_detector()
            self._local.detector = detector
        return detector

    def _create_detector(self) -> Any:
        barcode_module = getattr(cv2, "barcode", None)
        if barcode_module is None:
            raise RuntimeError(
                "OpenCV barcode module not available. "
                "Install opencv-python >= 4.8"
            )
        try:
            if self.sr_prototxt and self.sr_model:
                detector = barcode_module.BarcodeDetector(self.sr_prototxt, self.sr_model)
            else:
                detector = barcode_module.BarcodeDetector()
        except cv2.error as e:
            logger.error(f"Failed to create BarcodeDetector: {e}")
            raise RuntimeError(f"BarcodeDetector initialization failed: {e}") from e

        logger.info(f"OpenCV BarcodeDetector loaded for thread {threading.get_ident()}")
        return detector

    def detect(self, image: np.ndarray) -> Tuple[bool, Optional[np.ndarray]]:
        ok, points = self.engine.detectMulti(image)
        if not ok or points is None:
            return False, None
        return True, np.asarray(points, dtype=np.float32).reshape(-1, 2)

    def decode(self, image: np.ndarray, points: np.ndarray) -> DecodedPayload:
        # decode() returns (text, straight_code)
        result = self.engine.decode(image, np.asarray(points, dtype=np.float32))
        text = result[0] if isinstance(result, tuple) else result
        return text or None
