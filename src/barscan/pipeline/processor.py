"""
Main processor for the barcode pipeline.

Orchestrates the complete pass over one image:
1. Candidate detection (external capability)
2. Per candidate: perspective rectification
3. Per candidate: enhancement
4. Per candidate: symbol decoding (external capability)
5. Aggregation in detection order

Per-candidate errors either abort the pass (default) or are recorded
alongside the successes, depending on the configured failure policy.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

import cv2
import numpy as np

from barscan.common.errors import (
    BarcodeError,
    DecodeError,
    DetectionError,
    EnhancementError,
    ErrorCode,
    GeometryError,
    NoBarcodeDetected,
)
from barscan.common.types import CodeInfo, Quadrilateral
from barscan.enhancement.config import EnhancementConfig, parse_enhancement_config
from barscan.enhancement.strategies import enhance
from barscan.pipeline.capabilities import (
    CandidateDetector,
    DecodedPayload,
    OpenCVBarcodeEngine,
    SymbolDecoder,
)
from barscan.pipeline.config_loader import PipelineConfig, get_default_config, load_config
from barscan.pipeline.observers import DebugImageWriter
from barscan.pipeline.types import (
    CandidateFailure,
    CandidateObserver,
    FailurePolicy,
    ScanResult,
)
from barscan.rectification.extractor import RegionExtractor
from barscan.rectification.types import ExpansionPolicy

logger = logging.getLogger(__name__)


def partition_candidates(points: Optional[np.ndarray]) -> List[np.ndarray]:
    """
    Split a flat corner list into groups of four.

    Group i holds points [4i, 4i + 4), in source order.

    Args:
        points: Array-like reshapeable to (N, 2), N a positive multiple of 4.

    Returns:
        List of float32 arrays with shape (4, 2).

    Raises:
        NoBarcodeDetected: If points is None/empty or N is not a positive
            multiple of 4.
    """
    if points is None:
        raise NoBarcodeDetected("No barcode detected")

    flat = np.asarray(points, dtype=np.float32)
    if flat.size == 0 or flat.size % 2 != 0:
        raise NoBarcodeDetected(f"No barcode detected (malformed points, size={flat.size})")

    flat = flat.reshape(-1, 2)
    if len(flat) % 4 != 0:
        raise NoBarcodeDetected(
            f"No barcode detected ({len(flat)} points is not a multiple of 4)"
        )

    return [flat[i : i + 4].copy() for i in range(0, len(flat), 4)]


def payload_to_text(payload: DecodedPayload) -> Optional[str]:
    """
    Normalize a decoder payload to text.

    Returns:
        The decoded string, or None when the decoder found no symbol.

    Raises:
        DecodeError: If a bytes payload is not valid UTF-8.
    """
    if payload is None:
        return None
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(
                f"Decoded payload is not valid UTF-8: {e}", ErrorCode.INVALID_TEXT
            ) from e
    return payload or None


class BarcodePipeline:
    """
    Detect, rectify, enhance and decode every barcode in an image.

    Detection and decoding are injected capabilities; when either is omitted
    the OpenCV barcode engine fills the gap.

    Example:
        >>> pipeline = BarcodePipeline()
        >>> gray = cv2.imread("shelf.jpg", cv2.IMREAD_GRAYSCALE)
        >>> result = pipeline.process(gray)
        >>> for info in result.codes:
        ...     print(info.code)
    """

    def __init__(
        self,
        detector: Optional[CandidateDetector] = None,
        decoder: Optional[SymbolDecoder] = None,
        config: Optional[PipelineConfig] = None,
        config_path: Optional[Path] = None,
        observer: Optional[CandidateObserver] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            detector: Candidate detector. Defaults to the OpenCV engine.
            decoder: Symbol decoder. Defaults to the OpenCV engine.
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
            observer: Per-candidate tracing hook. If None and debug output
                is enabled in the config, a DebugImageWriter is used.
        """
        if config is not None:
            self.config = config
            logger.info("Using provided configuration")
        else:
            self.config = load_config(config_path) if config_path else get_default_config()
            logger.info("Loaded configuration from file")

        if detector is None or decoder is None:
            engine = OpenCVBarcodeEngine(
                sr_prototxt=self.config.detector.sr_prototxt,
                sr_model=self.config.detector.sr_model,
            )
            detector = detector if detector is not None else engine
            decoder = decoder if decoder is not None else engine

        self.detector = detector
        self.decoder = decoder
        self.extractor = RegionExtractor(self.config.rectification)

        if observer is None and self.config.debug.enabled:
            observer = DebugImageWriter(self.config.debug.output_dir)
        self.observer = observer

    def detect_candidates(self, image: np.ndarray) -> List[np.ndarray]:
        """
        Run detection and split its output into candidate corner groups.

        Raises:
            NoBarcodeDetected: If detection reports failure or malformed points.
            DetectionError: If the detector raises.
        """
        try:
            success, points = self.detector.detect(image)
        except BarcodeError:
            raise
        except Exception as e:
            raise DetectionError(f"Failed to detect barcodes: {e}") from e

        if not success:
            raise NoBarcodeDetected("No barcode detected")

        return partition_candidates(points)

    def process_candidate(
        self, image: np.ndarray, index: int, points: np.ndarray
    ) -> Optional[CodeInfo]:
        """
        Rectify, enhance and decode one candidate.

        Args:
            image: Grayscale source raster.
            index: Candidate position in detection order.
            points: Original corners, shape (4, 2).

        Returns:
            CodeInfo carrying the original corners, or None if the decoder
            found no symbol.

        Raises:
            GeometryError: If the candidate quadrilateral is degenerate.
            EnhancementError: If the enhancement strategy fails.
            DecodeError: If the decoder raises or returns invalid UTF-8.
        """
        try:
            quad = Quadrilateral.from_numpy(points)
        except ValueError as e:
            raise GeometryError(
                f"Invalid candidate quadrilateral: {e}", ErrorCode.INVALID_QUADRILATERAL
            ) from e

        try:
            rectified = self.extractor.extract(image, quad)
        except BarcodeError:
            raise
        except cv2.error as e:
            raise GeometryError(
                f"Failed to extract barcode: {e}", ErrorCode.UNSOLVABLE_TRANSFORM
            ) from e

        try:
            enhanced = enhance(rectified, self.config.enhancement)
        except (cv2.error, ValueError) as e:
            raise EnhancementError(f"Failed to enhance barcode: {e}") from e

        if self.observer is not None:
            # Tracing only: a failing observer never changes the candidate outcome
            try:
                self.observer(index, quad, rectified, enhanced)
            except Exception as e:
                logger.warning(f"Candidate {index}: observer failed: {e}")

        height, width = enhanced.shape[:2]
        destination = Quadrilateral.rectangle(width, height).to_numpy()

        try:
            payload = self.decoder.decode(enhanced, destination)
        except BarcodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Failed to decode barcode: {e}") from e

        text = payload_to_text(payload)
        if text is None:
            logger.info(f"Candidate {index}: no symbol decoded")
            return None

        logger.info(f"Candidate {index}: decoded '{text}'")
        return CodeInfo(code=text, category="", points=list(quad.points))

    def process(self, image: np.ndarray) -> ScanResult:
        """
        Execute the complete pass over one image.

        Args:
            image: Grayscale raster (H, W) uint8. A BGR image is converted
                to grayscale first.

        Returns:
            ScanResult with codes in detection order and the candidates
            that produced nothing.

        Raises:
            ValueError: If the image is None, empty or has an unsupported shape.
            NoBarcodeDetected: If detection yields no usable candidates.
            DetectionError: If the detector raises.
            BarcodeError: Under the ABORT policy, the first candidate error.
        """
        gray = _to_gray(image)

        logger.info("=" * 60)
        logger.info("Starting Barcode Pipeline")
        logger.info("=" * 60)

        candidates = self.detect_candidates(gray)
        logger.info(f"Detected {len(candidates)} candidate(s)")

        policy = self.config.execution.failure_policy
        outcomes = self._run_candidates(gray, candidates, policy)

        result = ScanResult(candidate_count=len(candidates))
        for index, (points, outcome) in enumerate(zip(candidates, outcomes)):
            if isinstance(outcome, CodeInfo):
                result.codes.append(outcome)
            elif isinstance(outcome, BarcodeError):
                logger.warning(f"Candidate {index} rejected: {outcome}")
                result.failures.append(CandidateFailure(index, points, outcome))
            else:
                result.failures.append(
                    CandidateFailure(
                        index,
                        points,
                        DecodeError("No symbol decoded", ErrorCode.NO_SYMBOL),
                    )
                )

        logger.info(
            f"Pipeline finished: {len(result.codes)} decoded, "
            f"{len(result.failures)} without result"
        )
        return result

    def _run_candidates(
        self,
        image: np.ndarray,
        candidates: List[np.ndarray],
        policy: FailurePolicy,
    ) -> List[Union[CodeInfo, BarcodeError, None]]:
        def run(item):
            index, points = item
            try:
                return self.process_candidate(image, index, points)
            except BarcodeError as e:
                if policy == FailurePolicy.ABORT:
                    logger.error(f"Candidate {index} failed, aborting pass: {e}")
                    raise
                return e

        items = list(enumerate(candidates))
        workers = min(self.config.execution.max_workers, len(items))
        if workers <= 1:
            return [run(item) for item in items]

        # map() yields in submission order, so the first raised error is
        # the first failing candidate in detection order
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(run, items))


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image is None or image.size == 0:
        raise ValueError("Invalid input image: image is None or empty")
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    raise ValueError(f"Unsupported image shape: {image.shape}")


def detect_and_decode(
    image: np.ndarray,
    enhancement: Optional[Union[EnhancementConfig, dict]] = None,
    expansion: Optional[ExpansionPolicy] = None,
    *,
    detector: Optional[CandidateDetector] = None,
    decoder: Optional[SymbolDecoder] = None,
    config: Optional[PipelineConfig] = None,
) -> List[CodeInfo]:
    """
    Convenience function for one-shot detection and decoding.

    Args:
        image: Grayscale (or BGR) image.
        enhancement: EnhancementConfig (or an equivalent mapping such as
            {"strategy": "global_contrast"}) overriding the configured strategy.
        expansion: ExpansionPolicy overriding the configured expansion.
        detector: Optional detector; OpenCV engine if None.
        decoder: Optional decoder; OpenCV engine if None.
        config: Optional base configuration; bundled default if None.

    Returns:
        Decoded symbols in detection order. Empty when candidates were
        found but none decoded.

    Raises:
        pydantic.ValidationError: If an enhancement mapping is invalid.
        NoBarcodeDetected: If detection yields no usable candidates.
        BarcodeError: Under the ABORT policy, the first candidate error.

    Example:
        >>> codes = detect_and_decode(gray, GlobalContrastConfig(), ExpansionPolicy.none())
        >>> [c.code for c in codes]
        ['4006381333931']
    """
    base = config if config is not None else get_default_config()
    if enhancement is not None:
        base = base.model_copy(
            update={"enhancement": parse_enhancement_config(enhancement)}
        )
    if expansion is not None:
        base = base.model_copy(
            update={
                "rectification": base.rectification.model_copy(
                    update={"expansion": expansion}
                )
            }
        )

    pipeline = BarcodePipeline(detector=detector, decoder=decoder, config=base)
    return pipeline.process(image).codes
