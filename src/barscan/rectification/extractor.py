"""
Region Extraction

Crops a candidate quadrilateral out of a source raster and rectifies it
to an upright rectangle, turning tall results a quarter turn so every
downstream stage sees the usual wide barcode orientation.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from barscan.rectification.geometry import QuadLike, derive_rectification
from barscan.rectification.types import ExpansionPolicy, RectificationConfig

logger = logging.getLogger(__name__)

INTERPOLATION_FLAGS = {
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "nearest": cv2.INTER_NEAREST,
    "area": cv2.INTER_AREA,
    "lanczos": cv2.INTER_LANCZOS4,
}


def rotate_upright(image: np.ndarray) -> np.ndarray:
    """Quarter turn clockwise: transpose, then flip around the vertical axis."""
    return cv2.flip(cv2.transpose(image), 1)


def extract_region(
    source: np.ndarray,
    quad: QuadLike,
    expansion: Optional[ExpansionPolicy] = None,
    interpolation: str = "linear",
    border_value: int = 0,
    min_dimension: int = 1,
) -> np.ndarray:
    """
    Extract and rectify a quadrilateral region to an upright rectangle.

    Args:
        source: Grayscale source raster (H, W), uint8. Never modified.
        quad: 4 corner points (TL, TR, BR, BL) in source coordinates.
        expansion: Margin expansion applied before measuring. None = as given.
        interpolation: Resampling method name (see INTERPOLATION_FLAGS).
        border_value: Fill value for samples falling outside the source.
        min_dimension: Smallest accepted target width/height in pixels.

    Returns:
        New raster of the target size; transposed and flipped when the
        target rectangle is taller than wide.

    Raises:
        ValueError: If the source raster is None, empty or not 2D, or the
            interpolation name is unknown.
        GeometryError: If the quadrilateral is degenerate.

    Example:
        >>> gray = cv2.imread("shelf.jpg", cv2.IMREAD_GRAYSCALE)
        >>> corners = [[120, 180], [450, 165], [470, 250], [100, 270]]
        >>> crop = extract_region(gray, corners, ExpansionPolicy.scale_from_centroid(1.5))
    """
    if source is None or source.size == 0:
        raise ValueError("Invalid source raster: image is None or empty")
    if source.ndim != 2:
        raise ValueError(f"Expected a single-channel raster (H, W), got shape {source.shape}")
    if interpolation not in INTERPOLATION_FLAGS:
        raise ValueError(
            f"Invalid interpolation: {interpolation}. "
            f"Must be one of {list(INTERPOLATION_FLAGS)}"
        )

    rect = derive_rectification(quad, expansion, min_dimension=min_dimension)

    rectified = cv2.warpPerspective(
        source,
        rect.transform,
        (rect.width, rect.height),
        flags=INTERPOLATION_FLAGS[interpolation],
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border_value,
    )

    if rect.rotate_90:
        rectified = rotate_upright(rectified)

    logger.debug(
        f"Extracted region {rectified.shape[1]}x{rectified.shape[0]} "
        f"(rotated={rect.rotate_90})"
    )

    return rectified


class RegionExtractor:
    """
    Region extraction bound to a RectificationConfig.

    Example:
        >>> extractor = RegionExtractor(RectificationConfig(interpolation="cubic"))
        >>> crop = extractor.extract(gray, corners)
    """

    def __init__(self, config: Optional[RectificationConfig] = None):
        self.config = config if config is not None else RectificationConfig()

    def extract(
        self,
        source: np.ndarray,
        quad: QuadLike,
        expansion: Optional[ExpansionPolicy] = None,
    ) -> np.ndarray:
        """Extract using the configured expansion unless one is given."""
        return extract_region(
            source,
            quad,
            expansion=expansion if expansion is not None else self.config.expansion,
            interpolation=self.config.interpolation,
            border_value=self.config.border_value,
            min_dimension=self.config.min_dimension_px,
        )
