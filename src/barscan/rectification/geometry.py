"""
Geometry Engine

Derives perspective rectifications from four-point correspondences:
target rectangle dimensions, centroid-based margin expansion and the
quarter-turn disambiguation for tall candidates.
"""

import logging
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from barscan.common.errors import ErrorCode, GeometryError
from barscan.common.types import Quadrilateral
from barscan.rectification.types import ExpansionMode, ExpansionPolicy, Rectification

logger = logging.getLogger(__name__)

# Polygons with a smaller absolute area are treated as zero-area.
MIN_AREA_EPS = 1e-6
# Smallest/largest singular value ratio below which a homography is singular.
MIN_SINGULAR_RATIO = 1e-12

QuadLike = Union[Quadrilateral, np.ndarray, list]


def _is_singular(transform: np.ndarray) -> bool:
    singular_values = np.linalg.svd(transform, compute_uv=False)
    if singular_values[0] == 0:
        return True
    return singular_values[-1] / singular_values[0] < MIN_SINGULAR_RATIO


def _as_points(quad: QuadLike) -> np.ndarray:
    if isinstance(quad, Quadrilateral):
        return quad.to_numpy(dtype=np.float32)
    pts = np.asarray(quad, dtype=np.float32)
    if pts.size != 8:
        raise GeometryError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}",
            ErrorCode.INVALID_QUADRILATERAL,
        )
    return pts.reshape(4, 2)


def expand_quadrilateral(points: np.ndarray, factor: float) -> np.ndarray:
    """
    Scale the four corners away from their centroid.

    Each corner becomes centroid + (corner - centroid) * factor, where the
    centroid is the mean of the four corners. The centroid is therefore
    unchanged by the expansion.

    Args:
        points: Corners with shape (4, 2).
        factor: Scale factor; 1.0 returns a copy of the input.

    Returns:
        Expanded corners as float32 array of shape (4, 2).

    Example:
        >>> pts = np.array([[0, 0], [10, 0], [10, 4], [0, 4]], dtype=np.float32)
        >>> expand_quadrilateral(pts, 1.5)[0]
        array([-2.5, -1. ], dtype=float32)
    """
    pts = np.asarray(points, dtype=np.float64).reshape(4, 2)
    center = pts.mean(axis=0)
    expanded = center + (pts - center) * float(factor)
    return expanded.astype(np.float32)


def apply_expansion(points: np.ndarray, expansion: Optional[ExpansionPolicy]) -> np.ndarray:
    """Apply an expansion policy; None behaves like ExpansionPolicy.none()."""
    if expansion is None or expansion.mode == ExpansionMode.NONE:
        return np.asarray(points, dtype=np.float32).reshape(4, 2).copy()
    return expand_quadrilateral(points, expansion.factor)


def measure_edges(points: np.ndarray) -> Tuple[float, float, float, float]:
    """
    Euclidean lengths of the four edges.

    Returns:
        (top, bottom, left, right) for corners ordered TL, TR, BR, BL.
    """
    tl, tr, br, bl = np.asarray(points, dtype=np.float64).reshape(4, 2)
    top = float(np.hypot(*(tr - tl)))
    bottom = float(np.hypot(*(br - bl)))
    left = float(np.hypot(*(bl - tl)))
    right = float(np.hypot(*(br - tr)))
    return top, bottom, left, right


def calculate_target_dimensions(points: np.ndarray) -> Tuple[int, int]:
    """
    Target rectangle size for a quadrilateral.

    Width is the longer of the top and bottom edges, height the longer of
    the left and right edges. Perspective foreshortening shortens one edge
    of each parallel pair, so the longer one is the better estimate.
    Values are truncated to whole pixels.

    Returns:
        (width, height) in pixels.
    """
    top, bottom, left, right = measure_edges(points)
    return int(max(top, bottom)), int(max(left, right))


def quadrilateral_area(points: np.ndarray) -> float:
    """Absolute polygon area via the shoelace formula."""
    pts = np.asarray(points, dtype=np.float64).reshape(4, 2)
    x, y = pts[:, 0], pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def derive_rectification(
    quad: QuadLike,
    expansion: Optional[ExpansionPolicy] = None,
    min_dimension: int = 1,
) -> Rectification:
    """
    Solve the perspective rectification of a candidate quadrilateral.

    Args:
        quad: Candidate corners (TL, TR, BR, BL) in source coordinates.
        expansion: Margin expansion applied before measuring. None = no expansion.
        min_dimension: Smallest accepted target width/height in pixels.

    Returns:
        Rectification with the projective transform, target size and the
        rotate_90 flag (set when the target is taller than wide).

    Raises:
        GeometryError: If the quad has zero area, the target rectangle is
            smaller than min_dimension, or the transform cannot be solved.

    Example:
        >>> quad = Quadrilateral.from_points([(10, 10), (210, 20), (205, 80), (5, 70)])
        >>> rect = derive_rectification(quad, ExpansionPolicy.scale_from_centroid(1.5))
        >>> rect.rotate_90
        False
    """
    src = apply_expansion(_as_points(quad), expansion)

    area = quadrilateral_area(src)
    if area < MIN_AREA_EPS:
        raise GeometryError(
            f"Quadrilateral has zero area: {src.tolist()}",
            ErrorCode.DEGENERATE_GEOMETRY,
        )

    width, height = calculate_target_dimensions(src)
    if width < min_dimension or height < min_dimension:
        raise GeometryError(
            f"Target dimensions too small: width={width}, height={height} "
            f"(minimum {min_dimension}px)",
            ErrorCode.DEGENERATE_GEOMETRY,
        )

    dst = np.array(
        [
            [0, 0],  # Top-Left
            [width, 0],  # Top-Right
            [width, height],  # Bottom-Right
            [0, height],  # Bottom-Left
        ],
        dtype=np.float32,
    )

    try:
        transform = cv2.getPerspectiveTransform(src, dst)
    except cv2.error as e:
        raise GeometryError(
            f"Perspective transform could not be solved: {e}",
            ErrorCode.UNSOLVABLE_TRANSFORM,
        ) from e

    # A singular LU solve leaves an all-zero matrix instead of raising
    if (
        transform is None
        or not np.all(np.isfinite(transform))
        or _is_singular(transform)
    ):
        raise GeometryError(
            "Perspective transform is singular or not finite",
            ErrorCode.UNSOLVABLE_TRANSFORM,
        )

    rotate_90 = height > width
    logger.debug(
        f"Rectification target {width}x{height}, area={area:.1f}, rotate_90={rotate_90}"
    )

    return Rectification(
        transform=transform,
        width=width,
        height=height,
        rotate_90=rotate_90,
        source_points=src,
    )
