"""
Enhancement Strategies

Interchangeable image-to-image transforms that improve a rectified
candidate's chance of decoding. Every strategy is a pure function over a
single-channel uint8 raster: the input is never modified and the output has
the same (H, W) shape.

Strategies:
- none: passthrough copy
- global_contrast: histogram equalization
- adaptive_contrast: CLAHE + light Gaussian blur
- gradient_emphasis: Sobel gradient, Otsu threshold or blend with the base
- scale_rescale: upscale, inner strategy, downscale
- morphological_close: closing with an elongated element
- chain: several strategies in sequence

Flat (zero-variance) input is handled by every strategy and yields a flat
output: equalization maps a single-valued histogram onto one value, and the
gradient of a constant raster is zero everywhere.
"""

import logging
from typing import Callable, Dict

import cv2
import numpy as np

from barscan.enhancement.config import (
    AdaptiveContrastConfig,
    ChainConfig,
    GlobalContrastConfig,
    GradientEmphasisConfig,
    MorphologicalCloseConfig,
    PassthroughConfig,
    ScaleRescaleConfig,
)

logger = logging.getLogger(__name__)


def _check_raster(image: np.ndarray) -> None:
    if image is None or image.size == 0:
        raise ValueError("Invalid raster: image is None or empty")
    if image.ndim != 2 or image.dtype != np.uint8:
        raise ValueError(
            f"Expected single-channel uint8 raster, got shape {image.shape}, dtype {image.dtype}"
        )


def passthrough(image: np.ndarray, config: PassthroughConfig) -> np.ndarray:
    return image.copy()


def equalize_global(image: np.ndarray, config: GlobalContrastConfig) -> np.ndarray:
    """Histogram equalization; cheapest, suits flat but uniform lighting."""
    return cv2.equalizeHist(image)


def equalize_adaptive(image: np.ndarray, config: AdaptiveContrastConfig) -> np.ndarray:
    """
    CLAHE followed by an optional Gaussian blur.

    Tile-local equalization copes with uneven illumination; the blur
    suppresses the noise CLAHE amplifies in flat tiles.
    """
    clahe = cv2.createCLAHE(
        clipLimit=config.clip_limit,
        tileGridSize=(config.tile_size, config.tile_size),
    )
    enhanced = clahe.apply(image)
    if config.blur_kernel > 0:
        enhanced = cv2.GaussianBlur(enhanced, (config.blur_kernel, config.blur_kernel), 0)
    return enhanced


def emphasize_gradients(image: np.ndarray, config: GradientEmphasisConfig) -> np.ndarray:
    """
    Extract bar edges as gradient magnitude.

    1. Equalize the histogram
    2. Sobel derivative(s) in 16-bit signed precision
    3. Absolute value rescaled back to uint8
    4. Otsu binarization, or weighted blend with the equalized base

    Args:
        image: Single-channel uint8 raster.
        config: Direction, aperture and output mode.

    Returns:
        Gradient-emphasized raster, same shape as the input.
    """
    base = cv2.equalizeHist(image)

    grad_y = cv2.convertScaleAbs(
        cv2.Sobel(base, cv2.CV_16S, 0, 1, ksize=config.kernel_size)
    )
    if config.direction == "combined":
        grad_x = cv2.convertScaleAbs(
            cv2.Sobel(base, cv2.CV_16S, 1, 0, ksize=config.kernel_size)
        )
        gradient = cv2.addWeighted(grad_x, 0.5, grad_y, 0.5, 0)
    else:
        gradient = grad_y

    if config.output == "threshold":
        _, binary = cv2.threshold(gradient, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
        return binary

    return cv2.addWeighted(
        base, 1.0 - config.blend_weight, gradient, config.blend_weight, 0
    )


def close_bars(image: np.ndarray, config: MorphologicalCloseConfig) -> np.ndarray:
    """Bridge small gaps along the bars with a morphological closing."""
    # cv2 sizes are (width, height)
    if config.orientation == "vertical":
        ksize = (config.kernel_thickness, config.kernel_length)
    else:
        ksize = (config.kernel_length, config.kernel_thickness)
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, ksize)
    return cv2.morphologyEx(
        image, cv2.MORPH_CLOSE, kernel, iterations=config.iterations
    )


def scale_enhance_rescale(image: np.ndarray, config: ScaleRescaleConfig) -> np.ndarray:
    """
    Run the inner strategy at a higher resolution.

    Module edges of small or thin crops separate better after upsampling;
    the result is brought back to the input size with area interpolation.
    """
    h, w = image.shape
    interp = cv2.INTER_CUBIC if config.interpolation == "cubic" else cv2.INTER_LINEAR
    upscaled = cv2.resize(image, None, fx=config.factor, fy=config.factor, interpolation=interp)
    logger.debug(
        f"Upscaled {w}x{h} -> {upscaled.shape[1]}x{upscaled.shape[0]} "
        f"for inner strategy '{config.inner.strategy}'"
    )
    enhanced = enhance(upscaled, config.inner)
    return cv2.resize(enhanced, (w, h), interpolation=cv2.INTER_AREA)


def apply_chain(image: np.ndarray, config: ChainConfig) -> np.ndarray:
    result = image
    for step in config.steps:
        result = enhance(result, step)
    return result


_STRATEGIES: Dict[str, Callable[[np.ndarray, object], np.ndarray]] = {
    "none": passthrough,
    "global_contrast": equalize_global,
    "adaptive_contrast": equalize_adaptive,
    "gradient_emphasis": emphasize_gradients,
    "morphological_close": close_bars,
    "scale_rescale": scale_enhance_rescale,
    "chain": apply_chain,
}


def available_strategies() -> list:
    """Names accepted in the ``strategy`` field."""
    return list(_STRATEGIES)


def enhance(image: np.ndarray, config) -> np.ndarray:
    """
    Apply the configured enhancement strategy.

    Args:
        image: Single-channel uint8 raster. Never modified.
        config: One of the EnhancementConfig models.

    Returns:
        New uint8 raster with the same shape as the input.

    Raises:
        ValueError: If the raster is invalid or the strategy is unknown.
        cv2.error: If OpenCV rejects the parameters.

    Example:
        >>> from barscan.enhancement import AdaptiveContrastConfig
        >>> out = enhance(crop, AdaptiveContrastConfig(clip_limit=3.0))
    """
    _check_raster(image)
    try:
        strategy = _STRATEGIES[config.strategy]
    except KeyError as e:
        raise ValueError(
            f"Unknown enhancement strategy: {config.strategy}. "
            f"Must be one of {available_strategies()}"
        ) from e
    return strategy(image, config)
