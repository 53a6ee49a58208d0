"""
Data types for the rectification module.

Provides the margin expansion policy, the rectification configuration and
the solved rectification returned by the geometry engine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

# Upper bound keeps expanded targets within a sane allocation size
MAX_EXPANSION_FACTOR = 10.0


class ExpansionMode(str, Enum):
    """How a detected quadrilateral is grown before rectification."""

    NONE = "none"
    SCALE_FROM_CENTROID = "scale_from_centroid"


class ExpansionPolicy(BaseModel):
    """
    Margin expansion applied to a candidate before measuring it.

    Attributes:
        mode: NONE uses the quad as given. SCALE_FROM_CENTROID moves every
            corner to centroid + (corner - centroid) * factor.
        factor: Scale factor in [1.0, MAX_EXPANSION_FACTOR], ignored when
            mode is NONE.

    Example:
        >>> policy = ExpansionPolicy.scale_from_centroid(1.5)
        >>> policy.is_enabled
        True
    """

    model_config = ConfigDict(frozen=True)

    mode: ExpansionMode = ExpansionMode.NONE
    factor: float = Field(default=1.0, ge=1.0, le=MAX_EXPANSION_FACTOR)

    @classmethod
    def none(cls) -> "ExpansionPolicy":
        return cls(mode=ExpansionMode.NONE)

    @classmethod
    def scale_from_centroid(cls, factor: float) -> "ExpansionPolicy":
        return cls(mode=ExpansionMode.SCALE_FROM_CENTROID, factor=factor)

    @property
    def is_enabled(self) -> bool:
        return self.mode == ExpansionMode.SCALE_FROM_CENTROID and self.factor != 1.0


InterpolationName = Literal["linear", "cubic", "nearest", "area", "lanczos"]


class RectificationConfig(BaseModel):
    """
    Configuration for region extraction.

    Attributes:
        interpolation: Resampling method for warpPerspective.
        border_value: Constant fill for samples outside the source (0 = black).
        min_dimension_px: Smallest accepted target width/height.
        expansion: Default margin expansion policy.
    """

    interpolation: InterpolationName = "linear"
    border_value: int = Field(default=0, ge=0, le=255)
    min_dimension_px: int = Field(default=1, ge=1)
    expansion: ExpansionPolicy = Field(default_factory=ExpansionPolicy)


@dataclass(frozen=True)
class Rectification:
    """
    Solved perspective rectification for one candidate.

    Attributes:
        transform: 3x3 projective matrix mapping source_points onto the
            target rectangle (0,0), (W,0), (W,H), (0,H).
        width: Target width W in pixels.
        height: Target height H in pixels.
        rotate_90: True when H > W; the rectified raster must be turned a
            quarter turn to reach the usual wide barcode orientation.
        source_points: The (possibly expanded) source corners, shape (4, 2).
    """

    transform: np.ndarray
    width: int
    height: int
    rotate_90: bool
    source_points: np.ndarray

    @property
    def output_size(self) -> tuple:
        """(width, height) of the raster after optional rotation."""
        if self.rotate_90:
            return (self.height, self.width)
        return (self.width, self.height)
