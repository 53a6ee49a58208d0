"""Enhancement strategy configuration.

Each strategy has its own Pydantic model tagged by a ``strategy`` literal.
``EnhancementConfig`` is the discriminated union over all of them, so a
YAML mapping such as::

    strategy: adaptive_contrast
    clip_limit: 3.0
    tile_size: 4

parses straight into the right model. ``scale_rescale`` and ``chain`` nest
other strategies, which makes the union recursive.
"""

from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator


class PassthroughConfig(BaseModel):
    """No enhancement; the rectified raster is decoded as-is."""

    strategy: Literal["none"] = "none"


class GlobalContrastConfig(BaseModel):
    """Histogram equalization over the whole raster."""

    strategy: Literal["global_contrast"] = "global_contrast"


class AdaptiveContrastConfig(BaseModel):
    """Tile-local equalization (CLAHE) followed by a light Gaussian blur.

    Attributes:
        clip_limit: CLAHE contrast clip limit.
        tile_size: CLAHE tile grid size (tiles per side).
        blur_kernel: Odd Gaussian kernel size; 0 disables the blur.
    """

    strategy: Literal["adaptive_contrast"] = "adaptive_contrast"
    clip_limit: float = Field(default=2.0, gt=0.0)
    tile_size: int = Field(default=8, ge=1)
    blur_kernel: int = Field(default=3, ge=0)

    @field_validator("blur_kernel")
    @classmethod
    def _odd_or_zero(cls, v: int) -> int:
        if v != 0 and v % 2 == 0:
            raise ValueError(f"blur_kernel must be odd or 0, got {v}")
        return v


class GradientEmphasisConfig(BaseModel):
    """Directional gradient extraction on the equalized raster.

    Attributes:
        direction: "vertical" uses the y-derivative only, "combined" averages
            the absolute x and y derivatives.
        kernel_size: Sobel aperture (1, 3, 5 or 7).
        output: "threshold" binarizes the gradient with Otsu, "blend" mixes
            it back into the equalized base.
        blend_weight: Weight of the gradient image in "blend" mode.
    """

    strategy: Literal["gradient_emphasis"] = "gradient_emphasis"
    direction: Literal["vertical", "combined"] = "vertical"
    kernel_size: Literal[1, 3, 5, 7] = 3
    output: Literal["threshold", "blend"] = "threshold"
    blend_weight: float = Field(default=0.5, ge=0.0, le=1.0)


class MorphologicalCloseConfig(BaseModel):
    """Closing (dilate then erode) with an elongated rectangular element.

    Attributes:
        kernel_length: Element size along the bar direction.
        kernel_thickness: Element size across the bar direction.
        orientation: Expected bar orientation in the rectified raster.
        iterations: Number of closing passes.
    """

    strategy: Literal["morphological_close"] = "morphological_close"
    kernel_length: int = Field(default=7, ge=1)
    kernel_thickness: int = Field(default=1, ge=1)
    orientation: Literal["vertical", "horizontal"] = "vertical"
    iterations: int = Field(default=1, ge=1)


class ScaleRescaleConfig(BaseModel):
    """Upscale, run an inner strategy, downscale back to the input size.

    Attributes:
        factor: Upscale factor.
        interpolation: Upscale interpolation ("linear" or "cubic").
        inner: Strategy applied at the larger resolution.
    """

    strategy: Literal["scale_rescale"] = "scale_rescale"
    factor: float = Field(default=2.0, gt=1.0, le=8.0)
    interpolation: Literal["linear", "cubic"] = "cubic"
    inner: "EnhancementConfig" = Field(default_factory=AdaptiveContrastConfig)


class ChainConfig(BaseModel):
    """Apply several strategies in order."""

    strategy: Literal["chain"] = "chain"
    steps: List["EnhancementConfig"] = Field(..., min_length=1)


EnhancementConfig = Annotated[
    Union[
        PassthroughConfig,
        GlobalContrastConfig,
        AdaptiveContrastConfig,
        GradientEmphasisConfig,
        MorphologicalCloseConfig,
        ScaleRescaleConfig,
        ChainConfig,
    ],
    Field(discriminator="strategy"),
]

ScaleRescaleConfig.model_rebuild()
ChainConfig.model_rebuild()

_ENHANCEMENT_ADAPTER = TypeAdapter(EnhancementConfig)


def parse_enhancement_config(raw: Union[dict, BaseModel]) -> BaseModel:
    """Validate a mapping (or pass through a model) as an EnhancementConfig.

    Raises:
        pydantic.ValidationError: If the mapping names an unknown strategy
            or carries invalid parameters.
    """
    if isinstance(raw, BaseModel):
        return raw
    return _ENHANCEMENT_ADAPTER.validate_python(raw)
