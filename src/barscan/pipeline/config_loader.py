"""Configuration loader with Pydantic validation for the barcode pipeline.

This module provides type-safe configuration loading from YAML files using
Pydantic models for validation and default values, plus named presets that
reproduce the historical pipeline variants.
"""

import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from barscan.enhancement.config import (
    ChainConfig,
    EnhancementConfig,
    GlobalContrastConfig,
    GradientEmphasisConfig,
    MorphologicalCloseConfig,
    PassthroughConfig,
)
from barscan.pipeline.types import FailurePolicy
from barscan.rectification.types import ExpansionPolicy, RectificationConfig

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


class ExecutionConfig(BaseModel):
    """Candidate processing options.

    Attributes:
        failure_policy: "abort" propagates the first candidate error,
            "isolate" records it and keeps going.
        max_workers: Worker threads for candidate processing (1 = sequential).
    """

    failure_policy: FailurePolicy = FailurePolicy.ABORT
    max_workers: int = Field(default=1, ge=1, le=64)


class DetectorConfig(BaseModel):
    """OpenCV barcode detector options.

    Attributes:
        sr_prototxt: Optional super-resolution model definition path.
        sr_model: Optional super-resolution model weights path.
    """

    sr_prototxt: Optional[str] = None
    sr_model: Optional[str] = None

    @model_validator(mode="after")
    def _paired_models(self) -> "DetectorConfig":
        if bool(self.sr_prototxt) != bool(self.sr_model):
            raise ValueError("sr_prototxt and sr_model must be set together")
        return self


class DebugConfig(BaseModel):
    """Debug output.

    Attributes:
        enabled: Save rectified/enhanced rasters of every candidate.
        output_dir: Directory for the saved rasters.
    """

    enabled: bool = False
    output_dir: str = "artifacts/barcode/debug"


class PipelineConfig(BaseModel):
    """Complete pipeline configuration.

    Attributes:
        rectification: Region extraction options and default expansion
        enhancement: The enhancement strategy applied to every candidate
        execution: Failure policy and concurrency
        detector: OpenCV detector options
        debug: Debug raster persistence
    """

    rectification: RectificationConfig = Field(default_factory=RectificationConfig)
    enhancement: EnhancementConfig = Field(default_factory=GlobalContrastConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)


def load_config(config_path: Path) -> PipelineConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated PipelineConfig object with all settings

    Raises:
        FileNotFoundError: If config file does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If configuration validation fails

    Example:
        >>> config = load_config(Path("src/barscan/pipeline/config.yaml"))
        >>> print(config.enhancement.strategy)
        global_contrast
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.debug(f"Loading pipeline config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_dict = yaml.safe_load(f) or {}

    config = PipelineConfig(**config_dict)
    logger.info(
        f"Loaded pipeline configuration: enhancement={config.enhancement.strategy}, "
        f"expansion={config.rectification.expansion.mode.value}, "
        f"failure_policy={config.execution.failure_policy.value}"
    )
    return config


def get_default_config() -> PipelineConfig:
    """Get default configuration from bundled config.yaml file.

    Returns:
        PipelineConfig loaded from the bundled config.yaml, or the
        hard-coded model defaults if the file is missing.
    """
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.warning(f"{DEFAULT_CONFIG_PATH} missing, using built-in defaults")
    return PipelineConfig()


def _preset_expand_equalize() -> PipelineConfig:
    return PipelineConfig(
        rectification=RectificationConfig(
            expansion=ExpansionPolicy.scale_from_centroid(1.5)
        ),
        enhancement=GlobalContrastConfig(),
    )


def _preset_rotate_only() -> PipelineConfig:
    return PipelineConfig(
        rectification=RectificationConfig(expansion=ExpansionPolicy.none()),
        enhancement=PassthroughConfig(),
    )


def _preset_vertical_gradient() -> PipelineConfig:
    return PipelineConfig(
        rectification=RectificationConfig(expansion=ExpansionPolicy.none()),
        enhancement=GradientEmphasisConfig(direction="vertical", output="threshold"),
    )


def _preset_gradient_close() -> PipelineConfig:
    return PipelineConfig(
        rectification=RectificationConfig(expansion=ExpansionPolicy.none()),
        enhancement=ChainConfig(
            steps=[
                GradientEmphasisConfig(direction="vertical", output="threshold"),
                MorphologicalCloseConfig(kernel_length=3, kernel_thickness=3),
            ]
        ),
    )


PRESETS = {
    "expand_equalize": _preset_expand_equalize,
    "rotate_only": _preset_rotate_only,
    "vertical_gradient": _preset_vertical_gradient,
    "gradient_close": _preset_gradient_close,
}


def list_presets() -> List[str]:
    return list(PRESETS)


def get_preset_config(name: str) -> PipelineConfig:
    """Build one of the named preset configurations.

    Raises:
        ValueError: If the preset name is unknown.
    """
    try:
        return PRESETS[name]()
    except KeyError as e:
        raise ValueError(
            f"Unknown preset: {name}. Must be one of {list_presets()}"
        ) from e
