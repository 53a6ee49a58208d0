"""
Enhancement strategy set.

Interchangeable transforms that improve a rectified candidate's
decodability, selected by a tagged configuration value.

Example:
    >>> from barscan.enhancement import GradientEmphasisConfig, enhance
    >>> out = enhance(crop, GradientEmphasisConfig(direction="combined"))
"""

from barscan.enhancement.config import (
    AdaptiveContrastConfig,
    ChainConfig,
    EnhancementConfig,
    GlobalContrastConfig,
    GradientEmphasisConfig,
    MorphologicalCloseConfig,
    PassthroughConfig,
    ScaleRescaleConfig,
    parse_enhancement_config,
)
from barscan.enhancement.strategies import available_strategies, enhance

__all__ = [
    "EnhancementConfig",
    "PassthroughConfig",
    "GlobalContrastConfig",
    "AdaptiveContrastConfig",
    "GradientEmphasisConfig",
    "MorphologicalCloseConfig",
    "ScaleRescaleConfig",
    "ChainConfig",
    "parse_enhancement_config",
    "enhance",
    "available_strategies",
]
