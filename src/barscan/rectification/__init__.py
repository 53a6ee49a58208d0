"""
Candidate rectification: geometry engine and region extraction.

Pipeline stages:
1. Optional margin expansion around the detected quadrilateral
2. Target size estimation (longest edge of each parallel pair)
3. Perspective warp to an upright rectangle
4. Quarter turn for tall results
"""

from barscan.rectification.extractor import RegionExtractor, extract_region, rotate_upright
from barscan.rectification.geometry import (
    calculate_target_dimensions,
    derive_rectification,
    expand_quadrilateral,
    measure_edges,
    quadrilateral_area,
)
from barscan.rectification.types import (
    ExpansionMode,
    ExpansionPolicy,
    Rectification,
    RectificationConfig,
)

__all__ = [
    "derive_rectification",
    "expand_quadrilateral",
    "measure_edges",
    "calculate_target_dimensions",
    "quadrilateral_area",
    "extract_region",
    "rotate_upright",
    "RegionExtractor",
    "ExpansionMode",
    "ExpansionPolicy",
    "Rectification",
    "RectificationConfig",
]
