"""Per-candidate observers.

``DebugImageWriter`` persists the intermediate rasters of every candidate
for inspection: ``code_{i}.png`` (rectified) and ``enhance_{i}.png``
(enhanced).
"""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from barscan.common.types import Quadrilateral

logger = logging.getLogger(__name__)


class DebugImageWriter:
    """Write rectified and enhanced candidate rasters to a directory.

    Args:
        output_dir: Target directory, created on first write.
    """

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)

    def __call__(
        self,
        index: int,
        quad: Quadrilateral,
        rectified: np.ndarray,
        enhanced: np.ndarray,
    ) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        for name, image in (("code", rectified), ("enhance", enhanced)):
            path = self.output_dir / f"{name}_{index}.png"
            if cv2.imwrite(str(path), image):
                logger.debug(f"Saved {name} raster of candidate {index} to {path}")
            else:
                logger.warning(f"Failed to save {name} raster of candidate {index} to {path}")
