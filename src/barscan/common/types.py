"""
Common type definitions for the barcode pipeline.

Pydantic-based value types shared by every module: sub-pixel points,
candidate quadrilaterals and decoded results.

These types provide:
- Validation and conversion from numpy arrays and plain sequences
- Immutability (points and quadrilaterals are frozen)
- The stable serialization contract consumers rely on
"""

import math
from typing import Any, Dict, List, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Point2D(BaseModel):
    """
    Immutable 2D raster coordinate with sub-pixel precision.

    Attributes:
        x: X-coordinate (horizontal).
        y: Y-coordinate (vertical).

    Example:
        >>> point = Point2D(x=100.5, y=200.0)
        >>> arr = point.to_numpy()  # array([100.5, 200.], dtype=float32)
        >>> point2 = Point2D.from_numpy(np.array([150, 250]))
    """

    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="X-coordinate (horizontal)")
    y: float = Field(..., description="Y-coordinate (vertical)")

    @field_validator("x", "y", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Any) -> float:
        """Accept numpy scalars as well as Python numbers."""
        if isinstance(v, (int, float, np.integer, np.floating)):
            return float(v)
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Point2D":
        """
        Create Point2D from numpy array.

        Args:
            arr: Numpy array of shape (2,) with [x, y] coordinates.

        Raises:
            ValueError: If array shape is not (2,).
        """
        arr = np.asarray(arr)
        if arr.shape != (2,):
            raise ValueError(f"Expected array of shape (2,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]))

    def to_numpy(self, dtype: type = np.float32) -> np.ndarray:
        return np.array([self.x, self.y], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        """Euclidean distance to another point."""
        return math.hypot(self.x - other.x, self.y - other.y)


PointLike = Union[Point2D, Sequence[float], np.ndarray, Dict[str, float]]


class Quadrilateral(BaseModel):
    """
    One candidate barcode boundary in source-image coordinates.

    The four corners follow the top-left, top-right, bottom-right,
    bottom-left convention. The order is consumed as given and never
    re-sorted: detectors may hand over a rotated order, and the rotation
    heuristic of the geometry engine relies on it being preserved.

    Invariants checked at construction:
        - exactly 4 points
        - all coordinates finite
        - no two points coincident

    Self-intersection is not detected here.

    Example:
        >>> quad = Quadrilateral.from_points([(10, 10), (110, 10), (110, 40), (10, 40)])
        >>> quad.to_numpy().shape
        (4, 2)
    """

    model_config = ConfigDict(frozen=True)

    points: Tuple[Point2D, Point2D, Point2D, Point2D]

    @field_validator("points", mode="before")
    @classmethod
    def _coerce_points(cls, v: Any) -> Any:
        if isinstance(v, np.ndarray):
            v = v.tolist()
        if not isinstance(v, (list, tuple)):
            raise ValueError(f"Expected a sequence of 4 points, got {type(v)}")
        if len(v) != 4:
            raise ValueError(f"Expected exactly 4 points, got {len(v)}")
        return tuple(_to_point(p) for p in v)

    @model_validator(mode="after")
    def _validate_corners(self) -> "Quadrilateral":
        for p in self.points:
            if not (math.isfinite(p.x) and math.isfinite(p.y)):
                raise ValueError(f"Non-finite corner coordinate: {p}")
        for i in range(4):
            for j in range(i + 1, 4):
                if self.points[i].to_tuple() == self.points[j].to_tuple():
                    raise ValueError(
                        f"Corners {i} and {j} are coincident at {self.points[i].to_tuple()}"
                    )
        return self

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Quadrilateral":
        """Create from an array reshapeable to (4, 2)."""
        arr = np.asarray(arr, dtype=np.float64)
        if arr.size != 8:
            raise ValueError(
                f"Expected exactly 4 points with shape (4, 2), got shape {arr.shape}"
            )
        return cls(points=arr.reshape(4, 2))

    @classmethod
    def from_points(cls, points: Sequence[PointLike]) -> "Quadrilateral":
        return cls(points=list(points))

    @classmethod
    def rectangle(cls, width: float, height: float) -> "Quadrilateral":
        """Axis-aligned quad (0,0), (W,0), (W,H), (0,H)."""
        return cls(points=[(0.0, 0.0), (width, 0.0), (width, height), (0.0, height)])

    def to_numpy(self, dtype: type = np.float32) -> np.ndarray:
        """Corners as an array of shape (4, 2)."""
        return np.array([p.to_tuple() for p in self.points], dtype=dtype)

    def centroid(self) -> Point2D:
        """Arithmetic mean of the four corners."""
        return Point2D(
            x=sum(p.x for p in self.points) / 4.0,
            y=sum(p.y for p in self.points) / 4.0,
        )

    def to_list(self) -> List[Dict[str, float]]:
        return [{"x": p.x, "y": p.y} for p in self.points]


class CodeInfo(BaseModel):
    """
    One decoded barcode.

    Attributes:
        code: Decoded symbol text.
        category: Symbology tag, reserved (always empty today).
        points: The ORIGINAL source-space corners of the candidate, so the
            symbol can be located in the input photo.
    """

    code: str
    category: str = ""
    points: List[Point2D]

    def to_dict(self) -> Dict[str, Any]:
        """Stable serialization: {code, category, points: [{x, y} x4]}."""
        return self.model_dump()


def _to_point(p: Any) -> Point2D:
    if isinstance(p, Point2D):
        return p
    if isinstance(p, dict):
        return Point2D(**p)
    arr = np.asarray(p, dtype=np.float64).reshape(-1)
    return Point2D.from_numpy(arr)
