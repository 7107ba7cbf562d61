"""Raster model: dense float grids and georeferenced images."""

from __future__ import annotations

import dataclasses
import math

import numpy as np

BBox = tuple[float, float, float, float]


@dataclasses.dataclass(eq=False)
class Grid:
    """A dense, row-major float32 raster; NaN marks cells without data.

    Row 0 is the northernmost row. ``north`` and ``west`` locate the
    centre of the top-left cell.

    Attributes:
        cols: Number of columns.
        rows: Number of rows.
        cell_size: Edge length of a cell in map units.
        west: X coordinate of the first column.
        north: Y coordinate of the first row.
        data: Array of shape (rows, cols).
        name: Optional display name.
    """

    cols: int
    rows: int
    cell_size: float
    west: float = 0.0
    north: float = 0.0
    data: np.ndarray = dataclasses.field(default=None)  # type: ignore[assignment]
    name: str | None = None

    def __post_init__(self) -> None:
        if self.cols <= 0 or self.rows <= 0:
            raise ValueError(
                f"Grid dimensions must be positive: {self.cols}x{self.rows}"
            )
        if not self.cell_size > 0:
            raise ValueError(f"Grid cell size must be positive: {self.cell_size}")
        if self.data is None:
            self.data = np.full((self.rows, self.cols), np.nan, dtype=np.float32)
        elif self.data.size != self.cols * self.rows:
            raise ValueError(
                f"Grid data holds {self.data.size} values, "
                f"expected {self.cols * self.rows}"
            )
        else:
            self.data = np.asarray(self.data, dtype=np.float32).reshape(
                self.rows, self.cols
            )

    @property
    def south(self) -> float:
        return self.north - (self.rows - 1) * self.cell_size

    @property
    def east(self) -> float:
        return self.west + (self.cols - 1) * self.cell_size

    def value(self, col: int, row: int) -> float:
        return float(self.data[row, col])

    def bounds(self) -> BBox:
        return (self.west, self.south, self.east, self.north)


@dataclasses.dataclass(eq=False)
class GeoImage:
    """Decoded image pixels placed in map coordinates.

    Without georeferencing the lower left corner sits at (0, 0) and a
    pixel measures one map unit.

    Attributes:
        width: Number of pixel columns.
        height: Number of pixel rows.
        pixels: Pixel buffer as returned by the image codec.
        cell_size: Size of a pixel in map units.
        west: X coordinate of the left image border.
        north: Y coordinate of the top image border.
        georeferenced: True if a world file provided the placement.
        name: Optional display name.
    """

    width: int
    height: int
    pixels: np.ndarray
    cell_size: float = 1.0
    west: float = 0.0
    north: float = math.nan
    georeferenced: bool = False
    name: str | None = None

    def __post_init__(self) -> None:
        if math.isnan(self.north):
            self.north = self.height * self.cell_size

    def bounds(self) -> BBox:
        return (
            self.west,
            self.north - self.height * self.cell_size,
            self.west + self.width * self.cell_size,
            self.north,
        )


Raster = Grid | GeoImage
