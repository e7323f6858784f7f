from __future__ import annotations
"""
Grid partitioning for GMS:
- The four fractional grid offsets (shifting the partition by half a cell
  keeps a motion cluster that straddles a cell border in one configuration
  together in another)
- Point -> raveled cell index, scalar and vectorised
- Per-image grid geometry (cell width/height from image size)
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple, Union

import numpy as np

from common.types import Keypoint, image_size
from common.utils import clamp_int


GRID_SIZE = 10

PointLike = Union[Keypoint, Tuple[float, float], Sequence[float]]


class GridOffset(Enum):
    """Grid configurations as (offset_x, offset_y) in cell units."""
    NONE = (0.0, 0.0)
    HALF_Y = (0.0, 0.5)
    HALF_X = (0.5, 0.0)
    HALF_XY = (0.5, 0.5)

    @property
    def offset_x(self) -> float:
        return self.value[0]

    @property
    def offset_y(self) -> float:
        return self.value[1]

    @property
    def index(self) -> int:
        return _OFFSET_ORDER.index(self)


_OFFSET_ORDER = tuple(GridOffset)


def offset_for(config_index: int) -> Tuple[float, float]:
    """(offset_x, offset_y) for configuration 0..3."""
    if not 0 <= int(config_index) < len(_OFFSET_ORDER):
        raise ValueError(f"grid offset index must be in [0, {len(_OFFSET_ORDER)}), got {config_index}")
    return _OFFSET_ORDER[int(config_index)].value


def _xy(point: PointLike) -> Tuple[float, float]:
    if isinstance(point, Keypoint):
        return point.x, point.y
    return float(point[0]), float(point[1])


def cell_index_of(
    point: PointLike,
    offset_x: float,
    offset_y: float,
    cell_w: float,
    cell_h: float,
    grid_size: int = GRID_SIZE,
) -> int:
    """
    Raveled (row-major) cell index of a point.

    Cells are half-open, so a point on an interior border belongs to the
    higher-index cell. Points pushed past the grid by an offset (or lying
    outside the image) are clamped to the nearest edge cell.
    """
    x, y = _xy(point)
    row = clamp_int(math.floor(y / cell_h + offset_y), 0, grid_size - 1)
    col = clamp_int(math.floor(x / cell_w + offset_x), 0, grid_size - 1)
    return row * grid_size + col


def cell_indices(
    points: np.ndarray,
    offset_x: float,
    offset_y: float,
    cell_w: float,
    cell_h: float,
    grid_size: int = GRID_SIZE,
) -> np.ndarray:
    """Vectorised cell_index_of for an (K,2) array of (x, y) points."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    rows = np.clip(np.floor(pts[:, 1] / cell_h + offset_y), 0, grid_size - 1).astype(np.int64)
    cols = np.clip(np.floor(pts[:, 0] / cell_w + offset_x), 0, grid_size - 1).astype(np.int64)
    return rows * grid_size + cols


@dataclass(frozen=True)
class GridGeometry:
    width: int
    height: int
    grid_size: int = GRID_SIZE

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("grid geometry needs a positive width and height")
        if self.grid_size <= 0:
            raise ValueError("grid_size must be > 0")

    @classmethod
    def for_image(cls, img: np.ndarray, grid_size: int = GRID_SIZE) -> "GridGeometry":
        w, h = image_size(img)
        return cls(width=w, height=h, grid_size=grid_size)

    @property
    def cell_w(self) -> float:
        return self.width / self.grid_size

    @property
    def cell_h(self) -> float:
        return self.height / self.grid_size

    @property
    def num_cells(self) -> int:
        return self.grid_size * self.grid_size

    def cell_of(self, point: PointLike, offset: GridOffset = GridOffset.NONE) -> int:
        return cell_index_of(point, offset.offset_x, offset.offset_y, self.cell_w, self.cell_h, self.grid_size)

    def cells_of(self, points: np.ndarray, offset: GridOffset = GridOffset.NONE) -> np.ndarray:
        return cell_indices(points, offset.offset_x, offset.offset_y, self.cell_w, self.cell_h, self.grid_size)

    def row_col(self, cell: int) -> Tuple[int, int]:
        if not 0 <= cell < self.num_cells:
            raise IndexError(f"cell {cell} out of range [0, {self.num_cells})")
        return divmod(int(cell), self.grid_size)

    def ravel(self, row: int, col: int) -> int:
        if not (0 <= row < self.grid_size and 0 <= col < self.grid_size):
            raise IndexError(f"(row={row}, col={col}) outside {self.grid_size}x{self.grid_size} grid")
        return row * self.grid_size + col
