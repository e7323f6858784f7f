from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np


class InvalidInputError(ValueError):
    """Raised when a precondition on caller-supplied data is violated."""


@dataclass(frozen=True, slots=True)
class Keypoint:
    """
    A 2D pixel coordinate in one of the two images.

    Attributes:
        x, y: pixel position (x to the right, y down), floats.
    """
    x: float
    y: float

    @property
    def pt(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True, slots=True)
class CandidateMatch:
    """
    Tentative correspondence produced by descriptor matching.

    Attributes:
        query_idx: index into the image-1 keypoint list.
        train_idx: index into the image-2 keypoint list.
        distance: descriptor distance (smaller is better).
    """
    query_idx: int
    train_idx: int
    distance: float = 0.0

    @property
    def key(self) -> Tuple[int, int]:
        """Identity of the correspondence, independent of object identity."""
        return (self.query_idx, self.train_idx)

    def to_dict(self) -> Dict[str, Any]:
        return {"query_idx": self.query_idx, "train_idx": self.train_idx, "distance": self.distance}


def image_size(img: np.ndarray) -> Tuple[int, int]:
    """
    Validate a raster image and return its (width, height).
    Accepts (H,W) grayscale or (H,W,C) color arrays.
    """
    if img is None:
        raise InvalidInputError("image is None")
    if not isinstance(img, np.ndarray):
        raise InvalidInputError(f"image must be a numpy ndarray, got {type(img).__name__}")
    if img.ndim not in (2, 3):
        raise InvalidInputError("image must be 2D (gray) or 3D (color)")
    if img.size == 0:
        raise InvalidInputError("image is empty")
    h, w = img.shape[:2]
    return int(w), int(h)
