from __future__ import annotations
"""
Neighbourhood scoring for GMS.

For every occupied source cell the best destination cell is found, then the
support of that cell pair is summed over the 3x3 neighbourhood (the same
row/col shift applied to both cells) and compared against
threshold_factor * sqrt(density), where density is estimated from the bins
of the current offset.
"""

import math
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from gms.assign import OffsetAssignment
from gms.grid import GridOffset


# (drow, dcol), row-major over the 3x3 window, centre included
NEIGHBOUR_DELTAS: Tuple[Tuple[int, int], ...] = tuple(
    (dr, dc) for dr in (-1, 0, 1) for dc in (-1, 0, 1)
)

DENSITY_MATCHES = "matches"
DENSITY_OCCUPIED = "occupied"
DENSITY_MODES = (DENSITY_MATCHES, DENSITY_OCCUPIED)


@dataclass(slots=True)
class OffsetScore:
    """Diagnostics of one offset pass."""
    offset: GridOffset
    density: float
    threshold: float
    occupied: int = 0
    accepted: List[Tuple[int, int]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "offset": self.offset.name,
            "density": self.density,
            "threshold": self.threshold,
            "occupied": self.occupied,
            "accepted": len(self.accepted),
        }


def best_destination(bins: np.ndarray, src: int) -> int:
    """argmax over bins[src]; np.argmax returns the first (lowest) index on ties."""
    return int(np.argmax(bins[src]))


def neighbourhood_score(bins: np.ndarray, src: int, dst: int, grid_size: int) -> int:
    """
    Sum of bins over the 3x3 neighbourhood of the pair (src, dst).
    Shifted cells that leave the grid contribute 0; nothing wraps.
    """
    sr, sc = divmod(int(src), grid_size)
    dr, dc = divmod(int(dst), grid_size)
    total = 0
    for drow, dcol in NEIGHBOUR_DELTAS:
        r1, c1 = sr + drow, sc + dcol
        r2, c2 = dr + drow, dc + dcol
        if not (0 <= r1 < grid_size and 0 <= c1 < grid_size):
            continue
        if not (0 <= r2 < grid_size and 0 <= c2 < grid_size):
            continue
        total += int(bins[r1 * grid_size + c1, r2 * grid_size + c2])
    return total


def neighbour_count(src: int, dst: int, grid_size: int) -> int:
    """How many of the 9 shifted pairs stay inside the grid."""
    sr, sc = divmod(int(src), grid_size)
    dr, dc = divmod(int(dst), grid_size)
    n = 0
    for drow, dcol in NEIGHBOUR_DELTAS:
        if (0 <= sr + drow < grid_size and 0 <= sc + dcol < grid_size
                and 0 <= dr + drow < grid_size and 0 <= dc + dcol < grid_size):
            n += 1
    return n


def background_density(bins: np.ndarray, mode: str = DENSITY_MATCHES) -> float:
    """
    Background match density of one offset's bins.

    - "matches": number of candidates binned under the offset
    - "occupied": mean count of the nonzero bins
    """
    if mode == DENSITY_MATCHES:
        return float(bins.sum())
    if mode == DENSITY_OCCUPIED:
        nz = bins[bins > 0]
        return float(nz.mean()) if nz.size else 0.0
    raise ValueError(f"Unknown density mode: {mode}")


def adaptive_threshold(bins: np.ndarray, threshold_factor: float, mode: str = DENSITY_MATCHES) -> Tuple[float, float]:
    """Returns (density, threshold)."""
    density = background_density(bins, mode)
    return density, float(threshold_factor) * math.sqrt(density)


def score_offset(
    assignment: OffsetAssignment,
    grid_size: int,
    threshold_factor: float,
    mode: str = DENSITY_MATCHES,
) -> OffsetScore:
    """
    Score every occupied source cell of one offset.

    Returns the offset's diagnostics; `accepted` lists (src, dst*) for each
    source cell whose best pair clears the threshold, in ascending src order.
    """
    bins = assignment.bins
    density, threshold = adaptive_threshold(bins, threshold_factor, mode)
    report = OffsetScore(offset=assignment.offset, density=density, threshold=threshold)
    for src in assignment.occupied_sources():
        dst = best_destination(bins, src)
        if bins[src, dst] == 0:
            continue
        report.occupied += 1
        if neighbourhood_score(bins, src, dst, grid_size) > threshold:
            report.accepted.append((src, dst))
    return report
