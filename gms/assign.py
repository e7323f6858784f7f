from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

import numpy as np

from common.types import CandidateMatch, InvalidInputError, Keypoint
from gms.grid import GridGeometry, GridOffset


@dataclass(frozen=True, slots=True)
class CellMatch:
    """A candidate match placed in its (src, dst) cell pair under one offset."""
    src: int
    dst: int
    kp1: Keypoint
    kp2: Keypoint
    match: CandidateMatch


@dataclass(slots=True)
class OffsetAssignment:
    """
    Binning of all candidates under one grid offset.

    Attributes:
        offset: the grid configuration.
        bins: (N², N²) int64, bins[src, dst] = number of candidates in that cell pair.
        cell_matches: length N², cell_matches[src] = CellMatch list in input order.
    """
    offset: GridOffset
    bins: np.ndarray = field(repr=False)
    cell_matches: List[List[CellMatch]] = field(repr=False)

    @property
    def total(self) -> int:
        return int(self.bins.sum())

    def occupied_sources(self) -> List[int]:
        return [src for src, lst in enumerate(self.cell_matches) if lst]


def keypoints_to_array(kps: Sequence[Keypoint]) -> np.ndarray:
    if len(kps) == 0:
        return np.zeros((0, 2), dtype=np.float64)
    return np.array([[kp.x, kp.y] for kp in kps], dtype=np.float64)


def _check_indices(matches: Sequence[CandidateMatch], n1: int, n2: int) -> None:
    for m in matches:
        if not 0 <= m.query_idx < n1:
            raise InvalidInputError(f"query_idx {m.query_idx} outside image-1 keypoints [0, {n1})")
        if not 0 <= m.train_idx < n2:
            raise InvalidInputError(f"train_idx {m.train_idx} outside image-2 keypoints [0, {n2})")


def assign_offset(
    matches: Sequence[CandidateMatch],
    kps1: Sequence[Keypoint],
    kps2: Sequence[Keypoint],
    geom1: GridGeometry,
    geom2: GridGeometry,
    offset: GridOffset,
) -> OffsetAssignment:
    """
    Bin every candidate under a single offset. Indices are assumed valid
    (see assign_matches_to_cells).
    """
    if geom1.grid_size != geom2.grid_size:
        raise ValueError("both images must use the same grid size")
    n_cells = geom1.num_cells
    bins = np.zeros((n_cells, n_cells), dtype=np.int64)
    cell_matches: List[List[CellMatch]] = [[] for _ in range(n_cells)]
    if not matches:
        return OffsetAssignment(offset=offset, bins=bins, cell_matches=cell_matches)

    q = np.fromiter((m.query_idx for m in matches), dtype=np.int64, count=len(matches))
    t = np.fromiter((m.train_idx for m in matches), dtype=np.int64, count=len(matches))
    src = geom1.cells_of(keypoints_to_array(kps1)[q], offset)
    dst = geom2.cells_of(keypoints_to_array(kps2)[t], offset)

    np.add.at(bins, (src, dst), 1)
    for m, s, d in zip(matches, src.tolist(), dst.tolist()):
        cell_matches[s].append(CellMatch(s, d, kps1[m.query_idx], kps2[m.train_idx], m))
    return OffsetAssignment(offset=offset, bins=bins, cell_matches=cell_matches)


def assign_matches_to_cells(
    matches: Sequence[CandidateMatch],
    kps1: Sequence[Keypoint],
    kps2: Sequence[Keypoint],
    geom1: GridGeometry,
    geom2: GridGeometry,
) -> Dict[GridOffset, OffsetAssignment]:
    """
    Assign every candidate to a (src, dst) cell pair under each of the four
    grid offsets. Purely additive; nothing is filtered here.
    """
    _check_indices(matches, len(kps1), len(kps2))
    return {off: assign_offset(matches, kps1, kps2, geom1, geom2, off) for off in GridOffset}
