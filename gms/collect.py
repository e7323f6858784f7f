from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from common.types import CandidateMatch
from gms.assign import CellMatch


class InlierCollector:
    """
    Running inlier set across all offset passes.

    A match confirmed under several offsets is kept once; identity is the
    (query_idx, train_idx) pair and first-acceptance order is preserved.
    """

    def __init__(self) -> None:
        self._inliers: Dict[Tuple[int, int], CandidateMatch] = {}

    def collect(self, cell_matches: Sequence[CellMatch], dst: int) -> int:
        """Add every entry whose destination cell is `dst`; returns how many were new."""
        added = 0
        for cm in cell_matches:
            if cm.dst != dst:
                continue
            key = cm.match.key
            if key not in self._inliers:
                self._inliers[key] = cm.match
                added += 1
        return added

    def __len__(self) -> int:
        return len(self._inliers)

    def __contains__(self, match: CandidateMatch) -> bool:
        return match.key in self._inliers

    @property
    def inliers(self) -> List[CandidateMatch]:
        return list(self._inliers.values())
