from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from common.logging_setup import get_logger
from common.types import CandidateMatch, Keypoint, image_size
from gms.assign import assign_matches_to_cells
from gms.collect import InlierCollector
from gms.config import GMSParams
from gms.features import OrbFeatureSource
from gms.grid import GridGeometry, GridOffset
from gms.score import OffsetScore, score_offset


log = get_logger("gms.matcher")

DisplayFn = Callable[[np.ndarray, np.ndarray, List[Keypoint], List[Keypoint], List[CandidateMatch]], None]


@dataclass(slots=True)
class GMSResult:
    inliers: List[CandidateMatch]
    total_matches: int
    offsets: List[OffsetScore] = field(default_factory=list)
    # diagnostics
    keypoints1: Optional[List[Keypoint]] = field(default=None, repr=False)
    keypoints2: Optional[List[Keypoint]] = field(default=None, repr=False)
    elapsed_ms: float = 0.0

    @property
    def inlier_ratio(self) -> float:
        return len(self.inliers) / self.total_matches if self.total_matches else 0.0

    def summary(self) -> dict:
        return {
            "total_matches": self.total_matches,
            "inliers": len(self.inliers),
            "inlier_ratio": round(self.inlier_ratio, 4),
            "elapsed_ms": round(self.elapsed_ms, 3),
            "offsets": [o.to_dict() for o in self.offsets],
        }


def _filter(
    matches: Sequence[CandidateMatch],
    kps1: Sequence[Keypoint],
    kps2: Sequence[Keypoint],
    geom1: GridGeometry,
    geom2: GridGeometry,
    params: GMSParams,
) -> GMSResult:
    t0 = time.perf_counter()
    assignments = assign_matches_to_cells(matches, kps1, kps2, geom1, geom2)
    collector = InlierCollector()
    reports: List[OffsetScore] = []
    for offset in GridOffset:
        assignment = assignments[offset]
        report = score_offset(assignment, params.grid_size, params.threshold_factor, params.density)
        added = 0
        for src, dst in report.accepted:
            added += collector.collect(assignment.cell_matches[src], dst)
        log.debug(
            "Scored grid offset",
            extra={"extra": {**report.to_dict(), "new_inliers": added}},
        )
        reports.append(report)
    return GMSResult(
        inliers=collector.inliers,
        total_matches=len(matches),
        offsets=reports,
        keypoints1=list(kps1),
        keypoints2=list(kps2),
        elapsed_ms=1000.0 * (time.perf_counter() - t0),
    )


def gms_filter(
    matches: Sequence[CandidateMatch],
    kps1: Sequence[Keypoint],
    kps2: Sequence[Keypoint],
    size1: Tuple[int, int],
    size2: Tuple[int, int],
    params: Optional[GMSParams] = None,
) -> GMSResult:
    """
    Filter candidate matches for callers that already have keypoints.

    Args:
        matches: candidate correspondences indexing kps1 / kps2
        kps1, kps2: keypoints of image 1 / image 2
        size1, size2: (width, height) of image 1 / image 2
        params: GMSParams (defaults if None)
    """
    params = params or GMSParams()
    geom1 = GridGeometry(int(size1[0]), int(size1[1]), params.grid_size)
    geom2 = GridGeometry(int(size2[0]), int(size2[1]), params.grid_size)
    return _filter(matches, kps1, kps2, geom1, geom2, params)


class GMSMatcher:
    """
    Grid-based motion statistics matcher for one image pair.

    Usage:
        m = GMSMatcher()
        m.init(img1, img2)
        inliers = m.run()

    Args:
        params: GMSParams (defaults if None)
        features: object with match_images(img1, img2) -> (matches, kps1, kps2);
                  defaults to an ORB source
        display: optional callable(img1, img2, kps1, kps2, inliers) invoked after filtering
    """

    def __init__(self, params: Optional[GMSParams] = None, features=None, display: Optional[DisplayFn] = None):
        self.params = params or GMSParams()
        if features is None:
            features = OrbFeatureSource()
        self.features = features
        self.display = display
        self._im1: Optional[np.ndarray] = None
        self._im2: Optional[np.ndarray] = None
        self._geom1: Optional[GridGeometry] = None
        self._geom2: Optional[GridGeometry] = None
        self.result: Optional[GMSResult] = None

    def init(self, image1: np.ndarray, image2: np.ndarray) -> None:
        """Borrow the image pair for the next run(s); raises InvalidInputError on null/empty images."""
        w1, h1 = image_size(image1)
        w2, h2 = image_size(image2)
        self._im1, self._im2 = image1, image2
        self._geom1 = GridGeometry(w1, h1, self.params.grid_size)
        self._geom2 = GridGeometry(w2, h2, self.params.grid_size)
        self.result = None

    @property
    def geometries(self) -> Tuple[GridGeometry, GridGeometry]:
        if self._geom1 is None or self._geom2 is None:
            raise RuntimeError("GMSMatcher.init(image1, image2) must be called first")
        return self._geom1, self._geom2

    def filter_matches(
        self,
        matches: Sequence[CandidateMatch],
        kps1: Sequence[Keypoint],
        kps2: Sequence[Keypoint],
    ) -> GMSResult:
        """Core filter over supplied candidates, using the grids of the borrowed images."""
        geom1, geom2 = self.geometries
        return _filter(matches, kps1, kps2, geom1, geom2, self.params)

    def run(self) -> List[CandidateMatch]:
        geom1, geom2 = self.geometries
        matches, kps1, kps2 = self.features.match_images(self._im1, self._im2)
        result = _filter(matches, kps1, kps2, geom1, geom2, self.params)
        self.result = result
        log.info(
            "GMS filtering done",
            extra={"extra": {
                "kp1": len(kps1),
                "kp2": len(kps2),
                "matches": result.total_matches,
                "inliers": len(result.inliers),
                "elapsed_ms": round(result.elapsed_ms, 3),
            }},
        )
        if self.display is not None:
            self.display(self._im1, self._im2, list(kps1), list(kps2), result.inliers)
        return result.inliers
