from __future__ import annotations
"""
Feature extraction & candidate matching feeding the GMS filter.

- OrbFeatureSource.match_images(img1, img2) -> (matches, kps1, kps2)
- Brute-force Hamming matching: plain nearest neighbour (what GMS expects,
  lots of raw matches) or KNN + Lowe ratio, optional cross-check
- Conversions between cv2 keypoints/matches and the plain dataclasses
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from common.types import CandidateMatch, Keypoint


# -----------------------------
# Conversions
# -----------------------------

def to_gray_u8(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        g = img
    elif img.shape[2] == 4:
        g = cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    else:
        g = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    if g.dtype != np.uint8:
        g = np.clip(g, 0, 255).astype(np.uint8)
    return g


def keypoints_from_cv(kps: Sequence[cv2.KeyPoint]) -> List[Keypoint]:
    return [Keypoint(float(kp.pt[0]), float(kp.pt[1])) for kp in kps]


def keypoints_to_cv(kps: Sequence[Keypoint], size: float = 1.0) -> List[cv2.KeyPoint]:
    return [cv2.KeyPoint(float(kp.x), float(kp.y), size) for kp in kps]


def matches_from_cv(matches: Sequence[cv2.DMatch]) -> List[CandidateMatch]:
    return [CandidateMatch(int(m.queryIdx), int(m.trainIdx), float(m.distance)) for m in matches]


def matches_to_cv(matches: Sequence[CandidateMatch]) -> List[cv2.DMatch]:
    return [cv2.DMatch(int(m.query_idx), int(m.train_idx), float(m.distance)) for m in matches]


# -----------------------------
# Feature source
# -----------------------------

@dataclass
class OrbFeatureSource:
    """
    ORB detector + brute-force Hamming matcher.

    Args:
        nfeatures: ORB keypoint budget per image
        fast_threshold: FAST threshold (0 keeps weak corners, GMS likes many matches)
        scale_factor, nlevels: ORB pyramid
        cross_check: keep only mutual nearest neighbours (ignored when ratio is set)
        ratio: Lowe ratio for KNN matching; None means plain nearest neighbour
    """
    nfeatures: int = 10000
    fast_threshold: int = 0
    scale_factor: float = 1.2
    nlevels: int = 8
    cross_check: bool = False
    ratio: Optional[float] = None

    def __post_init__(self):
        if self.ratio is not None and not (0.0 < float(self.ratio) <= 1.0):
            raise ValueError(f"ratio must be in (0, 1], got {self.ratio}")
        self._det = cv2.ORB_create(
            nfeatures=int(self.nfeatures),
            scaleFactor=float(self.scale_factor),
            nlevels=int(self.nlevels),
            fastThreshold=int(self.fast_threshold),
        )

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "OrbFeatureSource":
        d = d or {}
        ratio = d.get("ratio")
        return cls(
            nfeatures=int(d.get("nfeatures", 10000)),
            fast_threshold=int(d.get("fast_threshold", 0)),
            scale_factor=float(d.get("scale_factor", 1.2)),
            nlevels=int(d.get("nlevels", 8)),
            cross_check=bool(d.get("cross_check", False)),
            ratio=None if ratio is None else float(ratio),
        )

    def detect_and_compute(self, img: np.ndarray) -> Tuple[List[cv2.KeyPoint], np.ndarray]:
        kps, des = self._det.detectAndCompute(to_gray_u8(img), None)
        if des is None:
            des = np.zeros((0, 32), dtype=np.uint8)
        return list(kps), des

    def match_descriptors(self, des1: np.ndarray, des2: np.ndarray) -> List[cv2.DMatch]:
        if len(des1) == 0 or len(des2) == 0:
            return []
        if self.ratio is None:
            bf = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=bool(self.cross_check))
            return list(bf.match(des1, des2))
        bf = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
        good: List[cv2.DMatch] = []
        for pair in bf.knnMatch(des1, des2, k=2):
            if len(pair) < 2:
                continue
            m, n = pair
            if m.distance < self.ratio * n.distance:
                good.append(m)
        return good

    def match_images(
        self, img1: np.ndarray, img2: np.ndarray
    ) -> Tuple[List[CandidateMatch], List[Keypoint], List[Keypoint]]:
        """
        Returns:
            matches: CandidateMatch list indexing into kps1 / kps2
            kps1, kps2: keypoint coordinates of image 1 / image 2
        """
        cv_kps1, des1 = self.detect_and_compute(img1)
        cv_kps2, des2 = self.detect_and_compute(img2)
        matches = self.match_descriptors(des1, des2)
        return matches_from_cv(matches), keypoints_from_cv(cv_kps1), keypoints_from_cv(cv_kps2)
