from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import cv2
import numpy as np

from common.logging_setup import get_logger
from common.types import CandidateMatch, Keypoint
from gms.features import keypoints_to_cv, matches_to_cv


log = get_logger("gms.display")

MATCH_COLOR = (0, 255, 0)  # BGR


def _to_bgr(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def draw_matches(
    img1: np.ndarray,
    kps1: Sequence[Keypoint],
    img2: np.ndarray,
    kps2: Sequence[Keypoint],
    inliers: Sequence[CandidateMatch],
    color=MATCH_COLOR,
) -> np.ndarray:
    """Side-by-side rendering of the inlier matches (only matched keypoints are drawn)."""
    return cv2.drawMatches(
        _to_bgr(img1), keypoints_to_cv(kps1),
        _to_bgr(img2), keypoints_to_cv(kps2),
        matches_to_cv(inliers), None,
        matchColor=color,
        flags=cv2.DrawMatchesFlags_NOT_DRAW_SINGLE_POINTS,
    )


class MatchDisplay:
    """
    Display collaborator for GMSMatcher: renders the final inliers and either
    shows them in a window, writes them to disk, or both.

    Args:
        window_name: OpenCV window title; None disables the window
        wait_ms: cv2.waitKey delay (0 waits for a key press)
        save_path: write the rendering here if set
    """

    def __init__(self, window_name: Optional[str] = "GMS matches", wait_ms: int = 0, save_path: Optional[str] = None):
        self.window_name = window_name
        self.wait_ms = int(wait_ms)
        self.save_path = save_path
        self.last_canvas: Optional[np.ndarray] = None

    def __call__(self, img1, img2, kps1, kps2, inliers) -> None:
        canvas = draw_matches(img1, kps1, img2, kps2, inliers)
        self.last_canvas = canvas
        if self.save_path:
            Path(self.save_path).parent.mkdir(parents=True, exist_ok=True)
            if not cv2.imwrite(str(self.save_path), canvas):
                raise RuntimeError(f"Failed to write match rendering: {self.save_path}")
            log.info("Saved match rendering", extra={"extra": {"path": str(self.save_path), "inliers": len(inliers)}})
        if self.window_name:
            cv2.imshow(self.window_name, canvas)
            cv2.waitKey(self.wait_ms)
            cv2.destroyWindow(self.window_name)
