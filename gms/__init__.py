# FILE: gms/__init__.py
"""
GMS: Grid-based Motion Statistics correspondence filter

This package provides:
- Grid partitioning of both images under four half-cell offsets
- Binning of candidate matches by (source cell, destination cell)
- 3x3 neighbourhood support scoring against an adaptive threshold
- A deduplicated inlier set merged across all offsets
- An ORB feature source and an OpenCV match display as collaborators

Entry point:
    python -m gms.pipeline img1.png img2.png --config config/params.yaml
"""
from .config import GMSParams
from .grid import GRID_SIZE, GridGeometry, GridOffset, cell_index_of, offset_for
from .matcher import GMSMatcher, GMSResult, gms_filter

__all__ = [
    "GMSParams",
    "GRID_SIZE",
    "GridGeometry",
    "GridOffset",
    "cell_index_of",
    "offset_for",
    "GMSMatcher",
    "GMSResult",
    "gms_filter",
]
