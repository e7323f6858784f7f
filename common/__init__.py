"""
Shared types, logging and small helpers for the GMS correspondence filter.
"""
from .types import CandidateMatch, InvalidInputError, Keypoint

__all__ = ["CandidateMatch", "InvalidInputError", "Keypoint"]
