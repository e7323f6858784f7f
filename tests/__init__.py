"""
GMS Test Suite

This package contains tests for the grid-based motion statistics matcher.

Structure:
- unit/: Unit tests for grid, assignment, scoring, collection and orchestration
- integration/: ORB feature source + CLI on synthetic images
"""
