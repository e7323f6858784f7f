"""
Unit tests for neighbourhood scoring and the adaptive threshold
"""

import math

import pytest
import numpy as np
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from gms.assign import OffsetAssignment
from gms.grid import GridOffset
from gms.score import (
    DENSITY_MATCHES,
    DENSITY_OCCUPIED,
    NEIGHBOUR_DELTAS,
    adaptive_threshold,
    background_density,
    best_destination,
    neighbour_count,
    neighbourhood_score,
    score_offset,
)

N = 10


def cell(row, col):
    return row * N + col


def _empty_bins():
    return np.zeros((N * N, N * N), dtype=np.int64)


def _assignment(bins):
    """OffsetAssignment whose source lists mirror the row sums of `bins`."""
    lists = [[None] * int(bins[src].sum()) for src in range(N * N)]
    return OffsetAssignment(offset=GridOffset.NONE, bins=bins, cell_matches=lists)


class TestBestDestination:
    """Test cases for the argmax step"""

    def test_picks_largest_bin(self):
        bins = _empty_bins()
        bins[5, 17] = 3
        bins[5, 40] = 7
        assert best_destination(bins, 5) == 40

    def test_tie_broken_by_lowest_index(self):
        """Equal counts resolve to the lowest destination cell"""
        bins = _empty_bins()
        bins[5, 63] = 4
        bins[5, 12] = 4
        bins[5, 90] = 4
        assert best_destination(bins, 5) == 12


class TestNeighbourhoodScore:
    """Test cases for the 3x3 support statistic"""

    def test_nine_deltas_including_centre(self):
        assert len(NEIGHBOUR_DELTAS) == 9
        assert (0, 0) in NEIGHBOUR_DELTAS

    def test_sums_shifted_pairs(self):
        """Neighbour pairs shift source and destination by the same delta"""
        bins = _empty_bins()
        src, dst = cell(4, 4), cell(6, 2)
        bins[src, dst] = 5
        bins[cell(3, 3), cell(5, 1)] = 2    # (-1,-1)
        bins[cell(5, 4), cell(7, 2)] = 1    # (+1, 0)
        bins[cell(3, 3), cell(7, 2)] = 100  # inconsistent shift, ignored
        assert neighbourhood_score(bins, src, dst, N) == 8

    def test_corner_has_fewer_terms(self):
        """Corner pairs use 4 of the 9 terms and never wrap"""
        bins = _empty_bins()
        src, dst = cell(0, 0), cell(0, 0)
        bins[src, dst] = 3
        bins[cell(1, 1), cell(1, 1)] = 2
        # would be the (-1,-1) neighbour if rows/cols wrapped
        bins[cell(9, 9), cell(9, 9)] = 50
        bins[cell(0, 9), cell(0, 9)] = 50
        assert neighbour_count(src, dst, N) == 4
        assert neighbourhood_score(bins, src, dst, N) == 5

    def test_edge_has_six_terms(self):
        assert neighbour_count(cell(0, 5), cell(4, 4), N) == 6
        assert neighbour_count(cell(5, 5), cell(4, 4), N) == 9

    def test_source_and_destination_edges_combine(self):
        """Source on the top edge and destination on the left edge leave 4 terms"""
        assert neighbour_count(cell(0, 5), cell(5, 0), N) == 4

    def test_no_wrap_across_row_end(self):
        """Last column does not reach into the next row's first column"""
        bins = _empty_bins()
        src, dst = cell(3, 9), cell(3, 9)
        bins[src, dst] = 1
        bins[cell(4, 0), cell(4, 0)] = 9  # raveled src+1, dst+1
        assert neighbourhood_score(bins, src, dst, N) == 1

    def test_monotonic_support(self):
        """Adding matches to a neighbour never lowers the score"""
        rng = np.random.default_rng(11)
        bins = rng.integers(0, 3, size=(N * N, N * N))
        src, dst = cell(5, 5), cell(4, 6)
        before = neighbourhood_score(bins, src, dst, N)
        for dr, dc in NEIGHBOUR_DELTAS:
            bins[cell(5 + dr, 5 + dc), cell(4 + dr, 6 + dc)] += 1
            after = neighbourhood_score(bins, src, dst, N)
            assert after >= before
            before = after


class TestAdaptiveThreshold:
    """Test cases for the density estimate"""

    def test_matches_density(self):
        bins = _empty_bins()
        bins[0, 0] = 50
        bins[1, 1] = 14
        density, thr = adaptive_threshold(bins, 0.15, DENSITY_MATCHES)
        assert density == 64.0
        assert thr == pytest.approx(0.15 * 8.0)

    def test_occupied_density(self):
        """Mean over nonzero bins only"""
        bins = _empty_bins()
        bins[0, 0] = 6
        bins[1, 1] = 2
        assert background_density(bins, DENSITY_OCCUPIED) == pytest.approx(4.0)
        _, thr = adaptive_threshold(bins, 0.15, DENSITY_OCCUPIED)
        assert thr == pytest.approx(0.15 * math.sqrt(4.0))

    def test_empty_bins_density_zero(self):
        for mode in (DENSITY_MATCHES, DENSITY_OCCUPIED):
            assert background_density(_empty_bins(), mode) == 0.0

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            background_density(_empty_bins(), "median")


class TestScoreOffset:
    """Test cases for per-offset acceptance"""

    def test_cluster_accepted_singletons_rejected(self):
        """A dense pair clears the threshold, isolated single matches do not"""
        bins = _empty_bins()
        bins[cell(2, 2), cell(3, 3)] = 50
        for r, c in [(0, 6), (0, 8), (6, 0), (8, 8)]:
            bins[cell(r, c), cell(9 - r, 9 - c)] = 1
        report = score_offset(_assignment(bins), N, 0.15)
        assert report.threshold == pytest.approx(0.15 * math.sqrt(54))
        assert report.occupied == 5
        assert report.accepted == [(cell(2, 2), cell(3, 3))]

    def test_accepted_in_ascending_source_order(self):
        bins = _empty_bins()
        bins[cell(7, 7), cell(1, 1)] = 30
        bins[cell(1, 1), cell(7, 7)] = 30
        report = score_offset(_assignment(bins), N, 0.15)
        assert report.accepted == [(cell(1, 1), cell(7, 7)), (cell(7, 7), cell(1, 1))]

    def test_only_best_destination_considered(self):
        """A source cell contributes at most one pair"""
        bins = _empty_bins()
        bins[cell(2, 2), cell(3, 3)] = 20
        bins[cell(2, 2), cell(8, 8)] = 19
        report = score_offset(_assignment(bins), N, 0.15)
        assert report.accepted == [(cell(2, 2), cell(3, 3))]

    def test_strict_comparison(self):
        """Score equal to the threshold is rejected"""
        bins = _empty_bins()
        bins[cell(4, 4), cell(4, 4)] = 4
        # density = 4 -> threshold = factor * 2; factor 2 makes threshold == score
        assert score_offset(_assignment(bins), N, 2.0).accepted == []
        assert score_offset(_assignment(bins), N, 1.99).accepted == [(cell(4, 4), cell(4, 4))]

    def test_higher_factor_is_stricter(self):
        bins = _empty_bins()
        bins[cell(2, 2), cell(3, 3)] = 10
        bins[cell(6, 6), cell(6, 6)] = 3
        lenient = score_offset(_assignment(bins), N, 0.15)
        strict = score_offset(_assignment(bins), N, 1.0)
        assert len(strict.accepted) <= len(lenient.accepted)
        assert strict.accepted == [(cell(2, 2), cell(3, 3))]

    def test_empty_assignment(self):
        report = score_offset(_assignment(_empty_bins()), N, 0.15)
        assert report.occupied == 0
        assert report.accepted == []
        assert report.threshold == 0.0

    def test_neighbour_support_keeps_accepted(self):
        """Raising a neighbour count at a fixed threshold keeps the pair accepted"""
        bins = _empty_bins()
        bins[cell(2, 2), cell(3, 3)] = 3
        bins[cell(8, 8), cell(1, 1)] = 1
        _, thr = adaptive_threshold(bins, 0.15)
        src, dst = cell(2, 2), cell(3, 3)
        assert neighbourhood_score(bins, src, dst, N) > thr
        bins[cell(3, 3), cell(4, 4)] += 5
        assert neighbourhood_score(bins, src, dst, N) > thr
