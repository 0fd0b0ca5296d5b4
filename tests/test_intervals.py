"""
Unit tests for the interval algebra module.

Tests cover:
- NCLS-backed overlap detection on closed intervals
- IntervalSet construction from rows and arrays
- Reduction, intersection and overlap base counting
- Chromosome ordering and coordinate conversion
"""

import pickle

import numpy as np
import pandas as pd
import pytest

from grenrich.core.exceptions import MalformedInputError
from grenrich.core.intervals import (
    GenomicInterval,
    IntervalSet,
    ONE_BASED,
    ZERO_BASED,
    find_overlaps,
    sort_chromosomes,
    to_one_based,
)


def _set(*rows):
    chroms, starts, ends = zip(*rows)
    return IntervalSet.from_arrays(chroms, starts, ends)


# ============================================================================
# Overlap detection
# ============================================================================


class TestFindOverlaps:
    """Tests for find_overlaps on 1-based inclusive frames."""

    def test_basic_overlap(self):
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [300]})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [200], "end": [400]})
        result = find_overlaps(query, subject)
        assert len(result) == 1
        assert result.iloc[0]["overlap_bp"] == 101  # 200..300 inclusive
        assert result.iloc[0]["start"] == 200
        assert result.iloc[0]["end"] == 300

    def test_single_shared_base(self):
        """Closed intervals touching at one position share one base."""
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [200]})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [200], "end": [300]})
        result = find_overlaps(query, subject)
        assert len(result) == 1
        assert result.iloc[0]["overlap_bp"] == 1

    def test_adjacent_do_not_overlap(self):
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [199]})
        subject = pd.DataFrame({"chr": ["chr1"], "start": [200], "end": [300]})
        assert len(find_overlaps(query, subject)) == 0

    def test_different_chromosomes(self):
        query = pd.DataFrame({"chr": ["chr1"], "start": [100], "end": [300]})
        subject = pd.DataFrame({"chr": ["chr2"], "start": [100], "end": [300]})
        assert len(find_overlaps(query, subject)) == 0

    def test_known_pairs(self, overlapping_regions):
        query, subject = overlapping_regions
        result = find_overlaps(query, subject)
        assert list(zip(result["query_idx"], result["subject_idx"])) == [(0, 0)]
        assert result.iloc[0]["overlap_bp"] == 51  # 250..300

    def test_empty_inputs(self):
        empty = pd.DataFrame({"chr": [], "start": [], "end": []})
        other = pd.DataFrame({"chr": ["chr1"], "start": [1], "end": [5]})
        assert find_overlaps(empty, other).empty
        assert find_overlaps(other, empty).empty


# ============================================================================
# Construction
# ============================================================================


class TestIntervalSetConstruction:
    """Tests for building IntervalSets."""

    def test_from_rows_three_columns(self):
        s = IntervalSet.from_rows([("chr1", 10, 20), ("chr2", 5, 5)])
        assert s.to_rows() == [("chr1", 10, 20), ("chr2", 5, 5)]

    def test_from_rows_two_columns_are_positions(self):
        s = IntervalSet.from_rows([("chr1", 10), ("chr1", 30)])
        assert s.to_rows() == [("chr1", 10, 10), ("chr1", 30, 30)]

    def test_from_rows_zero_based(self):
        s = IntervalSet.from_rows([("chr1", 99, 200)], convention=ZERO_BASED)
        assert s.to_rows() == [("chr1", 100, 200)]

    def test_from_rows_drops_bad_rows(self, caplog):
        rows = [("chr1", "abc", 20), ("chr1", 50, 10), ("chr1", 1, 5), (None, 1, 5)]
        with caplog.at_level("WARNING"):
            s = IntervalSet.from_rows(rows, name="data")
        assert s.to_rows() == [("chr1", 1, 5)]
        assert "dropped 3 of 4 rows" in caplog.text

    def test_from_rows_too_few_columns(self):
        with pytest.raises(MalformedInputError) as exc_info:
            IntervalSet.from_rows([("chr1",), ("chr2",)])
        assert exc_info.value.n_columns == 1

    def test_from_rows_empty(self):
        assert len(IntervalSet.from_rows([])) == 0

    def test_from_intervals(self):
        s = IntervalSet.from_intervals([GenomicInterval("chr1", 1, 10)])
        assert s[0] == GenomicInterval("chr1", 1, 10)
        assert s[0].width == 10
        assert str(s[0]) == "chr1:1-10"

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            GenomicInterval("chr1", 10, 5)

    def test_to_frame_is_a_copy(self):
        s = _set(("chr1", 1, 10))
        frame = s.to_frame()
        frame.loc[0, "start"] = 5
        assert s[0].start == 1

    def test_pickle_roundtrip(self):
        s = _set(("chr1", 1, 10), ("chr2", 3, 4))
        s.by_chrom()
        restored = pickle.loads(pickle.dumps(s))
        assert restored == s
        assert restored.total_bases() == 12


# ============================================================================
# Interval algebra
# ============================================================================


class TestReduce:
    """Tests for reduction into a disjoint cover."""

    def test_merges_overlapping(self):
        s = _set(("chr1", 1, 10), ("chr1", 5, 20), ("chr1", 30, 40))
        assert s.reduce().to_rows() == [("chr1", 1, 20), ("chr1", 30, 40)]

    def test_merges_adjacent(self):
        s = _set(("chr1", 1, 10), ("chr1", 11, 20))
        assert s.reduce().to_rows() == [("chr1", 1, 20)]

    def test_keeps_gap_of_one_base(self):
        s = _set(("chr1", 1, 10), ("chr1", 12, 20))
        assert len(s.reduce()) == 2

    def test_contained_interval(self):
        s = _set(("chr1", 1, 100), ("chr1", 10, 20), ("chr1", 50, 60))
        assert s.reduce().to_rows() == [("chr1", 1, 100)]

    def test_unsorted_and_chromosome_order(self):
        s = _set(("chr10", 5, 6), ("chr2", 50, 60), ("chr2", 1, 3), ("chrX", 1, 2))
        assert s.reduce().to_rows() == [
            ("chr2", 1, 3), ("chr2", 50, 60), ("chr10", 5, 6), ("chrX", 1, 2)
        ]

    def test_idempotent(self):
        s = _set(("chr1", 1, 10), ("chr1", 5, 20), ("chr2", 1, 1))
        once = s.reduce()
        assert once.reduce() == once
        assert once.is_reduced()

    def test_reduced_bases_never_exceed_raw(self):
        rng = np.random.default_rng(3)
        starts = rng.integers(1, 1000, 200)
        ends = starts + rng.integers(0, 50, 200)
        s = IntervalSet.from_arrays(["chr1"] * 200, starts, ends)
        reduced = s.reduce()
        assert reduced.total_bases() <= s.total_bases()
        r_starts, r_ends = reduced.by_chrom()["chr1"]
        assert (r_starts[1:] > r_ends[:-1] + 1).all()

    def test_empty(self):
        assert len(IntervalSet.empty().reduce()) == 0


class TestIntersect:
    """Tests for intersection and overlap counting."""

    def test_intersect_subranges(self):
        a = _set(("chr1", 1, 100), ("chr2", 10, 20))
        b = _set(("chr1", 50, 150), ("chr1", 90, 95))
        result = a.intersect(b)
        assert result.to_rows() == [("chr1", 50, 100), ("chr1", 90, 95)]

    def test_intersect_disjoint(self):
        assert len(_set(("chr1", 1, 10)).intersect(_set(("chr1", 20, 30)))) == 0

    def test_intersect_count(self):
        data = _set(("chr1", 100, 200))
        anno = _set(("chr1", 150, 160), ("chr1", 500, 510))
        assert data.intersect_count(anno) == 11

    def test_intersect_count_symmetric(self):
        a = _set(("chr1", 1, 50), ("chr1", 60, 90), ("chr2", 1, 10))
        b = _set(("chr1", 40, 70), ("chr2", 5, 100))
        assert a.intersect_count(b) == b.intersect_count(a) == 11 + 11 + 6

    def test_union(self):
        u = IntervalSet.union([_set(("chr1", 1, 10)), _set(("chr1", 5, 15)), IntervalSet.empty()])
        assert u.to_rows() == [("chr1", 1, 15)]


# ============================================================================
# Helpers
# ============================================================================


class TestHelpers:
    """Tests for chromosome sorting and coordinate conversion."""

    def test_sort_chromosomes(self):
        chroms = ["chrX", "chr10", "chr2", "chr1", "chrM", "chrUn_gl000220"]
        assert sort_chromosomes(chroms) == ["chr1", "chr2", "chr10", "chrX", "chrM", "chrUn_gl000220"]

    def test_to_one_based(self):
        starts = pd.Series([0, 99])
        assert to_one_based(starts, ZERO_BASED).tolist() == [1, 100]
        assert to_one_based(starts, ONE_BASED).tolist() == [0, 99]

    def test_unknown_convention(self):
        with pytest.raises(ValueError):
            to_one_based(pd.Series([1]), "2-based")
