"""
Genomic interval sets for GREnrich.

Coordinates are 1-based and inclusive everywhere in the core. Overlap joins
use an NCLS (Nested Containment List) index per chromosome, so intersecting
two sets is O((n + m) log m) rather than the O(n*m) nested loop.

Also contains the single coordinate-convention conversion step and the
natural chromosome ordering shared by every module.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from ncls import NCLS

from .exceptions import MalformedInputError

logger = logging.getLogger(__name__)

COLUMNS = ["chr", "start", "end"]

ONE_BASED = "1-based"
ZERO_BASED = "0-based"


# ============================================================================
# Chromosome utilities
# ============================================================================

_CHROM_ORDER = {f"chr{i}": i for i in range(1, 23)}
_CHROM_ORDER.update({"chrX": 23, "chrY": 24, "chrM": 25, "chrMT": 25})


def sort_chromosomes(chroms: List[str]) -> List[str]:
    """Sort chromosome names in natural order (1,2,...,22,X,Y,M, then others)."""
    def _sort_key(c: str) -> Tuple[int, str]:
        c_stripped = c.replace("chr", "") if c.startswith("chr") else c
        if c in _CHROM_ORDER:
            return (_CHROM_ORDER[c], c)
        try:
            return (int(c_stripped), c)
        except ValueError:
            return (100, c)
    return sorted(chroms, key=_sort_key)


# ============================================================================
# Coordinate conventions
# ============================================================================


def to_one_based(starts: pd.Series, convention: str = ONE_BASED) -> pd.Series:
    """Convert start coordinates to the internal 1-based convention.

    This is the only place where coordinate systems are reconciled; BED-style
    0-based half-open starts gain one base, ends are unchanged.
    """
    if convention == ONE_BASED:
        return starts
    if convention == ZERO_BASED:
        return starts + 1
    raise ValueError(f"Unknown coordinate convention: {convention!r}")


# ============================================================================
# Core overlap functions
# ============================================================================


def _build_ncls_index(starts: np.ndarray, ends: np.ndarray) -> NCLS:
    """Build an NCLS index over closed intervals [start, end]."""
    ids = np.arange(len(starts), dtype=np.int64)
    # NCLS works on half-open intervals
    return NCLS(
        np.ascontiguousarray(starts, dtype=np.int64),
        np.ascontiguousarray(ends + 1, dtype=np.int64),
        ids,
    )


def _chrom_overlaps(
    q_starts: np.ndarray,
    q_ends: np.ndarray,
    s_starts: np.ndarray,
    s_ends: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return (query, subject) positional index pairs of overlapping intervals."""
    if len(q_starts) == 0 or len(s_starts) == 0:
        empty = np.array([], dtype=np.int64)
        return empty, empty

    index = _build_ncls_index(s_starts, s_ends)
    q_idx, s_idx = index.all_overlaps_both(
        np.ascontiguousarray(q_starts, dtype=np.int64),
        np.ascontiguousarray(q_ends + 1, dtype=np.int64),
        np.arange(len(q_starts), dtype=np.int64),
    )
    q_idx = np.asarray(q_idx, dtype=np.int64)
    s_idx = np.asarray(s_idx, dtype=np.int64)

    # Only keep pairs sharing at least one base
    keep = np.minimum(q_ends[q_idx], s_ends[s_idx]) >= np.maximum(q_starts[q_idx], s_starts[s_idx])
    return q_idx[keep], s_idx[keep]


def find_overlaps(query_df: pd.DataFrame, subject_df: pd.DataFrame) -> pd.DataFrame:
    """Find every pair of overlapping intervals between two frames.

    Parameters
    ----------
    query_df, subject_df : pd.DataFrame
        Frames with ``chr``, ``start``, ``end`` columns (1-based, inclusive).

    Returns
    -------
    pd.DataFrame
        Columns [query_idx, subject_idx, start, end, overlap_bp] where
        start/end delimit the intersected sub-range. Indices refer to the
        input frames' index labels.
    """
    columns = ["query_idx", "subject_idx", "chr", "start", "end", "overlap_bp"]
    if query_df.empty or subject_df.empty:
        return pd.DataFrame(columns=columns)

    results = []
    subject_groups = {name: grp for name, grp in subject_df.groupby("chr", sort=False)}

    for chrom, q_grp in query_df.groupby("chr", sort=False):
        s_grp = subject_groups.get(chrom)
        if s_grp is None:
            continue

        q_starts = q_grp["start"].to_numpy(dtype=np.int64)
        q_ends = q_grp["end"].to_numpy(dtype=np.int64)
        s_starts = s_grp["start"].to_numpy(dtype=np.int64)
        s_ends = s_grp["end"].to_numpy(dtype=np.int64)

        q_pos, s_pos = _chrom_overlaps(q_starts, q_ends, s_starts, s_ends)
        if len(q_pos) == 0:
            continue

        starts = np.maximum(q_starts[q_pos], s_starts[s_pos])
        ends = np.minimum(q_ends[q_pos], s_ends[s_pos])
        results.append(pd.DataFrame({
            "query_idx": q_grp.index.to_numpy()[q_pos],
            "subject_idx": s_grp.index.to_numpy()[s_pos],
            "chr": chrom,
            "start": starts,
            "end": ends,
            "overlap_bp": ends - starts + 1,
        }))

    if not results:
        return pd.DataFrame(columns=columns)
    return pd.concat(results, ignore_index=True)[columns]


# ============================================================================
# Interval types
# ============================================================================


@dataclass(frozen=True)
class GenomicInterval:
    """A 1-based, inclusive chromosome range."""
    chrom: str
    start: int
    end: int

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"start {self.start} > end {self.end} for {self.chrom}")

    @property
    def width(self) -> int:
        return self.end - self.start + 1

    def __str__(self) -> str:
        return f"{self.chrom}:{self.start}-{self.end}"


class IntervalSet:
    """
    An ordered, immutable collection of genomic intervals.

    Backed by a DataFrame with ``chr``, ``start`` and ``end`` columns. Every
    operation returns a new set; instances are never mutated, so they can be
    shared freely between worker threads.
    """

    def __init__(self, frame: Optional[pd.DataFrame] = None):
        if frame is None:
            frame = pd.DataFrame({
                "chr": pd.Series(dtype=object),
                "start": pd.Series(dtype=np.int64),
                "end": pd.Series(dtype=np.int64),
            })
        self._frame = frame[COLUMNS].reset_index(drop=True)
        self._chrom_cache: Optional[Dict[str, Tuple[np.ndarray, np.ndarray]]] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def empty(cls) -> "IntervalSet":
        return cls()

    @classmethod
    def from_arrays(cls, chroms, starts, ends) -> "IntervalSet":
        """Build from parallel arrays that are already clean and 1-based."""
        return cls(pd.DataFrame({
            "chr": pd.Series(chroms, dtype=object).astype(str).to_numpy(),
            "start": np.asarray(starts, dtype=np.int64),
            "end": np.asarray(ends, dtype=np.int64),
        }))

    @classmethod
    def from_intervals(cls, intervals: Iterable[GenomicInterval]) -> "IntervalSet":
        intervals = list(intervals)
        return cls.from_arrays(
            [iv.chrom for iv in intervals],
            [iv.start for iv in intervals],
            [iv.end for iv in intervals],
        )

    @classmethod
    def from_rows(
        cls,
        rows: Union[pd.DataFrame, Sequence[Sequence]],
        convention: str = ONE_BASED,
        name: str = "regions",
    ) -> "IntervalSet":
        """Build from rows of (chrom, start[, end]).

        With only two columns each row is a single position (end := start).
        Rows whose coordinates are not finite numbers, or whose start exceeds
        the end once converted, are dropped with a warning.

        Raises
        ------
        MalformedInputError
            If fewer than two columns are present.
        """
        if isinstance(rows, pd.DataFrame):
            frame = rows
        else:
            rows = list(rows)
            if not rows:
                return cls.empty()
            frame = pd.DataFrame(rows)

        if frame.shape[1] < 2:
            if frame.empty:
                return cls.empty()
            raise MalformedInputError(
                f"{name}: expected at least 2 columns (chrom, start[, end]), got {frame.shape[1]}",
                n_columns=frame.shape[1],
                required=2,
            )

        chroms = frame.iloc[:, 0]
        starts = pd.to_numeric(frame.iloc[:, 1], errors="coerce").astype(float)
        starts = to_one_based(starts, convention)
        if frame.shape[1] >= 3:
            ends = pd.to_numeric(frame.iloc[:, 2], errors="coerce").astype(float)
        else:
            # A single position is its own end
            ends = starts.copy()

        valid = (
            chroms.notna().to_numpy()
            & np.isfinite(starts.to_numpy())
            & np.isfinite(ends.to_numpy())
        )
        valid &= starts.to_numpy() <= ends.to_numpy()

        n_dropped = int((~valid).sum())
        if n_dropped:
            logger.warning(
                "%s: dropped %d of %d rows with missing or invalid coordinates",
                name, n_dropped, len(frame),
            )

        return cls.from_arrays(
            chroms.to_numpy()[valid],
            starts.to_numpy()[valid].astype(np.int64),
            ends.to_numpy()[valid].astype(np.int64),
        )

    @classmethod
    def union(cls, sets: Iterable["IntervalSet"]) -> "IntervalSet":
        """Reduced union of several interval sets."""
        frames = [s._frame for s in sets if len(s)]
        if not frames:
            return cls.empty()
        return cls(pd.concat(frames, ignore_index=True)).reduce()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._frame)

    def __iter__(self) -> Iterator[GenomicInterval]:
        for chrom, start, end in self._frame.itertuples(index=False, name=None):
            yield GenomicInterval(chrom, int(start), int(end))

    def __getitem__(self, i: int) -> GenomicInterval:
        row = self._frame.iloc[i]
        return GenomicInterval(row["chr"], int(row["start"]), int(row["end"]))

    def __eq__(self, other) -> bool:
        if not isinstance(other, IntervalSet):
            return NotImplemented
        if len(self) != len(other):
            return False
        a, b = self._frame, other._frame
        return (
            list(a["chr"]) == list(b["chr"])
            and np.array_equal(a["start"].to_numpy(), b["start"].to_numpy())
            and np.array_equal(a["end"].to_numpy(), b["end"].to_numpy())
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"IntervalSet(n={len(self)}, bases={self.total_bases()})"

    def __getstate__(self):
        return {"_frame": self._frame, "_chrom_cache": None}

    @property
    def chromosomes(self) -> List[str]:
        return list(self.by_chrom().keys())

    def to_frame(self) -> pd.DataFrame:
        return self._frame.copy()

    def to_rows(self) -> List[Tuple[str, int, int]]:
        return [(c, int(s), int(e)) for c, s, e in self._frame.itertuples(index=False, name=None)]

    def widths(self) -> np.ndarray:
        return (self._frame["end"] - self._frame["start"] + 1).to_numpy(dtype=np.int64)

    def by_chrom(self) -> Dict[str, Tuple[np.ndarray, np.ndarray]]:
        """Start/end arrays grouped by chromosome, in natural chromosome order."""
        if self._chrom_cache is None:
            groups = {}
            for chrom, grp in self._frame.groupby("chr", sort=False):
                groups[chrom] = (
                    grp["start"].to_numpy(dtype=np.int64),
                    grp["end"].to_numpy(dtype=np.int64),
                )
            self._chrom_cache = {c: groups[c] for c in sort_chromosomes(list(groups))}
        return self._chrom_cache

    def total_bases(self) -> int:
        """Sum of interval widths. Reduce first; overlaps are counted twice."""
        if self._frame.empty:
            return 0
        return int(self.widths().sum())

    # ------------------------------------------------------------------
    # Interval algebra
    # ------------------------------------------------------------------

    def reduce(self) -> "IntervalSet":
        """Merge overlapping or adjacent intervals into a minimal disjoint cover."""
        chroms, starts, ends = [], [], []
        for chrom, (s, e) in self.by_chrom().items():
            order = np.lexsort((e, s))
            s, e = s[order], e[order]
            run_end = np.maximum.accumulate(e)
            new_run = np.ones(len(s), dtype=bool)
            new_run[1:] = s[1:] > run_end[:-1] + 1
            heads = np.flatnonzero(new_run)
            starts.append(s[heads])
            ends.append(np.maximum.reduceat(e, heads))
            chroms.extend([chrom] * len(heads))

        if not chroms:
            return IntervalSet.empty()
        return IntervalSet.from_arrays(chroms, np.concatenate(starts), np.concatenate(ends))

    def is_reduced(self) -> bool:
        return self.reduce() == self

    def intersect(self, other: "IntervalSet") -> "IntervalSet":
        """Intersected sub-ranges of every overlapping pair, in sorted order."""
        hits = find_overlaps(self._frame, other._frame)
        if hits.empty:
            return IntervalSet.empty()

        order = {c: i for i, c in enumerate(sort_chromosomes(list(hits["chr"].unique())))}
        hits = hits.assign(_rank=hits["chr"].map(order))
        hits = hits.sort_values(["_rank", "start", "end"], kind="mergesort")
        return IntervalSet.from_arrays(hits["chr"], hits["start"], hits["end"])

    def intersect_count(self, other: "IntervalSet") -> int:
        """Sum of intersected widths over every overlapping pair."""
        total = 0
        other_map = other.by_chrom()
        for chrom, (q_starts, q_ends) in self.by_chrom().items():
            if chrom not in other_map:
                continue
            s_starts, s_ends = other_map[chrom]
            q_pos, s_pos = _chrom_overlaps(q_starts, q_ends, s_starts, s_ends)
            if len(q_pos):
                lo = np.maximum(q_starts[q_pos], s_starts[s_pos])
                hi = np.minimum(q_ends[q_pos], s_ends[s_pos])
                total += int((hi - lo + 1).sum())
        return total
