"""
Annotation catalogs: named, ordered collections of reduced interval sets.

Each category (a TF, a histone mark, an enhancer class ...) maps to the
bases it covers. Category order is kept from construction and drives the
row order of every result table.
"""

import logging
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import MalformedInputError
from .intervals import ONE_BASED, IntervalSet

logger = logging.getLogger(__name__)


class AnnotationCatalog:
    """Ordered mapping from category name to a reduced IntervalSet."""

    def __init__(self, categories: Mapping[str, IntervalSet] = None):
        self._categories: Dict[str, IntervalSet] = {}
        for name, intervals in (categories or {}).items():
            self._categories[str(name)] = intervals

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Union[IntervalSet, Sequence]]) -> "AnnotationCatalog":
        """Build from a pre-split mapping; every category is reduced."""
        categories = {}
        for name, value in mapping.items():
            if not isinstance(value, IntervalSet):
                value = IntervalSet.from_rows(value, name=f"annotation '{name}'")
            categories[name] = value.reduce()
        return cls(categories)

    @classmethod
    def from_flat_table(
        cls,
        rows: Union[pd.DataFrame, Sequence[Sequence]],
        convention: str = ONE_BASED,
    ) -> "AnnotationCatalog":
        """Split (chrom, start, end, label) rows into one reduced set per label.

        Labels keep their order of first appearance.

        Raises
        ------
        MalformedInputError
            If fewer than four columns are present.
        """
        frame = rows if isinstance(rows, pd.DataFrame) else pd.DataFrame(list(rows))
        if frame.empty and frame.shape[1] < 4:
            return cls()
        if frame.shape[1] < 4:
            raise MalformedInputError(
                f"annotation: expected at least 4 columns (chrom, start, end, label), got {frame.shape[1]}",
                n_columns=frame.shape[1],
                required=4,
            )

        labels = frame.iloc[:, 3]
        keep = labels.notna()
        if not keep.all():
            logger.warning("annotation: dropped %d rows without a label", int((~keep).sum()))
        frame = frame[keep]

        categories = {}
        for label, grp in frame.groupby(frame.iloc[:, 3].astype(str), sort=False):
            intervals = IntervalSet.from_rows(
                grp.iloc[:, :3], convention=convention, name=f"annotation '{label}'"
            )
            categories[label] = intervals.reduce()
        return cls(categories)

    # ------------------------------------------------------------------
    # Mapping interface
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[str]:
        return iter(self._categories)

    def __contains__(self, name) -> bool:
        return name in self._categories

    def __getitem__(self, name: str) -> IntervalSet:
        return self._categories[name]

    def __repr__(self) -> str:
        return f"AnnotationCatalog(n_categories={len(self)})"

    @property
    def names(self) -> List[str]:
        return list(self._categories)

    def items(self) -> Iterator[Tuple[str, IntervalSet]]:
        return iter(self._categories.items())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def union(self) -> IntervalSet:
        """Reduced union of all categories (the annotatable bases)."""
        return IntervalSet.union(self._categories.values())

    def restrict_to(self, background: IntervalSet) -> "AnnotationCatalog":
        """Keep only the sub-ranges of each category lying within background."""
        return AnnotationCatalog({
            name: intervals.intersect(background)
            for name, intervals in self._categories.items()
        })

    def annotation_bases(self) -> pd.Series:
        """Bases covered per category."""
        return pd.Series(
            [intervals.total_bases() for intervals in self._categories.values()],
            index=self.names,
            dtype=np.int64,
        )

    def overlap_counts(self, query: IntervalSet) -> pd.Series:
        """Bases of query overlapping each category; empty categories report 0."""
        return pd.Series(
            [query.intersect_count(intervals) for intervals in self._categories.values()],
            index=self.names,
            dtype=np.int64,
        )
