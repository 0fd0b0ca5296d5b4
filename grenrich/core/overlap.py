"""
Overlap base counting against an annotation catalog.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .background import ResolvedInputs
from .catalog import AnnotationCatalog
from .intervals import IntervalSet

logger = logging.getLogger(__name__)


@dataclass
class ObservedOverlap:
    """Base counts for the observed (resolved) input."""
    annotation_nbases: pd.Series
    overlap_nbases: pd.Series
    data_nbases: int
    background_nbases: int


class OverlapCounter:
    """Count overlapping bases between query sets and every catalog category."""

    def __init__(self, catalog: AnnotationCatalog):
        self.catalog = catalog

    def observed(self, resolved: ResolvedInputs) -> ObservedOverlap:
        """Annotation, overlap, data and background base counts for the real data."""
        result = ObservedOverlap(
            annotation_nbases=self.catalog.annotation_bases(),
            overlap_nbases=self.catalog.overlap_counts(resolved.data),
            data_nbases=resolved.data.total_bases(),
            background_nbases=resolved.background.total_bases(),
        )
        logger.info(
            "Number of bases: data (%d), background (%d); annotations: %d",
            result.data_nbases, result.background_nbases, len(self.catalog),
        )
        return result

    def count(self, query: IntervalSet) -> np.ndarray:
        """Overlap bases per category (catalog order) for one query set."""
        return self.catalog.overlap_counts(query.reduce()).to_numpy(dtype=np.int64)
