"""
Region Enrichment Analysis Module

Tests whether a set of genomic regions overlaps annotation categories more
(or less) than expected, using an empirical null built by re-placing the
regions at random inside the background.

Workflow:
1. Import data, annotation and background into reduced interval sets
2. Resolve the background and restrict the catalog and data to it
3. Draw null samples within background islands (in parallel)
4. Count observed and null overlaps per category
5. Compute fc / zscore / pvalue / adjp
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import numpy as np
import pandas as pd

from .background import BackgroundResolver
from .exceptions import InvalidParameterError, validate_numeric_param
from .ingest import FORMATS, parse_annotations, parse_regions
from .overlap import OverlapCounter
from .parallel import BACKENDS, ParallelDispatcher
from .sampling import IslandSampler
from .statistics import P_ADJUST_METHODS, EnrichmentEstimator

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentConfig:
    """Configuration for a region enrichment run."""

    # Input
    format: str = "data.frame"
    background_annotatable_only: bool = False

    # Sampling
    num_samples: int = 1000
    gap_max: float = 50000
    max_distance: Optional[int] = None
    seed: Optional[int] = None

    # Statistics
    p_adjust_method: str = "BH"

    # Execution
    parallel: bool = True
    multicores: Optional[int] = None  # None: half of the available cores
    backend: str = "thread"
    timeout: Optional[float] = None

    # Output
    output_dir: Optional[str] = None

    @classmethod
    def from_settings(cls, settings, **overrides) -> "EnrichmentConfig":
        """Build a config from application settings, then apply overrides.

        Overrides are applied as given, so an explicit ``None`` clears a
        settings default such as ``max_distance`` or ``seed``.
        """
        values = dict(
            format=settings.default_format,
            background_annotatable_only=settings.default_background_annotatable_only,
            num_samples=settings.default_num_samples,
            gap_max=settings.default_gap_max,
            max_distance=settings.default_max_distance,
            seed=settings.default_seed,
            p_adjust_method=settings.default_p_adjust_method,
            parallel=settings.default_parallel,
            multicores=settings.default_multicores,
            backend=settings.default_backend,
            timeout=settings.run_timeout,
        )
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        if self.format not in FORMATS:
            raise InvalidParameterError("format", self.format, f"one of {list(FORMATS)}")
        if self.p_adjust_method not in P_ADJUST_METHODS:
            raise InvalidParameterError("p_adjust_method", self.p_adjust_method, f"one of {list(P_ADJUST_METHODS)}")
        if self.backend not in BACKENDS:
            raise InvalidParameterError("backend", self.backend, f"one of {list(BACKENDS)}")
        if isinstance(self.num_samples, bool) or not isinstance(self.num_samples, (int, np.integer)):
            raise InvalidParameterError("num_samples", self.num_samples, "a positive integer")
        validate_numeric_param(self.num_samples, "num_samples", min_val=1)
        validate_numeric_param(self.gap_max, "gap_max", min_val=0)
        if self.max_distance is not None:
            validate_numeric_param(self.max_distance, "max_distance", min_val=0)
        if self.multicores is not None:
            validate_numeric_param(self.multicores, "multicores", min_val=1)
        if self.timeout is not None:
            validate_numeric_param(self.timeout, "timeout", min_val=0)


@dataclass
class EnrichmentResults:
    """Results from a region enrichment run."""
    table: pd.DataFrame
    expected: pd.Series
    null_matrix: np.ndarray
    data_nbases: int
    background_nbases: int
    num_samples: int
    runtime_seconds: float = 0.0
    config: Dict[str, Any] = field(default_factory=dict)

    def significant(self, alpha: float = 0.05) -> pd.DataFrame:
        return self.table[self.table["adjp"] < alpha]

    def to_dict(self) -> Dict:
        return {
            "num_samples": self.num_samples,
            "data_nbases": self.data_nbases,
            "background_nbases": self.background_nbases,
            "n_categories": len(self.table),
            "n_significant": int((self.table["adjp"] < 0.05).sum()),
            "runtime_seconds": round(self.runtime_seconds, 3),
            "results": self.table.to_dict(orient="records"),
        }


@dataclass
class NullOverlapTask:
    """Overlap counts of null sample ``index``; picklable for process pools."""
    sampler: IslandSampler
    counter: OverlapCounter

    def __call__(self, index: int) -> np.ndarray:
        return self.counter.count(self.sampler.sample(index))


class RegionEnrichmentAnalyzer:
    """
    Sampling-based enrichment of genomic regions in annotation categories.

    Example:
        analyzer = RegionEnrichmentAnalyzer()
        results = analyzer.run(data, annotation, config=EnrichmentConfig(seed=1))
        print(results.table)
    """

    def __init__(self):
        self.resolver = BackgroundResolver()

    def run(
        self,
        data,
        annotation,
        background=None,
        config: Optional[EnrichmentConfig] = None,
        cancel_event: Optional[threading.Event] = None,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> EnrichmentResults:
        """
        Run the complete enrichment pipeline.

        Args:
            data: Input regions in ``config.format``
            annotation: Annotation catalog, mapping or flat labelled table
            background: Optional background regions in ``config.format``
            config: Run configuration (defaults when None)
            cancel_event: Set to abort the run
            progress: Callback receiving (completed samples, total)

        Returns:
            EnrichmentResults
        """
        config = config or EnrichmentConfig()
        config.validate()

        start_time = time.perf_counter()
        logger.info("Start at %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

        # Step 1: Import
        logger.info("First, import the data, annotation and background (%s)...", datetime.now().strftime("%H:%M:%S"))
        data_set = parse_regions(data, config.format, name="data")
        catalog = parse_annotations(annotation, config.format)
        background_set = None
        if background is not None:
            background_set = parse_regions(background, config.format, name="background")
            if len(background_set) == 0:
                logger.warning("The given background is empty; falling back to the annotatable regions")
                background_set = None
        logger.info("%d data regions and %d annotation categories imported", len(data_set), len(catalog))

        # Step 2: Background
        logger.info("Second, define the background (%s)...", datetime.now().strftime("%H:%M:%S"))
        resolved = self.resolver.resolve(
            data_set,
            catalog,
            background=background_set,
            restrict_to_annotatable=config.background_annotatable_only,
        )
        if len(resolved.data) == 0:
            logger.warning("No data regions fall within the background; all categories will be non-significant")

        counter = OverlapCounter(resolved.catalog)
        observed = counter.observed(resolved)

        # Step 3: Null samples
        logger.info(
            "Third, generate null distribution via %d sampling (%s)...",
            config.num_samples, datetime.now().strftime("%H:%M:%S"),
        )
        sampler = IslandSampler(
            resolved.data,
            resolved.background,
            gap_max=config.gap_max,
            max_distance=config.max_distance,
            seed=config.seed,
        )
        dispatcher = ParallelDispatcher(
            parallel=config.parallel,
            max_workers=config.multicores,
            backend=config.backend,
            timeout=config.timeout,
            cancel_event=cancel_event,
            progress=progress,
        )
        rows = dispatcher.map(NullOverlapTask(sampler, counter), config.num_samples)
        null_matrix = np.vstack(rows) if rows else np.zeros((0, len(resolved.catalog)), dtype=np.int64)

        # Step 4: Statistics
        logger.info("Last, estimate the significance (%s)...", datetime.now().strftime("%H:%M:%S"))
        table = EnrichmentEstimator(config.p_adjust_method).estimate(observed, null_matrix)

        runtime = time.perf_counter() - start_time
        logger.info("End at %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
        logger.info("Runtime in total is: %.2f secs", runtime)

        results = EnrichmentResults(
            table=table,
            expected=table.set_index("name")["nExpect"],
            null_matrix=null_matrix,
            data_nbases=observed.data_nbases,
            background_nbases=observed.background_nbases,
            num_samples=config.num_samples,
            runtime_seconds=runtime,
            config=asdict(config),
        )

        if config.output_dir:
            save_results(results, config.output_dir)

        return results


def save_results(results: EnrichmentResults, output_dir) -> Path:
    """Write the enrichment table and null matrix to ``output_dir``."""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    results.table.to_csv(output_path / "enrichment.tsv", sep="\t", index=False)
    pd.DataFrame(results.null_matrix, columns=results.table["name"]).to_csv(
        output_path / "null_overlaps.tsv", sep="\t", index=False
    )

    logger.info("Results saved to %s", output_path)
    return output_path


# Convenience function
def run_region_enrichment(
    data,
    annotation,
    background=None,
    **kwargs
) -> EnrichmentResults:
    """
    Convenience function to run region enrichment.

    Args:
        data: Input regions
        annotation: Annotation categories
        background: Optional background regions
        **kwargs: EnrichmentConfig fields

    Returns:
        EnrichmentResults
    """
    config = EnrichmentConfig(**kwargs)
    analyzer = RegionEnrichmentAnalyzer()
    return analyzer.run(data, annotation, background=background, config=config)
