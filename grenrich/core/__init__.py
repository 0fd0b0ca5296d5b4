"""
Core analysis modules for GREnrich.

Includes:
- Interval algebra (NCLS-backed overlaps, reduction, intersection)
- Input parsing for the supported region formats
- Background resolution and island-constrained sampling
- Parallel null generation and enrichment statistics
"""

# Interval algebra
from .intervals import GenomicInterval, IntervalSet, find_overlaps, sort_chromosomes, to_one_based

# Inputs
from .ingest import FORMATS, parse_annotations, parse_regions, read_region_table
from .catalog import AnnotationCatalog
from .background import BackgroundResolver, ResolvedInputs

# Null generation
from .sampling import IslandSampler
from .overlap import ObservedOverlap, OverlapCounter
from .parallel import ParallelDispatcher

# Statistics and results
from .statistics import EnrichmentEstimator, p_adjust
from .enrichment import (
    EnrichmentConfig,
    EnrichmentResults,
    RegionEnrichmentAnalyzer,
    run_region_enrichment,
    save_results,
)
from .viewer import format_enrichment, view_enrichment

# Exceptions
from .exceptions import (
    GREnrichError,
    MalformedInputError,
    ConfigurationError,
    InvalidParameterError,
    SamplingExhaustionError,
    WorkerFailure,
    RunAbortedError,
)
