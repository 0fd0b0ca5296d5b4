"""
Input normalisation for GREnrich.

Every supported input encoding is turned into the canonical IntervalSet /
AnnotationCatalog representation here, before any interval arithmetic runs:

- ``data.frame``     chrom, start[, end] columns, 1-based
- ``bed``            as data.frame but with 0-based starts
- ``chr:start-end``  a single "chr:start-end" (or "chr:pos") string column
- ``GRanges``        an already built IntervalSet / AnnotationCatalog
"""

import logging
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .catalog import AnnotationCatalog
from .exceptions import ConfigurationError, MalformedInputError
from .intervals import ONE_BASED, ZERO_BASED, IntervalSet

logger = logging.getLogger(__name__)

FORMAT_DATA_FRAME = "data.frame"
FORMAT_BED = "bed"
FORMAT_RANGE_STRING = "chr:start-end"
FORMAT_PREBUILT = "GRanges"

FORMATS = (FORMAT_DATA_FRAME, FORMAT_BED, FORMAT_RANGE_STRING, FORMAT_PREBUILT)

# Standard column name mappings for tables that carry a header
CHROM_COLS = ["chr", "chrom", "chromosome", "seqnames", "#chr"]
START_COLS = ["start", "chromStart", "pos", "position"]
END_COLS = ["end", "chromEnd"]
LABEL_COLS = ["name", "label", "annotation", "category"]

_RANGE_PATTERN = r"^\s*([^:\s]+):\s*([^-\s]+)(?:-\s*(\S+))?\s*$"


# ============================================================================
# Table helpers
# ============================================================================


def read_region_table(filepath, sep: str = "\t") -> pd.DataFrame:
    """Read a header-less, tab-delimited region file as a table of strings.

    Lines starting with '#' are skipped. An empty file gives an empty frame.
    """
    try:
        return pd.read_csv(
            filepath, sep=sep, header=None, dtype=str, comment="#", skip_blank_lines=True
        )
    except pd.errors.EmptyDataError:
        logger.warning("Region file %s is empty", filepath)
        return pd.DataFrame()


def detect_column(df: pd.DataFrame, candidates: List[str]) -> Optional[str]:
    """Find the first matching column name from a list of candidates (case-insensitive)."""
    cols_lower = {str(c).lower(): c for c in df.columns}
    for cand in candidates:
        if cand.lower() in cols_lower:
            return cols_lower[cand.lower()]
    return None


def standardize_region_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Move recognisable chrom/start/end/label columns to the front.

    Header-less tables (integer column labels) are returned unchanged; the
    parsers below are positional, like the tab-delimited files they mirror.
    """
    chrom_col = detect_column(df, CHROM_COLS)
    start_col = detect_column(df, START_COLS)
    if chrom_col is None or start_col is None:
        return df

    ordered = [chrom_col, start_col]
    end_col = detect_column(df, END_COLS)
    if end_col is not None:
        ordered.append(end_col)
    label_col = detect_column(df, LABEL_COLS)
    if label_col is not None and end_col is not None:
        ordered.append(label_col)
    rest = [c for c in df.columns if c not in ordered]
    return df[ordered + rest]


def _as_frame(obj) -> pd.DataFrame:
    if isinstance(obj, pd.DataFrame):
        return standardize_region_columns(obj)
    if isinstance(obj, (str, Path)):
        return read_region_table(obj)
    return pd.DataFrame(list(obj))


def split_range_strings(values: pd.Series) -> pd.DataFrame:
    """Split "chr:start-end" strings into chrom/start/end columns.

    A "chr:pos" string is a single position. Unparseable strings yield a row
    of missing values, which later construction drops.
    """
    parts = values.astype(str).str.extract(_RANGE_PATTERN)
    parts.columns = ["chr", "start", "end"]
    parts["end"] = parts["end"].fillna(parts["start"])
    return parts


# ============================================================================
# Format normalisers
# ============================================================================


def _positional(frame: pd.DataFrame) -> Tuple[pd.DataFrame, str]:
    return frame, ONE_BASED


def _bed(frame: pd.DataFrame) -> Tuple[pd.DataFrame, str]:
    return frame, ZERO_BASED


def _range_string(frame: pd.DataFrame) -> Tuple[pd.DataFrame, str]:
    if frame.shape[1] < 1:
        return frame, ONE_BASED
    parts = split_range_strings(frame.iloc[:, 0])
    rest = frame.iloc[:, 1:].reset_index(drop=True)
    rest.columns = range(3, 3 + rest.shape[1])
    parts.columns = [0, 1, 2]
    return pd.concat([parts.reset_index(drop=True), rest], axis=1), ONE_BASED


_NORMALISERS: Dict[str, Callable[[pd.DataFrame], Tuple[pd.DataFrame, str]]] = {
    FORMAT_DATA_FRAME: _positional,
    FORMAT_BED: _bed,
    FORMAT_RANGE_STRING: _range_string,
}


def _check_format(fmt: str) -> None:
    if fmt not in FORMATS:
        raise ConfigurationError(f"Unknown input format {fmt!r}. Supported: {list(FORMATS)}")


# ============================================================================
# Public entry points
# ============================================================================


def parse_regions(obj, fmt: str = FORMAT_DATA_FRAME, name: str = "data") -> IntervalSet:
    """Turn region input of any supported format into an IntervalSet."""
    _check_format(fmt)
    if isinstance(obj, IntervalSet):
        return obj
    if fmt == FORMAT_PREBUILT:
        raise ConfigurationError(f"{name}: format 'GRanges' expects an IntervalSet, got {type(obj).__name__}")

    frame, convention = _NORMALISERS[fmt](_as_frame(obj))
    if frame.shape[1] == 2:
        logger.info("%s: two columns given, treating rows as single positions", name)
    return IntervalSet.from_rows(frame, convention=convention, name=name)


def parse_annotations(
    obj: Union[AnnotationCatalog, Mapping, pd.DataFrame, list, str, Path],
    fmt: str = FORMAT_DATA_FRAME,
) -> AnnotationCatalog:
    """Turn annotation input of any supported format into an AnnotationCatalog.

    Flat tables carry the category label in the 4th column (2nd column for
    the 'chr:start-end' format).
    """
    _check_format(fmt)
    if isinstance(obj, AnnotationCatalog):
        return obj
    if isinstance(obj, Mapping):
        if fmt == FORMAT_PREBUILT:
            return AnnotationCatalog.from_mapping(obj)
        return AnnotationCatalog.from_mapping({
            name: parse_regions(value, fmt, name=f"annotation '{name}'")
            for name, value in obj.items()
        })
    if fmt == FORMAT_PREBUILT:
        raise ConfigurationError(
            f"annotation: format 'GRanges' expects an AnnotationCatalog or mapping, got {type(obj).__name__}"
        )

    frame = _as_frame(obj)
    if frame.empty:
        return AnnotationCatalog()
    if fmt == FORMAT_RANGE_STRING:
        if frame.shape[1] < 2:
            raise MalformedInputError(
                f"annotation: expected 'chr:start-end' and label columns, got {frame.shape[1]}",
                n_columns=frame.shape[1],
                required=2,
            )
        frame = pd.concat(
            [split_range_strings(frame.iloc[:, 0]).reset_index(drop=True),
             frame.iloc[:, 1].reset_index(drop=True).rename("label")],
            axis=1,
        )
        convention = ONE_BASED
    else:
        frame, convention = _NORMALISERS[fmt](frame)
    return AnnotationCatalog.from_flat_table(frame, convention=convention)
