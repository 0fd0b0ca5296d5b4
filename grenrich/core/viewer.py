"""
Tabular views of enrichment results.
"""

import logging
from typing import Optional, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidParameterError, validate_dataframe
from .statistics import RESULT_COLUMNS

logger = logging.getLogger(__name__)

VIEW_COLUMNS = ["name", "nAnno", "nOverlap", "fc", "zscore", "pvalue", "adjp"]
DETAIL_COLUMNS = ["nData", "nBG", "nExpect"]

# sort key -> ascending
SORT_KEYS = {
    "adjp": True,
    "pvalue": True,
    "fc": False,
    "zscore": False,
    "name": True,
}


def signif(values, digits: int) -> np.ndarray:
    """Round to ``digits`` significant digits (0 and non-finite values kept)."""
    x = np.asarray(values, dtype=float)
    out = x.copy()
    mask = np.isfinite(x) & (x != 0)
    if mask.any():
        magnitude = np.floor(np.log10(np.abs(x[mask]))).astype(int)
        out[mask] = [round(v, int(digits - 1 - m)) for v, m in zip(x[mask], magnitude)]
    return out


def format_enrichment(table: pd.DataFrame) -> pd.DataFrame:
    """Display rounding: zscore 3 significant digits, p-values 2, fc 2 decimals."""
    formatted = table.copy()
    if "fc" in formatted:
        formatted["fc"] = formatted["fc"].round(2)
    if "zscore" in formatted:
        formatted["zscore"] = signif(formatted["zscore"], 3)
    for col in ("pvalue", "adjp"):
        if col in formatted:
            formatted[col] = signif(formatted[col], 2)
    if "nExpect" in formatted:
        formatted["nExpect"] = formatted["nExpect"].round(2)
    return formatted


def view_enrichment(
    results,
    top_num: Optional[Union[int, str]] = 10,
    sort_by: str = "adjp",
    details: bool = False,
    significant_only: bool = False,
    alpha: float = 0.05,
) -> pd.DataFrame:
    """
    View the top enriched categories.

    Args:
        results: EnrichmentResults or its table
        top_num: Number of rows to keep; "all" or None keeps every row
        sort_by: One of adjp, pvalue (ascending), fc, zscore (descending), name
        details: Also show nData, nBG and nExpect
        significant_only: Keep rows with adjp < alpha
        alpha: Significance threshold for ``significant_only``

    Returns:
        Formatted DataFrame indexed by category name
    """
    table = getattr(results, "table", results)
    validate_dataframe(table, "enrichment table", required_columns=RESULT_COLUMNS)

    if sort_by not in SORT_KEYS:
        raise InvalidParameterError("sort_by", sort_by, f"one of {list(SORT_KEYS)}")

    if top_num is None or top_num == "all":
        n_rows = len(table)
    elif isinstance(top_num, (int, np.integer)) and not isinstance(top_num, bool) and top_num >= 1:
        n_rows = min(int(top_num), len(table))
    else:
        raise InvalidParameterError("top_num", top_num, "a positive integer, 'all' or None")

    view = table
    if significant_only:
        view = view[view["adjp"] < alpha]

    # Secondary key on name keeps ties deterministic
    if sort_by == "name":
        view = view.sort_values("name", kind="mergesort")
    else:
        view = view.sort_values([sort_by, "name"], ascending=[SORT_KEYS[sort_by], True], kind="mergesort")

    columns = VIEW_COLUMNS + [c for c in DETAIL_COLUMNS if details and c in view.columns]
    view = view.head(n_rows)[columns]

    logger.debug("Showing %d of %d categories sorted by %s", len(view), len(table), sort_by)
    return format_enrichment(view).set_index("name")
