"""
Enrichment statistics from observed and null overlap counts.

For each annotation category:

- fc      observed / mean of the null (1 when the null mean is 0)
- zscore  (observed - null mean) / null sd (0 for 0/0 or an undefined sd;
          x/0 takes the largest finite z-score)
- pvalue  fraction of null samples with an overlap >= observed
          (one-sided, upper tail; 1 when fc is undefined)
- adjp    multiple-testing adjusted pvalue
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from .exceptions import EmptyDataError, InvalidParameterError
from .overlap import ObservedOverlap

logger = logging.getLogger(__name__)

# User-facing method names -> statsmodels method names
P_ADJUST_METHODS = {
    "BH": "fdr_bh",
    "BY": "fdr_by",
    "bonferroni": "bonferroni",
    "holm": "holm",
    "hochberg": "simes-hochberg",
    "hommel": "hommel",
}

RESULT_COLUMNS = ["name", "nAnno", "nOverlap", "fc", "zscore", "pvalue", "adjp", "nData", "nBG"]


def p_adjust(pvalues: Sequence[float], method: str = "BH") -> np.ndarray:
    """Adjust p-values for multiple comparisons.

    BH and BY control the false discovery rate; bonferroni, holm, hochberg
    and hommel control the family-wise error rate.
    """
    if method not in P_ADJUST_METHODS:
        raise InvalidParameterError("p_adjust_method", method, f"one of {list(P_ADJUST_METHODS)}")

    pvals = np.asarray(pvalues, dtype=float)
    if pvals.size == 0:
        return pvals.copy()

    _, corrected, _, _ = multipletests(pvals, method=P_ADJUST_METHODS[method])
    return np.minimum(corrected, 1.0)


@dataclass
class EnrichmentEstimator:
    """Turn observed overlaps and a null matrix into an enrichment table."""

    p_adjust_method: str = "BH"

    def estimate(self, observed: ObservedOverlap, null_matrix) -> pd.DataFrame:
        """
        Compute enrichment statistics per category.

        Args:
            observed: Observed base counts (category order is kept)
            null_matrix: num_samples x n_categories overlap counts

        Returns:
            DataFrame with RESULT_COLUMNS plus ``nExpect`` (the null mean)
        """
        names = list(observed.overlap_nbases.index)
        obs = observed.overlap_nbases.to_numpy(dtype=float)
        null = np.asarray(null_matrix, dtype=float)
        if null.size == 0:
            raise EmptyDataError("null distribution")
        if null.ndim != 2 or null.shape[1] != len(names):
            raise ValueError(
                f"null matrix shape {null.shape} does not match {len(names)} categories"
            )

        n_samples = null.shape[0]

        null_df = pd.DataFrame(null, columns=names)
        exp_mean = null_df.mean().to_numpy()
        exp_std = null_df.std().to_numpy()

        with np.errstate(divide="ignore", invalid="ignore"):
            fc = obs / exp_mean
            zscore = (obs - exp_mean) / exp_std

        # Fold change undefined: treated as non-significant
        undefined = ~(exp_mean > 0)
        fc[undefined] = 1.0

        # 0/0 (or an undefined sd) carries no signal; x/0 takes the largest finite z-score
        zscore[np.isnan(zscore)] = 0.0
        infinite = np.isinf(zscore)
        if infinite.any():
            finite = zscore[~infinite]
            zscore[infinite] = finite.max() if finite.size else 0.0

        pvalue = (null >= obs[np.newaxis, :]).sum(axis=0) / n_samples
        pvalue[undefined] = 1.0

        adjp = p_adjust(pvalue, self.p_adjust_method)

        if undefined.any():
            logger.info("%d categories have a zero expected overlap (fc set to 1)", int(undefined.sum()))

        return pd.DataFrame({
            "name": names,
            "nAnno": observed.annotation_nbases.reindex(names).to_numpy(dtype=np.int64),
            "nOverlap": observed.overlap_nbases.to_numpy(dtype=np.int64),
            "fc": fc,
            "zscore": zscore,
            "pvalue": pvalue,
            "adjp": adjp,
            "nData": observed.data_nbases,
            "nBG": observed.background_nbases,
            "nExpect": exp_mean,
        })
