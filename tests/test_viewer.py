"""
Unit tests for the enrichment result viewer.
"""

import numpy as np
import pandas as pd
import pytest

from grenrich.core.exceptions import InvalidParameterError, MissingColumnError
from grenrich.core.viewer import format_enrichment, signif, view_enrichment


@pytest.fixture
def enrichment_table():
    return pd.DataFrame({
        "name": ["C", "A", "B", "D"],
        "nAnno": [100, 200, 300, 400],
        "nOverlap": [10, 50, 5, 0],
        "fc": [1.23456, 4.5, 0.5, 1.0],
        "zscore": [0.123456, 5.4321, -1.98765, 0.0],
        "pvalue": [0.3, 0.0012345, 0.9, 1.0],
        "adjp": [0.4, 0.0049382, 0.9, 1.0],
        "nData": [60] * 4,
        "nBG": [10000] * 4,
        "nExpect": [8.1234, 11.11, 10.0, 0.0],
    })


class TestSignif:
    """Tests for significant-digit rounding."""

    def test_rounding(self):
        np.testing.assert_allclose(signif([0.0012345, 123.456, -1.98765], 2), [0.0012, 120.0, -2.0])

    def test_zero_and_nonfinite_kept(self):
        out = signif([0.0, np.inf, np.nan], 3)
        assert out[0] == 0.0
        assert np.isinf(out[1])
        assert np.isnan(out[2])


class TestFormatEnrichment:
    """Tests for display rounding."""

    def test_format(self, enrichment_table):
        formatted = format_enrichment(enrichment_table).set_index("name")
        assert formatted.loc["C", "fc"] == 1.23
        assert formatted.loc["C", "zscore"] == pytest.approx(0.123)
        assert formatted.loc["A", "pvalue"] == pytest.approx(0.0012)
        assert formatted.loc["A", "adjp"] == pytest.approx(0.0049)

    def test_does_not_modify_input(self, enrichment_table):
        format_enrichment(enrichment_table)
        assert enrichment_table.loc[0, "fc"] == 1.23456


class TestViewEnrichment:
    """Tests for view_enrichment."""

    def test_default_sorted_by_adjp(self, enrichment_table):
        view = view_enrichment(enrichment_table)
        assert list(view.index) == ["A", "C", "B", "D"]
        assert "nExpect" not in view.columns

    def test_top_num(self, enrichment_table):
        assert len(view_enrichment(enrichment_table, top_num=2)) == 2
        assert len(view_enrichment(enrichment_table, top_num=100)) == 4
        assert len(view_enrichment(enrichment_table, top_num="all")) == 4
        assert len(view_enrichment(enrichment_table, top_num=None)) == 4

    def test_sort_descending_keys(self, enrichment_table):
        assert list(view_enrichment(enrichment_table, sort_by="fc").index) == ["A", "C", "D", "B"]
        assert list(view_enrichment(enrichment_table, sort_by="zscore").index) == ["A", "C", "D", "B"]

    def test_ties_broken_by_name(self):
        table = pd.DataFrame({
            "name": ["b", "a", "c"],
            "nAnno": [1, 1, 1], "nOverlap": [1, 1, 1],
            "fc": [1.0, 1.0, 1.0], "zscore": [0.0, 0.0, 0.0],
            "pvalue": [1.0, 1.0, 0.5], "adjp": [1.0, 1.0, 0.5],
            "nData": [1, 1, 1], "nBG": [1, 1, 1],
        })
        assert list(view_enrichment(table).index) == ["c", "a", "b"]

    def test_details(self, enrichment_table):
        view = view_enrichment(enrichment_table, details=True)
        assert {"nData", "nBG", "nExpect"} <= set(view.columns)

    def test_significant_only(self, enrichment_table):
        view = view_enrichment(enrichment_table, significant_only=True)
        assert list(view.index) == ["A"]

    def test_accepts_results_object(self, enrichment_table):
        class _Results:
            table = enrichment_table
        assert len(view_enrichment(_Results(), top_num=1)) == 1

    def test_invalid_sort_key(self, enrichment_table):
        with pytest.raises(InvalidParameterError):
            view_enrichment(enrichment_table, sort_by="nOverlap")

    @pytest.mark.parametrize("top_num", [0, -1, "some", 2.5, True])
    def test_invalid_top_num(self, enrichment_table, top_num):
        with pytest.raises(InvalidParameterError):
            view_enrichment(enrichment_table, top_num=top_num)

    def test_missing_column(self, enrichment_table):
        with pytest.raises(MissingColumnError):
            view_enrichment(enrichment_table.drop(columns=["adjp"]))
