"""
GREnrich - Genomic Region Enrichment

Tests genomic regions for enrichment in annotation categories using an
empirical null drawn from the background genome.
"""

__version__ = "0.1.0"
__author__ = "GREnrich Team"
