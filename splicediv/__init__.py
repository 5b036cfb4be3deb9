"""
splicediv: A package for analyzing splicing diversity of genes.

This package provides tools for calculating gene-level splicing diversity
indices from transcript-level expression data, and statistical testing of
diversity differences between two sample conditions.
"""

__version__ = "0.1.0"

from .exceptions import (SpliceDivError, ShapeMismatch, UnknownMethod, UnknownTest, UnknownCorrection,
                         InvalidInput, InvalidCondition, InsufficientData)
from .diversity import (DiversityMethod, DiversityCalculator, calculate_diversity, calculate_entropy, calculate_gini,
                        calculate_simpson, calculate_inverse_simpson)
from .difference import (SummaryMethod, SignificanceTest, DifferenceAnalyzer, calculate_difference, calculate_fc,
                         wilcoxon_test, label_shuffling, get_top_differential_genes)
from .data_loader import (prepare_expression_data, load_expression_table, diversity_to_anndata,
                          diversity_from_anndata, conditions_from_anndata)
from .filter import filter_low_expressed_transcripts

__all__ = ["SpliceDivError", "ShapeMismatch", "UnknownMethod", "UnknownTest", "UnknownCorrection", "InvalidInput",
           "InvalidCondition", "InsufficientData", "DiversityMethod", "DiversityCalculator", "calculate_diversity",
           "calculate_entropy", "calculate_gini", "calculate_simpson", "calculate_inverse_simpson", "SummaryMethod",
           "SignificanceTest", "DifferenceAnalyzer", "calculate_difference", "calculate_fc", "wilcoxon_test",
           "label_shuffling", "get_top_differential_genes", "prepare_expression_data", "load_expression_table",
           "diversity_to_anndata", "diversity_from_anndata", "conditions_from_anndata",
           "filter_low_expressed_transcripts"]
