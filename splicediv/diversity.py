"""Utilities for calculating splicing diversity of genes from transcript-level expression."""

from enum import Enum

import numpy as np
import pandas as pd

from .data_loader import prepare_expression_data
from .exceptions import InvalidInput, UnknownMethod


class DiversityMethod(str, Enum):
    """Supported diversity indices."""

    NAIVE = "naive"
    LAPLACE = "laplace"
    GINI = "gini"
    SIMPSON = "simpson"
    INVSIMPSON = "invsimpson"

    @classmethod
    def parse(cls, method):
        """Return the member for ``method`` or raise UnknownMethod."""
        try:
            return cls(method)
        except ValueError:
            valid = [m.value for m in cls]
            raise UnknownMethod(f"Invalid diversity method '{method}'. Must be one of {valid}") from None


def calculate_entropy(x, norm=True, pseudocount=0):
    """
    Calculate the entropy of transcript-level expression values of one gene.

    Parameters
    -----------
    x : array-like
        Expression values of the transcripts of a gene in one sample
    norm : bool, optional
        If True (default), divide by log2 of the number of transcripts so
        the value lies between 0 and 1. Non-normalized values cannot be
        compared between genes with different transcript numbers.
    pseudocount : float, optional
        Added to every transcript before computing proportions. 0 gives the
        naive entropy, 1 the Laplace entropy.

    Returns
    --------
    float or None
        NaN for a single transcript, None if the gene is not expressed.
    """
    x = np.asarray(x, dtype=float)
    if len(x) == 1:
        return np.nan
    if np.sum(x) == 0:
        return None

    p = (x + pseudocount) / np.sum(x + pseudocount)
    with np.errstate(divide="ignore", invalid="ignore"):
        log_p = np.log2(p)
    log_p = np.where(np.isfinite(log_p), log_p, 0.0)
    entropy = -np.sum(p * log_p)

    if norm:
        entropy = entropy / np.log2(len(x))
    return float(entropy)


def calculate_gini(x):
    """
    Calculate the Gini coefficient of transcript-level expression values of one gene.

    Returns NaN for a single transcript and None if the gene is not expressed.
    """
    x = np.asarray(x, dtype=float)
    n = len(x)
    if n == 1:
        return np.nan
    total = np.sum(x)
    if total == 0:
        return None

    x = np.sort(x)
    ranks = np.arange(1, n + 1)
    y = 2 * np.sum(x * ranks) / total - (n + 1)
    return float(y / (n - 1))


def calculate_simpson(x):
    """
    Calculate the Simpson index of transcript-level expression values of one gene.

    Returns NaN for a single transcript and None if the gene is not expressed.
    """
    x = np.asarray(x, dtype=float)
    if len(x) == 1:
        return np.nan
    if np.sum(x) == 0:
        return None

    p = x / np.sum(x)
    return float(1 - np.sum(p * p))


def calculate_inverse_simpson(x):
    """
    Calculate the inverse Simpson index of transcript-level expression values of one gene.

    Returns NaN for a single transcript and None if the gene is not expressed.
    """
    x = np.asarray(x, dtype=float)
    if len(x) == 1:
        return np.nan
    if np.sum(x) == 0:
        return None

    p = x / np.sum(x)
    return float(1 / np.sum(p * p))


def _diversity_function(method, norm, pseudocount=None):
    if method is DiversityMethod.NAIVE:
        pseudocount = 0 if pseudocount is None else pseudocount
        return lambda x: calculate_entropy(x, norm=norm, pseudocount=pseudocount)
    if method is DiversityMethod.LAPLACE:
        pseudocount = 1 if pseudocount is None else pseudocount
        return lambda x: calculate_entropy(x, norm=norm, pseudocount=pseudocount)
    if method is DiversityMethod.GINI:
        return calculate_gini
    if method is DiversityMethod.SIMPSON:
        return calculate_simpson
    return calculate_inverse_simpson


class DiversityCalculator:
    """
    Class for calculating gene-level splicing diversity from transcript expression.
    """

    def __init__(self, data=None, genes=None, gene_col="gene_id", layer=None):
        """
        Initialize the calculator with optional expression data.

        Parameters:
        -----------
        data : numpy.ndarray, pandas.DataFrame or AnnData, optional
            Transcript-level expression values
        genes : sequence, optional
            Gene label of each transcript
        gene_col : str, optional (default: 'gene_id')
            Column holding gene labels when ``genes`` is not given
        layer : str, optional
            AnnData layer holding the expression values
        """
        self.data = data
        self.genes = genes
        self.gene_col = gene_col
        self.layer = layer
        self.single_isoform_genes = []
        self.n_unlabeled_transcripts = 0

    def set_data(self, data, genes=None):
        """
        Set or update the expression data.

        Parameters:
        -----------
        data : numpy.ndarray, pandas.DataFrame or AnnData
            Transcript-level expression values
        genes : sequence, optional
            Gene label of each transcript
        """
        self.data = data
        self.genes = genes

    def calculate(self, method="laplace", norm=True, pseudocount=None, verbose=False):
        """
        Calculate one diversity value per gene and sample.

        Parameters:
        -----------
        method : str or DiversityMethod, optional (default: 'laplace')
            One of 'naive', 'laplace', 'gini', 'simpson' or 'invsimpson'
        norm : bool, optional (default: True)
            Normalize entropy values by the number of transcripts. Ignored
            by the other indices.
        pseudocount : float, optional
            Overrides the pseudocount of the entropy methods (0 for 'naive',
            1 for 'laplace'). Ignored by the other indices.
        verbose : bool, optional (default: False)
            Print a summary of the calculation

        Returns:
        --------
        pd.DataFrame
            Diversity values with genes as rows and samples as columns. Genes
            with a single transcript are left out; genes without expression
            in a sample have NaN in that sample.
        """
        if self.data is None:
            raise InvalidInput("No expression data has been set")

        method = DiversityMethod.parse(method)
        values, genes, samples = prepare_expression_data(
            self.data, genes=self.genes, gene_col=self.gene_col, layer=self.layer
        )

        if not np.all(np.isfinite(values)):
            raise InvalidInput("Expression values contain NaN or infinite entries")
        if np.any(values < 0):
            raise InvalidInput("Expression values must be non-negative")

        if pseudocount is not None and pseudocount < 0:
            raise InvalidInput(f"pseudocount must be non-negative, got {pseudocount}")
        diversity_fn = _diversity_function(method, norm, pseudocount)

        # Group transcripts by gene, keeping order of first appearance
        gene_rows = {}
        self.n_unlabeled_transcripts = 0
        for row, gene in enumerate(genes.tolist()):
            if pd.isna(gene):
                self.n_unlabeled_transcripts += 1
                continue
            gene_rows.setdefault(gene, []).append(row)

        kept_genes = []
        rows = []
        self.single_isoform_genes = []

        for gene, indices in gene_rows.items():
            if len(indices) < 2:
                self.single_isoform_genes.append(gene)
                continue

            gene_values = values[indices]
            diversity = np.full(len(samples), np.nan)
            for sample_idx in range(len(samples)):
                value = diversity_fn(gene_values[:, sample_idx])
                if value is not None:
                    diversity[sample_idx] = value

            kept_genes.append(gene)
            rows.append(diversity)

        result = pd.DataFrame(
            np.array(rows).reshape(len(rows), len(samples)),
            index=pd.Index(kept_genes, name="gene_id"),
            columns=samples,
        )

        if verbose:
            print(f"Calculated {method.value} diversity for {len(kept_genes)} genes in {len(samples)} samples")
            print(f"Removed {len(self.single_isoform_genes)} genes with a single transcript")
            print(f"Skipped {self.n_unlabeled_transcripts} transcripts without a gene label")

        return result


def calculate_diversity(data, genes=None, method="laplace", norm=True, gene_col="gene_id", layer=None, pseudocount=None,
                        verbose=False):
    """
    Calculate splicing diversity for every gene and sample.

    Parameters:
    -----------
    data : numpy.ndarray, pandas.DataFrame or AnnData
        Transcript-level expression values (read counts or abundances)
    genes : sequence, optional
        Gene label of each transcript. Taken from ``gene_col`` if None.
    method : str, optional (default: 'laplace')
        One of 'naive', 'laplace', 'gini', 'simpson' or 'invsimpson'
    norm : bool, optional (default: True)
        Normalize entropy values by the number of transcripts
    gene_col : str, optional (default: 'gene_id')
        Column holding gene labels
    layer : str, optional
        AnnData layer holding the expression values
    pseudocount : float, optional
        Overrides the pseudocount of the entropy methods
    verbose : bool, optional (default: False)
        Print a summary of the calculation

    Returns:
    --------
    pd.DataFrame
        Gene x sample table of diversity values
    """
    calculator = DiversityCalculator(data, genes=genes, gene_col=gene_col, layer=layer)
    return calculator.calculate(method=method, norm=norm, pseudocount=pseudocount, verbose=verbose)
