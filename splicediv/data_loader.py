"""Conversion between supported input containers and the plain arrays used by the calculations."""

import numpy as np
import pandas as pd
import anndata as ad
from scipy import sparse

from .exceptions import InvalidCondition, InvalidInput, ShapeMismatch


def prepare_expression_data(data, genes=None, gene_col="gene_id", layer=None):
    """
    Turn transcript-level expression data into a numeric matrix and gene labels.

    Parameters
    -----------
    data : numpy.ndarray, pandas.DataFrame or AnnData
        Expression values. Arrays and DataFrames have transcripts as rows and
        samples as columns. AnnData objects follow the usual layout with
        samples in ``obs`` and transcripts in ``var``.
    genes : sequence, optional
        Gene label for each transcript. If None, labels are taken from the
        ``gene_col`` column of a DataFrame or from ``adata.var[gene_col]``.
    gene_col : str, optional
        Column holding gene labels (default: "gene_id")
    layer : str, optional
        AnnData layer to read values from. If None, ``adata.X`` is used.

    Returns
    --------
    tuple
        ``(values, genes, samples)`` where ``values`` is a float array of
        shape (transcripts, samples), ``genes`` an array of gene labels and
        ``samples`` a list of sample labels.
    """
    if isinstance(data, ad.AnnData):
        if layer is not None:
            if layer not in data.layers:
                raise InvalidInput(f"Layer '{layer}' not found in AnnData object")
            matrix = data.layers[layer]
        else:
            matrix = data.X
        if sparse.issparse(matrix):
            matrix = matrix.toarray()
        values = _as_float_array(np.asarray(matrix).T)
        if genes is None:
            if gene_col not in data.var:
                raise InvalidInput(f"Gene column '{gene_col}' not found in adata.var")
            genes = data.var[gene_col].to_numpy()
        samples = list(data.obs_names)

    elif isinstance(data, pd.DataFrame):
        frame = data
        if genes is None:
            if gene_col not in frame.columns:
                raise InvalidInput(f"Gene column '{gene_col}' not found in DataFrame")
            genes = frame[gene_col].to_numpy()
            frame = frame.drop(columns=gene_col)
        elif gene_col in frame.columns:
            frame = frame.drop(columns=gene_col)
        non_numeric = [col for col in frame.columns if not pd.api.types.is_numeric_dtype(frame[col])]
        if non_numeric:
            raise InvalidInput(f"Non-numeric expression columns: {non_numeric}")
        values = _as_float_array(frame.to_numpy())
        samples = list(frame.columns)

    elif isinstance(data, np.ndarray):
        if genes is None:
            raise InvalidInput("Gene labels must be provided for array input")
        values = _as_float_array(data)
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        samples = list(range(values.shape[1]))

    else:
        raise InvalidInput(
            f"Unsupported input type {type(data).__name__}; expected numpy.ndarray, pandas.DataFrame or AnnData"
        )

    genes = np.asarray(genes)
    if genes.ndim != 1 or len(genes) != values.shape[0]:
        raise ShapeMismatch(
            f"Number of gene labels ({genes.size}) does not match number of transcripts ({values.shape[0]})"
        )

    return values, genes, samples


def _as_float_array(matrix):
    try:
        values = np.asarray(matrix, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Expression values must be numeric: {e}") from e
    if values.ndim > 2:
        raise InvalidInput(f"Expression values must be a 2D matrix, got {values.ndim} dimensions")
    return values


def load_expression_table(path, gene_col="gene_id", transcript_col=None, sep="\t"):
    """
    Load a transcript-level expression table from a delimited text file.

    Parameters
    -----------
    path : str or Path
        File with one row per transcript and one column per sample
    gene_col : str, optional
        Column containing gene labels (default: "gene_id")
    transcript_col : str, optional
        Column with transcript IDs to use as index
    sep : str, optional
        Field delimiter (default: tab)

    Returns
    --------
    pd.DataFrame
        Expression table with the gene column kept
    """
    table = pd.read_csv(path, sep=sep)

    if gene_col not in table.columns:
        raise InvalidInput(f"Expression table must contain a '{gene_col}' column")

    if transcript_col is not None:
        if transcript_col not in table.columns:
            raise InvalidInput(f"Transcript column '{transcript_col}' not found in expression table")
        table = table.set_index(transcript_col)

    return table


def diversity_to_anndata(diversity, conditions=None, condition_key="condition"):
    """
    Wrap a gene x sample diversity table into an AnnData object.

    Samples become observations and genes become variables, so the result
    can be stored or handed around alongside other AnnData objects.

    Parameters
    -----------
    diversity : pd.DataFrame
        Diversity values with genes as rows and samples as columns
    conditions : sequence, optional
        Condition label for each sample, stored in ``obs[condition_key]``
    condition_key : str, optional
        Name of the obs column for the conditions (default: "condition")

    Returns
    --------
    AnnData
    """
    samples = [str(s) for s in diversity.columns]
    obs = pd.DataFrame(index=samples)
    obs["samples"] = samples

    if conditions is not None:
        conditions = list(conditions)
        if len(conditions) != len(samples):
            raise InvalidCondition(
                f"Number of conditions ({len(conditions)}) does not match number of samples ({len(samples)})"
            )
        obs[condition_key] = conditions

    var = pd.DataFrame(index=[str(g) for g in diversity.index])
    var["gene_id"] = list(diversity.index)

    return ad.AnnData(X=diversity.to_numpy(dtype=float).T, obs=obs, var=var)


def diversity_from_anndata(adata):
    """Return the gene x sample diversity table held by an AnnData object."""
    matrix = adata.X.toarray() if sparse.issparse(adata.X) else np.asarray(adata.X)
    genes = adata.var["gene_id"].to_numpy() if "gene_id" in adata.var else adata.var_names
    frame = pd.DataFrame(matrix.T, index=pd.Index(genes, name="gene_id"), columns=list(adata.obs_names))
    return frame


def conditions_from_anndata(adata, condition_key="condition"):
    """Return the condition label of each sample in an AnnData object."""
    if condition_key not in adata.obs:
        raise InvalidCondition(f"Condition key '{condition_key}' not found in adata.obs")
    return adata.obs[condition_key].to_numpy()
