import numpy as np
import pandas as pd
from typing import List, Literal, Optional, Sequence, Tuple, Union

from .data_loader import prepare_expression_data


def filter_low_expressed_transcripts(
    data,
    genes: Optional[Sequence] = None,
    min_expression: float = 5.0,
    mode: Literal['any', 'all', 'mean'] = 'any',
    gene_col: str = 'gene_id',
    layer: Optional[str] = None,
    return_dropped: bool = False,
    verbose: bool = True
) -> Union[pd.DataFrame, Tuple[pd.DataFrame, List]]:
    """
    Remove transcripts with low expression before calculating diversity.

    Parameters
    ----------
    data : numpy.ndarray, pandas.DataFrame or AnnData
        Transcript-level expression values
    genes : sequence, optional
        Gene label of each transcript. Taken from ``gene_col`` if None.
    min_expression : float, default=5.0
        Expression threshold a transcript has to reach
    mode : str, default='any'
        'any': Keep transcripts that pass the threshold in any sample
        'all': Keep transcripts that pass the threshold in all samples
        'mean': Keep transcripts that pass the threshold on average
    gene_col : str, default='gene_id'
        Column holding gene labels
    layer : str, optional
        AnnData layer holding the expression values
    return_dropped : bool, default=False
        If True, also return the genes that lost all their transcripts
    verbose : bool, default=True
        Whether to print the number of removed transcripts

    Returns
    -------
    pandas.DataFrame or tuple
        Filtered expression table (transcripts x samples) with a ``gene_col``
        column, and optionally a list of genes that were removed entirely
    """
    if mode not in ['any', 'all', 'mean']:
        raise ValueError("mode must be one of 'any', 'all', or 'mean'")

    values, genes, samples = prepare_expression_data(data, genes=genes, gene_col=gene_col, layer=layer)

    if isinstance(data, pd.DataFrame):
        index = data.index
    elif hasattr(data, 'var_names'):
        index = data.var_names
    else:
        index = pd.RangeIndex(values.shape[0])

    passes = values >= min_expression
    if mode == 'any':
        keep = passes.any(axis=1)
    elif mode == 'all':
        keep = passes.all(axis=1)
    else:
        keep = values.mean(axis=1) >= min_expression

    filtered = pd.DataFrame(values[keep], index=index[keep], columns=samples)
    filtered.insert(0, gene_col, genes[keep])

    dropped_genes = sorted(set(pd.unique(genes)) - set(pd.unique(genes[keep])), key=str)

    if verbose:
        print(f"Filtered out {np.sum(~keep)} / {len(keep)} transcripts")
        print(f"Removed {len(dropped_genes)} genes without any remaining transcript")

    if return_dropped:
        return filtered, dropped_genes

    return filtered
