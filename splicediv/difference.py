"""Statistical comparison of splicing diversity between two sample conditions."""

from enum import Enum

import numpy as np
import pandas as pd
import anndata as ad
from scipy import stats
from statsmodels.stats.multitest import multipletests

from .data_loader import conditions_from_anndata, diversity_from_anndata
from .exceptions import (
    InsufficientData,
    InvalidCondition,
    InvalidInput,
    UnknownCorrection,
    UnknownMethod,
    UnknownTest,
)


class SummaryMethod(str, Enum):
    """Summary statistic used to aggregate diversity values per condition."""

    MEAN = "mean"
    MEDIAN = "median"

    @classmethod
    def parse(cls, method):
        try:
            return cls(method)
        except ValueError:
            raise UnknownMethod(f"Invalid method '{method}'. Must be one of {[m.value for m in cls]}") from None


class SignificanceTest(str, Enum):
    """Supported tests for differences between conditions."""

    WILCOXON = "wilcoxon"
    SHUFFLE = "shuffle"

    @classmethod
    def parse(cls, test):
        try:
            return cls(test)
        except ValueError:
            raise UnknownTest(f"Invalid test '{test}'. Must be one of {[t.value for t in cls]}") from None


# Minimum non-missing samples (per condition, in total) for a gene to be tested
MIN_SAMPLES = {
    SignificanceTest.WILCOXON: (3, 8),
    SignificanceTest.SHUFFLE: (5, 10),
}

# multipletests method names, plus the short names used by R's p.adjust
CORRECTION_METHODS = {
    "bonferroni": "bonferroni",
    "sidak": "sidak",
    "holm-sidak": "holm-sidak",
    "holm": "holm",
    "simes-hochberg": "simes-hochberg",
    "hommel": "hommel",
    "fdr_bh": "fdr_bh",
    "fdr_by": "fdr_by",
    "fdr_tsbh": "fdr_tsbh",
    "fdr_tsbky": "fdr_tsbky",
    "BH": "fdr_bh",
    "fdr": "fdr_bh",
    "BY": "fdr_by",
    "hochberg": "simes-hochberg",
    "none": None,
}


def _correction_method(pcorr):
    if pcorr not in CORRECTION_METHODS:
        raise UnknownCorrection(
            f"Invalid p-value correction '{pcorr}'. Must be one of {sorted(CORRECTION_METHODS)}"
        )
    return CORRECTION_METHODS[pcorr]


def _check_randomizations(randomizations):
    if isinstance(randomizations, bool) or not isinstance(randomizations, (int, np.integer)) or randomizations < 1:
        raise InvalidInput(f"randomizations must be a positive integer, got {randomizations!r}")


def _summarize(values, method):
    if len(values) == 0:
        return np.nan
    if method is SummaryMethod.MEDIAN:
        return float(np.median(values))
    return float(np.mean(values))


def calculate_fc(control_values, other_values, method="mean"):
    """
    Calculate condition summaries and effect sizes for one gene.

    Parameters
    -----------
    control_values : array-like
        Non-missing diversity values of the control samples
    other_values : array-like
        Non-missing diversity values of the other samples
    method : str or SummaryMethod, optional
        'mean' (default) or 'median'

    Returns
    --------
    tuple
        ``(control_summary, other_summary, difference, log2_fold_change)``.
        A control summary of 0 gives an infinite or NaN fold change.
    """
    method = SummaryMethod.parse(method)
    control_summary = _summarize(np.asarray(control_values, dtype=float), method)
    other_summary = _summarize(np.asarray(other_values, dtype=float), method)
    difference = other_summary - control_summary
    with np.errstate(divide="ignore", invalid="ignore"):
        log2_fc = float(np.log2(np.float64(other_summary) / np.float64(control_summary)))
    return control_summary, other_summary, difference, log2_fc


def wilcoxon_test(control_values, other_values):
    """
    Two-sided Wilcoxon rank-sum (Mann-Whitney U) test.

    The exact null distribution is used when there are no ties and both
    groups have fewer than 50 values, otherwise the normal approximation
    with continuity correction.

    Returns
    --------
    float
        Raw p-value
    """
    control_values = np.asarray(control_values, dtype=float)
    other_values = np.asarray(other_values, dtype=float)

    pooled = np.concatenate([control_values, other_values])
    has_ties = len(np.unique(pooled)) < len(pooled)
    if not has_ties and len(control_values) < 50 and len(other_values) < 50:
        mode = "exact"
    else:
        mode = "asymptotic"

    with np.errstate(divide="ignore", invalid="ignore"):
        result = stats.mannwhitneyu(
            other_values, control_values, alternative="two-sided", use_continuity=True, method=mode
        )
    p_value = float(result.pvalue)

    # All values identical: no rank information at all
    if np.isnan(p_value):
        p_value = 1.0
    return p_value


def label_shuffling(control_values, other_values, method="mean", randomizations=100, rng=None):
    """
    Label shuffling (permutation) test on the difference of condition summaries.

    Parameters
    -----------
    control_values : array-like
        Non-missing diversity values of the control samples
    other_values : array-like
        Non-missing diversity values of the other samples
    method : str or SummaryMethod, optional
        Summary statistic, 'mean' (default) or 'median'
    randomizations : int, optional
        Number of label permutations (default: 100)
    rng : numpy.random.Generator, int or None
        Source of randomness. Pass a seeded generator for reproducible results.

    Returns
    --------
    float
        ``(hits + 1) / (randomizations + 1)`` where hits counts permutations
        with an absolute difference at least as large as the observed one
    """
    method = SummaryMethod.parse(method)
    _check_randomizations(randomizations)
    rng = np.random.default_rng(rng)

    control_values = np.asarray(control_values, dtype=float)
    other_values = np.asarray(other_values, dtype=float)
    n_control = len(control_values)
    pooled = np.concatenate([control_values, other_values])

    observed = abs(_summarize(other_values, method) - _summarize(control_values, method))
    # Tolerance for floating point ties with the observed difference
    threshold = observed - 1e-12 * max(1.0, observed)

    hits = 0
    for _ in range(randomizations):
        permuted = rng.permutation(pooled)
        permuted_diff = _summarize(permuted[n_control:], method) - _summarize(permuted[:n_control], method)
        if abs(permuted_diff) >= threshold:
            hits += 1

    return (hits + 1) / (randomizations + 1)


class DifferenceAnalyzer:
    """
    Class for testing diversity differences between two conditions.
    """

    def __init__(self, diversity=None, conditions=None, condition_key="condition"):
        """
        Initialize the analyzer with optional diversity data.

        Parameters:
        -----------
        diversity : pd.DataFrame or AnnData, optional
            Gene x sample diversity table, or an AnnData object created by
            ``diversity_to_anndata``
        conditions : sequence, optional
            Condition label for each sample. Read from
            ``adata.obs[condition_key]`` for AnnData input if None.
        condition_key : str, optional (default: 'condition')
            obs column holding the conditions of AnnData input
        """
        self.diversity = diversity
        self.conditions = conditions
        self.condition_key = condition_key
        self.excluded_genes = []

    def set_data(self, diversity, conditions=None):
        """
        Set or update the diversity data and sample conditions.
        """
        self.diversity = diversity
        self.conditions = conditions

    def _prepare(self):
        if self.diversity is None:
            raise InvalidInput("No diversity data has been set")

        conditions = self.conditions
        if isinstance(self.diversity, ad.AnnData):
            frame = diversity_from_anndata(self.diversity)
            if conditions is None:
                conditions = conditions_from_anndata(self.diversity, self.condition_key)
        elif isinstance(self.diversity, pd.DataFrame):
            frame = self.diversity
        else:
            raise InvalidInput(
                f"Unsupported diversity type {type(self.diversity).__name__}; expected pandas.DataFrame or AnnData"
            )

        if conditions is None:
            raise InvalidCondition("Sample conditions must be provided")

        # Align labelled conditions to the sample columns
        if isinstance(conditions, pd.Series) and set(frame.columns).issubset(conditions.index):
            conditions = conditions.reindex(frame.columns)
        conditions = np.asarray(list(conditions), dtype=object)

        if len(conditions) != frame.shape[1]:
            raise InvalidCondition(
                f"Number of conditions ({len(conditions)}) does not match number of samples ({frame.shape[1]})"
            )

        try:
            values = frame.to_numpy(dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Diversity values must be numeric: {e}") from e

        return frame, values, conditions

    def calculate(self, control, method="mean", test="wilcoxon", randomizations=100, pcorr="fdr_bh",
                  random_state=None, verbose=False):
        """
        Test every gene for a diversity difference between the control and the other condition.

        Parameters:
        -----------
        control : str
            Label of the control condition
        method : str, optional (default: 'mean')
            Summary statistic per condition, 'mean' or 'median'
        test : str, optional (default: 'wilcoxon')
            'wilcoxon' for the Wilcoxon rank-sum test, 'shuffle' for the
            label shuffling test
        randomizations : int, optional (default: 100)
            Number of permutations for the label shuffling test
        pcorr : str, optional (default: 'fdr_bh')
            Multiple testing correction, any ``multipletests`` method or one
            of 'BH', 'BY', 'hochberg', 'none'
        random_state : int or numpy.random.Generator, optional
            Seed or generator for the label shuffling test
        verbose : bool, optional (default: False)
            Print the number of excluded and significant genes

        Returns:
        --------
        pd.DataFrame
            One row per tested gene with the condition summaries, their
            difference, log2 fold change, raw and adjusted p-values. Genes
            with too few samples are left out and listed in
            ``self.excluded_genes`` and ``result.attrs['excluded_genes']``.
        """
        method = SummaryMethod.parse(method)
        test = SignificanceTest.parse(test)
        correction = _correction_method(pcorr)
        if test is SignificanceTest.SHUFFLE:
            _check_randomizations(randomizations)

        frame, values, conditions = self._prepare()

        unique_conditions = pd.unique(conditions)
        if len(unique_conditions) != 2:
            raise InvalidCondition(
                f"Need exactly 2 conditions, found {len(unique_conditions)}: {list(unique_conditions)}"
            )
        if control not in unique_conditions:
            raise InvalidCondition(f"Control condition '{control}' not found in conditions {list(unique_conditions)}")
        other = [c for c in unique_conditions if c != control][0]

        if frame.shape[0] == 0:
            raise InsufficientData("Diversity table contains no genes")

        rng = np.random.default_rng(random_state)
        min_per_group, min_total = MIN_SAMPLES[test]
        control_mask = conditions == control

        control_col = f"{control}_{method.value}"
        other_col = f"{other}_{method.value}"
        difference_col = f"{method.value}_difference"

        results = []
        self.excluded_genes = []

        for gene, row in zip(frame.index, values):
            control_values = row[control_mask]
            other_values = row[~control_mask]
            control_values = control_values[~np.isnan(control_values)]
            other_values = other_values[~np.isnan(other_values)]

            if (len(control_values) < min_per_group or len(other_values) < min_per_group
                    or len(control_values) + len(other_values) < min_total):
                self.excluded_genes.append(gene)
                continue

            control_summary, other_summary, difference, log2_fc = calculate_fc(control_values, other_values, method)

            if test is SignificanceTest.WILCOXON:
                p_value = wilcoxon_test(control_values, other_values)
            else:
                p_value = label_shuffling(control_values, other_values, method, randomizations, rng)

            results.append({
                'gene_id': gene,
                control_col: control_summary,
                other_col: other_summary,
                difference_col: difference,
                'log2_fold_change': log2_fc,
                'p_value': p_value,
            })

        columns = ['gene_id', control_col, other_col, difference_col, 'log2_fold_change', 'p_value']
        results_df = pd.DataFrame(results, columns=columns).set_index('gene_id')

        # Multiple testing correction over the tested genes only
        if len(results_df) > 0 and correction is not None:
            results_df['adjusted_p_value'] = multipletests(results_df['p_value'].to_numpy(), method=correction)[1]
        else:
            results_df['adjusted_p_value'] = results_df['p_value'].to_numpy()

        results_df.attrs['excluded_genes'] = list(self.excluded_genes)

        if verbose:
            print(f"Excluded {len(self.excluded_genes)} from {frame.shape[0]} genes with too few samples "
                  f"for the {test.value} test")
            if len(results_df) == 0:
                print("No genes left to test")
            else:
                significant = results_df[results_df['adjusted_p_value'] < 0.05]
                print(f"Found {len(significant)} from {len(results_df)} genes with significantly different "
                      f"diversity (adjusted p-value < 0.05)")

        return results_df


def calculate_difference(diversity, conditions=None, control=None, method="mean", test="wilcoxon",
                         randomizations=100, pcorr="fdr_bh", condition_key="condition",
                         random_state=None, verbose=False):
    """
    Test if splicing diversity changes between two conditions.

    Parameters
    -----------
    diversity : pd.DataFrame or AnnData
        Gene x sample diversity values, e.g. from ``calculate_diversity``
    conditions : sequence, optional
        Condition label for each sample (required for DataFrame input)
    control : str
        Label of the control condition
    method : str, optional
        'mean' (default) or 'median'
    test : str, optional
        'wilcoxon' (default) or 'shuffle'
    randomizations : int, optional
        Number of permutations for the shuffle test (default: 100)
    pcorr : str, optional
        Multiple testing correction (default: 'fdr_bh')
    condition_key : str, optional
        obs column with the conditions for AnnData input (default: "condition")
    random_state : int or numpy.random.Generator, optional
        Seed or generator for the shuffle test
    verbose : bool, optional
        Print a summary of excluded and significant genes

    Returns
    --------
    pd.DataFrame
        Per-gene test results indexed by gene
    """
    if control is None:
        raise InvalidCondition("A control condition must be given")
    analyzer = DifferenceAnalyzer(diversity, conditions=conditions, condition_key=condition_key)
    return analyzer.calculate(control, method=method, test=test, randomizations=randomizations, pcorr=pcorr,
                              random_state=random_state, verbose=verbose)


def get_top_differential_genes(results_df, n=10, sort_by='log2_fold_change', p_threshold=None):
    """
    Get the top n genes with differential splicing diversity.

    Parameters
    -----------
    results_df : pd.DataFrame
        Results from ``calculate_difference``
    n : int, optional
        Number of genes to return (default: 10)
    sort_by : str, optional
        Column to rank by. Fold change and difference columns are ranked by
        absolute value, p-value columns in ascending order
        (default: 'log2_fold_change')
    p_threshold : float, optional
        Keep only genes with an adjusted p-value at or below this threshold

    Returns
    --------
    pd.DataFrame
        The top n rows of ``results_df``
    """
    if len(results_df) == 0:
        print("No results to filter")
        return results_df

    if sort_by not in results_df.columns:
        raise ValueError(f"Invalid sort_by column '{sort_by}'. Must be one of {list(results_df.columns)}")

    sig_results = results_df
    if p_threshold is not None:
        sig_results = results_df[results_df['adjusted_p_value'] <= p_threshold]
        if len(sig_results) == 0:
            print(f"No results with adjusted p-value <= {p_threshold}. Using all results.")
            sig_results = results_df

    if sort_by in ('p_value', 'adjusted_p_value'):
        ranked = sig_results.sort_values(sort_by, ascending=True)
    else:
        ranked = sig_results.sort_values(sort_by, ascending=False, key=np.abs)

    return ranked.head(n)
