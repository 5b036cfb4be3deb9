import pytest
import numpy as np
import pandas as pd
from splicediv.filter import filter_low_expressed_transcripts
from splicediv.diversity import calculate_diversity


@pytest.fixture
def expression_table():
    return pd.DataFrame({
        'gene_id': ['g1', 'g1', 'g1', 'g2', 'g2'],
        's1': [10, 2, 0, 1, 0],
        's2': [12, 8, 1, 2, 3],
        's3': [9, 3, 0, 0, 1],
    }, index=['t1', 't2', 't3', 't4', 't5'])


def test_filter_any(expression_table):
    filtered = filter_low_expressed_transcripts(expression_table, min_expression=5, mode='any', verbose=False)
    assert list(filtered.index) == ['t1', 't2']
    assert list(filtered.columns) == ['gene_id', 's1', 's2', 's3']


def test_filter_all(expression_table):
    filtered = filter_low_expressed_transcripts(expression_table, min_expression=5, mode='all', verbose=False)
    assert list(filtered.index) == ['t1']


def test_filter_mean(expression_table):
    filtered = filter_low_expressed_transcripts(expression_table, min_expression=4, mode='mean', verbose=False)
    # t2 has mean 13/3
    assert list(filtered.index) == ['t1', 't2']


def test_return_dropped(expression_table):
    filtered, dropped = filter_low_expressed_transcripts(expression_table, min_expression=5, return_dropped=True,
                                                         verbose=False)
    assert dropped == ['g2']
    assert set(filtered['gene_id']) == {'g1'}


def test_invalid_mode(expression_table):
    with pytest.raises(ValueError):
        filter_low_expressed_transcripts(expression_table, mode='median')


def test_verbose_output(expression_table, capsys):
    filter_low_expressed_transcripts(expression_table, min_expression=5)
    captured = capsys.readouterr()
    assert "Filtered out 3 / 5 transcripts" in captured.out


def test_array_input():
    counts = np.array([[10, 10], [0, 1], [6, 6], [7, 0]])
    filtered = filter_low_expressed_transcripts(counts, genes=['a', 'a', 'b', 'b'], verbose=False)
    assert list(filtered.index) == [0, 2, 3]
    assert list(filtered['gene_id']) == ['a', 'b', 'b']


def test_filtered_table_feeds_diversity(expression_table):
    filtered = filter_low_expressed_transcripts(expression_table, min_expression=5, verbose=False)
    diversity = calculate_diversity(filtered, method='gini')
    # g2 lost all transcripts and g1 keeps two
    assert list(diversity.index) == ['g1']
    assert diversity.loc['g1', 's1'] == pytest.approx((2 * (2 + 20) / 12 - 3) / 1)
