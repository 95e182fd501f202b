from regpower.compare import DatasetSummary, compare_summaries, summarize
from regpower.dataset import load_dataset
from regpower.models import Dataset


def test_summarize(raw_balances, raw_power):
    summary = summarize(load_dataset(raw_balances, raw_power))
    assert summary.holder_count == 3
    assert summary.pool_wallet_count == 2
    assert summary.total_power == 1750.5


def test_summarize_empty():
    assert summarize(Dataset()) == DatasetSummary(0, 0, 0)


def test_deltas_are_signed_current_minus_historical():
    delta = compare_summaries(DatasetSummary(10, 2, 100.0), DatasetSummary(12, 1, 150.5))
    assert delta.holder_count == -2
    assert delta.pool_wallet_count == 1
    assert delta.total_power == -50.5
