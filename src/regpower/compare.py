from __future__ import annotations

from dataclasses import dataclass

from .models import Dataset


@dataclass(frozen=True)
class DatasetSummary:
    holder_count: int
    pool_wallet_count: int
    total_power: float


@dataclass(frozen=True)
class SnapshotDelta:
    holder_count: int
    pool_wallet_count: int
    total_power: float


def summarize(dataset: Dataset) -> DatasetSummary:
    return DatasetSummary(
        holder_count=len(dataset.balances),
        pool_wallet_count=sum(1 for b in dataset.balances if b.positions),
        total_power=sum(p.power for p in dataset.voting_power),
    )


def compare_summaries(current: DatasetSummary, historical: DatasetSummary) -> SnapshotDelta:
    # signed, current minus historical
    return SnapshotDelta(
        holder_count=current.holder_count - historical.holder_count,
        pool_wallet_count=current.pool_wallet_count - historical.pool_wallet_count,
        total_power=current.total_power - historical.total_power,
    )
