from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .models import Dataset

# (label, lower inclusive, upper exclusive)
DISTRIBUTION_BINS: List[Tuple[str, float, float]] = [
    ("0-100", 0.0, 100.0),
    ("100-500", 100.0, 500.0),
    ("500-1000", 500.0, 1000.0),
    ("1000-5000", 1000.0, 5000.0),
    ("5000-10000", 5000.0, 10000.0),
    ("10000+", 10000.0, math.inf),
]


@dataclass(frozen=True)
class SampleStats:
    count: int
    total: float
    mean: float
    median: float
    min: float
    max: float
    std_dev: float


@dataclass(frozen=True)
class DistributionBin:
    label: str
    lower: float
    upper: float
    count: int


@dataclass(frozen=True)
class Holder:
    address: str
    amount: float


def compute_stats(values: Sequence[float]) -> Optional[SampleStats]:
    if len(values) == 0:
        return None
    arr = np.asarray(values, dtype=float)
    total = float(arr.sum())
    mean = total / arr.size
    return SampleStats(
        count=int(arr.size),
        total=total,
        mean=mean,
        median=float(np.median(arr)),
        min=float(arr.min()),
        max=float(arr.max()),
        # population, not sample: the dataset is every holder
        std_dev=float(np.sqrt(np.mean((arr - mean) ** 2))),
    )


def distribution(values: Sequence[float]) -> Optional[List[DistributionBin]]:
    positive = [v for v in values if v > 0]
    if not positive:
        return None
    counts = [0] * len(DISTRIBUTION_BINS)
    for v in positive:
        for i, (_, lo, hi) in enumerate(DISTRIBUTION_BINS):
            if lo <= v < hi:
                counts[i] += 1
                break
    return [DistributionBin(label, lo, hi, n) for (label, lo, hi), n in zip(DISTRIBUTION_BINS, counts)]


def _balance_values(dataset: Dataset) -> List[float]:
    return [b.total_reg for b in dataset.balances]


def _power_values(dataset: Dataset) -> List[float]:
    return [p.power for p in dataset.voting_power]


def balance_stats(dataset: Dataset) -> Optional[SampleStats]:
    return compute_stats(_balance_values(dataset))


def voting_power_stats(dataset: Dataset) -> Optional[SampleStats]:
    return compute_stats(_power_values(dataset))


def balance_distribution(dataset: Dataset) -> Optional[List[DistributionBin]]:
    return distribution(_balance_values(dataset))


def voting_power_distribution(dataset: Dataset) -> Optional[List[DistributionBin]]:
    return distribution(_power_values(dataset))


def _top(pairs: List[Holder], limit: int) -> List[Holder]:
    # sorted() is stable, so equal amounts keep input order
    return sorted(pairs, key=lambda h: h.amount, reverse=True)[:limit]


def top_balance_holders(dataset: Dataset, limit: int = 10) -> List[Holder]:
    return _top([Holder(b.address, b.total_reg) for b in dataset.balances], limit)


def top_power_voters(dataset: Dataset, limit: int = 10) -> List[Holder]:
    return _top([Holder(p.address, p.power) for p in dataset.voting_power], limit)


def stats_frame(named: Dict[str, Optional[SampleStats]]) -> pd.DataFrame:
    rows = []
    for name, stats in named.items():
        if stats is None:
            continue
        rows.append({"dataset": name, **asdict(stats)})
    cols = ["dataset", "count", "total", "mean", "median", "min", "max", "std_dev"]
    if not rows:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame(rows, columns=cols)


def distribution_frame(bins: Optional[List[DistributionBin]]) -> pd.DataFrame:
    if not bins:
        return pd.DataFrame(columns=["label", "count"])
    return pd.DataFrame([{"label": b.label, "count": b.count} for b in bins])
