from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .dataset import load_dataset
from .models import Dataset
from .positions import distinct_exchange_count
from .storage import SnapshotInfo, sort_newest_first

logger = logging.getLogger(__name__)

CURRENT_LABEL = "current"

SnapshotLoader = Callable[[SnapshotInfo], Tuple[Any, Any]]


@dataclass(frozen=True)
class AddressPoolBreakdown:
    pool_count: int
    pool_reg: float
    in_range_count: int
    out_of_range_count: int
    in_range_reg: float
    out_of_range_reg: float
    concentrated_count: int
    simple_count: int
    exchange_count: int


@dataclass(frozen=True)
class AddressSnapshotResult:
    label: str  # "current" or the snapshot date
    is_current: bool
    found: bool
    total_reg: float = 0.0
    power: float = 0.0
    pool: Optional[AddressPoolBreakdown] = None


def address_breakdown(dataset: Dataset, address: str, label: str = CURRENT_LABEL, is_current: bool = True) -> AddressSnapshotResult:
    target = address.strip().lower()
    # later rows win on duplicate addresses, as in power_lookup
    balance = None
    for row in dataset.balances:
        if row.address.lower() == target:
            balance = row
    power_rec = None
    for rec in dataset.voting_power:
        if rec.address.lower() == target:
            power_rec = rec
    if balance is None and power_rec is None:
        return AddressSnapshotResult(label=label, is_current=is_current, found=False)

    pool = None
    if balance is not None and balance.positions:
        in_range = [p for p in balance.positions if p.is_active]
        out_of_range = [p for p in balance.positions if not p.is_active]
        pool = AddressPoolBreakdown(
            pool_count=len(balance.positions),
            pool_reg=sum(p.reg_amount for p in balance.positions),
            in_range_count=len(in_range),
            out_of_range_count=len(out_of_range),
            in_range_reg=sum(p.reg_amount for p in in_range),
            out_of_range_reg=sum(p.reg_amount for p in out_of_range),
            concentrated_count=sum(1 for p in balance.positions if p.is_concentrated),
            simple_count=sum(1 for p in balance.positions if not p.is_concentrated),
            exchange_count=distinct_exchange_count(balance.positions),
        )
    return AddressSnapshotResult(
        label=label,
        is_current=is_current,
        found=True,
        total_reg=balance.total_reg if balance is not None else 0.0,
        power=power_rec.power if power_rec is not None else 0.0,
        pool=pool,
    )


def _search_snapshot(address: str, snap: SnapshotInfo, loader: SnapshotLoader) -> AddressSnapshotResult:
    balances_doc, power_doc = loader(snap)
    return address_breakdown(load_dataset(balances_doc, power_doc), address, label=snap.date, is_current=False)


def track_address(
    address: str,
    current: Optional[Dataset],
    snapshots: Sequence[SnapshotInfo],
    loader: SnapshotLoader,
    max_workers: int = 4,
) -> List[AddressSnapshotResult]:
    """Profile one address in the current dataset and every historical snapshot.

    Snapshots are fetched concurrently. A snapshot that fails to load is
    reported as not found for its date and does not affect the others. The
    result is ordered current first, then snapshots newest to oldest.
    """
    results: List[AddressSnapshotResult] = []
    if current is not None:
        results.append(address_breakdown(current, address))

    ordered = sort_newest_first(list(snapshots))
    by_date: Dict[str, AddressSnapshotResult] = {}
    if ordered:
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = {pool.submit(_search_snapshot, address, snap, loader): snap for snap in ordered}
            for fut in as_completed(futures):
                snap = futures[fut]
                try:
                    by_date[snap.date] = fut.result()
                except Exception as exc:  # noqa: BLE001
                    logger.warning("Snapshot %s could not be searched: %s", snap.date, exc)
                    by_date[snap.date] = AddressSnapshotResult(label=snap.date, is_current=False, found=False)
    results.extend(by_date[snap.date] for snap in ordered)
    return results


def results_frame(results: List[AddressSnapshotResult]) -> pd.DataFrame:
    rows = []
    for r in results:
        row: Dict[str, Any] = {
            "snapshot": r.label,
            "found": r.found,
            "total_reg": r.total_reg,
            "power": r.power,
        }
        if r.pool is not None:
            row.update(
                {
                    "pool_count": r.pool.pool_count,
                    "pool_reg": r.pool.pool_reg,
                    "in_range": r.pool.in_range_count,
                    "out_of_range": r.pool.out_of_range_count,
                    "in_range_reg": r.pool.in_range_reg,
                    "out_of_range_reg": r.pool.out_of_range_reg,
                    "concentrated": r.pool.concentrated_count,
                    "simple": r.pool.simple_count,
                    "exchanges": r.pool.exchange_count,
                }
            )
        rows.append(row)
    return pd.DataFrame(rows)
