from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .dataset import load_dataset

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
BALANCES_PREFIX = "balancesREG_"
POWER_PREFIX = "powerVotingREG_"
DATE_FORMAT = "%d-%m-%Y"


class SnapshotLoadError(RuntimeError):
    pass


@dataclass
class SnapshotInfo:
    date: str  # DD-MM-YYYY, also the directory name
    date_formatted: str  # YYYY-MM-DD
    balances_file: str
    power_voting_file: str
    metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def sort_key(self) -> datetime:
        try:
            return datetime.strptime(self.date_formatted, "%Y-%m-%d")
        except ValueError:
            return datetime.min

    @staticmethod
    def from_json(data: Dict[str, Any]) -> Optional["SnapshotInfo"]:
        try:
            date = str(data["date"])
            return SnapshotInfo(
                date=date,
                date_formatted=str(data.get("dateFormatted") or format_date(date)),
                balances_file=str(data["balancesFile"]),
                power_voting_file=str(data["powerVotingFile"]),
                metrics=dict(data.get("metrics") or {}),
            )
        except (KeyError, TypeError, ValueError):
            return None

    def to_json(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "dateFormatted": self.date_formatted,
            "balancesFile": self.balances_file,
            "powerVotingFile": self.power_voting_file,
            "metrics": self.metrics,
        }


def format_date(date: str) -> str:
    parts = date.split("-")
    if len(parts) != 3:
        return date
    day, month, year = parts
    return f"{year}-{month}-{day}"


def sort_newest_first(snaps: List[SnapshotInfo]) -> List[SnapshotInfo]:
    return sorted(snaps, key=lambda s: s.sort_key, reverse=True)


def manifest_path(base_dir: str) -> str:
    return os.path.join(base_dir, MANIFEST_NAME)


def _find_file(names: List[str], prefix: str) -> Optional[str]:
    for name in sorted(names):
        if name.startswith(prefix) and name.endswith(".json"):
            return name
    return None


def list_snapshots(base_dir: str) -> List[SnapshotInfo]:
    try:
        dirs = [d for d in os.listdir(base_dir) if os.path.isdir(os.path.join(base_dir, d))]
    except FileNotFoundError:
        return []
    snaps: List[SnapshotInfo] = []
    for date_dir in dirs:
        names = os.listdir(os.path.join(base_dir, date_dir))
        balances_file = _find_file(names, BALANCES_PREFIX)
        power_file = _find_file(names, POWER_PREFIX)
        if not balances_file or not power_file:
            continue
        snaps.append(
            SnapshotInfo(
                date=date_dir,
                date_formatted=format_date(date_dir),
                balances_file=balances_file,
                power_voting_file=power_file,
            )
        )
    return sort_newest_first(snaps)


def read_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_snapshot(base_dir: str, snap: SnapshotInfo) -> Tuple[Any, Any]:
    snap_dir = os.path.join(base_dir, snap.date)
    try:
        balances = read_json(os.path.join(snap_dir, snap.balances_file))
        power = read_json(os.path.join(snap_dir, snap.power_voting_file))
    except (OSError, ValueError) as exc:
        raise SnapshotLoadError(f"Failed to load snapshot {snap.date}: {exc}") from exc
    return balances, power


def snapshot_metrics(balances_doc: Any, power_doc: Any) -> Dict[str, float]:
    dataset = load_dataset(balances_doc, power_doc)
    return {
        "walletCount": len(dataset.balances),
        "totalREG": round(sum(b.total_reg for b in dataset.balances), 2),
        "totalPowerVoting": round(sum(p.power for p in dataset.voting_power), 2),
    }


def build_manifest(base_dir: str) -> List[SnapshotInfo]:
    snaps = list_snapshots(base_dir)
    for snap in snaps:
        try:
            balances, power = load_snapshot(base_dir, snap)
            snap.metrics = snapshot_metrics(balances, power)
        except SnapshotLoadError as exc:
            logger.warning("Could not calculate metrics for %s: %s", snap.date, exc)
            snap.metrics = {"walletCount": 0, "totalREG": 0.0, "totalPowerVoting": 0.0}
    return snaps


def write_manifest(base_dir: str) -> List[SnapshotInfo]:
    snaps = build_manifest(base_dir)
    os.makedirs(base_dir, exist_ok=True)
    with open(manifest_path(base_dir), "w", encoding="utf-8") as f:
        json.dump({"snapshots": [s.to_json() for s in snaps]}, f, indent=2)
    logger.info("Generated manifest with %d snapshots", len(snaps))
    return snaps


def parse_manifest(data: Any) -> List[SnapshotInfo]:
    items = data.get("snapshots") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    snaps = [s for s in (SnapshotInfo.from_json(it) for it in items if isinstance(it, dict)) if s is not None]
    return sort_newest_first(snaps)


def read_manifest(base_dir: str) -> List[SnapshotInfo]:
    try:
        return parse_manifest(read_json(manifest_path(base_dir)))
    except (OSError, ValueError) as exc:
        logger.warning("Could not load %s, falling back to a directory scan: %s", MANIFEST_NAME, exc)
        return list_snapshots(base_dir)
