import json

import pytest

from conftest import write_snapshot_dir
from regpower.storage import (
    SnapshotInfo,
    SnapshotLoadError,
    build_manifest,
    format_date,
    list_snapshots,
    load_snapshot,
    read_manifest,
    write_manifest,
)


def test_format_date():
    assert format_date("05-01-2025") == "2025-01-05"
    assert format_date("weird") == "weird"


def test_list_snapshots_newest_first(tmp_path, raw_balances, raw_power):
    write_snapshot_dir(tmp_path, "01-02-2025", raw_balances, raw_power)
    write_snapshot_dir(tmp_path, "15-01-2025", raw_balances, raw_power)
    write_snapshot_dir(tmp_path, "01-01-2026", raw_balances, raw_power)
    incomplete = tmp_path / "02-02-2025"
    incomplete.mkdir()
    (incomplete / "balancesREG_x.json").write_text("[]")
    snaps = list_snapshots(tmp_path)
    assert [s.date for s in snaps] == ["01-01-2026", "01-02-2025", "15-01-2025"]
    assert snaps[0].balances_file == "balancesREG_01-01-2026.json"
    assert snaps[0].date_formatted == "2026-01-01"


def test_list_snapshots_missing_dir(tmp_path):
    assert list_snapshots(tmp_path / "nope") == []


def test_manifest_metrics_and_roundtrip(tmp_path, raw_balances, raw_power):
    write_snapshot_dir(tmp_path, "01-02-2025", raw_balances, raw_power)
    bad = write_snapshot_dir(tmp_path, "01-01-2025", raw_balances, raw_power)
    (bad / "powerVotingREG_01-01-2025.json").write_text("{not json")

    snaps = write_manifest(tmp_path)
    good = next(s for s in snaps if s.date == "01-02-2025")
    assert good.metrics == {"walletCount": 3, "totalREG": 1290.5, "totalPowerVoting": 1750.5}
    broken = next(s for s in snaps if s.date == "01-01-2025")
    assert broken.metrics["walletCount"] == 0

    data = json.loads((tmp_path / "manifest.json").read_text())
    assert [s["date"] for s in data["snapshots"]] == ["01-02-2025", "01-01-2025"]
    assert [s.date for s in read_manifest(tmp_path)] == ["01-02-2025", "01-01-2025"]


def test_read_manifest_falls_back_to_scan(tmp_path, raw_balances, raw_power):
    write_snapshot_dir(tmp_path, "01-02-2025", raw_balances, raw_power)
    assert [s.date for s in read_manifest(tmp_path)] == ["01-02-2025"]


def test_load_snapshot_errors(tmp_path, raw_balances, raw_power):
    write_snapshot_dir(tmp_path, "01-02-2025", raw_balances, raw_power)
    snap = build_manifest(tmp_path)[0]
    balances, power = load_snapshot(tmp_path, snap)
    assert balances == raw_balances and power == raw_power

    missing = SnapshotInfo("01-01-2000", "2000-01-01", "balancesREG_a.json", "powerVotingREG_a.json")
    with pytest.raises(SnapshotLoadError):
        load_snapshot(tmp_path, missing)


def test_snapshot_info_from_json():
    info = SnapshotInfo.from_json({"date": "05-01-2025", "balancesFile": "b.json", "powerVotingFile": "p.json"})
    assert info.date_formatted == "2025-01-05"
    assert SnapshotInfo.from_json({"date": "05-01-2025"}) is None
