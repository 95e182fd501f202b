import json

import pytest

from conftest import write_snapshot_dir
from regpower.main import main
from regpower.storage import SnapshotInfo, SnapshotLoadError


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch, tmp_path):
    monkeypatch.setenv("REGPOWER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("REGPOWER_SNAPSHOT_DIR", str(tmp_path / "snapshot"))
    monkeypatch.delenv("REGPOWER_SNAPSHOT_URL", raising=False)


def test_stats_command(tmp_path, capsys, raw_balances, raw_power):
    b = tmp_path / "balances.json"
    p = tmp_path / "power.json"
    b.write_text(json.dumps(raw_balances))
    p.write_text(json.dumps(raw_power))

    assert main(["stats", str(b), str(p)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["balanceStats"]["count"] == 3
    assert out["poolAnalysis"]["total_pools"] == 2
    assert [row["address"] for row in out["poolPowerCorrelation"]] == ["0xaaa"]
    assert out["poolPowerCorrelation"][0]["boostMultiplier"] == 2.0
    assert out["summary"]["pool_wallet_count"] == 2


def test_manifest_and_track_commands(tmp_path, capsys, raw_balances, raw_power):
    write_snapshot_dir(tmp_path / "snapshot", "01-02-2025", raw_balances, raw_power)
    write_snapshot_dir(tmp_path / "snapshot", "01-01-2025", [], [])

    assert main(["manifest"]) == 0
    assert (tmp_path / "snapshot" / "manifest.json").exists()
    capsys.readouterr()

    assert main(["track", "0xAAA"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    assert "01-02-2025" in lines[0] and "pools=3" in lines[0]
    assert "01-01-2025" in lines[1] and "not found" in lines[1]


class _RecordingClient:
    instances = []

    def __init__(self, base_url, **kwargs):
        self.base_url = base_url
        self.closed = False
        self.fail = base_url.endswith("/broken")
        _RecordingClient.instances.append(self)

    def fetch_manifest(self):
        if self.fail:
            raise SnapshotLoadError("manifest unavailable")
        return [SnapshotInfo("01-02-2025", "2025-02-01", "balancesREG_a.json", "powerVotingREG_a.json")]

    def fetch_snapshot(self, snap):
        return [{"walletAddress": "0xaaa", "totalBalanceREG": 5}], []

    def close(self):
        self.closed = True


def test_track_over_http_closes_client(monkeypatch, capsys):
    monkeypatch.setattr("regpower.main.SnapshotClient", _RecordingClient)
    _RecordingClient.instances = []

    monkeypatch.setenv("REGPOWER_SNAPSHOT_URL", "http://snapshots.test/snapshot")
    assert main(["track", "0xaaa"]) == 0
    assert "REG=5.00" in capsys.readouterr().out

    monkeypatch.setenv("REGPOWER_SNAPSHOT_URL", "http://snapshots.test/broken")
    with pytest.raises(SnapshotLoadError):
        main(["track", "0xaaa"])

    assert [c.closed for c in _RecordingClient.instances] == [True, True]
