import threading
import time

import httpx
import pytest

from regpower.snapshot_client import SnapshotClient
from regpower.storage import SnapshotInfo, SnapshotLoadError, format_date
from regpower.tracker import track_address


def _client(handler, **kwargs):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    kwargs.setdefault("request_rps", 1000.0)
    return SnapshotClient("http://snapshots.test/snapshot/", backoff_seconds=0.0, client=http, **kwargs)


def test_fetch_manifest_and_snapshot(raw_balances, raw_power):
    manifest = {
        "snapshots": [
            {"date": "01-01-2025", "balancesFile": "balancesREG_a.json", "powerVotingFile": "powerVotingREG_a.json"},
            {"date": "01-03-2025", "balancesFile": "balancesREG_b.json", "powerVotingFile": "powerVotingREG_b.json"},
        ]
    }
    routes = {
        "/snapshot/manifest.json": manifest,
        "/snapshot/01-03-2025/balancesREG_b.json": raw_balances,
        "/snapshot/01-03-2025/powerVotingREG_b.json": raw_power,
    }

    def handler(request):
        return httpx.Response(200, json=routes[request.url.path])

    client = _client(handler)
    snaps = client.fetch_manifest()
    assert [s.date for s in snaps] == ["01-03-2025", "01-01-2025"]
    balances, power = client.fetch_snapshot(snaps[0])
    assert balances == raw_balances
    assert power == raw_power


def test_not_found_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(404)

    with pytest.raises(SnapshotLoadError):
        _client(handler, max_retries=3).fetch_manifest()
    assert len(calls) == 1


def test_server_errors_retry_then_fail():
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(503)

    with pytest.raises(SnapshotLoadError):
        _client(handler, max_retries=3).fetch_manifest()
    assert len(calls) == 3


def test_transient_error_recovers():
    calls = []

    def handler(request):
        calls.append(1)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"snapshots": []})

    assert _client(handler, max_retries=2).fetch_manifest() == []
    assert len(calls) == 2


def test_invalid_json_fails():
    def handler(request):
        return httpx.Response(200, content=b"<html>")

    with pytest.raises(SnapshotLoadError):
        _client(handler, max_retries=1).fetch_manifest()


def test_rate_limit_holds_across_tracker_threads():
    interval = 0.05
    seen = []
    lock = threading.Lock()

    def handler(request):
        with lock:
            seen.append(time.monotonic())
        return httpx.Response(200, json=[])

    client = _client(handler, request_rps=1.0 / interval)
    snaps = [
        SnapshotInfo(date, format_date(date), f"balancesREG_{date}.json", f"powerVotingREG_{date}.json")
        for date in ("01-01-2025", "01-02-2025", "01-03-2025", "01-04-2025")
    ]
    start = time.monotonic()
    results = track_address("0xabc", None, snaps, client.fetch_snapshot, max_workers=4)

    assert len(results) == 4
    assert len(seen) == 8
    # eight requests need seven full intervals between the first and the last
    assert max(seen) - start >= 7 * interval * 0.95
