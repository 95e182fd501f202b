from __future__ import annotations

import threading
import time
from typing import Any, List, Optional, Tuple

import httpx

from .storage import MANIFEST_NAME, SnapshotInfo, SnapshotLoadError, parse_manifest


class SnapshotClient:
    """Reads the snapshot directory layout when it is served over HTTP."""

    def __init__(
        self,
        base_url: str,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        request_rps: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        self._base = base_url.rstrip("/")
        self._max_retries = max(1, max_retries)
        self._backoff = backoff_seconds
        self._client = client or httpx.Client(timeout=30)
        # Simple rate limiter based on min interval between calls
        self._min_interval = 1.0 / max(0.1, float(request_rps))
        self._last_request_ts = 0.0
        self._rate_lock = threading.Lock()

    def _wait_for_slot(self) -> None:
        # reserve the next slot under the lock, sleep outside it
        with self._rate_lock:
            slot = max(time.monotonic(), self._last_request_ts + self._min_interval)
            self._last_request_ts = slot
        sleep_for = slot - time.monotonic()
        if sleep_for > 0:
            time.sleep(sleep_for)

    def _get_json(self, path: str) -> Any:
        url = f"{self._base}/{path.lstrip('/')}"
        last_exc: Optional[Exception] = None
        for attempt in range(self._max_retries):
            try:
                self._wait_for_slot()
                resp = self._client.get(url)
                if resp.status_code == 404:
                    # Missing files will not appear on retry
                    raise SnapshotLoadError(f"Not found: {url}")
                resp.raise_for_status()
                return resp.json()
            except SnapshotLoadError:
                raise
            except (httpx.HTTPError, ValueError) as exc:
                last_exc = exc
                if attempt < self._max_retries - 1:
                    time.sleep(self._backoff * (2 ** attempt))
        raise SnapshotLoadError(f"Request to {url} failed after retries: {last_exc}")

    def fetch_manifest(self) -> List[SnapshotInfo]:
        return parse_manifest(self._get_json(MANIFEST_NAME))

    def fetch_snapshot(self, snap: SnapshotInfo) -> Tuple[Any, Any]:
        balances = self._get_json(f"{snap.date}/{snap.balances_file}")
        power = self._get_json(f"{snap.date}/{snap.power_voting_file}")
        return balances, power

    def close(self) -> None:
        self._client.close()
