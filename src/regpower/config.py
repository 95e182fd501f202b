import os
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class FallbackMultipliers:
    # Used only when a wallet has no power signal to apportion
    simple_by_exchange: Dict[str, float] = field(
        default_factory=lambda: {"honeyswap": 1.5, "sushiswap": 1.3, "balancer": 1.4}
    )
    simple_default: float = 1.5
    concentrated_active: float = 2.5
    concentrated_inactive: float = 1.0

    def lookup(self, exchange: str, concentrated: bool, active: bool) -> float:
        if concentrated:
            return self.concentrated_active if active else self.concentrated_inactive
        return self.simple_by_exchange.get((exchange or "").lower(), self.simple_default)


@dataclass
class AppConfig:
    data_dir: str
    snapshot_dir: str
    snapshot_base_url: str
    request_rps: float
    tracker_max_workers: int
    top_holders_limit: int
    log_level: str
    # External generator
    generator_dir: str
    generator_output_dir: str
    generator_command: List[str]
    generator_timeout_seconds: float
    fallback_multipliers: FallbackMultipliers


def _get_env_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return int(float(val))
    except Exception:
        return default


def _get_env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or val == "":
        return default
    try:
        return float(val)
    except Exception:
        return default


def _get_env_str(name: str, default: str) -> str:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    return val.strip()


def load_config() -> AppConfig:
    data_dir = os.path.abspath(_get_env_str("REGPOWER_DATA_DIR", os.path.join(os.getcwd(), "data")))
    snapshot_dir = os.path.abspath(_get_env_str("REGPOWER_SNAPSHOT_DIR", os.path.join(data_dir, "snapshot")))
    # Empty means snapshots are read from snapshot_dir
    snapshot_base_url = _get_env_str("REGPOWER_SNAPSHOT_URL", "")

    request_rps = _get_env_float("REGPOWER_REQUEST_RPS", 5.0)
    tracker_max_workers = max(1, _get_env_int("REGPOWER_TRACKER_WORKERS", 4))
    top_holders_limit = max(1, _get_env_int("REGPOWER_TOP_HOLDERS", 10))
    log_level = _get_env_str("LOG_LEVEL", "INFO").upper()

    generator_dir = os.path.abspath(_get_env_str("REGPOWER_GENERATOR_DIR", os.path.join(os.getcwd(), "balance-calculator")))
    generator_output_dir = os.path.join(generator_dir, "outDatas")
    generator_command = _get_env_str("REGPOWER_GENERATOR_COMMAND", "node task-wrapper.js").split()
    # The generator calls remote APIs and may hang; 30 minutes is the hard stop
    generator_timeout_seconds = _get_env_float("REGPOWER_GENERATOR_TIMEOUT", 30 * 60.0)

    fallback_multipliers = FallbackMultipliers(
        simple_default=_get_env_float("REGPOWER_FALLBACK_SIMPLE", 1.5),
        concentrated_active=_get_env_float("REGPOWER_FALLBACK_CONCENTRATED_ACTIVE", 2.5),
        concentrated_inactive=_get_env_float("REGPOWER_FALLBACK_CONCENTRATED_INACTIVE", 1.0),
    )

    os.makedirs(data_dir, exist_ok=True)

    return AppConfig(
        data_dir=data_dir,
        snapshot_dir=snapshot_dir,
        snapshot_base_url=snapshot_base_url,
        request_rps=request_rps,
        tracker_max_workers=tracker_max_workers,
        top_holders_limit=top_holders_limit,
        log_level=log_level,
        generator_dir=generator_dir,
        generator_output_dir=generator_output_dir,
        generator_command=generator_command,
        generator_timeout_seconds=generator_timeout_seconds,
        fallback_multipliers=fallback_multipliers,
    )
