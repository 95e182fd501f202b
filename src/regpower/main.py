from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from .attribution import pool_analysis, pool_power_correlation
from .compare import summarize
from .config import AppConfig, load_config
from .dataset import load_dataset
from .generator import KNOWN_TASKS, run_task
from .snapshot_client import SnapshotClient
from .stats import balance_distribution, balance_stats, top_balance_holders, voting_power_distribution, voting_power_stats
from .storage import load_snapshot, read_json, read_manifest, write_manifest
from .tracker import track_address


def cmd_manifest(cfg: AppConfig, args) -> int:
    snaps = write_manifest(cfg.snapshot_dir)
    for s in snaps:
        print(f"{s.date}  wallets={s.metrics.get('walletCount')}  REG={s.metrics.get('totalREG')}  power={s.metrics.get('totalPowerVoting')}")
    print(f"Generated manifest with {len(snaps)} snapshots in {cfg.snapshot_dir}")
    return 0


def cmd_stats(cfg: AppConfig, args) -> int:
    dataset = load_dataset(read_json(args.balances), read_json(args.power))
    analysis = pool_analysis(dataset)
    correlation = pool_power_correlation(dataset)
    b_stats = balance_stats(dataset)
    p_stats = voting_power_stats(dataset)
    payload = {
        "balanceStats": asdict(b_stats) if b_stats else None,
        "votingPowerStats": asdict(p_stats) if p_stats else None,
        "balanceDistribution": [asdict(b) for b in balance_distribution(dataset) or []],
        "votingPowerDistribution": [asdict(b) for b in voting_power_distribution(dataset) or []],
        "topBalanceHolders": [asdict(h) for h in top_balance_holders(dataset, cfg.top_holders_limit)],
        "poolAnalysis": asdict(analysis) if analysis else None,
        "poolPowerCorrelation": [
            {
                "address": p.address,
                "poolLiquidityREG": p.pool_liquidity_reg,
                "walletDirectREG": p.wallet_direct_reg,
                "power": p.power,
                "poolVotingShare": p.pool_voting_share,
                "boostMultiplier": p.boost_multiplier,
            }
            for p in correlation
        ],
        "summary": asdict(summarize(dataset)),
    }
    json.dump(payload, sys.stdout, indent=2, default=str)
    print()
    return 0


def cmd_track(cfg: AppConfig, args) -> int:
    current = None
    if args.balances and args.power:
        current = load_dataset(read_json(args.balances), read_json(args.power))
    client = SnapshotClient(cfg.snapshot_base_url, request_rps=cfg.request_rps) if cfg.snapshot_base_url else None
    try:
        if client is not None:
            snaps, loader = client.fetch_manifest(), client.fetch_snapshot
        else:
            snaps, loader = read_manifest(cfg.snapshot_dir), lambda snap: load_snapshot(cfg.snapshot_dir, snap)
        results = track_address(args.address, current, snaps, loader, max_workers=cfg.tracker_max_workers)
    finally:
        if client is not None:
            client.close()
    for r in results:
        if not r.found:
            print(f"{r.label:>12}  not found")
            continue
        line = f"{r.label:>12}  REG={r.total_reg:,.2f}  power={r.power:,.2f}"
        if r.pool is not None:
            line += (
                f"  pools={r.pool.pool_count} poolREG={r.pool.pool_reg:,.2f}"
                f" in/out={r.pool.in_range_count}/{r.pool.out_of_range_count}"
                f" v3/v2={r.pool.concentrated_count}/{r.pool.simple_count} dexs={r.pool.exchange_count}"
            )
        print(line)
    return 0


def cmd_generate(cfg: AppConfig, args) -> int:
    options = json.loads(args.options) if args.options else {}
    config_text = None
    if args.config_file:
        with open(args.config_file, "r", encoding="utf-8") as f:
            config_text = f.read()
    print(f"Running generator task {args.task} (timeout {cfg.generator_timeout_seconds:.0f}s)...")
    result = run_task(cfg, args.task, options, config_text)
    if result.success:
        print(f"Task completed, output file: {result.output_file or '-'}")
        return 0
    print(f"Task failed (exit code {result.exit_code}): {result.error}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="regpower", description="REG balance and voting power analytics")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("manifest", help="rebuild manifest.json for the snapshot directory")
    p.set_defaults(func=cmd_manifest)

    p = sub.add_parser("stats", help="print statistics and pool/power correlation as JSON")
    p.add_argument("balances")
    p.add_argument("power")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("track", help="follow one address across snapshots")
    p.add_argument("address")
    p.add_argument("--balances", default=None)
    p.add_argument("--power", default=None)
    p.set_defaults(func=cmd_track)

    p = sub.add_parser("generate", help="run a task of the external balance generator")
    p.add_argument("task", choices=KNOWN_TASKS)
    p.add_argument("--options", default=None, help="JSON options passed to the task")
    p.add_argument("--config-file", default=None)
    p.set_defaults(func=cmd_generate)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    cfg = load_config()
    logging.basicConfig(level=cfg.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    return args.func(cfg, args)


if __name__ == "__main__":
    sys.exit(main())
