from __future__ import annotations

from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .config import FallbackMultipliers
from .models import (
    BalanceRecord,
    Dataset,
    KindStats,
    LiquidityPosition,
    PoolAnalysis,
    PositionKind,
    PositionMultiplier,
    VotingPowerRecord,
    WalletPoolProfile,
)

DERIVED = "derived"
FALLBACK = "fallback"


def power_lookup(records: Iterable[VotingPowerRecord]) -> Dict[str, float]:
    # later rows win on duplicate addresses
    return {r.address.lower(): r.power for r in records}


def build_profile(balance: BalanceRecord, power: float) -> WalletPoolProfile:
    pool_liquidity = sum(p.reg_amount for p in balance.positions)
    wallet_direct = max(balance.total_reg - pool_liquidity, 0.0)
    if pool_liquidity > 0:
        wallet_share = min(power, wallet_direct)
        pool_share = max(power - wallet_direct, 0.0)
        boost = pool_share / pool_liquidity
    else:
        # nothing pooled: all power is attributed to the wallet
        wallet_share, pool_share, boost = power, 0.0, 0.0
    return WalletPoolProfile(
        address=balance.address,
        total_reg=balance.total_reg,
        positions=list(balance.positions),
        pool_liquidity_reg=pool_liquidity,
        wallet_direct_reg=wallet_direct,
        power=power,
        wallet_voting_share=wallet_share,
        pool_voting_share=pool_share,
        boost_multiplier=boost,
    )


def build_profiles(dataset: Dataset) -> List[WalletPoolProfile]:
    powers = power_lookup(dataset.voting_power)
    return [build_profile(b, powers.get(b.address.lower(), 0.0)) for b in dataset.balances]


def pool_analysis(dataset: Dataset) -> Optional[PoolAnalysis]:
    if not dataset.balances:
        return None
    by_kind = {PositionKind.SIMPLE: KindStats(), PositionKind.CONCENTRATED: KindStats()}
    pools = set()
    for wallet in dataset.balances:
        for pos in wallet.positions:
            stats = by_kind[pos.kind]
            stats.total_reg += pos.reg_amount
            stats.count += 1
            stats.exchanges[pos.exchange] = stats.exchanges.get(pos.exchange, 0.0) + pos.reg_amount
            if pos.pool_address:
                pools.add(pos.pool_address.lower())
    return PoolAnalysis(
        simple=by_kind[PositionKind.SIMPLE],
        concentrated=by_kind[PositionKind.CONCENTRATED],
        total_pools=len(pools),
    )


def pool_power_correlation(dataset: Dataset) -> List[WalletPoolProfile]:
    """Wallets holding pool positions and some voting power, largest pool liquidity first."""
    profiles = [p for p in build_profiles(dataset) if p.positions and p.power > 0]
    return sorted(profiles, key=lambda p: p.pool_liquidity_reg, reverse=True)


def _pool_key(index: int, pos: LiquidityPosition) -> Tuple[str, str]:
    if pos.pool_address:
        return ("pool", pos.pool_address.lower())
    return ("position", str(index))


def _apportion(profile: WalletPoolProfile) -> List[float]:
    """Split the pool share across pools by REG, then across each pool's positions."""
    groups: "OrderedDict[Tuple[str, str], List[int]]" = OrderedDict()
    for i, pos in enumerate(profile.positions):
        groups.setdefault(_pool_key(i, pos), []).append(i)
    out = [0.0] * len(profile.positions)
    for indices in groups.values():
        pool_reg = sum(profile.positions[i].reg_amount for i in indices)
        pool_power = profile.pool_voting_share * pool_reg / profile.pool_liquidity_reg
        for i in indices:
            out[i] = pool_power * profile.positions[i].reg_amount / pool_reg
    return out


def estimate_position_multipliers(profile: WalletPoolProfile, fallback: FallbackMultipliers) -> List[PositionMultiplier]:
    if not profile.positions:
        return []
    if profile.pool_liquidity_reg <= 0 or profile.power <= 0:
        return [
            PositionMultiplier(
                position=pos,
                power=None,
                multiplier=fallback.lookup(pos.exchange, pos.is_concentrated, pos.is_active),
                source=FALLBACK,
            )
            for pos in profile.positions
        ]
    estimates: List[PositionMultiplier] = []
    for pos, pos_power in zip(profile.positions, _apportion(profile)):
        multiplier = pos_power / pos.reg_amount
        if pos.is_concentrated and not pos.is_active:
            # out of range behaves like unboosted wallet REG
            multiplier = 1.0
        estimates.append(PositionMultiplier(position=pos, power=pos_power, multiplier=multiplier, source=DERIVED))
    return estimates


def average_position_multiplier(estimates: Iterable[PositionMultiplier]) -> float:
    total_reg = 0.0
    weighted = 0.0
    for est in estimates:
        total_reg += est.position.reg_amount
        weighted += est.multiplier * est.position.reg_amount
    return weighted / total_reg if total_reg > 0 else 0.0


def correlation_frame(profiles: List[WalletPoolProfile]) -> pd.DataFrame:
    cols = [
        "address",
        "total_reg",
        "pool_liquidity_reg",
        "wallet_direct_reg",
        "power",
        "wallet_voting_share",
        "pool_voting_share",
        "boost_multiplier",
        "pool_count",
        "exchange_count",
    ]
    rows = [
        {
            "address": p.address,
            "total_reg": p.total_reg,
            "pool_liquidity_reg": p.pool_liquidity_reg,
            "wallet_direct_reg": p.wallet_direct_reg,
            "power": p.power,
            "wallet_voting_share": p.wallet_voting_share,
            "pool_voting_share": p.pool_voting_share,
            "boost_multiplier": p.boost_multiplier,
            "pool_count": p.pool_count,
            "exchange_count": p.exchange_count,
        }
        for p in profiles
    ]
    return pd.DataFrame(rows, columns=cols)


def positions_frame(estimates: List[PositionMultiplier]) -> pd.DataFrame:
    cols = ["network", "exchange", "pool_address", "kind", "is_active", "reg_amount", "power", "multiplier", "source"]
    rows = [
        {
            "network": e.position.network,
            "exchange": e.position.exchange,
            "pool_address": e.position.pool_address,
            "kind": e.position.kind.value,
            "is_active": e.position.is_active,
            "reg_amount": e.position.reg_amount,
            "power": e.power,
            "multiplier": e.multiplier,
            "source": e.source,
        }
        for e in estimates
    ]
    return pd.DataFrame(rows, columns=cols)
