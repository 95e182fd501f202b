from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class PositionKind(str, Enum):
    SIMPLE = "simple"  # V2-style, no price range
    CONCENTRATED = "concentrated"  # V3-style, bounded by tickLower/tickUpper


@dataclass(frozen=True)
class LiquidityPosition:
    network: str
    exchange: str
    pool_address: Optional[str]
    reg_amount: float
    kind: PositionKind
    is_active: bool
    tick_lower: Optional[int] = None
    tick_upper: Optional[int] = None
    current_tick: Optional[int] = None
    token_symbol: Optional[str] = None

    @property
    def is_concentrated(self) -> bool:
        return self.kind is PositionKind.CONCENTRATED


@dataclass(frozen=True)
class BalanceRecord:
    address: str
    total_reg: float
    positions: List[LiquidityPosition] = field(default_factory=list)


@dataclass(frozen=True)
class VotingPowerRecord:
    address: str
    power: float


@dataclass(frozen=True)
class Dataset:
    balances: List[BalanceRecord] = field(default_factory=list)
    voting_power: List[VotingPowerRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.balances and not self.voting_power


@dataclass(frozen=True)
class WalletPoolProfile:
    address: str
    total_reg: float
    positions: List[LiquidityPosition]
    pool_liquidity_reg: float
    wallet_direct_reg: float
    power: float
    wallet_voting_share: float
    pool_voting_share: float
    boost_multiplier: float

    @property
    def pool_count(self) -> int:
        return len(self.positions)

    @property
    def exchange_count(self) -> int:
        return len({(p.network, p.exchange) for p in self.positions})


@dataclass
class KindStats:
    total_reg: float = 0.0
    count: int = 0
    exchanges: Dict[str, float] = field(default_factory=dict)


@dataclass
class PoolAnalysis:
    simple: KindStats
    concentrated: KindStats
    total_pools: int


@dataclass(frozen=True)
class PositionMultiplier:
    position: LiquidityPosition
    power: Optional[float]
    multiplier: float
    source: str  # "derived" or "fallback"
