from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from .models import LiquidityPosition, PositionKind
from .normalize import parse_amount, parse_int


def _parse_active(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no"):
            return False
    return None


def _has_bound(raw: Mapping[str, Any], name: str) -> bool:
    return name in raw


def build_position(network: str, exchange: str, raw: Mapping[str, Any]) -> Optional[LiquidityPosition]:
    reg_amount = parse_amount(raw.get("equivalentREG"))
    if reg_amount is None or reg_amount <= 0:
        return None
    concentrated = _has_bound(raw, "tickLower") and _has_bound(raw, "tickUpper")
    if concentrated:
        # Unverified ranges are not credited as in range
        is_active = bool(_parse_active(raw.get("isActive")))
    else:
        is_active = True
    pool_address = raw.get("poolAddress")
    symbol = raw.get("tokenSymbol")
    return LiquidityPosition(
        network=str(network),
        exchange=str(exchange),
        pool_address=pool_address if isinstance(pool_address, str) and pool_address else None,
        reg_amount=reg_amount,
        kind=PositionKind.CONCENTRATED if concentrated else PositionKind.SIMPLE,
        is_active=is_active,
        tick_lower=parse_int(raw.get("tickLower")),
        tick_upper=parse_int(raw.get("tickUpper")),
        current_tick=parse_int(raw.get("currentTick")),
        token_symbol=symbol if isinstance(symbol, str) else None,
    )


def extract_positions(source_balance: Any) -> List[LiquidityPosition]:
    """Flatten ``{network: {"dexs": {exchange: [position, ...]}}}`` into positions.

    Order is network, then exchange, then list order as found in the source.
    Positions worth nothing are dropped here so no aggregate ever sees them.
    Anything that does not look like the nested structure is skipped.
    """
    positions: List[LiquidityPosition] = []
    if not isinstance(source_balance, Mapping):
        return positions
    for network, network_value in source_balance.items():
        if not isinstance(network_value, Mapping):
            continue
        dexs = network_value.get("dexs")
        if not isinstance(dexs, Mapping):
            continue
        for exchange, raw_positions in dexs.items():
            if not isinstance(raw_positions, list):
                continue
            for raw in raw_positions:
                if not isinstance(raw, Mapping):
                    continue
                pos = build_position(network, exchange, raw)
                if pos is not None:
                    positions.append(pos)
    return positions


def distinct_exchange_count(positions: Iterable[LiquidityPosition]) -> int:
    return len({(p.network, p.exchange) for p in positions})
