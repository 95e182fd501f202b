from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional

BALANCE = "balance"
VOTING_POWER = "voting_power"

# Field resolution order per role; first parsable field wins
AMOUNT_FIELDS: Dict[str, tuple] = {
    BALANCE: ("totalBalanceREG", "totalBalance"),
    VOTING_POWER: ("powerVoting",),
}

ADDRESS_FIELDS: Dict[str, tuple] = {
    BALANCE: ("walletAddress", "address"),
    VOTING_POWER: ("address", "walletAddress"),
}

DOCUMENT_KEYS: Dict[str, str] = {
    BALANCE: "balances",
    VOTING_POWER: "powerVoting",
}

_SEPARATORS = (",", "_", " ", "\u00a0")


def parse_amount(value: Any) -> Optional[float]:
    """Coerce a loosely typed amount to a finite float, or None when unparsable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        out = float(value)
    elif isinstance(value, str):
        text = value.strip()
        for sep in _SEPARATORS:
            text = text.replace(sep, "")
        if not text:
            return None
        try:
            out = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(out):
        return None
    return out


def parse_int(value: Any) -> Optional[int]:
    amount = parse_amount(value)
    if amount is None:
        return None
    return int(amount)


def resolve_amount(row: Mapping[str, Any], role: str) -> float:
    if role not in AMOUNT_FIELDS:
        raise ValueError(f"unknown record role: {role}")
    for name in AMOUNT_FIELDS[role]:
        amount = parse_amount(row.get(name))
        if amount is not None:
            return amount
    return 0.0


def resolve_address(row: Mapping[str, Any], role: str) -> str:
    for name in ADDRESS_FIELDS[role]:
        val = row.get(name)
        if isinstance(val, str) and val.strip():
            return val.strip().lower()
    return ""


def unwrap_document(doc: Any, key: str) -> List[Any]:
    """Accept either a bare list or a list nested under ``result.<key>``."""
    data = doc
    if isinstance(doc, Mapping):
        result = doc.get("result")
        if isinstance(result, Mapping) and result.get(key) is not None:
            data = result.get(key)
    return list(data) if isinstance(data, list) else []
