from __future__ import annotations

import logging
from typing import Any, List, Mapping

from .models import BalanceRecord, Dataset, VotingPowerRecord
from .normalize import BALANCE, DOCUMENT_KEYS, VOTING_POWER, resolve_address, resolve_amount, unwrap_document
from .positions import extract_positions

logger = logging.getLogger(__name__)


def normalize_balances(doc: Any) -> List[BalanceRecord]:
    rows = unwrap_document(doc, DOCUMENT_KEYS[BALANCE])
    records: List[BalanceRecord] = []
    skipped = 0
    for row in rows:
        if not isinstance(row, Mapping):
            skipped += 1
            continue
        records.append(
            BalanceRecord(
                address=resolve_address(row, BALANCE),
                total_reg=max(resolve_amount(row, BALANCE), 0.0),
                positions=extract_positions(row.get("sourceBalance")),
            )
        )
    if skipped:
        logger.debug("Skipped %d non-object balance rows", skipped)
    return records


def normalize_voting_power(doc: Any) -> List[VotingPowerRecord]:
    rows = unwrap_document(doc, DOCUMENT_KEYS[VOTING_POWER])
    records: List[VotingPowerRecord] = []
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        records.append(
            VotingPowerRecord(
                address=resolve_address(row, VOTING_POWER),
                power=max(resolve_amount(row, VOTING_POWER), 0.0),
            )
        )
    return records


def load_dataset(balances_doc: Any, power_doc: Any) -> Dataset:
    return Dataset(
        balances=normalize_balances(balances_doc) if balances_doc is not None else [],
        voting_power=normalize_voting_power(power_doc) if power_doc is not None else [],
    )
