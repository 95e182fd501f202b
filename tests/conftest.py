"""Shared fixtures for REG balance / voting power tests."""

import json

import pytest

from regpower.config import FallbackMultipliers


# ---------------------------------------------------------------------------
# Raw export fixtures (mimicking the generator's JSON output)
# ---------------------------------------------------------------------------


@pytest.fixture
def raw_balances():
    """A wrapped balances export with V2 and V3 positions."""
    return {
        "result": {
            "balances": [
                {
                    "walletAddress": "0xAAA",
                    "type": "wallet",
                    "totalBalanceREG": "1000",
                    "sourceBalance": {
                        "gnosis": {
                            "dexs": {
                                "sushiswap": [
                                    {
                                        "equivalentREG": "300",
                                        "poolAddress": "0xPool1",
                                        "tickLower": -100,
                                        "tickUpper": 100,
                                        "isActive": True,
                                    },
                                    {
                                        "equivalentREG": "100",
                                        "poolAddress": "0xPool1",
                                        "tickLower": -500,
                                        "tickUpper": -200,
                                        "isActive": False,
                                    },
                                ],
                                "honeyswap": [
                                    {"equivalentREG": "100", "poolAddress": "0xPool2"},
                                    {"equivalentREG": "0", "poolAddress": "0xPoolZero"},
                                ],
                            }
                        }
                    },
                },
                {
                    "walletAddress": "0xBBB",
                    "type": "wallet",
                    "totalBalance": "250.5",
                },
                {
                    "walletAddress": "0xCCC",
                    "type": "wallet",
                    "totalBalanceREG": "40",
                    "sourceBalance": {
                        "polygon": {"dexs": {"balancer": [{"equivalentREG": "40", "poolAddress": "0xpool2"}]}}
                    },
                },
            ]
        }
    }


@pytest.fixture
def raw_power():
    return {
        "result": {
            "powerVoting": [
                {"address": "0xaaa", "powerVoting": "1500"},
                {"address": "0xBBB", "powerVoting": 250.5},
            ]
        }
    }


@pytest.fixture
def fallback():
    return FallbackMultipliers()


def write_snapshot_dir(base, date, balances, power):
    """Create ``<base>/<date>/balancesREG_x.json`` and ``powerVotingREG_x.json``."""
    d = base / date
    d.mkdir(parents=True, exist_ok=True)
    (d / f"balancesREG_{date}.json").write_text(json.dumps(balances))
    (d / f"powerVotingREG_{date}.json").write_text(json.dumps(power))
    return d
