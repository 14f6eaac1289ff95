"""
markets_data.py — Augurion v1 Southern Africa launch markets

Nine prediction markets covering:
  - Economic & system fragility (E1-E6)
  - National sport confidence signals (S1-S3)

Expiry is stored as a calendar date and converted to a ledger round at
deployment time, using the current round and the average block time.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Tuple

CATEGORIES = ("economic", "sport")


@dataclass(frozen=True)
class MarketConfig:
    id: str
    category: str
    title: str
    description: str
    market_ref: str          # short on-chain reference, e.g. SA-ENERGY-ESKOM-001
    expiry_date: str         # YYYY-MM-DD, midnight UTC
    fee_bps: int = 200
    resolution_source: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f"{self.id}: category must be one of {CATEGORIES}, got {self.category!r}")
        if not 0 <= self.fee_bps <= 10_000:
            raise ValueError(f"{self.id}: fee_bps must be within 0..10000")
        if not self.market_ref or len(self.market_ref.encode("utf-8")) > 64:
            raise ValueError(f"{self.id}: market_ref must be 1..64 bytes")


@dataclass(frozen=True)
class ComputedMarket:
    config: MarketConfig
    expiry_round: int

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def title(self) -> str:
        return self.config.title

    @property
    def category(self) -> str:
        return self.config.category

    @property
    def market_ref(self) -> str:
        return self.config.market_ref

    @property
    def fee_bps(self) -> int:
        return self.config.fee_bps

    @property
    def expiry_date(self) -> str:
        return self.config.expiry_date


SOUTHERN_AFRICA_MARKETS: List[MarketConfig] = [
    # ── Economic & system fragility ────────────────────────────────────────────
    MarketConfig(
        id="E1",
        category="economic",
        title="Eskom Stage 6+ Load-Shedding",
        description="Will Eskom implement Stage 6 or higher load-shedding again before 31 March 2026?",
        market_ref="SA-ENERGY-ESKOM-001",
        expiry_date="2026-03-31",
        resolution_source="Official Eskom declarations",
        tags=("energy", "infrastructure", "governance"),
    ),
    MarketConfig(
        id="E2",
        category="economic",
        title="Unplanned Generation Outages >15,000 MW",
        description="Will unplanned generation outages in South Africa exceed 15,000 MW at any point in the next 3 months?",
        market_ref="SA-ENERGY-OUTAGE-002",
        expiry_date="2026-03-15",
        resolution_source="Eskom daily system status reports",
        tags=("energy", "short-term", "technical"),
    ),
    MarketConfig(
        id="E3",
        category="economic",
        title="SA Renewable Energy Build Targets",
        description="Will South Africa miss its 2026 renewable-energy build targets under the REIPPPP programme?",
        market_ref="SA-ENERGY-REIPPPP-003",
        expiry_date="2026-12-31",
        resolution_source="DMRE / IPP Office published commissioning data",
        tags=("energy", "renewable", "policy"),
    ),
    MarketConfig(
        id="E4",
        category="economic",
        title="Multi-Country Drought Emergency",
        description="Will Southern Africa experience a declared multi-country drought emergency before the end of October 2026 season?",
        market_ref="SA-CLIMATE-DROUGHT-004",
        expiry_date="2026-09-30",
        resolution_source="Formal disaster declarations by 2 or more governments",
        tags=("climate", "regional", "agriculture"),
    ),
    MarketConfig(
        id="E5",
        category="economic",
        title="Major Metro Water Restrictions",
        description=(
            "Will water restrictions be imposed or tightened by 30% per household in at least one major "
            "Southern African metro before end of 2026? (e.g. Cape Town, Gqeberha, Harare, Windhoek)"
        ),
        market_ref="SA-WATER-METRO-005",
        expiry_date="2026-12-30",
        resolution_source="Official municipal notices",
        tags=("water", "municipal", "climate"),
    ),
    MarketConfig(
        id="E6",
        category="economic",
        title="SA Government Coalition Change",
        description=(
            "Will South Africa's national government change coalition composition before the end "
            "of the current parliamentary term?"
        ),
        market_ref="SA-POLITICS-COALITION-006",
        expiry_date="2026-12-16",
        resolution_source="Formal parliamentary or cabinet announcements",
        tags=("politics", "governance", "policy-risk"),
    ),
    # ── National sport confidence signals ──────────────────────────────────────
    MarketConfig(
        id="S1",
        category="sport",
        title="Springboks Win Rate >50%",
        description=(
            "Will the South Africa Springboks win more than 50% of their officially scheduled "
            "test matches in 2026, until 30 June 2026?"
        ),
        market_ref="SA-SPORT-RUGBY-001",
        expiry_date="2026-06-30",
        resolution_source="Official World Rugby match records",
        tags=("sport", "rugby", "national-confidence"),
    ),
    MarketConfig(
        id="S2",
        category="sport",
        title="Proteas Lose 2+ Series",
        description=(
            "Will the Proteas lose at least two official home or neutral-venue series in 2026, "
            "and until 30 June 2026?"
        ),
        market_ref="SA-SPORT-CRICKET-002",
        expiry_date="2026-06-30",
        resolution_source="Cricket South Africa / ICC official records",
        tags=("sport", "cricket", "sentiment"),
    ),
    MarketConfig(
        id="S3",
        category="sport",
        title="Bafana Bafana 3 Consecutive Wins",
        description=(
            "Will Bafana Bafana win 3 back-to-back competitive (non-friendly) international matches "
            "in 2026, before July 2026?"
        ),
        market_ref="SA-SPORT-FOOTBALL-003",
        expiry_date="2026-07-30",
        resolution_source="FIFA / SAFA official match records",
        tags=("sport", "football", "underdog"),
    ),
]


# ── Expiry rounds ──────────────────────────────────────────────────────────────

def parse_expiry(expiry_date: str) -> datetime:
    return datetime.strptime(expiry_date, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def seconds_until(expiry_date: str, now: datetime) -> float:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (parse_expiry(expiry_date) - now).total_seconds()


def calculate_expiry_round(expiry_date: str, current_round: int, now: datetime, block_time: float) -> int:
    """
    Estimated round at `expiry_date`:
        current_round + ceil(seconds_until_expiry / block_time)
    """
    if current_round < 0:
        raise ValueError("current_round must be non-negative")
    if block_time <= 0:
        raise ValueError("block_time must be positive")
    return current_round + math.ceil(seconds_until(expiry_date, now) / block_time)


def compute_markets(
    current_round: int,
    markets: Iterable[MarketConfig],
    now: datetime,
    block_time: float,
) -> List[ComputedMarket]:
    """Attach an expiry round to every market. Pure; order is preserved."""
    return [
        ComputedMarket(
            config=market,
            expiry_round=calculate_expiry_round(market.expiry_date, current_round, now, block_time),
        )
        for market in markets
    ]
