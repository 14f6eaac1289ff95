"""
registry.py — per-run record of deployed markets

The registry is rebuilt from scratch on every run and written once, at the
end, over whatever file was there before. Only markets that were deployed,
configured AND opened appear in it.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .config import REGISTRY_VERSION
from .markets_data import ComputedMarket, MarketConfig

STAGES = ("expiry", "deploy", "configure", "open")


@dataclass(frozen=True)
class DeployedMarket:
    market: ComputedMarket
    app_id: int
    app_address: str
    deployed_at: str
    deployed_by: str
    tx_id: str

    def to_dict(self) -> dict:
        config: MarketConfig = self.market.config
        return {
            "id":               config.id,
            "category":         config.category,
            "title":            config.title,
            "description":      config.description,
            "marketRef":        config.market_ref,
            "expiryDate":       config.expiry_date,
            "expiryRound":      self.market.expiry_round,
            "feeBps":           config.fee_bps,
            "resolutionSource": config.resolution_source,
            "tags":             list(config.tags),
            "appId":            self.app_id,
            "appAddress":       self.app_address,
            "deployedAt":       self.deployed_at,
            "deployedBy":       self.deployed_by,
            "txId":             self.tx_id,
        }


@dataclass(frozen=True)
class DeployFailure:
    market: ComputedMarket
    stage: str
    error: str
    app_id: Optional[int] = None

    def __post_init__(self):
        if self.stage not in STAGES:
            raise ValueError(f"unknown stage {self.stage!r}")


DeployOutcome = Union[DeployedMarket, DeployFailure]


@dataclass
class MarketsRegistry:
    version: str
    deployed_at: str
    network: str
    markets: List[DeployedMarket] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version":    self.version,
            "deployedAt": self.deployed_at,
            "network":    self.network,
            "markets":    [m.to_dict() for m in self.markets],
        }

    def count(self, category: str) -> int:
        return sum(1 for m in self.markets if m.market.category == category)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def build_registry(outcomes: Iterable[DeployOutcome], network: str, now: datetime) -> MarketsRegistry:
    """Keep the successful outcomes, in the order they completed."""
    return MarketsRegistry(
        version=REGISTRY_VERSION,
        deployed_at=utc_timestamp(now),
        network=network,
        markets=[o for o in outcomes if isinstance(o, DeployedMarket)],
    )


def write_registry(registry: MarketsRegistry, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(registry.to_dict(), f, indent=2)
        f.write("\n")
    return path


def load_registry(path: Path) -> dict:
    """Raw registry document, as written by write_registry."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)
