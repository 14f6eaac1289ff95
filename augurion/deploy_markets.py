"""
deploy_markets.py — deploy every Augurion launch market in one run

Usage:
  augurion-deploy-markets [--registry markets-registry.json] [--only E1,S2]

For each market, in order:
  1. Create + fund a new AugurionMarket instance
  2. configure_market(market_ref, expiry_round, fee_bps)
  3. open_market()
A failing market is reported and skipped; the loop always continues.
The registry of fully opened markets is written once at the end.
"""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional

import algokit_utils
from algosdk.v2client import algod as algod_client

from .clients import MarketClient
from .config import MARKET_FUNDING_AMOUNT, REGISTRY_PATH, AugurionConfig, load_config
from .contracts import ContractTemplate, market_template
from .deployer import deploy_app
from .errors import AppNotFunded
from .markets_data import SOUTHERN_AFRICA_MARKETS, ComputedMarket, compute_markets
from .network import account_balance, current_round, get_algod, resolve_deployer
from .registry import (
    DeployedMarket,
    DeployFailure,
    DeployOutcome,
    MarketsRegistry,
    build_registry,
    utc_timestamp,
    write_registry,
)

RULE = "━" * 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── One market ─────────────────────────────────────────────────────────────────

def deploy_market(
    algod: algod_client.AlgodClient,
    deployer: algokit_utils.Account,
    market: ComputedMarket,
    round_now: int,
    template: ContractTemplate,
    funding_amount: int = MARKET_FUNDING_AMOUNT,
    deploy: Callable = deploy_app,
    client_factory: Callable = MarketClient,
    clock: Callable[[], datetime] = _utcnow,
) -> DeployOutcome:
    """
    Deploy, configure and open one market.
    Returns a DeployedMarket only when all three steps succeeded.
    """
    print(f"[i] Deploying {market.id}: {market.title}")
    print(f"    Market ref: {market.market_ref}")
    print(f"    Expires   : {market.expiry_date} (round {market.expiry_round})")

    if market.expiry_round <= round_now:
        print(f"[SKIP] {market.id} expiry {market.expiry_date} has already passed")
        return DeployFailure(market, "expiry", f"expiry round {market.expiry_round} <= current round {round_now}")

    # ── Step 1: Create + fund ──────────────────────────────────────────────────
    try:
        deployment = deploy(algod, deployer, template, funding_amount)
    except AppNotFunded as e:
        print(f"[ERR] Failed to fund {market.id}: {e}", file=sys.stderr)
        print(f"[WARN] App {e.app_id} exists but is unfunded; delete it with augurion-delete-app --app-id {e.app_id}")
        return DeployFailure(market, "deploy", str(e), e.app_id)
    except Exception as e:
        print(f"[ERR] Failed to deploy {market.id}: {e}", file=sys.stderr)
        return DeployFailure(market, "deploy", str(e))
    print(f"[OK] App ID: {deployment.app_id}  Address: {deployment.app_address}")

    client = client_factory(algod, deployment.app_id, template.contract, deployer)

    # ── Step 2: Configure ──────────────────────────────────────────────────────
    try:
        configured = client.configure_market(market.market_ref, market.expiry_round, market.fee_bps)
    except Exception as e:
        print(f"[ERR] Failed to configure {market.id} (app {deployment.app_id}): {e}", file=sys.stderr)
        return DeployFailure(market, "configure", str(e), deployment.app_id)
    print(f"[OK] Configured  tx: {configured.tx_id}")

    # ── Step 3: Open ───────────────────────────────────────────────────────────
    try:
        opened = client.open_market()
    except Exception as e:
        print(f"[ERR] Failed to open {market.id} (app {deployment.app_id}): {e}", file=sys.stderr)
        print(f"[WARN] App {deployment.app_id} is configured but not open; it is not recorded")
        return DeployFailure(market, "open", str(e), deployment.app_id)
    print(f"[OK] Market OPEN  tx: {opened.tx_id}")

    return DeployedMarket(
        market=market,
        app_id=deployment.app_id,
        app_address=deployment.app_address,
        deployed_at=utc_timestamp(clock()),
        deployed_by=deployer.address,
        tx_id=deployment.tx_id,
    )


# ── Batch ──────────────────────────────────────────────────────────────────────

def deploy_all_markets(
    algod: algod_client.AlgodClient,
    deployer: algokit_utils.Account,
    markets: Iterable[ComputedMarket],
    round_now: int,
    template: ContractTemplate,
    **kwargs,
) -> List[DeployOutcome]:
    """Sequential; one outcome per market, in input order."""
    outcomes = []
    for market in markets:
        outcomes.append(deploy_market(algod, deployer, market, round_now, template, **kwargs))
        print(RULE)
    return outcomes


def print_summary(registry: MarketsRegistry, outcomes: List[DeployOutcome], registry_path: Path) -> None:
    failures = [o for o in outcomes if isinstance(o, DeployFailure)]
    print("\nDeployment summary:")
    print(f"    Total markets   : {len(registry.markets)} / {len(outcomes)}")
    print(f"    Economic markets: {registry.count('economic')}")
    print(f"    Sport markets   : {registry.count('sport')}")
    print(f"    Registry saved  : {registry_path}")
    if registry.markets:
        print("\nDeployed App IDs:")
        for deployed in registry.markets:
            print(f"    {deployed.market.id}: {deployed.app_id} - {deployed.market.title}")
    if failures:
        print("\nNot deployed:")
        for failure in failures:
            suffix = f" (app {failure.app_id})" if failure.app_id else ""
            print(f"    {failure.market.id}: failed at {failure.stage}{suffix}")


def run(config: AugurionConfig, registry_path: Path, only: Optional[List[str]] = None) -> MarketsRegistry:
    algod    = get_algod(config)
    deployer = resolve_deployer(config, algod)
    amount, _ = account_balance(algod, deployer.address)
    print(f"[i] Deployer : {deployer.address}")
    print(f"[i] Balance  : {amount} microAlgos")

    round_now = current_round(algod)
    print(f"[i] Round    : {round_now}")

    selected = [m for m in SOUTHERN_AFRICA_MARKETS if not only or m.id in only]
    now      = _utcnow()
    markets  = compute_markets(round_now, selected, now, config.average_block_time)

    print("[1] Compiling AugurionMarket…")
    template = market_template()
    print(RULE)

    outcomes = deploy_all_markets(
        algod, deployer, markets, round_now, template,
        deploy=deploy_app, client_factory=MarketClient,
    )
    registry = build_registry(outcomes, config.network, _utcnow())
    write_registry(registry, registry_path)

    print_summary(registry, outcomes, registry_path)
    return registry


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Deploy the Augurion Southern Africa launch markets")
    parser.add_argument("--registry", default=str(REGISTRY_PATH), help="Registry JSON output path")
    parser.add_argument("--only", default="", help="Comma separated market ids (default: all)")
    args = parser.parse_args(argv)

    only = [m.strip() for m in args.only.split(",") if m.strip()]
    print("Deploying Augurion v1 — Southern Africa launch markets\n")
    try:
        config = load_config()
        run(config, Path(args.registry), only)
    except Exception as e:
        print(f"[ERR] Deployment failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
