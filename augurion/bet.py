"""
bet.py — exercise a deployed market: bet, resolve, claim

Usage:
  augurion-bet --app-id 1120 --side yes --micro-algos 5000000
  augurion-bet --app-id 1120 --resolve yes
  augurion-bet --app-id 1120 --claim yes
"""

import argparse
import sys
from typing import Optional

from .clients import CallResult, MarketClient
from .config import load_config
from .contracts import market_template
from .network import get_algod, resolve_deployer

SIDES = {"yes": 1, "no": 2}


def place_bet(client: MarketClient, side: str, amount: int) -> CallResult:
    """[payment → market] + bet_<side>(pay), with the sender's stake box declared."""
    if amount <= 0:
        raise ValueError("bet amount must be positive")
    result = client.bet(side, amount)
    print(f"[OK] {side.upper()} bet of {amount} microAlgos placed  tx: {result.tx_id}")
    return result


def resolve(client: MarketClient, side: str) -> CallResult:
    result = client.resolve_market(SIDES[side])
    print(f"[OK] Market resolved {side.upper()}  tx: {result.tx_id}")
    return result


def claim(client: MarketClient, side: str) -> CallResult:
    result = client.claim_payout(f"{side}:")
    print(f"[OK] Claimed {result.return_value} microAlgos  tx: {result.tx_id}")
    return result


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Bet on, resolve or claim from an AugurionMarket")
    parser.add_argument("--app-id", type=int, required=True, help="Market application id")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--side", choices=sorted(SIDES), help="Side to bet on")
    action.add_argument("--resolve", choices=sorted(SIDES), help="Resolve the market with this winning side")
    action.add_argument("--claim", choices=sorted(SIDES), help="Claim the payout of a winning stake on this side")
    parser.add_argument("--micro-algos", type=int, default=1_000_000, help="Bet amount (default: 1 ALGO)")
    args = parser.parse_args(argv)

    try:
        config = load_config()
        algod  = get_algod(config)
        sender = resolve_deployer(config, algod)
        client = MarketClient(algod, args.app_id, market_template().contract, sender)
        print(f"[i] Market app {args.app_id}, sender {sender.address}")
        if args.side:
            place_bet(client, args.side, args.micro_algos)
        elif args.resolve:
            resolve(client, args.resolve)
        else:
            claim(client, args.claim)
    except Exception as e:
        print(f"[ERR] {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
