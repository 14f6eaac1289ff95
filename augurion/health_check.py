"""
health_check.py — check the node connection and, on LocalNet, the KMD dispenser

Usage:
  ALGOD_NETWORK=local augurion-health
"""

import argparse
import sys
from typing import Optional

from algosdk.kmd import KMDClient
from algosdk.v2client import algod as algod_client

from .config import LOCALNET_WALLET, AugurionConfig, load_config
from .errors import NetworkError, PreconditionError
from .network import account_balance, get_algod, get_kmd, translate_error

RULE = "=" * 60


def check_algod(algod: algod_client.AlgodClient) -> int:
    """Return the node's last round."""
    try:
        status = algod.status()
    except Exception as e:
        raise translate_error(e) from e
    print("[OK] Connected to Algod")
    print(f"    Last round: {status['last-round']}")
    print(f"    Time since last round: {status.get('time-since-last-round', 0)}ms")
    return int(status["last-round"])


def dispenser_address(kmd: KMDClient, wallet_name: str = LOCALNET_WALLET) -> str:
    """First key of the named KMD wallet (the first wallet when it is missing)."""
    try:
        wallets = kmd.list_wallets()
    except Exception as e:
        raise NetworkError(f"KMD unreachable: {e}") from e
    if not wallets:
        raise PreconditionError("No wallets found in KMD")
    print(f"[OK] Connected to KMD, {len(wallets)} wallet(s)")

    wallet = next((w for w in wallets if w["name"] == wallet_name), wallets[0])
    print(f"    Wallet: {wallet['name']}")
    handle = kmd.init_wallet_handle(wallet["id"], "")
    try:
        keys = kmd.list_keys(handle)
    finally:
        kmd.release_wallet_handle(handle)
    if not keys:
        raise PreconditionError(f"No keys found in wallet {wallet['name']}")
    return keys[0]


def check_health(config: AugurionConfig, algod: algod_client.AlgodClient, kmd: Optional[KMDClient] = None) -> int:
    """
    Returns the dispenser balance on LocalNet, 0 elsewhere.
    Raises when the node, KMD or a funded dispenser is missing.
    """
    print(RULE)
    print(f"Network: {config.network.upper()}")
    print(f"Algod  : {config.algod_url}")
    print(RULE)

    print("[1] Testing Algod connection…")
    check_algod(algod)

    if not config.is_localnet:
        print("[2] TestNet mode - KMD not used")
        return 0

    print(f"[2] Testing KMD connection at {config.kmd_url}…")
    address = dispenser_address(kmd)

    print("[3] Checking dispenser balance…")
    amount, _ = account_balance(algod, address)
    print(f"    Address: {address}")
    print(f"    Balance: {amount / 1_000_000:.6f} ALGO")
    if amount <= 0:
        raise PreconditionError(f"Dispenser {address} has no balance, fund it first")
    print("[OK] LocalNet is ready for deployment")
    return amount


def main(argv: Optional[list] = None) -> None:
    argparse.ArgumentParser(description="Check the Algorand node and LocalNet dispenser").parse_args(argv)
    try:
        config = load_config()
        check_health(config, get_algod(config), get_kmd(config))
    except Exception as e:
        print(f"[ERR] Health check failed: {e}", file=sys.stderr)
        if isinstance(e, NetworkError):
            print("    Make sure AlgoKit LocalNet is running: algokit localnet start", file=sys.stderr)
        sys.exit(1)
    print(RULE)


if __name__ == "__main__":
    main()
