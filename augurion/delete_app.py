"""
delete_app.py — delete an application created by the deployer

Usage:
  augurion-delete-app --app-id 1120
"""

import argparse
import sys
from typing import Optional

import algokit_utils
from algosdk import transaction
from algosdk.v2client import algod as algod_client

from .config import load_config
from .network import get_algod, resolve_deployer, send_and_confirm, translate_error


def delete_app(algod: algod_client.AlgodClient, deployer: algokit_utils.Account, app_id: int) -> str:
    """Bare DeleteApplication call. Only the creator is accepted by the contract."""
    try:
        sp = algod.suggested_params()
    except Exception as e:
        raise translate_error(e) from e
    txn = transaction.ApplicationDeleteTxn(sender=deployer.address, sp=sp, index=app_id)
    txid, _ = send_and_confirm(algod, txn.sign(deployer.private_key))
    return txid


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Delete an Augurion application")
    parser.add_argument("--app-id", type=int, required=True, help="Application id to delete")
    args = parser.parse_args(argv)

    try:
        config   = load_config()
        algod    = get_algod(config)
        deployer = resolve_deployer(config, algod)
        print(f"[i] Deleting app {args.app_id}…")
        txid = delete_app(algod, deployer, args.app_id)
    except Exception as e:
        print(f"[ERR] Failed to delete app {args.app_id}: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"[OK] App {args.app_id} deleted  tx: {txid}")


if __name__ == "__main__":
    main()
