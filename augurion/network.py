"""
network.py — thin adapter over the algod / KMD clients

Everything that touches the node goes through here so the flows can be
exercised against a MagicMock algod in tests.
"""

import base64
import urllib.error
from typing import Optional, Tuple

import algokit_utils
from algosdk import error as algosdk_error
from algosdk.kmd import KMDClient
from algosdk.v2client import algod as algod_client

from .config import AugurionConfig
from .errors import AugurionError, LedgerRejection, NetworkError, PreconditionError


# ── Clients ────────────────────────────────────────────────────────────────────

def get_algod(config: AugurionConfig) -> algod_client.AlgodClient:
    return algod_client.AlgodClient(config.algod_token, config.algod_url)


def get_kmd(config: AugurionConfig) -> Optional[KMDClient]:
    if not config.kmd_url:
        return None
    return KMDClient(config.kmd_token, config.kmd_url)


# ── Error classification ───────────────────────────────────────────────────────

def translate_error(exc: Exception, txid: str = "") -> Exception:
    """
    Map SDK / transport exceptions onto the package taxonomy.
    Unknown exceptions are returned unchanged.
    """
    if isinstance(exc, AugurionError):
        return exc
    if isinstance(exc, algosdk_error.AlgodHTTPError):
        if exc.code is not None and exc.code >= 500:
            return NetworkError(f"algod error {exc.code}: {exc}")
        return LedgerRejection(str(exc), txid)
    if isinstance(exc, (urllib.error.URLError, ConnectionError, TimeoutError)):
        return NetworkError(f"node unreachable: {exc}")
    if "rejected" in str(exc).lower() or "logic eval error" in str(exc):
        return LedgerRejection(str(exc), txid)
    return exc


# ── Transactions ───────────────────────────────────────────────────────────────

def compile_teal(algod: algod_client.AlgodClient, teal_src: str) -> bytes:
    response = algod.compile(teal_src)
    return base64.b64decode(response["result"])


def wait_for_confirmation(algod: algod_client.AlgodClient, txid: str) -> dict:
    try:
        last_round = algod.status()["last-round"]
        while True:
            txn_info = algod.pending_transaction_info(txid)
            if txn_info.get("confirmed-round", 0) > 0:
                return txn_info
            if txn_info.get("pool-error"):
                raise LedgerRejection(f"Transaction rejected: {txn_info['pool-error']}", txid)
            algod.status_after_block(last_round + 1)
            last_round += 1
    except AugurionError:
        raise
    except Exception as e:
        raise translate_error(e, txid) from e


def send_and_confirm(algod: algod_client.AlgodClient, signed_txn) -> Tuple[str, dict]:
    """Submit one signed transaction and block until it is confirmed."""
    try:
        txid = algod.send_transaction(signed_txn)
    except Exception as e:
        raise translate_error(e) from e
    return txid, wait_for_confirmation(algod, txid)


# ── Queries ────────────────────────────────────────────────────────────────────

def current_round(algod: algod_client.AlgodClient) -> int:
    try:
        return int(algod.status()["last-round"])
    except Exception as e:
        raise translate_error(e) from e


def account_balance(algod: algod_client.AlgodClient, address: str) -> Tuple[int, int]:
    """Return (amount, min-balance) in microAlgos."""
    try:
        info = algod.account_info(address)
    except Exception as e:
        raise translate_error(e) from e
    return int(info.get("amount", 0)), int(info.get("min-balance", 0))


def decode_state(state: list) -> dict:
    """Decode Algorand global state to a Python dict."""
    result = {}
    for item in state:
        key = base64.b64decode(item["key"]).decode("utf-8", errors="replace")
        val = item["value"]
        if val["type"] == 1:  # bytes
            result[key] = base64.b64decode(val["bytes"])
        else:                 # uint
            result[key] = val["uint"]
    return result


def read_global_state(algod: algod_client.AlgodClient, app_id: int) -> dict:
    try:
        info = algod.application_info(app_id)
    except Exception as e:
        raise translate_error(e) from e
    return decode_state(info["params"].get("global-state", []))


def read_box_uint(algod: algod_client.AlgodClient, app_id: int, name: bytes) -> Optional[int]:
    """Read a uint64 box, or None when the box does not exist."""
    try:
        box = algod.application_box_by_name(app_id, name)
    except algosdk_error.AlgodHTTPError as e:
        if e.code == 404:
            return None
        raise translate_error(e) from e
    except Exception as e:
        raise translate_error(e) from e
    return int.from_bytes(base64.b64decode(box["value"]), "big")


def box_exists(algod: algod_client.AlgodClient, app_id: int, name: bytes) -> bool:
    try:
        algod.application_box_by_name(app_id, name)
    except algosdk_error.AlgodHTTPError as e:
        if e.code == 404:
            return False
        raise translate_error(e) from e
    except Exception as e:
        raise translate_error(e) from e
    return True


# ── Accounts ───────────────────────────────────────────────────────────────────

def resolve_deployer(config: AugurionConfig, algod: algod_client.AlgodClient) -> algokit_utils.Account:
    """
    Signing account for every transaction of a run.

    DEPLOYER_MNEMONIC wins when set; on LocalNet the funded KMD dispenser
    account is used otherwise. No funded account is a fatal precondition.
    """
    if config.deployer_mnemonic:
        try:
            deployer = algokit_utils.get_account_from_mnemonic(config.deployer_mnemonic)
        except Exception as e:
            raise PreconditionError(f"DEPLOYER_MNEMONIC is not a valid mnemonic: {e}") from e
    elif config.is_localnet:
        try:
            deployer = algokit_utils.get_localnet_default_account(algod)
        except Exception as e:
            raise PreconditionError(f"No funded accounts found in KMD wallet: {e}") from e
    else:
        raise PreconditionError("DEPLOYER_MNEMONIC not set in .env")

    amount, _ = account_balance(algod, deployer.address)
    if amount <= 0:
        raise PreconditionError(f"Deployer {deployer.address} has no balance, fund it first")
    return deployer
