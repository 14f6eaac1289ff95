"""
config.py — Augurion operator configuration
Reads from environment variables (after loading .env) once at process start
and hands an immutable AugurionConfig to every flow.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .errors import PreconditionError

# ── Network defaults ───────────────────────────────────────────────────────────

LOCALNET_ALGOD_URL = "http://localhost:4001"
LOCALNET_KMD_URL   = "http://localhost:4002"
LOCALNET_TOKEN     = "aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
LOCALNET_WALLET    = "unencrypted-default-wallet"

TESTNET_ALGOD_URL  = "https://testnet-api.algonode.cloud"

# Algorand produces a block roughly every 3.3 seconds
DEFAULT_BLOCK_TIME = 3.3

# ── Market contract constants ──────────────────────────────────────────────────

# Funding sent to each freshly created market so it can hold per-user boxes
# before the first bet (microAlgos).
MARKET_FUNDING_AMOUNT = 10_000_000   # 10 ALGO

# Global state declared by AugurionMarket
MARKET_GLOBAL_INTS  = 7   # status, yes_total, no_total, total_bets, fee_bps, winning_side, expiry_round
MARKET_GLOBAL_BYTES = 2   # creator, outcome_ref
MARKET_LOCAL_INTS   = 0
MARKET_LOCAL_BYTES  = 0

# ── Vault constants ────────────────────────────────────────────────────────────

VAULT_GLOBAL_INTS  = 1    # current_epoch
VAULT_GLOBAL_BYTES = 1    # admin

# Extra headroom kept above the vault's minimum balance when topping it up
VAULT_FUNDING_BUFFER = 200_000   # 0.2 ALGO

# Box minimum-balance requirement: 2500 + 400 * (len(name) + size) microAlgos
BOX_FLAT_MBR     = 2_500
BOX_BYTE_MBR     = 400

# ── Build artefacts ────────────────────────────────────────────────────────────

BUILD_DIR = Path("build")

# ── Registry ───────────────────────────────────────────────────────────────────

REGISTRY_VERSION = "1.0"
REGISTRY_PATH    = Path("markets-registry.json")


@dataclass(frozen=True)
class AugurionConfig:
    network: str
    algod_url: str
    algod_token: str
    kmd_url: Optional[str] = None
    kmd_token: Optional[str] = None
    deployer_mnemonic: str = ""
    vault_app_id: int = 0
    receipt_app_id: int = 0
    average_block_time: float = DEFAULT_BLOCK_TIME

    @property
    def is_localnet(self) -> bool:
        return self.network == "localnet"


def _int_env(env: Mapping[str, str], name: str) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        raise PreconditionError(f"{name} must be an integer, got {raw!r}")


def load_config(environ: Optional[Mapping[str, str]] = None, env_file: Optional[str] = None) -> AugurionConfig:
    """
    Build the process configuration.

    When `environ` is omitted the .env file (if any) is loaded into os.environ
    first, then os.environ is read. Tests pass an explicit mapping instead.
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    network = environ.get("ALGOD_NETWORK", "local")
    block_time_raw = environ.get("AVERAGE_BLOCK_TIME", "").strip()
    try:
        block_time = float(block_time_raw) if block_time_raw else DEFAULT_BLOCK_TIME
    except ValueError:
        raise PreconditionError(f"AVERAGE_BLOCK_TIME must be a number, got {block_time_raw!r}")
    if block_time <= 0:
        raise PreconditionError("AVERAGE_BLOCK_TIME must be positive")

    common = dict(
        deployer_mnemonic=environ.get("DEPLOYER_MNEMONIC", "").strip(),
        vault_app_id=_int_env(environ, "VAULT_APP_ID"),
        receipt_app_id=_int_env(environ, "RECEIPT_APP_ID"),
        average_block_time=block_time,
    )

    if network == "local":
        return AugurionConfig(
            network="localnet",
            algod_url=LOCALNET_ALGOD_URL,
            algod_token=LOCALNET_TOKEN,
            kmd_url=LOCALNET_KMD_URL,
            kmd_token=LOCALNET_TOKEN,
            **common,
        )
    if network == "testnet":
        return AugurionConfig(
            network="testnet",
            algod_url=environ.get("ALGORAND_ALGOD_URL", TESTNET_ALGOD_URL),
            algod_token=environ.get("ALGORAND_ALGOD_TOKEN", ""),
            **common,
        )
    raise PreconditionError(f"Unknown ALGOD_NETWORK {network!r} (expected 'local' or 'testnet')")
