"""
settlement.py — operator epoch settlement against the RevenueVault

Usage:
  augurion-epoch path/to/epoch.json [--vault-app-id N | --deploy-vault] [--receipt-app-id M]

Epoch JSON format:
  {
    "epochId": 202501,
    "periodStart": "2025-01-01",
    "periodEnd": "2025-01-31",
    "netRevenueMicroAlgos": 2000000,
    "accrualHash": "sha256:<64 hex chars>"
  }

Every step is idempotent, so a failed run can simply be repeated:
  1. Top up the vault to cover its minimum balance plus the boxes this run creates
  2. Create the epoch            (skipped when it already exists)
  3. Close the epoch             (skipped when already closed)
  4. Anchor the accrual hash     (skipped when already anchored)
  5. Deposit net revenue         (skipped when already deposited)
  6. kWhReceipt.markEpochSettled (only the vault itself may call it)
"""

import argparse
import hashlib
import json
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import algokit_utils
from algosdk import abi, encoding
from algosdk.v2client import algod as algod_client

from .clients import (
    CREATE_EPOCH_BOXES,
    AppClient,
    CallResult,
    VaultClient,
    epoch_box_name,
)
from .config import BOX_BYTE_MBR, BOX_FLAT_MBR, VAULT_FUNDING_BUFFER, load_config
from .contracts import vault_template
from .deployer import deploy_app
from .errors import EpochStateError, PreconditionError
from .network import account_balance, get_algod, read_global_state, resolve_deployer

HASH_PREFIX = "sha256:"

MARK_SETTLED = abi.Method.from_signature("markEpochSettled(uint64)string")


class EpochState(Enum):
    UNCREATED = "uncreated"
    CREATED   = "created"
    CLOSED    = "closed"


# vault status box: 1 = OPEN, 2 = CLOSED, 3 = SETTLED
_STATUS_TO_STATE = {
    0: EpochState.UNCREATED,
    1: EpochState.CREATED,
    2: EpochState.CLOSED,
    3: EpochState.CLOSED,
}


def epoch_state_from_status(status: Optional[int]) -> EpochState:
    if status is None:
        return EpochState.UNCREATED
    try:
        return _STATUS_TO_STATE[status]
    except KeyError:
        raise EpochStateError(f"unknown epoch status {status}")


# ── Epoch input ────────────────────────────────────────────────────────────────

REQUIRED_FIELDS = {
    "epochId": int,
    "periodStart": str,
    "periodEnd": str,
    "netRevenueMicroAlgos": int,
    "accrualHash": str,
}


def _date_ts(value: str, name: str) -> int:
    try:
        day = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise PreconditionError(f"{name} must be a YYYY-MM-DD date, got {value!r}")
    return int(day.timestamp())


def accrual_hash_bytes(value: str) -> bytes:
    """
    32-byte report hash. A `sha256:` prefixed (or bare) 64-char hex digest is
    used as is; any other reference is hashed.
    """
    digest = value[len(HASH_PREFIX):] if value.startswith(HASH_PREFIX) else value
    if re.fullmatch(r"[0-9a-fA-F]{64}", digest):
        return bytes.fromhex(digest)
    return hashlib.sha256(value.encode("utf-8")).digest()


@dataclass(frozen=True)
class EpochInput:
    epoch_id: int
    period_start: str
    period_end: str
    net_revenue: int
    accrual_hash: str

    @property
    def start_ts(self) -> int:
        return _date_ts(self.period_start, "periodStart")

    @property
    def end_ts(self) -> int:
        return _date_ts(self.period_end, "periodEnd")

    @property
    def report_hash(self) -> bytes:
        return accrual_hash_bytes(self.accrual_hash)

    @classmethod
    def from_dict(cls, data: dict) -> "EpochInput":
        for name, kind in REQUIRED_FIELDS.items():
            if data.get(name) is None:
                raise PreconditionError(f"Missing required field: {name}")
            value = data[name]
            if isinstance(value, bool) or not isinstance(value, kind):
                raise PreconditionError(f"{name} must be a {'number' if kind is int else 'string'}")

        epoch = cls(
            epoch_id=data["epochId"],
            period_start=data["periodStart"],
            period_end=data["periodEnd"],
            net_revenue=data["netRevenueMicroAlgos"],
            accrual_hash=data["accrualHash"],
        )
        if epoch.epoch_id <= 0:
            raise PreconditionError("epochId must be positive")
        if epoch.net_revenue <= 0:
            raise PreconditionError("netRevenueMicroAlgos must be positive")
        if epoch.start_ts >= epoch.end_ts:
            raise PreconditionError("periodStart must be before periodEnd")
        return epoch


def load_epoch_input(path: Path) -> EpochInput:
    path = Path(path)
    if not path.exists():
        raise PreconditionError(f"File not found: {path.resolve()}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PreconditionError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PreconditionError(f"{path} must contain a JSON object")
    return EpochInput.from_dict(data)


# ── Minimum balance ────────────────────────────────────────────────────────────

def box_mbr(name: bytes, size: int) -> int:
    return BOX_FLAT_MBR + BOX_BYTE_MBR * (len(name) + size)


BOX_SIZES = {
    "epoch_status:": 8,
    "epoch_start:": 8,
    "epoch_end:": 8,
    "epoch_hash:": 32,
    "epoch_net:": 8,
}


@dataclass
class EpochResult:
    epoch_id: int
    tx_ids: List[str] = field(default_factory=list)
    receipt_settled: bool = False


# ── Operator ───────────────────────────────────────────────────────────────────

class SettlementOperator:
    """Idempotent epoch lifecycle on one RevenueVault, driven by one operator."""

    def __init__(
        self,
        algod: algod_client.AlgodClient,
        vault: VaultClient,
        operator: algokit_utils.Account,
        receipt_app_id: int = 0,
        funding_buffer: int = VAULT_FUNDING_BUFFER,
        transfer: Callable = algokit_utils.transfer,
    ):
        self.algod          = algod
        self.vault          = vault
        self.operator       = operator
        self.receipt_app_id = receipt_app_id
        self.funding_buffer = funding_buffer
        self.transfer       = transfer

    def epoch_state(self, epoch_id: int) -> EpochState:
        return epoch_state_from_status(self.vault.epoch_status(epoch_id))

    def check_admin(self) -> None:
        admin = self.vault.global_state().get("admin")
        if admin is not None and encoding.encode_address(admin) != self.operator.address:
            raise PreconditionError(
                f"{self.operator.address} is not the admin of vault {self.vault.app_id}"
            )

    # ── Funding ────────────────────────────────────────────────────────────────

    def pending_box_mbr(self, epoch: EpochInput) -> int:
        """MBR of the boxes the remaining steps of this epoch will create."""
        prefixes = []
        if self.epoch_state(epoch.epoch_id) is EpochState.UNCREATED:
            prefixes.extend(CREATE_EPOCH_BOXES)
        if not self.vault.has_report(epoch.epoch_id):
            prefixes.append("epoch_hash:")
        if self.vault.deposited_amount(epoch.epoch_id) is None:
            prefixes.append("epoch_net:")
        return sum(box_mbr(epoch_box_name(p, epoch.epoch_id), BOX_SIZES[p]) for p in prefixes)

    def ensure_funded(self, upcoming_mbr: int = 0) -> Optional[str]:
        """
        Top the vault up to min-balance + upcoming box MBR + buffer.
        Returns the top-up txid, or None when the vault already has enough.
        """
        amount, min_balance = account_balance(self.algod, self.vault.app_address)
        target = min_balance + upcoming_mbr + self.funding_buffer
        if amount >= target:
            print(f"[OK] Vault balance {amount} covers {target} microAlgos")
            return None

        shortfall = target - amount
        print(f"[i] Vault balance {amount} below {target}; funding {shortfall} microAlgos")
        txn = self.transfer(
            self.algod,
            algokit_utils.TransferParameters(
                from_account=self.operator,
                to_address=self.vault.app_address,
                micro_algos=shortfall,
            ),
        )
        txid = txn.get_txid()
        print(f"[OK] Funded vault  tx: {txid}")
        return txid

    # ── Epoch lifecycle ────────────────────────────────────────────────────────

    def ensure_epoch_created(self, epoch: EpochInput) -> Optional[CallResult]:
        state = self.epoch_state(epoch.epoch_id)
        if state is not EpochState.UNCREATED:
            print(f"[SKIP] Epoch {epoch.epoch_id} already exists ({state.value})")
            return None
        result = self.vault.create_epoch(epoch.epoch_id, epoch.start_ts, epoch.end_ts)
        print(f"[OK] Epoch {epoch.epoch_id} created  tx: {result.tx_id}")
        return result

    def ensure_epoch_closed(self, epoch_id: int) -> Optional[CallResult]:
        """
        CREATED → CLOSED. Already closed is a no-op; an epoch that was never
        created cannot be closed and raises EpochStateError without sending
        anything.
        """
        state = self.epoch_state(epoch_id)
        if state is EpochState.UNCREATED:
            raise EpochStateError(f"Epoch {epoch_id} was never created; nothing to close")
        if state is EpochState.CLOSED:
            print(f"[SKIP] Epoch {epoch_id} already closed")
            return None
        result = self.vault.close_epoch(epoch_id)
        print(f"[OK] Epoch {epoch_id} closed  tx: {result.tx_id}")
        return result

    def ensure_report_anchored(self, epoch: EpochInput) -> Optional[CallResult]:
        if self.vault.has_report(epoch.epoch_id):
            print(f"[SKIP] Accrual report already anchored for epoch {epoch.epoch_id}")
            return None
        result = self.vault.anchor_accrual_report(epoch.epoch_id, epoch.report_hash)
        print(f"[OK] Accrual report anchored  tx: {result.tx_id}")
        return result

    def deposit_net_revenue(self, amount: int, epoch_id: int) -> Optional[CallResult]:
        """
        Grouped [payment, deposit_net_revenue] referencing exactly the
        epoch_status, epoch_hash and epoch_net boxes.
        """
        existing = self.vault.deposited_amount(epoch_id)
        if existing is not None:
            if existing != amount:
                print(f"[WARN] Epoch {epoch_id} already holds a deposit of {existing}, not {amount}; leaving it")
            else:
                print(f"[SKIP] Net revenue already deposited for epoch {epoch_id}")
            return None
        result = self.vault.deposit_net_revenue(epoch_id, amount)
        print(f"[OK] Net revenue {amount} deposited  tx: {result.tx_id}")
        return result

    def mark_receipt_settled(self, epoch_id: int) -> bool:
        """
        kWhReceipt.markEpochSettled only accepts calls from the RevenueVault.
        When the operator is not that caller the step is logged and skipped.
        """
        if not self.receipt_app_id:
            print("[SKIP] No kWhReceipt app configured; not marking epoch settled")
            return False

        state = read_global_state(self.algod, self.receipt_app_id)
        raw_vault = state.get("revenueVault") or state.get("revenue_vault")
        settler = encoding.encode_address(raw_vault) if raw_vault else None
        if settler != self.operator.address:
            print(
                f"[SKIP] markEpochSettled on app {self.receipt_app_id} is restricted to "
                f"the RevenueVault ({settler}); not callable by the operator"
            )
            return False

        receipt = AppClient(
            self.algod,
            self.receipt_app_id,
            abi.Contract(name="KWhReceipt", methods=[MARK_SETTLED]),
            self.operator,
        )
        result = receipt.call(
            MARK_SETTLED.name,
            [epoch_id],
            boxes=[epoch_box_name("epoch_settled:", epoch_id), epoch_box_name("epoch_kwh:", epoch_id)],
        )
        print(f"[OK] Receipts for epoch {epoch_id} marked settled  tx: {result.tx_id}")
        return True

    # ── Full run ───────────────────────────────────────────────────────────────

    def run_epoch(self, epoch: EpochInput) -> EpochResult:
        print(f"=== Epoch {epoch.epoch_id} settlement on vault {self.vault.app_id} ===")
        print(f"[i] Operator    : {self.operator.address}")
        print(f"[i] Net revenue : {epoch.net_revenue} microAlgos")
        self.check_admin()

        result = EpochResult(epoch_id=epoch.epoch_id)

        print("[1] Checking vault balance…")
        fund_txid = self.ensure_funded(self.pending_box_mbr(epoch))
        if fund_txid:
            result.tx_ids.append(fund_txid)

        steps = [
            ("[2] Creating epoch…", lambda: self.ensure_epoch_created(epoch)),
            ("[3] Closing epoch…", lambda: self.ensure_epoch_closed(epoch.epoch_id)),
            ("[4] Anchoring accrual report…", lambda: self.ensure_report_anchored(epoch)),
            ("[5] Depositing net revenue…", lambda: self.deposit_net_revenue(epoch.net_revenue, epoch.epoch_id)),
        ]
        for label, step in steps:
            print(label)
            call = step()
            if call is not None:
                result.tx_ids.extend(call.tx_ids or (call.tx_id,))

        print("[6] Marking receipts settled…")
        result.receipt_settled = self.mark_receipt_settled(epoch.epoch_id)

        print(f"=== Epoch {epoch.epoch_id} complete: {len(result.tx_ids)} transaction(s) ===")
        for i, txid in enumerate(result.tx_ids, start=1):
            print(f"    [{i}] {txid}")
        return result


def deploy_vault(algod: algod_client.AlgodClient, operator: algokit_utils.Account) -> int:
    """Create a RevenueVault with `operator` as admin; returns its app id."""
    print("[i] Deploying a new RevenueVault…")
    deployment = deploy_app(algod, operator, vault_template(), VAULT_FUNDING_BUFFER)
    print(f"[OK] RevenueVault App ID: {deployment.app_id}  Address: {deployment.app_address}")
    print(f"    Set VAULT_APP_ID={deployment.app_id} in .env for later runs")
    return deployment.app_id


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Run one RevenueVault settlement epoch")
    parser.add_argument("epoch_json", help="Path to the epoch JSON file")
    parser.add_argument("--vault-app-id", type=int, default=0, help="RevenueVault app id (default: VAULT_APP_ID)")
    parser.add_argument("--receipt-app-id", type=int, default=0, help="kWhReceipt app id (default: RECEIPT_APP_ID)")
    parser.add_argument("--deploy-vault", action="store_true", help="Create a new RevenueVault when no app id is set")
    args = parser.parse_args(argv)

    try:
        config = load_config()
        epoch  = load_epoch_input(Path(args.epoch_json))
        print(f"[OK] Epoch JSON validated: {args.epoch_json}")

        algod    = get_algod(config)
        operator = resolve_deployer(config, algod)

        vault_app_id = args.vault_app_id or config.vault_app_id
        if not vault_app_id:
            if not args.deploy_vault:
                raise PreconditionError("RevenueVault app id not set (VAULT_APP_ID, --vault-app-id or --deploy-vault)")
            vault_app_id = deploy_vault(algod, operator)

        vault = VaultClient(algod, vault_app_id, vault_template().contract, operator)
        SettlementOperator(
            algod,
            vault,
            operator,
            receipt_app_id=args.receipt_app_id or config.receipt_app_id,
        ).run_epoch(epoch)
    except Exception as e:
        print(f"[ERR] Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
