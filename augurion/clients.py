"""
clients.py — typed ABI clients for AugurionMarket and RevenueVault

Each call is composed with an AtomicTransactionComposer, signed by the
operator account and executed against algod. Flows treat these methods as
opaque remote calls that either return a CallResult or raise.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

import algokit_utils
from algosdk import abi, constants, encoding, logic, transaction
from algosdk.atomic_transaction_composer import (
    AtomicTransactionComposer,
    TransactionWithSigner,
)
from algosdk.v2client import algod as algod_client

from .network import box_exists, read_box_uint, read_global_state, translate_error

WAIT_ROUNDS = 4

# Boxes touched by each RevenueVault method
CREATE_EPOCH_BOXES = ("epoch_status:", "epoch_start:", "epoch_end:")
CLOSE_EPOCH_BOXES  = ("epoch_status:",)
ANCHOR_BOXES       = ("epoch_status:", "epoch_hash:")
DEPOSIT_BOXES      = ("epoch_status:", "epoch_hash:", "epoch_net:")


@dataclass(frozen=True)
class CallResult:
    tx_id: str
    return_value: Any
    confirmed_round: int
    tx_ids: Sequence[str] = ()


def epoch_box_name(prefix: str, epoch_id: int) -> bytes:
    """Vault box key: prefix + big-endian uint64 epoch id."""
    return prefix.encode("utf-8") + int(epoch_id).to_bytes(8, "big")


def stake_box_name(prefix: str, address: str) -> bytes:
    """Market box key: prefix + 32-byte public key of `address`."""
    return prefix.encode("utf-8") + encoding.decode_address(address)


class AppClient:
    """Calls ABI methods of one deployed application."""

    def __init__(
        self,
        algod: algod_client.AlgodClient,
        app_id: int,
        contract: abi.Contract,
        sender: algokit_utils.Account,
    ):
        self.algod    = algod
        self.app_id   = app_id
        self.contract = contract
        self.sender   = sender

    @property
    def app_address(self) -> str:
        return logic.get_application_address(self.app_id)

    def suggested_params(self, fee: Optional[int] = None) -> transaction.SuggestedParams:
        try:
            sp = self.algod.suggested_params()
        except Exception as e:
            raise translate_error(e) from e
        if fee is not None:
            sp.fee = fee
            sp.flat_fee = True
        return sp

    def payment(self, amount: int, sp: transaction.SuggestedParams, note: Optional[bytes] = None) -> TransactionWithSigner:
        txn = transaction.PaymentTxn(
            sender=self.sender.address,
            sp=sp,
            receiver=self.app_address,
            amt=amount,
            note=note,
        )
        return TransactionWithSigner(txn, self.sender.signer)

    def compose(
        self,
        method_name: str,
        args: Sequence[Any] = (),
        boxes: Iterable[bytes] = (),
        fee: Optional[int] = None,
        sp: Optional[transaction.SuggestedParams] = None,
    ) -> AtomicTransactionComposer:
        method = self.contract.get_method_by_name(method_name)
        atc = AtomicTransactionComposer()
        atc.add_method_call(
            app_id=self.app_id,
            method=method,
            sender=self.sender.address,
            sp=sp or self.suggested_params(fee),
            signer=self.sender.signer,
            method_args=list(args),
            boxes=[(self.app_id, name) for name in boxes],
        )
        return atc

    @staticmethod
    def build(atc: AtomicTransactionComposer) -> List[transaction.Transaction]:
        """Unsigned transactions of a composed group, group id assigned."""
        return [tws.txn for tws in atc.build_group()]

    def execute(self, atc: AtomicTransactionComposer) -> CallResult:
        try:
            result = atc.execute(self.algod, WAIT_ROUNDS)
        except Exception as e:
            raise translate_error(e) from e
        abi_result = result.abi_results[0]
        return CallResult(
            tx_id=abi_result.tx_id,
            return_value=abi_result.return_value,
            confirmed_round=result.confirmed_round,
            tx_ids=tuple(result.tx_ids),
        )

    def call(
        self,
        method_name: str,
        args: Sequence[Any] = (),
        boxes: Iterable[bytes] = (),
        fee: Optional[int] = None,
    ) -> CallResult:
        return self.execute(self.compose(method_name, args, boxes, fee))

    def global_state(self) -> dict:
        return read_global_state(self.algod, self.app_id)


# ── AugurionMarket ─────────────────────────────────────────────────────────────

class MarketClient(AppClient):

    def configure_market(self, outcome_ref: str, expiry_round: int, fee_bps: int) -> CallResult:
        return self.call("configure_market", [outcome_ref.encode("utf-8"), expiry_round, fee_bps])

    def open_market(self) -> CallResult:
        return self.call("open_market")

    def compose_bet(self, side: str, amount: int) -> AtomicTransactionComposer:
        if side not in ("yes", "no"):
            raise ValueError(f"side must be 'yes' or 'no', got {side!r}")
        sp = self.suggested_params()
        return self.compose(
            f"bet_{side}",
            [self.payment(amount, sp)],
            boxes=[stake_box_name(f"{side}:", self.sender.address)],
            sp=sp,
        )

    def bet(self, side: str, amount: int) -> CallResult:
        return self.execute(self.compose_bet(side, amount))

    def resolve_market(self, winning_side: int) -> CallResult:
        return self.call("resolve_market", [winning_side])

    def claim_payout(self, winning_prefix: str) -> CallResult:
        # outer fee covers the inner payment
        return self.call(
            "claim_payout",
            boxes=[
                stake_box_name(winning_prefix, self.sender.address),
                stake_box_name("claimed:", self.sender.address),
            ],
            fee=2 * constants.MIN_TXN_FEE,
        )


# ── RevenueVault ───────────────────────────────────────────────────────────────

class VaultClient(AppClient):

    def epoch_boxes(self, epoch_id: int, prefixes: Iterable[str]) -> List[bytes]:
        return [epoch_box_name(prefix, epoch_id) for prefix in prefixes]

    def epoch_status(self, epoch_id: int) -> Optional[int]:
        return read_box_uint(self.algod, self.app_id, epoch_box_name("epoch_status:", epoch_id))

    def has_report(self, epoch_id: int) -> bool:
        return box_exists(self.algod, self.app_id, epoch_box_name("epoch_hash:", epoch_id))

    def deposited_amount(self, epoch_id: int) -> Optional[int]:
        return read_box_uint(self.algod, self.app_id, epoch_box_name("epoch_net:", epoch_id))

    def create_epoch(self, epoch_id: int, start_ts: int, end_ts: int) -> CallResult:
        return self.call(
            "create_epoch",
            [epoch_id, start_ts, end_ts],
            boxes=self.epoch_boxes(epoch_id, CREATE_EPOCH_BOXES),
        )

    def close_epoch(self, epoch_id: int) -> CallResult:
        return self.call("close_epoch", [epoch_id], boxes=self.epoch_boxes(epoch_id, CLOSE_EPOCH_BOXES))

    def anchor_accrual_report(self, epoch_id: int, report_hash: bytes) -> CallResult:
        return self.call(
            "anchor_accrual_report",
            [epoch_id, report_hash],
            boxes=self.epoch_boxes(epoch_id, ANCHOR_BOXES),
        )

    def compose_deposit(
        self,
        epoch_id: int,
        amount: int,
        box_prefixes: Iterable[str] = DEPOSIT_BOXES,
    ) -> AtomicTransactionComposer:
        """[payment → vault] + deposit_net_revenue(pay, epoch_id, amount)."""
        sp = self.suggested_params()
        return self.compose(
            "deposit_net_revenue",
            [self.payment(amount, sp, note=f"Deposit epoch {epoch_id}".encode("utf-8")), epoch_id, amount],
            boxes=self.epoch_boxes(epoch_id, box_prefixes),
            sp=sp,
        )

    def deposit_net_revenue(self, epoch_id: int, amount: int) -> CallResult:
        return self.execute(self.compose_deposit(epoch_id, amount))
