"""
deployer.py — create one application instance from a compiled template

Steps:
  1. Compile approval + clear TEAL on the node
  2. Bare ApplicationCreate (no method call)
  3. Fund the app address so it can hold boxes before any user interaction
"""

from dataclasses import dataclass

import algokit_utils
import algosdk
from algosdk import transaction
from algosdk.v2client import algod as algod_client

from .contracts import ContractTemplate
from .errors import AppNotFunded
from .network import compile_teal, send_and_confirm, translate_error


@dataclass(frozen=True)
class AppDeployment:
    app_id: int
    app_address: str
    tx_id: str
    fund_tx_id: str


def deploy_app(
    algod: algod_client.AlgodClient,
    deployer: algokit_utils.Account,
    template: ContractTemplate,
    funding_amount: int,
) -> AppDeployment:
    """
    Create and fund a new instance of `template`.
    Any ledger rejection propagates; batch callers decide whether to continue.
    A funding failure after the create raises AppNotFunded carrying the app id.
    """
    # ── Step 1: Compile ────────────────────────────────────────────────────────
    try:
        approval_bytes = compile_teal(algod, template.approval_teal)
        clear_bytes    = compile_teal(algod, template.clear_teal)
        sp             = algod.suggested_params()
    except Exception as e:
        raise translate_error(e) from e

    # ── Step 2: Bare ApplicationCreate ────────────────────────────────────────
    create_txn = transaction.ApplicationCreateTxn(
        sender=deployer.address,
        sp=sp,
        on_complete=transaction.OnComplete.NoOpOC,
        approval_program=approval_bytes,
        clear_program=clear_bytes,
        global_schema=template.global_schema,
        local_schema=template.local_schema,
    )
    txid, result = send_and_confirm(algod, create_txn.sign(deployer.private_key))
    app_id      = result["application-index"]
    app_address = algosdk.logic.get_application_address(app_id)

    # ── Step 3: Fund contract min-balance ──────────────────────────────────────
    fund_txn = transaction.PaymentTxn(
        sender=deployer.address,
        sp=sp,
        receiver=app_address,
        amt=funding_amount,
    )
    try:
        fund_txid, _ = send_and_confirm(algod, fund_txn.sign(deployer.private_key))
    except Exception as e:
        raise AppNotFunded(app_id, str(e)) from e

    return AppDeployment(app_id=app_id, app_address=app_address, tx_id=txid, fund_tx_id=fund_txid)
