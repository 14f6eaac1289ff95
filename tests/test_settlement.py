import base64
import json
from unittest.mock import MagicMock

import algokit_utils
import pytest
from algosdk import encoding
from algosdk.error import AlgodHTTPError

from augurion.clients import DEPOSIT_BOXES, AppClient, CallResult, VaultClient, epoch_box_name
from augurion.contracts import vault_template
from augurion.errors import EpochStateError, LedgerRejection, PreconditionError
from augurion.settlement import (
    EpochInput,
    EpochState,
    SettlementOperator,
    accrual_hash_bytes,
    box_mbr,
    epoch_state_from_status,
    load_epoch_input,
)

EPOCH_ID = 202501
HEX_DIGEST = "ab" * 32

EPOCH_DOC = {
    "epochId": EPOCH_ID,
    "periodStart": "2025-01-01",
    "periodEnd": "2025-01-31",
    "netRevenueMicroAlgos": 2_000_000,
    "accrualHash": f"sha256:{HEX_DIGEST}",
}


class FakeVault:
    """In-memory RevenueVault that records every method call."""

    app_id = 4242
    app_address = "VAULTADDRESS"

    def __init__(self, admin: str = ""):
        self.admin = admin
        self.status = {}
        self.hashes = {}
        self.net = {}
        self.calls = []

    def _result(self, name):
        self.calls.append(name)
        return CallResult(tx_id=f"TX-{name}", return_value=None, confirmed_round=1, tx_ids=(f"TX-{name}",))

    def global_state(self):
        return {"admin": encoding.decode_address(self.admin)} if self.admin else {}

    def epoch_status(self, epoch_id):
        return self.status.get(epoch_id)

    def has_report(self, epoch_id):
        return epoch_id in self.hashes

    def deposited_amount(self, epoch_id):
        return self.net.get(epoch_id)

    def create_epoch(self, epoch_id, start_ts, end_ts):
        self.status[epoch_id] = 1
        return self._result("create_epoch")

    def close_epoch(self, epoch_id):
        self.status[epoch_id] = 2
        return self._result("close_epoch")

    def anchor_accrual_report(self, epoch_id, report_hash):
        self.hashes[epoch_id] = report_hash
        return self._result("anchor_accrual_report")

    def deposit_net_revenue(self, epoch_id, amount):
        self.net[epoch_id] = amount
        return self._result("deposit_net_revenue")


@pytest.fixture
def epoch():
    return EpochInput.from_dict(EPOCH_DOC)


@pytest.fixture
def funded_algod(algod):
    algod.account_info.return_value = {"amount": 10_000_000, "min-balance": 100_000}
    return algod


@pytest.fixture
def vault(operator):
    return FakeVault(admin=operator.address)


# ── Epoch input ────────────────────────────────────────────────────────────────

def test_load_epoch_input(tmp_path):
    path = tmp_path / "epoch.json"
    path.write_text(json.dumps(EPOCH_DOC), encoding="utf-8")
    epoch = load_epoch_input(path)
    assert epoch.epoch_id == EPOCH_ID
    assert epoch.net_revenue == 2_000_000
    assert epoch.end_ts - epoch.start_ts == 30 * 86_400
    assert epoch.report_hash == bytes.fromhex(HEX_DIGEST)


@pytest.mark.parametrize(
    "field, value",
    [
        ("epochId", None),
        ("epochId", "202501"),
        ("netRevenueMicroAlgos", True),
        ("netRevenueMicroAlgos", 0),
        ("periodEnd", "2024-12-31"),
        ("periodStart", "01/01/2025"),
    ],
)
def test_invalid_epoch_input(field, value):
    doc = dict(EPOCH_DOC, **{field: value})
    with pytest.raises(PreconditionError):
        EpochInput.from_dict(doc)


def test_missing_epoch_file(tmp_path):
    with pytest.raises(PreconditionError):
        load_epoch_input(tmp_path / "nope.json")


def test_accrual_hash_forms():
    assert accrual_hash_bytes(HEX_DIGEST) == bytes.fromhex(HEX_DIGEST)
    assert len(accrual_hash_bytes("ipfs://report-2025-01")) == 32


def test_epoch_state_mapping():
    assert epoch_state_from_status(None) is EpochState.UNCREATED
    assert epoch_state_from_status(1) is EpochState.CREATED
    assert epoch_state_from_status(3) is EpochState.CLOSED
    with pytest.raises(EpochStateError):
        epoch_state_from_status(9)


# ── Idempotent lifecycle ───────────────────────────────────────────────────────

def test_create_twice_submits_once(funded_algod, vault, operator, epoch):
    settler = SettlementOperator(funded_algod, vault, operator)
    assert settler.ensure_epoch_created(epoch) is not None
    assert settler.ensure_epoch_created(epoch) is None
    assert vault.calls == ["create_epoch"]


def test_close_uncreated_epoch_raises_without_submitting(funded_algod, vault, operator):
    settler = SettlementOperator(funded_algod, vault, operator)
    with pytest.raises(EpochStateError):
        settler.ensure_epoch_closed(EPOCH_ID)
    assert vault.calls == []


def test_close_is_noop_when_already_closed(funded_algod, vault, operator):
    vault.status[EPOCH_ID] = 2
    assert SettlementOperator(funded_algod, vault, operator).ensure_epoch_closed(EPOCH_ID) is None
    assert vault.calls == []


def test_existing_deposit_is_left_alone(funded_algod, vault, operator, capsys):
    vault.net[EPOCH_ID] = 1_500_000
    assert SettlementOperator(funded_algod, vault, operator).deposit_net_revenue(2_000_000, EPOCH_ID) is None
    assert vault.calls == []
    assert "[WARN]" in capsys.readouterr().out


def test_run_epoch_full_sequence(funded_algod, vault, operator, epoch):
    result = SettlementOperator(funded_algod, vault, operator).run_epoch(epoch)
    assert vault.calls == ["create_epoch", "close_epoch", "anchor_accrual_report", "deposit_net_revenue"]
    assert result.tx_ids == [f"TX-{name}" for name in vault.calls]
    assert result.receipt_settled is False


def test_rerun_after_completion_submits_nothing(funded_algod, vault, operator, epoch):
    settler = SettlementOperator(funded_algod, vault, operator)
    settler.run_epoch(epoch)
    vault.calls.clear()
    assert settler.run_epoch(epoch).tx_ids == []
    assert vault.calls == []


def test_non_admin_operator_is_rejected(funded_algod, operator, other_account, epoch):
    vault = FakeVault(admin=other_account.address)
    with pytest.raises(PreconditionError):
        SettlementOperator(funded_algod, vault, operator).run_epoch(epoch)
    assert vault.calls == []


# ── Funding ────────────────────────────────────────────────────────────────────

def test_pending_box_mbr_for_fresh_epoch(funded_algod, vault, operator, epoch):
    expected = sum(
        box_mbr(epoch_box_name(prefix, EPOCH_ID), size)
        for prefix, size in [
            ("epoch_status:", 8), ("epoch_start:", 8), ("epoch_end:", 8), ("epoch_hash:", 32), ("epoch_net:", 8),
        ]
    )
    assert SettlementOperator(funded_algod, vault, operator).pending_box_mbr(epoch) == expected


def test_ensure_funded_tops_up_shortfall(algod, vault, operator):
    algod.account_info.return_value = {"amount": 100_000, "min-balance": 100_000}
    transfer = MagicMock()
    transfer.return_value.get_txid.return_value = "FUNDTX"

    settler = SettlementOperator(algod, vault, operator, funding_buffer=200_000, transfer=transfer)
    assert settler.ensure_funded(upcoming_mbr=50_000) == "FUNDTX"

    params = transfer.call_args[0][1]
    assert isinstance(params, algokit_utils.TransferParameters)
    assert params.micro_algos == 250_000
    assert params.to_address == vault.app_address


def test_ensure_funded_skips_when_covered(funded_algod, vault, operator):
    transfer = MagicMock()
    assert SettlementOperator(funded_algod, vault, operator, transfer=transfer).ensure_funded(50_000) is None
    transfer.assert_not_called()


# ── kWhReceipt boundary ────────────────────────────────────────────────────────

def test_mark_receipt_settled_skips_when_operator_is_not_the_vault(
    funded_algod, vault, operator, other_account, global_state, capsys
):
    funded_algod.application_info.return_value = {
        "params": {"global-state": global_state({"revenueVault": encoding.decode_address(other_account.address)})}
    }
    settler = SettlementOperator(funded_algod, vault, operator, receipt_app_id=77)
    assert settler.mark_receipt_settled(EPOCH_ID) is False
    assert "[SKIP]" in capsys.readouterr().out
    funded_algod.send_transactions.assert_not_called()


def test_mark_receipt_settled_without_receipt_app(funded_algod, vault, operator):
    assert SettlementOperator(funded_algod, vault, operator).mark_receipt_settled(EPOCH_ID) is False
    funded_algod.application_info.assert_not_called()


# ── Deposit group box references ───────────────────────────────────────────────

def box_names(txn):
    return {box.name for box in txn.boxes}


def test_deposit_group_declares_exactly_the_epoch_boxes(algod, operator):
    client = VaultClient(algod, 4242, vault_template().contract, operator)
    payment, app_call = AppClient.build(client.compose_deposit(EPOCH_ID, 2_000_000))

    assert payment.amt == 2_000_000
    assert payment.receiver == client.app_address
    assert payment.group == app_call.group
    assert box_names(app_call) == {
        epoch_box_name("epoch_status:", EPOCH_ID),
        epoch_box_name("epoch_hash:", EPOCH_ID),
        epoch_box_name("epoch_net:", EPOCH_ID),
    }


ABI_RETURN_PREFIX = bytes.fromhex("151f7c75")


@pytest.fixture
def box_checking_node(algod):
    """Stub node that refuses any group not declaring every deposit box."""
    required = {epoch_box_name(prefix, EPOCH_ID) for prefix in DEPOSIT_BOXES}

    def send_transactions(signed):
        declared = set()
        for stx in signed:
            declared |= {box.name for box in (getattr(stx.transaction, "boxes", None) or [])}
        if required - declared:
            raise AlgodHTTPError("logic eval error: invalid Box reference", 400)
        return signed[0].get_txid()

    algod.send_transactions.side_effect = send_transactions
    algod.pending_transaction_info.return_value = {
        "confirmed-round": 1001,
        "logs": [base64.b64encode(ABI_RETURN_PREFIX + (2_000_000).to_bytes(8, "big")).decode()],
    }
    return algod


@pytest.mark.parametrize("omitted", DEPOSIT_BOXES)
def test_stub_node_rejects_group_missing_a_box(box_checking_node, operator, omitted):
    client = VaultClient(box_checking_node, 4242, vault_template().contract, operator)
    prefixes = tuple(p for p in DEPOSIT_BOXES if p != omitted)

    with pytest.raises(LedgerRejection):
        client.execute(client.compose_deposit(EPOCH_ID, 2_000_000, box_prefixes=prefixes))


def test_stub_node_accepts_complete_deposit_group(box_checking_node, operator):
    client = VaultClient(box_checking_node, 4242, vault_template().contract, operator)

    result = client.deposit_net_revenue(EPOCH_ID, 2_000_000)

    box_checking_node.send_transactions.assert_called_once()
    assert len(result.tx_ids) == 2
    assert result.confirmed_round == 1001
    assert result.return_value == 2_000_000
