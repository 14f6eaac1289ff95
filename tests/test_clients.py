import pytest
from algosdk import encoding

from augurion.clients import AppClient, MarketClient, VaultClient, epoch_box_name, stake_box_name
from augurion.contracts import market_template, vault_template


@pytest.fixture
def market(algod, operator):
    return MarketClient(algod, 1120, market_template().contract, operator)


def test_epoch_box_name_is_prefix_plus_big_endian_id():
    assert epoch_box_name("epoch_net:", 202501) == b"epoch_net:" + (202501).to_bytes(8, "big")


def test_stake_box_name(operator):
    assert stake_box_name("yes:", operator.address) == b"yes:" + encoding.decode_address(operator.address)


def test_bet_group_declares_sender_stake_box(market, operator):
    payment, app_call = AppClient.build(market.compose_bet("no", 5_000_000))
    assert payment.amt == 5_000_000
    assert payment.receiver == market.app_address
    assert app_call.index == 1120
    assert [box.name for box in app_call.boxes] == [stake_box_name("no:", operator.address)]


def test_bet_rejects_unknown_side(market):
    with pytest.raises(ValueError):
        market.compose_bet("maybe", 1)


def test_configure_call_arguments(market):
    [app_call] = AppClient.build(market.compose("configure_market", [b"SA-ENERGY-ESKOM-001", 5000, 200]))
    method = market_template().method("configure_market")
    assert app_call.app_args[0] == method.get_selector()
    assert not app_call.boxes


def test_claim_fee_covers_inner_payment(market, operator):
    [app_call] = AppClient.build(
        market.compose(
            "claim_payout",
            boxes=[stake_box_name("yes:", operator.address), stake_box_name("claimed:", operator.address)],
            fee=2000,
        )
    )
    assert app_call.fee == 2000
    assert len(app_call.boxes) == 2


def test_create_epoch_boxes(algod, operator):
    vault = VaultClient(algod, 4242, vault_template().contract, operator)
    [app_call] = AppClient.build(
        vault.compose("create_epoch", [202501, 1, 2], boxes=vault.epoch_boxes(202501, ("epoch_status:", "epoch_start:", "epoch_end:")))
    )
    assert {box.name for box in app_call.boxes} == {
        epoch_box_name("epoch_status:", 202501),
        epoch_box_name("epoch_start:", 202501),
        epoch_box_name("epoch_end:", 202501),
    }
