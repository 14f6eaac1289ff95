from unittest.mock import MagicMock

import pytest
from algosdk.error import AlgodHTTPError

from augurion import bet, delete_app, deploy_markets, diagnose, health_check, settlement
from augurion.clients import CallResult
from augurion.config import LOCALNET_WALLET, load_config
from augurion.errors import NetworkError, PreconditionError


@pytest.fixture
def kmd():
    client = MagicMock()
    client.list_wallets.return_value = [{"id": "w0", "name": "other"}, {"id": "w1", "name": LOCALNET_WALLET}]
    client.init_wallet_handle.return_value = "handle"
    client.list_keys.return_value = ["DISPENSER"]
    return client


def test_health_check_localnet(algod, kmd):
    algod.account_info.return_value = {"amount": 5_000_000, "min-balance": 100_000}
    assert health_check.check_health(load_config({}), algod, kmd) == 5_000_000
    kmd.init_wallet_handle.assert_called_once_with("w1", "")
    kmd.release_wallet_handle.assert_called_once_with("handle")
    algod.account_info.assert_called_once_with("DISPENSER")


def test_health_check_testnet_skips_kmd(algod):
    assert health_check.check_health(load_config({"ALGOD_NETWORK": "testnet"}), algod) == 0


def test_health_check_unfunded_dispenser(algod, kmd):
    algod.account_info.return_value = {"amount": 0, "min-balance": 100_000}
    with pytest.raises(PreconditionError):
        health_check.check_health(load_config({}), algod, kmd)


def test_health_check_node_down(algod, kmd):
    algod.status.side_effect = AlgodHTTPError("unavailable", 503)
    with pytest.raises(NetworkError):
        health_check.check_health(load_config({}), algod, kmd)


def test_place_bet():
    client = MagicMock()
    client.bet.return_value = CallResult(tx_id="BETTX", return_value=5_000_000, confirmed_round=10)
    assert bet.place_bet(client, "yes", 5_000_000).tx_id == "BETTX"
    client.bet.assert_called_once_with("yes", 5_000_000)

    with pytest.raises(ValueError):
        bet.place_bet(client, "yes", 0)


def test_resolve_and_claim():
    client = MagicMock()
    bet.resolve(client, "no")
    client.resolve_market.assert_called_once_with(2)
    bet.claim(client, "no")
    client.claim_payout.assert_called_once_with("no:")


@pytest.mark.parametrize(
    "module, argv",
    [
        (delete_app, ["--app-id", "1120"]),
        (deploy_markets, []),
        (diagnose, ["--app-id", "1120"]),
        (bet, ["--app-id", "1120", "--side", "yes"]),
        (health_check, []),
        (settlement, ["missing-epoch.json"]),
    ],
)
def test_cli_failures_exit_non_zero(module, argv, monkeypatch):
    def broken_config():
        raise PreconditionError("DEPLOYER_MNEMONIC not set in .env")

    monkeypatch.setattr(module, "load_config", broken_config)
    with pytest.raises(SystemExit) as info:
        module.main(argv)
    assert info.value.code == 1
