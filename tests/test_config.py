import pytest

from augurion.config import DEFAULT_BLOCK_TIME, LOCALNET_ALGOD_URL, TESTNET_ALGOD_URL, load_config
from augurion.errors import PreconditionError


def test_localnet_defaults():
    config = load_config({})
    assert config.network == "localnet"
    assert config.is_localnet
    assert config.algod_url == LOCALNET_ALGOD_URL
    assert config.kmd_url is not None
    assert config.average_block_time == DEFAULT_BLOCK_TIME
    assert config.vault_app_id == 0


def test_testnet_from_environment():
    config = load_config(
        {
            "ALGOD_NETWORK": "testnet",
            "ALGORAND_ALGOD_TOKEN": "secret",
            "VAULT_APP_ID": "1234",
            "RECEIPT_APP_ID": " 99 ",
            "AVERAGE_BLOCK_TIME": "2.8",
        }
    )
    assert config.network == "testnet"
    assert not config.is_localnet
    assert config.algod_url == TESTNET_ALGOD_URL
    assert config.algod_token == "secret"
    assert config.kmd_url is None
    assert config.vault_app_id == 1234
    assert config.receipt_app_id == 99
    assert config.average_block_time == 2.8


@pytest.mark.parametrize(
    "environ",
    [
        {"ALGOD_NETWORK": "mainnet"},
        {"VAULT_APP_ID": "abc"},
        {"AVERAGE_BLOCK_TIME": "0"},
        {"AVERAGE_BLOCK_TIME": "fast"},
    ],
)
def test_invalid_configuration(environ):
    with pytest.raises(PreconditionError):
        load_config(environ)


def test_env_file_is_loaded(tmp_path, monkeypatch):
    for name in ("ALGOD_NETWORK", "VAULT_APP_ID"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text("ALGOD_NETWORK=testnet\nVAULT_APP_ID=55\n", encoding="utf-8")
    config = load_config(env_file=str(env_file))
    assert config.network == "testnet"
    assert config.vault_app_id == 55
