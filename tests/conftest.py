import base64
from unittest.mock import MagicMock

import algokit_utils
import pytest
from algosdk import account as algosdk_account
from algosdk import transaction

GENESIS_HASH = base64.b64encode(bytes(32)).decode()


@pytest.fixture
def operator() -> algokit_utils.Account:
    private_key, address = algosdk_account.generate_account()
    return algokit_utils.Account(private_key=private_key, address=address)


@pytest.fixture
def other_account() -> algokit_utils.Account:
    private_key, address = algosdk_account.generate_account()
    return algokit_utils.Account(private_key=private_key, address=address)


@pytest.fixture
def suggested_params() -> transaction.SuggestedParams:
    return transaction.SuggestedParams(
        fee=1000,
        first=1,
        last=1001,
        gh=GENESIS_HASH,
        gen="test-v1",
        flat_fee=True,
    )


@pytest.fixture
def algod(suggested_params) -> MagicMock:
    """Stub node: only what the flows read is configured."""
    node = MagicMock()
    node.suggested_params.return_value = suggested_params
    node.status.return_value = {"last-round": 1000}
    return node


def encode_global_state(state: dict) -> list:
    """Inverse of network.decode_state, as algod returns it."""
    items = []
    for key, value in state.items():
        if isinstance(value, bytes):
            encoded = {"type": 1, "bytes": base64.b64encode(value).decode(), "uint": 0}
        else:
            encoded = {"type": 2, "bytes": "", "uint": value}
        items.append({"key": base64.b64encode(key.encode()).decode(), "value": encoded})
    return items


@pytest.fixture
def global_state():
    return encode_global_state
