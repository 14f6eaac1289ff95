import json
from datetime import datetime, timezone

import pytest

from augurion.markets_data import SOUTHERN_AFRICA_MARKETS, compute_markets
from augurion.registry import (
    DeployedMarket,
    DeployFailure,
    build_registry,
    load_registry,
    utc_timestamp,
    write_registry,
)

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def markets():
    return compute_markets(1000, SOUTHERN_AFRICA_MARKETS[:3], NOW, 3.3)


def deployed(market, app_id):
    return DeployedMarket(
        market=market,
        app_id=app_id,
        app_address=f"ADDR{app_id}",
        deployed_at=utc_timestamp(NOW),
        deployed_by="DEPLOYER",
        tx_id=f"TX{app_id}",
    )


def test_registry_keeps_only_successes_in_order(markets):
    outcomes = [
        deployed(markets[0], 11),
        DeployFailure(markets[1], "configure", "rejected", 12),
        deployed(markets[2], 13),
    ]
    registry = build_registry(outcomes, "localnet", NOW)
    assert [m.app_id for m in registry.markets] == [11, 13]
    assert registry.version == "1.0"
    assert registry.deployed_at == "2026-01-15T12:00:00Z"
    assert registry.count("economic") == 2


def test_registry_json_uses_camel_case(markets, tmp_path):
    registry = build_registry([deployed(markets[0], 11)], "testnet", NOW)
    path = write_registry(registry, tmp_path / "out" / "markets-registry.json")

    doc = load_registry(path)
    assert doc["network"] == "testnet"
    assert doc["deployedAt"] == "2026-01-15T12:00:00Z"
    entry = doc["markets"][0]
    assert entry["appId"] == 11
    assert entry["marketRef"] == markets[0].market_ref
    assert entry["expiryRound"] == markets[0].expiry_round
    assert entry["feeBps"] == 200
    assert entry["appAddress"] == "ADDR11"


def test_write_registry_overwrites_previous_run(markets, tmp_path):
    path = tmp_path / "markets-registry.json"
    write_registry(build_registry([deployed(markets[0], 11), deployed(markets[1], 12)], "localnet", NOW), path)
    write_registry(build_registry([], "localnet", NOW), path)

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["markets"] == []


def test_failure_stage_is_validated(markets):
    with pytest.raises(ValueError):
        DeployFailure(markets[0], "resolve", "boom")
