from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.domain import ContractState, Network, Oracle, StorageError
from app.main import _contract_store, _oracle_registry, app

from helpers import OWNER_KEY, make_contract


@pytest.fixture
def client():
    """Test client that cleans up dependency overrides after each test."""
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthcheck(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_contracts_filters_by_state(client, store):
    store.upsert_many(
        [
            make_contract("01" * 32, state=ContractState.OPEN),
            make_contract("02" * 32, state=ContractState.UNKNOWN),
        ]
    )
    app.dependency_overrides[_contract_store] = lambda: store

    response = client.get(
        "/contracts", params={"network": "testnet", "owner_key": OWNER_KEY, "state": "open"}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 1
    assert payload["items"][0]["funding_txid"] == "01" * 32
    assert payload["items"][0]["state"] == "open"
    assert "covenant_script" not in payload["items"][0]


def test_list_contracts_rejects_unknown_network(client, store):
    app.dependency_overrides[_contract_store] = lambda: store

    response = client.get("/contracts", params={"network": "mainnet", "owner_key": OWNER_KEY})

    assert response.status_code == 422


def test_list_contracts_store_unavailable(client):
    mock_store = MagicMock()
    mock_store.list_contracts.side_effect = StorageError("database is locked")
    app.dependency_overrides[_contract_store] = lambda: mock_store

    response = client.get("/contracts", params={"network": "testnet", "owner_key": OWNER_KEY})

    assert response.status_code == 503
    mock_store.list_contracts.assert_called_once_with(Network.TESTNET, OWNER_KEY)


def test_list_activities(client, store):
    store.upsert(make_contract("01" * 32, state=ContractState.LIQUIDATED, closed_at=None))
    app.dependency_overrides[_contract_store] = lambda: store

    response = client.get("/activities", params={"network": "testnet", "owner_key": OWNER_KEY})

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 2
    assert {item["type"] for item in payload["items"]} == {"creation", "liquidation"}
    assert payload["items"][0]["contract"]["funding_txid"] == "01" * 32


def test_list_oracles(client):
    registry = MagicMock()
    registry.fetch_oracles = AsyncMock(
        return_value=[Oracle(id="id0", name="Fuji.Money", pubkey="0xabc", disabled=False)]
    )
    app.dependency_overrides[_oracle_registry] = lambda: registry

    response = client.get("/oracles/testnet")

    assert response.status_code == 200
    assert response.json() == {
        "network": "testnet",
        "items": [{"id": "id0", "name": "Fuji.Money", "pubkey": "0xabc", "disabled": False}],
    }
    registry.fetch_oracles.assert_awaited_once_with(Network.TESTNET)
