from __future__ import annotations

import httpx
import pytest

from app.domain import Network
from app.services.oracle_registry import OracleRegistry

STATIC = {
    "testnet": [
        {"id": "id0", "name": "Fuji.Money", "pubkey": "0xc304", "disabled": False},
        {"id": "id1", "name": "Bitfinex", "disabled": True},
    ]
}


def test_static_table_lookup():
    registry = OracleRegistry(api_url="", static_oracles=STATIC)

    oracles = registry.static(Network.TESTNET)

    assert [(o.id, o.disabled) for o in oracles] == [("id0", False), ("id1", True)]
    assert oracles[1].pubkey == ""
    assert registry.static("liquid") == []


@pytest.mark.asyncio
async def test_fetch_oracles_from_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["network"] == "testnet"
        return httpx.Response(
            200, json={"oracles": [{"id": "id7", "name": "Remote", "pubkey": "0x01"}]}
        )

    registry = OracleRegistry(
        api_url="https://oracles.test/v1/oracles",
        static_oracles=STATIC,
        transport=httpx.MockTransport(handler),
    )

    [oracle] = await registry.fetch_oracles("testnet")

    assert oracle.name == "Remote"
    assert oracle.disabled is False


@pytest.mark.asyncio
async def test_unavailable_endpoint_falls_back_to_static_table():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    registry = OracleRegistry(
        api_url="https://oracles.test/v1/oracles",
        static_oracles=STATIC,
        transport=httpx.MockTransport(handler),
    )

    oracles = await registry.fetch_oracles(Network.TESTNET)

    assert [o.id for o in oracles] == ["id0", "id1"]
