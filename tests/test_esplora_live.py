from __future__ import annotations

import pytest

from app.domain import HistoryEntry, NetworkError
from chain.client import EsploraClient

from helpers import SCRIPT


@pytest.mark.network
@pytest.mark.asyncio
async def test_esplora_live_fetches_script_history():
    try:
        async with EsploraClient("testnet") as client:
            [history] = await client.fetch_histories([SCRIPT])
    except NetworkError as exc:
        pytest.skip(f"Esplora API unavailable: {exc}")

    assert isinstance(history, list)
    for entry in history:
        assert isinstance(entry, HistoryEntry)
        assert len(entry.txid) == 64
