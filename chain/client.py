from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import Contract, HistoryEntry, Network, NetworkError, SpendStatus


def script_hash(script: bytes | str) -> str:
    """Esplora scripthash: hex SHA256 of the raw output script."""

    if isinstance(script, str):
        script = bytes.fromhex(script)
    return hashlib.sha256(script).hexdigest()


def _arrival_order(entries: list[HistoryEntry]) -> list[HistoryEntry]:
    # Esplora lists newest first; confirmed by height ascending, mempool last.
    confirmed = sorted((entry for entry in entries if entry.confirmed), key=lambda e: e.height)
    mempool = [entry for entry in entries if not entry.confirmed]
    return confirmed + mempool


class EsploraClient:
    """Thin async wrapper around the Esplora REST endpoints used for reconciliation."""

    def __init__(
        self,
        network: Network | str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.network = Network(network)
        self.base_url = base_url or settings.esplora_url(self.network.value)
        self.timeout = timeout or settings.chain_request_timeout
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=transport
        )

    async def _get_json(self, path: str) -> Any:
        logger.debug("Esplora GET {}{}", self.base_url, path)
        try:
            response = await self.client.get(path)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise NetworkError(f"Esplora request {path} failed: {exc}") from exc
        except ValueError as exc:
            raise NetworkError(f"Esplora returned malformed JSON for {path}") from exc

    async def fetch_history(self, output_script: bytes | str) -> list[HistoryEntry]:
        payload = await self._get_json(f"/scripthash/{script_hash(output_script)}/txs")
        if not isinstance(payload, list):
            raise NetworkError("Esplora history payload is not a list")

        entries: list[HistoryEntry] = []
        try:
            for tx in payload:
                status = tx.get("status") or {}
                height = status.get("block_height") if status.get("confirmed") else 0
                entries.append(HistoryEntry(txid=tx["txid"], height=int(height or 0)))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise NetworkError("Esplora history payload has malformed entries") from exc
        return _arrival_order(entries)

    async def fetch_histories(
        self, output_scripts: Sequence[bytes | str]
    ) -> list[list[HistoryEntry]]:
        return list(
            await asyncio.gather(*(self.fetch_history(script) for script in output_scripts))
        )

    async def fetch_outspend(self, contract: Contract) -> SpendStatus | None:
        if not contract.funding_txid:
            return None

        outspend = await self._get_json(
            f"/tx/{contract.funding_txid}/outspend/{contract.vout}"
        )
        if not isinstance(outspend, dict):
            raise NetworkError("Esplora outspend payload is not an object")
        if not outspend.get("spent"):
            return None

        spent_txid = outspend.get("txid")
        vin = outspend.get("vin")
        if not spent_txid or vin is None:
            # Spent but the spender is not indexed yet; treat as pending.
            raise NetworkError(
                f"Esplora reported {contract.funding_txid}:{contract.vout} spent without a spender"
            )

        spending_tx = await self._get_json(f"/tx/{spent_txid}")
        try:
            raw_witness = spending_tx["vin"][int(vin)].get("witness") or []
            witness = tuple(bytes.fromhex(item) for item in raw_witness)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise NetworkError(
                f"Esplora transaction {spent_txid} has no readable witness for input {vin}"
            ) from exc

        block_time = (outspend.get("status") or {}).get("block_time")
        timestamp = (
            datetime.fromtimestamp(int(block_time), tz=timezone.utc) if block_time else None
        )
        return SpendStatus(
            spent_txid=spent_txid,
            witness=witness,
            timestamp=timestamp,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "EsploraClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
