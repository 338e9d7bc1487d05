"""Builders and in-memory doubles shared across the test modules."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

from app.domain import (
    CoinEvent,
    Contract,
    ContractState,
    HistoryEntry,
    Network,
    SpendStatus,
    WalletCoin,
    WalletContract,
)
from app.repositories import SqlContractStore

OWNER_KEY = "xpub6CUGRUonZSQ4TWtTMmzXdrXDtypWKiKrhko4egpiMZbpiaQL2jkwSB1icqYh2cfDfVxdx4df189oLKnC5fSwqPfgyP3hooxujYzAu3fDVmz"
SCRIPT = "5120" + "11" * 32


def make_leaf(items: int) -> bytes:
    """Leaf script decompiling into ``items`` entries: one 32-byte push plus opcodes."""

    return bytes([0x20]) + b"\x07" * 32 + bytes([0xAC]) * (items - 1)


def make_witness(items: int) -> tuple[bytes, ...]:
    return (b"\x01" * 64, make_leaf(items), b"\xc4" + b"\x02" * 32)


def make_contract(
    txid: str | None = "aa" * 32,
    *,
    vout: int = 0,
    state: ContractState = ContractState.OPEN,
    owner_key: str | None = OWNER_KEY,
    network: Network = Network.TESTNET,
    **overrides,
) -> Contract:
    params = {
        "collateral_asset": "144c654344aa716d6f3abcc1ca90e5641e4e2a7f633bc09fe3baf64585819a49",
        "synthetic_asset": "0d86b2f6a8c3b02a8c7c8836b83a081e68b7e2b4bcdfc58981fc5486f59f7518",
        "collateral_amount": 150_000,
        "synthetic_amount": 40_000,
        "ratio": 150.0,
        "oracle_id": "id0",
        "covenant_script": SCRIPT,
        "created_at": datetime(2023, 3, 1, tzinfo=timezone.utc),
    }
    params.update(overrides)
    return Contract(
        network=network,
        owner_key=owner_key,
        funding_txid=txid,
        vout=vout,
        state=state,
        **params,
    )


class StubChain:
    """In-memory chain indexer keyed by script hex and funding outpoint."""

    def __init__(self) -> None:
        self.histories: dict[str, list[HistoryEntry]] = {}
        self.outspends: dict[tuple[str, int], SpendStatus] = {}
        self.error: Exception | None = None
        self.history_calls = 0
        self.outspend_calls = 0
        self.closed = False

    async def fetch_histories(self, output_scripts: Sequence[str]) -> list[list[HistoryEntry]]:
        self.history_calls += 1
        if self.error:
            raise self.error
        return [list(self.histories.get(script, [])) for script in output_scripts]

    async def fetch_outspend(self, contract: Contract) -> SpendStatus | None:
        self.outspend_calls += 1
        if self.error:
            raise self.error
        return self.outspends.get((contract.funding_txid, contract.vout))

    async def aclose(self) -> None:
        self.closed = True


class StubWallet:
    """Wallet bridge double that records listeners and lets tests emit events."""

    def __init__(self) -> None:
        self.contracts: list[WalletContract] = []
        self.coins: list[WalletCoin] = []
        self.listeners: dict[str, tuple[str, object]] = {}
        self.error: Exception | None = None
        self._next_id = 0

    async def get_contracts(self, network: Network) -> list[WalletContract]:
        if self.error:
            raise self.error
        return list(self.contracts)

    async def get_coins(self) -> list[WalletCoin]:
        if self.error:
            raise self.error
        return list(self.coins)

    def on(self, event_type: str, listener) -> str:
        self._next_id += 1
        listener_id = f"listener-{self._next_id}"
        self.listeners[listener_id] = (event_type, listener)
        return listener_id

    def off(self, listener_id: str) -> None:
        self.listeners.pop(listener_id, None)

    def emit(self, event_type: str, coin: WalletCoin | None) -> None:
        for registered_type, listener in list(self.listeners.values()):
            if registered_type == event_type:
                listener(CoinEvent(event_type=event_type, coin=coin))


class FailingStore:
    """Store whose writes always fail, wrapping a working store for reads."""

    def __init__(self, inner: SqlContractStore, error: Exception) -> None:
        self._inner = inner
        self._error = error

    def list_contracts(self, network: Network, owner_key: str) -> list[Contract]:
        return self._inner.list_contracts(network, owner_key)

    def list_all(self, network: Network | None = None) -> list[Contract]:
        return self._inner.list_all(network)

    def upsert(self, contract: Contract) -> None:
        raise self._error

    def upsert_many(self, contracts: Iterable[Contract]) -> None:
        if list(contracts):
            raise self._error

