"""Boundary contracts for the wallet bridge and the chain indexer."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from app.domain import CoinEvent, Contract, HistoryEntry, Network, SpendStatus, WalletCoin, WalletContract

NEW_UTXO = "NEW_UTXO"
SPENT_UTXO = "SPENT_UTXO"
COIN_EVENTS = (NEW_UTXO, SPENT_UTXO)

CoinListener = Callable[[CoinEvent], Awaitable[None] | None]


class WalletBridge(Protocol):
    """Interface implemented by connected wallet adapters.

    Every awaitable may raise :class:`app.domain.NetworkError` when the wallet
    cannot be reached.
    """

    async def get_contracts(self, network: Network) -> Sequence[WalletContract]:
        """Return contracts the wallet knows about for ``network``."""

    async def get_coins(self) -> Sequence[WalletCoin]:
        """Return the coins currently held by the tracked account."""

    def on(self, event_type: str, listener: CoinListener) -> str:
        """Register ``listener`` for ``event_type`` and return its listener id."""

    def off(self, listener_id: str) -> None:
        """Remove a listener previously registered with :meth:`on`."""


class ChainSource(Protocol):
    """Query surface of the chain indexer used by the engine."""

    async def fetch_histories(
        self, output_scripts: Sequence[bytes | str]
    ) -> list[list[HistoryEntry]]:
        """Return one arrival-ordered history per script."""

    async def fetch_outspend(self, contract: Contract) -> SpendStatus | None:
        """Return how the funding output was spent, or ``None`` if unspent."""


__all__ = [
    "COIN_EVENTS",
    "ChainSource",
    "CoinListener",
    "NEW_UTXO",
    "SPENT_UTXO",
    "WalletBridge",
]
