from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from app.core.config import settings
from app.domain import CoinEvent

from .context import SessionContext
from .wallet import COIN_EVENTS, WalletBridge


@dataclass(slots=True)
class GateSubscription:
    """Handle returned by :meth:`EventGate.open`; ``close()`` removes the listeners."""

    wallet: WalletBridge
    listener_ids: list[str] = field(default_factory=list)
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        for listener_id in self.listener_ids:
            self.wallet.off(listener_id)
        self.listener_ids.clear()
        self.closed = True


class EventGate:
    """Turn wallet coin notifications into reconciliation requests for one session.

    The wallet replays its backlog of coin events right after connecting, so
    events arriving within ``guard_seconds`` of :attr:`started_at` are dropped.
    """

    def __init__(
        self,
        session: SessionContext,
        *,
        wallet: WalletBridge,
        on_trigger: Callable[[], object],
        guard_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self._wallet = wallet
        self._on_trigger = on_trigger
        self.guard_seconds = settings.event_guard_seconds if guard_seconds is None else guard_seconds
        self._clock = clock
        self.started_at = clock()
        self.triggered = 0
        self.suppressed = 0
        self._subscription: GateSubscription | None = None

    def open(self) -> GateSubscription:
        if self._subscription is not None and not self._subscription.closed:
            return self._subscription
        subscription = GateSubscription(wallet=self._wallet)
        for event_type in COIN_EVENTS:
            subscription.listener_ids.append(self._wallet.on(event_type, self.handle))
        self._subscription = subscription
        logger.debug(
            "Listening for wallet coin events on account {} ({})",
            self.session.account_id,
            self.session.network.value,
        )
        return subscription

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.close()

    def qualifies(self, event: CoinEvent) -> bool:
        coin = event.coin
        return coin is not None and coin.account_name == self.session.account_id

    def in_guard_window(self) -> bool:
        return self._clock() - self.started_at < self.guard_seconds

    def handle(self, event: CoinEvent) -> None:
        if not self.qualifies(event):
            return
        if self.in_guard_window():
            self.suppressed += 1
            logger.debug("Suppressed {} during startup guard window", event.event_type)
            return
        self.triggered += 1
        logger.info(
            "Wallet {} on account {}; requesting reconciliation",
            event.event_type,
            self.session.account_id,
        )
        self._on_trigger()


__all__ = ["EventGate", "GateSubscription"]
