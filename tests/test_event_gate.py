from __future__ import annotations

from app.domain import Network, WalletCoin
from reconciliation.context import SessionContext
from reconciliation.event_gate import EventGate
from reconciliation.wallet import NEW_UTXO, SPENT_UTXO

SESSION = SessionContext(network=Network.TESTNET, owner_key="xpub-test", account_id="fuji")


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _gate(wallet, clock, triggers: list[int], guard_seconds: float = 30) -> EventGate:
    return EventGate(
        SESSION,
        wallet=wallet,
        on_trigger=lambda: triggers.append(1),
        guard_seconds=guard_seconds,
        clock=clock,
    )


def test_events_inside_guard_window_are_suppressed(wallet):
    clock, triggers = FakeClock(), []
    gate = _gate(wallet, clock, triggers)
    gate.open()

    clock.now += 29.9
    wallet.emit(NEW_UTXO, WalletCoin("01" * 32, 0, "fuji"))

    assert triggers == []
    assert gate.suppressed == 1


def test_qualifying_events_after_guard_window_trigger(wallet):
    clock, triggers = FakeClock(), []
    gate = _gate(wallet, clock, triggers)
    gate.open()

    clock.now += 30
    wallet.emit(NEW_UTXO, WalletCoin("01" * 32, 0, "fuji"))
    wallet.emit(SPENT_UTXO, WalletCoin("01" * 32, 0, "fuji"))

    assert len(triggers) == 2
    assert gate.triggered == 2


def test_events_for_other_accounts_are_ignored(wallet):
    clock, triggers = FakeClock(), []
    gate = _gate(wallet, clock, triggers)
    gate.open()

    clock.now += 60
    wallet.emit(NEW_UTXO, WalletCoin("01" * 32, 0, "mainAccount"))
    wallet.emit(NEW_UTXO, None)

    assert triggers == []
    assert gate.suppressed == 0


def test_guard_window_is_per_gate_instance(wallet):
    clock, old_triggers, new_triggers = FakeClock(), [], []
    old_gate = _gate(wallet, clock, old_triggers)
    old_gate.open()
    clock.now += 100
    new_gate = _gate(wallet, clock, new_triggers)
    new_gate.open()

    wallet.emit(NEW_UTXO, WalletCoin("01" * 32, 0, "fuji"))

    assert old_triggers == [1]
    assert new_triggers == []


def test_close_removes_listeners(wallet):
    clock, triggers = FakeClock(), []
    gate = _gate(wallet, clock, triggers, guard_seconds=0)
    subscription = gate.open()
    assert len(wallet.listeners) == 2

    subscription.close()
    wallet.emit(NEW_UTXO, WalletCoin("01" * 32, 0, "fuji"))

    assert wallet.listeners == {}
    assert triggers == []
    assert subscription.closed


def test_open_is_idempotent_while_subscribed(wallet):
    gate = _gate(wallet, FakeClock(), [])

    assert gate.open() is gate.open()
    assert len(wallet.listeners) == 2
