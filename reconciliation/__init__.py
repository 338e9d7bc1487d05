"""Contract state reconciliation: state machine, engine, wallet sync, and event gating."""

from .context import SessionContext
from .engine import CycleResult, CycleStatus, ReconciliationEngine
from .event_gate import EventGate, GateSubscription
from .state_machine import Evidence, advance, transition
from .wallet import ChainSource, WalletBridge
from .wallet_sync import WalletSync

__all__ = [
    "ChainSource",
    "CycleResult",
    "CycleStatus",
    "EventGate",
    "Evidence",
    "GateSubscription",
    "ReconciliationEngine",
    "SessionContext",
    "WalletBridge",
    "WalletSync",
    "advance",
    "transition",
]
