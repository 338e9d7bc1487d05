"""Domain models and errors for contract reconciliation."""

from .errors import (
    ClassificationError,
    InvalidTransition,
    MissingOwnerKey,
    NetworkError,
    ReconciliationError,
    StorageError,
)
from .models import (
    TERMINAL_STATES,
    Activity,
    ActivityType,
    CoinEvent,
    Contract,
    ContractState,
    HistoryEntry,
    Network,
    Oracle,
    SpendStatus,
    WalletCoin,
    WalletContract,
)

__all__ = [
    "TERMINAL_STATES",
    "Activity",
    "ActivityType",
    "ClassificationError",
    "CoinEvent",
    "Contract",
    "ContractState",
    "HistoryEntry",
    "InvalidTransition",
    "MissingOwnerKey",
    "Network",
    "NetworkError",
    "Oracle",
    "ReconciliationError",
    "SpendStatus",
    "StorageError",
    "WalletCoin",
    "WalletContract",
]
