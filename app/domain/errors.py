"""Error taxonomy for chain queries, classification, persistence, and sessions."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for every failure raised by the reconciliation core."""


class NetworkError(ReconciliationError):
    """Raised when the chain indexer or the wallet bridge cannot be reached.

    Transient: a cycle hitting it ends without touching contract state.
    """


class ClassificationError(ReconciliationError):
    """Raised when a spending witness cannot be decoded into a leaf script."""


class StorageError(ReconciliationError):
    """Raised when the contract store fails to read or persist records."""


class MissingOwnerKey(ReconciliationError):
    """Raised when a session has no owner key yet."""


class InvalidTransition(ReconciliationError):
    """Raised when a contract is asked to move to a state it cannot reach."""

    def __init__(self, current: object, target: object) -> None:
        super().__init__(f"invalid contract transition {current} -> {target}")
        self.current = current
        self.target = target
