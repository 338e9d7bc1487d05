"""Pure lifecycle transitions for contracts.

Every function here is synchronous and side-effect free: it takes a contract
plus evidence and returns either the same instance (nothing changed) or a new
copy in the next state. Callers rely on identity (``result is contract``) to
skip redundant writes.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime

from app.domain import Contract, ContractState, HistoryEntry, InvalidTransition, SpendStatus
from chain.leaf import LeafKind

ALLOWED_TRANSITIONS: dict[ContractState, frozenset[ContractState]] = {
    ContractState.UNCONFIRMED: frozenset({ContractState.CONFIRMED}),
    ContractState.CONFIRMED: frozenset(
        {
            ContractState.OPEN,
            ContractState.TOPUP,
            ContractState.REDEEMED,
            ContractState.LIQUIDATED,
            ContractState.UNKNOWN,
        }
    ),
    ContractState.OPEN: frozenset(
        {
            ContractState.TOPUP,
            ContractState.REDEEMED,
            ContractState.LIQUIDATED,
            ContractState.UNKNOWN,
        }
    ),
    ContractState.TOPUP: frozenset(
        {
            ContractState.OPEN,
            ContractState.REDEEMED,
            ContractState.LIQUIDATED,
            ContractState.UNKNOWN,
        }
    ),
    ContractState.UNKNOWN: frozenset(
        {
            ContractState.OPEN,
            ContractState.TOPUP,
            ContractState.REDEEMED,
            ContractState.LIQUIDATED,
        }
    ),
    ContractState.REDEEMED: frozenset(),
    ContractState.LIQUIDATED: frozenset(),
}

LEAF_OUTCOMES: dict[LeafKind, ContractState] = {
    LeafKind.LIQUIDATE: ContractState.LIQUIDATED,
    LeafKind.REDEEM: ContractState.REDEEMED,
    LeafKind.TOPUP: ContractState.TOPUP,
    LeafKind.UNRECOGNIZED: ContractState.UNKNOWN,
}

# Kept as-is when the output is unspent and missing from the coin set.
_SPENT_PENDING_STATES = frozenset({ContractState.REDEEMED, ContractState.TOPUP})


@dataclass(frozen=True, slots=True)
class Evidence:
    """What one cycle learned about a contract.

    ``history`` is ``None`` when it was not queried. ``spend_checked`` tells
    an unspent output (``spend is None``) apart from a spend query that never
    happened.
    """

    history: Sequence[HistoryEntry] | None = None
    spend_checked: bool = False
    spend: SpendStatus | None = None
    leaf: LeafKind | None = None
    has_coin: bool = False


def can_transition(current: ContractState, target: ContractState) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def transition(contract: Contract, target: ContractState, *, at: datetime | None = None) -> Contract:
    """Move ``contract`` to ``target``, stamping lifecycle timestamps once."""

    if target == contract.state:
        return contract
    if not can_transition(contract.state, target):
        raise InvalidTransition(contract.state.value, target.value)

    changes: dict[str, object] = {"state": target}
    if target == ContractState.CONFIRMED and contract.confirmed_at is None:
        changes["confirmed_at"] = at
    if target.is_terminal and contract.closed_at is None:
        changes["closed_at"] = at
    return replace(contract, **changes)


def is_confirmed(history: Sequence[HistoryEntry] | None) -> bool:
    # Empty history and mempool-only history both count as unconfirmed.
    return bool(history) and any(entry.confirmed for entry in history)


def advance(contract: Contract, evidence: Evidence, *, now: datetime) -> Contract:
    if contract.state.is_terminal:
        return contract

    if contract.state == ContractState.UNCONFIRMED:
        if not is_confirmed(evidence.history):
            return contract
        contract = transition(contract, ContractState.CONFIRMED, at=now)

    if not evidence.spend_checked:
        return contract

    if evidence.spend is not None:
        target = LEAF_OUTCOMES[evidence.leaf or LeafKind.UNRECOGNIZED]
        return transition(contract, target, at=evidence.spend.timestamp or now)

    if evidence.has_coin:
        return transition(contract, ContractState.OPEN)
    if contract.state in _SPENT_PENDING_STATES:
        return contract
    return transition(contract, ContractState.UNKNOWN)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "LEAF_OUTCOMES",
    "Evidence",
    "advance",
    "can_transition",
    "is_confirmed",
    "transition",
]
