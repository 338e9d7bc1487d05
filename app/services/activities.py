"""Derive the display-only activity feed from contract records."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from app.domain import Activity, ActivityType, Contract, ContractState

_CLOSING_ACTIVITY = {
    ContractState.REDEEMED: ActivityType.REDEEM,
    ContractState.LIQUIDATED: ActivityType.LIQUIDATION,
}

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def contract_activities(contract: Contract) -> list[Activity]:
    activities = [
        Activity(
            contract=contract,
            type=ActivityType.CREATION,
            created_at=contract.created_at,
            txid=contract.funding_txid,
        )
    ]
    # Topup spends carry no timestamp of their own.
    if contract.state == ContractState.TOPUP:
        activities.append(
            Activity(
                contract=contract,
                type=ActivityType.TOPUP,
                created_at=None,
                txid=contract.funding_txid,
            )
        )
    closing = _CLOSING_ACTIVITY.get(contract.state)
    if closing is not None:
        activities.append(
            Activity(
                contract=contract,
                type=closing,
                created_at=contract.closed_at,
                txid=contract.funding_txid,
            )
        )
    return activities


def build_activities(contracts: Iterable[Contract]) -> list[Activity]:
    """Return every activity for ``contracts``, newest first."""

    activities = [activity for contract in contracts for activity in contract_activities(contract)]
    activities.sort(key=lambda activity: activity.created_at or _EPOCH, reverse=True)
    return activities


__all__ = ["build_activities", "contract_activities"]
