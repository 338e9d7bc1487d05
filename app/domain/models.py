"""Typed domain representations shared by the chain client, reconciliation, and APIs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Network(str, Enum):
    LIQUID = "liquid"
    TESTNET = "testnet"
    REGTEST = "regtest"


class ContractState(str, Enum):
    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"
    OPEN = "open"
    TOPUP = "topup"
    REDEEMED = "redeemed"
    LIQUIDATED = "liquidated"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({ContractState.REDEEMED, ContractState.LIQUIDATED})


class ActivityType(str, Enum):
    CREATION = "creation"
    TOPUP = "topup"
    REDEEM = "redeem"
    LIQUIDATION = "liquidation"


@dataclass(frozen=True, slots=True)
class Contract:
    """A collateralized synthetic-asset position.

    Instances are immutable; state changes go through
    :func:`reconciliation.state_machine.transition`, which returns a new copy.
    """

    network: Network
    owner_key: str | None
    funding_txid: str | None
    vout: int = 0
    state: ContractState = ContractState.UNCONFIRMED
    collateral_asset: str | None = None
    synthetic_asset: str | None = None
    collateral_amount: int | None = None
    synthetic_amount: int | None = None
    ratio: float | None = None
    oracle_id: str | None = None
    setup_timestamp: int | None = None
    covenant_script: str | None = None
    created_at: datetime | None = None
    confirmed_at: datetime | None = None
    closed_at: datetime | None = None

    @property
    def identity(self) -> tuple[str | None, int]:
        return (self.funding_txid, self.vout)

    @property
    def is_closed(self) -> bool:
        return self.state.is_terminal


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One transaction touching a script; ``height == 0`` means mempool."""

    txid: str
    height: int

    @property
    def confirmed(self) -> bool:
        return self.height > 0


@dataclass(frozen=True, slots=True)
class SpendStatus:
    spent_txid: str
    witness: tuple[bytes, ...]
    timestamp: datetime | None = None


@dataclass(frozen=True, slots=True)
class WalletCoin:
    txid: str
    vout: int
    account_name: str | None = None

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)


@dataclass(slots=True)
class WalletContract:
    """Contract as reported by the wallet bridge for its accounts."""

    txid: str
    vout: int
    collateral_asset: str | None = None
    synthetic_asset: str | None = None
    collateral_amount: int | None = None
    synthetic_amount: int | None = None
    ratio: float | None = None
    oracle_id: str | None = None
    covenant_script: str | None = None
    contract_params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CoinEvent:
    """Wallet push notification about a coin being added or spent."""

    event_type: str
    coin: WalletCoin | None


@dataclass(frozen=True, slots=True)
class Oracle:
    id: str
    name: str
    pubkey: str
    disabled: bool


@dataclass(frozen=True, slots=True)
class Activity:
    contract: Contract
    type: ActivityType
    created_at: datetime | None
    txid: str | None
