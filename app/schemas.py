from datetime import datetime

from pydantic import BaseModel, Field

from app.domain import ActivityType, ContractState, Network


class Contract(BaseModel):
    network: Network
    owner_key: str | None = None
    funding_txid: str | None = None
    vout: int = 0
    state: ContractState
    collateral_asset: str | None = None
    synthetic_asset: str | None = None
    collateral_amount: int | None = None
    synthetic_amount: int | None = None
    ratio: float | None = None
    oracle_id: str | None = None
    setup_timestamp: int | None = None
    created_at: datetime | None = None
    confirmed_at: datetime | None = None
    closed_at: datetime | None = None

    model_config = {"from_attributes": True}


class ContractList(BaseModel):
    total: int
    items: list[Contract]


class Activity(BaseModel):
    type: ActivityType
    created_at: datetime | None = None
    txid: str | None = None
    contract: Contract

    model_config = {"from_attributes": True}


class ActivityList(BaseModel):
    total: int
    items: list[Activity]


class Oracle(BaseModel):
    id: str
    name: str
    pubkey: str
    disabled: bool

    model_config = {"from_attributes": True}


class OracleList(BaseModel):
    network: Network
    items: list[Oracle] = Field(default_factory=list)
