from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base
from .domain.models import ContractState


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContractRecord(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        UniqueConstraint("network", "funding_txid", "vout", name="uq_contracts_identity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    network: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    owner_key: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    funding_txid: Mapped[str | None] = mapped_column(String(64), nullable=True)
    vout: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    state: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ContractState.UNCONFIRMED.value
    )

    collateral_asset: Mapped[str | None] = mapped_column(String(64), nullable=True)
    synthetic_asset: Mapped[str | None] = mapped_column(String(64), nullable=True)
    collateral_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    synthetic_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    ratio: Mapped[float | None] = mapped_column(Float, nullable=True)
    oracle_id: Mapped[str | None] = mapped_column(String, nullable=True)
    setup_timestamp: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    covenant_script: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
