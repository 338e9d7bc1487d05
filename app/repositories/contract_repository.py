"""Contract-focused data access helpers."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import asc, select
from sqlalchemy.orm import Session

from app.domain import Contract, ContractState, Network
from app.models import ContractRecord


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def to_domain(record: ContractRecord) -> Contract:
    return Contract(
        network=Network(record.network),
        owner_key=record.owner_key,
        funding_txid=record.funding_txid,
        vout=record.vout,
        state=ContractState(record.state),
        collateral_asset=record.collateral_asset,
        synthetic_asset=record.synthetic_asset,
        collateral_amount=record.collateral_amount,
        synthetic_amount=record.synthetic_amount,
        ratio=record.ratio,
        oracle_id=record.oracle_id,
        setup_timestamp=record.setup_timestamp,
        covenant_script=record.covenant_script,
        created_at=_as_utc(record.created_at),
        confirmed_at=_as_utc(record.confirmed_at),
        closed_at=_as_utc(record.closed_at),
    )


class ContractRepository:
    """Encapsulate all contract persistence concerns for one session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def upsert_contract(self, contract: Contract) -> ContractRecord:
        existing = None
        if contract.funding_txid:
            existing = self._find(contract.network, contract.funding_txid, contract.vout)
        if existing is None:
            existing = self._find_draft(contract.network, contract.covenant_script)
            if existing is not None and contract.funding_txid:
                existing.funding_txid = contract.funding_txid
                existing.vout = contract.vout

        if existing is None:
            existing = ContractRecord(
                network=contract.network.value,
                owner_key=contract.owner_key,
                funding_txid=contract.funding_txid,
                vout=contract.vout,
                state=contract.state.value,
                collateral_asset=contract.collateral_asset,
                synthetic_asset=contract.synthetic_asset,
                collateral_amount=contract.collateral_amount,
                synthetic_amount=contract.synthetic_amount,
                ratio=contract.ratio,
                oracle_id=contract.oracle_id,
                setup_timestamp=contract.setup_timestamp,
                covenant_script=contract.covenant_script,
                created_at=contract.created_at,
                confirmed_at=contract.confirmed_at,
                closed_at=contract.closed_at,
            )
            self._session.add(existing)
            return existing

        # Position parameters are fixed at creation; only lifecycle fields move.
        stored_state = ContractState(existing.state)
        if stored_state.is_terminal and contract.state != stored_state:
            logger.warning(
                "Refusing to move stored contract {}:{} out of terminal state {} (got {})",
                existing.funding_txid,
                existing.vout,
                stored_state.value,
                contract.state.value,
            )
            return existing

        existing.state = contract.state.value
        if existing.owner_key is None:
            existing.owner_key = contract.owner_key
        if existing.confirmed_at is None and contract.confirmed_at is not None:
            existing.confirmed_at = contract.confirmed_at
        if existing.closed_at is None and contract.closed_at is not None:
            existing.closed_at = contract.closed_at
        return existing

    def upsert_contracts(self, contracts: Iterable[Contract]) -> None:
        for contract in contracts:
            self.upsert_contract(contract)

    # ------------------------------------------------------------------
    # Queries

    def _find(self, network: Network, funding_txid: str, vout: int) -> ContractRecord | None:
        query = select(ContractRecord).where(
            ContractRecord.network == network.value,
            ContractRecord.funding_txid == funding_txid,
            ContractRecord.vout == vout,
        )
        return self._session.execute(query).scalars().first()

    def _find_draft(self, network: Network, covenant_script: str | None) -> ContractRecord | None:
        """Unfunded rows have no txid, so they are matched on their covenant script."""

        if not covenant_script:
            return None
        query = select(ContractRecord).where(
            ContractRecord.network == network.value,
            ContractRecord.funding_txid.is_(None),
            ContractRecord.covenant_script == covenant_script,
        )
        return self._session.execute(query).scalars().first()

    def list_contracts(self, network: Network, owner_key: str) -> list[Contract]:
        query = (
            select(ContractRecord)
            .where(
                ContractRecord.network == network.value,
                ContractRecord.owner_key == owner_key,
            )
            .order_by(asc(ContractRecord.id))
        )
        return [to_domain(record) for record in self._session.execute(query).scalars()]

    def list_all(self, network: Network | None = None) -> list[Contract]:
        query = select(ContractRecord).order_by(asc(ContractRecord.id))
        if network is not None:
            query = query.where(ContractRecord.network == network.value)
        return [to_domain(record) for record in self._session.execute(query).scalars()]
