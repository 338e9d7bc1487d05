"""Transactional contract store used by reconciliation and wallet sync."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from typing import Protocol, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import session_scope
from app.domain import Contract, Network, StorageError

from .contract_repository import ContractRepository

T = TypeVar("T")


class ContractStore(Protocol):
    """Capability consumed by the engine; the backing format is not its concern."""

    def list_contracts(self, network: Network, owner_key: str) -> list[Contract]:
        """Return contracts owned by ``owner_key`` on ``network``."""

    def list_all(self, network: Network | None = None) -> list[Contract]:
        """Return every stored contract, optionally restricted to one network."""

    def upsert(self, contract: Contract) -> None:
        """Insert or update a single contract."""

    def upsert_many(self, contracts: Iterable[Contract]) -> None:
        """Insert or update a batch; either every record lands or none does."""


class SqlContractStore:
    """:class:`ContractStore` backed by SQLAlchemy, one transaction per call."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
    ) -> None:
        self._session_factory = session_factory

    def _run(self, operation: Callable[[ContractRepository], T]) -> T:
        try:
            with self._session_factory() as session:
                return operation(ContractRepository(session))
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def list_contracts(self, network: Network, owner_key: str) -> list[Contract]:
        return self._run(lambda repo: repo.list_contracts(network, owner_key))

    def list_all(self, network: Network | None = None) -> list[Contract]:
        return self._run(lambda repo: repo.list_all(network))

    def upsert(self, contract: Contract) -> None:
        self._run(lambda repo: repo.upsert_contract(contract))

    def upsert_many(self, contracts: Iterable[Contract]) -> None:
        batch = list(contracts)
        if not batch:
            return
        self._run(lambda repo: repo.upsert_contracts(batch))
