"""Consumer-facing contract state for the active wallet session."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from loguru import logger

from app.core.config import settings
from app.domain import Activity, Contract, ContractState, MissingOwnerKey, Network, NetworkError, Oracle, StorageError
from app.repositories import ContractStore
from chain.client import EsploraClient
from reconciliation.context import SessionContext
from reconciliation.engine import CycleResult, CycleStatus, ReconciliationEngine
from reconciliation.event_gate import EventGate
from reconciliation.wallet import ChainSource, WalletBridge
from reconciliation.wallet_sync import WalletSync

from .activities import build_activities
from .oracle_registry import OracleRegistry


class ContractsService:
    """Own one ``(network, owner_key)`` session and expose its reconciled view.

    ``contracts``, ``activities``, ``oracles`` and ``loading`` always describe
    the current session; results from a session that has since been replaced
    are dropped.
    """

    def __init__(
        self,
        *,
        wallet: WalletBridge,
        store: ContractStore,
        oracle_registry: OracleRegistry | None = None,
        chain_factory: Callable[[Network], ChainSource] = EsploraClient,
        account_id: str | None = None,
        guard_seconds: float | None = None,
    ) -> None:
        self._wallet = wallet
        self._store = store
        self._oracle_registry = oracle_registry or OracleRegistry()
        self._chain_factory = chain_factory
        self._account_id = account_id or settings.wallet_account_id
        self._guard_seconds = guard_seconds

        self.contracts: list[Contract] = []
        self.activities: list[Activity] = []
        self.oracles: list[Oracle] = []
        self.loading = True
        self.new_contract: Contract | None = None
        self.old_contract: Contract | None = None

        self._session: SessionContext | None = None
        self._chain: ChainSource | None = None
        self._engine: ReconciliationEngine | None = None
        self._gate: EventGate | None = None
        self._reload_tasks: set[asyncio.Task] = set()

    @property
    def session(self) -> SessionContext | None:
        return self._session

    @property
    def engine(self) -> ReconciliationEngine | None:
        return self._engine

    @property
    def gate(self) -> EventGate | None:
        return self._gate

    # ------------------------------------------------------------------
    # Session lifecycle

    async def connect(self, network: Network | str, owner_key: str | None) -> None:
        """Start a session, replacing the current one if network or owner changed."""

        network = Network(network)
        if self._session is not None and self._session.key == (network, owner_key):
            return
        await self.disconnect()

        session = SessionContext(network=network, owner_key=owner_key, account_id=self._account_id)
        chain = self._chain_factory(network)
        self._session = session
        self._chain = chain
        self._engine = ReconciliationEngine(
            session, chain=chain, wallet=self._wallet, store=self._store
        )
        self.contracts = []
        self.activities = []
        logger.info("Contracts session started on {}", network.value)

        if owner_key:
            self._gate = EventGate(
                session,
                wallet=self._wallet,
                on_trigger=self._schedule_reload,
                guard_seconds=self._guard_seconds,
            )
            self._gate.open()

        # A newer connect may replace this session while we are suspended.
        await self.sync_wallet()
        if self._session is not session:
            return
        oracles = await self._oracle_registry.fetch_oracles(network)
        if self._session is not session:
            return
        self.oracles = oracles
        await self.reload_contracts()

    async def disconnect(self) -> None:
        if self._gate is not None:
            self._gate.close()
        if self._engine is not None:
            self._engine.cancel()
        chain = self._chain
        self._session = None
        self._chain = None
        self._engine = None
        self._gate = None
        aclose = getattr(chain, "aclose", None)
        if aclose is not None:
            await aclose()

    # ------------------------------------------------------------------
    # Reconciliation

    def _schedule_reload(self) -> None:
        task = asyncio.get_running_loop().create_task(self.reload_contracts())
        self._reload_tasks.add(task)
        task.add_done_callback(self._reload_tasks.discard)

    async def reload_contracts(self) -> CycleResult | None:
        engine = self._engine
        if engine is None:
            return None

        self.loading = True
        try:
            task = engine.request_cycle()
            if task is None:
                return None
            await asyncio.wait({task})
            if task.cancelled():
                return None
            result = task.result()
            if engine is self._engine and result.status is CycleStatus.COMPLETED:
                self.contracts = result.contracts
                self.activities = build_activities(result.contracts)
            return result
        finally:
            if engine is self._engine or self._engine is None:
                self.loading = False

    async def sync_wallet(self) -> list[Contract]:
        session = self._session
        if session is None:
            return []
        try:
            return await WalletSync(session, wallet=self._wallet, store=self._store).sync()
        except NetworkError as exc:
            logger.warning("Wallet sync on {} failed: {}", session.network.value, exc)
        except StorageError:
            logger.exception("Storing adopted wallet contracts on {} failed", session.network.value)
        return []

    # ------------------------------------------------------------------
    # Local contracts and selection

    async def create_contract(self, contract: Contract) -> Contract:
        """Persist a contract opened from this session, then reconcile."""

        session = self._session
        if session is None:
            raise MissingOwnerKey("no active contracts session")
        owner_key = session.require_owner_key()
        created = replace(
            contract,
            network=session.network,
            owner_key=owner_key,
            state=ContractState.UNCONFIRMED,
            created_at=contract.created_at or datetime.now(timezone.utc),
            confirmed_at=None,
            closed_at=None,
        )
        self._store.upsert(created)
        await self.reload_contracts()
        return created

    def set_new_contract(self, contract: Contract | None) -> None:
        self.new_contract = contract

    def set_old_contract(self, contract: Contract | None) -> None:
        self.old_contract = contract

    def reset_selection(self) -> None:
        self.new_contract = None
        self.old_contract = None


__all__ = ["ContractsService"]
