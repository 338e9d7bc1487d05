from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from loguru import logger

from app.core.config import settings
from app.domain import (
    ClassificationError,
    Contract,
    ContractState,
    InvalidTransition,
    MissingOwnerKey,
    NetworkError,
    StorageError,
)
from app.repositories import ContractStore
from chain.leaf import LeafKind, classify_witness

from .context import SessionContext
from .state_machine import Evidence, advance, is_confirmed
from .wallet import ChainSource, WalletBridge


class CycleStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class CycleResult:
    status: CycleStatus
    session: SessionContext
    contracts: list[Contract] = field(default_factory=list)
    changed: list[Contract] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status in {CycleStatus.COMPLETED, CycleStatus.SKIPPED}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationEngine:
    """Reconcile every contract of one ``(network, owner_key)`` session.

    A cycle reads the local contracts, gathers chain evidence for the ones that
    can still move, runs them through the state machine and writes the changed
    records as one batch. Nothing is written when the chain or the wallet is
    unreachable, or when the engine was cancelled while evidence was in flight.

    :meth:`request_cycle` is the only entry point that should be used by
    triggers (startup, wallet events, explicit reloads): requests arriving while
    a cycle runs collapse into a single follow-up cycle.
    """

    def __init__(
        self,
        session: SessionContext,
        *,
        chain: ChainSource,
        wallet: WalletBridge,
        store: ContractStore,
        concurrency: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session = session
        self._chain = chain
        self._wallet = wallet
        self._store = store
        self._concurrency = concurrency or settings.reconcile_concurrency
        self._clock = clock
        self._task: asyncio.Task[CycleResult] | None = None
        self._rerun = False
        self._cancelled = False
        self.cycles_run = 0
        self.last_result: CycleResult | None = None

    # ------------------------------------------------------------------
    # Scheduling

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def request_cycle(self) -> asyncio.Task[CycleResult] | None:
        if self._cancelled:
            logger.debug("Ignoring cycle request for closed session {}", self.session.key)
            return None
        if self.running:
            self._rerun = True
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._drain())
        return self._task

    async def _drain(self) -> CycleResult:
        while True:
            self._rerun = False
            result = await self.run_cycle()
            if not self._rerun or self._cancelled:
                return result
            logger.debug("Running coalesced follow-up cycle for {}", self.session.key)

    def cancel(self) -> None:
        self._cancelled = True
        if self.running:
            self._task.cancel()

    # ------------------------------------------------------------------
    # Cycle

    def _finish(self, result: CycleResult) -> CycleResult:
        self.last_result = result
        return result

    async def run_cycle(self) -> CycleResult:
        session = self.session
        try:
            owner_key = session.require_owner_key()
        except MissingOwnerKey:
            logger.debug("Skipping reconciliation; {} session has no owner key", session.network.value)
            return self._finish(CycleResult(status=CycleStatus.SKIPPED, session=session))

        self.cycles_run += 1
        try:
            contracts = self._store.list_contracts(session.network, owner_key)
            pending = [
                contract
                for contract in contracts
                if contract.funding_txid and not contract.is_closed
            ]
            logger.info(
                "Reconciling {} of {} contracts on {}",
                len(pending),
                len(contracts),
                session.network.value,
            )
            if pending:
                coins = await self._wallet.get_coins()
                outpoints = {coin.outpoint for coin in coins}
                updated = await self._gather_updates(pending, outpoints, self._clock())
            else:
                updated = []
        except NetworkError as exc:
            logger.warning("Reconciliation on {} aborted: {}", session.network.value, exc)
            return self._finish(
                CycleResult(status=CycleStatus.FAILED, session=session, error=exc)
            )
        except StorageError as exc:
            logger.exception("Reading contracts for {} failed", session.network.value)
            return self._finish(
                CycleResult(status=CycleStatus.FAILED, session=session, error=exc)
            )

        replacements = {
            id(old): new for old, new in zip(pending, updated) if new is not old
        }
        changed = list(replacements.values())

        if self._cancelled:
            logger.info("Discarding {} updates from cancelled session {}", len(changed), session.key)
            return self._finish(CycleResult(status=CycleStatus.CANCELLED, session=session))

        try:
            self._store.upsert_many(changed)
        except StorageError as exc:
            logger.exception("Persisting {} contract updates failed", len(changed))
            return self._finish(
                CycleResult(status=CycleStatus.FAILED, session=session, error=exc)
            )

        snapshot = [replacements.get(id(contract), contract) for contract in contracts]
        logger.info(
            "Reconciled {} contracts on {} ({} changed)",
            len(pending),
            session.network.value,
            len(changed),
        )
        return self._finish(
            CycleResult(
                status=CycleStatus.COMPLETED,
                session=session,
                contracts=snapshot,
                changed=changed,
            )
        )

    async def _gather_updates(
        self,
        pending: Sequence[Contract],
        outpoints: set[tuple[str, int]],
        now: datetime,
    ) -> list[Contract]:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(contract: Contract) -> Contract:
            async with semaphore:
                return await self._reconcile(contract, outpoints, now)

        tasks = [asyncio.create_task(bounded(contract)) for contract in pending]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _reconcile(
        self,
        contract: Contract,
        outpoints: set[tuple[str, int]],
        now: datetime,
    ) -> Contract:
        history = None
        if contract.state == ContractState.UNCONFIRMED:
            if not contract.covenant_script:
                logger.warning(
                    "Contract {}:{} has no covenant script; cannot check confirmation",
                    contract.funding_txid,
                    contract.vout,
                )
                return contract
            [history] = await self._chain.fetch_histories([contract.covenant_script])
            if not is_confirmed(history):
                return contract

        spend = await self._chain.fetch_outspend(contract)
        leaf = self._classify(contract, spend.witness) if spend is not None else None

        evidence = Evidence(
            history=history,
            spend_checked=True,
            spend=spend,
            leaf=leaf,
            has_coin=(contract.funding_txid, contract.vout) in outpoints,
        )
        try:
            return advance(contract, evidence, now=now)
        except InvalidTransition:
            logger.exception(
                "Rejected transition for contract {}:{}", contract.funding_txid, contract.vout
            )
            return contract

    @staticmethod
    def _classify(contract: Contract, witness: Sequence[bytes]) -> LeafKind:
        try:
            leaf = classify_witness(witness)
        except ClassificationError as exc:
            logger.warning(
                "Could not decode spend of {}:{}: {}", contract.funding_txid, contract.vout, exc
            )
            return LeafKind.UNRECOGNIZED
        if leaf is LeafKind.UNRECOGNIZED:
            logger.warning(
                "Spend of {}:{} used an unrecognized leaf", contract.funding_txid, contract.vout
            )
        return leaf


__all__ = ["CycleResult", "CycleStatus", "ReconciliationEngine"]
