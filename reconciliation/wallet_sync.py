from __future__ import annotations

import struct
from collections.abc import Callable
from datetime import datetime, timezone

from loguru import logger

from app.domain import Contract, ContractState, MissingOwnerKey, WalletContract
from app.repositories import ContractStore

from .context import SessionContext
from .wallet import WalletBridge

_MILLISECOND_THRESHOLD = 10**11


def decode_setup_timestamp(value: str | None) -> int | None:
    """Decode the 8-byte little-endian hex ``setupTimestamp`` contract parameter."""

    if not value:
        return None
    if not isinstance(value, str):
        raise ValueError(f"setupTimestamp must be a hex string, got {type(value).__name__}")
    raw = bytes.fromhex(value.removeprefix("0x"))
    if len(raw) != 8:
        raise ValueError(f"setupTimestamp must be 8 bytes, got {len(raw)}")
    return struct.unpack("<q", raw)[0]


def _timestamp_to_datetime(value: int) -> datetime:
    seconds = value / 1000 if value > _MILLISECOND_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WalletSync:
    """Adopt contracts the wallet knows about but local storage does not.

    Local storage may be ahead of the wallet (another device, a pending
    broadcast), so sync only ever adds records.
    """

    def __init__(
        self,
        session: SessionContext,
        *,
        wallet: WalletBridge,
        store: ContractStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session = session
        self._wallet = wallet
        self._store = store
        self._clock = clock

    def adopt(self, reported: WalletContract, owner_key: str) -> Contract:
        setup_timestamp: int | None = None
        raw_setup = reported.contract_params.get("setupTimestamp")
        try:
            setup_timestamp = decode_setup_timestamp(raw_setup)
        except ValueError as exc:
            logger.warning(
                "Ignoring unreadable setupTimestamp on {}:{}: {}",
                reported.txid,
                reported.vout,
                exc,
            )

        created_at = self._clock()
        if setup_timestamp is not None:
            try:
                created_at = _timestamp_to_datetime(setup_timestamp)
            except (OverflowError, OSError, ValueError):
                logger.warning(
                    "setupTimestamp {} on {}:{} is out of range",
                    setup_timestamp,
                    reported.txid,
                    reported.vout,
                )
        return Contract(
            network=self.session.network,
            owner_key=owner_key,
            funding_txid=reported.txid,
            vout=reported.vout,
            state=ContractState.UNCONFIRMED,
            collateral_asset=reported.collateral_asset,
            synthetic_asset=reported.synthetic_asset,
            collateral_amount=reported.collateral_amount,
            synthetic_amount=reported.synthetic_amount,
            ratio=reported.ratio,
            oracle_id=reported.oracle_id,
            setup_timestamp=setup_timestamp,
            covenant_script=reported.covenant_script,
            created_at=created_at,
        )

    async def sync(self) -> list[Contract]:
        try:
            owner_key = self.session.require_owner_key()
        except MissingOwnerKey:
            logger.debug("Skipping wallet sync; {} session has no owner key", self.session.network.value)
            return []

        reported = await self._wallet.get_contracts(self.session.network)
        known = {contract.identity for contract in self._store.list_all(self.session.network)}

        adopted: list[Contract] = []
        for wallet_contract in reported:
            identity = (wallet_contract.txid, wallet_contract.vout)
            if identity in known:
                continue
            adopted.append(self.adopt(wallet_contract, owner_key))
            known.add(identity)

        if adopted:
            self._store.upsert_many(adopted)
            logger.info(
                "Adopted {} wallet contract(s) on {}",
                len(adopted),
                self.session.network.value,
            )
        return adopted


__all__ = ["WalletSync", "decode_setup_timestamp"]
