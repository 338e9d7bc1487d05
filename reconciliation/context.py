from __future__ import annotations

from dataclasses import dataclass

from app.domain import MissingOwnerKey, Network


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Explicit per-session state handed to the engine, wallet sync, and event gate."""

    network: Network
    owner_key: str | None
    account_id: str

    @property
    def key(self) -> tuple[Network, str | None]:
        return (self.network, self.owner_key)

    def require_owner_key(self) -> str:
        if not self.owner_key:
            raise MissingOwnerKey(f"no owner key for {self.network.value} session")
        return self.owner_key
