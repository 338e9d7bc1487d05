"""Read-only oracle descriptors per network."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import Network, Oracle


def _parse_oracle(raw: Mapping[str, Any]) -> Oracle:
    return Oracle(
        id=str(raw["id"]),
        name=str(raw.get("name") or raw["id"]),
        pubkey=str(raw.get("pubkey") or ""),
        disabled=bool(raw.get("disabled", False)),
    )


class OracleRegistry:
    """Serve oracle descriptors from an optional HTTP endpoint or the configured table."""

    def __init__(
        self,
        *,
        api_url: str | None = None,
        static_oracles: Mapping[str, Sequence[Mapping[str, Any]]] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        configured_url = api_url if api_url is not None else settings.oracle_api_url
        self.api_url = str(configured_url) if configured_url else None
        self.static_oracles = static_oracles if static_oracles is not None else settings.oracles
        self.timeout = timeout
        self._transport = transport

    def static(self, network: Network | str) -> list[Oracle]:
        entries = self.static_oracles.get(Network(network).value, [])
        return [_parse_oracle(entry) for entry in entries]

    async def fetch_oracles(self, network: Network | str) -> list[Oracle]:
        network = Network(network)
        if not self.api_url:
            return self.static(network)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.api_url, params={"network": network.value})
                response.raise_for_status()
                payload = response.json()
            items = payload.get("oracles", []) if isinstance(payload, dict) else payload
            return [_parse_oracle(item) for item in items]
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning(
                "Oracle endpoint {} unavailable for {} ({}); using configured oracles",
                self.api_url,
                network.value,
                exc,
            )
            return self.static(network)


__all__ = ["OracleRegistry"]
