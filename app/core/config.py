from functools import lru_cache
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


NETWORKS = ("liquid", "testnet", "regtest")


def _ensure_sqlalchemy_postgres_scheme(value: str) -> str:
    if not value.lower().startswith("postgres"):
        return value

    parsed = urlparse(value)
    scheme = parsed.scheme.lower()

    if scheme in {"postgres", "postgresql"}:
        scheme = "postgresql+psycopg"

    query_params = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query_params.setdefault("sslmode", "prefer")
    new_query = urlencode(query_params, doseq=True)

    return urlunparse(parsed._replace(scheme=scheme, query=new_query))


def _default_esplora_urls() -> dict[str, str]:
    return {
        "liquid": "https://blockstream.info/liquid/api",
        "testnet": "https://blockstream.info/liquidtestnet/api",
        "regtest": "http://localhost:3001",
    }


def _default_oracles() -> dict[str, list[dict[str, Any]]]:
    fuji_money = {"id": "id0", "name": "Fuji.Money", "disabled": False}
    bitfinex = {"id": "id1", "name": "Bitfinex", "disabled": True}
    blockstream = {"id": "id2", "name": "Blockstream", "disabled": True}
    return {
        "liquid": [
            {**fuji_money, "pubkey": ""},
            {**bitfinex, "pubkey": ""},
            {**blockstream, "pubkey": ""},
        ],
        "testnet": [
            {
                **fuji_money,
                "pubkey": "0xc304c3b5805eecff054c319c545dc6ac2ad44eb70f79dd9570e284c5a62c0f9e",
            },
            {**bitfinex, "pubkey": ""},
            {**blockstream, "pubkey": ""},
        ],
        "regtest": [
            {**fuji_money, "pubkey": ""},
            {**bitfinex, "pubkey": ""},
            {**blockstream, "pubkey": ""},
        ],
    }


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    debug: bool = Field(False, description="Enable FastAPI debug mode")
    database_url: AnyUrl | str = Field(
        default="sqlite:///./data/contracts.db",
        description="SQLAlchemy compatible database URL for the contract store",
    )
    esplora_urls: dict[str, str] = Field(
        default_factory=_default_esplora_urls,
        description="Esplora REST base URL keyed by network",
    )
    chain_request_timeout: float = Field(
        default=10.0,
        description="Timeout in seconds for a single chain indexer request",
        gt=0,
    )
    reconcile_concurrency: int = Field(
        default=4,
        description="Maximum number of contracts whose chain evidence is fetched concurrently",
        ge=1,
    )
    event_guard_seconds: float = Field(
        default=30.0,
        description="Seconds after session start during which wallet events are ignored",
        ge=0,
    )
    wallet_account_id: str = Field(
        default="fuji",
        description="Wallet account name whose coin events trigger reconciliation",
    )
    oracle_api_url: AnyUrl | str | None = Field(
        default=None,
        description="Optional endpoint serving oracle descriptors; falls back to the static table",
    )
    oracles: dict[str, list[dict[str, Any]]] = Field(
        default_factory=_default_oracles,
        description="Static oracle descriptors keyed by network",
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_url(cls, value: Any) -> Any:
        if value is None or not isinstance(value, str):
            return value
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @field_validator("esplora_urls", "oracles")
    @classmethod
    def _validate_network_keys(cls, value: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(value) - set(NETWORKS))
        if unknown:
            raise ValueError(
                f"unknown network(s) {', '.join(unknown)}; expected one of {', '.join(NETWORKS)}"
            )
        return value

    @field_validator("esplora_urls")
    @classmethod
    def _strip_trailing_slashes(cls, value: dict[str, str]) -> dict[str, str]:
        return {network: url.rstrip("/") for network, url in value.items()}

    def esplora_url(self, network: str) -> str:
        try:
            return self.esplora_urls[network]
        except KeyError as exc:
            raise ValueError(f"No Esplora URL configured for network '{network}'") from exc

    @property
    def resolved_database_url(self) -> str:
        return _ensure_sqlalchemy_postgres_scheme(str(self.database_url))


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
