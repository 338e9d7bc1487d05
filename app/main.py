from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query

from . import schemas
from .core.config import settings
from .db import init_db
from .domain import ContractState, Network, StorageError
from .repositories import ContractStore, SqlContractStore
from .services.activities import build_activities
from .services.oracle_registry import OracleRegistry

app = FastAPI(title="Contract Reconciler API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create contract tables when the API boots."""

    init_db()


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


def _contract_store() -> ContractStore:
    return SqlContractStore()


def _oracle_registry() -> OracleRegistry:
    return OracleRegistry()


def _session_contracts(store: ContractStore, network: Network, owner_key: str):
    try:
        return store.list_contracts(network, owner_key)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail="Contract store unavailable") from exc


@app.get("/contracts", response_model=schemas.ContractList, tags=["contracts"])
def list_contracts(
    *,
    network: Annotated[Network, Query(description="Chain environment")],
    owner_key: Annotated[str, Query(description="Extended public key of the wallet account")],
    state: Annotated[ContractState | None, Query(description="Only return contracts in this state")] = None,
    store: ContractStore = Depends(_contract_store),
):
    """List stored contracts for one wallet account on one network."""

    contracts = _session_contracts(store, network, owner_key)
    if state is not None:
        contracts = [contract for contract in contracts if contract.state == state]
    return schemas.ContractList(
        total=len(contracts),
        items=[schemas.Contract.model_validate(contract) for contract in contracts],
    )


@app.get("/activities", response_model=schemas.ActivityList, tags=["contracts"])
def list_activities(
    *,
    network: Annotated[Network, Query(description="Chain environment")],
    owner_key: Annotated[str, Query(description="Extended public key of the wallet account")],
    store: ContractStore = Depends(_contract_store),
):
    """Return the lifecycle activity feed derived from stored contracts."""

    activities = build_activities(_session_contracts(store, network, owner_key))
    return schemas.ActivityList(
        total=len(activities),
        items=[schemas.Activity.model_validate(activity) for activity in activities],
    )


@app.get("/oracles/{network}", response_model=schemas.OracleList, tags=["oracles"])
async def list_oracles(network: Network, registry: OracleRegistry = Depends(_oracle_registry)):
    """Return oracle descriptors available on ``network``."""

    oracles = await registry.fetch_oracles(network)
    return schemas.OracleList(
        network=network,
        items=[schemas.Oracle.model_validate(oracle) for oracle in oracles],
    )
