from __future__ import annotations

import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from app.core.config import Settings
from app.db import _build_db_components, init_db, session_scope
from app.domain import NetworkError
from app.repositories import SqlContractStore

from helpers import StubChain, StubWallet


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'contracts.db'}",
        reconcile_concurrency=2,
        event_guard_seconds=30,
        wallet_account_id="fuji",
        oracle_api_url=None,
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = _build_db_components(f"sqlite:///{tmp_path/'contracts.db'}")
    init_db(bind=engine)
    yield lambda: session_scope(factory)
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlContractStore:
    return SqlContractStore(session_factory=session_factory)


@pytest.fixture
def chain() -> StubChain:
    return StubChain()


@pytest.fixture
def wallet() -> StubWallet:
    return StubWallet()


@pytest.fixture
def network_error() -> NetworkError:
    return NetworkError("indexer unreachable")
