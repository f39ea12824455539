"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files — pytest discovers this by convention.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise, connections

from app.deps import get_actor, get_current_user, get_users_client
from app.effects import get_dispatcher
from app.main import build_api
from app.ownership import OwnershipResolver

from .factories import make_admin, make_customer, make_employee, make_provider

# ---------------------------------------------------------------------------
# Default no-op collaborators — prevent real HTTP / DB calls in tests
# ---------------------------------------------------------------------------


def _noop_users_client():
    mock = MagicMock()
    mock.get_by_ids = AsyncMock(return_value=[])
    mock.get_customer_profile_id = AsyncMock(return_value=None)
    mock.get_profile_user_id = AsyncMock(return_value=None)
    return mock


def _recording_dispatcher():
    """Collects dispatched effects instead of writing them."""
    mock = MagicMock()
    mock.dispatch = AsyncMock(side_effect=lambda effects: len(effects))
    return mock


# ---------------------------------------------------------------------------
# App builder — used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(current_user, users_client=None, dispatcher=None) -> FastAPI:
    """
    Fresh FastAPI app with identity dependencies overridden to return
    `current_user` unconditionally. Role checks (require_staff etc.) still run
    against that user.

    Pass `users_client` / `dispatcher` to inject custom mocks.
    """
    app = build_api()

    async def _user():
        return current_user

    app.dependency_overrides[get_current_user] = _user
    app.dependency_overrides[get_actor] = _user

    uc = users_client if users_client is not None else _noop_users_client()
    dp = dispatcher if dispatcher is not None else _recording_dispatcher()
    app.dependency_overrides[get_users_client] = lambda: uc
    app.dependency_overrides[get_dispatcher] = lambda: dp
    app.state.dispatcher = dp

    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client():
    return TestClient(build_app(make_customer()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def employee_client():
    return TestClient(build_app(make_employee()), raise_server_exceptions=True)


@pytest.fixture()
def provider_client():
    return TestClient(build_app(make_provider()), raise_server_exceptions=True)


@pytest.fixture()
def anon_app():
    """
    Bare app with NO identity overrides.
    Use this when you want the real gateway-header deps to run so you can
    assert 400/401/403.
    """
    app = build_api()
    app.dependency_overrides[get_users_client] = _noop_users_client
    app.dependency_overrides[get_dispatcher] = _recording_dispatcher
    return app


@pytest.fixture()
def client_factory():
    def _make(current_user, users_client=None, dispatcher=None) -> TestClient:
        return TestClient(
            build_app(current_user, users_client=users_client, dispatcher=dispatcher),
            raise_server_exceptions=True,
        )

    return _make


@pytest.fixture()
def dispatched():
    """Flatten every effect list a recording dispatcher received."""

    def _collect(client: TestClient) -> list:
        dp = client.app.state.dispatcher
        return [e for call in dp.dispatch.call_args_list for e in call.args[0]]

    return _collect


@pytest.fixture()
def owners():
    """Ownership resolver over the no-op users client (no legacy profiles)."""
    return OwnershipResolver(_noop_users_client())


# ---------------------------------------------------------------------------
# Persistence: real SQLite for repository and end-to-end manager tests,
# a stand-in transaction for tests that mock every CRUD object
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": ["app.models"]})
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


@asynccontextmanager
async def _no_transaction():
    yield


@pytest.fixture()
def no_transaction():
    with patch("app.workflow.events.in_transaction", new=_no_transaction):
        yield
