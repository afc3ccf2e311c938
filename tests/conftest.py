"""Shared fixtures: a fake backend mounted in-process and a hub wired against it."""

from __future__ import annotations

import httpx
import pytest

from collabhub.api.client import HubApiClient
from collabhub.api.session import SessionContext
from collabhub.config import Settings
from collabhub.domain.bus import EventBus
from collabhub.domain.models import User
from collabhub.main import build_hub
from collabhub.repos.memory import InMemoryTokenStore

from fake_backend import TOKEN, USER, FakeBackend, create_app

BASE_URL = "http://hub.test/api"


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
async def http_client(backend):
    transport = httpx.ASGITransport(app=create_app(backend))
    async with httpx.AsyncClient(transport=transport, base_url="http://hub.test") as client:
        yield client


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def token_store() -> InMemoryTokenStore:
    """A store that already holds a valid session."""
    store = InMemoryTokenStore()
    store.save(TOKEN, User.model_validate(USER))
    return store


@pytest.fixture()
def session(token_store, bus) -> SessionContext:
    return SessionContext(token_store, bus)


@pytest.fixture()
def api(session, http_client) -> HubApiClient:
    return HubApiClient(session, base_url=BASE_URL, http_client=http_client)


@pytest.fixture()
async def hub(http_client, token_store):
    hub = build_hub(
        Settings(api_base_url=BASE_URL),
        http_client=http_client,
        token_store=token_store,
        configure_logging=False,
    )
    yield hub
    await hub.aclose()
