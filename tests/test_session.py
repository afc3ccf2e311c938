"""Tests for credential storage, the session context and settings."""

from __future__ import annotations

import json

from collabhub.api.session import SessionContext
from collabhub.config import Settings
from collabhub.domain.bus import EventBus
from collabhub.domain.events import SessionEstablished, SessionExpired
from collabhub.domain.models import AuthSession, User
from collabhub.repos.memory import (
    DismissedKeyRepository,
    InMemoryTokenStore,
    JsonFileTokenStore,
)

_USER = User(id="u-1", email="ada@example.com", first_name="Ada", last_name="Lovelace")


def test_json_token_store_survives_a_restart(tmp_path):
    path = tmp_path / "session.json"
    JsonFileTokenStore(path).save("tok-1", _USER)

    token, user = JsonFileTokenStore(path).load()

    assert token == "tok-1"
    assert user == _USER


def test_json_token_store_ignores_garbage(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileTokenStore(path).load() == (None, None)


def test_json_token_store_ignores_malformed_user(tmp_path):
    path = tmp_path / "session.json"
    path.write_text(json.dumps({"token": "tok-1", "user": {"email": 42}}), encoding="utf-8")

    assert JsonFileTokenStore(path).load() == (None, None)
    assert not SessionContext(JsonFileTokenStore(path)).is_authenticated


def test_json_token_store_clear_removes_file(tmp_path):
    store = JsonFileTokenStore(tmp_path / "session.json")
    store.save("tok-1", _USER)
    store.clear()
    store.clear()
    assert store.load() == (None, None)


def test_session_restores_from_store():
    store = InMemoryTokenStore()
    store.save("tok-1", _USER)
    session = SessionContext(store)
    assert session.is_authenticated
    assert session.user.full_name == "Ada Lovelace"


def test_establish_and_expire_publish_events():
    bus = EventBus()
    seen: list = []
    bus.subscribe(SessionEstablished, seen.append)
    bus.subscribe(SessionExpired, seen.append)
    store = InMemoryTokenStore()
    session = SessionContext(store, bus)

    session.establish(AuthSession(user=_USER, token="tok-1"))
    session.expire()
    session.expire()

    assert [type(event) for event in seen] == [SessionEstablished, SessionExpired]
    assert store.load() == (None, None)


def test_dismissed_key_matches_only_its_revision():
    dismissed = DismissedKeyRepository()
    dismissed.dismiss("task-1", "r1")
    assert dismissed.is_dismissed("task-1", "r1")
    assert not dismissed.is_dismissed("task-1", "r2")
    dismissed.forget("task-1")
    assert not dismissed.is_dismissed("task-1", "r1")


def test_settings_defaults():
    settings = Settings()
    assert settings.api_base_url == "http://127.0.0.1:8080/api"
    assert settings.notification_interval == 300
    assert settings.unread_interval == 30


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "HUB_API_BASE_URL": "https://hub.example.com/api/",
            "HUB_REQUEST_TIMEOUT": "5",
            "HUB_LOG_LEVEL": "debug",
            "HUB_TOKEN_FILE": "/tmp/hub-session.json",
            "HUB_UNREAD_INTERVAL": "",
        }
    )
    assert settings.api_base_url == "https://hub.example.com/api"
    assert settings.request_timeout == 5.0
    assert settings.log_level == "DEBUG"
    assert str(settings.token_file) == "/tmp/hub-session.json"
    assert settings.unread_interval == 30
