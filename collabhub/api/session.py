"""Session context: the one place the bearer token and signed-in user live."""

from __future__ import annotations

import logging
from typing import Protocol

from collabhub.domain.bus import EventBus
from collabhub.domain.events import SessionEstablished, SessionExpired
from collabhub.domain.models import AuthSession, User

logger = logging.getLogger(__name__)


class TokenStore(Protocol):
    def load(self) -> tuple[str | None, User | None]: ...

    def save(self, token: str, user: User | None) -> None: ...

    def clear(self) -> None: ...


class SessionContext:
    """Holds the current credential; restored from *store* on construction.

    Views and the API client share one instance instead of reading a global.
    """

    def __init__(self, store: TokenStore, bus: EventBus | None = None) -> None:
        self._store = store
        self._bus = bus
        self.token, self.user = store.load()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def establish(self, session: AuthSession) -> None:
        self.token = session.token
        self.user = session.user
        self._store.save(session.token, session.user)
        logger.info("Signed in as %s", session.user.email)
        if self._bus is not None:
            self._bus.publish(SessionEstablished(user_id=session.user.id))

    def refresh(self, token: str) -> None:
        self.token = token
        self._store.save(token, self.user)

    def update_user(self, user: User) -> None:
        self.user = user
        if self.token is not None:
            self._store.save(self.token, user)

    def clear(self) -> None:
        self.token = None
        self.user = None
        self._store.clear()

    def expire(self, reason: str = "Session expired. Please log in again.") -> None:
        """Drop the rejected credential and tell subscribers the session is gone."""
        if not self.is_authenticated:
            return
        self.clear()
        logger.warning("Session expired: %s", reason)
        if self._bus is not None:
            self._bus.publish(SessionExpired(reason=reason))
