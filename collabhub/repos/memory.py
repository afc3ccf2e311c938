"""Client-side stores: credentials, dismissed notification keys, shown push tags."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from collabhub.domain.models import User

logger = logging.getLogger(__name__)


class InMemoryTokenStore:
    """Holds the bearer token and signed-in user for one process."""

    def __init__(self) -> None:
        self._token: str | None = None
        self._user: User | None = None

    def load(self) -> tuple[str | None, User | None]:
        return self._token, self._user

    def save(self, token: str, user: User | None) -> None:
        self._token = token
        self._user = user

    def clear(self) -> None:
        self._token = None
        self._user = None


class JsonFileTokenStore:
    """Persists the token and user to a JSON file so a session survives restarts."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> tuple[str | None, User | None]:
        if not self.path.exists():
            return None, None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, exc)
            return None, None
        if not isinstance(payload, dict):
            return None, None
        user_data = payload.get("user")
        try:
            user = User.model_validate(user_data) if isinstance(user_data, dict) else None
        except ValidationError as exc:
            logger.warning("Ignoring token file %s with a malformed user: %s", self.path, exc)
            return None, None
        return payload.get("token"), user

    def save(self, token: str, user: User | None) -> None:
        payload = {
            "token": token,
            "user": user.model_dump(mode="json", by_alias=True) if user else None,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class DismissedKeyRepository:
    """Dict-backed store of dismissed notification keys, each with the source revision.

    A key only suppresses its notification while the source record is still at
    the revision it had when it was dismissed.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def dismiss(self, key: str, revision: str) -> None:
        self._store[key] = revision

    def is_dismissed(self, key: str, revision: str) -> bool:
        return self._store.get(key) == revision

    def forget(self, key: str) -> None:
        self._store.pop(key, None)

    def keys(self) -> set[str]:
        return set(self._store)

    def clear(self) -> None:
        self._store.clear()


class ShownTagRepository:
    """Set of browser-notification tags already shown this session."""

    def __init__(self) -> None:
        self._tags: set[str] = set()

    def mark(self, tag: str) -> bool:
        """Record *tag*; returns False when it had been shown before."""
        if tag in self._tags:
            return False
        self._tags.add(tag)
        return True

    def __contains__(self, tag: str) -> bool:
        return tag in self._tags

    def clear(self) -> None:
        self._tags.clear()
