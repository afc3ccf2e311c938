"""Normalisation of envelope ``data`` payloads into domain models.

Every response shape the client understands is picked apart here and nowhere
else; anything that does not fit raises ``UnexpectedResponseError``.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from collabhub.domain.models import AuthSession, TaskStatus
from collabhub.errors import UnexpectedResponseError

M = TypeVar("M", bound=BaseModel)


def field(data: Any, key: str) -> Any:
    if not isinstance(data, dict) or key not in data:
        raise UnexpectedResponseError(f"Expected {key!r} in response data")
    return data[key]


def validate(model: type[M], value: Any) -> M:
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        raise UnexpectedResponseError(
            f"Malformed {model.__name__} in response: {exc.error_count()} error(s)"
        ) from exc


def one(model: type[M], data: Any, key: str) -> M:
    """``data[key]`` as a single *model*."""
    return validate(model, field(data, key))


def many(model: type[M], data: Any, key: str) -> list[M]:
    """``data[key]`` as a list of *model*, in response order."""
    items = field(data, key)
    if not isinstance(items, list):
        raise UnexpectedResponseError(f"Expected {key!r} to be a list")
    return [validate(model, item) for item in items]


def first_or_none(model: type[M], data: Any, key: str) -> M | None:
    items = many(model, data, key)
    return items[0] if items else None


def auth_session(data: Any) -> AuthSession:
    return validate(AuthSession, data)


def token(data: Any) -> str:
    value = field(data, "token")
    if not isinstance(value, str) or not value:
        raise UnexpectedResponseError("Expected a non-empty token")
    return value


def task_status(data: Any) -> TaskStatus:
    raw = field(field(data, "task"), "status")
    try:
        return TaskStatus(raw)
    except ValueError as exc:
        raise UnexpectedResponseError(f"Unknown task status {raw!r}") from exc
