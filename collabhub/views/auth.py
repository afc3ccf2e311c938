"""Sign-in, registration and sign-out."""

from __future__ import annotations

import logging

from collabhub.api.client import HubApiClient
from collabhub.domain.models import AuthOutcome, User
from collabhub.errors import FormValidationError, RemoteError, RequestRejectedError
from collabhub.services.forms import validate_login, validate_registration

logger = logging.getLogger(__name__)


def _failure(exc: Exception) -> AuthOutcome:
    if isinstance(exc, (FormValidationError, RequestRejectedError)):
        return AuthOutcome(success=False, error=exc.message)
    return AuthOutcome(success=False, error=str(exc))


class AuthView:
    """Auth actions report an ``AuthOutcome`` instead of raising for expected failures."""

    def __init__(self, client: HubApiClient) -> None:
        self._client = client

    @property
    def user(self) -> User | None:
        return self._client.session.user

    @property
    def is_authenticated(self) -> bool:
        return self._client.session.is_authenticated

    async def login(self, email: str, password: str) -> AuthOutcome:
        try:
            await self._client.login(validate_login(email, password))
        except (FormValidationError, RemoteError) as exc:
            logger.info("Login failed: %s", exc)
            return _failure(exc)
        return AuthOutcome(success=True)

    async def register(
        self,
        *,
        email: str,
        password: str,
        confirm_password: str,
        first_name: str,
        last_name: str,
        department: str = "IT",
    ) -> AuthOutcome:
        try:
            request = validate_registration(
                email=email,
                password=password,
                confirm_password=confirm_password,
                first_name=first_name,
                last_name=last_name,
                department=department,
            )
            await self._client.register(request)
        except (FormValidationError, RemoteError) as exc:
            logger.info("Registration failed: %s", exc)
            return _failure(exc)
        return AuthOutcome(success=True)

    async def logout(self) -> None:
        try:
            await self._client.logout()
        except RemoteError as exc:
            logger.warning("Logout request failed, signed out locally: %s", exc)
