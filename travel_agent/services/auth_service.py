"""Connector token authentication for the market event surface."""

from __future__ import annotations

import secrets
from typing import Optional

from travel_agent.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class InvalidConnectorTokenError(AuthenticationError):
    """Raised when provided token is invalid."""


class AuthService:
    """Validates the bearer token sent by the market connector."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.connector_token)

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        if not secrets.compare_digest(bearer_token, self._settings.connector_token):
            raise InvalidConnectorTokenError("Invalid connector token")
