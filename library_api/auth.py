"""
API key authentication for the FastAPI API.

Clients authenticate with ``Authorization: Token token=<api_key>``.
``Token token="<api_key>"``, ``Token <api_key>`` and ``Bearer <api_key>`` are
accepted as well.
"""

import re
import secrets
from typing import Optional

import structlog

from library_api.config import config

logger = structlog.get_logger(__name__)

TOKEN_SCHEMES = ("token", "bearer")

_TOKEN_PARAM = re.compile(r'^token\s*=\s*"?([^",\s]+)"?')


class APIKeyManager:
    """Generates and parses API keys."""

    @staticmethod
    def generate_api_key() -> str:
        """Generate a new API key."""
        return f"{config.api_key_prefix}{secrets.token_urlsafe(32)}"

    @staticmethod
    def mask(api_key: str) -> str:
        """Truncate a key for logs and listings."""
        return api_key[:10] + "..."

    @staticmethod
    def parse_authorization(header: Optional[str]) -> Optional[str]:
        """
        Extract the API key from an Authorization header value.

        Args:
            header: Raw header value

        Returns:
            The API key, or None if the header is absent or malformed
        """
        if not header:
            return None

        scheme, _, credentials = header.strip().partition(" ")
        if scheme.lower() not in TOKEN_SCHEMES:
            return None

        credentials = credentials.strip()
        if not credentials:
            return None

        match = _TOKEN_PARAM.match(credentials)
        if match:
            return match.group(1)
        if "=" in credentials or " " in credentials:
            return None
        return credentials
