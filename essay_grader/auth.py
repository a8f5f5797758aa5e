"""
Caller identity for the HTTP surface.

The identity provider itself is external; this module only turns an
``Authorization: Bearer <token>`` header into a ``Caller``.
"""

import hmac
from typing import NamedTuple, Protocol

from essay_grader.config import Settings


class Caller(NamedTuple):
    """An authenticated caller."""

    user_id: str


class AuthenticationError(Exception):
    """Raised when a request carries no valid credentials."""


class Authenticator(Protocol):
    def authenticate(self, authorization: str | None) -> Caller: ...


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from a Bearer authorization header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class StaticTokenAuthenticator:
    """Accepts a fixed set of bearer tokens, each bound to one user id."""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = dict(tokens)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StaticTokenAuthenticator":
        return cls(settings.auth_token_map)

    def authenticate(self, authorization: str | None) -> Caller:
        """
        Raises:
            AuthenticationError: If the header is missing, malformed or unknown.
        """
        token = bearer_token(authorization)
        if token is None:
            raise AuthenticationError("Unauthorized. Please sign in.")

        for known, user_id in self._tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return Caller(user_id=user_id)

        raise AuthenticationError("Unauthorized. Please sign in.")
