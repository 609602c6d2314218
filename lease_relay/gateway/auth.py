"""Caller authentication: bearer credential -> owner identity."""

import re
from typing import Dict, Optional

from loguru import logger

from lease_relay.gateway.errors import Unauthorized

_BEARER = re.compile(r"^Bearer\s+", re.IGNORECASE)
_SCHEME = re.compile(r"^(Bearer|Basic|Token)\s", re.IGNORECASE)


class TokenDirectory:
    """
    Resolves caller bearer tokens to owner ids.

    In-memory for this service; the identity provider that issues the
    tokens lives outside of it.
    """

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self._tokens: Dict[str, str] = dict(tokens or {})

    def register(self, token: str, owner_id: str) -> None:
        self._tokens[token] = owner_id

    def revoke(self, token: str) -> None:
        self._tokens.pop(token, None)

    def resolve(self, authorization: Optional[str]) -> str:
        """Return the owner id behind an ``Authorization`` header value."""
        if not authorization or not authorization.strip():
            logger.warning("Rejected lease request without Authorization header")
            raise Unauthorized("Unauthorized: missing Authorization header")

        token = _BEARER.sub("", authorization.strip()).strip()
        owner_id = self._tokens.get(token)
        if not owner_id:
            logger.warning("Rejected lease request with unknown credential")
            raise Unauthorized("Unauthorized: invalid user")
        return owner_id


def outbound_authorization(auth_token: Optional[str]) -> Optional[str]:
    """
    Header value for the engine call. Keeps an explicit Bearer/Basic/Token
    prefix, otherwise sends the token as a bearer credential.
    """
    if not auth_token:
        return None
    if _SCHEME.match(auth_token):
        return auth_token
    return f"Bearer {auth_token}"
