"""
azurerm/auth.py

Authorizers: token-bearing wrappers bound to one (tenant, audience) pair.

Both classes satisfy the azure-core TokenCredential protocol, so they can be
handed straight to any SDK client as its `credential`.

  Authorizer          — one audience (management API, directory API).
                        The token is fetched lazily and refreshed shortly
                        before expiry. Refresh is serialised by a lock so
                        concurrent adapters never race on shared token state.

  CallbackAuthorizer  — Key Vault's audience depends on the vault being
                        called and is only known when the data-plane
                        challenge arrives. Each distinct audience gets its own
                        Authorizer, built on demand by a callback.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from azure.core.credentials import AccessToken

logger = logging.getLogger(__name__)

# Refresh this many seconds before the token actually expires
REFRESH_MARGIN = 300


def scope_for(audience: str) -> str:
    """https://management.azure.com/ -> https://management.azure.com/.default"""
    if audience.endswith("/.default"):
        return audience
    return audience.rstrip("/") + "/.default"


def audience_for(scope: str) -> str:
    if scope.endswith("/.default"):
        return scope[: -len("/.default")]
    return scope.rstrip("/")


class Authorizer:
    def __init__(self, credential, audience: str, refresh_margin: int = REFRESH_MARGIN):
        self._credential = credential
        self.audience = audience
        self.scope = scope_for(audience)
        self._refresh_margin = refresh_margin
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def _needs_refresh(self) -> bool:
        return self._token is None or self._token.expires_on - self._refresh_margin <= time.time()

    def get_token(self, *scopes, **kwargs) -> AccessToken:
        # The audience is fixed at construction; requested scopes are ignored.
        with self._lock:
            if self._needs_refresh():
                logger.debug("Acquiring token for audience %s", self.audience)
                self._token = self._credential.get_token(self.scope)
            return self._token

    def refresh(self) -> AccessToken:
        """Force a fresh token exchange (used to validate credentials up front)."""
        with self._lock:
            self._token = self._credential.get_token(self.scope)
            return self._token


class CallbackAuthorizer:
    def __init__(self, factory: Callable[[str], Authorizer]):
        self._factory = factory
        self._authorizers: Dict[str, Authorizer] = {}
        self._lock = threading.Lock()

    def authorizer_for(self, audience: str) -> Authorizer:
        key = audience_for(audience)
        with self._lock:
            authorizer = self._authorizers.get(key)
            if authorizer is None:
                logger.debug("Creating authorizer for resource %s", key)
                authorizer = self._factory(key)
                self._authorizers[key] = authorizer
        return authorizer

    def get_token(self, *scopes, **kwargs) -> AccessToken:
        if not scopes:
            raise ValueError("CallbackAuthorizer requires the scope of the resource being called")
        return self.authorizer_for(scopes[0]).get_token()
