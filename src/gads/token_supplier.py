"""Access-token suppliers.

RefreshingTokenSupplier mints access tokens from the stored refresh token
(google-auth does the refresh grant). PersistingTokenSupplier wraps any
supplier and writes a newly issued access token back to the credential
store, so callers never refresh or save explicitly.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Optional, Protocol

import requests
from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials as GoogleCredentials

from .config import OAUTH_SCOPE, TOKEN_URI
from .credentials import CredentialStore, Credentials, as_utc
from .errors import ConfigurationError, TokenRefreshError, TransportError

DEFAULT_TOKEN_TYPE = "Bearer"


@dataclass(frozen=True)
class Token:
    access_token: str
    token_type: str = DEFAULT_TOKEN_TYPE
    expiry: Optional[datetime] = None  # aware UTC

    def authorization_header(self) -> str:
        return f"{self.token_type or DEFAULT_TOKEN_TYPE} {self.access_token}"


class TokenSupplier(Protocol):
    def current_token(self) -> Token:
        ...


def _naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # google-auth compares expiry against a naive utcnow()
    dt = as_utc(dt)
    return dt.replace(tzinfo=None) if dt is not None else None


class RefreshingTokenSupplier:
    """Returns the cached access token, refreshing it first when stale."""

    def __init__(
        self,
        creds: Credentials,
        *,
        token_uri: str = TOKEN_URI,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if not creds.refresh_token:
            raise ConfigurationError("not authenticated: run: gads auth login")
        self.google_credentials = GoogleCredentials(
            token=creds.access_token or None,
            refresh_token=creds.refresh_token,
            token_uri=token_uri,
            client_id=creds.client_id or None,
            client_secret=creds.client_secret or None,
            scopes=[OAUTH_SCOPE],
            expiry=_naive_utc(creds.token_expiry),
        )
        self._token_type = creds.token_type or DEFAULT_TOKEN_TYPE
        request = GoogleAuthRequest(session=session)
        self._request = partial(request, timeout=timeout) if timeout else request

    def current_token(self) -> Token:
        gc = self.google_credentials
        if not gc.valid:
            try:
                gc.refresh(self._request)
            except google_exceptions.TransportError as e:
                raise TransportError(f"refreshing access token: {e}") from e
            except google_exceptions.RefreshError as e:
                raise TokenRefreshError(
                    f"refreshing access token failed ({e}); run: gads auth login"
                ) from e
            # the refresh grant always answers with a bearer token
            self._token_type = DEFAULT_TOKEN_TYPE
        return Token(access_token=gc.token, token_type=self._token_type, expiry=as_utc(gc.expiry))


class PersistingTokenSupplier:
    """Saves the record whenever the wrapped supplier hands out a new access token."""

    def __init__(
        self,
        inner: TokenSupplier,
        creds: Credentials,
        store: CredentialStore,
        *,
        verbose: bool = False,
    ) -> None:
        self.inner = inner
        self.creds = creds
        self.store = store
        self.verbose = verbose

    def current_token(self) -> Token:
        token = self.inner.current_token()
        if token.access_token != self.creds.access_token:
            self.creds.access_token = token.access_token
            self.creds.token_expiry = token.expiry
            if token.token_type:
                self.creds.token_type = token.token_type
            try:
                self.store.save(self.creds)
            except OSError as e:
                raise ConfigurationError(f"saving refreshed token to {self.store.path}: {e}") from e
            if self.verbose:
                expiry = token.expiry.isoformat() if token.expiry else "unknown"
                print(f"[auth] access token refreshed, expires {expiry}", file=sys.stderr)
        return token
