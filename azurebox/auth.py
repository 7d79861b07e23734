# File: azurebox/auth.py

import logging
import threading
from typing import Iterable, List, Optional, Protocol, runtime_checkable
from urllib.parse import urlencode

from msal import ConfidentialClientApplication

from azurebox.browser import BrowserChannel
from azurebox.errors import RemoteAuthFailure
from azurebox.logger import get_logger
from azurebox.models import (
    DEFAULT_SCOPES,
    AuthorizationQuery,
    AuthState,
    ProviderConfig,
    SessionToken,
    parse_port,
)

__all__ = ["AuthSession", "IdentityProvider", "MsalIdentityProvider", "parse_port"]

# msal ergänzt diese Scopes selbst und lehnt sie als User-Scopes ab
RESERVED_SCOPES = frozenset({"openid", "profile", "offline_access"})

DEFAULT_TIMEOUT = 30


@runtime_checkable
class IdentityProvider(Protocol):
    """The two provider SDK calls the authentication flow needs."""

    def build_authorization_url(self) -> str:
        ...

    def exchange_code(self, code: str) -> SessionToken:
        ...


class MsalIdentityProvider:
    """
    Authorization Code flow against the v2.0 endpoints of an Entra ID tenant.
    The authorize URL is assembled locally; the code exchange goes through
    msal's ConfidentialClientApplication.
    """

    def __init__(self, config: ProviderConfig, *, timeout: float = DEFAULT_TIMEOUT,
                 logger: Optional[logging.Logger] = None):
        self.config = config
        self.timeout = timeout
        self._logger = logger or get_logger(__name__)

    @property
    def user_scopes(self) -> List[str]:
        return [s for s in self.config.scopes if s not in RESERVED_SCOPES]

    def build_msal_app(self) -> ConfidentialClientApplication:
        return ConfidentialClientApplication(
            client_id=self.config.client_id,
            authority=self.config.authority,
            client_credential=self.config.client_secret,
            timeout=self.timeout,
        )

    def build_authorization_url(self) -> str:
        # Ohne msal-App: deren Authority-Discovery wäre ein Netzwerkaufruf
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
            "response_mode": "query",
            "scope": " ".join(self.config.scopes),
        }
        return f"{self.config.authority}/oauth2/v2.0/authorize?{urlencode(params)}"

    def exchange_code(self, code: str) -> SessionToken:
        # Frische App je Austausch: kein Token-Cache über Browser-Sessions hinweg
        try:
            app = self.build_msal_app()
            result = app.acquire_token_by_authorization_code(
                code,
                scopes=self.user_scopes,
                redirect_uri=self.config.redirect_uri,
            )
        except Exception as e:
            raise RemoteAuthFailure(f"Token request to {self.config.authority} failed: {e}") from e

        if not result or "access_token" not in result:
            result = result or {}
            raise RemoteAuthFailure(
                "Authorization code was rejected",
                error=result.get("error"),
                description=result.get("error_description"),
            )
        return SessionToken.from_result(result)


class AuthSession:
    """
    Authentication state for exactly one browser session.

    Each render cycle hands the current URL to :meth:`authenticate`. Without a
    ``code`` parameter the browser is sent to the identity provider; with one
    the code is swapped for a token, which is then cached for the lifetime of
    this object. There is no way back from ``authenticated``.

    Not meant to be shared between sessions.
    """

    def __init__(self,
                 tenant_id: str,
                 app_id: str,
                 app_secret: str,
                 redirect_uri: str,
                 *,
                 browser: BrowserChannel,
                 provider: Optional[IdentityProvider] = None,
                 scopes: Optional[Iterable[str]] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 logger: Optional[logging.Logger] = None):
        self._config = ProviderConfig(
            tenant_id=tenant_id,
            client_id=app_id,
            client_secret=app_secret,
            redirect_uri=redirect_uri,
            scopes=tuple(scopes) if scopes is not None else DEFAULT_SCOPES,
        )
        self._browser = browser
        self._logger = logger or get_logger(__name__)
        self._provider = provider if provider is not None else MsalIdentityProvider(
            self._config, timeout=timeout, logger=self._logger
        )
        self._token: Optional[SessionToken] = None
        self._state = AuthState.unauthenticated
        self._lock = threading.Lock()

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def token(self) -> Optional[SessionToken]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    def authenticate(self, current_url: Optional[str]) -> Optional[SessionToken]:
        """
        Runs one step of the flow for the given URL (or its query string).

        Returns the cached token, ``None`` while the browser is on its way to
        the provider, or raises RemoteAuthFailure when the code exchange fails.
        """
        with self._lock:
            if self._token is not None:
                return self._token

            query = AuthorizationQuery.parse(current_url)
            if query.code is None:
                self.redirect_out()
                return None

            self._state = AuthState.code_received
            self.scrub_url()
            token = self.exchange_code(query.code)

            self._token = token
            self._state = AuthState.authenticated
            self._logger.info("Authenticated against tenant %s (client %s)",
                              self._config.tenant_id, self._config.client_id)
            return token

    def redirect_out(self) -> None:
        url = self._provider.build_authorization_url()
        self._logger.debug("Redirecting browser to identity provider: %s", url)
        self._browser.navigate(url)

    def exchange_code(self, code: str) -> SessionToken:
        try:
            token = self._provider.exchange_code(code)
        except RemoteAuthFailure as e:
            self._logger.warning("Code exchange failed: %s", e)
            raise
        if not token:
            raise RemoteAuthFailure("Identity provider returned no access token")
        return token

    def scrub_url(self) -> None:
        self._browser.replace_history(self._config.redirect_uri)

    def get_port(self) -> int:
        return self._config.listen_port
