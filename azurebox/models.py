# File: azurebox/models.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

DEFAULT_SCOPES: Tuple[str, ...] = (
    "https://graph.microsoft.com/.default",
    "openid",
    "offline_access",
)

# Kein https->443: ohne expliziten Port gilt immer 80
DEFAULT_PORT = 80


def parse_port(redirect_uri: str) -> int:
    """Explicit port of ``redirect_uri``, or 80 when the URI names none."""
    port = urlsplit(redirect_uri).port
    if port is None:
        return DEFAULT_PORT
    return int(port)


class AuthState(str, Enum):
    unauthenticated = "unauthenticated"
    code_received   = "code_received"
    authenticated   = "authenticated"


@dataclass(frozen=True)
class ProviderConfig:
    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)
    redirect_uri: str
    scopes: Tuple[str, ...] = DEFAULT_SCOPES
    listen_port: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "scopes", tuple(self.scopes))
        object.__setattr__(self, "listen_port", parse_port(self.redirect_uri))

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"


@dataclass
class SessionToken:
    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    id_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    id_token_claims: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "SessionToken":
        """Wraps a token endpoint result (e.g. from msal) without interpreting it."""
        expires_in = result.get("expires_in")
        return cls(
            access_token=result["access_token"],
            token_type=result.get("token_type") or "Bearer",
            expires_in=int(expires_in) if expires_in is not None else None,
            scope=result.get("scope"),
            id_token=result.get("id_token"),
            refresh_token=result.get("refresh_token"),
            id_token_claims=dict(result.get("id_token_claims") or {}),
            raw=dict(result),
        )

    @property
    def bearer(self) -> str:
        return f"Bearer {self.access_token}"

    def __bool__(self) -> bool:
        return bool(self.access_token)


@dataclass(frozen=True)
class AuthorizationQuery:
    code: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, url_search: Optional[str]) -> "AuthorizationQuery":
        """
        Parst den Query-String der aktuellen Browser-URL.
        Akzeptiert "?code=...", "code=..." oder eine vollständige URL.
        """
        if not url_search:
            return cls()
        if "://" in url_search:
            query = urlsplit(url_search).query
        else:
            query = url_search.split("#", 1)[0].lstrip("?")

        parsed = parse_qs(query, keep_blank_values=True)
        params = {k: v[0] for k, v in parsed.items() if v}
        code = params.pop("code", None) or None
        return cls(code=code, params=params)
