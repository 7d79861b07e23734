# File: azurebox/__init__.py
from azurebox.auth import AuthSession, IdentityProvider, MsalIdentityProvider, parse_port
from azurebox.browser import BrowserChannel, ScriptBuffer
from azurebox.errors import AzureBoxError, RemoteAuthFailure, UsageError
from azurebox.graph import DEFAULT_PROFILE_FIELDS, ProfileClient
from azurebox.models import AuthState, AuthorizationQuery, ProviderConfig, SessionToken

__all__ = [
    "AuthSession",
    "AuthState",
    "AuthorizationQuery",
    "AzureBoxError",
    "BrowserChannel",
    "DEFAULT_PROFILE_FIELDS",
    "IdentityProvider",
    "MsalIdentityProvider",
    "ProfileClient",
    "ProviderConfig",
    "RemoteAuthFailure",
    "ScriptBuffer",
    "SessionToken",
    "UsageError",
    "parse_port",
]
