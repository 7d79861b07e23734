# File: azurebox/graph.py
import logging
from typing import Any, Dict, Optional, Sequence, Union

import httpx

from azurebox.errors import UsageError
from azurebox.logger import get_logger
from azurebox.models import SessionToken

GRAPH_API_ME = "https://graph.microsoft.com/v1.0/me"

DEFAULT_PROFILE_FIELDS = (
    "id",
    "displayName",
    "mail",
    "userPrincipalName",
    "jobTitle",
    "employeeId",
    "employeeType",
    "photo",
)

DEFAULT_TIMEOUT = 30


def _access_token(token: Union[SessionToken, str, None]) -> str:
    if isinstance(token, SessionToken):
        return token.access_token
    if isinstance(token, str):
        return token
    if token is None:
        return ""
    raise UsageError(f"Unsupported token type: {type(token).__name__}")


def _select_param(fields: Optional[Sequence[str]]) -> Optional[str]:
    if fields is None:
        return None
    if isinstance(fields, (str, bytes)) or not isinstance(fields, (list, tuple)):
        raise UsageError("fields must be a list of field names, e.g. ['id', 'displayName']")
    for f in fields:
        if not isinstance(f, str) or not f.strip():
            raise UsageError(f"Invalid profile field name: {f!r}")
    # Leere Auswahl = Graph-Standardfelder
    return ",".join(f.strip() for f in fields) or None


class ProfileClient:
    """Reads the signed-in user's profile from Microsoft Graph."""

    def __init__(self, *, client: Optional[httpx.Client] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 logger: Optional[logging.Logger] = None):
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._logger = logger or get_logger(__name__)

    def fetch_current_user(self,
                           token: Union[SessionToken, str, None],
                           fields: Optional[Sequence[str]] = None) -> Optional[Dict[str, Any]]:
        """
        GET /me with the token as bearer credential.

        Raises UsageError without a token or with a malformed field list.
        Any failure on the Graph side is logged and returns None.
        """
        access_token = _access_token(token)
        if not access_token:
            raise UsageError("Unable to retrieve user data: no Azure token available")
        select = _select_param(fields)

        params = {"$select": select} if select else None
        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            response = self._client.get(GRAPH_API_ME, params=params, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("Could not retrieve user data! Request failed: %s", e)
            return None

        if not response.is_success:
            self._logger.error("Could not retrieve user data! Status code: %s", response.status_code)
            self._logger.error("Error details: %s", response.text)
            return None

        try:
            return response.json()
        except ValueError:
            self._logger.error("Could not parse user data: %s", response.text)
            return None

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ProfileClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
