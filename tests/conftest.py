# Shared fakes for the sign-in flow tests

import pytest

from azurebox.errors import RemoteAuthFailure
from azurebox.models import SessionToken

TENANT_ID = "contoso-tenant"
APP_ID = "app-1234"
APP_SECRET = "s3cr3t"
REDIRECT_URI = "http://localhost:8000/cb"


class RecordingBrowser:
    """BrowserChannel double that only records what it was asked to do."""

    def __init__(self):
        self.calls = []

    def navigate(self, url):
        self.calls.append(("navigate", url))

    def replace_history(self, url):
        self.calls.append(("replace_history", url))

    def of_kind(self, kind):
        return [url for k, url in self.calls if k == kind]


class FakeIdentityProvider:
    """IdentityProvider double; counts calls instead of talking to Entra ID."""

    def __init__(self, tenant_id=TENANT_ID, client_id=APP_ID, *, fail_with=None, access_token="access-abc"):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.fail_with = fail_with
        self.access_token = access_token
        self.authorization_urls = []
        self.exchanged_codes = []

    def build_authorization_url(self):
        url = (
            "https://login.microsoftonline.com/oauth2/v2.0/authorize"
            f"?tenant={self.tenant_id}&client_id={self.client_id}&response_type=code"
        )
        self.authorization_urls.append(url)
        return url

    def exchange_code(self, code):
        self.exchanged_codes.append(code)
        if self.fail_with is not None:
            raise self.fail_with
        return SessionToken.from_result({
            "access_token": self.access_token,
            "id_token": "id-token",
            "refresh_token": "refresh-token",
            "token_type": "Bearer",
            "expires_in": 3599,
            "id_token_claims": {"oid": "user-1", "name": "Ada Lovelace"},
        })

    @property
    def network_calls(self):
        return len(self.exchanged_codes)


@pytest.fixture
def browser():
    return RecordingBrowser()


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def failing_provider():
    return FakeIdentityProvider(
        fail_with=RemoteAuthFailure(
            "Authorization code was rejected",
            error="invalid_grant",
            description="AADSTS54005: OAuth2 Authorization code was already redeemed",
        )
    )
