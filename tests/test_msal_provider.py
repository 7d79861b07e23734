"""Tests for MsalIdentityProvider: local authorize URL, msal-backed code exchange."""

from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from conftest import APP_ID, APP_SECRET, REDIRECT_URI, TENANT_ID

from azurebox.auth import AuthSession, MsalIdentityProvider
from azurebox.errors import RemoteAuthFailure
from azurebox.models import AuthState, ProviderConfig, SessionToken


class StubMsalApp:
    instances = []
    token_result = {"access_token": "graph-token", "id_token": "idt", "expires_in": 3600}
    raise_on_exchange = None

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.exchanges = []
        StubMsalApp.instances.append(self)

    def acquire_token_by_authorization_code(self, code, scopes, redirect_uri=None, **kwargs):
        self.exchanges.append((code, list(scopes), redirect_uri))
        if StubMsalApp.raise_on_exchange is not None:
            raise StubMsalApp.raise_on_exchange
        return StubMsalApp.token_result


@pytest.fixture
def msal_stub(monkeypatch):
    StubMsalApp.instances = []
    StubMsalApp.token_result = {"access_token": "graph-token", "id_token": "idt", "expires_in": 3600}
    StubMsalApp.raise_on_exchange = None
    monkeypatch.setattr("azurebox.auth.ConfidentialClientApplication", StubMsalApp)
    return StubMsalApp


@pytest.fixture
def msal_provider():
    config = ProviderConfig(TENANT_ID, APP_ID, APP_SECRET, REDIRECT_URI)
    return MsalIdentityProvider(config, timeout=12)


class TestMsalIdentityProvider:
    def test_exchange_builds_app_against_tenant_authority(self, msal_stub, msal_provider):
        msal_provider.exchange_code("abc")
        (app,) = msal_stub.instances
        assert app.kwargs == {
            "client_id": APP_ID,
            "authority": f"https://login.microsoftonline.com/{TENANT_ID}",
            "client_credential": APP_SECRET,
            "timeout": 12,
        }

    def test_exchange_strips_reserved_scopes(self, msal_stub, msal_provider):
        msal_provider.exchange_code("abc")
        assert msal_stub.instances[0].exchanges[0][1] == ["https://graph.microsoft.com/.default"]

    def test_authorization_url_needs_no_msal_app(self, msal_stub, msal_provider):
        msal_provider.build_authorization_url()
        msal_provider.build_authorization_url()
        assert msal_stub.instances == []

    def test_exchange_uses_fresh_app(self, msal_stub, msal_provider):
        msal_provider.exchange_code("one")
        msal_provider.exchange_code("two")
        assert len(msal_stub.instances) == 2
        assert msal_stub.instances[0].exchanges == [
            ("one", ["https://graph.microsoft.com/.default"], REDIRECT_URI)
        ]
        assert msal_stub.instances[1].exchanges[0][0] == "two"

    def test_exchange_returns_session_token(self, msal_stub, msal_provider):
        token = msal_provider.exchange_code("abc")
        assert isinstance(token, SessionToken)
        assert token.access_token == "graph-token"
        assert token.id_token == "idt"
        assert token.expires_in == 3600
        assert token.bearer == "Bearer graph-token"

    def test_error_result_raises(self, msal_stub, msal_provider):
        msal_stub.token_result = {
            "error": "invalid_grant",
            "error_description": "AADSTS70008: The provided authorization code has expired.",
        }
        with pytest.raises(RemoteAuthFailure) as exc_info:
            msal_provider.exchange_code("expired")
        assert exc_info.value.error == "invalid_grant"
        assert "AADSTS70008" in str(exc_info.value)

    def test_network_error_raises(self, msal_stub, msal_provider):
        msal_stub.raise_on_exchange = ConnectionError("connection reset")
        with pytest.raises(RemoteAuthFailure) as exc_info:
            msal_provider.exchange_code("abc")
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_none_result_raises(self, msal_stub, msal_provider):
        msal_stub.token_result = None
        with pytest.raises(RemoteAuthFailure):
            msal_provider.exchange_code("abc")


# ---------------------------------------------------------------------------
# Authorization URL (real provider, network blocked)
# ---------------------------------------------------------------------------


@pytest.fixture
def network_calls(monkeypatch):
    calls = []

    def record(self, method, url, *args, **kwargs):
        calls.append((method, url))
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests.Session, "request", record)
    return calls


class TestAuthorizationUrl:
    def test_v2_authorize_endpoint(self, msal_provider, network_calls):
        url = urlsplit(msal_provider.build_authorization_url())
        assert (url.scheme, url.netloc) == ("https", "login.microsoftonline.com")
        assert url.path == f"/{TENANT_ID}/oauth2/v2.0/authorize"
        assert network_calls == []

    def test_query_parameters(self, msal_provider):
        query = parse_qs(urlsplit(msal_provider.build_authorization_url()).query)
        assert query["client_id"] == [APP_ID]
        assert query["response_type"] == ["code"]
        assert query["redirect_uri"] == [REDIRECT_URI]
        assert query["scope"] == ["https://graph.microsoft.com/.default openid offline_access"]
        assert "state" not in query

    def test_first_visit_stays_offline(self, browser, network_calls):
        session = AuthSession(TENANT_ID, APP_ID, APP_SECRET, REDIRECT_URI, browser=browser)

        assert session.authenticate("") is None

        assert network_calls == []
        (target,) = browser.of_kind("navigate")
        assert f"/{TENANT_ID}/oauth2/v2.0/authorize" in target
        assert f"client_id={APP_ID}" in target
        assert session.state is AuthState.unauthenticated
