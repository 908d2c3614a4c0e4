import pytest
from simple_salesforce.exceptions import SalesforceAuthenticationFailed

from apexci.core import auth
from apexci.core.auth import _login_domain, get_client, is_sandbox
from apexci.core.errors import AuthError
from apexci.core.settings import Settings


@pytest.mark.parametrize(
    ("url", "domain"),
    [
        ("https://login.salesforce.com", "login"),
        ("https://test.salesforce.com/", "test"),
        ("https://acme.my.salesforce.com/?o=123", "acme.my"),
        ("test.salesforce.com", "test"),
        (None, "login"),
        ("", "login"),
    ],
)
def test_login_domain_normalizes_urls(url, domain):
    assert _login_domain(url) == domain


@pytest.mark.parametrize(
    ("url", "sandbox"),
    [
        ("https://test.salesforce.com", True),
        ("https://acme--uat.sandbox.my.salesforce.com", True),
        ("https://login.salesforce.com", False),
        ("https://acme.my.salesforce.com", False),
        ("https://sandboxco.my.salesforce.com", False),
    ],
)
def test_is_sandbox_detects_test_server_and_my_domain_sandboxes(url, sandbox):
    assert is_sandbox(url) is sandbox


def test_get_client_passes_credentials_and_domain(monkeypatch):
    captured = {}

    def _fake_salesforce(**kwargs):
        captured.update(kwargs)
        return "client"

    monkeypatch.setattr(auth, "Salesforce", _fake_salesforce)
    settings = Settings(
        username="ci@example.com",
        password="secret",
        security_token="tok",
        login_url="https://test.salesforce.com",
        api_version="59.0",
    )

    assert get_client(settings) == "client"
    assert captured == {
        "username": "ci@example.com",
        "password": "secret",
        "security_token": "tok",
        "domain": "test",
        "version": "59.0",
    }


def test_get_client_wraps_login_failure(monkeypatch):
    def _fail(**kwargs):
        raise SalesforceAuthenticationFailed("INVALID_LOGIN", "Invalid username")

    monkeypatch.setattr(auth, "Salesforce", _fail)

    with pytest.raises(AuthError, match="Invalid username"):
        get_client(Settings(username="u", password="p"))
