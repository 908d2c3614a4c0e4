"""Authentication helpers for Salesforce.

This module centralizes creation of a simple-salesforce client and applies
small normalization rules to the configured login URL so that both the
classic `https://login.salesforce.com` form and My Domain URLs work.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import requests
from simple_salesforce import Salesforce
from simple_salesforce.exceptions import (
    SalesforceAuthenticationFailed,
    SalesforceError,
)

from apexci.core.errors import AuthError
from apexci.core.settings import Settings

logger = logging.getLogger(__name__)

_SALESFORCE_SUFFIX = ".salesforce.com"


def _login_domain(login_url: str | None) -> str:
    """
    Turn a login URL into the `domain` argument simple-salesforce expects.

    - Strips the scheme, query string and trailing slashes
    - Drops the `.salesforce.com` suffix

    `https://test.salesforce.com` becomes `test` and
    `https://acme.my.salesforce.com/?o=1` becomes `acme.my`.
    """
    if not login_url:
        return "login"
    raw = login_url.strip()
    if "://" not in raw:
        raw = f"https://{raw}"
    host = (urlsplit(raw).hostname or "").rstrip(".")
    if not host:
        raise AuthError(f"Invalid login URL: {login_url!r}")
    if host.endswith(_SALESFORCE_SUFFIX):
        host = host[: -len(_SALESFORCE_SUFFIX)]
    return host or "login"


def is_sandbox(login_url: str | None) -> bool:
    """
    Return True if the login URL points at a sandbox.

    That is the `test` login server or a My Domain sandbox host such as
    `acme--uat.sandbox.my.salesforce.com`.
    """
    domain = _login_domain(login_url)
    return domain == "test" or "sandbox" in domain.split(".")


def get_client(settings: Settings) -> Salesforce:
    """
    Log into Salesforce and return an authenticated client.

    The password and security token are sent together, which is what the
    SOAP login endpoint expects for API access from untrusted networks.

    Raises:
        AuthError: If the login is rejected or the endpoint is unreachable.
            The remote message is kept verbatim.
    """
    domain = _login_domain(settings.login_url)
    kwargs = {}
    if settings.api_version:
        kwargs["version"] = settings.api_version

    logger.debug("Logging in as %s (domain=%s)", settings.username, domain)
    try:
        return Salesforce(
            username=settings.username,
            password=settings.password,
            security_token=settings.security_token,
            domain=domain,
            **kwargs,
        )
    except (SalesforceAuthenticationFailed, SalesforceError) as exc:
        raise AuthError(str(exc)) from exc
    except requests.RequestException as exc:
        raise AuthError(f"Could not reach {settings.login_url}: {exc}") from exc
