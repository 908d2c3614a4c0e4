"""Run configuration.

Settings are plain values resolved by the CLI (options backed by environment
variables) or passed in directly by library callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_SERVICE_NAME = "travis-ci"
DEFAULT_POLL_INTERVAL = 5
DEFAULT_POLL_TIMEOUT = 300


@dataclass(frozen=True)
class Settings:
    """
    Configuration for one pipeline run.

    Attributes:
        login_url: Salesforce login endpoint (production or sandbox).
        username: Salesforce username.
        password: Salesforce password.
        security_token: Salesforce security token appended to the password.
        job_id: CI job identifier reported to Coveralls.
        repo_token: Coveralls repository token.
        service_name: CI service name reported to Coveralls.
        source_dir: Local metadata package directory (contains package.xml).
        poll_interval: Seconds to wait between status checks.
        poll_timeout: Seconds before a polling loop gives up; 0 disables it.
        api_version: Optional Salesforce API version override.
    """

    username: str = ""
    password: str = field(default="", repr=False)
    security_token: str = field(default="", repr=False)
    login_url: str = DEFAULT_LOGIN_URL
    job_id: str = ""
    repo_token: str = field(default="", repr=False)
    service_name: str = DEFAULT_SERVICE_NAME
    source_dir: Path = Path("src")
    poll_interval: float = DEFAULT_POLL_INTERVAL
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    api_version: str | None = None

    @property
    def classes_dir(self) -> Path:
        """Directory holding the local Apex class files."""
        return Path(self.source_dir) / "classes"

    @property
    def timeout(self) -> float | None:
        """Polling deadline in seconds, or None when polling is unbounded."""
        return self.poll_timeout if self.poll_timeout and self.poll_timeout > 0 else None

    def missing(self, *, upload: bool = True) -> list[str]:
        """Return the names of required settings that are empty."""
        required = ["username", "password"]
        if upload:
            required += ["job_id", "repo_token"]
        return [name for name in required if not getattr(self, name)]
