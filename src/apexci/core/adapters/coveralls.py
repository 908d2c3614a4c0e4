from __future__ import annotations

import logging
from pathlib import Path

import requests

from apexci.core.coveralls import COVERALLS_ENDPOINT, CoverallsResponse
from apexci.core.errors import UploadError

logger = logging.getLogger(__name__)


class RequestsCoverallsUploader:
    """Uploads Coveralls job files over HTTP with requests."""

    def __init__(
        self,
        endpoint: str = COVERALLS_ENDPOINT,
        session: requests.Session | None = None,
        timeout: float = 60,
    ) -> None:
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout

    def upload(self, json_path: Path) -> CoverallsResponse:
        """Post the file as the multipart field `json_file`."""
        json_path = Path(json_path)
        try:
            with json_path.open("rb") as fh:
                response = self.session.post(
                    self.endpoint,
                    files={"json_file": (json_path.name, fh, "application/json")},
                    timeout=self.timeout,
                )
        except requests.RequestException as exc:
            raise UploadError(f"Could not reach Coveralls: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = str(body.get("message") or "")
        if not response.ok or body.get("error"):
            detail = message or response.text or f"HTTP {response.status_code}"
            raise UploadError(f"There was an error posting coverage: {detail}")

        logger.debug("Coveralls accepted job: %s", message)
        return CoverallsResponse(message=message, url=body.get("url"))
