"""Coveralls job payload and upload.

The payload follows the Coveralls job API: one source file per production
class with its body and merged per-line coverage.
"""

from __future__ import annotations

import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from apexci.core.catalog import ClassCatalog

logger = logging.getLogger(__name__)

COVERALLS_ENDPOINT = "https://coveralls.io/api/v1/jobs"
PAYLOAD_FILENAME = "coverallsData.json"


@dataclass(frozen=True)
class CoverallsResponse:
    """Parsed response of an accepted Coveralls job."""

    message: str = ""
    url: str | None = None


class CoverallsUploader(Protocol):
    """Interface for sending a payload file to Coveralls."""

    def upload(self, json_path: Path) -> CoverallsResponse:
        """Upload the JSON file and return the parsed response."""
        ...


def build_payload(
    catalog: ClassCatalog,
    *,
    repo_token: str,
    job_id: str,
    service_name: str = "travis-ci",
) -> dict[str, Any]:
    """Build the Coveralls job payload from the catalog's production classes."""
    return {
        "repo_token": repo_token,
        "service_name": service_name,
        "service_job_id": job_id,
        "source_files": [
            {
                "name": record.name,
                "source": record.source,
                "coverage": list(record.coverage),
            }
            for record in catalog.classes.values()
        ],
    }


def write_payload(payload: dict[str, Any], path: Path) -> Path:
    """Write the payload as JSON and return the path."""
    path = Path(path)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def post_to_coveralls(
    payload: dict[str, Any], *, uploader: CoverallsUploader
) -> CoverallsResponse:
    """
    Upload a payload through a temporary JSON file.

    The temporary directory is removed once the upload returns or fails.
    """
    with tempfile.TemporaryDirectory(prefix="coveralls") as tmp:
        json_path = write_payload(payload, Path(tmp) / PAYLOAD_FILENAME)
        logger.debug(
            "Posting %d source file(s) from %s",
            len(payload.get("source_files", [])),
            json_path,
        )
        return uploader.upload(json_path)
