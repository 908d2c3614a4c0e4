import json
from pathlib import Path

import pytest
import requests

from apexci.core.adapters.coveralls import RequestsCoverallsUploader
from apexci.core.catalog import ClassCatalog, ClassRecord, ClassRole
from apexci.core.coveralls import (
    COVERALLS_ENDPOINT,
    CoverallsResponse,
    build_payload,
    post_to_coveralls,
)
from apexci.core.errors import UploadError


def _catalog() -> ClassCatalog:
    catalog = ClassCatalog()
    catalog.classes["01pA"] = ClassRecord(
        id="01pA",
        name="src/classes/A.cls",
        source="public class A {}",
        role=ClassRole.PRODUCTION,
        coverage=[1, 0, None],
    )
    catalog.test_classes["01pT"] = ClassRecord(
        id="01pT",
        name="src/classes/ATest.cls",
        source="@isTest class ATest {}",
        role=ClassRole.TEST,
    )
    return catalog


class _Response:
    def __init__(self, status_code: int, body, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class _Session:
    def __init__(self, response=None, exc: Exception | None = None):
        self.response = response
        self.exc = exc
        self.calls: list[dict] = []

    def post(self, url, files=None, timeout=None):
        name, fh, content_type = files["json_file"]
        self.calls.append(
            {
                "url": url,
                "name": name,
                "content_type": content_type,
                "payload": json.loads(fh.read()),
            }
        )
        if self.exc is not None:
            raise self.exc
        return self.response


def test_build_payload_lists_production_classes_only():
    payload = build_payload(_catalog(), repo_token="repo", job_id="42")

    assert payload == {
        "repo_token": "repo",
        "service_name": "travis-ci",
        "service_job_id": "42",
        "source_files": [
            {
                "name": "src/classes/A.cls",
                "source": "public class A {}",
                "coverage": [1, 0, None],
            }
        ],
    }


def test_post_to_coveralls_uploads_a_temporary_file():
    seen: dict[str, object] = {}

    class _Uploader:
        def upload(self, json_path: Path) -> CoverallsResponse:
            seen["path"] = json_path
            seen["payload"] = json.loads(json_path.read_text())
            return CoverallsResponse(message="Job #1.1")

    payload = build_payload(_catalog(), repo_token="repo", job_id="42")
    response = post_to_coveralls(payload, uploader=_Uploader())

    assert response.message == "Job #1.1"
    assert seen["payload"] == payload
    assert seen["path"].name == "coverallsData.json"
    assert not seen["path"].exists()


def test_uploader_posts_multipart_json_file(tmp_path):
    path = tmp_path / "coverallsData.json"
    path.write_text(json.dumps({"repo_token": "repo"}))
    session = _Session(
        _Response(200, {"message": "Job #7.1", "url": "https://coveralls.io/jobs/1"})
    )

    response = RequestsCoverallsUploader(session=session).upload(path)

    assert response == CoverallsResponse(
        message="Job #7.1", url="https://coveralls.io/jobs/1"
    )
    assert session.calls == [
        {
            "url": COVERALLS_ENDPOINT,
            "name": "coverallsData.json",
            "content_type": "application/json",
            "payload": {"repo_token": "repo"},
        }
    ]


def test_uploader_raises_on_error_body(tmp_path):
    path = tmp_path / "coverallsData.json"
    path.write_text("{}")
    session = _Session(_Response(200, {"error": True, "message": "Bad token"}))

    with pytest.raises(UploadError, match="Bad token"):
        RequestsCoverallsUploader(session=session).upload(path)


def test_uploader_raises_on_http_error_without_json(tmp_path):
    path = tmp_path / "coverallsData.json"
    path.write_text("{}")
    session = _Session(_Response(502, ValueError("no json"), text="Bad Gateway"))

    with pytest.raises(UploadError, match="Bad Gateway"):
        RequestsCoverallsUploader(session=session).upload(path)


def test_uploader_wraps_transport_errors(tmp_path):
    path = tmp_path / "coverallsData.json"
    path.write_text("{}")
    session = _Session(exc=requests.ConnectionError("refused"))

    with pytest.raises(UploadError, match="refused"):
        RequestsCoverallsUploader(session=session).upload(path)
