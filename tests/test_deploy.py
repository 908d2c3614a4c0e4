import io
import zipfile

import pytest

from apexci.core.deploy import (
    DeployMessage,
    DeployOptions,
    DeployStatus,
    deploy_from_directory,
    zip_package,
)
from apexci.core.errors import DeployError


class _DeployAdapter:
    def __init__(self, statuses: list[DeployStatus]):
        self.statuses = list(statuses)
        self.package: bytes | None = None
        self.options: DeployOptions | None = None
        self.checks = 0

    def deploy(self, package: bytes, options: DeployOptions) -> str:
        self.package = package
        self.options = options
        return "0Af000"

    def check_deploy_status(self, deploy_id: str) -> DeployStatus:
        assert deploy_id == "0Af000"
        self.checks += 1
        return self.statuses.pop(0)


def test_zip_package_rejects_missing_directory(tmp_path):
    with pytest.raises(DeployError, match="not found"):
        zip_package(tmp_path / "nope")


def test_zip_package_requires_package_xml(tmp_path):
    with pytest.raises(DeployError, match="package.xml"):
        zip_package(tmp_path)


def test_zip_package_uses_paths_relative_to_source_dir(project_dir):
    with zipfile.ZipFile(io.BytesIO(zip_package(project_dir))) as zf:
        names = set(zf.namelist())

    assert "package.xml" in names
    assert "classes/A.cls" in names
    assert "classes/A.cls-meta.xml" in names


def test_deploy_polls_until_succeeded(project_dir):
    adapter = _DeployAdapter(
        [
            DeployStatus(id="0Af000", status="InProgress"),
            DeployStatus(
                id="0Af000",
                status="Succeeded",
                done=True,
                components_total=3,
                components_deployed=3,
            ),
        ]
    )
    sleeps: list[float] = []
    polled: list[DeployStatus] = []

    result = deploy_from_directory(
        adapter,
        project_dir,
        poll_interval=2,
        on_poll=polled.append,
        sleep=sleeps.append,
    )

    assert result.success is True
    assert result.status == "Succeeded"
    assert result.components_deployed == 3
    assert adapter.checks == 2
    assert sleeps == [2]
    assert [s.status for s in polled] == ["InProgress"]
    assert adapter.options == DeployOptions(rollback_on_error=True)
    assert adapter.package and adapter.package.startswith(b"PK")


def test_deploy_failure_is_returned_not_raised(project_dir):
    error = DeployMessage(component="ApexClass", file="classes/A.cls", problem="boom")
    adapter = _DeployAdapter(
        [
            DeployStatus(
                id="0Af000",
                status="Failed",
                done=True,
                components_failed=1,
                errors=(error,),
            )
        ]
    )

    result = deploy_from_directory(adapter, project_dir, sleep=lambda s: None)

    assert result.success is False
    assert result.status == "Failed"
    assert result.errors == (error,)


def test_deploy_treats_partial_success_as_failure(project_dir):
    adapter = _DeployAdapter([DeployStatus(id="0Af000", status="SucceededPartial")])

    result = deploy_from_directory(adapter, project_dir, sleep=lambda s: None)

    assert result.done is True
    assert result.success is False
