from __future__ import annotations

import io
import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator

import requests
from simple_salesforce import Salesforce
from simple_salesforce.exceptions import SalesforceError
from simple_salesforce.format import format_soql

from apexci.core.catalog import ApexClass
from apexci.core.coverage import CoverageRecord
from apexci.core.deploy import (
    TERMINAL_DEPLOY_STATES,
    DeployMessage,
    DeployOptions,
    DeployStatus,
)
from apexci.core.errors import RemoteError
from apexci.core.testrun import (
    QueueStatus,
    TestOutcome,
    TestQueueItem,
    TestResultRecord,
)

logger = logging.getLogger(__name__)


@contextmanager
def _remote(action: str) -> Iterator[None]:
    """Translate SDK and transport errors into RemoteError."""
    try:
        yield
    except SalesforceError as exc:
        raise RemoteError(f"{action} failed: {exc}") from exc
    except requests.RequestException as exc:
        raise RemoteError(f"{action} failed: {exc}") from exc


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class SalesforceAdapter:
    """Adapter around simple-salesforce REST, Tooling and Metadata APIs."""

    def __init__(self, client: Salesforce, *, sandbox: bool = False) -> None:
        """Create an adapter for an authenticated Salesforce client."""
        self.client = client
        self.sandbox = sandbox

    def _query_all(self, soql: str) -> list[dict[str, Any]]:
        logger.debug("SOQL: %s", soql)
        return list(self.client.query_all(soql).get("records", []))

    def _tooling_query_all(self, soql: str) -> list[dict[str, Any]]:
        logger.debug("Tooling SOQL: %s", soql)
        page = self.client.restful("tooling/query/", params={"q": soql}) or {}
        records = list(page.get("records", []))
        while not page.get("done", True) and page.get("nextRecordsUrl"):
            page = self.client.query_more(page["nextRecordsUrl"], identifier_is_url=True)
            records.extend(page.get("records", []))
        return records

    def list_apex_classes(self) -> list[ApexClass]:
        """Return every ApexClass in the org."""
        with _remote("ApexClass query"):
            rows = self._query_all("SELECT Id, Name, Body FROM ApexClass")
        return [
            ApexClass(id=row["Id"], name=row["Name"], body=row.get("Body") or "")
            for row in rows
        ]

    def deploy(self, package: bytes, options: DeployOptions) -> str:
        """Submit a zipped metadata package and return the deploy id."""
        with _remote("Deploy"):
            res = self.client.deploy(
                io.BytesIO(package),
                sandbox=self.sandbox,
                checkOnly=options.check_only,
                rollbackOnError=options.rollback_on_error,
                ignoreWarnings=options.ignore_warnings,
                allowMissingFiles=options.allow_missing_files,
                autoUpdatePackage=options.auto_update_package,
            )
        deploy_id = (res or {}).get("asyncId")
        if not deploy_id:
            raise RemoteError(f"Deploy was not accepted: {res!r}")
        return deploy_id

    def check_deploy_status(self, deploy_id: str) -> DeployStatus:
        """Return the current status of a deploy."""
        with _remote("Deploy status check"):
            res = self.client.checkDeployStatus(deploy_id) or {}

        state = res.get("state") or "Unknown"
        detail = res.get("deployment_detail") or {}
        errors = tuple(
            DeployMessage(
                component=str(err.get("type") or ""),
                file=err.get("file"),
                problem=err.get("message"),
            )
            for err in _as_list(detail.get("errors"))
            if isinstance(err, dict)
        )
        return DeployStatus(
            id=deploy_id,
            status=state,
            done=state in TERMINAL_DEPLOY_STATES,
            state_detail=res.get("state_detail"),
            components_total=_as_int(detail.get("total_count")),
            components_deployed=_as_int(detail.get("deployed_count")),
            components_failed=_as_int(detail.get("failed_count")),
            errors=errors,
        )

    def run_tests_asynchronous(self, class_ids: list[str]) -> str:
        """Start a Tooling API test run and return the AsyncApexJob id."""
        with _remote("Test run submission"):
            run_id = self.client.restful(
                "tooling/runTestsAsynchronous/",
                method="POST",
                data=json.dumps({"classids": ",".join(class_ids)}),
            )
        if not run_id or not isinstance(run_id, str):
            raise RemoteError(f"Unexpected test run response: {run_id!r}")
        return run_id

    def get_queue_items(self, run_id: str) -> list[TestQueueItem]:
        """Return the ApexTestQueueItem rows of a run."""
        soql = format_soql(
            "SELECT Id, Status, ApexClassId, ExtendedStatus "
            "FROM ApexTestQueueItem WHERE ParentJobId = {}",
            run_id,
        )
        with _remote("ApexTestQueueItem query"):
            rows = self._query_all(soql)
        return [
            TestQueueItem(
                id=row["Id"],
                status=QueueStatus.from_remote(row.get("Status")),
                class_id=row.get("ApexClassId") or "",
                extended_status=row.get("ExtendedStatus") or "",
            )
            for row in rows
        ]

    def get_test_results(self, run_id: str) -> list[TestResultRecord]:
        """Return the ApexTestResult rows of a run."""
        soql = format_soql(
            "SELECT ApexClassId, MethodName, Outcome, Message, StackTrace "
            "FROM ApexTestResult WHERE AsyncApexJobId = {}",
            run_id,
        )
        with _remote("ApexTestResult query"):
            rows = self._query_all(soql)
        return [
            TestResultRecord(
                class_id=row.get("ApexClassId") or "",
                method_name=row.get("MethodName") or "",
                outcome=TestOutcome.from_remote(row.get("Outcome")),
                message=row.get("Message"),
                stack_trace=row.get("StackTrace"),
            )
            for row in rows
        ]

    def get_code_coverage(self) -> list[CoverageRecord]:
        """Return the ApexCodeCoverage rows of the org."""
        with _remote("ApexCodeCoverage query"):
            rows = self._tooling_query_all(
                "SELECT ApexClassOrTriggerId, Coverage FROM ApexCodeCoverage"
            )
        records: list[CoverageRecord] = []
        for row in rows:
            coverage = row.get("Coverage") or {}
            records.append(
                CoverageRecord(
                    class_id=row.get("ApexClassOrTriggerId") or "",
                    covered_lines=tuple(coverage.get("coveredLines") or ()),
                    uncovered_lines=tuple(coverage.get("uncoveredLines") or ()),
                )
            )
        return records
