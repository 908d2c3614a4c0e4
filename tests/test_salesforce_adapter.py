import json

import pytest
from simple_salesforce.exceptions import SalesforceMalformedRequest

from apexci.core.adapters.salesforce import SalesforceAdapter
from apexci.core.deploy import DeployOptions
from apexci.core.errors import RemoteError
from apexci.core.testrun import QueueStatus, TestOutcome


class _Client:
    def __init__(self):
        self.queries: list[str] = []
        self.rest_calls: list[tuple] = []
        self.query_all_result: dict = {"records": []}
        self.restful_results: list = []
        self.more_pages: list[dict] = []
        self.deploy_kwargs: dict = {}
        self.deploy_status: dict = {}

    def query_all(self, soql):
        self.queries.append(soql)
        return self.query_all_result

    def restful(self, path, params=None, method="GET", **kwargs):
        self.rest_calls.append((path, params, method, kwargs))
        return self.restful_results.pop(0)

    def query_more(self, url, identifier_is_url=False):
        assert identifier_is_url is True
        return self.more_pages.pop(0)

    def deploy(self, zipfile, sandbox, **kwargs):
        self.deploy_kwargs = {"zip": zipfile.read(), "sandbox": sandbox, **kwargs}
        return {"asyncId": "0Af9", "state": "Queued"}

    def checkDeployStatus(self, async_id):
        return self.deploy_status


def test_list_apex_classes_maps_rows():
    client = _Client()
    client.query_all_result = {
        "records": [{"Id": "01p1", "Name": "A", "Body": "class A {}"}]
    }

    rows = SalesforceAdapter(client).list_apex_classes()

    assert rows[0].id == "01p1"
    assert rows[0].name == "A"
    assert rows[0].body == "class A {}"
    assert client.queries == ["SELECT Id, Name, Body FROM ApexClass"]


def test_deploy_passes_options_and_returns_async_id():
    client = _Client()
    adapter = SalesforceAdapter(client, sandbox=True)

    deploy_id = adapter.deploy(b"PK-zip", DeployOptions(ignore_warnings=True))

    assert deploy_id == "0Af9"
    assert client.deploy_kwargs == {
        "zip": b"PK-zip",
        "sandbox": True,
        "checkOnly": False,
        "rollbackOnError": True,
        "ignoreWarnings": True,
        "allowMissingFiles": False,
        "autoUpdatePackage": False,
    }


def test_check_deploy_status_maps_component_errors():
    client = _Client()
    client.deploy_status = {
        "state": "Failed",
        "state_detail": None,
        "deployment_detail": {
            "total_count": "2",
            "failed_count": "1",
            "deployed_count": "1",
            "errors": [
                {
                    "type": "ApexClass",
                    "file": "classes/A.cls",
                    "status": "Error",
                    "message": "Unexpected token",
                }
            ],
        },
        "unit_test_detail": {},
    }

    status = SalesforceAdapter(client).check_deploy_status("0Af9")

    assert status.done is True
    assert status.status == "Failed"
    assert status.components_total == 2
    assert status.components_failed == 1
    assert status.errors[0].file == "classes/A.cls"
    assert status.errors[0].problem == "Unexpected token"


def test_run_tests_asynchronous_posts_comma_separated_ids():
    client = _Client()
    client.restful_results = ["707RUN"]

    run_id = SalesforceAdapter(client).run_tests_asynchronous(["01p1", "01p2"])

    assert run_id == "707RUN"
    path, _, method, kwargs = client.rest_calls[0]
    assert path == "tooling/runTestsAsynchronous/"
    assert method == "POST"
    assert json.loads(kwargs["data"]) == {"classids": "01p1,01p2"}


def test_queue_items_and_results_are_mapped():
    client = _Client()
    adapter = SalesforceAdapter(client)

    client.query_all_result = {
        "records": [
            {
                "Id": "709",
                "Status": "Processing",
                "ApexClassId": "01p1",
                "ExtendedStatus": None,
            }
        ]
    }
    items = adapter.get_queue_items("707RUN")

    client.query_all_result = {
        "records": [
            {
                "ApexClassId": "01p1",
                "MethodName": "testA",
                "Outcome": "CompileFail",
                "Message": "oops",
                "StackTrace": None,
            }
        ]
    }
    results = adapter.get_test_results("707RUN")

    assert items[0].status is QueueStatus.PROCESSING
    assert items[0].extended_status == ""
    assert results[0].outcome is TestOutcome.COMPILE_FAIL
    assert results[0].message == "oops"
    assert "'707RUN'" in client.queries[0]
    assert "AsyncApexJobId = '707RUN'" in client.queries[1]


def test_code_coverage_follows_tooling_pagination():
    client = _Client()
    client.restful_results = [
        {
            "done": False,
            "nextRecordsUrl": "/services/data/v59.0/tooling/query/01g-2000",
            "records": [
                {
                    "ApexClassOrTriggerId": "01p1",
                    "Coverage": {"coveredLines": [1], "uncoveredLines": [2]},
                }
            ],
        }
    ]
    client.more_pages = [
        {
            "done": True,
            "records": [
                {
                    "ApexClassOrTriggerId": "01p2",
                    "Coverage": {"coveredLines": [], "uncoveredLines": [1]},
                }
            ],
        }
    ]

    records = SalesforceAdapter(client).get_code_coverage()

    assert [r.class_id for r in records] == ["01p1", "01p2"]
    assert records[0].covered_lines == (1,)
    assert records[1].uncovered_lines == (1,)
    path, params, _, _ = client.rest_calls[0]
    assert path == "tooling/query/"
    assert "ApexCodeCoverage" in params["q"]


def test_sdk_errors_become_remote_errors():
    class _Failing(_Client):
        def query_all(self, soql):
            raise SalesforceMalformedRequest(
                "https://x", 400, "query", [{"message": "bad soql"}]
            )

    with pytest.raises(RemoteError, match="ApexClass query failed"):
        SalesforceAdapter(_Failing()).list_apex_classes()
