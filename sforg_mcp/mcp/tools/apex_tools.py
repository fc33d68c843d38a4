"""Apex execution, test, debug log and Tooling metadata tools for the REST backend."""
from typing import Optional

from sforg_mcp import config
from sforg_mcp.exceptions import SalesforceApiError
from sforg_mcp.mcp.server import register_tool, to_json
from sforg_mcp.services.salesforce import data_path, sf_api, sf_raw_api
from sforg_mcp.services.sf_cli import split_csv

TEST_LEVELS = ("RunSpecifiedTests", "RunLocalTests", "RunAllTestsInOrg")

APEX_LOG_QUERY = (
    "SELECT Id, LogLength, Request, Operation, Application, Status, StartTime, "
    "DurationMilliseconds FROM ApexLog ORDER BY StartTime DESC LIMIT 20"
)


@register_tool(config.REST)
def sf_apex_run(code: str, org: Optional[str] = None) -> str:
    """Execute anonymous Apex code.

    Args:
        code: Apex code to execute
        org: Org alias
    """
    return to_json(sf_api(org, "/tooling/executeAnonymous", params={"anonymousBody": code}))


@register_tool(config.REST)
def sf_apex_test(
    class_names: Optional[str] = None,
    test_level: Optional[str] = None,
    org: Optional[str] = None,
) -> str:
    """Run Apex tests.

    Named classes run synchronously; a test level alone queues an asynchronous run
    and returns its job id.

    Args:
        class_names: Comma-separated test class names
        test_level: RunSpecifiedTests, RunLocalTests or RunAllTestsInOrg
        org: Org alias
    """
    classes = split_csv(class_names)
    if classes:
        tests = [{"className": name} for name in classes]
        return to_json(sf_api(org, "/tooling/runTestsSynchronous", method="POST", body={"tests": tests}))
    if test_level:
        if test_level not in TEST_LEVELS:
            raise ValueError(f"test_level must be one of: {', '.join(TEST_LEVELS)}")
        return to_json(sf_api(
            org, "/tooling/runTestsAsynchronous", method="POST", body={"testLevel": test_level}
        ))
    return to_json({"error": "Provide class_names or test_level"}, indent=None)


@register_tool(config.REST)
def sf_apex_log(action: str = "list", log_id: Optional[str] = None, org: Optional[str] = None) -> str:
    """List or retrieve Apex debug logs.

    Args:
        action: 'list' recent logs or 'get' a specific log body
        log_id: Log ID (for 'get' action)
        org: Org alias
    """
    if action == "get" and log_id:
        response = sf_raw_api(org, data_path(f"/sobjects/ApexLog/{log_id}/Body"))
        if not response.ok:
            raise SalesforceApiError(response.text, status_code=response.status_code)
        return response.text
    return to_json(sf_api(org, "/tooling/query", params={"q": APEX_LOG_QUERY}))


@register_tool(config.REST)
def sf_list_metadata(metadata_type: str, org: Optional[str] = None) -> str:
    """List metadata components (ApexClass, ApexTrigger, CustomObject, Flow, etc.) via Tooling API.

    Args:
        metadata_type: Tooling API type (e.g. ApexClass, ApexTrigger, CustomObject, Flow)
        org: Org alias
    """
    if not metadata_type.replace("_", "").isalnum():
        raise ValueError(f"Invalid metadata type: {metadata_type}")
    query = f"SELECT Id, Name, NamespacePrefix FROM {metadata_type} ORDER BY Name"
    return to_json(sf_api(org, "/tooling/query", params={"q": query}))
