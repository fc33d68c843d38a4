"""Tools for the CLI backend: each one maps to an ``sf`` command and passes its JSON through.

Authentication, token refresh and org aliases are owned by the CLI itself.
"""
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from sforg_mcp import config
from sforg_mcp.mcp.server import register_tool, to_json
from sforg_mcp.services.sf_cli import flag_list, format_values, run_sf, split_csv

DEPLOY_TEST_LEVELS = ("NoTestRun", "RunSpecifiedTests", "RunLocalTests", "RunAllTestsInOrg")
APEX_TEST_LEVELS = ("RunSpecifiedTests", "RunLocalTests", "RunAllTestsInOrg")

RECORD_ID = re.compile(r"^[A-Za-z0-9]{15,18}$")


def _timeout_for(wait_minutes: Optional[int]) -> float:
    """Subprocess timeout that outlasts the CLI's own --wait."""
    if not wait_minutes:
        return config.SF_CLI_TIMEOUT
    return max(config.SF_CLI_TIMEOUT, wait_minutes * 60 + 60)


def _existing_file(path: str) -> str:
    resolved = Path(path).expanduser()
    if not resolved.is_file():
        raise ValueError(f"File not found: {path}")
    return str(resolved)


def _project_dir(project_dir: Optional[str]) -> Optional[str]:
    if not project_dir:
        return None
    resolved = Path(project_dir).expanduser()
    if not resolved.is_dir():
        raise ValueError(f"Project directory not found: {project_dir}")
    return str(resolved)


def _check_test_level(test_level: Optional[str], allowed) -> None:
    if test_level and test_level not in allowed:
        raise ValueError(f"test_level must be one of: {', '.join(allowed)}")


# =============================================================================
# ORGS
# =============================================================================

@register_tool(config.CLI)
def sf_org_login(alias: str, login_url: Optional[str] = None) -> str:
    """Connect a Salesforce org through the sf CLI's browser login. Use login_url 'https://test.salesforce.com' for sandboxes.

    Args:
        alias: Short name for this org (e.g. 'prod', 'dev', 'staging')
        login_url: https://login.salesforce.com (production, default) or https://test.salesforce.com (sandbox)
    """
    args = ["org", "login", "web", "--alias", alias,
            "--instance-url", login_url or config.DEFAULT_LOGIN_URL]
    return to_json(run_sf(args, timeout=config.LOGIN_TIMEOUT + 30))


@register_tool(config.CLI)
def sf_org_logout(alias: str) -> str:
    """Log the sf CLI out of an org and forget its alias.

    Args:
        alias: Org alias to disconnect
    """
    return to_json(run_sf(["org", "logout", "--no-prompt"], target_org=alias))


@register_tool(config.CLI)
def sf_org_list() -> str:
    """List all orgs the sf CLI is authenticated to."""
    return to_json(run_sf(["org", "list"]))


@register_tool(config.CLI)
def sf_org_display(org: Optional[str] = None) -> str:
    """Show detailed information about an org (username, instance URL, API version).

    Args:
        org: Org alias (defaults to the CLI's target org)
    """
    return to_json(run_sf(["org", "display"], target_org=org))


@register_tool(config.CLI)
def sf_org_limits(org: Optional[str] = None) -> str:
    """Show API request limits and usage.

    Args:
        org: Org alias
    """
    return to_json(run_sf(["org", "list", "limits"], target_org=org))


# =============================================================================
# DATA
# =============================================================================

@register_tool(config.CLI)
def sf_query(query: str, org: Optional[str] = None, tooling: bool = False) -> str:
    """Execute a SOQL query. Returns matching records in JSON.

    Args:
        query: SOQL query (e.g. "SELECT Id, Name FROM Account LIMIT 10")
        org: Org alias
        tooling: Query the Tooling API instead
    """
    args = ["data", "query", "--query", query]
    if tooling:
        args.append("--use-tooling-api")
    return to_json(run_sf(args, target_org=org))


@register_tool(config.CLI)
def sf_search(query: str, org: Optional[str] = None) -> str:
    """Execute a SOSL text search across objects.

    Args:
        query: SOSL query (e.g. "FIND {Acme} IN ALL FIELDS")
        org: Org alias
    """
    return to_json(run_sf(["data", "search", "--query", query], target_org=org))


@register_tool(config.CLI)
def sf_describe(sobject: str, org: Optional[str] = None) -> str:
    """Describe an SObject: returns fields, types, relationships, picklist values.

    Args:
        sobject: API name (e.g. Account, Opportunity, Custom__c)
        org: Org alias
    """
    return to_json(run_sf(["sobject", "describe", "--sobject", sobject], target_org=org))


@register_tool(config.CLI)
def sf_list_objects(org: Optional[str] = None) -> str:
    """List all SObjects available in the org.

    Args:
        org: Org alias
    """
    return to_json(run_sf(["sobject", "list", "--sobject", "all"], target_org=org))


@register_tool(config.CLI)
def sf_create_record(sobject: str, values: Dict[str, Any], org: Optional[str] = None) -> str:
    """Create a new record.

    Args:
        sobject: SObject API name
        values: Field values as JSON (e.g. {"Name": "Acme", "Industry": "Technology"})
        org: Org alias
    """
    args = ["data", "create", "record", "--sobject", sobject, "--values", format_values(values)]
    return to_json(run_sf(args, target_org=org))


@register_tool(config.CLI)
def sf_update_record(sobject: str, record_id: str, values: Dict[str, Any], org: Optional[str] = None) -> str:
    """Update an existing record.

    Args:
        sobject: SObject API name
        record_id: Record ID
        values: Field values to update
        org: Org alias
    """
    args = ["data", "update", "record", "--sobject", sobject, "--record-id", record_id,
            "--values", format_values(values)]
    return to_json(run_sf(args, target_org=org))


@register_tool(config.CLI)
def sf_delete_record(sobject: str, record_id: str, org: Optional[str] = None) -> str:
    """Delete a record.

    Args:
        sobject: SObject API name
        record_id: Record ID
        org: Org alias
    """
    args = ["data", "delete", "record", "--sobject", sobject, "--record-id", record_id]
    return to_json(run_sf(args, target_org=org))


@register_tool(config.CLI)
def sf_get_record(sobject: str, record_id: str, fields: Optional[str] = None, org: Optional[str] = None) -> str:
    """Retrieve a single record by ID.

    Args:
        sobject: SObject API name
        record_id: Record ID
        fields: Comma-separated field names (optional, returns all if omitted)
        org: Org alias
    """
    field_names = split_csv(fields)
    if field_names:
        if not RECORD_ID.match(record_id):
            raise ValueError(f"Invalid record id: {record_id}")
        # `data get record` has no field selection
        query = f"SELECT {', '.join(field_names)} FROM {sobject} WHERE Id = '{record_id}'"
        return to_json(run_sf(["data", "query", "--query", query], target_org=org))
    args = ["data", "get", "record", "--sobject", sobject, "--record-id", record_id]
    return to_json(run_sf(args, target_org=org))


@register_tool(config.CLI)
def sf_rest_api(
    endpoint: str,
    method: str = "GET",
    body: Optional[Dict[str, Any]] = None,
    org: Optional[str] = None,
) -> str:
    """Make a raw REST API request through the sf CLI. Use for any endpoint not covered by other tools.

    Args:
        endpoint: API path (e.g. /services/data/v62.0/sobjects/Account/describe)
        method: HTTP method: GET, POST, PATCH, PUT or DELETE (default: GET)
        body: Request body for POST/PATCH/PUT
        org: Org alias
    """
    method = (method or "GET").upper()
    if method not in ("GET", "POST", "PATCH", "PUT", "DELETE"):
        raise ValueError(f"Unsupported HTTP method: {method}")
    args = ["api", "request", "rest", endpoint, "--method", method]
    if body is not None:
        args.extend(["--body", to_json(body, indent=None)])
    result = run_sf(args, target_org=org, json_output=False)
    return result if isinstance(result, str) else to_json(result)


# =============================================================================
# APEX
# =============================================================================

@register_tool(config.CLI)
def sf_apex_run(code: str, org: Optional[str] = None) -> str:
    """Execute anonymous Apex code.

    Args:
        code: Apex code to execute
        org: Org alias
    """
    fd, path = tempfile.mkstemp(suffix=".apex", prefix="sforg-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(code)
        return to_json(run_sf(["apex", "run", "--file", path], target_org=org))
    finally:
        os.unlink(path)


@register_tool(config.CLI)
def sf_apex_test(
    class_names: Optional[str] = None,
    test_level: Optional[str] = None,
    wait: int = 10,
    org: Optional[str] = None,
) -> str:
    """Run Apex tests and wait for the results.

    Args:
        class_names: Comma-separated test class names
        test_level: RunSpecifiedTests, RunLocalTests or RunAllTestsInOrg
        wait: Minutes to wait for the run to finish
        org: Org alias
    """
    classes = split_csv(class_names)
    if not classes and not test_level:
        return to_json({"error": "Provide class_names or test_level"}, indent=None)
    _check_test_level(test_level, APEX_TEST_LEVELS)

    args = ["apex", "run", "test", *flag_list("--class-names", classes),
            "--test-level", test_level or "RunSpecifiedTests", "--wait", str(wait)]
    return to_json(run_sf(args, target_org=org, timeout=_timeout_for(wait)))


@register_tool(config.CLI)
def sf_apex_log(action: str = "list", log_id: Optional[str] = None, org: Optional[str] = None) -> str:
    """List or retrieve Apex debug logs.

    Args:
        action: 'list' recent logs or 'get' a specific log body
        log_id: Log ID (for 'get' action)
        org: Org alias
    """
    if action == "get" and log_id:
        return to_json(run_sf(["apex", "get", "log", "--log-id", log_id], target_org=org))
    return to_json(run_sf(["apex", "list", "log"], target_org=org))


# =============================================================================
# METADATA
# =============================================================================

@register_tool(config.CLI)
def sf_list_metadata(metadata_type: str, org: Optional[str] = None) -> str:
    """List metadata components of a type (ApexClass, ApexTrigger, CustomObject, Flow, etc.).

    Args:
        metadata_type: Metadata API type (e.g. ApexClass, ApexTrigger, CustomObject, Flow)
        org: Org alias
    """
    return to_json(run_sf(["org", "list", "metadata", "--metadata-type", metadata_type], target_org=org))


@register_tool(config.CLI)
def sf_deploy(
    source_dirs: Optional[List[str]] = None,
    metadata: Optional[List[str]] = None,
    manifest: Optional[str] = None,
    test_level: Optional[str] = None,
    tests: Optional[List[str]] = None,
    dry_run: bool = False,
    ignore_conflicts: bool = False,
    wait: int = 33,
    project_dir: Optional[str] = None,
    org: Optional[str] = None,
) -> str:
    """Deploy source or metadata to an org (sf project deploy start).

    Give at least one of source_dirs, metadata or manifest. With wait=0 the
    deploy is queued and its job id returned; check it with sf_deploy_report.

    Args:
        source_dirs: Local source paths to deploy (e.g. ["force-app/main/default/classes"])
        metadata: Metadata components (e.g. ["ApexClass:InvoiceService", "CustomObject"])
        manifest: Path to a package.xml (see sf_generate_manifest)
        test_level: NoTestRun, RunSpecifiedTests, RunLocalTests or RunAllTestsInOrg
        tests: Apex test classes for RunSpecifiedTests
        dry_run: Validate only; nothing is saved in the org
        ignore_conflicts: Overwrite changes made in the org since the last retrieve
        wait: Minutes to wait for the deploy to finish
        project_dir: Salesforce DX project directory to run from
        org: Org alias
    """
    if not (source_dirs or metadata or manifest):
        raise ValueError("Provide source_dirs, metadata or manifest")
    _check_test_level(test_level, DEPLOY_TEST_LEVELS)

    args = ["project", "deploy", "start",
            *flag_list("--source-dir", source_dirs),
            *flag_list("--metadata", metadata)]
    if manifest:
        args.extend(["--manifest", _existing_file(manifest)])
    if test_level:
        args.extend(["--test-level", test_level])
    args.extend(flag_list("--tests", tests))
    if dry_run:
        args.append("--dry-run")
    if ignore_conflicts:
        args.append("--ignore-conflicts")
    if wait:
        args.extend(["--wait", str(wait)])
    else:
        args.append("--async")
    return to_json(run_sf(args, target_org=org, cwd=_project_dir(project_dir), timeout=_timeout_for(wait)))


@register_tool(config.CLI)
def sf_deploy_report(job_id: str, project_dir: Optional[str] = None, org: Optional[str] = None) -> str:
    """Check the status of a deploy started earlier.

    Args:
        job_id: Deploy job ID returned by sf_deploy
        project_dir: Salesforce DX project directory to run from
        org: Org alias
    """
    args = ["project", "deploy", "report", "--job-id", job_id]
    return to_json(run_sf(args, target_org=org, cwd=_project_dir(project_dir)))


@register_tool(config.CLI)
def sf_retrieve(
    source_dirs: Optional[List[str]] = None,
    metadata: Optional[List[str]] = None,
    manifest: Optional[str] = None,
    package_names: Optional[List[str]] = None,
    output_dir: Optional[str] = None,
    wait: int = 33,
    project_dir: Optional[str] = None,
    org: Optional[str] = None,
) -> str:
    """Retrieve metadata from an org into local source (sf project retrieve start).

    Give at least one of source_dirs, metadata, manifest or package_names.

    Args:
        source_dirs: Local source paths to refresh from the org
        metadata: Metadata components (e.g. ["ApexClass:InvoiceService", "Flow"])
        manifest: Path to a package.xml (see sf_generate_manifest)
        package_names: Installed or unlocked package names to retrieve
        output_dir: Directory for retrieved files (allows retrieving outside a project)
        wait: Minutes to wait for the retrieve to finish
        project_dir: Salesforce DX project directory to run from
        org: Org alias
    """
    if not (source_dirs or metadata or manifest or package_names):
        raise ValueError("Provide source_dirs, metadata, manifest or package_names")

    args = ["project", "retrieve", "start",
            *flag_list("--source-dir", source_dirs),
            *flag_list("--metadata", metadata),
            *flag_list("--package-name", package_names)]
    if manifest:
        args.extend(["--manifest", _existing_file(manifest)])
    if output_dir:
        args.extend(["--output-dir", str(Path(output_dir).expanduser())])
    args.extend(["--wait", str(wait)])
    return to_json(run_sf(args, target_org=org, cwd=_project_dir(project_dir), timeout=_timeout_for(wait)))


# =============================================================================
# BULK DATA
# =============================================================================

@register_tool(config.CLI)
def sf_bulk_import(sobject: str, file: str, wait: int = 10, line_ending: Optional[str] = None,
                   org: Optional[str] = None) -> str:
    """Insert records from a CSV file with Bulk API 2.0.

    Args:
        sobject: SObject API name
        file: CSV file whose header row holds field API names
        wait: Minutes to wait for the job; 0 returns the job id immediately
        line_ending: LF or CRLF (defaults to the platform's)
        org: Org alias
    """
    args = ["data", "import", "bulk", "--sobject", sobject, "--file", _existing_file(file),
            "--wait", str(wait)]
    if line_ending:
        args.extend(["--line-ending", line_ending.upper()])
    return to_json(run_sf(args, target_org=org, timeout=_timeout_for(wait)))


@register_tool(config.CLI)
def sf_bulk_upsert(sobject: str, file: str, external_id: str = "Id", wait: int = 10,
                   org: Optional[str] = None) -> str:
    """Upsert records from a CSV file with Bulk API 2.0.

    Args:
        sobject: SObject API name
        file: CSV file whose header row holds field API names
        external_id: External ID field used to match existing records
        wait: Minutes to wait for the job; 0 returns the job id immediately
        org: Org alias
    """
    args = ["data", "upsert", "bulk", "--sobject", sobject, "--file", _existing_file(file),
            "--external-id", external_id, "--wait", str(wait)]
    return to_json(run_sf(args, target_org=org, timeout=_timeout_for(wait)))


@register_tool(config.CLI)
def sf_bulk_delete(sobject: str, file: str, hard_delete: bool = False, wait: int = 10,
                   org: Optional[str] = None) -> str:
    """Delete the records listed (by Id) in a CSV file with Bulk API 2.0.

    Args:
        sobject: SObject API name
        file: CSV file with an Id column
        hard_delete: Skip the recycle bin
        wait: Minutes to wait for the job; 0 returns the job id immediately
        org: Org alias
    """
    args = ["data", "delete", "bulk", "--sobject", sobject, "--file", _existing_file(file),
            "--wait", str(wait)]
    if hard_delete:
        args.append("--hard-delete")
    return to_json(run_sf(args, target_org=org, timeout=_timeout_for(wait)))


@register_tool(config.CLI)
def sf_bulk_export(query: str, output_file: str, result_format: str = "csv", all_rows: bool = False,
                   wait: int = 10, org: Optional[str] = None) -> str:
    """Export query results to a file with Bulk API 2.0.

    Args:
        query: SOQL query selecting the records to export
        output_file: Destination file path
        result_format: csv or json
        all_rows: Include deleted and archived records
        wait: Minutes to wait for the job
        org: Org alias
    """
    if result_format not in ("csv", "json"):
        raise ValueError("result_format must be 'csv' or 'json'")
    args = ["data", "export", "bulk", "--query", query,
            "--output-file", str(Path(output_file).expanduser()),
            "--result-format", result_format, "--wait", str(wait)]
    if all_rows:
        args.append("--all-rows")
    return to_json(run_sf(args, target_org=org, timeout=_timeout_for(wait)))


@register_tool(config.CLI)
def sf_bulk_results(job_id: str, org: Optional[str] = None) -> str:
    """Get the results of a bulk ingest job (successful, failed and unprocessed records).

    Args:
        job_id: Bulk job ID
        org: Org alias
    """
    return to_json(run_sf(["data", "bulk", "results", "--job-id", job_id], target_org=org))
