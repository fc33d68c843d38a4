import asyncio
import json

import pytest
from mcp.server.fastmcp.exceptions import ToolError

from sforg_mcp import config
from sforg_mcp.main import main
from sforg_mcp.mcp.server import create_server, parse_docstring, tool_catalog, tool_registry

SHARED_TOOLS = {
    "sf_org_login", "sf_org_logout", "sf_org_list", "sf_org_display", "sf_query", "sf_search",
    "sf_describe", "sf_list_objects", "sf_create_record", "sf_update_record", "sf_delete_record",
    "sf_get_record", "sf_apex_run", "sf_apex_test", "sf_apex_log", "sf_list_metadata",
    "sf_org_limits", "sf_rest_api", "sf_generate_manifest",
}
CLI_ONLY = {
    "sf_deploy", "sf_deploy_report", "sf_retrieve", "sf_bulk_import", "sf_bulk_upsert",
    "sf_bulk_delete", "sf_bulk_export", "sf_bulk_results",
}


def _tool_names(server):
    return {tool.name for tool in asyncio.run(server.list_tools())}


def test_rest_backend_tools():
    assert _tool_names(create_server(config.REST)) == SHARED_TOOLS


def test_cli_backend_tools():
    assert _tool_names(create_server(config.CLI)) == SHARED_TOOLS | CLI_ONLY


def test_unknown_backend():
    with pytest.raises(ValueError, match="Unknown backend"):
        create_server("soap")


def test_registry_schema_from_docstring():
    create_server(config.REST)
    entry = tool_registry[config.REST]["sf_query"]
    assert entry["description"] == "Execute a SOQL query. Returns matching records in JSON."

    schema = entry["schema"].model_json_schema()
    assert schema["required"] == ["query"]
    assert schema["properties"]["tooling"]["description"] == "Query the Tooling API instead"
    assert schema["properties"]["org"]["description"] == "Org alias"


def test_parse_docstring():
    def tool(alias: str):
        """Do a thing.

        Args:
            alias: Which org
        """

    assert parse_docstring(tool) == ("Do a thing.", {"alias": "Which org"})
    assert parse_docstring(lambda: None) == ("No description available.", {})


def test_tool_errors_are_reported():
    server = create_server(config.REST)
    with pytest.raises(ToolError, match="No Salesforce orgs connected"):
        asyncio.run(server.call_tool("sf_org_limits", {}))


def test_unknown_tool_is_reported():
    server = create_server(config.CLI)
    with pytest.raises(ToolError, match="Unknown tool"):
        asyncio.run(server.call_tool("sf_does_not_exist", {}))


def test_list_tools_cli(capsys):
    assert main(["--backend", "cli", "--list-tools"]) == 0
    catalog = json.loads(capsys.readouterr().out)
    assert {tool["name"] for tool in catalog} == SHARED_TOOLS | CLI_ONLY
    assert catalog == tool_catalog(config.CLI)


def test_main_without_transport_prints_help():
    assert main([]) == 2
