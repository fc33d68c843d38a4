"""Record, query and org-resource tools for the REST backend."""
import logging
from typing import Any, Dict, Optional

from sforg_mcp import config
from sforg_mcp.mcp.server import register_tool, to_json
from sforg_mcp.services.salesforce import parse_body, sf_api, sf_raw_api

logger = logging.getLogger(__name__)


@register_tool(config.REST)
def sf_query(query: str, org: Optional[str] = None, tooling: bool = False) -> str:
    """Execute a SOQL query. Returns matching records in JSON.

    Args:
        query: SOQL query (e.g. "SELECT Id, Name FROM Account LIMIT 10")
        org: Org alias
        tooling: Query the Tooling API instead
    """
    prefix = "/tooling" if tooling else ""
    return to_json(sf_api(org, f"{prefix}/query", params={"q": query}))


@register_tool(config.REST)
def sf_search(query: str, org: Optional[str] = None) -> str:
    """Execute a SOSL text search across objects.

    Args:
        query: SOSL query (e.g. "FIND {Acme} IN ALL FIELDS")
        org: Org alias
    """
    return to_json(sf_api(org, "/search", params={"q": query}))


@register_tool(config.REST)
def sf_describe(sobject: str, org: Optional[str] = None) -> str:
    """Describe an SObject: returns fields, types, relationships, picklist values.

    Args:
        sobject: API name (e.g. Account, Opportunity, Custom__c)
        org: Org alias
    """
    return to_json(sf_api(org, f"/sobjects/{sobject}/describe"))


@register_tool(config.REST)
def sf_list_objects(org: Optional[str] = None) -> str:
    """List all SObjects available in the org.

    Args:
        org: Org alias
    """
    return to_json(sf_api(org, "/sobjects"))


@register_tool(config.REST)
def sf_create_record(sobject: str, values: Dict[str, Any], org: Optional[str] = None) -> str:
    """Create a new record.

    Args:
        sobject: SObject API name
        values: Field values as JSON (e.g. {"Name": "Acme", "Industry": "Technology"})
        org: Org alias
    """
    return to_json(sf_api(org, f"/sobjects/{sobject}", method="POST", body=values))


@register_tool(config.REST)
def sf_update_record(sobject: str, record_id: str, values: Dict[str, Any], org: Optional[str] = None) -> str:
    """Update an existing record.

    Args:
        sobject: SObject API name
        record_id: Record ID
        values: Field values to update
        org: Org alias
    """
    sf_api(org, f"/sobjects/{sobject}/{record_id}", method="PATCH", body=values)
    return to_json({"success": True, "id": record_id}, indent=None)


@register_tool(config.REST)
def sf_delete_record(sobject: str, record_id: str, org: Optional[str] = None) -> str:
    """Delete a record.

    Args:
        sobject: SObject API name
        record_id: Record ID
        org: Org alias
    """
    sf_api(org, f"/sobjects/{sobject}/{record_id}", method="DELETE")
    return to_json({"success": True, "deleted": record_id}, indent=None)


@register_tool(config.REST)
def sf_get_record(sobject: str, record_id: str, fields: Optional[str] = None, org: Optional[str] = None) -> str:
    """Retrieve a single record by ID.

    Args:
        sobject: SObject API name
        record_id: Record ID
        fields: Comma-separated field names (optional, returns all if omitted)
        org: Org alias
    """
    params = {"fields": fields} if fields else None
    return to_json(sf_api(org, f"/sobjects/{sobject}/{record_id}", params=params))


@register_tool(config.REST)
def sf_org_limits(org: Optional[str] = None) -> str:
    """Show API request limits and usage.

    Args:
        org: Org alias
    """
    return to_json(sf_api(org, "/limits"))


@register_tool(config.REST)
def sf_rest_api(
    endpoint: str,
    method: str = "GET",
    body: Optional[Dict[str, Any]] = None,
    org: Optional[str] = None,
) -> str:
    """Make a raw REST API request. Use for any endpoint not covered by other tools.

    The response body is returned whatever the HTTP status.

    Args:
        endpoint: Full API path (e.g. /services/data/v62.0/sobjects/Account/describe)
        method: HTTP method: GET, POST, PATCH, PUT or DELETE (default: GET)
        body: Request body for POST/PATCH/PUT
        org: Org alias
    """
    method = (method or "GET").upper()
    if method not in ("GET", "POST", "PATCH", "PUT", "DELETE"):
        raise ValueError(f"Unsupported HTTP method: {method}")
    if not endpoint.startswith("/"):
        endpoint = f"/{endpoint}"
    response = sf_raw_api(org, endpoint, method=method, body=body)
    logger.info("%s %s -> HTTP %s", method, endpoint, response.status_code)
    data = parse_body(response)
    return data if isinstance(data, str) else to_json(data)
