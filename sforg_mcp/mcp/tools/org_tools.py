"""Org connection tools for the REST backend: browser login, logout, listing."""
import logging
from typing import Optional

import requests

from sforg_mcp import config
from sforg_mcp.exceptions import SalesforceToolError
from sforg_mcp.mcp.server import register_tool, to_json
from sforg_mcp.services import credentials
from sforg_mcp.services.oauth import oauth_login
from sforg_mcp.services.salesforce import parse_body, sf_raw_api

logger = logging.getLogger(__name__)


@register_tool(config.REST)
def sf_org_login(alias: str, login_url: Optional[str] = None) -> str:
    """Connect a Salesforce org by opening a browser login window. Use login_url 'https://test.salesforce.com' for sandboxes.

    Args:
        alias: Short name for this org (e.g. 'prod', 'dev', 'staging')
        login_url: https://login.salesforce.com (production, default) or https://test.salesforce.com (sandbox)
    """
    creds = oauth_login(alias, login_url or config.DEFAULT_LOGIN_URL)
    return to_json({
        "success": True,
        "alias": alias,
        "username": creds.username,
        "instanceUrl": creds.instance_url,
        "orgId": creds.org_id,
    })


@register_tool(config.REST)
def sf_org_logout(alias: str) -> str:
    """Disconnect a Salesforce org and remove stored credentials.

    Args:
        alias: Org alias to disconnect
    """
    if not credentials.remove_org(alias):
        return to_json({"error": f'Org "{alias}" not found'}, indent=None)
    return to_json({"success": True, "removed": alias}, indent=None)


@register_tool(config.REST)
def sf_org_list() -> str:
    """List all connected Salesforce orgs with aliases, usernames, and instance URLs."""
    orgs = credentials.load_orgs()
    if not orgs:
        return to_json(
            {"message": "No orgs connected. Use sf_org_login to authenticate a Salesforce org."},
            indent=None,
        )
    return to_json([creds.summary(alias) for alias, creds in orgs.items()])


def _latest_api_version(org: Optional[str]) -> Optional[str]:
    try:
        response = sf_raw_api(org, "/services/data")
    except (SalesforceToolError, requests.RequestException) as e:
        logger.warning("Could not list API versions: %s", e)
        return None
    if not response.ok:
        logger.warning("Could not list API versions: HTTP %s", response.status_code)
        return None
    versions = parse_body(response)
    if isinstance(versions, list) and versions:
        return versions[-1].get("version")
    return None


@register_tool(config.REST)
def sf_org_display(org: Optional[str] = None) -> str:
    """Show detailed information about a connected org.

    Args:
        org: Org alias
    """
    alias, creds = credentials.get_org(org)
    info = creds.summary(alias)
    info["displayName"] = creds.display_name
    info["loginUrl"] = creds.login_url
    latest = _latest_api_version(alias)
    if latest:
        info["latestApiVersion"] = latest
    return to_json(info)
