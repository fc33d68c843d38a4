"""REST calls against a connected org, with a single refresh-and-retry on 401."""
import json
import logging
from typing import Any, Dict, Optional

import requests

from sforg_mcp import config
from sforg_mcp.exceptions import SalesforceApiError
from sforg_mcp.services.credentials import OrgCredentials, get_org
from sforg_mcp.services.oauth import refresh_access_token

logger = logging.getLogger(__name__)


def data_path(path: str = "") -> str:
    """Full path of a REST resource under the configured API version."""
    return f"/services/data/v{config.API_VERSION}{path}"


def _send(
    creds: OrgCredentials,
    token: str,
    method: str,
    full_path: str,
    body: Any = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    merged = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    merged.update(headers or {})
    if body is not None and not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    logger.debug("%s %s%s", method, creds.instance_url, full_path)
    return requests.request(
        method,
        f"{creds.instance_url}{full_path}",
        headers=merged,
        params=params,
        data=body,
        timeout=config.HTTP_TIMEOUT,
    )


def sf_raw_api(
    org: Optional[str],
    full_path: str,
    method: str = "GET",
    body: Any = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    """Call ``{instanceUrl}{full_path}`` and return the response unchecked.

    A 401 triggers one token refresh (when a refresh token is stored) and one retry.
    """
    alias, creds = get_org(org)
    response = _send(creds, creds.access_token, method, full_path, body, params, headers)
    if response.status_code == 401 and creds.refresh_token:
        token = refresh_access_token(alias, creds)
        response = _send(creds, token, method, full_path, body, params, headers)
    return response


def parse_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def sf_api(
    org: Optional[str],
    path: str,
    method: str = "GET",
    body: Any = None,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """Call a versioned data API path (``/query``, ``/sobjects/...``) and decode the JSON result.

    204 responses become ``{"success": True}``; any non-2xx status raises
    :class:`SalesforceApiError` with the response body as message.
    """
    response = sf_raw_api(org, data_path(path), method, body, params, headers)
    if response.status_code == 204:
        return {"success": True}
    data = parse_body(response)
    if not response.ok:
        message = json.dumps(data, indent=2) if not isinstance(data, str) else data
        raise SalesforceApiError(message, status_code=response.status_code, content=data)
    return data
