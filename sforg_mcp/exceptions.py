"""Errors raised by the Salesforce services and tools.

Tools let these propagate; the MCP layer reports them as error-flagged results.
"""
from typing import Any, Optional


class SalesforceToolError(Exception):
    """Base class for every error a tool can surface."""


class NoOrgConnectedError(SalesforceToolError):
    def __init__(self):
        super().__init__("No Salesforce orgs connected. Use the sf_org_login tool to authenticate.")


class OrgNotFoundError(SalesforceToolError):
    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f'Org "{alias}" not found')


class SessionExpiredError(SalesforceToolError):
    def __init__(self):
        super().__init__("Session expired. Re-authenticate with sf_org_login.")


class LoginError(SalesforceToolError):
    """The browser login did not produce credentials."""


class SalesforceApiError(SalesforceToolError):
    """A REST call returned a non-2xx status.

    The message is the response body (pretty JSON when the body is JSON).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, content: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.content = content


class SfCliNotFoundError(SalesforceToolError):
    def __init__(self):
        super().__init__(
            "Salesforce CLI ('sf') not found. Install it or set SF_CLI_PATH to its location."
        )


class SfCliError(SalesforceToolError):
    """The sf CLI exited with an error. ``payload`` holds its JSON output when there was any."""

    def __init__(self, message: str, payload: Any = None, returncode: Optional[int] = None):
        super().__init__(message)
        self.payload = payload
        self.returncode = returncode
