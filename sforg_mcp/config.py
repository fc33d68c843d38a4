"""Runtime configuration read from the environment (and an optional .env file)."""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

REST = "rest"
CLI = "cli"

BACKEND = os.getenv("SF_MCP_BACKEND", REST).lower()
DEFAULT_ORG = os.getenv("DEFAULT_ORG") or None
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

API_VERSION = os.getenv("SF_API_VERSION", "62.0")
CLIENT_ID = os.getenv("SF_CLIENT_ID", "PlatformCLI")
CALLBACK_PORT = int(os.getenv("SF_CALLBACK_PORT", "1717"))
CALLBACK_PATH = "/OauthRedirect"
OAUTH_SCOPE = "api refresh_token"
DEFAULT_LOGIN_URL = "https://login.salesforce.com"

LOGIN_TIMEOUT = float(os.getenv("SF_LOGIN_TIMEOUT", "120"))
HTTP_TIMEOUT = float(os.getenv("SF_HTTP_TIMEOUT", "30"))

CREDS_DIR = Path(os.getenv("SF_CREDS_DIR", str(Path.home() / ".sf-claude"))).expanduser()
CREDS_FILE = CREDS_DIR / "credentials.json"

SF_CLI_PATH = os.getenv("SF_CLI_PATH") or None
SF_CLI_TIMEOUT = float(os.getenv("SF_CLI_TIMEOUT", "600"))


def callback_url(port: int = None) -> str:
    return f"http://localhost:{port or CALLBACK_PORT}{CALLBACK_PATH}"
