"""OAuth web-server login with a local callback listener, plus token refresh."""
import html
import logging
import secrets
import threading
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import psutil
import requests

from sforg_mcp import config
from sforg_mcp.exceptions import LoginError, SessionExpiredError
from sforg_mcp.services import credentials
from sforg_mcp.services.credentials import OrgCredentials

logger = logging.getLogger(__name__)

_PAGE = '<html><body style="font-family:system-ui;text-align:center;padding:60px">{}</body></html>'


def _failure_page(detail: str, pre: bool = False) -> bytes:
    tag = "pre" if pre else "p"
    body = f"<h2>Authentication failed</h2><{tag}>{html.escape(detail)}</{tag}>"
    return _PAGE.format(body).encode("utf-8")


def _success_page(alias: str, username: str) -> bytes:
    body = (
        '<h2 style="color:#22c55e">Connected to Salesforce</h2>'
        f'<p style="font-size:18px"><b>{html.escape(username)}</b></p>'
        '<p>Saved as: <code style="background:#f1f5f9;padding:2px 8px;border-radius:4px">'
        f"{html.escape(alias)}</code></p>"
        '<p style="color:#666;margin-top:24px">You can close this window and return to your assistant.</p>'
    )
    return _PAGE.format(body).encode("utf-8")


def build_authorize_url(login_url: str, redirect_uri: str, state: str) -> str:
    params = {
        "response_type": "code",
        "client_id": config.CLIENT_ID,
        "redirect_uri": redirect_uri,
        "scope": config.OAUTH_SCOPE,
        "state": state,
    }
    return f"{login_url}/services/oauth2/authorize?{urlencode(params)}"


def exchange_code(login_url: str, code: str, redirect_uri: str) -> Dict[str, Any]:
    """Trade an authorization code for tokens."""
    response = requests.post(
        f"{login_url}/services/oauth2/token",
        data={
            "grant_type": "authorization_code",
            "client_id": config.CLIENT_ID,
            "redirect_uri": redirect_uri,
            "code": code,
        },
        timeout=config.HTTP_TIMEOUT,
    )
    if not response.ok:
        raise LoginError(response.text)
    return response.json()


def fetch_identity(identity_url: Optional[str], access_token: str) -> Dict[str, Any]:
    """Best-effort identity lookup; an empty dict when it is unavailable."""
    if not identity_url:
        return {}
    try:
        response = requests.get(
            identity_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=config.HTTP_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.warning("Identity lookup failed: %s", e)
        return {}
    if not response.ok:
        logger.warning("Identity lookup returned HTTP %s", response.status_code)
        return {}
    try:
        identity = response.json()
    except ValueError as e:
        logger.warning("Identity lookup returned a non-JSON body: %s", e)
        return {}
    return identity if isinstance(identity, dict) else {}


def _port_owner(port: int) -> Optional[str]:
    """Describe the local process listening on ``port``, if psutil can see it."""
    try:
        for conn in psutil.net_connections(kind="inet"):
            if conn.laddr and conn.laddr.port == port and conn.pid:
                return f"{psutil.Process(conn.pid).name()} (pid {conn.pid})"
    except (psutil.Error, OSError) as e:
        logger.debug("Could not inspect port %s: %s", port, e)
    return None


class _LoginAttempt:
    """Outcome of one login; settles exactly once."""

    def __init__(self):
        self._lock = threading.Lock()
        self._done = threading.Event()
        self.result: Optional[OrgCredentials] = None
        self.error: Optional[Exception] = None

    @property
    def settled(self) -> bool:
        return self._done.is_set()

    def resolve(self, result: OrgCredentials) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self.result = result
            self._done.set()
            return True

    def reject(self, error: Exception) -> bool:
        with self._lock:
            if self._done.is_set():
                return False
            self.error = error
            self._done.set()
            return True

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)


class _CallbackServer(HTTPServer):
    def __init__(self, port: int, alias: str, login_url: str, redirect_uri: str, state: str):
        super().__init__(("localhost", port), _CallbackHandler)
        self.alias = alias
        self.login_url = login_url
        self.redirect_uri = redirect_uri
        self.state = state
        self.attempt = _LoginAttempt()


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def _reply(self, status: int, body: bytes = b"") -> None:
        self.send_response(status)
        if body:
            self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self):
        srv = self.server
        parsed = urlparse(self.path)
        if parsed.path != config.CALLBACK_PATH:
            self._reply(404)
            return
        if srv.attempt.settled:
            self._reply(410)
            return

        query = parse_qs(parsed.query)
        code = query.get("code", [None])[0]
        error = query.get("error", [None])[0]
        state = query.get("state", [None])[0]

        if error or not code or state != srv.state:
            if error:
                detail = query.get("error_description", [error])[0]
            elif not code:
                detail = "No authorization code received"
            else:
                detail = "State mismatch in OAuth callback"
            self._reply(400, _failure_page(detail))
            srv.attempt.reject(LoginError(detail))
            return

        try:
            tokens = exchange_code(srv.login_url, code, srv.redirect_uri)
            identity = fetch_identity(tokens.get("id"), tokens["access_token"])
            creds = OrgCredentials(
                access_token=tokens["access_token"],
                refresh_token=tokens.get("refresh_token"),
                instance_url=tokens["instance_url"],
                login_url=srv.login_url,
                username=identity.get("username") or "",
                org_id=identity.get("organization_id") or "",
                display_name=identity.get("display_name") or "",
                authenticated_at=credentials.utc_now(),
            )
            credentials.save_org(srv.alias, creds)
        except (LoginError, requests.RequestException, KeyError, ValueError, OSError) as e:
            logger.error("❌ Token exchange failed for '%s': %s", srv.alias, e)
            self._reply(500, _failure_page(str(e), pre=True))
            srv.attempt.reject(e if isinstance(e, LoginError) else LoginError(str(e)))
            return

        self._reply(200, _success_page(srv.alias, creds.username))
        srv.attempt.resolve(creds)

    def log_message(self, format, *args):
        logger.debug("callback: " + format, *args)


def oauth_login(
    alias: str,
    login_url: str = config.DEFAULT_LOGIN_URL,
    timeout: Optional[float] = None,
    port: Optional[int] = None,
    open_browser: Callable[[str], Any] = None,
) -> OrgCredentials:
    """Run the browser login for ``alias`` and return the stored credentials.

    Blocks until the callback settles the attempt or ``timeout`` seconds pass.
    """
    port = port or config.CALLBACK_PORT
    timeout = config.LOGIN_TIMEOUT if timeout is None else timeout
    login_url = login_url.rstrip("/")
    redirect_uri = config.callback_url(port)
    state = secrets.token_urlsafe(16)

    try:
        server = _CallbackServer(port, alias, login_url, redirect_uri, state)
    except OSError as e:
        owner = _port_owner(port)
        held_by = f" (held by {owner})" if owner else ""
        raise LoginError(
            f"Could not start login server on port {port}{held_by}: {e}. "
            "Is another sf login in progress?"
        ) from e

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        auth_url = build_authorize_url(login_url, redirect_uri, state)
        logger.info("🔗 Opening browser for '%s' login: %s", alias, auth_url)
        (open_browser or webbrowser.open)(auth_url)

        if not server.attempt.wait(timeout):
            server.attempt.reject(LoginError(f"Login timed out after {timeout:g} seconds. Try again."))
    finally:
        server.shutdown()
        server.server_close()

    if server.attempt.error is not None:
        raise server.attempt.error
    logger.info("✅ Logged in '%s' as %s", alias, server.attempt.result.username or "(unknown user)")
    return server.attempt.result


def refresh_access_token(alias: str, creds: OrgCredentials) -> str:
    """Exchange the refresh token for a new access token and persist it."""
    logger.info("🔄 Refreshing access token for '%s'", alias)
    try:
        response = requests.post(
            f"{creds.login_url}/services/oauth2/token",
            data={
                "grant_type": "refresh_token",
                "client_id": config.CLIENT_ID,
                "refresh_token": creds.refresh_token,
            },
            timeout=config.HTTP_TIMEOUT,
        )
    except requests.RequestException as e:
        raise SessionExpiredError() from e
    if not response.ok:
        logger.warning("Token refresh for '%s' failed with HTTP %s", alias, response.status_code)
        raise SessionExpiredError()

    try:
        data = response.json()
        access_token = data["access_token"]
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("Token refresh for '%s' returned an unusable body: %s", alias, e)
        raise SessionExpiredError() from e
    creds.access_token = access_token
    if data.get("instance_url"):
        creds.instance_url = data["instance_url"]
    credentials.update_tokens(alias, creds.access_token, data.get("instance_url"))
    return creds.access_token
