"""Interactive browser-based OAuth2 authorization for one Google account.

Uses google-auth-oauthlib's ``Flow`` for the installed-app authorization
code exchange (with PKCE) and a loopback HTTP server to receive the
redirect. The flow never persists anything; callers decide where the
returned token goes.

Callback Server:
    Listens on ``redirect_host:redirect_port``. If that port is taken an
    ephemeral port is used instead and the redirect URI follows it, which
    works for Google "Desktop app" OAuth clients.
"""

import asyncio
import logging
import secrets
import sys
import threading
import time
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Protocol
from urllib.parse import parse_qs, urlparse

import httpx
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from goog_cli.auth.models import OAuthClientConfig, OAuthToken
from goog_cli.auth.scopes import SCOPE_USERINFO_EMAIL
from goog_cli.auth.token_manager import credentials_to_token
from goog_cli.exceptions import AuthorizationFailedError, ConfigError

logger = logging.getLogger(__name__)

USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
DEFAULT_AUTH_TIMEOUT = 300.0

# Seconds between checks for cancellation while waiting for the redirect
POLL_INTERVAL = 1.0

_SUCCESS_PAGE = (
    b"<html><body><h1>Authentication Successful!</h1>"
    b"<p>You can close this window and return to the terminal.</p>"
    b"</body></html>"
)
_FAILURE_PAGE = (
    b"<html><body><h1>Authentication Failed</h1>"
    b"<p>Please close this window and try again.</p></body></html>"
)


class AuthorizationFlow(Protocol):
    """Anything that can obtain a token and email for a set of scopes."""

    async def authorize(self, scopes: list[str]) -> tuple[OAuthToken, str]: ...


class _CallbackServer(HTTPServer):
    """Loopback server remembering the outcome of the OAuth redirect."""

    def __init__(self, address: tuple[str, int], callback_path: str, expected_state: str) -> None:
        super().__init__(address, _OAuthCallbackHandler)
        self.callback_path = callback_path
        self.expected_state = expected_state
        self.auth_code: str | None = None
        self.error: str | None = None


class _OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect."""

    server: _CallbackServer

    def log_message(self, format: str, *args) -> None:
        """Suppress HTTP server logs."""

    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-type", "text/html")
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:
        request_parsed = urlparse(self.path)

        # Browsers also ask for /favicon.ico
        if request_parsed.path != self.server.callback_path:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b"Not Found")
            return

        query_params = parse_qs(request_parsed.query)

        if "error" in query_params:
            self.server.error = f"authorization denied: {query_params['error'][0]}"
            self._respond(400, _FAILURE_PAGE)
            return

        if query_params.get("state", [""])[0] != self.server.expected_state:
            self.server.error = "state mismatch in OAuth callback"
            self._respond(400, _FAILURE_PAGE)
            return

        if "code" not in query_params:
            self.server.error = "no authorization code received"
            self._respond(400, _FAILURE_PAGE)
            return

        self.server.auth_code = query_params["code"][0]
        self._respond(200, _SUCCESS_PAGE)


def bind_callback_server(
    host: str, port: int, callback_path: str, expected_state: str
) -> _CallbackServer:
    """Bind the loopback server, falling back to an ephemeral port.

    Raises:
        AuthorizationFailedError: If no port can be bound.
    """
    try:
        return _CallbackServer((host, port), callback_path, expected_state)
    except OSError as e:
        if port == 0:
            raise AuthorizationFailedError(f"Cannot start OAuth callback server: {e}", e) from e
        logger.warning(f"Port {port} unavailable ({e}), using an ephemeral port")

    try:
        return _CallbackServer((host, 0), callback_path, expected_state)
    except OSError as e:
        raise AuthorizationFailedError(f"Cannot start OAuth callback server: {e}", e) from e


def wait_for_callback(
    server: _CallbackServer,
    cancel_event: threading.Event,
    timeout: float = DEFAULT_AUTH_TIMEOUT,
) -> str:
    """Serve requests until the OAuth redirect arrives.

    Returns:
        The authorization code.

    Raises:
        AuthorizationFailedError: On denial, state mismatch, cancellation
            or when ``timeout`` elapses.
    """
    deadline = time.monotonic() + timeout
    server.timeout = POLL_INTERVAL

    while server.auth_code is None and server.error is None:
        if cancel_event.is_set():
            raise AuthorizationFailedError("Authorization cancelled")
        if time.monotonic() >= deadline:
            raise AuthorizationFailedError(f"Authorization timed out after {timeout:g}s")
        server.handle_request()

    if server.error:
        raise AuthorizationFailedError(f"OAuth authentication failed: {server.error}")

    return server.auth_code


def _accept_narrowed_grant(flow: Flow, warning: Warning) -> None:
    """Keep a token whose granted scopes are narrower than requested.

    The email scope is still required, since the account is identified by
    its email address.

    Raises:
        AuthorizationFailedError: If the grant lacks the email scope or the
            warning carries no token.
    """
    token = getattr(warning, "token", None)
    if not token or "access_token" not in token:
        raise AuthorizationFailedError(f"Token exchange failed: {warning}", warning) from warning

    granted = token.get("scope") or []
    if isinstance(granted, str):
        granted = granted.split()
    granted = list(granted)

    if SCOPE_USERINFO_EMAIL not in granted:
        raise AuthorizationFailedError(
            "Access to the account email address was not granted; "
            "allow it on the consent screen and try again",
            warning,
        ) from warning

    requested = list(flow.oauth2session.scope or [])
    missing = [scope for scope in requested if scope not in granted]
    logger.warning(f"Consent granted fewer scopes than requested, missing: {', '.join(missing)}")

    token["scope"] = granted
    flow.oauth2session.token = token


class GoogleAuthorizationFlow:
    """Authorization code flow against Google's OAuth endpoints.

    Attributes:
        client_config: OAuth client registration.
        timeout: Seconds to wait for the user to finish consent.
        open_browser: Whether to launch the system browser.

    Example:
        ```python
        flow = GoogleAuthorizationFlow(config.oauth_client_config())
        token, email = await flow.authorize(normalize_scopes(["gmail"]))
        ```
    """

    def __init__(
        self,
        client_config: OAuthClientConfig,
        timeout: float = DEFAULT_AUTH_TIMEOUT,
        open_browser: bool = True,
    ) -> None:
        self.client_config = client_config
        self.timeout = timeout
        self.open_browser = open_browser

    async def authorize(self, scopes: list[str]) -> tuple[OAuthToken, str]:
        """Run the consent flow and return the token with the account email.

        Args:
            scopes: Full scope URLs to request.

        Returns:
            Tuple of (token, email).

        Raises:
            AuthorizationFailedError: If consent is denied, the code exchange
                fails, the email lookup fails or ``timeout`` elapses.
        """
        try:
            self.client_config.validate_credentials()
        except ConfigError as e:
            raise AuthorizationFailedError(e.message, e) from e

        cancel_event = threading.Event()

        # Run OAuth flow in executor (it's blocking)
        loop = asyncio.get_running_loop()
        try:
            credentials = await asyncio.wait_for(
                loop.run_in_executor(None, self._run_oauth_flow, scopes, cancel_event),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AuthorizationFailedError(
                f"Authorization timed out after {self.timeout:g}s", e
            ) from e
        finally:
            # Stops the polling thread on timeout and task cancellation
            cancel_event.set()

        granted = credentials.granted_scopes or credentials.scopes or scopes
        token = credentials_to_token(credentials, list(granted))
        email = await self.fetch_email(token.access_token)
        logger.info(f"Authorized {email}")
        return token, email

    def _run_oauth_flow(self, scopes: list[str], cancel_event: threading.Event) -> Credentials:
        """Run the OAuth flow (blocking operation)."""
        config = self.client_config
        state = secrets.token_urlsafe(32)
        server = bind_callback_server(
            config.redirect_host, config.redirect_port, config.redirect_path, state
        )
        try:
            redirect_uri = (
                f"http://{config.redirect_host}:{server.server_port}{config.redirect_path}"
            )
            flow = Flow.from_client_config(
                config.to_client_config(redirect_uri),
                scopes=scopes,
                redirect_uri=redirect_uri,
                autogenerate_code_verifier=True,
            )
            auth_url, _ = flow.authorization_url(
                access_type="offline",
                prompt="consent",
                state=state,
            )

            print("Opening browser for Google authorization...", file=sys.stderr)
            print(f"If browser doesn't open, visit: {auth_url}", file=sys.stderr)
            if self.open_browser:
                webbrowser.open(auth_url)

            code = wait_for_callback(server, cancel_event, self.timeout)
        finally:
            server.server_close()

        try:
            flow.fetch_token(code=code)
        except Warning as e:
            # oauthlib raises Warning when consent covered fewer scopes
            _accept_narrowed_grant(flow, e)
        except (OAuth2Error, ValueError, OSError) as e:
            raise AuthorizationFailedError(f"Token exchange failed: {e}", e) from e

        return flow.credentials

    async def fetch_email(self, access_token: str) -> str:
        """Look up the email address of the authorized account.

        Raises:
            AuthorizationFailedError: If the lookup fails or returns no email.
        """
        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(
                    USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise AuthorizationFailedError(f"Failed to fetch account email: {e}", e) from e

        email = data.get("email", "")
        if not email:
            raise AuthorizationFailedError("Userinfo response did not include an email address")
        return email
