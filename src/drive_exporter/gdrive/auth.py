"""Google Drive authorization for the exporter.

This module produces OAuth2 credentials for the Drive API:
- Cached tokens are read from the TokenStore, keyed by capability
- Otherwise an interactive authorization-code flow runs: a short-lived
  local HTTP listener receives the browser redirect, and the code is
  exchanged for a token which is cached before returning

Example:
    from drive_exporter.gdrive.auth import OAuth2Authenticator

    auth = OAuth2Authenticator(
        client_secrets_path=Path("client_secret.json"),
        token_dir=Path(".tokens"),
    )
    credentials = auth.get_credentials(ctx)
"""

from __future__ import annotations

import json
import threading
import webbrowser
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import wait as wait_futures
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from types import TracebackType
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
from urllib.parse import parse_qs, urlparse

import structlog
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from rich.console import Console

from drive_exporter.cancellation import CancellationContext
from drive_exporter.errors import (
    AuthorizationCancelledError,
    AuthorizationError,
    ConfigurationError,
    TokenStoreError,
)
from drive_exporter.gdrive.config import AuthConfig
from drive_exporter.gdrive.token_store import StoredToken, TokenStore

logger = structlog.get_logger()

# Allows reading all files accessible by the user
READ_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
# Allows writing to files created by this app only
WRITE_SCOPE = "https://www.googleapis.com/auth/drive.file"

CLIENT_CONFIG_SECTIONS = ("installed", "web")

SUCCESS_BODY = "You can close this tab."


def scopes_for(read: bool, write: bool) -> List[str]:
    """Return the OAuth2 scopes for a capability set."""
    scopes: List[str] = []
    if read:
        scopes.append(READ_SCOPE)
    if write:
        scopes.append(WRITE_SCOPE)
    return scopes


def load_client_config(client_secrets_path: Path) -> Dict[str, Any]:
    """Read a client secret file downloaded from Google Cloud Console.

    Args:
        client_secrets_path: Path to the client secret JSON file.

    Returns:
        The parsed file, containing an ``installed`` or ``web`` section.

    Raises:
        ConfigurationError: If the file is unreadable or malformed.
    """
    path = Path(client_secrets_path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(
            f"Unable to read client secret file {path}: {e}", path=path
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Client secret file {path} is not valid JSON: {e}", path=path
        ) from e

    if not isinstance(data, dict) or not any(key in data for key in CLIENT_CONFIG_SECTIONS):
        raise ConfigurationError(
            f"Client secret file {path} has no 'installed' or 'web' section. "
            "Download OAuth2 credentials from Google Cloud Console: "
            "https://console.cloud.google.com/apis/credentials",
            path=path,
        )
    return data


def client_section(client_config: Dict[str, Any]) -> Dict[str, Any]:
    """Return the ``installed`` or ``web`` section of a client config."""
    for key in CLIENT_CONFIG_SECTIONS:
        if key in client_config:
            return dict(client_config[key])
    raise ConfigurationError("Client config has no 'installed' or 'web' section")


class _CallbackHTTPServer(HTTPServer):
    """HTTPServer carrying a reference to its owning CallbackServer."""

    callback: "CallbackServer"


class _CallbackHandler(BaseHTTPRequestHandler):
    server: _CallbackHTTPServer

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path != "/":
            status, body = 404, "Not found."
        else:
            status, body = self.server.callback.handle_callback(parse_qs(parsed.query))

        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("callback_request", message=format % args)


class CallbackServer:
    """Loopback HTTP listener that receives one OAuth2 redirect.

    Each instance owns its own server socket and handler, so several flows
    in the same process never share state. The received code is delivered
    through a one-shot Future that is fulfilled by the first of: a valid
    callback, a callback carrying ``error``, cancellation, or timeout.

    Example:
        with CallbackServer() as server:
            url = build_url(redirect_uri=server.redirect_uri)
            code = server.wait_for_code(ctx)
    """

    def __init__(self, host: str = "localhost", expected_state: Optional[str] = None) -> None:
        """Bind the listener on an ephemeral port.

        Raises:
            AuthorizationError: If the port cannot be bound.
        """
        self._host = host
        self.expected_state = expected_state
        self.result: Future[str] = Future()
        try:
            self._server = _CallbackHTTPServer((host, 0), _CallbackHandler)
        except OSError as e:
            raise AuthorizationError(f"Unable to start callback listener on {host}: {e}") from e
        self._server.callback = self

    def __enter__(self) -> "CallbackServer":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    @property
    def port(self) -> int:
        return int(self._server.server_address[1])

    @property
    def redirect_uri(self) -> str:
        return f"http://{self._host}:{self.port}/"

    def close(self) -> None:
        self._server.server_close()

    def handle_callback(self, params: Dict[str, List[str]]) -> Tuple[int, str]:
        """Interpret the query parameters of one redirect request.

        Returns:
            HTTP status and plaintext body to send back to the browser.
        """
        if self.result.done():
            return 200, SUCCESS_BODY

        if "error" in params:
            error = params["error"][0]
            self._resolve(
                lambda: self.result.set_exception(
                    AuthorizationError(f"Authorization was denied: {error}")
                )
            )
            return 400, f"Authorization failed: {error}"

        if self.expected_state is not None and params.get("state", [None])[0] != self.expected_state:
            logger.warning("callback_state_mismatch")
            return 400, "State mismatch, request ignored."

        codes = params.get("code")
        if not codes:
            return 400, "Missing authorization code."

        self._resolve(lambda: self.result.set_result(codes[0]))
        logger.debug("authorization_code_received", port=self.port)
        return 200, SUCCESS_BODY

    def fail(self, error: BaseException) -> None:
        """Fail the pending result unless it is already fulfilled."""
        self._resolve(lambda: self.result.set_exception(error))

    def wait_for_code(
        self,
        ctx: CancellationContext,
        timeout_seconds: Optional[float] = None,
    ) -> str:
        """Serve HTTP until a code arrives, the flow fails, or ``ctx`` is cancelled.

        A supervising thread waits for the result and then shuts the server
        down while this thread blocks in ``serve_forever``.

        Raises:
            AuthorizationCancelledError: If ``ctx`` is cancelled first.
            AuthorizationError: On denied consent or timeout.
        """
        ctx.add_callback(lambda: self.fail(AuthorizationCancelledError()))

        def _supervise() -> None:
            done, _ = wait_futures([self.result], timeout=timeout_seconds)
            if not done:
                self.fail(
                    AuthorizationError(
                        f"No authorization code received within {timeout_seconds} seconds"
                    )
                )
            self._server.shutdown()

        supervisor = threading.Thread(target=_supervise, name="oauth-callback-supervisor", daemon=True)
        supervisor.start()
        try:
            self._server.serve_forever(poll_interval=0.1)
        finally:
            supervisor.join()

        return self.result.result()

    def _resolve(self, setter: Callable[[], None]) -> None:
        try:
            setter()
        except InvalidStateError:
            # Another producer won the race; only the first result counts.
            pass


class AuthorizationFlow:
    """Interactive browser-based OAuth2 authorization-code flow."""

    def __init__(
        self,
        client_config: Dict[str, Any],
        scopes: List[str],
        config: Optional[AuthConfig] = None,
        console: Optional[Console] = None,
        browser_opener: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._client_config = client_config
        self._scopes = scopes
        self._config = config or AuthConfig()
        self._console = console or Console(stderr=True)
        self._open_browser = browser_opener

    def run(self, ctx: CancellationContext) -> Credentials:
        """Obtain fresh credentials through user consent.

        Raises:
            AuthorizationError: If any step of the flow fails.
            AuthorizationCancelledError: If ``ctx`` is cancelled while waiting.
        """
        ctx.raise_if_cancelled()
        flow = Flow.from_client_config(self._client_config, scopes=self._scopes)

        with CallbackServer(host=self._config.callback_host) as server:
            flow.redirect_uri = server.redirect_uri
            auth_url, state = flow.authorization_url(access_type="offline")
            server.expected_state = state

            self._present(auth_url)
            self._console.print(
                f"Starting server at :{server.port} to collect authentication code..."
            )
            code = server.wait_for_code(ctx, self._config.callback_timeout_seconds)

        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error("token_exchange_failed", error=str(e))
            raise AuthorizationError(f"Unable to exchange auth code for token: {e}") from e

        logger.info("authorization_completed", scopes=self._scopes)
        return flow.credentials

    def _present(self, auth_url: str) -> None:
        """Open the consent page, falling back to printing the URL."""
        logger.debug("authorization_url_built", url=auth_url)
        opened = False
        if self._config.open_browser:
            try:
                opened = bool(self._open_browser(auth_url))
            except webbrowser.Error as e:
                logger.warning("browser_launch_failed", error=str(e))

        if not opened:
            self._console.print("Open this URL in your browser to authorize access:")
            self._console.print(auth_url, soft_wrap=True, markup=False)


class OAuth2Authenticator:
    """Produces Drive credentials from cache or interactive consent.

    Attributes:
        client_secrets_path: Path to the OAuth2 client secret JSON file.
        token_store: Cache of previously issued tokens.
        read: Request the read-only capability.
        write: Request the app-file write capability.
    """

    def __init__(
        self,
        client_secrets_path: Path,
        token_dir: Path,
        read: bool = True,
        write: bool = False,
        config: Optional[AuthConfig] = None,
        console: Optional[Console] = None,
        browser_opener: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        if not (read or write):
            raise ValueError("At least one of read or write capability is required")
        self.client_secrets_path = Path(client_secrets_path)
        self.token_store = TokenStore(Path(token_dir))
        self.read = read
        self.write = write
        self._config = config or AuthConfig()
        self._console = console
        self._browser_opener = browser_opener

    @property
    def scopes(self) -> List[str]:
        return scopes_for(self.read, self.write)

    def get_credentials(self, ctx: CancellationContext) -> Credentials:
        """Return credentials for the configured capabilities.

        1. Read the client secret file (before any network activity)
        2. Use the cached token when one is readable
        3. Otherwise run the interactive flow and cache its token

        Raises:
            ConfigurationError: If the client secret file is unusable.
            AuthorizationError: If the interactive flow fails.
            TokenStoreError: If the new token cannot be cached.
        """
        client_config = load_client_config(self.client_secrets_path)
        section = client_section(client_config)

        credentials = self._from_cache(section)
        if credentials is not None:
            return credentials

        logger.info("starting_authorization_flow", scopes=self.scopes)
        flow = AuthorizationFlow(
            client_config,
            self.scopes,
            config=self._config,
            console=self._console,
            browser_opener=self._browser_opener,
        )
        credentials = flow.run(ctx)
        self.token_store.save(StoredToken.from_credentials(credentials), self.read, self.write)
        return credentials

    def _from_cache(self, section: Dict[str, Any]) -> Optional[Credentials]:
        try:
            token = self.token_store.load(self.read, self.write)
        except TokenStoreError as e:
            logger.info("token_cache_miss", reason=str(e))
            return None

        credentials = token.to_credentials(section, scopes=self.scopes)
        if not (token.expired and token.refresh_token):
            return credentials

        try:
            logger.debug("refreshing_expired_token")
            credentials.refresh(Request())  # type: ignore[no-untyped-call]
        except (RefreshError, TransportError) as e:
            logger.warning(
                "token_refresh_failed",
                error=str(e),
                token_path=str(self.token_store.path_for(self.read, self.write)),
            )
            return None

        self.token_store.save(StoredToken.from_credentials(credentials), self.read, self.write)
        return credentials
