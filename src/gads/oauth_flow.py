"""Google OAuth 2.0 authorization-code flow for the Google Ads API.

Starts a callback server on a fixed localhost port (must be registered as a
redirect URI on the OAuth client), prints the consent URL, waits for the
redirect carrying ?code=... or ?error=..., exchanges the code and saves the
refresh + access tokens into the credential record.
"""
from __future__ import annotations

import http.server
import queue
import threading
import urllib.parse
import webbrowser
from typing import Any, Callable, Optional, Tuple

import requests
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from .config import AUTH_URI, OAUTH_SCOPE, TOKEN_URI, auth_timeout, oauth_port, redirect_uri
from .credentials import CredentialStore, Credentials, as_utc
from .errors import (
    AuthorizationDenied,
    AuthorizationError,
    AuthorizationTimeout,
    ConfigurationError,
    ListenerError,
    TransportError,
)

_SUCCESS_HTML = (
    "<html><body><h2>Authorization successful!</h2>"
    "<p>You can close this tab and return to the terminal.</p></body></html>"
)
_FAILURE_HTML = "<html><body><h2>Authorization failed</h2><p>{reason}</p></body></html>"
_MISSING_HTML = "<html><body><h2>Invalid request</h2><p>Missing auth code in callback.</p></body></html>"


def _make_handler(listener: "CallbackListener") -> type:
    class CallbackHandler(http.server.BaseHTTPRequestHandler):
        # seconds a connection may sit idle before its read gives up
        timeout = 5

        def log_message(self, format: str, *args: Any) -> None:
            pass

        def do_GET(self) -> None:
            params = urllib.parse.parse_qs(urllib.parse.urlparse(self.path).query)
            code = (params.get("code") or [""])[0]
            error = (params.get("error") or [""])[0]

            if not code and not error:
                # favicon and other stray requests
                self._send_html(_MISSING_HTML, 400)
                return

            if code and listener.expected_state is not None:
                state = (params.get("state") or [""])[0]
                if state != listener.expected_state:
                    code, error = "", "state mismatch"

            if code:
                delivered = listener._deliver(("code", code))
                self._send_html(_SUCCESS_HTML if delivered else "Already processed.", 200 if delivered else 400)
            else:
                listener._deliver(("error", error))
                self._send_html(_FAILURE_HTML.format(reason=_escape(error)), 400)

        def _send_html(self, content: str, status: int = 200) -> None:
            data = content.encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

    return CallbackHandler


def _escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class CallbackListener:
    """
    One-shot OAuth redirect receiver.

    The port is bound in __init__ so a busy port fails before anything is shown
    to the user. The first code or error is handed to wait() through a
    single-slot queue; later redirects are ignored. Connections are served on
    daemon threads, so a client that never sends a request cannot hold up
    close(). Use as a context manager so the socket is released on every exit
    path.
    """

    def __init__(self, port: int, host: str = "localhost") -> None:
        self.port = port
        self.expected_state: Optional[str] = None
        self._results: "queue.Queue[Tuple[str, str]]" = queue.Queue(maxsize=1)
        try:
            self._server = http.server.ThreadingHTTPServer((host, port), _make_handler(self))
        except OSError as e:
            raise ListenerError(
                f"failed to start local server on :{port} (is something else using it?): {e}"
            ) from e
        self._server.daemon_threads = True
        self._thread: Optional[threading.Thread] = None

    def _deliver(self, result: Tuple[str, str]) -> bool:
        try:
            self._results.put_nowait(result)
            return True
        except queue.Full:
            return False

    def start(self) -> "CallbackListener":
        self._thread = threading.Thread(target=self._server.serve_forever, name="gads-oauth-callback", daemon=True)
        self._thread.start()
        return self

    def wait(self, timeout: float) -> str:
        """Block until a redirect arrives; return the code or raise."""
        try:
            kind, value = self._results.get(timeout=timeout)
        except queue.Empty:
            raise AuthorizationTimeout(timeout) from None
        if kind == "error":
            raise AuthorizationDenied(value)
        return value

    def close(self) -> None:
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()

    def __enter__(self) -> "CallbackListener":
        return self.start()

    def __exit__(self, *exc: Any) -> None:
        self.close()


def build_flow(creds: Credentials, redirect: str) -> Flow:
    client_config = {
        "installed": {
            "client_id": creds.client_id,
            "client_secret": creds.client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [redirect],
        }
    }
    return Flow.from_client_config(client_config, scopes=[OAUTH_SCOPE], redirect_uri=redirect)


def exchange_code(flow: Flow, code: str, creds: Credentials) -> Credentials:
    """Trade the one-time code for tokens and merge them into creds (in place)."""
    try:
        token = flow.fetch_token(code=code)
    except requests.RequestException as e:
        raise TransportError(f"exchanging auth code: {e}") from e
    except OAuth2Error as e:
        raise AuthorizationError(f"exchanging auth code: {e}") from e

    gc = flow.credentials
    if not gc.refresh_token:
        raise AuthorizationError(
            "no refresh_token returned (revoke the app's access and log in again to force consent)"
        )
    creds.refresh_token = gc.refresh_token
    creds.access_token = gc.token or ""
    creds.token_type = (token or {}).get("token_type") or "Bearer"
    creds.token_expiry = as_utc(gc.expiry)
    return creds


def authorize(
    creds: Credentials,
    store: CredentialStore,
    *,
    port: Optional[int] = None,
    timeout: Optional[float] = None,
    open_browser: Optional[Callable[[str], Any]] = webbrowser.open,
    flow: Optional[Flow] = None,
) -> Credentials:
    """
    Interactive login.

    Keeps client id/secret, developer token and manager id already on creds,
    replaces the token fields, and saves the record. Raises ListenerError,
    AuthorizationTimeout, AuthorizationDenied, AuthorizationError or
    TransportError; the callback port is free again whenever this returns.
    """
    if not creds.client_id or not creds.client_secret:
        raise ConfigurationError("client id and client secret are required")
    port = port if port is not None else oauth_port()
    timeout = timeout if timeout is not None else auth_timeout()
    flow = flow or build_flow(creds, redirect_uri(port))

    with CallbackListener(port) as listener:
        auth_url, state = flow.authorization_url(access_type="offline", prompt="consent")
        listener.expected_state = state
        print("\nOpening browser to authorize access...")
        print(f"If the browser doesn't open, visit:\n{auth_url}\n")
        if open_browser is not None:
            open_browser(auth_url)
        minutes = timeout / 60
        wait_str = f"{minutes:g} minute timeout" if minutes >= 1 else f"{timeout:g}s timeout"
        print(f"Waiting for authorization ({wait_str})...")
        code = listener.wait(timeout)

    exchange_code(flow, code, creds)
    store.save(creds)
    return creds
