"""Login command -- run the authorization code flow from the terminal.

The configured ``redirect_uri`` must point at the loopback interface
(``http://127.0.0.1:<port>/...`` or ``http://localhost:<port>/...``). A
single-request HTTP server is started there, the authorization URL is opened
in the browser, and the provider's callback is fed to
:meth:`~oidcrp.flow.AuthenticationAttempt.complete`::

    oidcrp -p example login
    oidcrp -p example login --no-browser --timeout 300
"""

from __future__ import annotations

import threading
import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

import typer

from oidcrp.exceptions import InvalidUsageError, NetworkError, OidcrpError, ProtocolError
from oidcrp.output import format_response, info, success

_LOOPBACK_HOSTS = ("127.0.0.1", "localhost")


def loopback_address(redirect_uri: str) -> tuple[str, int]:
    """Return the ``(host, port)`` to listen on for *redirect_uri*.

    Raises:
        InvalidUsageError: If *redirect_uri* is not a plain-HTTP loopback URI.
    """
    parts = urlsplit(redirect_uri)
    if parts.scheme != "http" or parts.hostname not in _LOOPBACK_HOSTS:
        raise InvalidUsageError(
            f"login needs an http://127.0.0.1 or http://localhost redirect URI, "
            f"got {redirect_uri!r}"
        )
    return parts.hostname, parts.port or 80


def _wait_for_callback(
    redirect_uri: str,
    auth_url: str,
    timeout: float,
    open_browser: bool = True,
) -> tuple[str, Optional[dict[str, str]]]:
    """Start a local HTTP server, open the browser, and wait for the callback.

    Args:
        redirect_uri: The loopback redirect URI to listen on.
        auth_url: The fully-formed authorization URL to open.
        timeout: Seconds to wait for the provider to redirect back.
        open_browser: Open *auth_url* in the default browser.

    Returns:
        The callback's absolute URL and, for ``form_post`` callbacks, the
        decoded form fields.

    Raises:
        NetworkError: If the port cannot be bound.
        ProtocolError: If no request arrives within *timeout*.
    """
    host, port = loopback_address(redirect_uri)
    parts = urlsplit(redirect_uri)
    received: dict[str, Any] = {"url": None, "form": None}

    class CallbackHandler(BaseHTTPRequestHandler):
        def _finish(self) -> None:
            received["url"] = f"{parts.scheme}://{parts.netloc}{self.path}"
            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.end_headers()
            self.wfile.write(
                b"<html><body><h2>Callback received. You can close this window "
                b"and return to the terminal.</h2></body></html>"
            )

        def do_GET(self) -> None:
            self._finish()

        def do_POST(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length).decode("utf-8", errors="replace")
            received["form"] = dict(parse_qsl(body, keep_blank_values=True))
            self._finish()

        def log_message(self, format: str, *args: Any) -> None:
            pass

    try:
        server = HTTPServer((host, port), CallbackHandler)
    except OSError as exc:
        raise NetworkError(f"Cannot listen on {host}:{port}: {exc}") from exc
    server.timeout = timeout

    if open_browser:
        threading.Thread(target=webbrowser.open, args=(auth_url,), daemon=True).start()
    else:
        info("Open this URL in a browser to continue:")
        info(auth_url)

    try:
        server.handle_request()
    finally:
        server.server_close()

    if received["url"] is None:
        raise ProtocolError(f"No callback received within {timeout:g} seconds")
    return received["url"], received["form"]


def login_command(
    ctx: typer.Context,
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the URL instead of opening a browser."
    ),
    timeout: float = typer.Option(
        120.0, "--timeout", help="Seconds to wait for the callback."
    ),
    no_userinfo: bool = typer.Option(
        False, "--no-userinfo", help="Skip the UserInfo request."
    ),
    original_url: str = typer.Option(
        "/", "--original-url", help="Original URL recorded in the result."
    ),
) -> None:
    """Log in with the active provider and print the authenticated identity.

    Raises:
        typer.Exit: With the failing error's exit code.
    """
    from oidcrp.commands._common import active_provider, fail, make_relying_party

    try:
        config, provider = active_provider(ctx)
        loopback_address(config.redirect_uri)
        attempt = make_relying_party(config).begin(provider, original_url)
        info(f"Logging in with {provider.name} ({provider.issuer})")
        request_url, form = _wait_for_callback(
            config.redirect_uri,
            attempt.authorization_url,
            timeout,
            open_browser=not no_browser,
        )
        result = attempt.complete(request_url, form, fetch_userinfo=not no_userinfo)
    except OidcrpError as exc:
        fail(exc)

    success(f"Authenticated as {result.username}")
    format_response(
        {
            "provider": result.provider_name,
            "username": result.username,
            "issuer": result.claims.issuer,
            "expires_at": result.claims.expires_at.isoformat(),
            "claims": result.claims.payload,
            "userinfo": result.userinfo,
            "original_url": result.original_url,
        }
    )
