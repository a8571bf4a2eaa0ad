"""CLI tests for discover, provider, authorize-url, token, userinfo and config."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest
from typer.testing import CliRunner

from oidcrp import __version__
from oidcrp.app import app, main, register_commands
from oidcrp.client.http import HttpClient
from oidcrp.config import (
    get_providers_dir,
    list_providers,
    load_global_config,
    load_provider_profile,
    save_global_config,
    save_provider_profile,
)
from oidcrp.exceptions import ValidationError
from oidcrp.models import GlobalConfig, ProviderProfile, TokenEndpointAuthMethod

register_commands()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


METADATA = {
    "issuer": "https://op.example.com",
    "authorization_endpoint": "https://op.example.com/authorize",
    "token_endpoint": "https://op.example.com/token",
    "userinfo_endpoint": "https://op.example.com/userinfo",
    "token_endpoint_auth_methods_supported": ["client_secret_post"],
}


@pytest.fixture
def fake_http(monkeypatch: pytest.MonkeyPatch) -> Callable[[Callable], list[httpx.Request]]:
    """Route every command's HTTP traffic to a handler; returns the request log."""

    def install(handler: Callable[[httpx.Request], httpx.Response]) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        client = HttpClient(transport=httpx.MockTransport(recording))
        monkeypatch.setattr("oidcrp.commands._common.make_http_client", lambda: client)
        return seen

    return install


@pytest.fixture
def saved_provider(isolated_config: Path, provider_profile: ProviderProfile) -> ProviderProfile:
    save_provider_profile(provider_profile)
    return provider_profile


def _invoke(runner: CliRunner, *args: str, **kwargs: Any):
    return runner.invoke(app, ["--no-color", *args], **kwargs)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"oidcrp {__version__}" in result.output

    def test_help_lists_commands(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("discover", "provider", "authorize-url", "login", "token", "userinfo"):
            assert command in result.output


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_signal_handlers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("oidcrp.app.signal.signal", lambda *args: None)
        monkeypatch.setattr("oidcrp.app.register_commands", lambda: None)

    def test_oidcrp_error_exit_code(self, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        def rejected() -> None:
            raise ValidationError("id_token expired")

        monkeypatch.setattr("oidcrp.app.app", rejected)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 3
        assert "id_token expired" in capsys.readouterr().err

    def test_unexpected_error_writes_crash_log(
        self, monkeypatch: pytest.MonkeyPatch, isolated_config: Path
    ) -> None:
        def broken() -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr("oidcrp.app.app", broken)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        logs = list((isolated_config / "data" / "oidcrp" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: boom" in logs[0].read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# discover
# ---------------------------------------------------------------------------


class TestDiscover:
    def test_prints_issuer(self, cli_runner: CliRunner, isolated_config: Path, fake_http) -> None:
        seen = fake_http(
            lambda r: httpx.Response(200, json={"links": [{"href": "https://op.example.com"}]})
        )
        result = _invoke(cli_runner, "--json", "discover", "alice@example.com")
        assert result.exit_code == 0, result.output
        assert '"issuer": "https://op.example.com"' in result.output
        assert seen[0].url.host == "example.com"

    def test_with_metadata(self, cli_runner: CliRunner, isolated_config: Path, fake_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/.well-known/webfinger":
                return httpx.Response(200, json={"links": [{"href": "https://op.example.com"}]})
            return httpx.Response(200, json=METADATA)

        fake_http(handler)
        result = _invoke(cli_runner, "--json", "discover", "alice@example.com", "--metadata")
        assert result.exit_code == 0, result.output
        assert "https://op.example.com/token" in result.output

    def test_invalid_account(self, cli_runner: CliRunner, isolated_config: Path, fake_http) -> None:
        fake_http(lambda r: httpx.Response(500))
        result = _invoke(cli_runner, "discover", "no-at-sign")
        assert result.exit_code == 1
        assert "Invalid account name" in result.output

    def test_empty_links_is_protocol_error(
        self, cli_runner: CliRunner, isolated_config: Path, fake_http
    ) -> None:
        fake_http(lambda r: httpx.Response(200, json={"links": []}))
        result = _invoke(cli_runner, "discover", "alice@example.com")
        assert result.exit_code == 5

    def test_network_failure(self, cli_runner: CliRunner, isolated_config: Path, fake_http) -> None:
        fake_http(lambda r: httpx.Response(503))
        result = _invoke(cli_runner, "discover", "alice@example.com")
        assert result.exit_code == 6


# ---------------------------------------------------------------------------
# provider
# ---------------------------------------------------------------------------


class TestProvider:
    def test_add_manual(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "provider", "add", "corp",
            "--issuer", "https://op.example.com",
            "--client-id", "rp1",
            "--authorization-endpoint", "https://op.example.com/auth",
            "--token-endpoint", "https://op.example.com/token",
            "--client-secret-source", "env:CORP_SECRET",
            "--scope", "openid email",
        )
        assert result.exit_code == 0, result.output
        profile = load_provider_profile("corp")
        assert profile.authorization_endpoint == "https://op.example.com/auth"
        assert profile.userinfo_endpoint is None
        assert profile.scope == "openid email"
        assert profile.client_secret_source == "env:CORP_SECRET"

    def test_add_manual_requires_endpoints(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(
            cli_runner, "provider", "add", "corp",
            "--issuer", "https://op.example.com", "--client-id", "rp1",
        )
        assert result.exit_code == 2
        assert list_providers() == []

    def test_add_discover(self, cli_runner: CliRunner, isolated_config: Path, fake_http) -> None:
        seen = fake_http(lambda r: httpx.Response(200, json=METADATA))
        result = _invoke(
            cli_runner, "provider", "add", "corp",
            "--issuer", "https://op.example.com", "--client-id", "rp1", "--discover",
            "--userinfo-endpoint", "https://op.example.com/me",
        )
        assert result.exit_code == 0, result.output
        assert seen[0].url.path == "/.well-known/openid-configuration"
        profile = load_provider_profile("corp")
        assert profile.token_endpoint == "https://op.example.com/token"
        assert profile.userinfo_endpoint == "https://op.example.com/me"
        assert profile.token_endpoint_auth == TokenEndpointAuthMethod.CLIENT_SECRET_POST

    def test_add_existing_needs_force(self, cli_runner: CliRunner, saved_provider) -> None:
        args = [
            "provider", "add", "example",
            "--issuer", "https://op.example.com", "--client-id", "new-id",
            "--authorization-endpoint", "https://op.example.com/authorize",
            "--token-endpoint", "https://op.example.com/token",
        ]
        result = _invoke(cli_runner, *args)
        assert result.exit_code == 2
        assert "already exists" in result.output

        result = _invoke(cli_runner, "--force", *args)
        assert result.exit_code == 0, result.output
        assert load_provider_profile("example").client_id == "new-id"

    def test_list(self, cli_runner: CliRunner, saved_provider) -> None:
        save_global_config(GlobalConfig(default_provider="example"))
        result = _invoke(cli_runner, "--plain", "provider", "list")
        assert result.exit_code == 0, result.output
        assert "*\texample\thttps://op.example.com\tclient123" in result.output

    def test_list_empty(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "provider", "list")
        assert result.exit_code == 0
        assert "No providers configured" in result.output

    def test_show(self, cli_runner: CliRunner, saved_provider) -> None:
        result = _invoke(cli_runner, "--json", "provider", "show", "example")
        assert result.exit_code == 0, result.output
        assert '"client_id": "client123"' in result.output

    def test_show_missing(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "provider", "show", "nope")
        assert result.exit_code == 1

    def test_remove(self, cli_runner: CliRunner, saved_provider) -> None:
        result = _invoke(cli_runner, "-f", "provider", "remove", "example")
        assert result.exit_code == 0, result.output
        assert not (get_providers_dir() / "example.json").exists()

    def test_remove_declined(self, cli_runner: CliRunner, saved_provider) -> None:
        result = _invoke(cli_runner, "provider", "remove", "example", input="n\n")
        assert result.exit_code == 0
        assert (get_providers_dir() / "example.json").exists()


# ---------------------------------------------------------------------------
# authorize-url
# ---------------------------------------------------------------------------


class TestAuthorizeUrl:
    def test_prints_url(self, cli_runner: CliRunner, saved_provider) -> None:
        result = _invoke(cli_runner, "authorize-url", "--state", "abc")
        assert result.exit_code == 0, result.output
        assert (
            "https://op.example.com/authorize?response_type=code&scope=openid"
            "&client_id=client123&state=abc"
            "&redirect_uri=http%3A%2F%2F127.0.0.1%3A8765%2Fcallback"
        ) in result.output

    def test_redirect_uri_override(self, cli_runner: CliRunner, saved_provider) -> None:
        result = _invoke(
            cli_runner, "authorize-url", "--redirect-uri", "https://rp.example.com/cb"
        )
        assert result.exit_code == 0, result.output
        assert "redirect_uri=https%3A%2F%2Frp.example.com%2Fcb" in result.output

    def test_no_provider(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "authorize-url")
        assert result.exit_code == 2
        assert "No provider selected" in result.output

    def test_unknown_provider(self, cli_runner: CliRunner, saved_provider) -> None:
        result = _invoke(cli_runner, "-p", "nope", "authorize-url")
        assert result.exit_code == 1
        assert "not found" in result.output


# ---------------------------------------------------------------------------
# token inspect
# ---------------------------------------------------------------------------


class TestTokenInspect:
    def test_decodes(self, cli_runner: CliRunner, isolated_config: Path, make_id_token) -> None:
        result = _invoke(cli_runner, "--json", "token", "inspect", make_id_token())
        assert result.exit_code == 0, result.output
        assert '"sub": "alice"' in result.output
        assert '"signature_verified": false' in result.output
        assert "signature is not verified" in result.output

    def test_validate(self, cli_runner: CliRunner, saved_provider, make_id_token) -> None:
        token = make_id_token(exp=int(time.time()) + 3600)
        result = _invoke(cli_runner, "--json", "token", "inspect", token, "--validate")
        assert result.exit_code == 0, result.output
        assert '"subject": "alice"' in result.output

    def test_validate_expired(self, cli_runner: CliRunner, saved_provider, make_id_token) -> None:
        token = make_id_token(exp=int(time.time()) - 60)
        result = _invoke(cli_runner, "token", "inspect", token, "--validate")
        assert result.exit_code == 3
        assert "expired" in result.output

    def test_malformed(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "token", "inspect", "not-a-token")
        assert result.exit_code == 7


# ---------------------------------------------------------------------------
# userinfo
# ---------------------------------------------------------------------------


class TestUserInfo:
    def test_fetches_claims(self, cli_runner: CliRunner, saved_provider, fake_http) -> None:
        seen = fake_http(lambda r: httpx.Response(200, json={"sub": "alice", "email": "a@x"}))
        result = _invoke(cli_runner, "--json", "userinfo", "at-123")
        assert result.exit_code == 0, result.output
        assert '"email": "a@x"' in result.output
        assert seen[0].headers["Authorization"] == "Bearer at-123"

    def test_no_endpoint(
        self, cli_runner: CliRunner, isolated_config: Path, provider_profile, fake_http
    ) -> None:
        save_provider_profile(provider_profile.model_copy(update={"userinfo_endpoint": None}))
        seen = fake_http(lambda r: httpx.Response(200, json={}))
        result = _invoke(cli_runner, "userinfo", "at-123")
        assert result.exit_code == 1
        assert seen == []


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "--json", "config", "show")
        assert result.exit_code == 0, result.output
        assert '"redirect_uri": "http://127.0.0.1:8765/callback"' in result.output

    def test_set_float(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "http_timeout_long", "30")
        assert result.exit_code == 0, result.output
        assert load_global_config().http_timeout_long == 30.0

    def test_set_optional_string(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "default_provider", "corp")
        assert result.exit_code == 0, result.output
        assert load_global_config().default_provider == "corp"

    def test_set_bool(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "ssl_validate_server", "false")
        assert result.exit_code == 0, result.output
        assert load_global_config().ssl_validate_server is False

    def test_set_nested(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "output.format", "json")
        assert result.exit_code == 0, result.output
        assert load_global_config().output.format == "json"

    def test_set_unknown_key(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "nope", "1")
        assert result.exit_code == 2

    def test_set_bad_number(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "http_timeout_short", "fast")
        assert result.exit_code == 2

    def test_reset(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_provider="corp"))
        result = _invoke(cli_runner, "-f", "config", "reset")
        assert result.exit_code == 0, result.output
        assert load_global_config() == GlobalConfig()

    def test_config_file_is_json(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        _invoke(cli_runner, "config", "set", "default_provider", "corp")
        path = isolated_config / "config" / "oidcrp" / "config.json"
        assert json.loads(path.read_text())["default_provider"] == "corp"

    def test_set_rejects_unknown_format(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        result = _invoke(cli_runner, "config", "set", "output.format", "xml")
        assert result.exit_code == 2
        assert load_global_config().output.format == "auto"

    def test_clear_optional_value(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_provider="corp"))
        result = _invoke(cli_runner, "config", "set", "default_provider", "none")
        assert result.exit_code == 0, result.output
        assert load_global_config().default_provider is None

    def test_configured_format_is_default(self, cli_runner: CliRunner, saved_provider) -> None:
        save_global_config(GlobalConfig(output={"format": "json"}))
        result = _invoke(cli_runner, "provider", "list")
        assert result.exit_code == 0, result.output
        assert '"name": "example"' in result.output
