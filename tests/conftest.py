"""Shared test fixtures for oidcrp.

Provides reusable fixtures for isolated config environments, output state,
CLI invocation, a sample provider, and a factory for unsigned ID Tokens.
These fixtures are automatically discovered by pytest and available to all
test modules without explicit imports.
"""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from typer.testing import CliRunner

from oidcrp.models import Provider, ProviderProfile
from oidcrp.output import OutputFormat, OutputManager, reset_output, set_output


NOW = 1_700_000_000
ISSUER = "https://op.example.com"
CLIENT_ID = "client123"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during a
    test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Drop handlers the CLI callback attached to the ``oidcrp`` logger."""
    yield
    logger = logging.getLogger("oidcrp")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Provider fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def provider() -> Provider:
    """A provider with a UserInfo endpoint and client_secret_basic auth."""
    return Provider(
        name="example",
        issuer=ISSUER,
        client_id=CLIENT_ID,
        client_secret="s3cret",
        authorization_endpoint=f"{ISSUER}/authorize",
        token_endpoint=f"{ISSUER}/token",
        userinfo_endpoint=f"{ISSUER}/userinfo",
    )


@pytest.fixture
def provider_profile() -> ProviderProfile:
    """The persisted counterpart of :func:`provider`."""
    return ProviderProfile(
        name="example",
        issuer=ISSUER,
        client_id=CLIENT_ID,
        client_secret_source="literal:s3cret",
        authorization_endpoint=f"{ISSUER}/authorize",
        token_endpoint=f"{ISSUER}/token",
        userinfo_endpoint=f"{ISSUER}/userinfo",
    )


# ---------------------------------------------------------------------------
# ID Token factory
# ---------------------------------------------------------------------------


def _segment(obj: Any) -> str:
    raw = obj if isinstance(obj, bytes) else json.dumps(obj).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


@pytest.fixture
def make_id_token() -> Callable[..., str]:
    """Factory for compact-serialised, unsigned ID Tokens.

    Call with keyword claims to override the defaults (``iss``, ``sub``,
    ``aud``, ``exp`` one hour after :data:`NOW`); pass ``None`` for a claim
    to drop it. ``header`` and ``signature`` replace those segments.
    """

    def _make(
        header: Optional[dict[str, Any]] = None,
        signature: str = "c2lnbmF0dXJl",
        **claims: Any,
    ) -> str:
        payload: dict[str, Any] = {
            "iss": ISSUER,
            "sub": "alice",
            "aud": CLIENT_ID,
            "exp": NOW + 3600,
            "iat": NOW,
        }
        for key, value in claims.items():
            if value is None:
                payload.pop(key, None)
            else:
                payload[key] = value
        return ".".join(
            [_segment(header or {"alg": "RS256", "kid": "k1"}), _segment(payload), signature]
        )

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Forces XDG path resolution, points XDG_CONFIG_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, and clears all OIDCRP_* environment
    variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("oidcrp.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["OIDCRP_PROVIDER", "OIDCRP_REDIRECT_URI"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN-format output manager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Typer CLI test runner."""
    return CliRunner()
