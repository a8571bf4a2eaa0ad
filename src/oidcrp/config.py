"""On-disk configuration: the global settings file and the provider registry.

Layout (``$XDG_CONFIG_HOME`` on Linux/BSD, ``~/.oidcrp`` elsewhere)::

    oidcrp/
        config.json          GlobalConfig
        providers/
            <name>.json      ProviderProfile, one per OpenID Provider

Profiles never hold the client secret, only a credential source
(``env:VAR``, ``file:/path``, ``prompt``, ``literal:VALUE``) that
:func:`resolve_credential` reads when a :class:`~oidcrp.models.Provider` is
built. Files are replaced atomically so an interrupted ``provider add``
cannot leave a truncated profile behind.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import BaseModel

from oidcrp.exceptions import ConfigError
from oidcrp.models import GlobalConfig, Provider, ProviderProfile

_APP_NAME = "oidcrp"

_M = TypeVar("_M", bound=BaseModel)


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _xdg_dir(env_var: str, *default: str) -> Path:
    if _is_xdg_platform():
        base = os.environ.get(env_var) or str(Path.home().joinpath(*default))
        return _ensure(Path(base) / _APP_NAME)
    return _ensure(Path.home() / f".{_APP_NAME}")


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/oidcrp`` (default ``~/.config/oidcrp``) or ``~/.oidcrp``."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def get_data_dir() -> Path:
    """``$XDG_DATA_HOME/oidcrp`` (default ``~/.local/share/oidcrp``) or ``~/.oidcrp``.

    Crash logs are written to its ``logs`` subdirectory.
    """
    return _xdg_dir("XDG_DATA_HOME", ".local", "share")


def get_providers_dir() -> Path:
    return _ensure(get_config_dir() / "providers")


# --- File I/O ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* via a synced temp file in the same directory."""
    _ensure(path.parent)
    tmp = tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise


def _read_model(path: Path, model: type[_M], what: str) -> _M:
    try:
        return model.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _write_model(path: Path, obj: BaseModel) -> None:
    _atomic_write(path, json.dumps(obj.model_dump(mode="json"), indent=2) + "\n")


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / "config.json"


def load_global_config() -> GlobalConfig:
    """Read ``config.json``; a missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    return _read_model(path, GlobalConfig, "global config")


def save_global_config(config: GlobalConfig) -> None:
    _write_model(_global_config_path(), config)


# --- Provider registry ---


def _provider_path(name: str) -> Path:
    if not name or name.startswith(".") or any(sep in name for sep in "/\\"):
        raise ConfigError(f"Invalid provider name: {name!r}")
    return get_providers_dir() / f"{name}.json"


def list_providers() -> list[str]:
    """Names of all stored providers, sorted."""
    return sorted(p.stem for p in get_providers_dir().glob("*.json") if p.is_file())


def provider_exists(name: str) -> bool:
    return _provider_path(name).is_file()


def _existing_provider_path(name: str) -> Path:
    path = _provider_path(name)
    if not path.is_file():
        raise ConfigError(f"Provider '{name}' not found at {path}")
    return path


def load_provider_profile(name: str) -> ProviderProfile:
    """Read a stored provider.

    Raises:
        ConfigError: If the provider is unknown, or its file is not valid
            JSON or fails validation.
    """
    return _read_model(_existing_provider_path(name), ProviderProfile, f"provider '{name}'")


def save_provider_profile(profile: ProviderProfile) -> None:
    _write_model(_provider_path(profile.name), profile)


def delete_provider(name: str) -> None:
    """Remove a stored provider. Raises ConfigError if it does not exist."""
    _existing_provider_path(name).unlink()


def resolve_provider(profile: ProviderProfile, with_secret: bool = True) -> Provider:
    """Turn a stored profile into the runtime provider.

    With ``with_secret=False`` the credential source is not consulted and the
    provider carries an empty secret. ID Token validation and UserInfo calls
    never authenticate the client, so they do not need it.
    """
    secret = resolve_credential(profile.client_secret_source) if with_secret else ""
    # unknown keys kept by extra="allow" are not provider parameters
    exclude = {"client_secret_source", *(profile.model_extra or {})}
    return Provider(client_secret=secret, **profile.model_dump(exclude=exclude))


def load_provider(name: str, with_secret: bool = True) -> Provider:
    return resolve_provider(load_provider_profile(name), with_secret=with_secret)


# --- Resolution ---


def resolve_config(
    cli_provider: Optional[str] = None,
    cli_redirect_uri: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[str]]:
    """Merge CLI flags, environment and ``config.json``.

    For both the active provider and the redirect URI the order is: CLI
    flag, then ``OIDCRP_PROVIDER`` / ``OIDCRP_REDIRECT_URI``, then the
    global config. When no provider is named anywhere and exactly one is
    stored, that one is used (unless ``auto_select_single_provider`` is off).

    Returns:
        ``(global_config, active_provider_name_or_None)``.
    """
    config = load_global_config()

    provider_name = (
        cli_provider
        or os.environ.get("OIDCRP_PROVIDER")
        or config.default_provider
    )
    if provider_name is None and config.auto_select_single_provider:
        stored = list_providers()
        if len(stored) == 1:
            provider_name = stored[0]

    redirect_uri = cli_redirect_uri or os.environ.get("OIDCRP_REDIRECT_URI")
    if redirect_uri:
        config.redirect_uri = redirect_uri

    return config, provider_name


def resolve_credential(source: str) -> str:
    """Read a client secret from its source descriptor.

    ``env:VAR`` reads an environment variable, ``file:PATH`` a file (trimmed),
    ``prompt`` asks on the terminal and ``literal:VALUE`` is the value itself.

    Raises:
        ConfigError: If the source is unknown or cannot be read.
    """
    kind, _, arg = source.partition(":")

    if kind == "env":
        value = os.environ.get(arg)
        if value is None:
            raise ConfigError(f"Environment variable '{arg}' is not set (source: {source})")
        return value

    if kind == "file":
        path = Path(arg).expanduser()
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            raise ConfigError(f"Credential file not found: {path}") from None
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for client secret: stdin is not a TTY")
        return getpass.getpass("Client secret: ")

    if kind == "literal":
        return arg

    raise ConfigError(f"Unknown credential source format: {source}")
