"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for wechatapi:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.wechatapi/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Client config** -- a single :class:`~wechatapi.models.ClientConfig`
  JSON file storing the ``appid``, where to find the app secret, URL
  prefixes and request defaults.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective
  configuration.
* **Credential resolution** -- :func:`resolve_credential` reads the app
  secret from an env var, a file, or an interactive prompt.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Optional

from wechatapi.exceptions import ConfigError
from wechatapi.models import ClientConfig

_APP_NAME = "wechatapi"
_CONFIG_FILENAME = "config.json"

ENV_APP_ID = "WECHATAPI_APP_ID"
ENV_APP_SECRET = "WECHATAPI_APP_SECRET"
ENV_ENVIRONMENT = "WECHATAPI_ENV"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/wechatapi/`` (default ``~/.config/wechatapi/``).
    On macOS/Windows: ``~/.wechatapi/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/wechatapi/`` (default ``~/.local/share/wechatapi/``).
    On macOS/Windows: ``~/.wechatapi/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. The config file can
    hold the app secret, so it is created with ``0o600`` permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Client config ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> ClientConfig:
    """Load the client configuration from the config directory.

    Returns:
        The deserialised :class:`~wechatapi.models.ClientConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return ClientConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return ClientConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ClientConfig) -> None:
    """Persist the client configuration atomically to disk."""
    data = config.model_dump(mode="json", exclude_none=True)
    _atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a secret from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts the user interactively (requires a TTY)

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Secret file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read secret file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for the app secret: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("App secret: ")

    raise ConfigError(f"Unknown secret source format: {source}")


# --- Precedence resolution ---


def resolve_config(
    cli_app_id: Optional[str] = None,
    cli_environment: Optional[str] = None,
) -> ClientConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_app_id``, ``cli_environment``)
        2. Environment variables (``WECHATAPI_APP_ID``,
           ``WECHATAPI_APP_SECRET``, ``WECHATAPI_ENV``)
        3. Config file (``~/.config/wechatapi/config.json``)
        4. Defaults

    The app secret is resolved last: an explicit ``app_secret`` wins,
    otherwise ``app_secret_source`` is read through
    :func:`resolve_credential`.
    """
    config = load_config()

    env_app_id = os.environ.get(ENV_APP_ID)
    if env_app_id:
        config.app_id = env_app_id
    env_secret = os.environ.get(ENV_APP_SECRET)
    if env_secret:
        config.app_secret = env_secret
    env_environment = os.environ.get(ENV_ENVIRONMENT)
    if env_environment:
        config.environment = env_environment

    if cli_app_id is not None:
        config.app_id = cli_app_id
    if cli_environment is not None:
        config.environment = cli_environment

    if config.app_secret is None and config.app_secret_source:
        config.app_secret = resolve_credential(config.app_secret_source)

    return config
