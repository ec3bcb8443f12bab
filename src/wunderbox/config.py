"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for wunderbox:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.wunderbox/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Config file** -- A single :class:`~wunderbox.models.ProviderConfig`
  JSON file, see :func:`load_config` and :func:`save_config`.
* **Precedence resolution** -- :func:`resolve_config` merges explicit
  overrides, environment variables, the config file and defaults into the
  effective configuration handed to the provider.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from wunderbox.exceptions import ConfigError
from wunderbox.models import ProviderConfig

_APP_NAME = "wunderbox"
_CONFIG_FILENAME = "config.json"

# Credential keys are looked up under each prefix in order; first hit wins.
_CREDENTIAL_ENV_PREFIXES = ("INFOBOXES_WUNDERLIST_", "WUNDERLIST_")
_CREDENTIAL_KEYS = ("client_id", "token", "email", "password")


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/wunderbox/`` (default ``~/.config/wunderbox/``).
    On macOS/Windows: ``~/.wunderbox/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory, creating it if necessary.

    Cached data can be safely deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/wunderbox/`` (default ``~/.cache/wunderbox/``).
    On macOS/Windows: ``~/.wunderbox/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/wunderbox/`` (default ``~/.local/share/wunderbox/``).
    On macOS/Windows: ``~/.wunderbox/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_token_dir(config: ProviderConfig) -> Path:
    """Return the directory holding the token file.

    Defaults to the process temp directory so the token lives outside the
    response cache and survives cache flushes.
    """
    if config.token_dir is not None:
        return Path(config.token_dir)
    return Path(tempfile.gettempdir())


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given the permissions are applied before any content is written.
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
        if mode is not None:
            os.chmod(tmp_path, mode)
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


# --- Config file ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config(path: Optional[Path] = None) -> ProviderConfig:
    """Load the provider configuration from disk.

    Args:
        path: Explicit config file; defaults to :func:`config_path`.

    Returns:
        The deserialised :class:`~wunderbox.models.ProviderConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = path or config_path()
    if not path.is_file():
        return ProviderConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ProviderConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: ProviderConfig, path: Optional[Path] = None) -> None:
    """Persist the configuration atomically with ``0o600`` permissions.

    The file may hold a password, so it is never world-readable.
    """
    data = config.model_dump(mode="json")
    atomic_write(path or config_path(), json.dumps(data, indent=2) + "\n", mode=0o600)


# --- Precedence resolution ---


def _env_credentials() -> dict[str, str]:
    """Collect credential values from the environment."""
    found: dict[str, str] = {}
    for key in _CREDENTIAL_KEYS:
        for prefix in _CREDENTIAL_ENV_PREFIXES:
            value = os.environ.get(prefix + key.upper())
            if value:
                found[key] = value
                break
    return found


def resolve_config(
    path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> ProviderConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. *overrides* (nested dict matching :class:`ProviderConfig`)
        2. Environment variables (``INFOBOXES_WUNDERLIST_TOKEN`` /
           ``WUNDERLIST_TOKEN`` etc., ``WUNDERBOX_ENDPOINT``,
           ``WUNDERBOX_CACHE_LIFETIME``)
        3. The config file
        4. Defaults

    Raises:
        ConfigError: If the file or the merged result is invalid.
    """
    data = load_config(path).model_dump()

    data["credentials"].update(_env_credentials())
    endpoint = os.environ.get("WUNDERBOX_ENDPOINT")
    if endpoint:
        data["endpoint"] = endpoint
    lifetime = os.environ.get("WUNDERBOX_CACHE_LIFETIME")
    if lifetime:
        data["cache"]["lifetime_hours"] = lifetime

    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key].update(value)
        else:
            data[key] = value

    try:
        return ProviderConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
