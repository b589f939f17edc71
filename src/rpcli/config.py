"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for rpcli:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.rpcli/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~rpcli.models.GlobalConfig`
  JSON file storing the node connection, schema sources, and the app
  options document.
* **Project config** -- An optional ``./rpcli.json`` holding any subset of
  the global config keys, layered on top of it.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from rpcli.exceptions import ConfigError
from rpcli.models import GlobalConfig

_APP_NAME = "rpcli"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "rpcli.json"

ENV_NODE = "RPCLI_NODE"
ENV_SCHEMA = "RPCLI_SCHEMA"
ENV_OPTIONS = "RPCLI_OPTIONS"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/rpcli/`` (default ``~/.config/rpcli/``).
    On macOS/Windows: ``~/.rpcli/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/rpcli/`` (default ``~/.local/share/rpcli/``).
    On macOS/Windows: ``~/.rpcli/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.
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
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
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


# --- Global config ---


def global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~rpcli.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./rpcli.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. It typically pins the schema and options
    documents shipped in a repository.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *overlay* into a copy of *base*."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    cli_node: Optional[str] = None,
    cli_schema: Optional[list[str]] = None,
    cli_options: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_node``, ``cli_schema``, ``cli_options``)
        2. Environment variables (``RPCLI_NODE``, ``RPCLI_SCHEMA`` -- a
           ``os.pathsep`` separated list -- and ``RPCLI_OPTIONS``)
        3. Project config (``./rpcli.json``)
        4. User config (``~/.config/rpcli/config.json``)
        5. Defaults

    Returns:
        The effective :class:`~rpcli.models.GlobalConfig`.

    Raises:
        ConfigError: If any config file is invalid.
    """
    # 5 + 4. Base global config (fills in defaults automatically)
    data = load_global_config().model_dump(mode="json")

    # 3. Project-local config
    project = load_project_config()
    if project is not None:
        data = _merge(data, project)

    # 2. Environment variables
    env_node = os.environ.get(ENV_NODE)
    if env_node:
        data["connection"]["node"] = env_node
    env_schema = os.environ.get(ENV_SCHEMA)
    if env_schema:
        data["schema_sources"] = [s for s in env_schema.split(os.pathsep) if s]
    env_options = os.environ.get(ENV_OPTIONS)
    if env_options:
        data["options_source"] = env_options

    # 1. CLI flags
    if cli_node is not None:
        data["connection"]["node"] = cli_node
    if cli_schema:
        data["schema_sources"] = list(cli_schema)
    if cli_options is not None:
        data["options_source"] = cli_options

    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
