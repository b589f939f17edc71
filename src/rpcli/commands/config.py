"""Config commands -- view and modify global configuration.

Provides the ``rpcli config`` sub-command group for reading and updating
the user's global configuration file (:class:`~rpcli.models.GlobalConfig`).
Settings are persisted in the rpcli config directory and control the node
generated commands talk to, the schema documents they are generated from,
and the app options document describing the command tree.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from pydantic import ValidationError

from rpcli.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Prints the config directory path followed by the configuration after
    applying project config and environment variables.

    Example::

        rpcli config show
    """
    from rpcli.config import get_config_dir, resolve_config
    from rpcli.exceptions import ConfigError

    try:
        config = resolve_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("path")
def config_path() -> None:
    """Print the path of the global config file."""
    from rpcli.config import global_config_path

    typer.echo(str(global_config_path()))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'connection.node')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type: booleans, numbers, and lists (a JSON array or a
    comma-separated string). The updated config is validated against
    :class:`~rpcli.models.GlobalConfig` before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or Pydantic validation fails.

    Example::

        rpcli config set connection.node https://rest.example.com
        rpcli config set connection.timeout 10
        rpcli config set schema_sources '["bank.yaml", "staking.yaml"]'
        rpcli config set options_source app.yaml
    """
    from rpcli.config import load_global_config, save_global_config
    from rpcli.exceptions import ConfigError
    from rpcli.models import GlobalConfig

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    data = config.model_dump(mode="json")

    # Navigate the dot-separated key path.
    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    try:
        coerced = _coerce(target[final_key], value)
    except ValueError as exc:
        error(f"Invalid value for {key}: {exc}")
        raise typer.Exit(code=2) from None
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


def _coerce(current: Any, value: str) -> Any:
    """Convert *value* to the type of the *current* setting."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, list):
        if value.lstrip().startswith("["):
            parsed = json.loads(value)
            if not isinstance(parsed, list):
                raise ValueError("expected a JSON array")
            return parsed
        return [item.strip() for item in value.split(",") if item.strip()]
    return value
