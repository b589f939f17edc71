"""Typer application factory and CLI entry point for rpcli.

This module wires together the top-level Typer application, registers the
built-in sub-commands (``config``, ``inspect``), and generates the ``query``
command tree from the configured schema and app options documents at
start-up.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, builds the command tree,
and finally invokes the CLI. :class:`~rpcli.exceptions.RpcliError`
instances exit with their own exit code; other unhandled exceptions are
written to a crash log under the data directory.

See Also:
    :mod:`rpcli.config`: Configuration resolution.
    :mod:`rpcli.generator`: The ``query`` tree builder.
    :mod:`rpcli.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import click
import typer
from typer.core import TyperGroup

from rpcli import __version__
from rpcli.exit_codes import EXIT_GENERIC_FAILURE
from rpcli.generator.command_tree import find_command
from rpcli.models import GlobalConfig
from rpcli.schema.registry import SchemaRegistry


class RootGroup(TyperGroup):
    """Root command group; resolves top-level aliases such as ``q`` for ``query``."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        return find_command(self, ctx, cmd_name)


app = typer.Typer(
    name="rpcli",
    cls=RootGroup,
    help="Query remote services through commands generated from their schemas.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Built-in commands
# ------------------------------------------------------------------ #

from rpcli.commands.config import config_app  # noqa: E402
from rpcli.commands.inspect import inspect_app  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration management.")
app.add_typer(inspect_app, name="inspect", help="Inspect service schemas.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"rpcli {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    node: Optional[str] = typer.Option(
        None, "--node", help="Node URL for generated commands (overrides config)."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~rpcli.output.OutputManager` from CLI
    flags and stores the shared ``node`` option in ``ctx.obj``, where the
    default connection accessor of generated commands reads it.
    """
    from rpcli.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["node"] = node
    ctx.obj["verbose"] = verbose


def build_cli(
    config: Optional[GlobalConfig] = None,
    registry: Optional[SchemaRegistry] = None,
) -> click.Group:
    """Return the root click group with the generated ``query`` tree attached.

    The schema documents listed in the configuration are loaded into
    *registry* (the process-wide default registry when omitted) and the app
    options document, when configured, supplies the module descriptors.
    Without an options document every service becomes one module. No
    configured schema means no ``query`` command.

    Args:
        config: Effective configuration; resolved from disk and the
            environment when omitted.
        registry: Registry receiving the schema documents.

    Raises:
        RpcliError: If the configuration, a document, or the command tree
            is invalid. Nothing is built in that case.
    """
    from rpcli.config import resolve_config
    from rpcli.generator import Builder
    from rpcli.generator.options import default_module_options
    from rpcli.output import debug
    from rpcli.schema import get_default_registry, load_app_options, load_schema

    root = typer.main.get_command(app)
    assert isinstance(root, click.Group)

    if config is None:
        config = resolve_config()
    if not config.schema_sources:
        debug("No schema configured; skipping query commands")
        return root

    if registry is None:
        registry = get_default_registry()
    for source in config.schema_sources:
        debug(f"Loading schema from {source}")
        load_schema(source, registry)

    if config.options_source:
        debug(f"Loading app options from {config.options_source}")
        modules = load_app_options(config.options_source).modules
    else:
        modules = default_module_options(registry.services())

    builder = Builder(registry=registry)
    root.add_command(builder.build_query_command(modules, custom_commands={}))
    return root


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from rpcli.config import get_data_dir

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = get_data_dir() / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``rpcli`` console script.

    Performs the following sequence:

    1. Install signal handlers for clean Ctrl-C behaviour.
    2. Build the root command with the generated ``query`` tree.
    3. Invoke the CLI.

    Unhandled :class:`~rpcli.exceptions.RpcliError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by click or explicitly).
    """
    _setup_signal_handlers()
    try:
        if "--verbose" in sys.argv or "-v" in sys.argv:
            # Debug output of the build itself, before the root callback runs.
            from rpcli.output import OutputManager, set_output

            set_output(OutputManager(verbose=True))

        root = build_cli()
        root(prog_name="rpcli")
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from rpcli.exceptions import RpcliError
        from rpcli.output import error

        if isinstance(exc, RpcliError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
