"""Inspect commands -- examine the configured service schemas.

Provides the ``rpcli inspect`` sub-command group with read-only commands
listing the services found in the configured schema documents and the
methods of one service, with the command name each method is generated
under.
"""

from __future__ import annotations

import typer

from rpcli.output import error, get_output, info
from rpcli.schema.registry import SchemaRegistry


inspect_app = typer.Typer(no_args_is_help=True)


def _load_registry() -> SchemaRegistry:
    """Load every configured schema document into a fresh registry.

    Raises:
        typer.Exit: With the error's exit code when the configuration or a
            schema document cannot be loaded, or with code 2 when no schema
            is configured.
    """
    from rpcli.config import resolve_config
    from rpcli.exceptions import RpcliError
    from rpcli.schema.loader import load_schema

    registry = SchemaRegistry()
    try:
        config = resolve_config()
        if not config.schema_sources:
            error("No schema configured. Run: rpcli config set schema_sources <file>")
            raise typer.Exit(code=2)
        for source in config.schema_sources:
            load_schema(source, registry)
    except RpcliError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    return registry


@inspect_app.command("services")
def inspect_services() -> None:
    """List all services and their method counts.

    Example::

        rpcli inspect services
    """
    registry = _load_registry()
    services = registry.services()
    if not services:
        info("No services defined in the configured schemas.")
        return

    headers = ["Service", "Methods", "Description"]
    rows = [
        [s.name, str(len(s.methods)), (s.doc.strip() or "-")[:60]]
        for s in services
    ]
    get_output().print_table(headers, rows, title=f"Services ({len(rows)})")


@inspect_app.command("methods")
def inspect_methods(
    service: str = typer.Argument(help="Fully-qualified service name."),
) -> None:
    """List the methods of SERVICE.

    Shows each method's generated command name, input and output message
    types, and the full path it is called with.

    Example::

        rpcli inspect methods cosmos.bank.v1beta1.Query
    """
    from rpcli.exceptions import NotFoundError
    from rpcli.generator.strcase import to_kebab

    registry = _load_registry()
    try:
        service_schema = registry.find_service(service)
    except NotFoundError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    headers = ["Command", "Input", "Output", "Path"]
    rows = [
        [
            to_kebab(m.name),
            m.input_type,
            m.output_type,
            service_schema.method_path(m),
        ]
        for m in service_schema.methods
    ]
    get_output().print_table(headers, rows, title=f"{service_schema.name} ({len(rows)})")
