"""Build a click command tree from module command descriptors.

This is the core algorithm of rpcli. It takes the
:class:`~rpcli.models.ServiceCommandDescriptor` tree declared by each
application module and produces a ``query`` command group whose leaves call
remote service methods.

**Algorithm summary**

1. Take the sorted union of module names from the descriptor map and the
   custom command map.
2. For each name: a command already present under that name wins, then a
   custom command (attached as-is), then a group generated from the module's
   ``query`` descriptor. A name with none of these contributes nothing.
3. A descriptor's ``sub_commands`` become nested groups, built recursively.
   Custom commands only take part at the module level.
4. A descriptor bound to a service gets one leaf per method, in the service's
   declaration order. Methods whose options set ``skip`` get no leaf.
5. Each leaf binds its input message's fields to flags and arguments
   (:mod:`rpcli.generator.binder`) and runs a
   :class:`~rpcli.generator.invoker.MethodInvoker` when invoked.

Any failure aborts the whole build: generated children are staged and only
attached once every one of them has been built, so the caller never sees a
partial tree.
"""

from __future__ import annotations

import difflib
from typing import Any, Callable, Mapping, Optional, TextIO, Union

import click

from rpcli.client.connection import (
    ClientConn,
    add_query_conn_flags,
    conn_from_context,
)
from rpcli.codec import DEFAULT_MARSHAL_OPTIONS, MarshalOptions
from rpcli.generator.binder import POSITIONAL_PARAM, MessageBinder, bind_message_flags
from rpcli.generator.invoker import MethodInvoker
from rpcli.generator.options import (
    CommandSpec,
    index_method_options,
    merge_method_options,
)
from rpcli.models import (
    MethodSchema,
    ModuleOptions,
    RpcCommandOptions,
    ServiceCommandDescriptor,
    ServiceSchema,
)
from rpcli.output import get_output
from rpcli.schema.registry import SchemaRegistry, get_default_registry
from rpcli.schema.types import TypeResolver, resolve_message_type


# ---------------------------------------------------------------------------
# Command classes
# ---------------------------------------------------------------------------


def find_command(group: click.Group, ctx: click.Context, name: str) -> Optional[click.Command]:
    """Return the sub-command of *group* called *name* or carrying it as an alias."""
    cmd = click.Group.get_command(group, ctx, name)
    if cmd is not None:
        return cmd
    for candidate in group.commands.values():
        if name in getattr(candidate, "aliases", ()):
            return candidate
    return None


def suggestions_for(group: click.Group, typed: str) -> list[str]:
    """Return sub-command names of *group* that *typed* was probably meant to be.

    Close matches and prefix matches of visible command names are suggested,
    as well as commands that list *typed* in their ``suggest_for``.
    """
    visible = {
        name: cmd for name, cmd in sorted(group.commands.items()) if not cmd.hidden
    }
    found = difflib.get_close_matches(typed, list(visible), n=5, cutoff=0.6)
    lowered = typed.lower()
    for name, cmd in visible.items():
        if name.startswith(lowered) or typed in getattr(cmd, "suggest_for", ()):
            found.append(name)
    return list(dict.fromkeys(found))


class ServiceGroup(click.Group):
    """Command group of the generated tree.

    Resolves sub-commands by name or alias, shows its help when invoked
    without a sub-command, and suggests close matches for unknown ones.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        aliases: tuple[str, ...] = (),
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("no_args_is_help", True)
        super().__init__(name=name, **kwargs)
        self.aliases = tuple(aliases)

    def get_command(self, ctx: click.Context, cmd_name: str) -> Optional[click.Command]:
        return find_command(self, ctx, cmd_name)

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[Optional[str], Optional[click.Command], list[str]]:
        cmd_name = args[0]
        if (
            self.get_command(ctx, cmd_name) is None
            and not ctx.resilient_parsing
            and not cmd_name.startswith("-")
        ):
            message = f"unknown command {cmd_name!r} for {ctx.command_path!r}"
            suggestions = suggestions_for(self, cmd_name)
            if suggestions:
                message += "\n\nDid you mean this?\n\t" + "\n\t".join(suggestions)
            ctx.fail(message)
        resolved_name, cmd, rest = super().resolve_command(ctx, args)
        if cmd is not None and resolved_name not in self.commands:
            # An alias was typed; report the canonical name.
            resolved_name = cmd.name
        return resolved_name, cmd, rest


class RpcCommand(click.Command):
    """Leaf command calling one remote method.

    Positional argument counts are checked right after parsing, before the
    handler runs. Deprecated commands print a warning on every run.
    """

    def __init__(
        self,
        name: str,
        *,
        method_path: str = "",
        aliases: tuple[str, ...] = (),
        suggest_for: tuple[str, ...] = (),
        deprecation: str = "",
        **kwargs: Any,
    ) -> None:
        super().__init__(name=name, **kwargs)
        self.method_path = method_path
        self.aliases = tuple(aliases)
        self.suggest_for = tuple(suggest_for)
        self.deprecation = deprecation
        self.binder: Optional[MessageBinder] = None
        self.invoker: Optional[MethodInvoker] = None

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        rest = super().parse_args(ctx, args)
        if self.binder is not None and not ctx.resilient_parsing:
            self.binder.check_args(ctx, tuple(ctx.params.get(POSITIONAL_PARAM) or ()))
        return rest

    def invoke(self, ctx: click.Context) -> Any:
        if self.deprecation:
            get_output().deprecated(ctx.command_path, self.deprecation)
        return super().invoke(ctx)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class Builder:
    """Generates query commands from module descriptors.

    Args:
        registry: Schema registry resolving services and messages. Defaults
            to the process-wide registry, read once here.
        type_resolver: Optional resolver of concrete message classes; the
            generated models are used for anything it does not know.
        get_client_conn: Connection accessor called when a leaf runs.
        add_query_conn_flags: Hook applied to every generated leaf, used to
            add connection flags. ``None`` disables it.
        marshal_options: How responses are rendered.
        output: Stream results are written to (defaults to stdout at run
            time).

    Example::

        builder = Builder(registry=registry)
        query = builder.build_query_command(app_options.modules, {})
        cli.add_command(query)
    """

    def __init__(
        self,
        registry: Optional[SchemaRegistry] = None,
        type_resolver: Optional[TypeResolver] = None,
        get_client_conn: Callable[[click.Context], ClientConn] = conn_from_context,
        add_query_conn_flags: Optional[Callable[[click.Command], None]] = add_query_conn_flags,
        marshal_options: MarshalOptions = DEFAULT_MARSHAL_OPTIONS,
        output: Optional[TextIO] = None,
    ) -> None:
        self.registry = registry if registry is not None else get_default_registry()
        self.type_resolver = type_resolver
        self.get_client_conn = get_client_conn
        self.add_query_conn_flags = add_query_conn_flags
        self.marshal_options = marshal_options
        self.output = output

    # ------------------------------------------------------------------ #
    # Module level
    # ------------------------------------------------------------------ #

    def build_query_command(
        self,
        module_options: Mapping[str, ModuleOptions],
        custom_commands: Mapping[str, click.Command],
    ) -> ServiceGroup:
        """Build the top-level ``query`` group (alias ``q``) for all modules.

        Raises:
            SchemaError: If any module fails to build.
        """
        query_cmd = ServiceGroup("query", aliases=("q",), help="Querying subcommands")
        self.enhance_query_command(query_cmd, module_options, custom_commands)
        return query_cmd

    def enhance_query_command(
        self,
        query_cmd: click.Group,
        module_options: Mapping[str, ModuleOptions],
        custom_commands: Mapping[str, click.Command],
    ) -> None:
        """Add a command for every module missing from *query_cmd*.

        Commands already present in *query_cmd* are never replaced; a custom
        command takes precedence over a generated one. Nothing is added if
        any generated command fails to build.

        Raises:
            SchemaError: If any module fails to build.
        """
        staged: list[tuple[str, click.Command]] = []
        for module in sorted(set(module_options) | set(custom_commands)):
            if module in query_cmd.commands:
                get_output().trace("kept", module, "existing command")
                continue

            custom = custom_commands.get(module)
            if custom is not None:
                staged.append((module, custom))
                continue

            options = module_options.get(module)
            if options is None or options.query is None:
                continue
            staged.append((module, self.build_module_query_command(module, options.query)))

        for name, cmd in staged:
            query_cmd.add_command(cmd, name)

    def build_module_query_command(
        self,
        module: str,
        descriptor: ServiceCommandDescriptor,
    ) -> ServiceGroup:
        """Build the query group of one module."""
        cmd = ServiceGroup(
            module,
            help=descriptor.short or f"Querying commands for the {module} module",
        )
        self.add_query_service_commands(cmd, descriptor)
        get_output().trace("generated", module, "module group")
        return cmd

    # ------------------------------------------------------------------ #
    # Service level
    # ------------------------------------------------------------------ #

    def add_query_service_commands(
        self,
        cmd: click.Group,
        descriptor: ServiceCommandDescriptor,
    ) -> None:
        """Add nested groups and one leaf per service method to *cmd*.

        Commands already present in *cmd* are kept. A nested group wins over a
        method leaf of the same name.

        Raises:
            NotFoundError: If the bound service is not in the registry.
            UnknownMethodError: If an options record names a missing method.
            BindingError: If a method's input cannot be bound to flags.
        """
        staged: list[click.Command] = []
        for name, sub_descriptor in sorted(descriptor.sub_commands.items()):
            sub_cmd = ServiceGroup(
                name,
                help=sub_descriptor.short
                or f"Querying commands for the {sub_descriptor.service} service",
            )
            self.add_query_service_commands(sub_cmd, sub_descriptor)
            staged.append(sub_cmd)

        if descriptor.service:
            service = self.registry.find_service(descriptor.service)
            records = index_method_options(service, descriptor.rpc_command_options)
            for method in service.methods:
                leaf = self.build_query_method_command(
                    service, method, records.get(method.name)
                )
                if leaf is not None:
                    staged.append(leaf)

        # Staged groups come before leaves, so the first of a name is kept.
        attached: set[str] = set()
        for child in staged:
            if child.name in attached or child.name in cmd.commands:
                owner = "nested group" if child.name in attached else "existing command"
                get_output().trace("kept", f"{cmd.name} {child.name}", owner)
                continue
            attached.add(child.name)
            cmd.add_command(child)

    # ------------------------------------------------------------------ #
    # Leaf level
    # ------------------------------------------------------------------ #

    def build_query_method_command(
        self,
        service: ServiceSchema,
        method: MethodSchema,
        options: Union[RpcCommandOptions, CommandSpec, None] = None,
    ) -> Optional[RpcCommand]:
        """Build the leaf command calling *method*, or ``None`` when it is skipped.

        Args:
            service: The service declaring *method*.
            method: The method to call.
            options: Its :class:`~rpcli.models.RpcCommandOptions` record,
                an already merged :class:`~rpcli.generator.options.CommandSpec`,
                or ``None`` for the defaults.

        Raises:
            NotFoundError: If the input or output message cannot be resolved.
            BindingError: If the input message cannot be bound to flags.
        """
        spec = options if isinstance(options, CommandSpec) else merge_method_options(method, options)
        if spec.skip:
            get_output().trace("skipped", service.method_path(method))
            return None

        method_path = service.method_path(method)
        input_schema = self.registry.find_message(method.input_type)
        output_schema = self.registry.find_message(method.output_type)
        input_type = resolve_message_type(self.type_resolver, input_schema, self.registry)
        output_type = resolve_message_type(self.type_resolver, output_schema, self.registry)

        help_text = spec.long or spec.short
        if spec.deprecated:
            help_text = f"[DEPRECATED] {help_text}".rstrip()
        epilog = f"\b\nExample:\n  {spec.example}" if spec.example else None

        cmd = RpcCommand(
            spec.use,
            method_path=method_path,
            aliases=spec.aliases,
            suggest_for=spec.suggest_for,
            deprecation=spec.deprecated,
            help=help_text or None,
            short_help=spec.short or None,
            epilog=epilog,
        )
        binder = bind_message_flags(cmd, input_schema, input_type, spec, self.registry)
        invoker = MethodInvoker(
            method_path=method_path,
            binder=binder,
            output_schema=output_schema,
            output_type=output_type,
            registry=self.registry,
            get_client_conn=self.get_client_conn,
            marshal_options=self.marshal_options,
            output=self.output,
        )
        cmd.binder = binder
        cmd.invoker = invoker
        cmd.callback = _make_callback(invoker)

        if spec.version and not any("--version" in p.opts for p in cmd.params):
            click.version_option(version=spec.version, prog_name=spec.use)(cmd)

        if self.add_query_conn_flags is not None:
            self.add_query_conn_flags(cmd)

        get_output().trace("generated", spec.use, method_path)
        return cmd


def _make_callback(invoker: MethodInvoker) -> Callable[..., None]:
    def callback(**_params: Any) -> None:
        invoker.run(click.get_current_context())

    return callback
