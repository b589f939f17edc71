"""Bind input message fields to click flags and positional arguments.

:func:`bind_message_flags` adds one ``click.Option`` per input field to a
generated command and returns a :class:`MessageBinder` that turns the parsed
values back into a message instance when the command runs.

**Mapping rules:**

* Every field not bound positionally becomes ``--<kebab-field-name>``, or
  the name given by its :class:`~rpcli.models.FlagOptions`, with an
  optional single-letter shorthand.
* Field kinds map to click types: strings to ``STRING``, signed integers to
  ``INT``, unsigned integers to ``IntRange(min=0)``, ``float``/``double``
  to ``FLOAT``, ``bool`` to a boolean flag (``--x/--no-x`` when it defaults
  to true), enums to a case-insensitive
  ``Choice`` of the value names, ``bytes`` to base64 text and nested
  messages to JSON object text.
* Repeated fields accept the flag several times (``multiple=True``).
* Positional fields are gathered by a single catch-all argument; the
  binder's :meth:`MessageBinder.check_args` enforces the argument count.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Optional

import click
from pydantic import BaseModel

from rpcli.codec import dict_to_message
from rpcli.exceptions import BindingError, NotFoundError, SerializationError
from rpcli.generator.options import CommandSpec
from rpcli.generator.strcase import to_kebab
from rpcli.models import (
    FieldKind,
    FieldSchema,
    FlagOptions,
    MessageSchema,
)
from rpcli.schema.registry import SchemaRegistry

#: Name of the catch-all argument collecting positional values.
POSITIONAL_PARAM = "rpc_args"

_SCALAR_PARAM_TYPES: dict[FieldKind, click.ParamType] = {
    FieldKind.STRING: click.STRING,
    FieldKind.BOOL: click.BOOL,
    FieldKind.INT32: click.INT,
    FieldKind.INT64: click.INT,
    FieldKind.UINT32: click.IntRange(min=0),
    FieldKind.UINT64: click.IntRange(min=0),
    FieldKind.FLOAT: click.FLOAT,
    FieldKind.DOUBLE: click.FLOAT,
    FieldKind.BYTES: click.STRING,
    FieldKind.MESSAGE: click.STRING,
}

_KIND_HINTS: dict[FieldKind, str] = {
    FieldKind.BYTES: "(base64)",
    FieldKind.MESSAGE: "(JSON object)",
}

_INVALID_DEST_RE = re.compile(r"\W")


@dataclass(frozen=True)
class _FieldBinding:
    """One input field and the click parameter type that parses it."""

    field: FieldSchema
    param_type: click.ParamType
    dest: str = ""
    flag: str = ""
    varargs: bool = False


class MessageBinder:
    """Rebuilds an input message from the values click parsed for a command.

    Created by :func:`bind_message_flags`; not meant to be constructed
    directly.
    """

    def __init__(
        self,
        schema: MessageSchema,
        message_type: type[BaseModel],
        registry: SchemaRegistry,
        flags: list[_FieldBinding],
        positionals: list[_FieldBinding],
    ) -> None:
        self.schema = schema
        self.message_type = message_type
        self._registry = registry
        self._flags = flags
        self._positionals = positionals

    @property
    def positional_fields(self) -> list[str]:
        return [b.field.name for b in self._positionals]

    @property
    def has_varargs(self) -> bool:
        return bool(self._positionals) and self._positionals[-1].varargs

    def check_args(self, ctx: click.Context, args: tuple[str, ...]) -> None:
        """Validate the number of positional arguments.

        Exactly one argument per positional field is required; when the last
        positional field takes varargs it may receive zero or more values.

        Raises:
            click.UsageError: On a wrong argument count.
        """
        expected = len(self._positionals)
        if self.has_varargs:
            minimum = expected - 1
            if len(args) < minimum:
                raise click.UsageError(
                    f"requires at least {minimum} arg(s), only received {len(args)}",
                    ctx=ctx,
                )
        elif len(args) != expected:
            raise click.UsageError(
                f"accepts {expected} arg(s), received {len(args)}", ctx=ctx
            )

    def build_message(
        self,
        ctx: click.Context,
        params: dict[str, Any],
        args: tuple[str, ...],
    ) -> BaseModel:
        """Construct the input message from parsed flag values and positional args.

        Raises:
            click.BadParameter: If a value cannot be converted to its field.
        """
        data: dict[str, Any] = {}

        for binding in self._flags:
            value = params.get(binding.dest)
            if value is None:
                continue
            if binding.field.repeated:
                if not value:
                    continue
                data[binding.field.name] = [
                    self._finish(binding, item, ctx) for item in value
                ]
            else:
                data[binding.field.name] = self._finish(binding, value, ctx)

        for index, binding in enumerate(self._positionals):
            if binding.varargs:
                raw_values = list(args[index:])
                data[binding.field.name] = [
                    self._finish(binding, self._convert(binding, raw, ctx), ctx)
                    for raw in raw_values
                ]
            elif index < len(args):
                value = self._finish(binding, self._convert(binding, args[index], ctx), ctx)
                data[binding.field.name] = [value] if binding.field.repeated else value

        try:
            return dict_to_message(data, self.schema, self._registry, self.message_type)
        except SerializationError as exc:
            raise click.BadParameter(str(exc), ctx=ctx) from exc

    # ------------------------------------------------------------------ #
    # Value conversion
    # ------------------------------------------------------------------ #

    def _convert(self, binding: _FieldBinding, raw: str, ctx: click.Context) -> Any:
        """Convert one positional string with the field's click type."""
        try:
            return binding.param_type.convert(raw, None, ctx)
        except click.BadParameter as exc:
            exc.param_hint = f"'{binding.field.name.upper()}'"
            raise

    def _finish(self, binding: _FieldBinding, value: Any, ctx: click.Context) -> Any:
        """Decode the text forms used for bytes and message fields."""
        f = binding.field
        hint = _param_hint(binding)
        if f.kind == FieldKind.BYTES:
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise click.BadParameter(
                    f"{value!r} is not valid base64: {exc}", ctx=ctx, param_hint=hint
                ) from exc
        if f.kind == FieldKind.MESSAGE:
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError as exc:
                raise click.BadParameter(
                    f"{value!r} is not valid JSON: {exc}", ctx=ctx, param_hint=hint
                ) from exc
            if not isinstance(decoded, dict):
                raise click.BadParameter(
                    f"expected a JSON object, got {type(decoded).__name__}",
                    ctx=ctx,
                    param_hint=hint,
                )
            return decoded
        return value


def _param_hint(binding: _FieldBinding) -> str:
    if binding.flag:
        return f"'{binding.flag}'"
    return f"'{binding.field.name.upper()}'"


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------


def bind_message_flags(
    command: click.Command,
    message_schema: MessageSchema,
    message_type: type[BaseModel],
    options: CommandSpec,
    registry: SchemaRegistry,
) -> MessageBinder:
    """Add flags and arguments for *message_schema*'s fields to *command*.

    Args:
        command: The generated leaf command; parameters are appended to
            ``command.params``.
        message_schema: The method's input message.
        message_type: The class instances of the input message are built
            with.
        options: Effective command spec supplying positional args and flag
            overrides.
        registry: Used to resolve enum and nested message types.

    Returns:
        The :class:`MessageBinder` for the command.

    Raises:
        BindingError: If the positional or flag options do not fit the
            message, or a nested type cannot be resolved.
    """
    positionals = _bind_positionals(message_schema, options, registry)
    positional_names = {b.field.name for b in positionals}

    for field_name in options.flag_options:
        if message_schema.find_field(field_name) is None:
            raise BindingError(
                f"flag options refer to unknown field {field_name!r} of {message_schema.name}"
            )

    taken: set[str] = set()
    for param in command.params:
        taken.update(param.opts)
        taken.update(param.secondary_opts)

    flags: list[_FieldBinding] = []
    new_params: list[click.Parameter] = []
    for f in message_schema.fields:
        if f.name in positional_names:
            continue
        flag_opts = options.flag_options.get(f.name, FlagOptions())
        param_type = _param_type(f, registry, message_schema)
        dest = "msg_" + _INVALID_DEST_RE.sub("_", f.name)
        decls = [f"--{flag_opts.name or to_kebab(f.name)}"]
        binding = _FieldBinding(field=f, param_type=param_type, dest=dest, flag=decls[0])

        if flag_opts.shorthand:
            if len(flag_opts.shorthand) != 1:
                raise BindingError(
                    f"shorthand {flag_opts.shorthand!r} for field {f.name!r} must be a single letter"
                )
            decls.append(f"-{flag_opts.shorthand}")
        for decl in decls:
            if decl in taken:
                raise BindingError(
                    f"flag {decl} for field {message_schema.name}.{f.name} is already defined"
                )
            taken.add(decl)

        new_params.append(_build_option(binding, decls, flag_opts))
        flags.append(binding)

    if positionals:
        metavar = " ".join(
            f"[{b.field.name.upper()}]..." if b.varargs else b.field.name.upper()
            for b in positionals
        )
        new_params.append(
            click.Argument([POSITIONAL_PARAM], nargs=-1, metavar=metavar)
        )

    command.params.extend(new_params)
    return MessageBinder(message_schema, message_type, registry, flags, positionals)


def _bind_positionals(
    message_schema: MessageSchema,
    options: CommandSpec,
    registry: SchemaRegistry,
) -> list[_FieldBinding]:
    bindings: list[_FieldBinding] = []
    seen: set[str] = set()
    last = len(options.positional_args) - 1
    for index, arg in enumerate(options.positional_args):
        f = message_schema.find_field(arg.proto_field)
        if f is None:
            raise BindingError(
                f"can't find field {arg.proto_field} on {message_schema.name}"
            )
        if arg.proto_field in seen:
            raise BindingError(
                f"field {arg.proto_field} of {message_schema.name} is bound to more than one positional argument"
            )
        if arg.varargs and index != last:
            raise BindingError(
                f"varargs positional argument {arg.proto_field} must be the last one"
            )
        if arg.varargs and not f.repeated:
            raise BindingError(
                f"varargs positional argument {arg.proto_field} must be a repeated field"
            )
        seen.add(arg.proto_field)
        bindings.append(
            _FieldBinding(
                field=f,
                param_type=_param_type(f, registry, message_schema),
                varargs=arg.varargs,
            )
        )
    return bindings


def _param_type(
    f: FieldSchema,
    registry: SchemaRegistry,
    message_schema: MessageSchema,
) -> click.ParamType:
    """Return the click parameter type parsing values of field *f*."""
    try:
        if f.kind == FieldKind.ENUM:
            assert f.type_name is not None
            enum_schema = registry.find_enum(f.type_name)
            return click.Choice(list(enum_schema.values), case_sensitive=False)
        if f.kind == FieldKind.MESSAGE:
            assert f.type_name is not None
            registry.find_message(f.type_name)
    except NotFoundError as exc:
        raise BindingError(
            f"can't bind field {message_schema.name}.{f.name}: {exc}"
        ) from exc
    return _SCALAR_PARAM_TYPES[f.kind]


def _build_option(
    binding: _FieldBinding,
    decls: list[str],
    flag_opts: FlagOptions,
) -> click.Option:
    f = binding.field
    help_text = flag_opts.usage or f.doc.strip()
    hint = _KIND_HINTS.get(f.kind)
    if hint:
        help_text = f"{help_text} {hint}" if help_text else hint
    if flag_opts.deprecated:
        help_text = f"[DEPRECATED: {flag_opts.deprecated}] {help_text}".rstrip()

    param_decls = [*decls, binding.dest]

    default: Optional[Any] = None
    if f.kind == FieldKind.BOOL and not f.repeated:
        if flag_opts.default_value is not None:
            default = _convert_default(binding, flag_opts.default_value)
        if default:
            # True by default: --no-<flag> switches it off.
            param_decls[0] = f"{decls[0]}/--no-{decls[0][2:]}"
        return click.Option(
            param_decls,
            is_flag=True,
            default=bool(default),
            help=help_text or None,
            hidden=flag_opts.hidden,
        )

    if flag_opts.default_value is not None:
        if f.repeated:
            default = tuple(
                _convert_default(binding, item)
                for item in flag_opts.default_value.split(",")
                if item
            )
        else:
            default = _convert_default(binding, flag_opts.default_value)

    return click.Option(
        param_decls,
        type=binding.param_type,
        multiple=f.repeated,
        default=default,
        show_default=flag_opts.default_value is not None,
        help=help_text or None,
        hidden=flag_opts.hidden,
    )


def _convert_default(binding: _FieldBinding, raw: str) -> Any:
    """Convert a declared default value with the field's click type."""
    param_type = click.BOOL if binding.field.kind == FieldKind.BOOL else binding.param_type
    try:
        return param_type.convert(raw.strip(), None, None)
    except click.BadParameter as exc:
        raise BindingError(
            f"invalid default value {raw!r} for field {binding.field.name}: {exc.message}"
        ) from exc
