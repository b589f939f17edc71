"""Canonical Pydantic models shared across all rpcli modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Command descriptor models** -- the static, declarative tree that describes
which command groups exist and which service each group binds to:
    :class:`FlagOptions`, :class:`PositionalArgDescriptor`,
    :class:`RpcCommandOptions`, :class:`ServiceCommandDescriptor`,
    :class:`ModuleOptions`, and :class:`AppOptions`.

**Schema models** -- the structural description of remote services, produced
by :mod:`rpcli.schema.loader` and stored in a
:class:`~rpcli.schema.registry.SchemaRegistry`:
    :class:`FieldKind`, :class:`FieldSchema`, :class:`EnumSchema`,
    :class:`MessageSchema`, :class:`MethodSchema`, :class:`ServiceSchema`,
    and :class:`SchemaDocument`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ConnectionConfig` and :class:`GlobalConfig`.

All models use Pydantic v2. Descriptor and schema models are constructed once
before CLI start-up and treated as read-only afterwards.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator


# --- Command descriptors ---


class FlagOptions(BaseModel):
    """Per-field override of the flag generated for an input message field.

    Example::

        FlagOptions(name="denom", shorthand="d", usage="Coin denomination")
    """

    name: Optional[str] = Field(
        default=None, description="Long flag name (without dashes), defaults to the kebab-case field name"
    )
    shorthand: Optional[str] = Field(
        default=None, description="Single-letter short flag"
    )
    usage: Optional[str] = Field(default=None, description="Flag help text")
    default_value: Optional[str] = Field(
        default=None, description="Default value, converted like a command-line value"
    )
    deprecated: Optional[str] = Field(
        default=None, description="Deprecation notice shown in the flag help"
    )
    hidden: bool = False


class PositionalArgDescriptor(BaseModel):
    """Binds an input message field to a positional command-line argument."""

    proto_field: str
    varargs: bool = Field(
        default=False,
        description="Consume all remaining arguments (last positional, repeated field only)",
    )


class RpcCommandOptions(BaseModel):
    """Explicit per-method options overriding the schema-derived defaults.

    A record must name a method that exists on the bound service; the builder
    raises :class:`~rpcli.exceptions.UnknownMethodError` otherwise. Methods
    without a record get a zero-value instance of this model.
    """

    rpc_method: str
    use: str = Field(default="", description="Command name, defaults to kebab-case method name")
    long: str = Field(default="", description="Long help, defaults to the method docs")
    short: str = ""
    example: str = ""
    aliases: list[str] = Field(default_factory=list)
    suggest_for: list[str] = Field(default_factory=list)
    deprecated: str = Field(default="", description="Deprecation notice; non-empty marks the command deprecated")
    version: str = ""
    flag_options: dict[str, FlagOptions] = Field(default_factory=dict)
    positional_args: list[PositionalArgDescriptor] = Field(default_factory=list)
    skip: bool = False


class ServiceCommandDescriptor(BaseModel):
    """A named node in the static command tree.

    ``service`` binds the node to a remote service whose methods become leaf
    commands; ``sub_commands`` declares nested groups. Both may be present.
    A descriptor with neither contributes an empty group.
    """

    service: str = ""
    short: Optional[str] = Field(
        default=None, description="Group help text, overrides the generated summary"
    )
    rpc_command_options: list[RpcCommandOptions] = Field(default_factory=list)
    sub_commands: dict[str, ServiceCommandDescriptor] = Field(default_factory=dict)


class ModuleOptions(BaseModel):
    """Command descriptors declared by one application module."""

    query: Optional[ServiceCommandDescriptor] = None


class AppOptions(BaseModel):
    """All module descriptors of an application, keyed by module name.

    Loaded by :func:`~rpcli.schema.loader.load_app_options` from a static
    JSON/YAML document before the CLI starts.
    """

    modules: dict[str, ModuleOptions] = Field(default_factory=dict)


# --- Schema ---


class FieldKind(str, enum.Enum):
    """Scalar and composite kinds a message field can have."""

    STRING = "string"
    BOOL = "bool"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT = "float"
    DOUBLE = "double"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"


INTEGER_KINDS = frozenset(
    {FieldKind.INT32, FieldKind.INT64, FieldKind.UINT32, FieldKind.UINT64}
)
UNSIGNED_KINDS = frozenset({FieldKind.UINT32, FieldKind.UINT64})
WIDE_INTEGER_KINDS = frozenset({FieldKind.INT64, FieldKind.UINT64})
FLOAT_KINDS = frozenset({FieldKind.FLOAT, FieldKind.DOUBLE})


class FieldSchema(BaseModel):
    """A single field of a :class:`MessageSchema`.

    ``type_name`` is the fully-qualified name of the enum or message type and
    is required for the ``enum`` and ``message`` kinds.
    """

    name: str
    kind: FieldKind = FieldKind.STRING
    repeated: bool = False
    type_name: Optional[str] = None
    doc: str = ""

    @model_validator(mode="after")
    def _check_type_name(self) -> FieldSchema:
        if self.kind in (FieldKind.ENUM, FieldKind.MESSAGE) and not self.type_name:
            raise ValueError(
                f"field {self.name!r} of kind {self.kind.value} requires a type_name"
            )
        return self


class EnumSchema(BaseModel):
    """An enum type: ordered mapping of value names to numbers."""

    name: str
    values: dict[str, int] = Field(default_factory=dict)
    doc: str = ""

    @property
    def default_number(self) -> int:
        """The value a field of this enum holds when unset (0, else the first declared)."""
        if 0 in self.values.values() or not self.values:
            return 0
        return next(iter(self.values.values()))

    def name_of(self, number: int) -> Optional[str]:
        """Return the name declared for *number*, or ``None``."""
        for name, value in self.values.items():
            if value == number:
                return name
        return None

    def number_of(self, name: str) -> Optional[int]:
        """Return the number declared for *name* (case-insensitive), or ``None``."""
        if name in self.values:
            return self.values[name]
        lowered = name.lower()
        for candidate, value in self.values.items():
            if candidate.lower() == lowered:
                return value
        return None


class MessageSchema(BaseModel):
    """The structural shape of a request or response message."""

    name: str
    fields: list[FieldSchema] = Field(default_factory=list)
    doc: str = ""

    @model_validator(mode="after")
    def _check_unique_fields(self) -> MessageSchema:
        seen: set[str] = set()
        for f in self.fields:
            if f.name in seen:
                raise ValueError(f"duplicate field {f.name!r} in message {self.name}")
            seen.add(f.name)
        return self

    def find_field(self, name: str) -> Optional[FieldSchema]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


class MethodSchema(BaseModel):
    """A unary RPC method: input and output message names plus its documentation."""

    name: str
    input_type: str
    output_type: str
    doc: str = ""


class ServiceSchema(BaseModel):
    """A remote service: an ordered, indexed collection of methods.

    Example::

        service = ServiceSchema(name="pkg.Bank", methods=[...])
        service.find_method("Balance")
        service.method_path(service.methods[0])   # "/pkg.Bank/Balance"
    """

    name: str
    methods: list[MethodSchema] = Field(default_factory=list)
    doc: str = ""

    _index: dict[str, MethodSchema] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def _check_unique_methods(self) -> ServiceSchema:
        seen: set[str] = set()
        for m in self.methods:
            if m.name in seen:
                raise ValueError(f"duplicate method {m.name!r} in service {self.name}")
            seen.add(m.name)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._index = {m.name: m for m in self.methods}

    def find_method(self, name: str) -> Optional[MethodSchema]:
        """Return the method called *name*, or ``None`` when the service has none."""
        return self._index.get(name)

    def method_path(self, method: MethodSchema) -> str:
        """Return the full network path of *method*: ``/<service>/<method>``."""
        return f"/{self.name}/{method.name}"


class SchemaDocument(BaseModel):
    """On-disk format of a schema file (JSON or YAML).

    Example (YAML)::

        services:
          - name: pkg.Bank
            methods:
              - {name: Balance, input_type: pkg.BalanceRequest, output_type: pkg.BalanceResponse}
        messages:
          - name: pkg.BalanceRequest
            fields:
              - {name: address}
              - {name: denom}
        enums: []
    """

    services: list[ServiceSchema] = Field(default_factory=list)
    messages: list[MessageSchema] = Field(default_factory=list)
    enums: list[EnumSchema] = Field(default_factory=list)


# --- Configuration ---


class ConnectionConfig(BaseModel):
    """How generated commands reach the remote node."""

    node: str = Field(
        default="http://localhost:1317", description="Base URL of the RPC node"
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/rpcli/config.json``.

    Loaded and saved by :func:`~rpcli.config.load_global_config` and
    :func:`~rpcli.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~rpcli.config.resolve_config`
    for the full precedence chain.
    """

    model_config = ConfigDict(extra="forbid")

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    schema_sources: list[str] = Field(
        default_factory=list, description="Schema documents (paths or URLs) to load"
    )
    options_source: Optional[str] = Field(
        default=None, description="App options document (path or URL)"
    )
