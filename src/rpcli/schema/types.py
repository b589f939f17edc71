"""Resolve message schemas to concrete Pydantic model classes.

Every request and response value handled by generated commands is a
:class:`pydantic.BaseModel` instance. Applications that ship hand-written
models register them with a :class:`ModelTypeResolver`; every other message
gets a model generated from its :class:`~rpcli.models.MessageSchema` with
:func:`pydantic.create_model`.

**Generated model rules:**

* Field names are the schema names, made safe by :func:`python_field_name`;
  the schema name is kept as the validation alias.
* Scalars default to their zero value (``""``, ``0``, ``0.0``, ``False``,
  ``b""``). Enum fields hold the enum *number* and default to
  :attr:`~rpcli.models.EnumSchema.default_number`.
* Repeated fields are lists defaulting to ``[]``; nested messages default
  to ``None``.
* A message that (directly or indirectly) contains itself gets a plain
  ``dict`` for the cyclic field.

Generated models are cached per registry.
"""

from __future__ import annotations

import keyword
import weakref
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, create_model

from rpcli.models import FieldKind, FieldSchema, MessageSchema
from rpcli.schema.registry import SchemaRegistry


class Message(BaseModel):
    """Base class of every generated message model."""

    model_config = ConfigDict(
        populate_by_name=True,
        protected_namespaces=(),
        extra="ignore",
    )


_RESERVED_NAMES = frozenset(dir(BaseModel))

_SCALAR_TYPES: dict[FieldKind, type] = {
    FieldKind.STRING: str,
    FieldKind.BOOL: bool,
    FieldKind.INT32: int,
    FieldKind.INT64: int,
    FieldKind.UINT32: int,
    FieldKind.UINT64: int,
    FieldKind.FLOAT: float,
    FieldKind.DOUBLE: float,
    FieldKind.BYTES: bytes,
    FieldKind.ENUM: int,
}

_ZERO_VALUES: dict[FieldKind, Any] = {
    FieldKind.STRING: "",
    FieldKind.BOOL: False,
    FieldKind.INT32: 0,
    FieldKind.INT64: 0,
    FieldKind.UINT32: 0,
    FieldKind.UINT64: 0,
    FieldKind.FLOAT: 0.0,
    FieldKind.DOUBLE: 0.0,
    FieldKind.BYTES: b"",
}


def python_field_name(name: str) -> str:
    """Convert a schema field name to the attribute name used on message models.

    * Python keywords and names shadowing :class:`~pydantic.BaseModel`
      attributes get a trailing underscore (``from`` -> ``from_``).
    * A leading underscore (private in Pydantic) gets a ``field`` prefix
      (``_id`` -> ``field_id``).

    Example::

        >>> python_field_name("from")
        'from_'
        >>> python_field_name("denom")
        'denom'
    """
    if name.startswith("_"):
        name = f"field{name}"
    if keyword.iskeyword(name) or name in _RESERVED_NAMES:
        name = f"{name}_"
    return name


class TypeResolver(Protocol):
    """Looks up concrete model classes for message full names."""

    def find_message_type(self, full_name: str) -> Optional[type[BaseModel]]:
        """Return the model class for *full_name*, or ``None`` if not registered."""
        ...


class ModelTypeResolver:
    """A :class:`TypeResolver` backed by an explicit name -> class mapping.

    Example::

        resolver = ModelTypeResolver()
        resolver.register("pkg.BalanceResponse", BalanceResponse)
    """

    def __init__(self, types: Optional[dict[str, type[BaseModel]]] = None) -> None:
        self._types: dict[str, type[BaseModel]] = dict(types or {})

    def register(self, full_name: str, model: type[BaseModel]) -> None:
        self._types[full_name] = model

    def find_message_type(self, full_name: str) -> Optional[type[BaseModel]]:
        return self._types.get(full_name)


def resolve_message_type(
    resolver: Optional[TypeResolver],
    schema: MessageSchema,
    registry: SchemaRegistry,
) -> type[BaseModel]:
    """Return the concrete class used to construct values of *schema*.

    A class registered with *resolver* wins; otherwise the schema's own
    generated model is returned (see :func:`build_message_model`).

    Raises:
        NotFoundError: If a nested enum or message type is missing from
            *registry*.
    """
    if resolver is not None:
        found = resolver.find_message_type(schema.name)
        if found is not None:
            return found
    return build_message_model(schema, registry)


# ------------------------------------------------------------------ #
# Generated models
# ------------------------------------------------------------------ #

_model_cache: weakref.WeakKeyDictionary[SchemaRegistry, dict[str, type[Message]]] = (
    weakref.WeakKeyDictionary()
)


def build_message_model(
    schema: MessageSchema,
    registry: SchemaRegistry,
    _building: Optional[set[str]] = None,
) -> type[Message]:
    """Generate (or return the cached) Pydantic model for *schema*.

    Args:
        schema: The message to build a model for.
        registry: Registry used to resolve nested enum and message types.

    Returns:
        A :class:`Message` subclass named after the last segment of the
        message's full name.
    """
    cache = _model_cache.setdefault(registry, {})
    cached = cache.get(schema.name)
    if cached is not None:
        return cached

    building = _building if _building is not None else set()
    building.add(schema.name)

    definitions: dict[str, Any] = {}
    for f in schema.fields:
        annotation, field_info = _field_definition(f, registry, building)
        definitions[python_field_name(f.name)] = (annotation, field_info)

    model = create_model(  # type: ignore[call-overload]
        schema.name.rsplit(".", 1)[-1] or "Message",
        __base__=Message,
        __module__=__name__,
        **definitions,
    )
    building.discard(schema.name)
    cache[schema.name] = model
    return model


def _field_definition(
    f: FieldSchema,
    registry: SchemaRegistry,
    building: set[str],
) -> tuple[Any, Any]:
    """Return the ``(annotation, FieldInfo)`` pair for one schema field."""
    if f.kind == FieldKind.MESSAGE:
        assert f.type_name is not None
        if f.type_name in building:
            item_type: Any = dict[str, Any]
        else:
            nested = registry.find_message(f.type_name)
            item_type = build_message_model(nested, registry, building)
        if f.repeated:
            return list[item_type], Field(default_factory=list, alias=f.name)
        return Optional[item_type], Field(default=None, alias=f.name)

    item_type = _SCALAR_TYPES[f.kind]
    if f.repeated:
        return list[item_type], Field(default_factory=list, alias=f.name)

    if f.kind == FieldKind.ENUM:
        assert f.type_name is not None
        default = registry.find_enum(f.type_name).default_number
    else:
        default = _ZERO_VALUES[f.kind]
    return item_type, Field(default=default, alias=f.name)
