"""Canonical JSON encoding and decoding of message values.

Generated commands print their results in one canonical form, and the HTTP
transport sends requests in the same form. The encoding walks the
:class:`~rpcli.models.MessageSchema` rather than the Python object, so the
output does not depend on how the value was constructed:

* fields appear in schema declaration order;
* unpopulated fields are included with their zero value when
  :attr:`MarshalOptions.emit_unpopulated` is set;
* enum values are rendered by name (numbers without a declared name stay
  numeric);
* 64-bit integers are rendered as strings, bytes as standard base64, and
  non-finite floats as ``"NaN"`` / ``"Infinity"`` / ``"-Infinity"``.

Decoding (:func:`dict_to_message`) accepts both the schema field names and
their lowerCamelCase JSON names, enum names or numbers, base64 bytes and
string-encoded integers, and ignores unknown keys.
"""

from __future__ import annotations

import base64
import binascii
import json
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from rpcli.exceptions import NotFoundError, SerializationError
from rpcli.models import (
    FLOAT_KINDS,
    INTEGER_KINDS,
    WIDE_INTEGER_KINDS,
    FieldKind,
    FieldSchema,
    MessageSchema,
)
from rpcli.schema.registry import SchemaRegistry
from rpcli.schema.types import python_field_name


@dataclass(frozen=True)
class MarshalOptions:
    """Controls how :func:`marshal_json` renders a message.

    Attributes:
        indent: Indentation string; empty renders a single compact line.
        use_proto_names: Use schema field names instead of lowerCamelCase.
        use_enum_numbers: Render enums as numbers instead of names.
        emit_unpopulated: Include fields that hold their zero value.
    """

    indent: str = "  "
    use_proto_names: bool = True
    use_enum_numbers: bool = False
    emit_unpopulated: bool = True


DEFAULT_MARSHAL_OPTIONS = MarshalOptions()

# Request bodies travel compact, without zero-valued fields.
WIRE_MARSHAL_OPTIONS = MarshalOptions(indent="", emit_unpopulated=False)


def json_name(name: str) -> str:
    """Return the lowerCamelCase JSON name of a schema field name.

    Example::

        >>> json_name("denom_metadata")
        'denomMetadata'
    """
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


# ------------------------------------------------------------------ #
# Encoding
# ------------------------------------------------------------------ #


def marshal_json(
    message: Any,
    schema: MessageSchema,
    registry: SchemaRegistry,
    options: MarshalOptions = DEFAULT_MARSHAL_OPTIONS,
) -> str:
    """Render *message* as canonical JSON text.

    Args:
        message: A model instance (or mapping keyed by field name) holding
            values of *schema*.
        schema: The message's schema, which fixes field order and kinds.
        registry: Used to resolve nested enum and message types.
        options: Rendering options.

    Returns:
        The JSON text, without a trailing newline.

    Raises:
        SerializationError: If a value cannot be rendered.
    """
    data = message_to_dict(message, schema, registry, options)
    try:
        return json.dumps(
            data,
            indent=options.indent or None,
            separators=None if options.indent else (",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"cannot render {schema.name} as JSON: {exc}") from exc


def message_to_dict(
    message: Any,
    schema: MessageSchema,
    registry: SchemaRegistry,
    options: MarshalOptions = DEFAULT_MARSHAL_OPTIONS,
) -> dict[str, Any]:
    """Convert *message* to a JSON-compatible dict following the canonical rules.

    Raises:
        SerializationError: If a field value does not fit its declared kind.
    """
    result: dict[str, Any] = {}
    for f in schema.fields:
        value = _read_field(message, f)
        if not options.emit_unpopulated and _is_unpopulated(f, value):
            continue
        key = f.name if options.use_proto_names else json_name(f.name)
        try:
            if f.repeated:
                result[key] = [
                    _encode_value(f, item, registry, options) for item in (value or [])
                ]
            else:
                result[key] = _encode_value(f, value, registry, options)
        except SerializationError:
            raise
        except (TypeError, ValueError, NotFoundError) as exc:
            raise SerializationError(
                f"cannot encode field {schema.name}.{f.name}: {exc}"
            ) from exc
    return result


def _read_field(message: Any, f: FieldSchema) -> Any:
    if isinstance(message, Mapping):
        if f.name in message:
            return message[f.name]
        return message.get(json_name(f.name))
    return getattr(message, python_field_name(f.name), None)


def _is_unpopulated(f: FieldSchema, value: Any) -> bool:
    if value is None:
        return True
    if f.repeated:
        return len(value) == 0
    if f.kind == FieldKind.MESSAGE:
        return False
    if f.kind == FieldKind.BYTES:
        return len(value) == 0
    return not value


def _encode_value(
    f: FieldSchema,
    value: Any,
    registry: SchemaRegistry,
    options: MarshalOptions,
) -> Any:
    """Encode one (non-repeated) value of field *f*."""
    kind = f.kind
    if kind == FieldKind.MESSAGE:
        if value is None:
            return None
        assert f.type_name is not None
        nested = registry.find_message(f.type_name)
        return message_to_dict(value, nested, registry, options)

    if kind == FieldKind.ENUM:
        assert f.type_name is not None
        enum_schema = registry.find_enum(f.type_name)
        number = enum_schema.default_number if value is None else int(value)
        if options.use_enum_numbers:
            return number
        name = enum_schema.name_of(number)
        return name if name is not None else number

    if kind in INTEGER_KINDS:
        number = 0 if value is None else int(value)
        return str(number) if kind in WIDE_INTEGER_KINDS else number

    if kind in FLOAT_KINDS:
        number = 0.0 if value is None else float(value)
        if math.isnan(number):
            return "NaN"
        if math.isinf(number):
            return "Infinity" if number > 0 else "-Infinity"
        return number

    if kind == FieldKind.BYTES:
        if value is None:
            return ""
        raw = value.encode("utf-8") if isinstance(value, str) else bytes(value)
        return base64.b64encode(raw).decode("ascii")

    if kind == FieldKind.BOOL:
        return False if value is None else bool(value)

    return "" if value is None else str(value)


# ------------------------------------------------------------------ #
# Decoding
# ------------------------------------------------------------------ #


def dict_to_message(
    data: Any,
    schema: MessageSchema,
    registry: SchemaRegistry,
    message_type: type[BaseModel],
) -> BaseModel:
    """Build a *message_type* instance from JSON-compatible *data*.

    Args:
        data: A dict keyed by schema field names or their JSON names.
        schema: The schema describing *data*.
        registry: Used to resolve nested enum and message types.
        message_type: The model class to construct.

    Raises:
        SerializationError: If *data* does not match the schema.
    """
    normalized = normalize_dict(data, schema, registry)
    try:
        return message_type.model_validate(normalized)
    except ValidationError as exc:
        raise SerializationError(f"invalid {schema.name}: {exc}") from exc


def normalize_dict(
    data: Any,
    schema: MessageSchema,
    registry: SchemaRegistry,
) -> dict[str, Any]:
    """Convert wire-format *data* to model-ready values keyed by schema field name."""
    if not isinstance(data, Mapping):
        raise SerializationError(
            f"expected an object for {schema.name}, got {type(data).__name__}"
        )
    result: dict[str, Any] = {}
    for f in schema.fields:
        if f.name in data:
            value = data[f.name]
        elif json_name(f.name) in data:
            value = data[json_name(f.name)]
        else:
            continue
        if value is None:
            continue
        try:
            if f.repeated:
                if not isinstance(value, list):
                    raise SerializationError(
                        f"expected a list for {schema.name}.{f.name}, got {type(value).__name__}"
                    )
                result[f.name] = [_decode_value(f, item, registry) for item in value]
            else:
                result[f.name] = _decode_value(f, value, registry)
        except SerializationError:
            raise
        except (TypeError, ValueError, binascii.Error, NotFoundError) as exc:
            raise SerializationError(
                f"cannot decode field {schema.name}.{f.name}: {exc}"
            ) from exc
    return result


def _decode_value(f: FieldSchema, value: Any, registry: SchemaRegistry) -> Any:
    """Decode one (non-repeated) wire value of field *f*."""
    kind = f.kind
    if kind == FieldKind.MESSAGE:
        assert f.type_name is not None
        return normalize_dict(value, registry.find_message(f.type_name), registry)

    if kind == FieldKind.ENUM:
        assert f.type_name is not None
        if isinstance(value, bool):
            raise ValueError(f"invalid enum value {value!r}")
        if isinstance(value, int):
            return value
        number = registry.find_enum(f.type_name).number_of(str(value))
        if number is None:
            raise ValueError(f"unknown {f.type_name} value {value!r}")
        return number

    if kind in INTEGER_KINDS and isinstance(value, str):
        return int(value)

    if kind in FLOAT_KINDS and isinstance(value, str):
        return float(value)

    if kind == FieldKind.BYTES and isinstance(value, str):
        return base64.b64decode(value, validate=True)

    return value
