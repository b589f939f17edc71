"""Service schemas -- registry, document loading, and message type resolution.

This sub-package answers the questions the command generator asks about
remote services: which methods a service declares, what its input and output
messages look like, and which Python class constructs their values.

Typical usage::

    from rpcli.schema import SchemaRegistry, load_schema

    registry = SchemaRegistry()
    load_schema("bank.yaml", registry)
    service = registry.find_service("cosmos.bank.v1beta1.Query")

Sub-modules:

* :mod:`~rpcli.schema.registry` -- Name-keyed store of services, messages,
  and enums plus the process-wide default registry.
* :mod:`~rpcli.schema.loader` -- I/O layer (URL, file, stdin) for schema and
  app options documents.
* :mod:`~rpcli.schema.types` -- Pydantic model generation and the pluggable
  type resolver.
"""

from rpcli.schema.loader import load_app_options, load_document, load_schema
from rpcli.schema.registry import (
    SchemaRegistry,
    get_default_registry,
    reset_default_registry,
    set_default_registry,
)
from rpcli.schema.types import (
    Message,
    ModelTypeResolver,
    TypeResolver,
    build_message_model,
    python_field_name,
    resolve_message_type,
)

__all__ = [
    "SchemaRegistry",
    "get_default_registry",
    "set_default_registry",
    "reset_default_registry",
    "load_document",
    "load_schema",
    "load_app_options",
    "Message",
    "ModelTypeResolver",
    "TypeResolver",
    "build_message_model",
    "python_field_name",
    "resolve_message_type",
]
