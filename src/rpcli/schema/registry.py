"""Schema registry -- resolve services, messages, and enums by full name.

The :class:`SchemaRegistry` is the lookup table the command-tree builder
consults to turn a descriptor's service name into a
:class:`~rpcli.models.ServiceSchema`, and a method's input/output type
names into :class:`~rpcli.models.MessageSchema` instances.

A process-wide default registry is available through
:func:`get_default_registry`. It is created lazily on first use, populated
at start-up by :func:`rpcli.app.main`, and can be replaced or cleared with
:func:`set_default_registry` / :func:`reset_default_registry` (tests do this
between cases). The builder reads the default once, when it is constructed
without an explicit registry.
"""

from __future__ import annotations

from typing import Optional

from rpcli.exceptions import DescriptorError, NotFoundError
from rpcli.models import (
    EnumSchema,
    FieldKind,
    MessageSchema,
    SchemaDocument,
    ServiceSchema,
)


class SchemaRegistry:
    """In-memory store of service, message, and enum schemas keyed by full name.

    Example::

        registry = SchemaRegistry()
        registry.register_document(document)
        service = registry.find_service("cosmos.bank.v1beta1.Query")
    """

    def __init__(self) -> None:
        self._services: dict[str, ServiceSchema] = {}
        self._messages: dict[str, MessageSchema] = {}
        self._enums: dict[str, EnumSchema] = {}

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #

    def register_service(self, service: ServiceSchema) -> None:
        self._services[service.name] = service

    def register_message(self, message: MessageSchema) -> None:
        self._messages[message.name] = message

    def register_enum(self, enum_schema: EnumSchema) -> None:
        self._enums[enum_schema.name] = enum_schema

    def register_document(self, document: SchemaDocument) -> None:
        """Register every type in *document* after checking its references.

        Enums and messages are registered before the check so that a
        document may refer to types declared earlier in the same registry
        as well as to its own.

        Raises:
            DescriptorError: If a method's input/output type, or a field's
                enum/message type, is not known to the registry. Nothing
                from the document is registered in that case.
        """
        known_messages = set(self._messages) | {m.name for m in document.messages}
        known_enums = set(self._enums) | {e.name for e in document.enums}

        for message in document.messages:
            for f in message.fields:
                if f.kind == FieldKind.MESSAGE and f.type_name not in known_messages:
                    raise DescriptorError(
                        f"field {message.name}.{f.name} refers to unknown message {f.type_name}"
                    )
                if f.kind == FieldKind.ENUM and f.type_name not in known_enums:
                    raise DescriptorError(
                        f"field {message.name}.{f.name} refers to unknown enum {f.type_name}"
                    )

        for service in document.services:
            for method in service.methods:
                for type_name in (method.input_type, method.output_type):
                    if type_name not in known_messages:
                        raise DescriptorError(
                            f"method {service.name}.{method.name} refers to unknown message {type_name}"
                        )

        for enum_schema in document.enums:
            self.register_enum(enum_schema)
        for message in document.messages:
            self.register_message(message)
        for service in document.services:
            self.register_service(service)

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def find_service(self, full_name: str) -> ServiceSchema:
        """Return the service registered as *full_name*.

        Raises:
            NotFoundError: If the service is unknown. The message includes
                the underlying lookup error.
        """
        try:
            return self._services[full_name]
        except KeyError as exc:
            raise NotFoundError(
                f"can't find service {full_name}: {_lookup_error(exc, 'service')}"
            ) from exc

    def find_message(self, full_name: str) -> MessageSchema:
        """Return the message registered as *full_name*.

        Raises:
            NotFoundError: If the message is unknown.
        """
        try:
            return self._messages[full_name]
        except KeyError as exc:
            raise NotFoundError(
                f"can't find message {full_name}: {_lookup_error(exc, 'message')}"
            ) from exc

    def find_enum(self, full_name: str) -> EnumSchema:
        """Return the enum registered as *full_name*.

        Raises:
            NotFoundError: If the enum is unknown.
        """
        try:
            return self._enums[full_name]
        except KeyError as exc:
            raise NotFoundError(
                f"can't find enum {full_name}: {_lookup_error(exc, 'enum')}"
            ) from exc

    def services(self) -> list[ServiceSchema]:
        """Return all registered services sorted by full name."""
        return [self._services[name] for name in sorted(self._services)]

    def messages(self) -> list[MessageSchema]:
        """Return all registered messages sorted by full name."""
        return [self._messages[name] for name in sorted(self._messages)]

    def __contains__(self, full_name: object) -> bool:
        return (
            full_name in self._services
            or full_name in self._messages
            or full_name in self._enums
        )


def _lookup_error(exc: KeyError, kind: str) -> str:
    """Render the original lookup failure for diagnostics."""
    return f"{kind} {exc.args[0]!r} not found in registry"


# ------------------------------------------------------------------ #
# Process-wide default registry
# ------------------------------------------------------------------ #

_default_registry: Optional[SchemaRegistry] = None


def get_default_registry() -> SchemaRegistry:
    """Return the process-wide :class:`SchemaRegistry`, creating it on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = SchemaRegistry()
    return _default_registry


def set_default_registry(registry: SchemaRegistry) -> None:
    """Install *registry* as the process-wide default."""
    global _default_registry
    _default_registry = registry


def reset_default_registry() -> None:
    """Drop the process-wide default registry.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _default_registry
    _default_registry = None
