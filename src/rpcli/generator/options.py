"""Merge explicit per-method options with schema-derived defaults.

Each method of a bound service becomes one leaf command. A descriptor may
carry an :class:`~rpcli.models.RpcCommandOptions` record for some of the
methods; every record must name a method the service really declares.
Methods without a record get a zero-value record, so that every method
ends up with an effective :class:`CommandSpec`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from rpcli.exceptions import UnknownMethodError
from rpcli.generator.strcase import to_kebab
from rpcli.models import (
    FlagOptions,
    MethodSchema,
    ModuleOptions,
    PositionalArgDescriptor,
    RpcCommandOptions,
    ServiceCommandDescriptor,
    ServiceSchema,
)

# Package segments like "v1", "v1beta1", "v2alpha3".
_VERSION_RE = re.compile(r"^v\d+((alpha|beta)\d*)?$")


@dataclass(frozen=True)
class CommandSpec:
    """The effective shape of one generated leaf command."""

    rpc_method: str
    use: str
    long: str = ""
    short: str = ""
    example: str = ""
    aliases: tuple[str, ...] = ()
    suggest_for: tuple[str, ...] = ()
    deprecated: str = ""
    version: str = ""
    flag_options: dict[str, FlagOptions] = field(default_factory=dict)
    positional_args: tuple[PositionalArgDescriptor, ...] = ()
    skip: bool = False


def index_method_options(
    service: ServiceSchema,
    records: list[RpcCommandOptions],
) -> dict[str, RpcCommandOptions]:
    """Index *records* by target method name, checking each against *service*.

    Raises:
        UnknownMethodError: If a record names a method *service* does not
            declare.
    """
    indexed: dict[str, RpcCommandOptions] = {}
    for record in records:
        if service.find_method(record.rpc_method) is None:
            raise UnknownMethodError(
                f'rpc method "{record.rpc_method}" not found for service "{service.name}"'
            )
        indexed[record.rpc_method] = record
    return indexed


def default_module_options(services: list[ServiceSchema]) -> dict[str, ModuleOptions]:
    """Derive one query module per service when no app options document is given.

    The module is named after the service: ``pkg.Bank`` becomes ``bank``,
    and a service called ``Query`` takes the name of its package, skipping
    version segments (``cosmos.bank.v1beta1.Query`` becomes ``bank``). When
    two services derive the same name, both use their kebab-cased full name.
    """
    derived: dict[str, list[ServiceSchema]] = {}
    for service in services:
        derived.setdefault(_module_name(service.name), []).append(service)

    modules: dict[str, ModuleOptions] = {}
    for name, candidates in derived.items():
        for service in candidates:
            key = name if len(candidates) == 1 else to_kebab(service.name)
            modules[key] = ModuleOptions(query=ServiceCommandDescriptor(service=service.name))
    return modules


def _module_name(service_name: str) -> str:
    segments = service_name.split(".")
    short = segments[-1]
    if short == "Query" and len(segments) > 1:
        packages = [s for s in segments[:-1] if not _VERSION_RE.match(s)]
        if packages:
            return to_kebab(packages[-1])
    return to_kebab(short)


def merge_method_options(
    method: MethodSchema,
    record: RpcCommandOptions | None,
) -> CommandSpec:
    """Return the effective command spec for *method*.

    ``use`` falls back to the kebab-case method name and ``long`` to the
    method's documentation; everything else comes from *record* (or its
    zero value when there is no record).
    """
    if record is None:
        record = RpcCommandOptions(rpc_method=method.name)

    return CommandSpec(
        rpc_method=method.name,
        use=record.use or to_kebab(method.name),
        long=record.long or method.doc.strip(),
        short=record.short,
        example=record.example,
        aliases=tuple(record.aliases),
        suggest_for=tuple(record.suggest_for),
        deprecated=record.deprecated,
        version=record.version,
        flag_options=dict(record.flag_options),
        positional_args=tuple(record.positional_args),
        skip=record.skip,
    )
