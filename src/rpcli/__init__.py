"""rpcli -- Generate CLI command trees from RPC service descriptors.

This package turns a declarative description of remote service methods into
a Click command tree with one sub-command per RPC method. Applications
describe their modules with :class:`~rpcli.models.ServiceCommandDescriptor`
trees, register the service schemas in a
:class:`~rpcli.schema.registry.SchemaRegistry`, and let
:class:`~rpcli.generator.command_tree.Builder` produce the commands.
Hand-written commands supplied by a module always take precedence over
generated ones.

Typical workflow::

    rpcli config set schema_sources '["bank.yaml"]'
    rpcli config set options_source autocli.yaml
    rpcli query bank balance cosmos1... --denom uatom

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    codec: Canonical JSON encoding and decoding of message values.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
