"""CLI generator -- build a click command tree from module command descriptors.

This sub-package turns the static descriptor tree of each application module
(:class:`~rpcli.models.AppOptions`) plus the service schemas in a
:class:`~rpcli.schema.registry.SchemaRegistry` into a ``query`` command
group with one leaf per remote method.

Typical usage::

    from rpcli.generator import Builder

    builder = Builder(registry=registry)
    query_cmd = builder.build_query_command(app_options.modules, custom_commands={})
    cli.add_command(query_cmd)

Sub-modules:

* :mod:`~rpcli.generator.strcase` -- kebab-case names for commands and flags.
* :mod:`~rpcli.generator.options` -- merge per-method option records with
  schema-derived defaults.
* :mod:`~rpcli.generator.binder` -- bind input message fields to click
  flags and positional arguments.
* :mod:`~rpcli.generator.invoker` -- the run-time pipeline of a leaf.
* :mod:`~rpcli.generator.command_tree` -- the recursive builder with its
  existing > custom > generated precedence.
"""

from rpcli.generator.binder import MessageBinder, bind_message_flags
from rpcli.generator.command_tree import Builder, RpcCommand, ServiceGroup
from rpcli.generator.invoker import MethodInvoker
from rpcli.generator.options import CommandSpec, index_method_options, merge_method_options
from rpcli.generator.strcase import to_kebab

__all__ = [
    "Builder",
    "CommandSpec",
    "MessageBinder",
    "MethodInvoker",
    "RpcCommand",
    "ServiceGroup",
    "bind_message_flags",
    "index_method_options",
    "merge_method_options",
    "to_kebab",
]
