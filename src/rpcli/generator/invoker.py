"""Execution handler of generated leaf commands.

A :class:`MethodInvoker` is created for every leaf at build time and holds
everything the call needs. When the user runs the command, :meth:`run`
goes through one pass of::

    acquire connection -> build request -> remote call -> render JSON -> write

Each stage's error propagates unchanged and aborts the rest, so nothing is
written to the output stream unless every earlier stage succeeded. The
connection accessor is only called at this point, never during the build.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

import click
from pydantic import BaseModel

from rpcli.client.connection import REGISTRY_META_KEY, ClientConn
from rpcli.codec import MarshalOptions, marshal_json
from rpcli.exceptions import OutputError
from rpcli.generator.binder import POSITIONAL_PARAM, MessageBinder
from rpcli.models import MessageSchema
from rpcli.output import get_output
from rpcli.schema.registry import SchemaRegistry


@dataclass
class MethodInvoker:
    """Calls one remote method with the arguments of one command invocation."""

    method_path: str
    binder: MessageBinder
    output_schema: MessageSchema
    output_type: type[BaseModel]
    registry: SchemaRegistry
    get_client_conn: Callable[[click.Context], ClientConn]
    marshal_options: MarshalOptions
    output: Optional[TextIO] = None

    def run(self, ctx: click.Context) -> None:
        """Perform the call for *ctx* and write the rendered response.

        Raises:
            RemoteError: If connecting or the remote call fails.
            SerializationError: If the response cannot be rendered.
            OutputError: If writing to the output stream fails.
            click.BadParameter: If an argument cannot be converted.
        """
        ctx.meta.setdefault(REGISTRY_META_KEY, self.registry)
        conn = self.get_client_conn(ctx)
        try:
            args = tuple(ctx.params.get(POSITIONAL_PARAM) or ())
            request = self.binder.build_message(ctx, ctx.params, args)
            get_output().debug(f"Invoking {self.method_path}")
            response = conn.invoke(ctx, self.method_path, request, self.output_type)
            text = marshal_json(response, self.output_schema, self.registry, self.marshal_options)
        finally:
            conn.close()

        self._write(text)

    def _write(self, text: str) -> None:
        stream = self.output if self.output is not None else sys.stdout
        try:
            click.echo(text, file=stream)
        except OSError as exc:
            raise OutputError(f"cannot write output: {exc}") from exc
