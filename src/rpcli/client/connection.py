"""Client connections used by generated commands to reach the remote node.

A generated command never knows how the call travels: it asks its
connection accessor (``get_client_conn``) for a :class:`ClientConn` and calls
:meth:`ClientConn.invoke` with the full method path. The default
implementation, :class:`HttpClientConn`, sends unary calls as JSON over
HTTP with :mod:`httpx`::

    POST {node}/{service}/{method}
    Content-Type: application/json

    {"address": "cosmos1..."}

Requests are encoded and responses decoded with the canonical codec
(:mod:`rpcli.codec`), using the schemas of the method found in the
registry. Calls are never retried.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import click
import httpx
from pydantic import BaseModel

from rpcli.codec import WIRE_MARSHAL_OPTIONS, dict_to_message, message_to_dict
from rpcli.config import resolve_config
from rpcli.exceptions import ConnectionError_, RemoteError, SerializationError
from rpcli.models import MessageSchema
from rpcli.output import get_output
from rpcli.schema.registry import SchemaRegistry, get_default_registry

#: ``click.Context.meta`` key holding the registry of the running command.
REGISTRY_META_KEY = "rpcli.registry"


class ClientConn(Protocol):
    """A connection able to perform unary remote calls."""

    def invoke(
        self,
        ctx: click.Context,
        method: str,
        request: BaseModel,
        response_type: type[BaseModel],
    ) -> BaseModel:
        """Call *method* (``/<service>/<method>``) with *request* and return the response.

        Raises:
            RemoteError: If the call fails for any reason.
        """
        ...

    def close(self) -> None:
        ...


class HttpClientConn:
    """JSON-over-HTTP :class:`ClientConn` backed by :class:`httpx.Client`.

    Args:
        node: Base URL of the node, e.g. ``http://localhost:1317``.
        timeout: Request timeout in seconds.
        verify_ssl: Verify TLS certificates.
        registry: Registry holding the schemas of the called methods.
            Defaults to the process-wide registry.
        transport: Optional custom :class:`httpx.BaseTransport` (tests pass
            an :class:`httpx.MockTransport`).

    Example::

        with HttpClientConn("http://localhost:1317") as conn:
            response = conn.invoke(ctx, "/pkg.Bank/Balance", request, BalanceResponse)
    """

    def __init__(
        self,
        node: str,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        registry: Optional[SchemaRegistry] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.node = node.rstrip("/")
        self._registry = registry if registry is not None else get_default_registry()
        self._client = httpx.Client(
            base_url=self.node,
            timeout=timeout,
            verify=verify_ssl,
            transport=transport,
            follow_redirects=True,
        )

    def __enter__(self) -> HttpClientConn:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------ #
    # Calls
    # ------------------------------------------------------------------ #

    def invoke(
        self,
        ctx: click.Context,
        method: str,
        request: BaseModel,
        response_type: type[BaseModel],
    ) -> BaseModel:
        """POST *request* to ``node + method`` and decode the JSON response.

        Raises:
            ConnectionError_: On network-level failures and timeouts.
            RemoteError: On 4xx/5xx responses and undecodable bodies.
        """
        input_schema, output_schema = self._method_schemas(method)
        try:
            body = message_to_dict(request, input_schema, self._registry, WIRE_MARSHAL_OPTIONS)
        except SerializationError as exc:
            raise RemoteError(f"cannot encode request for {method}: {exc}") from exc

        get_output().debug(f"{ctx.command_path}: POST {self.node}{method}")
        try:
            response = self._client.post(
                method,
                json=body,
                headers={"Accept": "application/json"},
            )
        except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
            raise ConnectionError_(f"Connection to {self.node} failed: {exc}") from exc

        self._map_response_error(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteError(
                f"invalid JSON in response from {method}: {exc}",
                status_code=response.status_code,
            ) from exc
        try:
            return dict_to_message(payload, output_schema, self._registry, response_type)
        except SerializationError as exc:
            raise RemoteError(
                f"unexpected response from {method}: {exc}",
                status_code=response.status_code,
            ) from exc

    def _method_schemas(self, method: str) -> tuple[MessageSchema, MessageSchema]:
        """Return the input and output schemas of ``/<service>/<method>``."""
        service_name, _, method_name = method.strip("/").rpartition("/")
        service = self._registry.find_service(service_name)
        method_schema = service.find_method(method_name)
        if method_schema is None:
            raise RemoteError(f"unknown method {method}")
        return (
            self._registry.find_message(method_schema.input_type),
            self._registry.find_message(method_schema.output_type),
        )

    @staticmethod
    def _map_response_error(response: httpx.Response) -> None:
        """Raise :class:`RemoteError` for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status}"
        raise RemoteError(f"{prefix}: {msg}" if msg else prefix, status_code=status)


# ---------------------------------------------------------------------------
# Default connection accessor and flags
# ---------------------------------------------------------------------------


def conn_from_context(ctx: click.Context) -> ClientConn:
    """Open the connection for the command running in *ctx*.

    The node is taken from the command's own ``--node`` flag, then the root
    ``--node`` option, then the resolved configuration (environment, project
    and global config). ``--timeout`` on the command overrides the configured
    timeout.
    """
    params: dict[str, Any] = ctx.params
    root_obj = ctx.find_root().obj
    root_node = root_obj.get("node") if isinstance(root_obj, dict) else None

    config = resolve_config(cli_node=params.get("node") or root_node)
    timeout = params.get("timeout") or config.connection.timeout
    registry = ctx.meta.get(REGISTRY_META_KEY)
    return HttpClientConn(
        config.connection.node,
        timeout=timeout,
        verify_ssl=config.connection.verify_ssl,
        registry=registry,
    )


def add_query_conn_flags(cmd: click.Command) -> None:
    """Add ``--node`` and ``--timeout`` to a generated query command.

    Flags already defined on *cmd* (e.g. an input field named ``node``) are
    left alone.
    """
    taken = {opt for param in cmd.params for opt in param.opts}
    if "--node" not in taken:
        cmd.params.append(
            click.Option(
                ["--node", "node"],
                default=None,
                help="Node URL to query (overrides config).",
            )
        )
    if "--timeout" not in taken:
        cmd.params.append(
            click.Option(
                ["--timeout", "timeout"],
                type=click.FloatRange(min=0, min_open=True),
                default=None,
                help="Request timeout in seconds.",
            )
        )
