"""Client connections for generated commands.

Classes:
    :class:`ClientConn` -- protocol every connection implements.
    :class:`HttpClientConn` -- JSON-over-HTTP connection backed by :class:`httpx.Client`.

Example::

    from rpcli.client import HttpClientConn

    with HttpClientConn("http://localhost:1317") as conn:
        response = conn.invoke(ctx, "/pkg.Bank/Balance", request, BalanceResponse)
"""

from rpcli.client.connection import (
    REGISTRY_META_KEY,
    ClientConn,
    HttpClientConn,
    add_query_conn_flags,
    conn_from_context,
)

__all__ = [
    "REGISTRY_META_KEY",
    "ClientConn",
    "HttpClientConn",
    "add_query_conn_flags",
    "conn_from_context",
]
