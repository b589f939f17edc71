"""Built-in CLI sub-commands for rpcli.

This package groups the Typer sub-command modules registered on the root
application next to the generated ``query`` tree:

* :mod:`~rpcli.commands.config` -- view and modify global settings.
* :mod:`~rpcli.commands.inspect` -- list services and methods of the
  configured schemas.
"""
