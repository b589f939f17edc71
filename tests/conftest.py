"""Shared test fixtures for rpcli.

Provides reusable fixtures for loading the bank schema fixture, creating
isolated config environments, managing global output and registry state
and stubbing client connections. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import click
import pytest
from pydantic import BaseModel

from rpcli.exceptions import RemoteError
from rpcli.output import OutputFormat, OutputManager, reset_output, set_output
from rpcli.schema.loader import load_schema
from rpcli.schema.registry import SchemaRegistry, reset_default_registry


FIXTURES_DIR = Path(__file__).parent / "fixtures"
SCHEMA_PATH = FIXTURES_DIR / "bank_schema.yaml"


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When CliRunner redirects those streams during a test
    and the test finishes, the cached references become stale ("I/O
    operation on closed file").  Resetting forces a fresh manager to be
    created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_registry_between_tests() -> None:
    """Drop the process-wide schema registry after every test."""
    yield
    reset_default_registry()


# ---------------------------------------------------------------------------
# Schema fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def registry() -> SchemaRegistry:
    """A registry holding the bank schema fixture."""
    reg = SchemaRegistry()
    load_schema(str(SCHEMA_PATH), reg)
    return reg


# ---------------------------------------------------------------------------
# Connection stub
# ---------------------------------------------------------------------------


class RecordingConn:
    """A :class:`~rpcli.client.ClientConn` that records calls instead of sending them.

    Args:
        response: Field values of the response, keyed by schema field name.
        error: Exception raised by :meth:`invoke` instead of responding.
    """

    def __init__(
        self,
        response: Optional[dict[str, Any]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.response = response or {}
        self.error = error
        self.calls: list[tuple[str, BaseModel]] = []
        self.closed = False

    def invoke(
        self,
        ctx: click.Context,
        method: str,
        request: BaseModel,
        response_type: type[BaseModel],
    ) -> BaseModel:
        self.calls.append((method, request))
        if self.error is not None:
            raise self.error
        return response_type.model_validate(self.response)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def conn() -> RecordingConn:
    """A recording connection answering with a fixed balance."""
    return RecordingConn(
        response={
            "balance": {"denom": "uatom", "amount": "10"},
            "status": 1,
            "height": 42,
        }
    )


@pytest.fixture
def failing_conn() -> RecordingConn:
    """A recording connection whose every call fails remotely."""
    return RecordingConn(error=RemoteError("HTTP 500: node unavailable", status_code=500))


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all RPCLI_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("rpcli.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["RPCLI_NODE", "RPCLI_SCHEMA", "RPCLI_OPTIONS"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN-format output manager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def plain_output() -> OutputManager:
    """Install an uncoloured PLAIN-format output manager for the test.

    Uncoloured diagnostics are printed to whatever ``sys.stderr`` is at call
    time, so CliRunner captures them.
    """
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format output manager for the test."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()

