"""End-to-end tests of the rpcli application.

The ``query`` tree is generated from the bank fixtures and calls go through
the real :class:`~rpcli.client.HttpClientConn`, with an
:class:`httpx.MockTransport` standing in for the node.
"""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path
from typing import Callable

import click
import httpx
import pytest
from click.testing import CliRunner
from typer.testing import CliRunner as TyperCliRunner

from rpcli import __version__
from rpcli import app as app_module
from rpcli.app import app, build_cli, main
from rpcli.client import connection as connection_module
from rpcli.config import load_global_config
from rpcli.models import GlobalConfig
from rpcli.schema.registry import SchemaRegistry

runner = CliRunner()
app_runner = TyperCliRunner()

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures"
SCHEMA = str(FIXTURES_DIR / "bank_schema.yaml")
OPTIONS = str(FIXTURES_DIR / "bank_options.yaml")

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

Handler = Callable[[httpx.Request], httpx.Response]


def _strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def _balance_handler(requests: list[httpx.Request]) -> Handler:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={"balance": {"denom": "uatom", "amount": "10"}, "status": 1, "height": "42"},
        )

    return handler


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_node(monkeypatch: pytest.MonkeyPatch) -> Callable[[Handler], None]:
    """Route every connection opened by generated commands to a mock handler."""
    real = connection_module.HttpClientConn

    def install(handler: Handler) -> None:
        def factory(node: str, **kwargs):
            return real(node, transport=httpx.MockTransport(handler), **kwargs)

        monkeypatch.setattr("rpcli.client.connection.HttpClientConn", factory)

    return install


@pytest.fixture
def root(isolated_config: Path) -> click.Group:
    config = GlobalConfig(schema_sources=[SCHEMA], options_source=OPTIONS)
    return build_cli(config=config, registry=SchemaRegistry())


@pytest.fixture
def configured_env(isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the environment at the bank fixtures."""
    monkeypatch.setenv("RPCLI_SCHEMA", SCHEMA)
    monkeypatch.setenv("RPCLI_OPTIONS", OPTIONS)
    monkeypatch.setenv("RPCLI_NODE", "http://env-node:1317")
    monkeypatch.setattr(app_module, "_setup_signal_handlers", lambda: None)
    return isolated_config


# ---------------------------------------------------------------------------
# build_cli
# ---------------------------------------------------------------------------


class TestBuildCli:
    def test_query_tree_attached(self, root: click.Group) -> None:
        result = runner.invoke(root, ["query", "bank", "--help"])
        assert result.exit_code == 0
        out = _strip_ansi(result.output)
        assert "balance" in out
        assert "send" in out
        assert "idle" in out

    def test_no_schema_means_no_query(self, isolated_config: Path) -> None:
        cli = build_cli(config=GlobalConfig(), registry=SchemaRegistry())
        assert "query" not in cli.commands
        assert {"config", "inspect"} <= set(cli.commands)

    def test_default_modules_without_options(self, isolated_config: Path) -> None:
        cli = build_cli(config=GlobalConfig(schema_sources=[SCHEMA]), registry=SchemaRegistry())
        query = cli.commands["query"]
        assert set(query.commands) == {"bank", "idle"}
        assert "send-coins" in query.commands["bank"].commands

    def test_version(self, root: click.Group) -> None:
        result = runner.invoke(root, ["--version"])
        assert result.exit_code == 0
        assert f"rpcli {__version__}" in result.output


# ---------------------------------------------------------------------------
# Generated commands
# ---------------------------------------------------------------------------


class TestGeneratedCommands:
    def test_balance(self, root: click.Group, mock_node) -> None:
        requests: list[httpx.Request] = []
        mock_node(_balance_handler(requests))

        result = runner.invoke(root, ["query", "bank", "balance", "addr1", "uatom"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "balance": {"denom": "uatom", "amount": "10"},
            "status": "ACCOUNT_STATUS_ACTIVE",
            "height": "42",
        }
        assert len(requests) == 1
        assert str(requests[0].url) == "http://localhost:1317/pkg.Bank/Balance"
        assert json.loads(requests[0].content) == {"address": "addr1", "denom": "uatom"}

    def test_aliases_and_root_node(self, root: click.Group, mock_node) -> None:
        requests: list[httpx.Request] = []
        mock_node(_balance_handler(requests))

        result = runner.invoke(
            root, ["--node", "http://root-node:26657", "q", "bank", "bal", "addr1", "uatom"]
        )

        assert result.exit_code == 0, result.output
        assert requests[0].url.host == "root-node"

    def test_leaf_node_flag_wins(self, root: click.Group, mock_node) -> None:
        requests: list[httpx.Request] = []
        mock_node(_balance_handler(requests))

        result = runner.invoke(
            root,
            [
                "--node", "http://root-node:26657",
                "query", "bank", "balance", "addr1", "uatom",
                "--node", "http://leaf-node:1317",
            ],
        )

        assert result.exit_code == 0, result.output
        assert requests[0].url.host == "leaf-node"

    def test_send_with_flags(self, root: click.Group, mock_node) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"tx_hash": "ABC", "accepted": True})

        mock_node(handler)

        result = runner.invoke(
            root,
            [
                "query", "bank", "send", "alice", "bob",
                "--amount", '{"denom": "uatom", "amount": "5"}',
                "--fee", "3",
                "--priority", "account_status_frozen",
                "--memo", "aGk=",
            ],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(requests[0].content) == {
            "from_address": "alice",
            "to_address": "bob",
            "amount": [{"denom": "uatom", "amount": "5"}],
            "fee": "3",
            "priority": "ACCOUNT_STATUS_FROZEN",
            "memo": "aGk=",
        }
        assert json.loads(result.stdout) == {"tx_hash": "ABC", "accepted": True}

    def test_remote_error(self, root: click.Group, mock_node) -> None:
        mock_node(lambda request: httpx.Response(500, json={"message": "node is syncing"}))

        result = runner.invoke(root, ["query", "bank", "balance", "addr1", "uatom"])

        assert result.exit_code != 0
        assert result.stdout == ""
        assert str(result.exception) == "HTTP 500: node is syncing"

    def test_usage_error(self, root: click.Group, mock_node) -> None:
        requests: list[httpx.Request] = []
        mock_node(_balance_handler(requests))

        result = runner.invoke(root, ["query", "bank", "balance", "addr1"])

        assert result.exit_code == 2
        assert requests == []


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    def test_success(
        self, configured_env: Path, mock_node, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        requests: list[httpx.Request] = []
        mock_node(_balance_handler(requests))
        monkeypatch.setattr(sys, "argv", ["rpcli", "query", "bank", "balance", "addr1", "uatom"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert json.loads(capsys.readouterr().out)["height"] == "42"
        assert requests[0].url.host == "env-node"

    def test_remote_error_exit_code(
        self, configured_env: Path, mock_node, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        mock_node(lambda request: httpx.Response(503, json={"message": "unavailable"}))
        monkeypatch.setattr(sys, "argv", ["rpcli", "query", "bank", "balance", "addr1", "uatom"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 5
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "HTTP 503: unavailable" in captured.err

    def test_connection_error_exit_code(
        self, configured_env: Path, mock_node, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        mock_node(handler)
        monkeypatch.setattr(sys, "argv", ["rpcli", "query", "bank", "balance", "addr1", "uatom"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 6

    def test_schema_error_exit_code(
        self, configured_env: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ) -> None:
        options = configured_env / "options.yaml"
        options.write_text(
            "modules:\n"
            "  bank:\n"
            "    query:\n"
            "      service: pkg.Bank\n"
            "      rpc_command_options:\n"
            "        - rpc_method: Missing\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("RPCLI_OPTIONS", str(options))
        monkeypatch.setattr(sys, "argv", ["rpcli", "query", "bank"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 3
        assert "Missing" in capsys.readouterr().err

    def test_unexpected_error_writes_crash_log(
        self, configured_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def explode(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(app_module, "build_cli", explode)
        monkeypatch.setattr(sys, "argv", ["rpcli", "query"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        logs = list((configured_env / "data" / "rpcli").glob("crash-*.log"))
        assert len(logs) == 1
        assert "kaboom" in logs[0].read_text()


# ---------------------------------------------------------------------------
# Built-in commands
# ---------------------------------------------------------------------------


class TestInspectCommands:
    def test_services(self, configured_env: Path) -> None:
        result = app_runner.invoke(app, ["inspect", "services"])
        assert result.exit_code == 0, result.output
        assert "pkg.Bank\t2\tBank defines the queries of the bank module." in result.stdout
        assert "pkg.Idle\t0" in result.stdout

    def test_methods(self, configured_env: Path) -> None:
        result = app_runner.invoke(app, ["inspect", "methods", "pkg.Bank"])
        assert result.exit_code == 0, result.output
        assert (
            "send-coins\tpkg.SendCoinsRequest\tpkg.SendCoinsResponse\t/pkg.Bank/SendCoins"
            in result.stdout
        )

    def test_methods_unknown_service(self, configured_env: Path) -> None:
        result = app_runner.invoke(app, ["inspect", "methods", "pkg.Nope"])
        assert result.exit_code == 3

    def test_no_schema_configured(self, isolated_config: Path) -> None:
        result = app_runner.invoke(app, ["inspect", "services"])
        assert result.exit_code == 2


class TestConfigCommands:
    def test_set_and_show(self, isolated_config: Path) -> None:
        result = app_runner.invoke(app, ["config", "set", "connection.node", "http://rest:1317"])
        assert result.exit_code == 0, result.output
        assert load_global_config().connection.node == "http://rest:1317"

        result = app_runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "http://rest:1317" in result.stdout

    def test_set_coerces_types(self, isolated_config: Path) -> None:
        app_runner.invoke(app, ["config", "set", "connection.timeout", "12.5"])
        app_runner.invoke(app, ["config", "set", "connection.verify_ssl", "false"])
        app_runner.invoke(app, ["config", "set", "schema_sources", "a.yaml, b.yaml"])
        config = load_global_config()
        assert config.connection.timeout == 12.5
        assert config.connection.verify_ssl is False
        assert config.schema_sources == ["a.yaml", "b.yaml"]

    def test_set_json_list(self, isolated_config: Path) -> None:
        result = app_runner.invoke(app, ["config", "set", "schema_sources", '["x.json"]'])
        assert result.exit_code == 0
        assert load_global_config().schema_sources == ["x.json"]

    def test_set_unknown_key(self, isolated_config: Path) -> None:
        result = app_runner.invoke(app, ["config", "set", "connection.proxy", "x"])
        assert result.exit_code == 2

    def test_set_bad_value(self, isolated_config: Path) -> None:
        result = app_runner.invoke(app, ["config", "set", "connection.timeout", "soon"])
        assert result.exit_code == 2

    def test_path(self, isolated_config: Path) -> None:
        result = app_runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert result.stdout.strip() == str(isolated_config / "config" / "rpcli" / "config.json")
