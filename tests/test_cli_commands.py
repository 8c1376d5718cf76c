"""CLI commands driven against a scripted in-process node."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from ethipc.cli import commands
from ethipc.cli.commands import app
from ethipc.client import IpcClient
from ethipc.utils.exceptions import TransportError

runner = CliRunner()


class ScriptedNode:
    """Transport that answers each request on the next loop iteration."""

    def __init__(self, results: dict[str, Any], errors: dict[str, dict] | None = None, *, refuse: bool = False):
        self.results = {"eth_newPendingTransactionFilter": "0x1", **results}
        self.errors = errors or {}
        self.refuse = refuse
        self.connected = False
        self.requests: list[dict[str, Any]] = []
        self.on_data = None
        self.on_error = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def is_writable(self) -> bool:
        return self.connected

    def set_handlers(self, on_data, on_error) -> None:
        self.on_data = on_data
        self.on_error = on_error

    async def open(self, path: str) -> None:
        if self.refuse:
            raise TransportError("Connection refused", errno=111)
        self.connected = True

    def write(self, data: bytes) -> int:
        request = json.loads(data)
        self.requests.append(request)
        asyncio.get_running_loop().call_soon(self._answer, request)
        return len(data)

    def _answer(self, request: dict[str, Any]) -> None:
        method = request["method"]
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": request["id"]}
        if method in self.errors:
            body["error"] = self.errors[method]
        else:
            result = self.results[method]
            body["result"] = result(request) if callable(result) else result
        self.on_data((json.dumps(body) + "\n").encode("utf-8"))

    def abort(self) -> None:
        self.connected = False

    async def close(self) -> None:
        self.connected = False


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    return tmp_path / "config.json"


def _use_node(monkeypatch, node: ScriptedNode) -> None:
    monkeypatch.setattr(commands, "_make_client", lambda config: IpcClient(config, transport=node))


def _invoke(config_file: Path, *args: str):
    return runner.invoke(app, ["--config", str(config_file), "--ipc-path", "/tmp/test.ipc", *args])


def test_block_number(monkeypatch, config_file: Path) -> None:
    node = ScriptedNode({"eth_blockNumber": "0x1b4"})
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "block-number")
    assert result.exit_code == 0, result.output
    assert "436" in result.output
    assert [r["method"] for r in node.requests] == ["eth_newPendingTransactionFilter", "eth_blockNumber"]


def test_gas_price_prints_ether(monkeypatch, config_file: Path) -> None:
    _use_node(monkeypatch, ScriptedNode({"eth_gasPrice": "0x2386f26fc10000"}))
    result = _invoke(config_file, "gas-price")
    assert result.exit_code == 0, result.output
    assert "0.010000000000000000" in result.output


def test_gas_price_uses_configured_decimal_point(monkeypatch, config_file: Path) -> None:
    config_file.write_text(json.dumps({"display": {"decimalPoint": ","}}), encoding="utf-8")
    _use_node(monkeypatch, ScriptedNode({"eth_gasPrice": "0x2386f26fc10000"}))
    result = _invoke(config_file, "gas-price")
    assert result.exit_code == 0, result.output
    assert "0,010000000000000000" in result.output


def test_status_reports_peer_health(monkeypatch, config_file: Path) -> None:
    _use_node(monkeypatch, ScriptedNode({"net_peerCount": "0x5", "eth_blockNumber": "0x10"}))
    result = _invoke(config_file, "status")
    assert result.exit_code == 0, result.output
    assert "Connected (fair peer count)" in result.output
    assert "Peers: 5" in result.output
    assert "Block: 16" in result.output


def test_accounts_table(monkeypatch, config_file: Path) -> None:
    node = ScriptedNode(
        {
            "personal_listAccounts": ["0xa1", "0xb2"],
            "eth_getBalance": lambda req: "0xde0b6b3a7640000" if req["params"][0] == "0xa1" else "0x0",
            "eth_getTransactionCount": "0x3",
        }
    )
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "accounts")
    assert result.exit_code == 0, result.output
    assert "0xa1" in result.output
    assert "0xb2" in result.output
    assert "1.000000000000000000" in result.output
    assert "0.000000000000000000" in result.output


def test_accounts_empty(monkeypatch, config_file: Path) -> None:
    _use_node(monkeypatch, ScriptedNode({"personal_listAccounts": []}))
    result = _invoke(config_file, "accounts")
    assert result.exit_code == 0, result.output
    assert "No accounts" in result.output


def test_send_rejects_zero_value_before_connecting(monkeypatch, config_file: Path) -> None:
    node = ScriptedNode({})
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "send", "0xa1", "0xb2", "0")
    assert result.exit_code == 2
    assert node.requests == []


def test_send_transaction(monkeypatch, config_file: Path) -> None:
    tx_hash = "0x" + "cd" * 32
    node = ScriptedNode({"eth_sendTransaction": tx_hash})
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "send", "0xa1", "0xb2", "0.25")
    assert result.exit_code == 0, result.output
    assert tx_hash in result.output
    assert "Sent 0.25" in result.output
    assert node.requests[-1]["params"] == [{"from": "0xa1", "to": "0xb2", "value": "0x3782dace9d90000"}]


def test_unlock_remote_error_exits_nonzero(monkeypatch, config_file: Path) -> None:
    monkeypatch.setattr(commands.getpass, "getpass", lambda prompt="": "wrong")
    node = ScriptedNode({}, errors={"personal_unlockAccount": {"code": -32000, "message": "could not decrypt key"}})
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "unlock", "0xa1", "--duration", "60")
    assert result.exit_code == 1
    assert "could not decrypt key" in result.output
    assert "-32000" in result.output
    assert node.requests[-1]["params"] == ["0xa1", "wrong", "0x3c"]


def test_new_account(monkeypatch, config_file: Path) -> None:
    monkeypatch.setattr(commands.getpass, "getpass", lambda prompt="": "s3cret")
    _use_node(monkeypatch, ScriptedNode({"personal_newAccount": "0xfresh"}))
    result = _invoke(config_file, "new-account")
    assert result.exit_code == 0, result.output
    assert "0xfresh" in result.output


def test_new_account_password_mismatch(monkeypatch, config_file: Path) -> None:
    answers = iter(["one", "two"])
    monkeypatch.setattr(commands.getpass, "getpass", lambda prompt="": next(answers))
    node = ScriptedNode({})
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "new-account")
    assert result.exit_code == 2
    assert node.requests == []


def test_delete_account_refused(monkeypatch, config_file: Path) -> None:
    monkeypatch.setattr(commands.getpass, "getpass", lambda prompt="": "pw")
    _use_node(monkeypatch, ScriptedNode({"personal_deleteAccount": False}))
    result = _invoke(config_file, "delete-account", "0xa1")
    assert result.exit_code == 1
    assert "refused" in result.output


def test_connect_failure(monkeypatch, config_file: Path) -> None:
    _use_node(monkeypatch, ScriptedNode({}, refuse=True))
    result = _invoke(config_file, "peers")
    assert result.exit_code == 1
    assert "Cannot connect" in result.output
    assert "Connection refused" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "ethipc v" in result.output


def test_accounts_json(monkeypatch, config_file: Path) -> None:
    node = ScriptedNode(
        {
            "personal_listAccounts": ["0xa1"],
            "eth_getBalance": "0x1",
            "eth_getTransactionCount": "0x3",
        }
    )
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "accounts", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == [
        {"hash": "0xa1", "balance": "0.000000000000000001", "transaction_count": 3}
    ]


def test_send_rejects_sub_wei_value_before_connecting(monkeypatch, config_file: Path) -> None:
    made: list[IpcClient] = []

    def _make_client(config):
        client = IpcClient(config, transport=ScriptedNode({}))
        made.append(client)
        return client

    monkeypatch.setattr(commands, "_make_client", _make_client)
    result = _invoke(config_file, "send", "0xa1", "0xb2", "0.0000000000000000001")
    assert result.exit_code == 2
    assert made == []


def test_config_is_loaded_once_per_invocation(monkeypatch, config_file: Path) -> None:
    calls: list[Path | None] = []
    real_load = commands.load_config

    def _counting_load(path=None):
        calls.append(path)
        return real_load(path)

    monkeypatch.setattr(commands, "load_config", _counting_load)
    _use_node(monkeypatch, ScriptedNode({"eth_blockNumber": "0x1"}))
    result = _invoke(config_file, "block-number")
    assert result.exit_code == 0, result.output
    assert calls == [config_file]


def test_broken_config_file_exits_nonzero(monkeypatch, config_file: Path) -> None:
    config_file.write_text("{not json", encoding="utf-8")
    node = ScriptedNode({"eth_blockNumber": "0x1"})
    _use_node(monkeypatch, node)
    result = _invoke(config_file, "block-number")
    assert result.exit_code == 1
    assert "Failed to load config" in result.output
    assert node.requests == []
