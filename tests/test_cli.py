"""
Tests for the lockproxy command line interface (click CliRunner).
"""

import json

import pytest
from click.testing import CliRunner

from lockproxy.cli.main import cli
from lockproxy.codec import TransferInstruction
from lockproxy.config import ProxyConfig
from lockproxy.registry import BindingRegistry
from lockproxy.storage import SQLiteBackend

ASSET = "11" * 20
BOB = "22" * 20
OPERATOR = "0e" * 20


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(runner, tmp_path):
    path = str(tmp_path / "lockproxy.json")
    result = runner.invoke(cli, [
        "init", "--config", path, "--chain-id", "1",
        "--proxy", "99" * 20, "--ccmc", "cc" * 20, "--operator", OPERATOR,
    ])
    assert result.exit_code == 0, result.output
    return path


def registry_for(config_path):
    config = ProxyConfig.from_file(config_path)
    return BindingRegistry(SQLiteBackend(config.db_path))


class TestCodecCommands:
    def test_encode(self, runner):
        result = runner.invoke(cli, ["encode", ASSET, "0x" + BOB, "100"])
        assert result.exit_code == 0
        expected = TransferInstruction(bytes.fromhex(ASSET), bytes.fromhex(BOB), 100).encode()
        assert result.output.strip() == expected.hex()

    def test_encode_rejects_bad_hex(self, runner):
        result = runner.invoke(cli, ["encode", "xyz", BOB, "1"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_decode(self, runner):
        payload = TransferInstruction(bytes.fromhex(ASSET), bytes.fromhex(BOB), 4242).encode()
        result = runner.invoke(cli, ["decode", payload.hex()])
        assert result.exit_code == 0
        assert "4242" in result.output

    def test_decode_truncated(self, runner):
        result = runner.invoke(cli, ["decode", "14" + "11" * 5])
        assert result.exit_code == 1
        assert "Error" in result.output

    @pytest.mark.parametrize("value, encoded", [("252", "fc"), ("253", "fdfd00"), ("65536", "fe00000100")])
    def test_varint(self, runner, value, encoded):
        result = runner.invoke(cli, ["varint", value])
        assert result.exit_code == 0
        assert result.output.strip() == encoded

    def test_varint_negative(self, runner):
        result = runner.invoke(cli, ["varint", "--", "-1"])
        assert result.exit_code == 1

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert "0.1.0" in result.output


class TestAdminCommands:
    def test_init_writes_config(self, config_path):
        with open(config_path) as f:
            data = json.load(f)
        assert data["chain_id"] == 1
        assert data["storage_backend"] == "sqlite"
        assert data["operator_address"] == "0x" + OPERATOR

    def test_show_config(self, runner, config_path):
        result = runner.invoke(cli, ["show-config", "--config", config_path])
        assert result.exit_code == 0
        assert "chain_id" in result.output

    def test_bind_proxy(self, runner, config_path):
        result = runner.invoke(cli, [
            "bind-proxy", "2", "aa" * 20, "--config", config_path, "--signer", OPERATOR,
        ])
        assert result.exit_code == 0, result.output
        registry = registry_for(config_path)
        assert registry.lookup_proxy(2) == b"\xaa" * 20
        registry.storage.close()

    def test_bind_proxy_requires_operator(self, runner, config_path):
        result = runner.invoke(cli, [
            "bind-proxy", "2", "aa" * 20, "--config", config_path, "--signer", BOB,
        ])
        assert result.exit_code == 1
        assert "Unauthorized" in result.output
        registry = registry_for(config_path)
        assert registry.lookup_proxy(2) is None
        registry.storage.close()

    def test_bind_asset_and_list(self, runner, config_path):
        result = runner.invoke(cli, [
            "bind-asset", ASSET, "2", "bb" * 32, "--config", config_path, "--signer", OPERATOR,
        ])
        assert result.exit_code == 0, result.output
        registry = registry_for(config_path)
        assert registry.lookup_asset(bytes.fromhex(ASSET), 2) == b"\xbb" * 32
        registry.storage.close()

        result = runner.invoke(cli, ["bindings", "--config", config_path])
        assert result.exit_code == 0
        assert "Asset Bindings" in result.output

    def test_bind_asset_rejects_short_hash(self, runner, config_path):
        result = runner.invoke(cli, [
            "bind-asset", "11" * 19, "2", "bb" * 20, "--config", config_path, "--signer", OPERATOR,
        ])
        assert result.exit_code == 1
        assert "InvalidAssetHash" in result.output

    def test_missing_config(self, runner, tmp_path):
        result = runner.invoke(cli, ["bindings", "--config", str(tmp_path / "nope.json")])
        assert result.exit_code != 0
