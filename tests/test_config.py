"""Configuration loading from TOML and the environment."""

from __future__ import annotations

from pathlib import Path

from ipfs_bch.config import load_config
from ipfs_bch.models.config import NETWORK_DEFAULTS, Network

ENV_VARS = ("NETWORK", "ELECTRUM_URL", "UPLOAD_URL", "DB_PATH")


def _clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(f"IPFS_BCH_{name}", raising=False)


def test_defaults_are_mainnet(monkeypatch):
    _clear_env(monkeypatch)
    cfg = load_config()

    mainnet = NETWORK_DEFAULTS[Network.MAINNET]
    assert cfg.network == Network.MAINNET
    assert cfg.deposit_address == mainnet.deposit_address
    assert cfg.receipt_address == mainnet.receipt_address
    assert cfg.param_token_id == mainnet.param_token_id
    assert cfg.debounce == 0.5
    assert cfg.probe_timeout == 10
    assert cfg.db_path == str(Path("~/.ipfs_bch/history.db").expanduser())


def test_missing_file_uses_defaults(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    cfg = load_config(tmp_path / "absent.toml")
    assert cfg.network == Network.MAINNET


def test_toml_sections(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    path = tmp_path / "client.toml"
    path.write_text(
        """
[client]
log_level = "debug"
debounce = 0
param_refresh_interval = 60

[network]
name = "testnet"
request_timeout = 5

[service]
gateway_url = "https://gw.example.com/"

[http]
upload_url = "https://up.example.com/u/"
probe_timeout = 3

[storage]
db_path = "/tmp/ipfs-bch-test.db"
"""
    )

    cfg = load_config(path)

    testnet = NETWORK_DEFAULTS[Network.TESTNET]
    assert cfg.network == Network.TESTNET
    assert cfg.log_level == "debug"
    assert cfg.debounce == 0.0
    assert cfg.param_refresh_interval == 60
    assert cfg.request_timeout == 5
    assert cfg.deposit_address == testnet.deposit_address
    assert cfg.param_token_id == testnet.param_token_id
    assert cfg.electrum_url == testnet.electrum_url
    assert cfg.gateway_url == "https://gw.example.com"
    assert cfg.upload_url == "https://up.example.com/u/"
    assert cfg.probe_timeout == 3
    assert cfg.db_path == "/tmp/ipfs-bch-test.db"


def test_explicit_address_overrides_network_default(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    path = tmp_path / "client.toml"
    path.write_text(
        '[network]\nname = "testnet"\n\n'
        '[service]\ndeposit_address = "bchtest:qpm2qsznhks23z7629mms6s4cwef74vcwvqcw003ap"\n'
    )

    cfg = load_config(path)
    assert cfg.deposit_address == "bchtest:qpm2qsznhks23z7629mms6s4cwef74vcwvqcw003ap"
    assert cfg.receipt_address == NETWORK_DEFAULTS[Network.TESTNET].receipt_address


def test_env_overrides_toml(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    path = tmp_path / "client.toml"
    path.write_text('[network]\nelectrum_url = "wss://from-file:50004"\n')
    monkeypatch.setenv("IPFS_BCH_ELECTRUM_URL", "wss://from-env:50004")
    monkeypatch.setenv("IPFS_BCH_DB_PATH", "~/elsewhere.db")

    cfg = load_config(path)
    assert cfg.electrum_url == "wss://from-env:50004"
    assert cfg.db_path == str(Path("~/elsewhere.db").expanduser())


def test_env_network_selects_testnet(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("IPFS_BCH_NETWORK", "TESTNET")

    cfg = load_config()
    assert cfg.network == Network.TESTNET
    assert cfg.upload_url == NETWORK_DEFAULTS[Network.TESTNET].upload_url
