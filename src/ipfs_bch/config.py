"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from ipfs_bch.models.config import ClientConfig, Network


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "IPFS_BCH_",
) -> ClientConfig:
    """Load client configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (IPFS_BCH_NETWORK, etc.)
        2. TOML config file
        3. Defaults of the selected network
        4. Defaults from ClientConfig

    Selecting a network first resets the addresses and endpoints to that
    network's defaults; explicit values are applied on top.
    """
    raw: dict = {}
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cfg = ClientConfig()
    network = raw.get("network", {})

    net_name = os.environ.get(f"{env_prefix}NETWORK") or network.get("name")
    if net_name:
        cfg.apply_network(Network(str(net_name).lower()))

    # ── Client section ─────────────────────────────────────
    client = raw.get("client", {})
    if v := client.get("log_level"):
        cfg.log_level = str(v)
    if (v := client.get("debounce")) is not None:
        cfg.debounce = float(v)
    if (v := client.get("param_refresh_interval")) is not None:
        cfg.param_refresh_interval = int(v)

    # ── Network section ────────────────────────────────────
    if v := network.get("electrum_url"):
        cfg.electrum_url = str(v)
    if v := network.get("request_timeout"):
        cfg.request_timeout = int(v)

    # ── Service section ────────────────────────────────────
    service = raw.get("service", {})
    if v := service.get("deposit_address"):
        cfg.deposit_address = str(v)
    if v := service.get("receipt_address"):
        cfg.receipt_address = str(v)
    if v := service.get("param_token_id"):
        cfg.param_token_id = str(v)
    if v := service.get("gateway_url"):
        cfg.gateway_url = str(v).rstrip("/")

    # ── HTTP section ───────────────────────────────────────
    http = raw.get("http", {})
    if v := http.get("upload_url"):
        cfg.upload_url = str(v)
    if v := http.get("probe_timeout"):
        cfg.probe_timeout = int(v)
    if v := http.get("upload_timeout"):
        cfg.upload_timeout = int(v)

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Environment variable overrides (highest priority) ──
    if url := os.environ.get(f"{env_prefix}ELECTRUM_URL"):
        cfg.electrum_url = url
    if url := os.environ.get(f"{env_prefix}UPLOAD_URL"):
        cfg.upload_url = url
    if path := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = path

    # Expand ~ in paths
    cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg
