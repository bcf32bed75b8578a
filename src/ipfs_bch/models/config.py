"""Configuration models for the client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ipfs_bch.cashaddr import convert_prefix


class Network(str, Enum):
    """Bitcoin Cash network the client talks to."""

    MAINNET = "mainnet"
    TESTNET = "testnet"


@dataclass(frozen=True)
class NetworkDefaults:
    """Service endpoints and addresses for one network."""

    deposit_address: str
    receipt_address: str
    param_token_id: str
    upload_url: str
    electrum_url: str


_MAINNET_DEPOSIT = "bitcoincash:qrsl56haj6kcw7v7lw9kzuh89v74maemqsq8h4rfqy"
_MAINNET_RECEIPT = "bitcoincash:qqk49pam6ehhzen69ur9stzvnukhwm4mmc5l83anug"

NETWORK_DEFAULTS = {
    Network.MAINNET: NetworkDefaults(
        deposit_address=_MAINNET_DEPOSIT,
        receipt_address=_MAINNET_RECEIPT,
        param_token_id="9c909692e2dcc33150e8ddefb4ae4508b0780880773330d1fffd60cdb4cee6b1",
        upload_url="https://ipfs.pat.mn/u/",
        electrum_url="wss://bch.imaginary.cash:50004",
    ),
    # Same service keys, testnet prefix
    Network.TESTNET: NetworkDefaults(
        deposit_address=convert_prefix(_MAINNET_DEPOSIT, "bchtest"),
        receipt_address=convert_prefix(_MAINNET_RECEIPT, "bchtest"),
        param_token_id="46a9cdaeb7f00c90896a874ecd093b0293fffa6521dbf676b0cacc39ddf791c3",
        upload_url="http://localhost:8000/u/",
        electrum_url="wss://chipnet.imaginary.cash:50004",
    ),
}


@dataclass
class ClientConfig:
    """Complete client configuration."""

    # Client
    network: Network = Network.MAINNET
    log_level: str = "info"
    debounce: float = 0.5  # seconds between the last URL edit and validation
    param_refresh_interval: int = 300  # seconds, 0 disables

    # Service
    deposit_address: str = _MAINNET_DEPOSIT
    receipt_address: str = _MAINNET_RECEIPT
    param_token_id: str = NETWORK_DEFAULTS[Network.MAINNET].param_token_id
    gateway_url: str = "https://ipfs.pat.mn"

    # Electrum
    electrum_url: str = NETWORK_DEFAULTS[Network.MAINNET].electrum_url
    request_timeout: int = 30  # seconds per JSON-RPC call

    # HTTP
    upload_url: str = NETWORK_DEFAULTS[Network.MAINNET].upload_url
    probe_timeout: int = 10  # seconds
    upload_timeout: int = 60  # seconds

    # Storage
    db_path: str = "~/.ipfs_bch/history.db"

    def apply_network(self, network: Network) -> None:
        """Switch to a network and adopt its default endpoints and addresses."""
        defaults = NETWORK_DEFAULTS[network]
        self.network = network
        self.deposit_address = defaults.deposit_address
        self.receipt_address = defaults.receipt_address
        self.param_token_id = defaults.param_token_id
        self.upload_url = defaults.upload_url
        self.electrum_url = defaults.electrum_url
