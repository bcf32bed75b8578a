"""Shared fixtures for ipfs_bch tests."""

from __future__ import annotations

import pytest
from pytest_metadata.plugin import metadata_key

from ipfs_bch.models.config import ClientConfig, Network
from ipfs_bch.models.records import ServiceParams
from ipfs_bch.protocol.builder import PinRequestBuilder
from ipfs_bch.protocol.params import ParameterResolver
from ipfs_bch.session import PinSession
from ipfs_bch.settlement.watcher import SettlementWatcher
from ipfs_bch.storage.sqlite import SQLiteHistoryStore

from tests.factories import DEPOSIT_ADDRESS, RECEIPT_ADDRESS, TOKEN_ID, make_token_utxo
from tests.mocks import MockProber, MockTokenSource, MockTransactionWatcher, MockUploader

EXPLORER_BASE = "https://blockchair.com/bitcoin-cash"


def explorer_link(kind: str, id: str, label: str | None = None) -> str:
    """Build an HTML anchor to the block explorer for the report."""
    url = f"{EXPLORER_BASE}/{kind}/{id}"
    text = label or f"{id[:8]}...{id[-4:]}"
    return f'<a href="{url}" target="_blank">{text}</a>'


# ── Report metadata & explorer links ─────────────────────────────


def pytest_configure(config):
    """Add service info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Bitcoin Cash (mocked)"
    meta["Deposit Address"] = DEPOSIT_ADDRESS
    meta["Receipt Address"] = RECEIPT_ADDRESS
    meta["Parameter Token"] = TOKEN_ID


def pytest_html_results_summary(prefix, summary, postfix):
    """Inject clickable explorer links into the report summary."""
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Service Explorer Links</strong><br/>"
        f'Deposit: {explorer_link("address", DEPOSIT_ADDRESS, DEPOSIT_ADDRESS)}<br/>'
        f'Receipt: {explorer_link("address", RECEIPT_ADDRESS, RECEIPT_ADDRESS)}'
        "</div>"
    )


def make_test_config(**overrides) -> ClientConfig:
    """Build a ClientConfig suitable for testing."""
    defaults = dict(
        network=Network.MAINNET,
        debounce=0.05,
        param_refresh_interval=0,
        deposit_address=DEPOSIT_ADDRESS,
        receipt_address=RECEIPT_ADDRESS,
        param_token_id=TOKEN_ID,
        electrum_url="ws://127.0.0.1:9311",
        upload_url="http://127.0.0.1:9312/u/",
        probe_timeout=2,
        upload_timeout=2,
        db_path=":memory:",
    )
    defaults.update(overrides)
    return ClientConfig(**defaults)


@pytest.fixture
def test_config():
    """Default ClientConfig for tests."""
    return make_test_config()


@pytest.fixture
async def store():
    """Initialized in-memory SQLiteHistoryStore."""
    s = SQLiteHistoryStore(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def mock_watcher():
    return MockTransactionWatcher()


@pytest.fixture
def mock_tokens():
    return MockTokenSource([make_token_utxo()])


@pytest.fixture
def mock_prober():
    return MockProber(size=1024)


@pytest.fixture
def mock_uploader():
    return MockUploader()


@pytest.fixture
def watcher(mock_watcher):
    return SettlementWatcher(mock_watcher, DEPOSIT_ADDRESS, RECEIPT_ADDRESS)


@pytest.fixture
def builder(mock_prober):
    return PinRequestBuilder(DEPOSIT_ADDRESS, mock_prober, probe_timeout=2)


@pytest.fixture
async def session(test_config, mock_tokens, builder, watcher, mock_uploader, store):
    """Fully wired PinSession with mocked collaborators and resolved parameters."""
    s = PinSession(
        test_config,
        resolver=ParameterResolver(mock_tokens, RECEIPT_ADDRESS, TOKEN_ID),
        builder=builder,
        watcher=watcher,
        uploader=mock_uploader,
        store=store,
    )
    await s.start()
    assert s.params == ServiceParams(fee=1, max_size=16384)
    yield s
    await s.close()
