"""PinSession: debounced input, probe cancellation and history logging."""

from __future__ import annotations

import asyncio

import pytest

from ipfs_bch.errors import SupersededError
from ipfs_bch.models.events import ReceiptStatus
from ipfs_bch.models.records import ServiceParams
from ipfs_bch.protocol.params import ParameterResolver
from ipfs_bch.session import PinSession
from ipfs_bch.settlement.watcher import SettlementState

from tests.factories import (
    DEPOSIT_ADDRESS,
    RECEIPT_ADDRESS,
    TEST_CID,
    make_deposit_tx,
    make_receipt_tx,
    make_token_utxo,
)
from tests.mocks import MockProber, MockUploader


async def _wait_for(check, timeout: float = 2.0):
    """Poll an async predicate until it holds; store writes land off-loop."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not await check():
        assert asyncio.get_running_loop().time() < deadline, "condition not met"
        await asyncio.sleep(0.01)


async def _status(store, status: str) -> bool:
    records = await store.get_recent_requests()
    return bool(records) and records[0].status == status


# ── Input ─────────────────────────────────────────────────────────


async def test_debounce_builds_only_last_url(session, mock_prober, mock_watcher):
    session.set_url("https://example.com/a")
    session.set_url("https://example.com/ab")
    task = session.set_url("https://example.com/abc")

    request = await task

    assert request.url == "https://example.com/abc"
    assert mock_prober.calls == ["https://example.com/abc"]
    assert mock_watcher.subscribe_calls == [DEPOSIT_ADDRESS]
    assert session.request is request


async def test_new_input_cancels_in_flight_probe(session):
    prober = MockProber(size=100, delay=5)
    session.builder._prober = prober

    first = session.set_url("https://example.com/slow")
    await asyncio.sleep(session._cfg.debounce + 0.05)
    assert prober.calls == ["https://example.com/slow"]

    second = session.set_url("https://example.com/fast")
    prober.delay = 0
    request = await second

    assert first.cancelled()
    assert prober.cancelled == ["https://example.com/slow"]
    assert request.url == "https://example.com/fast"


async def test_reset_cancels_probe_and_watcher(session, mock_watcher):
    prober = MockProber(size=100, delay=5)
    session.builder._prober = prober

    task = session.set_url("https://example.com/slow")
    await asyncio.sleep(session._cfg.debounce + 0.05)
    assert prober.calls == ["https://example.com/slow"]

    await session.reset()
    await asyncio.sleep(0.01)

    assert task.cancelled()
    assert prober.cancelled == ["https://example.com/slow"]
    assert session.watcher.state == SettlementState.IDLE
    assert mock_watcher.subscriptions == {}


async def test_set_url_after_debounce_replaces_slow_request(session, mock_watcher):
    session.builder._prober = MockProber(size=100, delay=0.3)

    session.set_url("https://example.com/old")
    await asyncio.sleep(session._cfg.debounce + 0.05)

    session.builder._prober = MockProber(size=100)
    request = await session.set_url("https://example.com/new")
    await asyncio.sleep(0.4)

    assert session.request is request
    assert session.request.url == "https://example.com/new"
    assert mock_watcher.subscribe_calls == [DEPOSIT_ADDRESS]


async def test_older_submit_finishing_late_is_dropped(session, mock_watcher):
    session.builder._prober = MockProber(size=100, delay=0.2)
    older = asyncio.create_task(session.submit("https://example.com/old"))
    await asyncio.sleep(0.05)

    session.builder._prober = MockProber(size=100)
    newer = await session.submit("https://example.com/new")

    assert await older is None
    assert session.request is newer
    assert session.watcher.generation == 1


async def test_reset_discards_in_flight_submit(session, mock_watcher):
    session.builder._prober = MockProber(size=100, delay=0.1)
    pending = asyncio.create_task(session.submit("https://example.com/old"))
    await asyncio.sleep(0.02)

    await session.reset()

    assert await pending is None
    assert session.request is None
    assert session.watcher.state == SettlementState.IDLE
    assert mock_watcher.subscribe_calls == []


async def test_invalid_url_sets_error(session, mock_watcher):
    request = await session.submit("not a url")

    assert request is None
    assert session.error == "Invalid URL"
    assert mock_watcher.subscribe_calls == []


async def test_oversized_remote_content_blocks(session):
    session.builder._prober = MockProber(size=16385)

    assert await session.submit("https://example.com/huge.bin") is None
    assert session.error.startswith("Remote content exceeds")


async def test_probe_failure_sets_error(session):
    session.builder._prober = MockProber(error="HTTP 404")

    assert await session.submit("https://example.com/missing") is None
    assert session.error == "Error fetching URL: HTTP 404"


async def test_successful_submit_clears_error(session):
    await session.submit("not a url")
    assert session.error

    assert await session.submit("https://example.com/ok") is not None
    assert session.error == ""


# ── Parameters ────────────────────────────────────────────────────


async def test_request_uses_resolved_fee(session):
    request = await session.submit("https://example.com/ok")
    assert request.fee_sats == 1
    assert "amount=0.00000001&" in request.pay_instruction


async def test_refresh_loop_adopts_new_parameters(test_config, mock_tokens, builder, watcher):
    test_config.param_refresh_interval = 0.01
    s = PinSession(
        test_config,
        resolver=ParameterResolver(mock_tokens, RECEIPT_ADDRESS, test_config.param_token_id),
        builder=builder,
        watcher=watcher,
    )
    await s.start()
    try:
        mock_tokens.holdings = [make_token_utxo("0500000000800000")]
        await asyncio.sleep(0.05)
        assert s.params == ServiceParams(fee=5, max_size=32768)
    finally:
        await s.close()


# ── Upload ────────────────────────────────────────────────────────


async def test_upload_returns_url(session, mock_uploader):
    url = await session.upload(b"hello", "hello.txt")

    assert url == mock_uploader.url
    assert mock_uploader.uploads == [("hello.txt", 5, "text/plain")]


async def test_upload_rejects_oversized_locally(session, mock_uploader):
    assert await session.upload(b"x" * 16385) is None
    assert session.error.startswith("Raw data size exceeds")
    assert mock_uploader.uploads == []


async def test_upload_failure_sets_error(session):
    session.uploader = MockUploader(error="disk full")
    assert await session.upload(b"data") is None
    assert session.error == "Error uploading file: disk full"


# ── Settlement + history ──────────────────────────────────────────


async def test_settlement_is_recorded(session, store, mock_watcher):
    request = await session.submit("https://example.com/ok")
    deposit = make_deposit_tx(request)

    await mock_watcher.deliver(DEPOSIT_ADDRESS, deposit)
    await mock_watcher.deliver(RECEIPT_ADDRESS, make_receipt_tx(deposit.txid, payload=TEST_CID))
    receipt = await session.wait()
    assert receipt.cid == TEST_CID

    await _wait_for(lambda: _status(store, "settled"))
    record = (await store.get_recent_requests())[0]
    assert record.deposit_txid == deposit.txid
    assert record.receipt_txid == receipt.transaction_id
    assert record.cid == TEST_CID
    assert record.script_hex == request.encoded_bytes.hex()

    activity = [a.event_type for a in await store.get_recent_activity()]
    assert "request_built" in activity
    assert "deposit_detected" in activity
    assert "settled" in activity


async def test_refund_is_recorded_and_surfaced(session, store, mock_watcher):
    request = await session.submit("https://example.com/ok")
    deposit = make_deposit_tx(request)

    await mock_watcher.deliver(DEPOSIT_ADDRESS, deposit)
    await mock_watcher.deliver(
        RECEIPT_ADDRESS, make_receipt_tx(deposit.txid, ReceiptStatus.REFUND, "DL_FAIL"),
    )

    await _wait_for(lambda: _status(store, "refunded"))
    assert session.error == (
        "Transaction refunded due to error: "
        "Service was not able to download remote data and pin it"
    )
    record = (await store.get_recent_requests())[0]
    assert record.refund_reason == "DL_FAIL"


async def test_unrecognized_receipt_is_surfaced(session, store, mock_watcher):
    request = await session.submit("https://example.com/ok")
    deposit = make_deposit_tx(request)

    await mock_watcher.deliver(DEPOSIT_ADDRESS, deposit)
    await mock_watcher.deliver(
        RECEIPT_ADDRESS, make_receipt_tx(deposit.txid, ReceiptStatus.REFUND, "DISK_FULL"),
    )

    async def logged() -> bool:
        activity = await store.get_recent_activity()
        return any(a.event_type == "receipt_unrecognized" for a in activity)

    await _wait_for(logged)
    assert "DISK_FULL" in session.error
    assert session.watcher.state == SettlementState.AWAITING_RECEIPT
    assert (await store.get_recent_requests())[0].status == "awaiting_receipt"


async def test_superseded_request_is_recorded(session, store):
    await session.submit("https://example.com/one")
    await session.submit("https://example.com/two")

    async def superseded() -> bool:
        records = await store.get_recent_requests()
        return any(r.status == "superseded" for r in records)

    await _wait_for(superseded)
    records = await store.get_recent_requests()
    assert {r.url: r.status for r in records} == {
        "https://example.com/one": "superseded",
        "https://example.com/two": "awaiting_deposit",
    }
    assert [r.generation for r in records] == [2, 1]


async def test_wait_without_request_raises(session):
    with pytest.raises(SupersededError):
        await session.wait()
