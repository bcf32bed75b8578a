"""SQLite history store."""

from __future__ import annotations

import pytest

from ipfs_bch.storage.sqlite import SQLiteHistoryStore

from tests.factories import make_request


async def test_save_and_get_request(store):
    request = make_request()
    request_id = await store.save_request(request, generation=4)

    record = await store.get_request(request_id)
    assert record.url == request.url
    assert record.generation == 4
    assert record.fee_sats == request.fee_sats
    assert record.script_hex == request.encoded_bytes.hex()
    assert record.pay_instruction == request.pay_instruction
    assert record.status == "awaiting_deposit"
    assert record.deposit_txid is None
    assert record.created_at


async def test_get_missing_request(store):
    assert await store.get_request(999) is None


async def test_update_request_fields(store):
    request_id = await store.save_request(make_request(), generation=1)

    await store.update_request(request_id, "awaiting_receipt", deposit_txid="aa" * 32)
    await store.update_request(request_id, "settled", receipt_txid="bb" * 32, cid="QmCid")

    record = await store.get_request(request_id)
    assert record.status == "settled"
    assert record.deposit_txid == "aa" * 32
    assert record.receipt_txid == "bb" * 32
    assert record.cid == "QmCid"
    assert record.refund_reason is None


async def test_update_request_rejects_unknown_columns(store):
    request_id = await store.save_request(make_request(), generation=1)
    with pytest.raises(ValueError):
        await store.update_request(request_id, "settled", url="https://evil.example")


async def test_recent_requests_newest_first(store):
    for i in range(3):
        await store.save_request(make_request(f"https://example.com/{i}"), generation=i + 1)

    records = await store.get_recent_requests(limit=2)
    assert [r.url for r in records] == ["https://example.com/2", "https://example.com/1"]


async def test_activity_log(store):
    request_id = await store.save_request(make_request(), generation=1)
    await store.log_activity("request_built", "built", request_id=request_id)
    await store.log_activity("deposit_detected", "seen", request_id=request_id, txid="cc" * 32)

    activity = await store.get_recent_activity()
    assert [a.event_type for a in activity] == ["deposit_detected", "request_built"]
    assert activity[0].txid == "cc" * 32
    assert activity[1].txid is None
    assert all(a.request_id == request_id for a in activity)


async def test_store_creates_parent_directory(tmp_path):
    db_path = tmp_path / "nested" / "history.db"
    s = SQLiteHistoryStore(str(db_path))
    await s.initialize()
    try:
        await s.save_request(make_request(), generation=1)
    finally:
        await s.close()

    s = SQLiteHistoryStore(str(db_path))
    await s.initialize()
    try:
        assert len(await s.get_recent_requests()) == 1
    finally:
        await s.close()
