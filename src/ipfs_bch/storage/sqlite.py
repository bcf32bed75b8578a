"""SQLite implementation of the HistoryStore protocol."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from ipfs_bch.models.records import ActivityRecord, PinRequest, RequestRecord

SCHEMA = """
-- Pin requests and their settlement outcome
CREATE TABLE IF NOT EXISTS requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    generation INTEGER NOT NULL,
    url TEXT NOT NULL,
    fee_sats INTEGER NOT NULL,
    script_hex TEXT NOT NULL,
    pay_instruction TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'awaiting_deposit',
    deposit_txid TEXT,
    receipt_txid TEXT,
    cid TEXT,
    refund_reason TEXT,
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_requests_status ON requests(status);
CREATE INDEX IF NOT EXISTS idx_requests_deposit ON requests(deposit_txid);

-- Activity log
CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_type TEXT NOT NULL,
    request_id INTEGER,
    txid TEXT,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_activity_created ON activity_log(created_at);
"""

_UPDATABLE = ("deposit_txid", "receipt_txid", "cid", "refund_reason")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteHistoryStore:
    """SQLite-backed implementation of the HistoryStore protocol."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Requests ───────────────────────────────────────────

    async def save_request(self, request: PinRequest, generation: int) -> int:
        now = _now()
        async with self.db.execute(
            "INSERT INTO requests"
            " (generation, url, fee_sats, script_hex, pay_instruction, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                generation, request.url, request.fee_sats,
                request.encoded_bytes.hex(), request.pay_instruction, now, now,
            ),
        ) as cur:
            request_id = cur.lastrowid
        await self.db.commit()
        return request_id

    async def update_request(self, request_id: int, status: str, **fields: object) -> None:
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"cannot update request columns: {sorted(unknown)}")

        columns = ["status=?", "updated_at=?"]
        values: list[object] = [status, _now()]
        for name in _UPDATABLE:
            if name in fields:
                columns.append(f"{name}=?")
                values.append(fields[name])
        values.append(request_id)
        await self.db.execute(
            f"UPDATE requests SET {', '.join(columns)} WHERE id=?", values,
        )
        await self.db.commit()

    async def get_request(self, request_id: int) -> RequestRecord | None:
        async with self.db.execute(
            "SELECT * FROM requests WHERE id=?", (request_id,)
        ) as cur:
            row = await cur.fetchone()
            return _row_to_request(row) if row else None

    async def get_recent_requests(self, limit: int = 20) -> list[RequestRecord]:
        async with self.db.execute(
            "SELECT * FROM requests ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ) as cur:
            return [_row_to_request(row) async for row in cur]

    # ── Activity log ───────────────────────────────────────

    async def log_activity(
        self,
        event_type: str,
        message: str,
        request_id: int | None = None,
        txid: str | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO activity_log (event_type, request_id, txid, message, created_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (event_type, request_id, txid, message, _now()),
        )
        await self.db.commit()

    async def get_recent_activity(self, limit: int = 50) -> list[ActivityRecord]:
        async with self.db.execute(
            "SELECT * FROM activity_log ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
        ) as cur:
            return [
                ActivityRecord(
                    id=row["id"],
                    event_type=row["event_type"],
                    request_id=row["request_id"],
                    txid=row["txid"],
                    message=row["message"],
                    created_at=row["created_at"],
                )
                async for row in cur
            ]


def _row_to_request(row: aiosqlite.Row) -> RequestRecord:
    return RequestRecord(
        id=row["id"],
        generation=row["generation"],
        url=row["url"],
        fee_sats=row["fee_sats"],
        script_hex=row["script_hex"],
        pay_instruction=row["pay_instruction"],
        status=row["status"],
        deposit_txid=row["deposit_txid"],
        receipt_txid=row["receipt_txid"],
        cid=row["cid"],
        refund_reason=row["refund_reason"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
