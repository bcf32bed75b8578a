"""Electrum protocol client - JSON-RPC over a Fulcrum websocket."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import aiohttp

from ipfs_bch.errors import NetworkError

log = logging.getLogger(__name__)

NotificationHandler = Callable[[list], Awaitable[None]]

PROTOCOL_VERSION = "1.5"


class ElectrumClient:
    """Minimal Electrum JSON-RPC client.

    Requests are matched to responses by id. Server notifications are
    dispatched to per-method handlers as separate tasks so a handler may
    issue further requests without blocking the reader.
    """

    def __init__(
        self,
        url: str,
        request_timeout: float = 30,
        client_name: str = "ipfs-bch",
    ) -> None:
        self._url = url
        self._timeout = request_timeout
        self._client_name = client_name
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None
        self._next_id = 0
        self._pending: dict[int, asyncio.Future] = {}
        self._handlers: dict[str, NotificationHandler] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        if self.connected:
            return
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self._url, heartbeat=30)
        except (aiohttp.ClientError, OSError) as exc:
            await self._session.close()
            self._session = None
            raise NetworkError(f"Cannot connect to {self._url}: {exc}") from exc

        self._reader = asyncio.create_task(self._read_loop())
        version = await self.request("server.version", [self._client_name, PROTOCOL_VERSION])
        log.info("Connected to %s (%s)", self._url, version)

    async def close(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        for task in list(self._tasks):
            task.cancel()
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._fail_pending(NetworkError("connection closed"))

    async def __aenter__(self) -> ElectrumClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        """Register the handler for a subscription notification method."""
        self._handlers[method] = handler

    async def request(self, method: str, params: list | None = None) -> Any:
        """Send one request and wait for its result."""
        if not self.connected:
            raise NetworkError(f"{method}: not connected")

        self._next_id += 1
        request_id = self._next_id
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send_json(
                {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or []}
            )
            return await asyncio.wait_for(future, self._timeout)
        except asyncio.TimeoutError as exc:
            raise NetworkError(f"{method} timed out after {self._timeout}s") from exc
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise NetworkError(f"{method} failed: {exc}") from exc
        finally:
            self._pending.pop(request_id, None)

    # ── Reader ─────────────────────────────────────────────

    async def _read_loop(self) -> None:
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError:
                        log.warning("Dropping non-JSON frame from %s", self._url)
                        continue
                    for item in data if isinstance(data, list) else [data]:
                        self._dispatch(item)
                elif msg.type in (aiohttp.WSMsgType.ERROR, aiohttp.WSMsgType.CLOSED):
                    break
        finally:
            self._fail_pending(NetworkError(f"connection to {self._url} closed"))

    def _dispatch(self, item: dict) -> None:
        request_id = item.get("id")
        if request_id is not None:
            future = self._pending.get(request_id)
            if future is None or future.done():
                return
            error = item.get("error")
            if error:
                message = error.get("message", error) if isinstance(error, dict) else error
                future.set_exception(NetworkError(f"server error: {message}"))
            else:
                future.set_result(item.get("result"))
            return

        method = item.get("method")
        handler = self._handlers.get(method) if method else None
        if handler is None:
            log.debug("Unhandled notification %s", method)
            return
        task = asyncio.create_task(handler(item.get("params") or []))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("Notification handler failed: %s", task.exception())

    def _fail_pending(self, exc: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)
        self._pending.clear()
