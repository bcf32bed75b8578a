"""Pin session - wires parameter discovery, request building and settlement."""

from __future__ import annotations

import asyncio
import logging

from ipfs_bch.electrum.client import ElectrumClient
from ipfs_bch.electrum.tokens import ElectrumTokenSource
from ipfs_bch.electrum.watcher import ElectrumAddressWatcher
from ipfs_bch.errors import (
    NetworkError,
    RefundError,
    SupersededError,
    UnrecognizedFormatError,
    ValidationError,
)
from ipfs_bch.http.prober import HttpSizeProber
from ipfs_bch.http.uploader import HttpUploader
from ipfs_bch.interfaces.uploader import Uploader
from ipfs_bch.interfaces.store import HistoryStore
from ipfs_bch.models.config import ClientConfig
from ipfs_bch.models.events import DepositEvent, ReceiptEvent, ReceiptStatus
from ipfs_bch.models.records import PinRequest, ServiceParams
from ipfs_bch.protocol.builder import PinRequestBuilder, format_amount
from ipfs_bch.protocol.params import ParameterResolver
from ipfs_bch.settlement.watcher import SettlementWatcher, WatchSession

log = logging.getLogger(__name__)


class PinSession:
    """One user's pinning workflow.

    URL edits are debounced; each edit cancels the previous validation and
    its in-flight size probe. A successfully built request supersedes the
    previous watch generation. ``error`` holds the latest user-facing
    message, empty when there is none.
    """

    def __init__(
        self,
        cfg: ClientConfig,
        resolver: ParameterResolver,
        builder: PinRequestBuilder,
        watcher: SettlementWatcher,
        uploader: Uploader | None = None,
        store: HistoryStore | None = None,
    ) -> None:
        self._cfg = cfg
        self.resolver = resolver
        self.builder = builder
        self.watcher = watcher
        self.uploader = uploader
        self.store = store

        self.error = ""
        self._input = 0
        self._pending: asyncio.Task | None = None
        self._follow: asyncio.Task | None = None
        self._refresh: asyncio.Task | None = None

    @classmethod
    def from_config(
        cls,
        cfg: ClientConfig,
        client: ElectrumClient,
        store: HistoryStore | None = None,
    ) -> PinSession:
        """Build a session backed by Electrum and the HTTP collaborators."""
        return cls(
            cfg,
            resolver=ParameterResolver(
                ElectrumTokenSource(client), cfg.receipt_address, cfg.param_token_id,
            ),
            builder=PinRequestBuilder(
                cfg.deposit_address, HttpSizeProber(), probe_timeout=cfg.probe_timeout,
            ),
            watcher=SettlementWatcher(
                ElectrumAddressWatcher(client), cfg.deposit_address, cfg.receipt_address,
            ),
            uploader=HttpUploader(cfg.upload_url, timeout=cfg.upload_timeout),
            store=store,
        )

    # ── Lifecycle ──────────────────────────────────────────

    @property
    def params(self) -> ServiceParams:
        return self.resolver.params

    @property
    def request(self) -> PinRequest | None:
        return self.watcher.request

    async def start(self) -> ServiceParams:
        """Resolve the service parameters and keep them fresh."""
        params = await self.refresh_parameters()
        if self._cfg.param_refresh_interval > 0 and self._refresh is None:
            self._refresh = asyncio.create_task(self._refresh_loop())
        return params

    async def close(self) -> None:
        for task in (self._pending, self._refresh, self._follow):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, Exception):
                    pass
        self._pending = self._refresh = self._follow = None
        await self.watcher.reset()

    async def refresh_parameters(self) -> ServiceParams:
        params = await self.resolver.refresh()
        log.debug(
            "Fee %s BCH, max size %d bytes", format_amount(params.fee), params.max_size,
        )
        return params

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._cfg.param_refresh_interval)
                await self.refresh_parameters()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                log.error("Parameter refresh failed: %s", exc)

    # ── Input ──────────────────────────────────────────────

    def set_url(self, url: str) -> asyncio.Task:
        """Debounced URL edit. Returns the task that will validate and build."""
        self._cancel_pending()
        self._input += 1
        self.error = ""
        self._pending = asyncio.create_task(self._debounced(url))
        return self._pending

    async def _debounced(self, url: str) -> PinRequest | None:
        await asyncio.sleep(self._cfg.debounce)
        return await self.submit(url)

    async def submit(self, url: str) -> PinRequest | None:
        """Validate, probe and build now.

        Returns None and sets ``error`` on failure. Also returns None, without
        touching the watcher, when newer input arrived while probing.
        """
        if self._pending is not asyncio.current_task():
            self._cancel_pending()
            self._input += 1
        input_generation = self._input
        try:
            request = await self.builder.prepare(url, self.params)
        except (ValidationError, NetworkError) as exc:
            if input_generation != self._input:
                return None
            self.error = str(exc)
            log.warning("Cannot build request for %s: %s", url[:60], exc)
            return None

        if input_generation != self._input:
            log.debug("Dropping stale request for %s", url[:60])
            return None
        self.error = ""
        await self._activate(request)
        return request

    async def upload(
        self,
        content: bytes,
        filename: str = "data.txt",
        content_type: str = "text/plain",
    ) -> str | None:
        """Upload local content. Returns the URL to pin, None with ``error`` set on failure."""
        if self.uploader is None:
            raise RuntimeError("no uploader configured")
        try:
            url = await self.uploader.upload_checked(
                content, self.params.max_size, filename, content_type,
            )
        except (ValidationError, NetworkError) as exc:
            self.error = str(exc)
            return None
        self.error = ""
        return url

    async def reset(self) -> None:
        """Abandon the current request and any in-flight validation."""
        self._cancel_pending()
        self._input += 1
        self.error = ""
        await self.watcher.reset()

    def _cancel_pending(self) -> None:
        task = self._pending
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._pending = None

    # ── Settlement ─────────────────────────────────────────

    async def wait(self) -> ReceiptEvent:
        """Wait for the current request to settle. See WatchSession.wait()."""
        session = self.watcher.session
        if session is None:
            raise SupersededError("no request is being watched")
        return await session.wait()

    async def _activate(self, request: PinRequest) -> None:
        session = await self.watcher.start(request)
        request_id = None
        if self.store is not None:
            request_id = await self.store.save_request(request, session.generation)
            await self.store.log_activity(
                "request_built",
                f"Pin request for {request.url[:60]}, fee {request.fee_sats} sats",
                request_id=request_id,
            )
        self._follow = asyncio.create_task(self._track(session, request_id))

    async def _track(self, session: WatchSession, request_id: int | None) -> None:
        """Mirror one generation's events into ``error`` and the history store."""
        async for event in session:
            if isinstance(event, UnrecognizedFormatError):
                self.error = str(event)
            elif isinstance(event, ReceiptEvent) and event.status == ReceiptStatus.REFUND:
                self.error = str(RefundError(event.reason, event.transaction_id))
            await self._record(event, request_id)

        if session.superseded:
            await self._update(request_id, "superseded")

    async def _record(self, event: object, request_id: int | None) -> None:
        if self.store is None or request_id is None:
            return
        try:
            if isinstance(event, DepositEvent):
                await self.store.update_request(
                    request_id, "awaiting_receipt", deposit_txid=event.transaction_id,
                )
                await self.store.log_activity(
                    "deposit_detected", "Deposit transaction detected",
                    request_id=request_id, txid=event.transaction_id,
                )
            elif isinstance(event, ReceiptEvent) and event.status == ReceiptStatus.DONE:
                await self.store.update_request(
                    request_id, "settled", receipt_txid=event.transaction_id, cid=event.cid,
                )
                await self.store.log_activity(
                    "settled", f"Pinned {event.cid}",
                    request_id=request_id, txid=event.transaction_id,
                )
            elif isinstance(event, ReceiptEvent):
                await self.store.update_request(
                    request_id, "refunded",
                    receipt_txid=event.transaction_id, refund_reason=event.reason.value,
                )
                await self.store.log_activity(
                    "refunded", f"Refunded: {event.reason.value}",
                    request_id=request_id, txid=event.transaction_id,
                )
            elif isinstance(event, UnrecognizedFormatError):
                await self.store.log_activity(
                    "receipt_unrecognized", str(event), request_id=request_id,
                )
        except Exception as exc:
            log.error("Failed to record %s: %s", type(event).__name__, exc)

    async def _update(self, request_id: int | None, status: str) -> None:
        if self.store is None or request_id is None:
            return
        try:
            await self.store.update_request(request_id, status)
        except Exception as exc:
            log.error("Failed to mark request %d %s: %s", request_id, status, exc)
