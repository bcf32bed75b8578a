"""Settlement watcher - correlates the deposit and receipt transactions.

State machine::

    IDLE -> AWAITING_DEPOSIT -> DEPOSIT_DETECTED -> AWAITING_RECEIPT -> SETTLED
                                                                     -> REFUNDED

Every call to start() or reset() opens a new generation. Subscription
callbacks are bound to the generation that created them and do nothing once
it is superseded, even if the transport has not torn them down yet.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import AsyncIterator, Union

from ipfs_bch.errors import (
    ParseError,
    ProtocolError,
    RefundError,
    SupersededError,
    UnrecognizedFormatError,
)
from ipfs_bch.interfaces.watcher import TransactionWatcher, Unsubscribe
from ipfs_bch.models.events import DepositEvent, ReceiptEvent, ReceiptStatus, RefundReason
from ipfs_bch.models.records import PinRequest, Transaction
from ipfs_bch.protocol.messages import parse_receipt

log = logging.getLogger(__name__)

SettlementEvent = Union[DepositEvent, ReceiptEvent, UnrecognizedFormatError]


class SettlementState(str, Enum):
    IDLE = "idle"
    AWAITING_DEPOSIT = "awaiting_deposit"
    DEPOSIT_DETECTED = "deposit_detected"
    AWAITING_RECEIPT = "awaiting_receipt"
    SETTLED = "settled"
    REFUNDED = "refunded"

    @property
    def terminal(self) -> bool:
        return self in (SettlementState.SETTLED, SettlementState.REFUNDED)


class WatchSession:
    """Event channel for one generation.

    Yields DepositEvent, ReceiptEvent and UnrecognizedFormatError warnings.
    Every iterator sees every event from the start of the session, so
    several consumers may follow it. Iteration ends after the terminal
    receipt or when the session is superseded.
    """

    def __init__(self, generation: int, request: PinRequest) -> None:
        self.generation = generation
        self.request = request
        self._events: list[SettlementEvent] = []
        self._changed = asyncio.Event()
        self._closed = False
        self._superseded = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def superseded(self) -> bool:
        return self._superseded

    @property
    def events(self) -> list[SettlementEvent]:
        return list(self._events)

    def _wake(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def _emit(self, event: SettlementEvent) -> None:
        if not self._closed:
            self._events.append(event)
            self._wake()

    def _close(self, superseded: bool = False) -> None:
        if self._closed:
            return
        self._closed = True
        self._superseded = superseded
        self._wake()

    async def __aiter__(self) -> AsyncIterator[SettlementEvent]:
        seen = 0
        while True:
            while seen < len(self._events):
                yield self._events[seen]
                seen += 1
            if self._closed:
                return
            await self._changed.wait()

    async def wait(self) -> ReceiptEvent:
        """Wait for the outcome.

        Returns the DONE receipt, raises RefundError for a refund and
        SupersededError if a newer request or a reset ended the session.
        """
        async for event in self:
            if not isinstance(event, ReceiptEvent):
                continue
            if event.status == ReceiptStatus.DONE:
                return event
            raise RefundError(event.reason, event.transaction_id)
        raise SupersededError(f"watch session {self.generation} was superseded")


def _matches(tx: Transaction, expected: bytes) -> bool:
    for out in tx.outputs:
        try:
            if out.script == expected:
                return True
        except ValueError:
            continue
    return False


class SettlementWatcher:
    """Watches the deposit and receipt addresses for one request at a time."""

    def __init__(
        self,
        transport: TransactionWatcher,
        deposit_address: str,
        receipt_address: str,
    ) -> None:
        self._transport = transport
        self._deposit_address = deposit_address
        self._receipt_address = receipt_address

        self._generation = 0
        self._state = SettlementState.IDLE
        self._request: PinRequest | None = None
        self._session: WatchSession | None = None
        self._deposit: DepositEvent | None = None
        self._receipt: ReceiptEvent | None = None
        self._deposit_unsub: Unsubscribe | None = None
        self._receipt_unsub: Unsubscribe | None = None

    # ── State ──────────────────────────────────────────────

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> SettlementState:
        return self._state

    @property
    def request(self) -> PinRequest | None:
        return self._request

    @property
    def session(self) -> WatchSession | None:
        return self._session

    @property
    def deposit(self) -> DepositEvent | None:
        return self._deposit

    @property
    def receipt(self) -> ReceiptEvent | None:
        return self._receipt

    @property
    def cid(self) -> str | None:
        if self._state != SettlementState.SETTLED or self._receipt is None:
            return None
        return self._receipt.cid

    @property
    def refund_reason(self) -> RefundReason | None:
        if self._state != SettlementState.REFUNDED or self._receipt is None:
            return None
        return self._receipt.reason

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ── Lifecycle ──────────────────────────────────────────

    async def start(self, request: PinRequest) -> WatchSession:
        """Begin watching for ``request``, superseding any previous one."""
        self._generation += 1
        generation = self._generation
        await self._teardown()

        self._request = request
        self._deposit = None
        self._receipt = None
        self._session = session = WatchSession(generation, request)
        self._state = SettlementState.AWAITING_DEPOSIT

        unsub = await self._transport.subscribe(
            self._deposit_address, partial(self._on_deposit_tx, generation),
        )
        if not self.is_current(generation) or self._state != SettlementState.AWAITING_DEPOSIT:
            # Superseded or matched while the subscription was being set up
            await self._call_unsub(unsub)
        else:
            self._deposit_unsub = unsub

        log.info(
            "Watching %s for deposit (generation %d)", self._deposit_address, generation,
        )
        return session

    async def reset(self) -> None:
        """Drop the current request and return to IDLE."""
        self._generation += 1
        await self._teardown()
        self._request = None
        self._deposit = None
        self._receipt = None
        self._session = None
        self._state = SettlementState.IDLE
        log.debug("Watcher reset (generation %d)", self._generation)

    async def _teardown(self) -> None:
        if self._session is not None:
            self._session._close(superseded=not self._state.terminal)
        await self._drop_deposit_subscription()
        await self._drop_receipt_subscription()

    async def _call_unsub(self, unsub: Unsubscribe) -> None:
        try:
            await unsub()
        except Exception as exc:
            log.warning("Unsubscribe failed: %s", exc)

    async def _drop_deposit_subscription(self) -> None:
        unsub, self._deposit_unsub = self._deposit_unsub, None
        if unsub is not None:
            await self._call_unsub(unsub)

    async def _drop_receipt_subscription(self) -> None:
        unsub, self._receipt_unsub = self._receipt_unsub, None
        if unsub is not None:
            await self._call_unsub(unsub)

    # ── Deposit stage ──────────────────────────────────────

    async def _on_deposit_tx(self, generation: int, tx: Transaction) -> None:
        if not self.is_current(generation):
            log.debug("Dropping deposit-address tx %s from generation %d", tx.txid, generation)
            return
        if self._state != SettlementState.AWAITING_DEPOSIT or self._request is None:
            return

        expected = self._request.encoded_bytes
        if not _matches(tx, expected):
            log.debug("Deposit-address tx %s does not carry our request", tx.txid)
            return

        event = DepositEvent(transaction_id=tx.txid, matched_script=expected, generation=generation)
        self._deposit = event
        self._state = SettlementState.DEPOSIT_DETECTED
        log.info("Deposit transaction detected: %s", tx.txid)
        if self._session is not None:
            self._session._emit(event)

        await self._drop_deposit_subscription()
        if not self.is_current(generation):
            return

        self._state = SettlementState.AWAITING_RECEIPT
        unsub = await self._transport.subscribe(
            self._receipt_address, partial(self._on_receipt_tx, generation),
        )
        if not self.is_current(generation) or self._state.terminal:
            await self._call_unsub(unsub)
        else:
            self._receipt_unsub = unsub

    # ── Receipt stage ──────────────────────────────────────

    async def _on_receipt_tx(self, generation: int, tx: Transaction) -> None:
        if not self.is_current(generation):
            log.debug("Dropping receipt-address tx %s from generation %d", tx.txid, generation)
            return
        if self._state != SettlementState.AWAITING_RECEIPT or self._deposit is None:
            return

        try:
            receipt = parse_receipt(tx, self._deposit.transaction_id, generation)
        except (ParseError, ProtocolError) as exc:
            log.debug("Ignoring receipt-address tx %s: %s", tx.txid, exc)
            return
        except UnrecognizedFormatError as exc:
            log.warning("Receipt %s not understood: %s", tx.txid, exc)
            if self._session is not None:
                self._session._emit(exc)
            return

        if receipt is None:
            log.debug("Receipt-address tx %s belongs to another deposit", tx.txid)
            return

        self._receipt = receipt
        if receipt.status == ReceiptStatus.DONE:
            self._state = SettlementState.SETTLED
            log.info("Pinned: %s (receipt %s)", receipt.cid, tx.txid)
        else:
            self._state = SettlementState.REFUNDED
            log.warning("Refunded: %s (receipt %s)", receipt.reason.value, tx.txid)

        if self._session is not None:
            self._session._emit(receipt)
            self._session._close()
        await self._drop_receipt_subscription()
