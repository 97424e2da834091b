"""Market transport interface and its in-memory mirror.

The engine only talks to the market through ``MarketGateway``. The mirror
implementation is fed by transport notifications (quotes, transactions, bid
status) and queues every outbound bid action for the transport to deliver.
"""

from __future__ import annotations

import time
from threading import RLock
from typing import Callable, Optional, Protocol
from uuid import uuid4

from travel_agent.domain import auctions
from travel_agent.domain.models import (
    AuctionStatus,
    Bid,
    BidAction,
    BidActionKind,
    BidRecord,
    BidSide,
    BidState,
    Quote,
    RejectReason,
)
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)

DEFAULT_GAME_LENGTH_SECONDS = 540.0


class UnknownBidError(LookupError):
    """Raised when a bid notification references a bid the mirror never sent."""


class MarketGateway(Protocol):
    def get_quote(self, auction: int) -> Quote: ...

    def get_own(self, auction: int) -> int: ...

    def get_bid(self, auction: int, side: BidSide = BidSide.BUY) -> Optional[BidRecord]: ...

    def submit_bid(self, bid: Bid) -> BidRecord: ...

    def replace_bid(self, old: BidRecord, bid: Bid) -> BidRecord: ...

    def game_time(self) -> float: ...

    def game_time_left(self) -> float: ...


class MarketMirror:
    """Local copy of the market as last reported by the transport."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = RLock()
        self._game_length = DEFAULT_GAME_LENGTH_SECONDS
        self._anchor = clock()
        self._quotes: dict[int, Quote] = {}
        self._owns: dict[int, int] = {}
        self._bids: dict[tuple[int, BidSide], BidRecord] = {}
        self._bids_by_id: dict[str, BidRecord] = {}
        self._outbox: list[BidAction] = []

    # clock

    def start(self, game_length: float = DEFAULT_GAME_LENGTH_SECONDS, game_time: float = 0.0) -> None:
        with self._lock:
            self._game_length = game_length
            self._quotes.clear()
            self._owns.clear()
            self._bids.clear()
            self._bids_by_id.clear()
            self._outbox.clear()
            self.sync_clock(game_time)

    def sync_clock(self, game_time: float) -> None:
        with self._lock:
            self._anchor = self._clock() - game_time

    def game_time(self) -> float:
        elapsed = self._clock() - self._anchor
        return max(0.0, min(elapsed, self._game_length))

    def game_time_left(self) -> float:
        return max(0.0, self._game_length - self.game_time())

    # quotes and ownership

    def update_quote(self, quote: Quote) -> None:
        auctions.describe(quote.auction)
        with self._lock:
            self._quotes[quote.auction] = quote

    def get_quote(self, auction: int) -> Quote:
        auctions.describe(auction)
        with self._lock:
            return self._quotes.get(auction) or Quote(auction=auction, ask_price=0.0)

    def set_own(self, auction: int, quantity: int) -> None:
        auctions.describe(auction)
        with self._lock:
            self._owns[auction] = quantity

    def add_own(self, auction: int, quantity: int) -> None:
        with self._lock:
            self.set_own(auction, self.get_own(auction) + quantity)

    def get_own(self, auction: int) -> int:
        with self._lock:
            return self._owns.get(auction, 0)

    # bids

    def get_bid(self, auction: int, side: BidSide = BidSide.BUY) -> Optional[BidRecord]:
        with self._lock:
            return self._bids.get((auction, side))

    def find_bid(self, bid_id: str) -> BidRecord:
        with self._lock:
            record = self._bids_by_id.get(bid_id)
        if record is None:
            raise UnknownBidError(f"bid {bid_id} is unknown")
        return record

    def submit_bid(self, bid: Bid) -> BidRecord:
        with self._lock:
            record = self._track(bid)
            self._outbox.append(BidAction(BidActionKind.SUBMIT, record.bid_id, bid))
        logger.debug(
            "Bid queued | auction=%s | quantity=%s | price=%.2f",
            bid.auction,
            bid.quantity,
            bid.price,
        )
        return record

    def replace_bid(self, old: BidRecord, bid: Bid) -> BidRecord:
        with self._lock:
            record = self._track(bid)
            self._outbox.append(
                BidAction(BidActionKind.REPLACE, record.bid_id, bid, replaces=old.bid_id)
            )
        logger.debug(
            "Bid replacement queued | auction=%s | replaces=%s | price=%.2f",
            bid.auction,
            old.bid_id,
            bid.price,
        )
        return record

    def _track(self, bid: Bid) -> BidRecord:
        record = BidRecord(bid_id=uuid4().hex, bid=bid)
        self._bids[(bid.auction, bid.side)] = record
        self._bids_by_id[record.bid_id] = record
        return record

    def mark_bid(self, bid_id: str, state: BidState) -> BidRecord:
        with self._lock:
            record = self.find_bid(bid_id)
            record.state = state
            if state != BidState.REJECTED:
                record.reject_reason = None
            return record

    def reject_bid(self, bid_id: str, reason: RejectReason) -> BidRecord:
        with self._lock:
            record = self.find_bid(bid_id)
            record.state = BidState.REJECTED
            record.reject_reason = reason
            return record

    def drain_actions(self) -> list[BidAction]:
        with self._lock:
            actions, self._outbox = self._outbox, []
        return actions

    def close_auction(self, auction: int) -> None:
        with self._lock:
            quote = self.get_quote(auction)
            self._quotes[auction] = Quote(
                auction=auction,
                ask_price=quote.ask_price,
                bid_price=quote.bid_price,
                status=AuctionStatus.CLOSED,
            )
