"""Serialized dispatcher for market notifications and timer ticks.

Each entry point takes the engine lock, applies the event to the market
mirror and the state store, runs the processors the event triggers, and
returns the bid actions queued while doing so.
"""

from __future__ import annotations

from threading import RLock
from typing import Iterable, Mapping, Optional

from travel_agent.domain import auctions
from travel_agent.domain.constraints import (
    BiddingConfig,
    validate_bidding_config,
    validate_client,
)
from travel_agent.domain.models import (
    AuctionCategory,
    AuctionStatus,
    BidAction,
    BidSide,
    BidState,
    Client,
    FlightDirection,
    HotelAuctionOutcome,
    HotelBidMode,
    Quote,
    RejectReason,
)
from travel_agent.repository.market_gateway import (
    DEFAULT_GAME_LENGTH_SECONDS,
    MarketMirror,
)
from travel_agent.repository.market_state import MarketState
from travel_agent.services.allocation_service import AllocationService
from travel_agent.services.bidding_service import BiddingService
from travel_agent.services.demand_service import estimate_demand
from travel_agent.services.report_service import GameReport, build_game_report
from travel_agent.utils.config import Settings, get_settings
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)


class EngineError(Exception):
    """Base exception for engine failures."""


class GameNotStartedError(EngineError):
    """Raised when a market event needs a running game and none is running."""


def bidding_config_from(settings: Settings) -> BiddingConfig:
    return BiddingConfig(
        hotel_normal_price_ceiling=settings.hotel_normal_price_ceiling,
        hotel_final_price_ceiling=settings.hotel_final_price_ceiling,
        hotel_min_prediction_samples=settings.hotel_min_prediction_samples,
        hotel_reallocation_max_shift=settings.hotel_reallocation_max_shift,
        entertainment_affordable_ask=settings.entertainment_affordable_ask,
        entertainment_sell_start_price=settings.entertainment_sell_start_price,
        entertainment_sell_price_step=settings.entertainment_sell_price_step,
        entertainment_sell_floor_price=settings.entertainment_sell_floor_price,
        entertainment_tie_policy=settings.entertainment_tie_policy,
    )


class AgentEngine:
    """Owns the state store and routes every event through one lock."""

    def __init__(
        self,
        market: Optional[MarketMirror] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        validate_bidding_config(bidding_config_from(self._settings))
        self._lock = RLock()
        self.market = market or MarketMirror()
        self.state = MarketState()
        self.allocation = AllocationService(self.state, self.market, self._settings)
        self.bidding = BiddingService(self.state, self.market, self.allocation, self._settings)
        self.last_report: Optional[GameReport] = None

    @property
    def game_running(self) -> bool:
        return self.state.game_running

    def require_running(self) -> None:
        if not self.state.game_running:
            raise GameNotStartedError("No game is running. Start a game first.")

    def _ignored(self, event: str) -> bool:
        if self.state.game_running:
            return False
        logger.debug("Event ignored, no game running | event=%s", event)
        return True

    def sync_clock(self, game_time: float) -> None:
        with self._lock:
            self.market.sync_clock(game_time)

    def _drain(self) -> list[BidAction]:
        return self.market.drain_actions()

    # lifecycle

    def game_started(
        self,
        clients: Iterable[Client],
        owns: Optional[Mapping[int, int]] = None,
        game_length: float = DEFAULT_GAME_LENGTH_SECONDS,
        game_time: float = 0.0,
    ) -> list[BidAction]:
        clients = list(clients)
        for client in clients:
            validate_client(client)

        with self._lock:
            self.market.start(game_length=game_length, game_time=game_time)
            for auction, quantity in (owns or {}).items():
                self.market.set_own(auction, quantity)
            self.state.reset(clients)
            self.state.game_running = True
            self.last_report = None
            logger.info(
                "Game started | clients=%s | game_length=%.0f",
                len(clients),
                game_length,
            )

            self.allocation.set_hotel_allocations()
            self.allocation.plan_entertainment()
            self.allocation.allocate_flights()
            return self._drain()

    def game_stopped(self) -> Optional[GameReport]:
        with self._lock:
            if self._ignored("game_stopped"):
                return None
            self.state.game_running = False
            self.last_report = build_game_report(self.state, self.market)
            logger.info(
                "Game stopped | dropped_clients=%s | hotel_outcomes=%s",
                sorted(self.state.dropped_clients),
                len(self.state.hotel_outcomes),
            )
            self._drain()
            return self.last_report

    # quotes

    def _collect_flight_prices(self) -> None:
        seconds = self.market.game_time()
        for auction in auctions.FLIGHT_AUCTIONS:
            quote = self.market.get_quote(auction)
            if quote.is_open:
                self.state.record_price_sample(auction, quote.ask_price, seconds)

    def _estimate_demand_once(self) -> None:
        if self.state.demand is not None:
            return
        inbound = [
            self.state.record(auctions.flight_auction(FlightDirection.INBOUND, day)).samples
            for day in range(1, 5)
        ]
        outbound = [
            self.state.record(auctions.flight_auction(FlightDirection.OUTBOUND, day)).samples
            for day in range(2, 6)
        ]
        if not all(inbound) or not all(outbound):
            return
        self.state.demand = estimate_demand(
            [samples[0].ask_price for samples in inbound],
            [samples[0].ask_price for samples in outbound],
            self._settings.demand_scale,
        )
        logger.info(
            "Demand estimated | flights=%s | hotels=%s",
            [round(value, 2) for value in self.state.demand.flight_demand],
            [round(value, 2) for value in self.state.demand.hotel_demand],
        )

    def _apply_quote(self, quote: Quote) -> None:
        category = auctions.category_of(quote.auction)
        previous = self.market.get_quote(quote.auction)
        self.market.update_quote(quote)

        if category == AuctionCategory.FLIGHT:
            return
        if quote.status == AuctionStatus.CLOSED:
            # ownership lags the closed quote; closure bookkeeping waits for auction_closed
            if category == AuctionCategory.HOTEL:
                logger.info("Hotel quote closed | auction=%s", auctions.label(quote.auction))
            return
        if not quote.is_open:
            return

        self.state.record_price_sample(
            quote.auction, quote.ask_price, self.market.game_time(), quote.bid_price
        )
        if category == AuctionCategory.HOTEL:
            if not previous.is_open:
                logger.info("Hotel auction opened | auction=%s", auctions.label(quote.auction))
            self.bidding.process_hotel(quote.auction)

    def quote_updated(self, quote: Quote) -> list[BidAction]:
        with self._lock:
            if self._ignored("quote_updated"):
                return []
            self._apply_quote(quote)
            return self._drain()

    def category_quotes_updated(
        self, category: AuctionCategory, quotes: Iterable[Quote]
    ) -> list[BidAction]:
        with self._lock:
            if self._ignored("category_quotes_updated"):
                return []
            quotes = list(quotes)
            for quote in quotes:
                if auctions.category_of(quote.auction) != category:
                    raise auctions.UnknownAuctionError(
                        f"auction {quote.auction} is not a {category.value} auction"
                    )
            for quote in quotes:
                self._apply_quote(quote)

            if category == AuctionCategory.FLIGHT:
                self._collect_flight_prices()
                self._estimate_demand_once()
                self.allocation.allocate_flights()
                self.bidding.process_flights()
            return self._drain()

    # bids

    def bid_updated(
        self,
        bid_id: str,
        state: BidState,
        unfilled_quantity: Optional[int] = None,
    ) -> list[BidAction]:
        with self._lock:
            if self._ignored("bid_updated"):
                return []
            record = self.market.mark_bid(bid_id, state)
            if unfilled_quantity is None:
                return self._drain()

            filled = abs(record.bid.quantity) - abs(unfilled_quantity)
            delta = filled - record.filled_quantity
            if delta > 0 and auctions.category_of(record.auction) == AuctionCategory.ENTERTAINMENT:
                slot = self.state.record(record.auction)
                if record.side == BidSide.SELL:
                    slot.outstanding_sale = max(0, slot.outstanding_sale - delta)
                else:
                    slot.outstanding_buy = max(0, slot.outstanding_buy - delta)
                logger.info(
                    "Entertainment bid filled | auction=%s | side=%s | filled=%s",
                    auctions.label(record.auction),
                    record.side.value,
                    delta,
                )
            record.filled_quantity = max(record.filled_quantity, filled)
            return self._drain()

    def bid_rejected(self, bid_id: str, reason: RejectReason) -> list[BidAction]:
        with self._lock:
            if self._ignored("bid_rejected"):
                return []
            record = self.market.reject_bid(bid_id, reason)
            category = auctions.category_of(record.auction)

            if reason == RejectReason.PRICE_NOT_BEAT:
                logger.info(
                    "Bid rejected, price not beaten | auction=%s | price=%.2f",
                    auctions.label(record.auction),
                    record.bid.price,
                )
                if category == AuctionCategory.HOTEL:
                    self.bidding.process_hotel(record.auction)
            elif reason == RejectReason.ACTIVE_BID_CHANGED and record.side == BidSide.SELL:
                logger.debug(
                    "Sell bid rejected, active bid changed | auction=%s",
                    auctions.label(record.auction),
                )
            else:
                logger.warning(
                    "Bid rejected | auction=%s | reason=%s",
                    auctions.label(record.auction),
                    reason.value,
                )
            return self._drain()

    def bid_error(self, bid_id: Optional[str], error: str) -> list[BidAction]:
        with self._lock:
            if self._ignored("bid_error"):
                return []
            logger.warning("Bid error reported | bid_id=%s | error=%s", bid_id, error)
            return self._drain()

    def transaction(self, auction: int, quantity: int, price: float) -> list[BidAction]:
        with self._lock:
            if self._ignored("transaction"):
                return []
            self.market.add_own(auction, quantity)
            logger.info(
                "Transaction | auction=%s | quantity=%s | price=%.2f",
                auctions.label(auction),
                quantity,
                price,
            )
            if self.state.is_hotel_closed(auction):
                # late delivery for an already closed hotel auction
                slot = self.state.record(auction)
                slot.allocation = max(0, slot.allocation - quantity)
                self.allocation.allocate_flights()
                self.bidding.process_flights()
            return self._drain()

    # closures

    def _close_hotel(self, auction: int) -> None:
        if self.state.is_hotel_closed(auction):
            return
        self.state.closed_hotels.append(auction)
        record = self.state.record(auction)
        previous = record.allocation
        owned = self.market.get_own(auction)
        record.allocation = max(0, previous - owned)
        if previous > 0:
            self.state.hotel_outcomes.append(
                HotelAuctionOutcome(
                    auction=auction,
                    allocation=previous,
                    owned=owned,
                    bid_price=record.last_bid_price,
                    closing_ask=self.market.get_quote(auction).ask_price,
                )
            )
        logger.info(
            "Hotel auction closed | auction=%s | allocation=%s | owned=%s | missing=%s",
            auctions.label(auction),
            previous,
            owned,
            record.allocation,
        )

        self.bidding.process_hotel(auction)
        self.allocation.allocate_flights()
        self.bidding.process_flights()

    def auction_closed(self, auction: int) -> list[BidAction]:
        with self._lock:
            if self._ignored("auction_closed"):
                return []
            self.market.close_auction(auction)
            if auctions.category_of(auction) == AuctionCategory.HOTEL:
                self._close_hotel(auction)
            else:
                logger.info("Auction closed | auction=%s", auctions.label(auction))
            return self._drain()

    # timers

    def hotel_timer_tick(self) -> list[BidAction]:
        with self._lock:
            if self._ignored("hotel_timer_tick") or self.state.hotel_timer_stopped:
                return []
            time_left = self.market.game_time_left()
            if time_left < self._settings.hotel_timer_stop_seconds:
                self.state.hotel_timer_stopped = True
                logger.info("Hotel timer stopped | time_left=%.1f", time_left)
                return []

            in_final_window = time_left % 60.0 <= self._settings.hotel_final_window_seconds
            if in_final_window and self.state.hotel_mode == HotelBidMode.NORMAL:
                self.state.advance_hotel_mode()
                self.bidding.process_open_hotels()
            return self._drain()

    def _entertainment_open(self) -> bool:
        return all(
            self.market.get_quote(auction).is_open for auction in auctions.ENTERTAINMENT_AUCTIONS
        )

    def entertainment_timer_tick(self) -> list[BidAction]:
        with self._lock:
            if self._ignored("entertainment_timer_tick"):
                return []
            if not self.state.entertainment_ready:
                if not self._entertainment_open():
                    return []
                self.state.entertainment_ready = True
                logger.info("Entertainment auctions open, processing started")

            self.allocation.allocate_entertainment()
            self.bidding.process_entertainment_cycle()
            return self._drain()

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            snapshot = self.state.snapshot()
            snapshot["game_time"] = self.market.game_time()
            snapshot["game_time_left"] = self.market.game_time_left()
            return snapshot
