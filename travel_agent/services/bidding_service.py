"""Bidding state machine for flight, hotel and entertainment auctions."""

from __future__ import annotations

import math
from typing import Optional

from travel_agent.domain import auctions
from travel_agent.domain.models import (
    Bid,
    BidRecord,
    BidSide,
    BidState,
    HotelBidMode,
    RejectReason,
)
from travel_agent.repository.market_gateway import MarketGateway
from travel_agent.repository.market_state import MarketState
from travel_agent.services.allocation_service import AllocationService
from travel_agent.services.prediction_service import FlightPricePredictor, HotelPricePredictor
from travel_agent.utils.config import Settings, get_settings
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)


class BiddingService:
    """Turns allocations into bids and keeps outstanding bids competitive."""

    def __init__(
        self,
        state: MarketState,
        market: MarketGateway,
        allocation: AllocationService,
        settings: Optional[Settings] = None,
    ) -> None:
        self._state = state
        self._market = market
        self._allocation = allocation
        self._settings = settings or get_settings()

    # flights

    def flight_deadline_override(self) -> bool:
        """Opening and closing minutes of the game force immediate flight buys."""
        return (
            self._market.game_time() < self._settings.flight_opening_window_seconds
            or self._market.game_time_left() <= self._settings.flight_closing_window_seconds
        )

    def process_flight(self, auction: int) -> Optional[BidRecord]:
        record = self._state.record(auction)
        if record.allocation < 1:
            return None
        quote = self._market.get_quote(auction)
        if not quote.is_open:
            return None

        if not self.flight_deadline_override():
            prices = record.ask_prices()
            if not prices or not FlightPricePredictor(prices, self._settings).should_buy():
                logger.debug(
                    "Flight buy deferred | auction=%s | samples=%s",
                    auctions.label(auction),
                    len(prices),
                )
                return None

        bid = Bid(auction=auction, quantity=record.allocation, price=quote.ask_price)
        placed = self._market.submit_bid(bid)
        record.last_bid_price = quote.ask_price
        record.allocation = 0
        logger.info(
            "Flight bid submitted | auction=%s | quantity=%s | price=%.2f",
            auctions.label(auction),
            bid.quantity,
            bid.price,
        )
        return placed

    def process_flights(self) -> list[BidRecord]:
        placed = [self.process_flight(auction) for auction in auctions.FLIGHT_AUCTIONS]
        return [record for record in placed if record is not None]

    # hotels

    def hotel_price_ceiling(self) -> float:
        if self._state.hotel_mode == HotelBidMode.FINAL:
            return self._settings.hotel_final_price_ceiling
        return self._settings.hotel_normal_price_ceiling

    def final_mode_offset(self, auction: int) -> int:
        floor = self._settings.hotel_final_offset_floor
        if self._state.demand is None:
            return floor
        demand = self._state.demand.hotel_demand_for(auctions.day_of(auction))
        return max(floor, self._settings.hotel_final_demand_factor * int(demand))

    def hotel_margin(self, auction: int) -> int:
        record = self._state.record(auction)
        last_price = record.last_bid_price
        history = record.price_history()

        if len(history) < self._settings.hotel_min_prediction_samples:
            margin = 1 if not history else max(2, int(0.1 * last_price))
        else:
            predictor = HotelPricePredictor(
                [point.seconds for point in history],
                [point.price for point in history],
            )
            boundary = math.ceil(self._market.game_time() / 60.0) * 60.0
            margin = max(predictor.predict(boundary) - int(last_price), 1)

        if self._state.hotel_mode == HotelBidMode.FINAL:
            margin += self.final_mode_offset(auction)
        return margin

    def _hotel_bid_needed(self, existing: Optional[BidRecord]) -> Optional[bool]:
        """None when no action is due, otherwise whether to replace."""
        if existing is None:
            return False
        if existing.state == BidState.VALID:
            return True
        if existing.state == BidState.REJECTED and existing.reject_reason == RejectReason.PRICE_NOT_BEAT:
            return True
        return None

    def process_hotel(self, auction: int) -> Optional[BidRecord]:
        record = self._state.record(auction)
        if record.allocation < 1:
            return None

        if self._state.is_hotel_closed(auction):
            self._allocation.reallocate_hotel(auction)
            return None
        quote = self._market.get_quote(auction)
        if not quote.is_open:
            return None

        ceiling = self.hotel_price_ceiling()
        if record.last_bid_price > ceiling:
            logger.warning(
                "Hotel walk-away, last price above ceiling | auction=%s | last_price=%.2f | ceiling=%.2f",
                auctions.label(auction),
                record.last_bid_price,
                ceiling,
            )
            return None

        replace = self._hotel_bid_needed(self._market.get_bid(auction))
        if replace is None:
            return None

        margin = self.hotel_margin(auction)
        price = quote.ask_price + margin
        if price <= record.last_bid_price:
            price = record.last_bid_price + margin
        price = min(price, ceiling)
        if price <= record.last_bid_price:
            logger.warning(
                "Hotel walk-away, capped price does not improve | auction=%s | last_price=%.2f | ceiling=%.2f",
                auctions.label(auction),
                record.last_bid_price,
                ceiling,
            )
            return None

        bid = Bid(auction=auction, quantity=record.allocation, price=price)
        if replace:
            placed = self._market.replace_bid(self._market.get_bid(auction), bid)
        else:
            placed = self._market.submit_bid(bid)
        record.last_bid_price = price
        logger.info(
            "Hotel bid %s | auction=%s | quantity=%s | price=%.2f | margin=%s | mode=%s",
            "replaced" if replace else "submitted",
            auctions.label(auction),
            bid.quantity,
            price,
            margin,
            self._state.hotel_mode.value,
        )
        return placed

    def process_open_hotels(self) -> list[BidRecord]:
        placed = []
        for auction in auctions.HOTEL_AUCTIONS:
            if self._state.is_hotel_closed(auction):
                continue
            record = self.process_hotel(auction)
            if record is not None:
                placed.append(record)
        return placed

    # entertainment

    def entertainment_margin(self, auction: int) -> int:
        return max(2, int(self._state.record(auction).last_bid_price) + 1)

    def process_entertainment(self, auction: int) -> Optional[BidRecord]:
        record = self._state.record(auction)
        quote = self._market.get_quote(auction)
        if not quote.is_open:
            return None
        if quote.ask_price > self._settings.entertainment_affordable_ask:
            logger.debug(
                "Entertainment ask above budget, skipped | auction=%s | ask=%.2f",
                auctions.label(auction),
                quote.ask_price,
            )
            return None

        price = quote.ask_price + self.entertainment_margin(auction)
        if record.allocation > 0:
            bid = Bid(auction=auction, quantity=record.allocation, price=price)
            placed = self._market.submit_bid(bid)
            record.outstanding_buy += record.allocation
            record.allocation = 0
        elif record.outstanding_buy > 0:
            existing = self._market.get_bid(auction)
            if existing is None:
                return None
            bid = Bid(auction=auction, quantity=record.outstanding_buy, price=price)
            placed = self._market.replace_bid(existing, bid)
        else:
            return None

        record.last_bid_price = price
        logger.info(
            "Entertainment buy bid placed | auction=%s | quantity=%s | price=%.2f",
            auctions.label(auction),
            bid.quantity,
            price,
        )
        return placed

    def process_entertainment_sale(self, auction: int) -> Optional[BidRecord]:
        record = self._state.record(auction)
        if not self._market.get_quote(auction).is_open:
            return None

        if record.for_sale > 0:
            record.sell_price = self._settings.entertainment_sell_start_price
            bid = Bid(auction=auction, quantity=-record.for_sale, price=record.sell_price)
            placed = self._market.submit_bid(bid)
            record.outstanding_sale += record.for_sale
            record.for_sale = 0
        elif record.outstanding_sale > 0 and record.sell_price > self._settings.entertainment_sell_floor_price:
            existing = self._market.get_bid(auction, BidSide.SELL)
            if existing is None:
                return None
            record.sell_price = max(
                record.sell_price - self._settings.entertainment_sell_price_step,
                self._settings.entertainment_sell_floor_price,
            )
            bid = Bid(auction=auction, quantity=-record.outstanding_sale, price=record.sell_price)
            placed = self._market.replace_bid(existing, bid)
        else:
            return None

        logger.info(
            "Entertainment sell bid placed | auction=%s | quantity=%s | price=%.2f",
            auctions.label(auction),
            -bid.quantity,
            bid.price,
        )
        return placed

    def process_entertainment_cycle(self) -> list[BidRecord]:
        placed = []
        for auction in auctions.ENTERTAINMENT_AUCTIONS:
            for record in (self.process_entertainment(auction), self.process_entertainment_sale(auction)):
                if record is not None:
                    placed.append(record)
        return placed
