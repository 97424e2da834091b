from __future__ import annotations

import pytest

from travel_agent.domain.auctions import UnknownAuctionError
from travel_agent.domain.models import (
    AuctionStatus,
    Bid,
    BidActionKind,
    BidSide,
    BidState,
    Quote,
    RejectReason,
)
from travel_agent.repository.market_gateway import MarketMirror, UnknownBidError


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_game_clock_is_clamped_to_game_length():
    clock = _Clock()
    market = MarketMirror(clock=clock)
    market.start(game_length=540.0, game_time=10.0)

    assert market.game_time() == 10.0
    clock.now += 600.0
    assert market.game_time() == 540.0
    assert market.game_time_left() == 0.0


def test_submit_and_replace_queue_actions():
    market = MarketMirror(clock=_Clock())
    first = market.submit_bid(Bid(auction=9, quantity=2, price=50.0))
    second = market.replace_bid(first, Bid(auction=9, quantity=2, price=60.0))

    actions = market.drain_actions()

    assert [action.kind for action in actions] == [BidActionKind.SUBMIT, BidActionKind.REPLACE]
    assert actions[1].replaces == first.bid_id
    assert market.get_bid(9) is second
    assert market.drain_actions() == []


def test_buy_and_sell_bids_tracked_separately():
    market = MarketMirror(clock=_Clock())
    buy = market.submit_bid(Bid(auction=20, quantity=1, price=30.0))
    sell = market.submit_bid(Bid(auction=20, quantity=-1, price=200.0))

    assert market.get_bid(20, BidSide.BUY) is buy
    assert market.get_bid(20, BidSide.SELL) is sell


def test_bid_state_transitions():
    market = MarketMirror(clock=_Clock())
    record = market.submit_bid(Bid(auction=9, quantity=1, price=50.0))

    market.reject_bid(record.bid_id, RejectReason.PRICE_NOT_BEAT)
    assert record.reject_reason == RejectReason.PRICE_NOT_BEAT
    market.mark_bid(record.bid_id, BidState.VALID)
    assert record.state == BidState.VALID
    assert record.reject_reason is None

    with pytest.raises(UnknownBidError):
        market.mark_bid("missing", BidState.VALID)


def test_close_auction_keeps_last_prices():
    market = MarketMirror(clock=_Clock())
    market.update_quote(Quote(10, 140.0, 0.0, AuctionStatus.OPEN))

    market.close_auction(10)

    quote = market.get_quote(10)
    assert quote.status == AuctionStatus.CLOSED
    assert quote.ask_price == 140.0


def test_unknown_auction_rejected():
    market = MarketMirror(clock=_Clock())

    with pytest.raises(UnknownAuctionError):
        market.update_quote(Quote(28, 1.0))
    with pytest.raises(UnknownAuctionError):
        market.set_own(-1, 1)
