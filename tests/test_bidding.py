from __future__ import annotations

from dataclasses import replace

from travel_agent.domain import auctions
from travel_agent.domain.models import (
    AuctionStatus,
    BidActionKind,
    BidSide,
    BidState,
    DemandEstimate,
    EntertainmentType,
    FlightDirection,
    HotelBidMode,
    HotelTier,
    Quote,
    RejectReason,
)
from travel_agent.repository.market_gateway import MarketMirror
from travel_agent.repository.market_state import MarketState
from travel_agent.services.allocation_service import AllocationService
from travel_agent.services.bidding_service import BiddingService
from travel_agent.utils.config import get_settings


HOTEL = auctions.hotel_auction(HotelTier.CHEAP, 2)
TICKET = auctions.entertainment_auction(EntertainmentType.MUSEUM, 3)
INBOUND = auctions.flight_auction(FlightDirection.INBOUND, 2)


def _build_test_settings(**overrides):
    return replace(get_settings(), **overrides)


def _build_services(game_time: float = 0.0, settings=None):
    settings = settings or _build_test_settings()
    market = MarketMirror(clock=lambda: 0.0)
    market.start(game_time=game_time)
    state = MarketState()
    state.reset([])
    allocation = AllocationService(state, market, settings)
    return state, market, BiddingService(state, market, allocation, settings)


def _open(market: MarketMirror, auction: int, ask: float) -> None:
    market.update_quote(Quote(auction, ask, status=AuctionStatus.OPEN))


def test_hotel_margin_final_mode_never_below_normal_mode():
    state, _, bidding = _build_services()
    for seconds, price in ((0.0, 100.0), (30.0, 110.0), (60.0, 120.0)):
        state.record_price_sample(HOTEL, price, seconds)
    state.record(HOTEL).last_bid_price = 90.0

    normal = bidding.hotel_margin(HOTEL)
    state.advance_hotel_mode()
    final = bidding.hotel_margin(HOTEL)

    assert final >= normal
    assert final - normal == 100


def test_final_offset_scales_with_hotel_demand():
    state, _, bidding = _build_services()
    state.demand = DemandEstimate(flight_demand=(8.0,) * 8, hotel_demand=(10.0, 40.0, 30.0, 5.0))

    assert bidding.final_mode_offset(HOTEL) == 160
    assert bidding.final_mode_offset(auctions.hotel_auction(HotelTier.CHEAP, 1)) == 100


def test_hotel_margin_without_enough_history():
    state, _, bidding = _build_services()

    assert bidding.hotel_margin(HOTEL) == 1

    state.record_price_sample(HOTEL, 120.0, 10.0)
    state.record(HOTEL).last_bid_price = 150.0
    assert bidding.hotel_margin(HOTEL) == 15


def test_hotel_bid_submitted_then_replaced_when_valid():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 2)
    _open(market, HOTEL, 80.0)

    first = bidding.process_hotel(HOTEL)
    assert first is not None
    assert first.bid.quantity == 2
    assert first.bid.price == 81.0

    assert bidding.process_hotel(HOTEL) is None

    market.mark_bid(first.bid_id, BidState.VALID)
    _open(market, HOTEL, 95.0)
    second = bidding.process_hotel(HOTEL)

    actions = market.drain_actions()
    assert [action.kind for action in actions] == [BidActionKind.SUBMIT, BidActionKind.REPLACE]
    assert actions[1].replaces == first.bid_id
    assert second.bid.price == 96.0


def test_hotel_bid_rebids_after_price_not_beaten():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 1)
    _open(market, HOTEL, 80.0)
    placed = bidding.process_hotel(HOTEL)

    market.reject_bid(placed.bid_id, RejectReason.OTHER)
    assert bidding.process_hotel(HOTEL) is None

    market.reject_bid(placed.bid_id, RejectReason.PRICE_NOT_BEAT)
    rebid = bidding.process_hotel(HOTEL)
    assert rebid is not None
    assert rebid.bid.price > placed.bid.price


def test_hotel_price_never_exceeds_ceiling():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 1)
    _open(market, HOTEL, 420.0)

    placed = bidding.process_hotel(HOTEL)
    assert placed.bid.price == 400.0

    market.mark_bid(placed.bid_id, BidState.VALID)
    _open(market, HOTEL, 430.0)
    assert bidding.process_hotel(HOTEL) is None

    state.advance_hotel_mode()
    raised = bidding.process_hotel(HOTEL)
    assert raised is not None
    assert raised.bid.price <= 550.0

    for action in market.drain_actions():
        assert action.bid.price <= 550.0


def test_hotel_walks_away_when_last_price_above_ceiling():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 1)
    state.record(HOTEL).last_bid_price = 401.0
    _open(market, HOTEL, 100.0)

    assert bidding.process_hotel(HOTEL) is None
    assert market.drain_actions() == []


def test_closed_hotel_quote_stops_bidding():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 1)
    _open(market, HOTEL, 100.0)
    market.close_auction(HOTEL)

    assert bidding.process_hotel(HOTEL) is None
    assert state.allocation(HOTEL) == 1
    assert market.drain_actions() == []


def test_registered_hotel_closure_reallocates_instead_of_bidding():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 1)
    _open(market, HOTEL, 100.0)
    state.closed_hotels.append(HOTEL)

    assert bidding.process_hotel(HOTEL) is None
    assert market.drain_actions() == []


def test_flight_bought_at_ask_during_opening_window():
    state, market, bidding = _build_services(game_time=30.0)
    state.set_allocation(INBOUND, 3)
    _open(market, INBOUND, 310.0)

    placed = bidding.process_flight(INBOUND)

    assert placed.bid.quantity == 3
    assert placed.bid.price == 310.0
    assert state.allocation(INBOUND) == 0
    assert state.record(INBOUND).last_bid_price == 310.0


def test_flight_buy_deferred_while_prices_fall():
    state, market, bidding = _build_services(game_time=200.0)
    state.set_allocation(INBOUND, 1)
    for index in range(10):
        state.record_price_sample(INBOUND, 400.0 - 5.0 * index, 200.0 + index)
    _open(market, INBOUND, 355.0)

    assert bidding.process_flight(INBOUND) is None
    assert state.allocation(INBOUND) == 1


def test_flight_bought_in_closing_seconds_regardless_of_trend():
    state, market, bidding = _build_services(game_time=535.0)
    state.set_allocation(INBOUND, 1)
    for index in range(10):
        state.record_price_sample(INBOUND, 400.0 - 5.0 * index, 100.0 + index)
    _open(market, INBOUND, 355.0)

    assert bidding.process_flight(INBOUND) is not None


def test_entertainment_skipped_when_ask_unaffordable():
    state, market, bidding = _build_services()
    state.set_allocation(TICKET, 1)
    _open(market, TICKET, 81.0)

    assert bidding.process_entertainment(TICKET) is None
    assert state.allocation(TICKET) == 1


def test_entertainment_buy_ratchets_on_last_price():
    state, market, bidding = _build_services()
    state.set_allocation(TICKET, 2)
    _open(market, TICKET, 40.0)

    first = bidding.process_entertainment(TICKET)
    assert first.bid.price == 42.0
    assert state.record(TICKET).outstanding_buy == 2
    assert state.allocation(TICKET) == 0

    second = bidding.process_entertainment(TICKET)
    assert second.bid.quantity == 2
    assert second.bid.price == 40.0 + 43.0


def test_sell_ladder_steps_down_to_floor():
    settings = _build_test_settings(
        entertainment_sell_start_price=70.0,
        entertainment_sell_price_step=4.0,
        entertainment_sell_floor_price=60.0,
    )
    state, market, bidding = _build_services(settings=settings)
    state.record(TICKET).for_sale = 1
    _open(market, TICKET, 50.0)

    prices = []
    for _ in range(6):
        placed = bidding.process_entertainment_sale(TICKET)
        if placed is not None:
            prices.append(placed.bid.price)

    assert prices == [70.0, 66.0, 62.0, 60.0]
    assert state.record(TICKET).outstanding_sale == 1
    assert market.get_bid(TICKET, BidSide.SELL).bid.quantity == -1


def test_process_open_hotels_skips_closed_auctions():
    state, market, bidding = _build_services()
    state.set_allocation(HOTEL, 1)
    _open(market, HOTEL, 50.0)
    state.closed_hotels.append(HOTEL)

    assert bidding.process_open_hotels() == []
    assert state.hotel_mode == HotelBidMode.NORMAL
