from __future__ import annotations

from travel_agent.domain import auctions
from travel_agent.domain.models import FlightDirection, HotelAuctionOutcome, HotelTier
from travel_agent.repository.market_gateway import MarketMirror
from travel_agent.repository.market_state import MarketState
from travel_agent.services.report_service import build_game_report


INBOUND = auctions.flight_auction(FlightDirection.INBOUND, 1)
CHEAP_1 = auctions.hotel_auction(HotelTier.CHEAP, 1)
CHEAP_2 = auctions.hotel_auction(HotelTier.CHEAP, 2)


def _build_state() -> tuple[MarketState, MarketMirror]:
    state = MarketState()
    state.reset([])
    market = MarketMirror(clock=lambda: 0.0)
    return state, market


def test_flight_prediction_profit_and_success():
    state, market = _build_state()
    for seconds, price in ((0.0, 320.0), (10.0, 300.0), (20.0, 340.0)):
        state.record_price_sample(INBOUND, price, seconds)
    state.record(INBOUND).last_bid_price = 300.0
    market.set_own(INBOUND, 2)

    report = build_game_report(state, market)
    row = report.flights.set_index("auction").loc[INBOUND]

    assert row["initial_price"] == 320.0
    assert row["final_price"] == 340.0
    assert row["prediction_profit"] == 80.0
    assert bool(row["prediction_success"]) is True
    assert report.flight_prediction_success_ratio == 1.0
    assert list(report.price_histories[INBOUND]["ask_price"]) == [320.0, 300.0, 340.0]


def test_hotel_outcomes_and_allocation_table():
    state, market = _build_state()
    state.initial_hotel_allocations = {CHEAP_1: 2, CHEAP_2: 1}
    state.hotel_outcomes = [
        HotelAuctionOutcome(CHEAP_1, allocation=2, owned=2, bid_price=120.0, closing_ask=110.0),
        HotelAuctionOutcome(CHEAP_2, allocation=1, owned=0, bid_price=90.0, closing_ask=130.0),
    ]
    market.set_own(CHEAP_1, 2)

    report = build_game_report(state, market)

    assert list(report.hotels["won"]) == [True, False]
    assert report.hotel_success_ratio == 0.5
    missing = report.hotel_allocations.set_index("auction")["missing"]
    assert missing[CHEAP_1] == 0
    assert missing[CHEAP_2] == 1


def test_empty_game_summary():
    state, market = _build_state()

    summary = build_game_report(state, market).summary()

    assert summary["hotel_success_ratio"] == 0.0
    assert summary["flight_prediction_success_ratio"] == 0.0
    assert summary["hotel_outcomes"] == []
    assert summary["dropped_clients"] == []
