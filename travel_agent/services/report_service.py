"""End-of-game results report built from the state store."""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd

from travel_agent.domain import auctions
from travel_agent.repository.market_gateway import MarketGateway
from travel_agent.repository.market_state import MarketState


_FLIGHT_COLUMNS = [
    "auction",
    "label",
    "owned",
    "initial_price",
    "paid_price",
    "final_price",
    "prediction_profit",
    "prediction_success",
]
_HOTEL_COLUMNS = [
    "auction",
    "label",
    "allocation",
    "owned",
    "bid_price",
    "closing_ask",
    "won",
]


def _ratio(column: pd.Series) -> float:
    if column.empty:
        return 0.0
    return float(column.astype(bool).mean())


@dataclass
class GameReport:
    flights: pd.DataFrame
    hotels: pd.DataFrame
    hotel_allocations: pd.DataFrame
    price_histories: dict[int, pd.DataFrame] = field(default_factory=dict)
    dropped_clients: list[int] = field(default_factory=list)

    @property
    def flight_prediction_success_ratio(self) -> float:
        bought = self.flights[self.flights["paid_price"] > 0]
        return _ratio(bought["prediction_success"])

    @property
    def hotel_success_ratio(self) -> float:
        return _ratio(self.hotels["won"])

    def summary(self) -> dict[str, object]:
        return {
            "flight_prediction_profit": float(self.flights["prediction_profit"].sum()),
            "flight_prediction_success_ratio": self.flight_prediction_success_ratio,
            "hotel_success_ratio": self.hotel_success_ratio,
            "hotel_outcomes": self.hotels.to_dict(orient="records"),
            "hotel_allocations": self.hotel_allocations.to_dict(orient="records"),
            "dropped_clients": list(self.dropped_clients),
        }


def _price_history_frame(state: MarketState, auction: int) -> pd.DataFrame:
    samples = state.record(auction).samples
    return pd.DataFrame(
        {
            "seconds": [sample.seconds for sample in samples],
            "ask_price": [sample.ask_price for sample in samples],
            "bid_price": [sample.bid_price for sample in samples],
        }
    )


def _flight_frame(state: MarketState, market: MarketGateway) -> pd.DataFrame:
    rows = []
    for auction in auctions.FLIGHT_AUCTIONS:
        record = state.record(auction)
        prices = record.ask_prices()
        owned = market.get_own(auction)
        initial = prices[0] if prices else 0.0
        final = prices[-1] if prices else 0.0
        paid = record.last_bid_price
        rows.append(
            {
                "auction": auction,
                "label": auctions.label(auction),
                "owned": owned,
                "initial_price": initial,
                "paid_price": paid,
                "final_price": final,
                "prediction_profit": (final - paid) * owned if paid > 0 else 0.0,
                "prediction_success": paid > 0 and paid <= final,
            }
        )
    return pd.DataFrame(rows, columns=_FLIGHT_COLUMNS)


def _hotel_frame(state: MarketState) -> pd.DataFrame:
    rows = [
        {
            "auction": outcome.auction,
            "label": auctions.label(outcome.auction),
            "allocation": outcome.allocation,
            "owned": outcome.owned,
            "bid_price": outcome.bid_price,
            "closing_ask": outcome.closing_ask,
            "won": outcome.bid_price >= outcome.closing_ask,
        }
        for outcome in state.hotel_outcomes
    ]
    return pd.DataFrame(rows, columns=_HOTEL_COLUMNS)


def _hotel_allocation_frame(state: MarketState, market: MarketGateway) -> pd.DataFrame:
    frame = pd.DataFrame(
        {
            "auction": list(auctions.HOTEL_AUCTIONS),
            "label": [auctions.label(auction) for auction in auctions.HOTEL_AUCTIONS],
            "initial_allocation": [
                state.initial_hotel_allocations.get(auction, 0) for auction in auctions.HOTEL_AUCTIONS
            ],
            "owned": [market.get_own(auction) for auction in auctions.HOTEL_AUCTIONS],
        }
    )
    frame["missing"] = (frame["initial_allocation"] - frame["owned"]).clip(lower=0)
    return frame


def build_game_report(state: MarketState, market: MarketGateway) -> GameReport:
    return GameReport(
        flights=_flight_frame(state, market),
        hotels=_hotel_frame(state),
        hotel_allocations=_hotel_allocation_frame(state, market),
        price_histories={
            record.auction: _price_history_frame(state, record.auction)
            for record in state.records
            if record.samples
        },
        dropped_clients=sorted(state.dropped_clients),
    )
