"""In-memory entity store for one running game.

All engine components read and mutate this store; the engine serializes
access so no two handlers ever interleave against it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from travel_agent.domain import auctions
from travel_agent.domain.auctions import AuctionKey
from travel_agent.domain.models import (
    Client,
    DemandEstimate,
    HotelAuctionOutcome,
    HotelBidMode,
    PricePoint,
    QuotePoint,
)
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class AuctionRecord:
    """Per-auction slot of the state arena."""

    key: AuctionKey
    samples: list[QuotePoint] = field(default_factory=list)
    allocation: int = 0
    last_bid_price: float = 0.0
    # entertainment only
    outstanding_buy: int = 0
    for_sale: int = 0
    outstanding_sale: int = 0
    sell_price: float = 0.0

    @property
    def auction(self) -> int:
        return self.key.auction

    def price_history(self) -> list[PricePoint]:
        return [PricePoint(sample.ask_price, sample.seconds) for sample in self.samples]

    def ask_prices(self) -> list[float]:
        return [sample.ask_price for sample in self.samples]


class MarketState:
    """Owns every mutable piece of engine state for the current game."""

    def __init__(self) -> None:
        self.records: list[AuctionRecord] = [AuctionRecord(key) for key in auctions.CATALOG]
        self.clients: dict[int, Client] = {}
        self.client_entertainment: dict[int, list[int]] = {}
        self.hotel_mode = HotelBidMode.NORMAL
        self.demand: Optional[DemandEstimate] = None
        self.closed_hotels: list[int] = []
        self.hotel_outcomes: list[HotelAuctionOutcome] = []
        self.initial_hotel_allocations: dict[int, int] = {}
        self.dropped_clients: set[int] = set()
        self.entertainment_ready = False
        self.hotel_timer_stopped = False
        self.game_running = False

    def reset(self, clients: Iterable[Client]) -> None:
        self.__init__()
        self.clients = {client.client_id: client for client in clients}
        self.client_entertainment = {client_id: [] for client_id in self.clients}

    def record(self, auction: int) -> AuctionRecord:
        auctions.describe(auction)
        return self.records[auction]

    def allocation(self, auction: int) -> int:
        return self.record(auction).allocation

    def set_allocation(self, auction: int, allocation: int) -> None:
        self.record(auction).allocation = allocation

    def apply_allocation_delta(self, auction: int, delta: int) -> int:
        record = self.record(auction)
        record.allocation += delta
        return record.allocation

    def record_price_sample(
        self,
        auction: int,
        ask_price: float,
        seconds: float,
        bid_price: float = 0.0,
    ) -> None:
        self.record(auction).samples.append(QuotePoint(ask_price, bid_price, seconds))

    def advance_hotel_mode(self) -> bool:
        """Flip hotel bidding to Final; returns False when already flipped."""
        if self.hotel_mode == HotelBidMode.FINAL:
            return False
        self.hotel_mode = HotelBidMode.FINAL
        logger.info("Hotel bidding mode advanced | mode=%s", self.hotel_mode.value)
        return True

    def is_hotel_closed(self, auction: int) -> bool:
        return auction in self.closed_hotels

    @property
    def all_hotels_closed(self) -> bool:
        return len(self.closed_hotels) >= len(auctions.HOTEL_AUCTIONS)

    def ordered_clients(self) -> list[Client]:
        return [self.clients[client_id] for client_id in sorted(self.clients)]

    def snapshot(self) -> dict[str, object]:
        return {
            "game_running": self.game_running,
            "hotel_mode": self.hotel_mode.value,
            "closed_hotels": list(self.closed_hotels),
            "dropped_clients": sorted(self.dropped_clients),
            "allocations": {
                record.auction: record.allocation
                for record in self.records
                if record.allocation
            },
            "flight_demand": list(self.demand.flight_demand) if self.demand else None,
            "hotel_demand": list(self.demand.hotel_demand) if self.demand else None,
            "clients": [
                {
                    "client_id": client.client_id,
                    "arrival": client.arrival,
                    "departure": client.departure,
                    "hotel_value": client.hotel_value,
                }
                for client in self.ordered_clients()
            ],
        }
