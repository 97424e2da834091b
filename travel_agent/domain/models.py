"""Domain models for the travel-package auction game."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class AuctionCategory(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    ENTERTAINMENT = "entertainment"


class FlightDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class HotelTier(str, Enum):
    CHEAP = "cheap"
    GOOD = "good"


class EntertainmentType(str, Enum):
    ALLIGATOR_WRESTLING = "alligator_wrestling"
    AMUSEMENT = "amusement"
    MUSEUM = "museum"


class AuctionStatus(str, Enum):
    INITIALIZING = "initializing"
    OPEN = "open"
    CLOSED = "closed"


class BidSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class BidState(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    PRICE_NOT_BEAT = "price_not_beat"
    ACTIVE_BID_CHANGED = "active_bid_changed"
    OTHER = "other"


class HotelBidMode(str, Enum):
    NORMAL = "normal"
    FINAL = "final"


class BidActionKind(str, Enum):
    SUBMIT = "submit"
    REPLACE = "replace"


@dataclass
class Client:
    """Travel preferences of one client.

    Arrival and departure are rewritten in place when a stay is shortened.
    """

    client_id: int
    arrival: int
    departure: int
    hotel_value: int
    entertainment_values: dict[EntertainmentType, int] = field(default_factory=dict)

    @property
    def first_night(self) -> int:
        return self.arrival

    @property
    def last_night(self) -> int:
        return self.departure - 1

    @property
    def nights(self) -> range:
        return range(self.first_night, self.last_night + 1)

    def hotel_tier(self, good_value_threshold: int) -> HotelTier:
        if self.hotel_value > good_value_threshold:
            return HotelTier.GOOD
        return HotelTier.CHEAP

    def shrink_to(self, first_night: int, last_night: int) -> None:
        self.arrival = first_night
        self.departure = last_night + 1


@dataclass(frozen=True)
class Quote:
    auction: int
    ask_price: float
    bid_price: float = 0.0
    status: AuctionStatus = AuctionStatus.INITIALIZING

    @property
    def is_open(self) -> bool:
        return self.status == AuctionStatus.OPEN


@dataclass(frozen=True)
class PricePoint:
    price: float
    seconds: float


@dataclass(frozen=True)
class QuotePoint:
    ask_price: float
    bid_price: float
    seconds: float


@dataclass(frozen=True)
class Bid:
    auction: int
    quantity: int
    price: float

    @property
    def side(self) -> BidSide:
        return BidSide.SELL if self.quantity < 0 else BidSide.BUY


@dataclass
class BidRecord:
    """Local view of one outstanding bid as reported by the market."""

    bid_id: str
    bid: Bid
    state: BidState = BidState.PENDING
    reject_reason: Optional[RejectReason] = None
    filled_quantity: int = 0

    @property
    def auction(self) -> int:
        return self.bid.auction

    @property
    def side(self) -> BidSide:
        return self.bid.side


@dataclass(frozen=True)
class BidAction:
    kind: BidActionKind
    bid_id: str
    bid: Bid
    replaces: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "bid_id": self.bid_id,
            "auction": self.bid.auction,
            "quantity": self.bid.quantity,
            "price": self.bid.price,
            "replaces": self.replaces,
        }


@dataclass(frozen=True)
class DemandEstimate:
    flight_demand: tuple[float, ...]
    hotel_demand: tuple[float, ...]

    def hotel_demand_for(self, day: int) -> float:
        return self.hotel_demand[day - 1]


@dataclass(frozen=True)
class HotelAuctionOutcome:
    auction: int
    allocation: int
    owned: int
    bid_price: float
    closing_ask: float
