"""Fixed catalog of the 28 game auctions.

Ids follow the market convention: in-flights 0-3 (days 1-4), out-flights
4-7 (days 2-5), cheap hotels 8-11 and good hotels 12-15 (nights 1-4), then
four days each of alligator wrestling, amusement park and museum tickets
(16-27).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from travel_agent.domain.models import (
    AuctionCategory,
    EntertainmentType,
    FlightDirection,
    HotelTier,
)


AuctionKind = Union[FlightDirection, HotelTier, EntertainmentType]

AUCTION_COUNT = 28
GAME_DAYS = 5


class UnknownAuctionError(LookupError):
    """Raised for auction ids or (category, kind, day) triples outside the catalog."""


@dataclass(frozen=True)
class AuctionKey:
    auction: int
    category: AuctionCategory
    kind: AuctionKind
    day: int

    @property
    def label(self) -> str:
        return f"{self.category.value}:{self.kind.value}:day{self.day}"


def _build_catalog() -> tuple[AuctionKey, ...]:
    keys: list[AuctionKey] = []
    layout: list[tuple[AuctionCategory, AuctionKind, range]] = [
        (AuctionCategory.FLIGHT, FlightDirection.INBOUND, range(1, 5)),
        (AuctionCategory.FLIGHT, FlightDirection.OUTBOUND, range(2, 6)),
        (AuctionCategory.HOTEL, HotelTier.CHEAP, range(1, 5)),
        (AuctionCategory.HOTEL, HotelTier.GOOD, range(1, 5)),
        (AuctionCategory.ENTERTAINMENT, EntertainmentType.ALLIGATOR_WRESTLING, range(1, 5)),
        (AuctionCategory.ENTERTAINMENT, EntertainmentType.AMUSEMENT, range(1, 5)),
        (AuctionCategory.ENTERTAINMENT, EntertainmentType.MUSEUM, range(1, 5)),
    ]
    for category, kind, days in layout:
        for day in days:
            keys.append(AuctionKey(len(keys), category, kind, day))
    return tuple(keys)


CATALOG: tuple[AuctionKey, ...] = _build_catalog()
_INDEX: dict[tuple[AuctionKind, int], int] = {
    (key.kind, key.day): key.auction for key in CATALOG
}


def describe(auction: int) -> AuctionKey:
    if not 0 <= auction < AUCTION_COUNT:
        raise UnknownAuctionError(f"auction {auction} is outside 0..{AUCTION_COUNT - 1}")
    return CATALOG[auction]


def category_of(auction: int) -> AuctionCategory:
    return describe(auction).category


def day_of(auction: int) -> int:
    return describe(auction).day


def label(auction: int) -> str:
    return describe(auction).label


def auction_for(kind: AuctionKind, day: int) -> int:
    try:
        return _INDEX[(kind, day)]
    except KeyError as exc:
        raise UnknownAuctionError(f"no auction for {kind.value} on day {day}") from exc


def flight_auction(direction: FlightDirection, day: int) -> int:
    return auction_for(direction, day)


def hotel_auction(tier: HotelTier, night: int) -> int:
    return auction_for(tier, night)


def entertainment_auction(kind: EntertainmentType, day: int) -> int:
    return auction_for(kind, day)


def auctions_in(category: AuctionCategory) -> list[int]:
    return [key.auction for key in CATALOG if key.category == category]


FLIGHT_AUCTIONS = tuple(auctions_in(AuctionCategory.FLIGHT))
HOTEL_AUCTIONS = tuple(auctions_in(AuctionCategory.HOTEL))
ENTERTAINMENT_AUCTIONS = tuple(auctions_in(AuctionCategory.ENTERTAINMENT))
