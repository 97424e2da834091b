"""Allocation engine: matches clients to hotel, flight and entertainment units.

Allocations are intentions to acquire (positive) or dispose of (negative)
units that have not yet been turned into bids. Passes work on a snapshot of
owned units and consume it client by client so that one owned unit is never
promised to two clients within the same pass.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from travel_agent.domain import auctions
from travel_agent.domain.models import (
    Client,
    EntertainmentType,
    FlightDirection,
    HotelTier,
)
from travel_agent.repository.market_gateway import MarketGateway
from travel_agent.repository.market_state import MarketState
from travel_agent.services.prediction_service import FlightPricePredictor
from travel_agent.utils.config import Settings, get_settings
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class FlightAllocationPass:
    """Outcome of one flight allocation pass."""

    final: bool
    deltas: Counter = field(default_factory=Counter)
    tiers: dict[int, int] = field(default_factory=dict)
    dropped_clients: list[int] = field(default_factory=list)

    @property
    def new_units(self) -> int:
        return sum(self.deltas.values())


def _claim(available: Counter, deltas: Counter, auction: int) -> None:
    """Use an already owned/allocated unit if one is left, else queue a new one."""
    if available[auction] < 1:
        deltas[auction] += 1
    else:
        available[auction] -= 1


class AllocationService:
    """Three-tier client matching plus repair logic on hotel closures."""

    def __init__(
        self,
        state: MarketState,
        market: MarketGateway,
        settings: Optional[Settings] = None,
    ) -> None:
        self._state = state
        self._market = market
        self._settings = settings or get_settings()

    # helpers

    def hotel_tier(self, client: Client) -> HotelTier:
        return client.hotel_tier(self._settings.hotel_good_value_threshold)

    def _hotel_owns(self) -> Counter:
        return Counter({auction: self._market.get_own(auction) for auction in auctions.HOTEL_AUCTIONS})

    def _flight_owns(self) -> Counter:
        return Counter(
            {
                auction: self._market.get_own(auction) + self._state.allocation(auction)
                for auction in auctions.FLIGHT_AUCTIONS
            }
        )

    @staticmethod
    def _owned(hotel_owns: Counter, tier: HotelTier, night: int) -> bool:
        return hotel_owns[auctions.hotel_auction(tier, night)] > 0

    def _is_complete(self, hotel_owns: Counter, tier: HotelTier, first: int, last: int) -> bool:
        return all(self._owned(hotel_owns, tier, night) for night in range(first, last + 1))

    def _apply(self, deltas: Counter) -> None:
        for auction, delta in deltas.items():
            if delta:
                self._state.apply_allocation_delta(auction, delta)

    # hotels

    def set_hotel_allocations(self) -> Counter:
        """Allocate one hotel night per night of every client's stay."""
        deltas: Counter = Counter()
        for client in self._state.ordered_clients():
            tier = self.hotel_tier(client)
            for night in client.nights:
                deltas[auctions.hotel_auction(tier, night)] += 1
        self._apply(deltas)
        self._state.initial_hotel_allocations = {
            auction: self._state.allocation(auction) for auction in auctions.HOTEL_AUCTIONS
        }
        logger.info(
            "Hotel allocations set | allocations=%s",
            [self._state.allocation(auction) for auction in auctions.HOTEL_AUCTIONS],
        )
        return deltas

    def reallocate_hotel(self, auction: int) -> int:
        """Repair stays that depended on a closed hotel auction.

        Returns the number of units that were given up without a repair.
        """
        key = auctions.describe(auction)
        night = key.day
        dropped = 0
        for client in self._state.ordered_clients():
            if self._state.allocation(auction) < 1:
                break
            if self.hotel_tier(client) != key.kind:
                continue
            first, last = client.first_night, client.last_night
            if night not in (first, last) or last <= first:
                continue

            shifted = False
            for days in range(1, self._settings.hotel_reallocation_max_shift + 1):
                if self._shorten_stay(client, key.kind, night, days):
                    shifted = True
                    break
            if not shifted:
                self._state.apply_allocation_delta(auction, -1)
                dropped += 1
                logger.warning(
                    "Hotel reallocation failed, night lost | auction=%s | client=%s",
                    auctions.label(auction),
                    client.client_id,
                )
        return dropped

    def _shorten_stay(self, client: Client, tier: HotelTier, night: int, days: int) -> bool:
        if client.last_night - client.first_night < days:
            return False

        shift_arrival = night == client.first_night
        target_night = night + days if shift_arrival else night - days
        target = auctions.hotel_auction(tier, target_night)
        if not self._market.get_quote(target).is_open:
            return False

        step = 1 if shift_arrival else -1
        for abandoned in range(night, target_night, step):
            abandoned_auction = auctions.hotel_auction(tier, abandoned)
            if self._state.allocation(abandoned_auction) > 0:
                self._state.apply_allocation_delta(abandoned_auction, -1)
            else:
                logger.warning(
                    "Abandoned night had no allocation | auction=%s | client=%s",
                    auctions.label(abandoned_auction),
                    client.client_id,
                )

        if shift_arrival:
            client.arrival += days
        else:
            client.departure -= days
        logger.info(
            "Stay shortened | client=%s | days=%s | arrival=%s | departure=%s",
            client.client_id,
            days,
            client.arrival,
            client.departure,
        )
        return True

    # flights

    def allocate_flights(self) -> FlightAllocationPass:
        if self._state.all_hotels_closed:
            return self.allocate_flights_final()
        return self.allocate_flights_normal()

    def _should_buy(self, auction: int) -> bool:
        prices = self._state.record(auction).ask_prices()
        if not prices:
            return False
        return FlightPricePredictor(prices, self._settings).should_buy()

    def _pick_anchor(self, client: Client) -> tuple[bool, bool]:
        """Choose which boundary flight to lock in for a broken two-ended stay."""
        inbound = auctions.flight_auction(FlightDirection.INBOUND, client.arrival)
        outbound = auctions.flight_auction(FlightDirection.OUTBOUND, client.departure)
        inbound_buy = self._should_buy(inbound)
        outbound_buy = self._should_buy(outbound)
        if inbound_buy == outbound_buy:
            inbound_ask = self._market.get_quote(inbound).ask_price
            outbound_ask = self._market.get_quote(outbound).ask_price
            use_inbound = inbound_ask < outbound_ask
            anchor = (use_inbound, not use_inbound)
        else:
            anchor = (inbound_buy, outbound_buy)
        logger.debug(
            "Broken stay anchor chosen | client=%s | buy_now=%s | anchor=%s",
            client.client_id,
            (inbound_buy, outbound_buy),
            anchor,
        )
        return anchor

    def allocate_flights_normal(self) -> FlightAllocationPass:
        """Queue boundary flights for clients whose hotel ownership supports them."""
        result = FlightAllocationPass(final=False)
        flight_owns = self._flight_owns()
        hotel_owns = self._hotel_owns()

        for client in self._state.ordered_clients():
            tier = self.hotel_tier(client)
            first, last = client.first_night, client.last_night
            has_first = self._owned(hotel_owns, tier, first)
            has_last = self._owned(hotel_owns, tier, last)
            if not (has_first or has_last):
                continue

            complete = self._is_complete(hotel_owns, tier, first, last)
            if has_first and has_last and not complete:
                has_first, has_last = self._pick_anchor(client)

            anchored: set[int] = set()
            if has_first or complete:
                inbound = auctions.flight_auction(FlightDirection.INBOUND, client.arrival)
                _claim(flight_owns, result.deltas, inbound)
                anchored.add(first)
            if has_last or complete:
                outbound = auctions.flight_auction(FlightDirection.OUTBOUND, client.departure)
                _claim(flight_owns, result.deltas, outbound)
                anchored.add(last)
            # a one-night stay anchors both flights on the same hotel night
            for night in anchored:
                hotel_owns[auctions.hotel_auction(tier, night)] -= 1

        self._apply(result.deltas)
        logger.debug("Flight allocation pass | mode=normal | deltas=%s", dict(result.deltas))
        return result

    def _commit_stay(
        self,
        result: FlightAllocationPass,
        flight_owns: Counter,
        hotel_owns: Counter,
        client: Client,
        tier: HotelTier,
        first: int,
        last: int,
        client_tier: int,
    ) -> None:
        _claim(flight_owns, result.deltas, auctions.flight_auction(FlightDirection.INBOUND, first))
        _claim(flight_owns, result.deltas, auctions.flight_auction(FlightDirection.OUTBOUND, last + 1))
        for night in range(first, last + 1):
            hotel_owns[auctions.hotel_auction(tier, night)] -= 1
        if (first, last) != (client.first_night, client.last_night):
            logger.info(
                "Stay rewritten to owned nights | client=%s | first=%s | last=%s",
                client.client_id,
                first,
                last,
            )
            client.shrink_to(first, last)
        result.tiers[client.client_id] = client_tier

    def allocate_flights_final(self) -> FlightAllocationPass:
        """Build feasible packages from final hotel ownership in three tiers."""
        result = FlightAllocationPass(final=True)
        flight_owns = self._flight_owns()
        hotel_owns = self._hotel_owns()
        pending = self._state.ordered_clients()

        # tier 1: the whole stay is owned
        remaining: list[Client] = []
        for client in pending:
            tier = self.hotel_tier(client)
            first, last = client.first_night, client.last_night
            if self._is_complete(hotel_owns, tier, first, last):
                self._commit_stay(result, flight_owns, hotel_owns, client, tier, first, last, 1)
            else:
                remaining.append(client)
        pending = remaining

        # tier 2: at least one literal boundary night is owned
        remaining = []
        for client in pending:
            tier = self.hotel_tier(client)
            first, last = client.first_night, client.last_night
            has_first = self._owned(hotel_owns, tier, first)
            has_last = self._owned(hotel_owns, tier, last)
            if not (has_first or has_last):
                remaining.append(client)
                continue
            while last > first and not self._is_complete(hotel_owns, tier, first, last):
                if has_first:
                    last -= 1
                else:
                    first += 1
            self._commit_stay(result, flight_owns, hotel_owns, client, tier, first, last, 2)
        pending = remaining

        # tier 3: no anchor, keep any owned night
        for client in pending:
            tier = self.hotel_tier(client)
            first, last = client.first_night, client.last_night
            while last > first and not self._owned(hotel_owns, tier, last):
                last -= 1
            if not self._owned(hotel_owns, tier, last):
                result.dropped_clients.append(client.client_id)
                continue
            first = last
            while first > client.first_night and self._owned(hotel_owns, tier, first - 1):
                first -= 1
            self._commit_stay(result, flight_owns, hotel_owns, client, tier, first, last, 3)

        for client_id in result.dropped_clients:
            if client_id not in self._state.dropped_clients:
                self._state.dropped_clients.add(client_id)
                logger.warning(
                    "Client dropped, no owned hotel night in stay | client=%s", client_id
                )

        self._apply(result.deltas)
        logger.debug(
            "Flight allocation pass | mode=final | deltas=%s | tiers=%s",
            dict(result.deltas),
            result.tiers,
        )
        return result

    # entertainment

    def ranked_entertainment_types(self, client: Client) -> list[EntertainmentType]:
        """Entertainment types ordered by descending client preference."""
        values = client.entertainment_values
        kinds = list(EntertainmentType)
        if len({values[kind] for kind in kinds}) < len(kinds):
            if self._settings.entertainment_tie_policy == "skip":
                logger.error(
                    "Equal entertainment preferences, client gets no plan | client=%s | values=%s",
                    client.client_id,
                    {kind.value: values[kind] for kind in kinds},
                )
                return []
            logger.warning(
                "Equal entertainment preferences, ranking ties in type order | client=%s",
                client.client_id,
            )
        return sorted(kinds, key=lambda kind: -values[kind])

    def plan_entertainment(self) -> Counter:
        """Assign owned tickets to clients and mark the rest for sale.

        Returns the per-auction count of tickets to sell.
        """
        owns = Counter(
            {auction: self._market.get_own(auction) for auction in auctions.ENTERTAINMENT_AUCTIONS}
        )
        for client in self._state.ordered_clients():
            nights = list(client.nights)
            preferred = self.ranked_entertainment_types(client)[: len(nights)]
            planned: list[int] = []
            covered: set[int] = set()

            for night in nights:
                if not preferred:
                    break
                for kind in list(preferred):
                    auction = auctions.entertainment_auction(kind, night)
                    if owns[auction] > 0:
                        owns[auction] -= 1
                        planned.append(auction)
                        covered.add(night)
                        preferred.remove(kind)
                        break

            for night in nights:
                if not preferred:
                    break
                if night not in covered:
                    planned.append(auctions.entertainment_auction(preferred.pop(0), night))
                    covered.add(night)

            self._state.client_entertainment[client.client_id] = planned
            logger.debug(
                "Entertainment plan | client=%s | auctions=%s",
                client.client_id,
                [auctions.label(auction) for auction in planned],
            )

        for auction in auctions.ENTERTAINMENT_AUCTIONS:
            self._state.record(auction).for_sale = owns[auction]
        surplus = +owns
        logger.info("Entertainment surplus marked for sale | surplus=%s", dict(surplus))
        return surplus

    def _entertainment_available(self) -> Counter:
        available: Counter = Counter()
        for auction in auctions.ENTERTAINMENT_AUCTIONS:
            record = self._state.record(auction)
            keep = max(0, self._market.get_own(auction) - record.for_sale - record.outstanding_sale)
            available[auction] = keep + record.allocation + record.outstanding_buy
        return available

    def allocate_entertainment(self) -> Counter:
        """Queue planned tickets for nights whose hotel coverage is confirmed."""
        deltas: Counter = Counter()
        available = self._entertainment_available()
        hotel_owns = self._hotel_owns()

        for client in self._state.ordered_clients():
            tier = self.hotel_tier(client)
            first, last = client.first_night, client.last_night
            has_first = self._owned(hotel_owns, tier, first)
            has_last = self._owned(hotel_owns, tier, last)
            if not (has_first or has_last):
                continue

            planned = {
                auctions.day_of(auction): auction
                for auction in self._state.client_entertainment.get(client.client_id, [])
            }
            if self._is_complete(hotel_owns, tier, first, last):
                nights = [night for night in client.nights if night in planned]
            elif has_first != has_last:
                night = first if has_first else last
                if night not in planned:
                    logger.warning(
                        "No planned ticket for confirmed night, client skipped | client=%s | night=%s",
                        client.client_id,
                        night,
                    )
                    continue
                nights = [night]
            else:
                continue

            for night in nights:
                _claim(available, deltas, planned[night])
                hotel_owns[auctions.hotel_auction(tier, night)] -= 1

        self._apply(deltas)
        logger.debug("Entertainment allocation pass | deltas=%s", dict(deltas))
        return deltas
