"""Domain-level validation rules for game inputs and bidding limits."""

from __future__ import annotations

from dataclasses import dataclass

from travel_agent.domain.auctions import GAME_DAYS
from travel_agent.domain.models import Client, EntertainmentType


TIE_POLICIES = ("stable", "skip")


class ClientValidationError(ValueError):
    """Raised when client preferences cannot describe a feasible trip."""


@dataclass(frozen=True)
class BiddingConfig:
    hotel_normal_price_ceiling: float
    hotel_final_price_ceiling: float
    hotel_min_prediction_samples: int
    hotel_reallocation_max_shift: int
    entertainment_affordable_ask: float
    entertainment_sell_start_price: float
    entertainment_sell_price_step: float
    entertainment_sell_floor_price: float
    entertainment_tie_policy: str


def validate_bidding_config(config: BiddingConfig) -> None:
    if config.hotel_normal_price_ceiling <= 0:
        raise ValueError("hotel_normal_price_ceiling must be > 0")
    if config.hotel_final_price_ceiling < config.hotel_normal_price_ceiling:
        raise ValueError("hotel_final_price_ceiling must be >= hotel_normal_price_ceiling")
    if config.hotel_min_prediction_samples < 2:
        raise ValueError("hotel_min_prediction_samples must be >= 2")
    if not 1 <= config.hotel_reallocation_max_shift <= GAME_DAYS - 2:
        raise ValueError("hotel_reallocation_max_shift must be between 1 and 3")
    if config.entertainment_affordable_ask <= 0:
        raise ValueError("entertainment_affordable_ask must be > 0")
    if config.entertainment_sell_price_step <= 0:
        raise ValueError("entertainment_sell_price_step must be > 0")
    if config.entertainment_sell_floor_price < 0:
        raise ValueError("entertainment_sell_floor_price must be >= 0")
    if config.entertainment_sell_floor_price >= config.entertainment_sell_start_price:
        raise ValueError(
            "entertainment_sell_floor_price must be below entertainment_sell_start_price"
        )
    if config.entertainment_tie_policy not in TIE_POLICIES:
        raise ValueError(f"entertainment_tie_policy must be one of {TIE_POLICIES}")


def validate_client(client: Client) -> None:
    if client.client_id < 0:
        raise ClientValidationError("client_id must be >= 0")
    if not 1 <= client.arrival <= GAME_DAYS - 1:
        raise ClientValidationError(
            f"client {client.client_id}: arrival must be between 1 and {GAME_DAYS - 1}"
        )
    if not 2 <= client.departure <= GAME_DAYS:
        raise ClientValidationError(
            f"client {client.client_id}: departure must be between 2 and {GAME_DAYS}"
        )
    if client.arrival >= client.departure:
        raise ClientValidationError(
            f"client {client.client_id}: arrival must be before departure"
        )
    if client.hotel_value < 0:
        raise ClientValidationError(f"client {client.client_id}: hotel_value must be >= 0")
    missing = [kind.value for kind in EntertainmentType if kind not in client.entertainment_values]
    if missing:
        raise ClientValidationError(
            f"client {client.client_id}: missing entertainment values {missing}"
        )
