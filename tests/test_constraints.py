"""Tests for bidding limit and client preference validation."""

from __future__ import annotations

from dataclasses import replace

import pytest

from travel_agent.domain.constraints import (
    BiddingConfig,
    ClientValidationError,
    validate_bidding_config,
    validate_client,
)
from travel_agent.domain.models import Client, EntertainmentType
from travel_agent.services.engine_service import AgentEngine, bidding_config_from
from travel_agent.utils.config import get_settings


def valid_config(**overrides) -> BiddingConfig:
    """Return a valid baseline BiddingConfig, optionally overriding fields."""
    defaults = {
        "hotel_normal_price_ceiling": 400.0,
        "hotel_final_price_ceiling": 550.0,
        "hotel_min_prediction_samples": 3,
        "hotel_reallocation_max_shift": 3,
        "entertainment_affordable_ask": 80.0,
        "entertainment_sell_start_price": 200.0,
        "entertainment_sell_price_step": 2.0,
        "entertainment_sell_floor_price": 60.0,
        "entertainment_tie_policy": "stable",
    }
    defaults.update(overrides)
    return BiddingConfig(**defaults)


def valid_client(**overrides) -> Client:
    defaults = {
        "client_id": 1,
        "arrival": 1,
        "departure": 3,
        "hotel_value": 80,
        "entertainment_values": {kind: 50 for kind in EntertainmentType},
    }
    defaults.update(overrides)
    return Client(**defaults)


# --- Bidding limits ---

def test_valid_config_passes() -> None:
    validate_bidding_config(valid_config())


def test_default_settings_pass() -> None:
    validate_bidding_config(bidding_config_from(get_settings()))


@pytest.mark.parametrize(
    "overrides",
    [
        {"hotel_normal_price_ceiling": 0.0},
        {"hotel_final_price_ceiling": 399.0},
        {"hotel_min_prediction_samples": 1},
        {"hotel_reallocation_max_shift": 0},
        {"hotel_reallocation_max_shift": 4},
        {"entertainment_affordable_ask": 0.0},
        {"entertainment_sell_price_step": 0.0},
        {"entertainment_sell_floor_price": -1.0},
        {"entertainment_sell_floor_price": 200.0},
        {"entertainment_tie_policy": "random"},
    ],
)
def test_invalid_config_raises(overrides) -> None:
    with pytest.raises(ValueError):
        validate_bidding_config(valid_config(**overrides))


def test_engine_refuses_inconsistent_settings() -> None:
    settings = replace(get_settings(), hotel_final_price_ceiling=100.0)

    with pytest.raises(ValueError):
        AgentEngine(settings=settings)


# --- Client preferences ---

def test_valid_client_passes() -> None:
    validate_client(valid_client())


@pytest.mark.parametrize(
    "overrides",
    [
        {"client_id": -1},
        {"arrival": 0},
        {"arrival": 5, "departure": 5},
        {"departure": 6},
        {"arrival": 3, "departure": 2},
        {"hotel_value": -5},
        {"entertainment_values": {EntertainmentType.MUSEUM: 10}},
    ],
)
def test_invalid_client_raises(overrides) -> None:
    with pytest.raises(ClientValidationError):
        validate_client(valid_client(**overrides))


def test_good_hotel_tier_is_strictly_above_threshold() -> None:
    assert valid_client(hotel_value=70).hotel_tier(70).value == "cheap"
    assert valid_client(hotel_value=71).hotel_tier(70).value == "good"
