"""Runtime settings for the trading agent."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


@dataclass(frozen=True)
class Settings:
    app_name: str = "TAC Travel Agent"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    connector_token: str = ""

    # Demand estimation
    demand_scale: float = 64.0

    # Flight prediction and bidding
    flight_horizon_samples: int = 54
    flight_quadratic_min_samples: int = 42
    flight_cubic_min_samples: int = 48
    flight_opening_window_seconds: float = 120.0
    flight_closing_window_seconds: float = 10.0

    # Hotel allocation and bidding
    hotel_good_value_threshold: int = 70
    hotel_normal_price_ceiling: float = 400.0
    hotel_final_price_ceiling: float = 550.0
    hotel_min_prediction_samples: int = 3
    hotel_final_window_seconds: float = 2.0
    hotel_timer_stop_seconds: float = 58.0
    hotel_final_demand_factor: int = 4
    hotel_final_offset_floor: int = 100
    hotel_reallocation_max_shift: int = 3

    # Entertainment bidding
    entertainment_affordable_ask: float = 80.0
    entertainment_sell_start_price: float = 200.0
    entertainment_sell_price_step: float = 2.0
    entertainment_sell_floor_price: float = 60.0
    entertainment_tie_policy: str = "stable"

    # Timers
    hotel_timer_period_seconds: float = 2.0
    entertainment_timer_period_seconds: float = 5.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from ``TAC_*`` environment variables once per process."""
    defaults = Settings()
    return Settings(
        app_name=_env_str("TAC_APP_NAME", defaults.app_name),
        app_version=_env_str("TAC_APP_VERSION", defaults.app_version),
        log_level=_env_str("TAC_LOG_LEVEL", defaults.log_level),
        connector_token=_env_str("TAC_CONNECTOR_TOKEN", defaults.connector_token),
        demand_scale=_env_float("TAC_DEMAND_SCALE", defaults.demand_scale),
        flight_horizon_samples=_env_int(
            "TAC_FLIGHT_HORIZON_SAMPLES", defaults.flight_horizon_samples
        ),
        flight_quadratic_min_samples=_env_int(
            "TAC_FLIGHT_QUADRATIC_MIN_SAMPLES", defaults.flight_quadratic_min_samples
        ),
        flight_cubic_min_samples=_env_int(
            "TAC_FLIGHT_CUBIC_MIN_SAMPLES", defaults.flight_cubic_min_samples
        ),
        flight_opening_window_seconds=_env_float(
            "TAC_FLIGHT_OPENING_WINDOW_SECONDS", defaults.flight_opening_window_seconds
        ),
        flight_closing_window_seconds=_env_float(
            "TAC_FLIGHT_CLOSING_WINDOW_SECONDS", defaults.flight_closing_window_seconds
        ),
        hotel_good_value_threshold=_env_int(
            "TAC_HOTEL_GOOD_VALUE_THRESHOLD", defaults.hotel_good_value_threshold
        ),
        hotel_normal_price_ceiling=_env_float(
            "TAC_HOTEL_NORMAL_PRICE_CEILING", defaults.hotel_normal_price_ceiling
        ),
        hotel_final_price_ceiling=_env_float(
            "TAC_HOTEL_FINAL_PRICE_CEILING", defaults.hotel_final_price_ceiling
        ),
        hotel_min_prediction_samples=_env_int(
            "TAC_HOTEL_MIN_PREDICTION_SAMPLES", defaults.hotel_min_prediction_samples
        ),
        hotel_final_window_seconds=_env_float(
            "TAC_HOTEL_FINAL_WINDOW_SECONDS", defaults.hotel_final_window_seconds
        ),
        hotel_timer_stop_seconds=_env_float(
            "TAC_HOTEL_TIMER_STOP_SECONDS", defaults.hotel_timer_stop_seconds
        ),
        hotel_final_demand_factor=_env_int(
            "TAC_HOTEL_FINAL_DEMAND_FACTOR", defaults.hotel_final_demand_factor
        ),
        hotel_final_offset_floor=_env_int(
            "TAC_HOTEL_FINAL_OFFSET_FLOOR", defaults.hotel_final_offset_floor
        ),
        hotel_reallocation_max_shift=_env_int(
            "TAC_HOTEL_REALLOCATION_MAX_SHIFT", defaults.hotel_reallocation_max_shift
        ),
        entertainment_affordable_ask=_env_float(
            "TAC_ENTERTAINMENT_AFFORDABLE_ASK", defaults.entertainment_affordable_ask
        ),
        entertainment_sell_start_price=_env_float(
            "TAC_ENTERTAINMENT_SELL_START_PRICE", defaults.entertainment_sell_start_price
        ),
        entertainment_sell_price_step=_env_float(
            "TAC_ENTERTAINMENT_SELL_PRICE_STEP", defaults.entertainment_sell_price_step
        ),
        entertainment_sell_floor_price=_env_float(
            "TAC_ENTERTAINMENT_SELL_FLOOR_PRICE", defaults.entertainment_sell_floor_price
        ),
        entertainment_tie_policy=_env_str(
            "TAC_ENTERTAINMENT_TIE_POLICY", defaults.entertainment_tie_policy
        ).lower(),
        hotel_timer_period_seconds=_env_float(
            "TAC_HOTEL_TIMER_PERIOD_SECONDS", defaults.hotel_timer_period_seconds
        ),
        entertainment_timer_period_seconds=_env_float(
            "TAC_ENTERTAINMENT_TIMER_PERIOD_SECONDS",
            defaults.entertainment_timer_period_seconds,
        ),
    )
