"""Flight and hotel demand estimation from opening flight prices."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from travel_agent.domain.models import DemandEstimate


DAYS_PER_DIRECTION = 4
PRICE_ELASTICITY_BASE = 400.0
PRICE_ELASTICITY_SPAN = 150.0

# rows: hotel nights 1..4, columns: inbound fractions e1..e4 then outbound m1..m4
HOTEL_DEMAND_TRANSFORM = np.array(
    [
        [1, 0, 0, 0, 0, 0, 0, 0],
        [1, 1, 0, 0, -1, 0, 0, 0],
        [0, 0, 0, -1, 0, 0, 1, 1],
        [0, 0, 0, 0, 0, 0, 0, 1],
    ],
    dtype=float,
)


class DemandEstimationError(ValueError):
    """Raised when the opening price vectors have the wrong shape."""


def inbound_baseline() -> np.ndarray:
    index = np.arange(1, DAYS_PER_DIRECTION + 1)
    return 0.5 - 0.1 * index


def outbound_baseline() -> np.ndarray:
    index = np.arange(2, DAYS_PER_DIRECTION + 2)
    return 0.1 * index - 0.1


def _flow(baseline: np.ndarray, prices: np.ndarray) -> np.ndarray:
    return baseline * (PRICE_ELASTICITY_BASE - prices) / PRICE_ELASTICITY_SPAN


def estimate_demand(
    inbound_prices: Sequence[float],
    outbound_prices: Sequence[float],
    scale: float = 64.0,
) -> DemandEstimate:
    """Estimate per-auction flight demand and per-night hotel demand.

    Each direction's price-scaled flow is normalized by its own sum and
    multiplied by ``scale``; hotel demand is a fixed linear combination of
    the resulting eight flight values.
    """
    inbound = np.asarray(inbound_prices, dtype=float)
    outbound = np.asarray(outbound_prices, dtype=float)
    if inbound.shape != (DAYS_PER_DIRECTION,) or outbound.shape != (DAYS_PER_DIRECTION,):
        raise DemandEstimationError("exactly 4 inbound and 4 outbound prices are required")

    inbound_flow = _flow(inbound_baseline(), inbound)
    outbound_flow = _flow(outbound_baseline(), outbound)

    flights = np.concatenate(
        [
            scale * inbound_flow / inbound_flow.sum(),
            scale * outbound_flow / outbound_flow.sum(),
        ]
    )
    hotels = HOTEL_DEMAND_TRANSFORM @ flights
    return DemandEstimate(
        flight_demand=tuple(float(value) for value in flights),
        hotel_demand=tuple(float(value) for value in hotels),
    )
