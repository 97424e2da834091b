"""Short-horizon price predictors used to time flight buys and size hotel margins."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from travel_agent.utils.config import Settings, get_settings


class PredictionError(Exception):
    """Base exception for price prediction failures."""


class PredictionValidationError(PredictionError):
    """Raised when a predictor is built from unusable samples."""


def polynomial_features(x: Sequence[float] | np.ndarray, degree: int) -> np.ndarray:
    """Rows of ``[1, x, x**2, ...]``; the constant column is the intercept."""
    values = np.asarray(x, dtype=float)
    return np.vander(values, N=degree + 1, increasing=True)


def fit_polynomial(x: Sequence[float], y: Sequence[float], degree: int) -> np.ndarray:
    """Ordinary least squares fit without an implicit intercept term."""
    if len(x) != len(y):
        raise PredictionValidationError("x and y must contain the same number of samples")
    if len(y) == 0:
        raise PredictionValidationError("at least one price sample is required")
    if degree < 0:
        raise PredictionValidationError("degree must be >= 0")
    design = polynomial_features(x, degree)
    coefficients, *_ = np.linalg.lstsq(design, np.asarray(y, dtype=float), rcond=None)
    return coefficients


def flight_degree_for(sample_count: int, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if sample_count < settings.flight_quadratic_min_samples:
        return 1
    if sample_count < settings.flight_cubic_min_samples:
        return 2
    return 3


class FlightPricePredictor:
    """Polynomial trend over sample index for one flight auction."""

    def __init__(self, prices: Sequence[float], settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._length = len(prices)
        self.degree = flight_degree_for(self._length, self._settings)
        self._coefficients = fit_polynomial(range(self._length), prices, self.degree)

    def predict(self, index: float) -> float:
        return float(polynomial_features([index], self.degree)[0] @ self._coefficients)

    def predict_remaining(self) -> np.ndarray:
        horizon = self._settings.flight_horizon_samples
        indices = np.arange(self._length, horizon, dtype=float)
        if indices.size == 0:
            return indices
        return polynomial_features(indices, self.degree) @ self._coefficients

    def should_buy(self) -> bool:
        """True when the cheapest remaining sample is predicted to be the next one."""
        remaining = self.predict_remaining()
        if remaining.size == 0:
            return False
        return int(np.argmin(remaining)) == 0


class HotelPricePredictor:
    """Linear ask-price trend over elapsed game seconds."""

    degree = 1

    def __init__(self, seconds: Sequence[float], prices: Sequence[float]) -> None:
        self._coefficients = fit_polynomial(seconds, prices, self.degree)

    def predict(self, seconds: float) -> int:
        value = float(polynomial_features([seconds], self.degree)[0] @ self._coefficients)
        return int(value)
