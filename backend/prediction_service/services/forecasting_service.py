r"""backend/prediction_service/services/forecasting_service.py

Statistical stock depletion estimator.

This is the deterministic fallback used whenever the external model is
unavailable.  It is a closed-form heuristic rather than a fitted model: the
average daily consumption is scaled by a trend multiplier, an optional
month-indexed seasonal multiplier and a small random perturbation, and the
current stock is divided by the result.

The perturbation comes from a ``numpy.random.Generator`` that callers may
inject (seeded in tests, unseeded in production).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

import numpy as np

LOGGER = logging.getLogger(__name__)

MODEL_NAME = "statistical_forecast"
STATISTICAL_CONFIDENCE = 0.85

TREND_MULTIPLIERS: dict[str, float] = {"increasing": 1.2, "decreasing": 0.8}

# Index 0 is January.
SEASONAL_MULTIPLIERS: tuple[float, ...] = (
    1.1,
    0.9,
    1.0,
    1.0,
    1.1,
    1.2,
    1.2,
    1.1,
    1.0,
    1.0,
    1.1,
    1.3,
)
PEAK_MONTHS: frozenset[int] = frozenset({5, 6, 7, 11})

NOISE_LOW = 0.95
NOISE_HIGH = 1.05


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""

    return int(math.floor(value + 0.5))


def current_month(today: Optional[date] = None) -> int:
    """Return the 0-based calendar month used by the seasonal table."""

    return (today or date.today()).month - 1


def seasonal_multiplier(month: int) -> float:
    """Return the seasonal demand multiplier for a 0-based month."""

    if 0 <= month < len(SEASONAL_MULTIPLIERS):
        return SEASONAL_MULTIPLIERS[month]
    return 1.0


@dataclass(frozen=True)
class StatisticalEstimate:
    predicted_days: int
    confidence: float = STATISTICAL_CONFIDENCE
    model: str = MODEL_NAME


def estimate_depletion(
    current_stock: float,
    avg_daily_consumption: float,
    trend: Optional[str] = None,
    seasonality: bool = False,
    *,
    rng: Optional[np.random.Generator] = None,
    month: Optional[int] = None,
) -> StatisticalEstimate:
    """Estimate the number of days until stock runs out.

    Parameters
    ----------
    current_stock:
        Units on hand.
    avg_daily_consumption:
        Average units consumed per day; must be positive.
    trend:
        ``"increasing"`` or ``"decreasing"`` scale consumption by 1.2 / 0.8.
    seasonality:
        When true, consumption is scaled by the seasonal multiplier of
        ``month`` (the current month when omitted).
    rng:
        Source of the +/-5% noise factor.  A fresh unseeded generator is
        used when omitted.
    """

    if avg_daily_consumption <= 0:
        raise ValueError("avg_daily_consumption must be positive")

    adjusted = float(avg_daily_consumption) * TREND_MULTIPLIERS.get(trend or "", 1.0)

    if seasonality:
        season_month = current_month() if month is None else month
        adjusted *= seasonal_multiplier(season_month)

    generator = rng if rng is not None else np.random.default_rng()
    adjusted *= float(generator.uniform(NOISE_LOW, NOISE_HIGH))

    predicted_days = max(1, round_half_up(float(current_stock) / adjusted))
    LOGGER.debug(
        "Statistical estimate: stock=%.2f consumption=%.2f adjusted=%.3f days=%d",
        current_stock,
        avg_daily_consumption,
        adjusted,
        predicted_days,
    )
    return StatisticalEstimate(predicted_days=predicted_days)
