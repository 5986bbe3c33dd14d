"""Stock depletion decisions: edge cases, risk factors, advice and adjustments."""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional

from ..core.observability import record_prediction
from ..models.schemas import DepletionRequest, DepletionResult
from .forecasting_service import PEAK_MONTHS, current_month, round_half_up
from .llm_service import ExternalModelAdapter

LOGGER = logging.getLogger(__name__)

NO_CONSUMPTION_DAYS = 999
CRITICAL_DAYS_OF_STOCK = 7
LOW_DAYS_OF_STOCK = 14

PEAK_SEASON_FACTOR = 0.8
INCREASING_TREND_FACTOR = 0.9


def terminal_result(current_stock: float, avg_daily_consumption: float) -> Optional[DepletionResult]:
    """Return the fixed result for depleted stock or zero consumption, else ``None``."""

    if current_stock <= 0:
        return DepletionResult(
            predicted_stock_out_in_days=0,
            confidence=1.0,
            model="immediate",
            factors=["stock_depleted"],
            recommendations=["Immediate reorder required"],
            raw_prediction=0,
        )
    if avg_daily_consumption <= 0:
        return DepletionResult(
            predicted_stock_out_in_days=NO_CONSUMPTION_DAYS,
            confidence=0.5,
            model="no_consumption",
            factors=["no_consumption_detected"],
            recommendations=["Review consumption data"],
            raw_prediction=NO_CONSUMPTION_DAYS,
        )
    return None


def analyze_factors(request: DepletionRequest, month: int) -> List[str]:
    """Return qualitative risk tags for a material with positive consumption."""

    factors: List[str] = []

    if request.reorder_level is not None and request.current_stock <= request.reorder_level:
        factors.append("below_reorder_level")

    days_of_stock = request.current_stock / request.avg_daily_consumption
    if days_of_stock <= CRITICAL_DAYS_OF_STOCK:
        factors.append("critical_stock_level")
    elif days_of_stock <= LOW_DAYS_OF_STOCK:
        factors.append("low_stock_level")

    if request.trend == "increasing":
        factors.append("increasing_demand_trend")
    elif request.trend == "decreasing":
        factors.append("decreasing_demand_trend")

    if request.seasonality and month in PEAK_MONTHS:
        factors.append("peak_season")

    return factors


def generate_recommendations(request: DepletionRequest, predicted_days: int) -> List[str]:
    recommendations: List[str] = []

    if predicted_days <= 3:
        recommendations.append("URGENT: Place emergency order immediately")
        recommendations.append("Consider expedited shipping")
    elif predicted_days <= 7:
        recommendations.append("Place order within 24 hours")
        recommendations.append("Monitor consumption closely")
    elif predicted_days <= 14:
        recommendations.append("Schedule order placement")
        recommendations.append("Review reorder level settings")

    if request.reorder_level is not None and request.current_stock <= request.reorder_level:
        recommendations.append("Stock below reorder level - immediate action required")

    if request.current_stock < request.avg_daily_consumption * 7:
        recommendations.append("Less than one week of stock remaining")

    return recommendations


def apply_business_rules(predicted_days: float, factors: List[str]) -> int:
    """Shrink the predicted horizon for risk factors.

    Rules apply cumulatively in a fixed order and the value stays fractional
    until the final rounding.
    """

    adjusted = float(predicted_days)

    if "critical_stock_level" in factors:
        adjusted = max(1.0, adjusted - 1)

    if "peak_season" in factors:
        adjusted = max(1.0, adjusted * PEAK_SEASON_FACTOR)

    if "increasing_demand_trend" in factors:
        adjusted = max(1.0, adjusted * INCREASING_TREND_FACTOR)

    return round_half_up(adjusted)


class DepletionService:
    """Predict when a material runs out of stock."""

    def __init__(
        self,
        adapter: ExternalModelAdapter,
        *,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self.adapter = adapter
        self.clock: Callable[[], date] = clock or adapter.clock

    async def predict(self, request: DepletionRequest, use_external: bool = True) -> DepletionResult:
        LOGGER.info("Starting stock depletion prediction for %s", request.material_name)

        terminal = terminal_result(request.current_stock, request.avg_daily_consumption)
        if terminal is not None:
            record_prediction("depletion", terminal.model)
            return terminal

        estimate = await self.adapter.predict_depletion(request, use_external=use_external)

        factors = analyze_factors(request, current_month(self.clock()))
        recommendations = generate_recommendations(request, estimate.predicted_days)
        adjusted = apply_business_rules(estimate.predicted_days, factors)

        LOGGER.info(
            "Prediction completed for %s: raw=%d adjusted=%d model=%s",
            request.material_name,
            estimate.predicted_days,
            adjusted,
            estimate.model,
        )
        record_prediction("depletion", estimate.model)

        return DepletionResult(
            predicted_stock_out_in_days=adjusted,
            confidence=estimate.confidence,
            model=estimate.model,
            factors=factors,
            recommendations=recommendations,
            raw_prediction=estimate.predicted_days,
            adjustment_applied=adjusted != estimate.predicted_days,
            ai_insight=estimate.insight,
        )
