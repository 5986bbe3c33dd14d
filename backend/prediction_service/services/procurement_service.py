"""Economic order quantity optimizer and cost breakdown."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from ..models.schemas import CostComponents, TotalCost
from .forecasting_service import round_half_up

LOGGER = logging.getLogger(__name__)

MODEL_NAME = "economic_order_quantity"
EOQ_CONFIDENCE = 0.9

DAYS_PER_YEAR = 365
# Currency units per purchase order.
ORDERING_COST = 50.0
MIN_SUPPLY_DAYS = 7


class InvalidCostParameters(ValueError):
    """Raised when the holding cost per unit is not positive."""


@dataclass(frozen=True)
class EOQEstimate:
    quantity: int
    eoq: int
    confidence: float = EOQ_CONFIDENCE
    model: str = MODEL_NAME


# ---------------------------------------------------------------------------
def holding_cost_per_unit(unit_cost: float, holding_cost_rate: float) -> float:
    """Return the annual holding cost of one unit, rejecting non-positive values."""

    holding = float(unit_cost) * float(holding_cost_rate)
    if not math.isfinite(holding) or holding <= 0:
        raise InvalidCostParameters(
            "unit_cost and holding_cost_rate must both be positive to compute an EOQ"
        )
    return holding


def calculate_eoq(
    avg_daily_consumption: float,
    unit_cost: float = 1.0,
    holding_cost_rate: float = 0.2,
    ordering_cost: float = ORDERING_COST,
) -> float:
    """Compute the unrounded economic order quantity using annual demand."""

    holding = holding_cost_per_unit(unit_cost, holding_cost_rate)
    annual_demand = float(avg_daily_consumption) * DAYS_PER_YEAR
    value = (2.0 * annual_demand * ordering_cost) / holding
    return math.sqrt(value) if value > 0 else 0.0


def optimize_order_quantity(
    avg_daily_consumption: float,
    lead_time: float,
    safety_stock: float = 0.0,
    unit_cost: float = 1.0,
    holding_cost_rate: float = 0.2,
    ordering_cost: float = ORDERING_COST,
) -> EOQEstimate:
    """Return the order quantity as the largest of three floors.

    The floors are the cost-optimal EOQ, the demand expected during the lead
    time plus safety stock, and one week of supply.
    """

    eoq = calculate_eoq(avg_daily_consumption, unit_cost, holding_cost_rate, ordering_cost)
    lead_time_demand = avg_daily_consumption * lead_time
    weekly_supply = avg_daily_consumption * MIN_SUPPLY_DAYS

    quantity = max(eoq, lead_time_demand + safety_stock, weekly_supply)
    LOGGER.debug(
        "EOQ: eoq=%.2f lead_time_demand=%.2f weekly=%.2f quantity=%.2f",
        eoq,
        lead_time_demand,
        weekly_supply,
        quantity,
    )
    return EOQEstimate(quantity=max(1, round_half_up(quantity)), eoq=round_half_up(eoq))


def calculate_total_cost(
    avg_daily_consumption: float,
    quantity: int,
    unit_cost: float = 1.0,
    holding_cost_rate: float = 0.2,
    ordering_cost: float = ORDERING_COST,
) -> TotalCost:
    """Return the annual ordering/holding cost implied by ``quantity``."""

    if quantity <= 0:
        raise ValueError("quantity must be positive")

    annual_demand = avg_daily_consumption * DAYS_PER_YEAR
    orders_per_year = annual_demand / quantity
    total_ordering_cost = orders_per_year * ordering_cost

    average_inventory = quantity / 2
    total_holding_cost = average_inventory * unit_cost * holding_cost_rate

    total_cost = total_ordering_cost + total_holding_cost
    if total_cost > 0:
        ordering_share = round_half_up(total_ordering_cost / total_cost * 100)
        holding_share = round_half_up(total_holding_cost / total_cost * 100)
    else:
        ordering_share = holding_share = 0

    return TotalCost(
        ordering_cost=round_half_up(total_ordering_cost),
        holding_cost=round_half_up(total_holding_cost),
        total_cost=round_half_up(total_cost),
        cost_per_unit=round_half_up(total_cost / annual_demand * 100) / 100,
        orders_per_year=round_half_up(orders_per_year * 10) / 10,
        average_inventory=round_half_up(average_inventory),
        cost_components=CostComponents(ordering=ordering_share, holding=holding_share),
    )
