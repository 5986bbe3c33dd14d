"""Reorder quantity decisions built on the EOQ optimizer and the external model."""

from __future__ import annotations

import logging

from ..core.observability import record_prediction
from ..models.schemas import Alternative, Alternatives, ReorderRequest, ReorderResult
from .forecasting_service import round_half_up
from .llm_service import ExternalModelAdapter, ReorderEstimate, format_number
from .procurement_service import (
    EOQEstimate,
    calculate_total_cost,
    holding_cost_per_unit,
    optimize_order_quantity,
)

LOGGER = logging.getLogger(__name__)

CONSERVATIVE_FACTOR = 0.8
AGGRESSIVE_FACTOR = 1.2


def calculate_alternatives(request: ReorderRequest, suggested_quantity: int) -> Alternatives:
    lead_time_demand = request.avg_daily_consumption * request.lead_time
    return Alternatives(
        conservative=Alternative(
            quantity=round_half_up(suggested_quantity * CONSERVATIVE_FACTOR),
            description="Lower quantity, higher reorder frequency",
            pros=["Lower holding costs", "Reduced obsolescence risk"],
            cons=["Higher ordering costs", "Increased stockout risk"],
        ),
        aggressive=Alternative(
            quantity=round_half_up(suggested_quantity * AGGRESSIVE_FACTOR),
            description="Higher quantity, lower reorder frequency",
            pros=["Lower ordering costs", "Better service level"],
            cons=["Higher holding costs", "Increased capital tie-up"],
        ),
        minimum=Alternative(
            quantity=round_half_up(lead_time_demand),
            description="Minimum viable quantity (lead time demand)",
            pros=["Minimal investment", "Quick turnover"],
            cons=["High stockout risk", "No safety buffer"],
        ),
    )


def generate_reasoning(request: ReorderRequest, estimate: ReorderEstimate, eoq: EOQEstimate) -> str:
    lead_time_demand = request.avg_daily_consumption * request.lead_time

    lines = [
        f"Suggested quantity of {estimate.quantity} units based on:",
        (
            f"• Lead time demand: {round_half_up(lead_time_demand)} units "
            f"({format_number(request.lead_time)} days × {format_number(request.avg_daily_consumption)} daily consumption)"
        ),
    ]
    if request.safety_stock > 0:
        lines.append(f"• Safety stock: {format_number(request.safety_stock)} units")
    lines.append(f"• Economic Order Quantity: {eoq.eoq} units")
    lines.append(f"• Model used: {estimate.model}")

    if estimate.quantity > eoq.eoq:
        lines.append("• Quantity above EOQ to ensure service level")
    else:
        lines.append("• Quantity optimized for cost efficiency")

    return "\n".join(lines)


class ReorderService:
    """Suggest how much of a material to reorder."""

    def __init__(self, adapter: ExternalModelAdapter) -> None:
        self.adapter = adapter

    @property
    def ordering_cost(self) -> float:
        return self.adapter.ordering_cost

    async def suggest(self, request: ReorderRequest) -> ReorderResult:
        LOGGER.info("Starting reorder quantity suggestion for %s", request.material_name)

        # Fail fast before any external call; a zero holding cost has no EOQ.
        holding_cost_per_unit(request.unit_cost, request.holding_cost_rate)

        estimate = await self.adapter.predict_reorder(request)

        eoq = optimize_order_quantity(
            request.avg_daily_consumption,
            request.lead_time,
            safety_stock=request.safety_stock,
            unit_cost=request.unit_cost,
            holding_cost_rate=request.holding_cost_rate,
            ordering_cost=self.ordering_cost,
        )

        total_cost = calculate_total_cost(
            request.avg_daily_consumption,
            estimate.quantity,
            unit_cost=request.unit_cost,
            holding_cost_rate=request.holding_cost_rate,
            ordering_cost=self.ordering_cost,
        )

        LOGGER.info(
            "Reorder suggestion completed for %s: quantity=%d eoq=%d model=%s",
            request.material_name,
            estimate.quantity,
            eoq.eoq,
            estimate.model,
        )
        record_prediction("reorder", estimate.model)

        return ReorderResult(
            suggested_order_quantity=estimate.quantity,
            reasoning=generate_reasoning(request, estimate, eoq),
            model=estimate.model,
            confidence=estimate.confidence,
            economic_order_quantity=eoq.eoq,
            total_cost=total_cost,
            alternatives=calculate_alternatives(request, estimate.quantity),
            ai_insight=estimate.insight,
        )
