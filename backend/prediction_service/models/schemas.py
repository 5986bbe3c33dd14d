r"""backend/prediction_service/models/schemas.py

Pydantic models used throughout the API.

These models serve as both request payload validators and response
serialisation schemas.  Python attributes are snake_case while the JSON wire
format uses camelCase aliases, so ``materialName`` and ``material_name`` are
both accepted on input and responses are emitted with the camelCase names.
"""

from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_BATCH_SIZE = 50

Trend = Literal["increasing", "decreasing", "stable"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HistoricalPoint(_CamelModel):
    """A single observation of stock and consumption for a material."""

    date: date
    stock: float = Field(..., ge=0)
    consumption: float = Field(..., ge=0)


class DepletionRequest(_CamelModel):
    """Inputs for a stock depletion prediction."""

    material_name: str = Field(..., min_length=1, max_length=100)
    current_stock: float = Field(..., ge=0, description="Units currently on hand")
    avg_daily_consumption: float = Field(
        ...,
        ge=0,
        description="Average units consumed per day; zero is handled as a terminal case",
    )
    historical_data: Optional[List[HistoricalPoint]] = None
    seasonality: bool = False
    trend: Optional[Trend] = None
    reorder_level: Optional[float] = Field(
        None, ge=0, description="Optional threshold used for reorder-level factors"
    )


class ReorderRequest(_CamelModel):
    """Inputs for a reorder quantity suggestion."""

    material_name: str = Field(..., min_length=1, max_length=100)
    avg_daily_consumption: float = Field(..., gt=0)
    lead_time: float = Field(..., ge=1, description="Days between ordering and receipt")
    reorder_level: float = Field(..., ge=0)
    safety_stock: float = Field(0.0, ge=0)
    max_stock: float = Field(1000.0, ge=0)
    unit_cost: float = Field(1.0, ge=0)
    holding_cost_rate: float = Field(0.2, ge=0, le=1)


class DepletionResult(_CamelModel):
    """Outcome of a depletion prediction after business-rule adjustment."""

    predicted_stock_out_in_days: int = Field(..., ge=0)
    confidence: float = Field(..., ge=0, le=1, description="Heuristic confidence score")
    model: str = Field(..., description="Which prediction path produced the result")
    factors: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    raw_prediction: int = Field(..., ge=0, description="Prediction before adjustment")
    adjustment_applied: bool = False
    ai_insight: Optional[str] = None


class CostComponents(_CamelModel):
    """Integer percentage share of each cost component."""

    ordering: int
    holding: int


class TotalCost(_CamelModel):
    """Annual cost implications of ordering a given quantity."""

    ordering_cost: int
    holding_cost: int
    total_cost: int
    cost_per_unit: float
    orders_per_year: float
    average_inventory: int
    cost_components: CostComponents


class Alternative(_CamelModel):
    """An alternative order quantity with its trade-offs."""

    quantity: int
    description: str
    pros: List[str]
    cons: List[str]


class Alternatives(_CamelModel):
    conservative: Alternative
    aggressive: Alternative
    minimum: Alternative


class ReorderResult(_CamelModel):
    """Suggested reorder quantity with cost and reasoning."""

    suggested_order_quantity: int = Field(..., gt=0)
    reasoning: str
    model: str
    confidence: float = Field(..., ge=0, le=1)
    economic_order_quantity: int
    total_cost: TotalCost
    alternatives: Alternatives
    ai_insight: Optional[str] = None


class BatchRequest(_CamelModel):
    """Payload for predicting depletion across multiple materials."""

    materials: List[DepletionRequest] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)


class BatchItemResult(_CamelModel):
    """Per-material outcome inside a batch; failures carry an error message."""

    material_name: str
    success: bool
    prediction: Optional[DepletionResult] = None
    error: Optional[str] = None


class BatchSummary(_CamelModel):
    total: int
    successful: int
    failed: int


class BatchResult(_CamelModel):
    results: List[BatchItemResult]
    summary: BatchSummary


class Material(_CamelModel):
    """A stocked material as held by the inventory store."""

    material_id: str
    name: str
    current_stock: float
    reorder_level: float
    lead_time: float
    unit_cost: float = 1.0
    safety_stock: float = 0.0
    max_stock: float = 1000.0
    avg_daily_consumption: float = 0.0


class PurchaseOrder(_CamelModel):
    """A purchase order raised for a material."""

    po_id: str
    material_id: str
    quantity: int
    suggested_by_ai: bool
    order_date: date
    delivery_date: date
    model: str


class MaterialDepletionResponse(_CamelModel):
    material_id: str
    message: str
    prediction: DepletionResult


class GeneratedPurchaseOrder(_CamelModel):
    purchase_order: PurchaseOrder
    suggestion: ReorderResult
