r"""backend/prediction_service/api/v1/prediction.py

Routes for stock depletion predictions and reorder suggestions."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Response, status

from ...core.dependencies import (
    get_adapter,
    get_batch_coordinator,
    get_depletion_service,
    get_reorder_service,
)
from ...models import schemas
from ...services.batch_service import BatchTooLarge
from ...services.procurement_service import InvalidCostParameters

LOGGER = logging.getLogger(__name__)

router = APIRouter()

_adapter = get_adapter()
_depletion_service = get_depletion_service()
_reorder_service = get_reorder_service()
_batch_coordinator = get_batch_coordinator()


def _error_payload(code: str, message: str) -> dict[str, str]:
    """Return a standardised error payload."""

    return {"error": code, "message": message}


@router.post("/predict-depletion", response_model=schemas.DepletionResult)
async def predict_depletion(body: schemas.DepletionRequest, response: Response) -> schemas.DepletionResult:
    """Predict how many days remain until a material runs out."""

    LOGGER.info("Predicting depletion for material: %s", body.material_name)
    try:
        result = await _depletion_service.predict(body)
    except Exception as exc:
        LOGGER.exception("Unexpected error while predicting depletion for %s", body.material_name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_payload("prediction_failed", "An unexpected error occurred while predicting depletion."),
        ) from exc

    response.headers["model_used"] = result.model
    return result


@router.post("/suggest-reorder", response_model=schemas.ReorderResult)
async def suggest_reorder(body: schemas.ReorderRequest, response: Response) -> schemas.ReorderResult:
    """Suggest an order quantity for a material."""

    LOGGER.info("Suggesting reorder quantity for material: %s", body.material_name)
    try:
        result = await _reorder_service.suggest(body)
    except InvalidCostParameters as exc:
        LOGGER.warning("Reorder request rejected for %s: %s", body.material_name, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload("invalid_cost_parameters", str(exc)),
        ) from exc
    except Exception as exc:
        LOGGER.exception("Unexpected error while suggesting reorder for %s", body.material_name)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_error_payload("reorder_failed", "An unexpected error occurred while suggesting a reorder."),
        ) from exc

    response.headers["model_used"] = result.model
    return result


@router.post("/batch-predict", response_model=schemas.BatchResult)
async def batch_predict(body: schemas.BatchRequest) -> schemas.BatchResult:
    """Predict depletion for up to 50 materials; failures are reported per item."""

    try:
        return await _batch_coordinator.predict_all(body.materials)
    except BatchTooLarge as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload("batch_too_large", str(exc)),
        ) from exc


@router.get("/models")
async def list_models() -> dict:
    """Describe the prediction models and whether the external model is enabled."""

    external = _adapter.available
    return {
        "availableModels": {
            "timeSeries": {
                "primary": "external_model" if external else "statistical_forecast",
                "fallback": "statistical_forecast",
                "capabilities": ["trend_analysis", "seasonality", "variance_modeling"],
            },
            "regression": {
                "primary": "external_model" if external else "economic_order_quantity",
                "fallback": "economic_order_quantity",
                "capabilities": ["cost_optimization", "lead_time_analysis", "safety_stock_calculation"],
            },
        },
        "externalModelAvailable": external,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
