r"""backend/prediction_service/api/v1/materials.py

Material-scoped routes: predictions and purchase orders for stored materials."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import ValidationError

from ...core.dependencies import (
    get_depletion_service,
    get_inventory_service,
    get_reorder_service,
)
from ...models import schemas
from ...services.procurement_service import InvalidCostParameters

LOGGER = logging.getLogger(__name__)

router = APIRouter()

_inventory_service = get_inventory_service()
_depletion_service = get_depletion_service()
_reorder_service = get_reorder_service()


def _error_payload(code: str, message: str) -> dict[str, str]:
    """Return a standardised error payload."""

    return {"error": code, "message": message}


def _get_material(material_id: str) -> schemas.Material:
    """Return the material or raise the matching HTTP error."""

    if not _inventory_service.data_available():
        LOGGER.error("Materials dataset missing while looking up material_id=%s", material_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_error_payload(
                "data_unavailable",
                "The materials dataset is missing. Place materials.csv in the data directory and retry.",
            ),
        )
    material = _inventory_service.get_material(material_id)
    if material is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_error_payload("material_not_found", f"Material '{material_id}' was not found."),
        )
    return material


@router.get("/materials", response_model=List[schemas.Material])
def list_materials() -> List[schemas.Material]:
    return _inventory_service.list_materials()


@router.get("/materials/{material_id}/purchase-orders", response_model=List[schemas.PurchaseOrder])
def list_purchase_orders(material_id: str) -> List[schemas.PurchaseOrder]:
    _get_material(material_id)
    return _inventory_service.list_purchase_orders(material_id)


@router.post(
    "/materials/{material_id}/predict-depletion",
    response_model=schemas.MaterialDepletionResponse,
)
async def predict_material_depletion(material_id: str, response: Response) -> schemas.MaterialDepletionResponse:
    """Predict depletion for a stored material."""

    material = _get_material(material_id)
    request = schemas.DepletionRequest(
        material_name=material.name,
        current_stock=material.current_stock,
        avg_daily_consumption=material.avg_daily_consumption,
        reorder_level=material.reorder_level,
    )
    prediction = await _depletion_service.predict(request)
    response.headers["model_used"] = prediction.model
    return schemas.MaterialDepletionResponse(
        material_id=material.material_id,
        message=f"Out of stock in {prediction.predicted_stock_out_in_days} days",
        prediction=prediction,
    )


@router.post(
    "/materials/{material_id}/generate-po",
    response_model=schemas.GeneratedPurchaseOrder,
    status_code=status.HTTP_201_CREATED,
)
async def generate_purchase_order(material_id: str, response: Response) -> schemas.GeneratedPurchaseOrder:
    """Raise a purchase order sized by the reorder decision service."""

    material = _get_material(material_id)
    try:
        request = schemas.ReorderRequest(
            material_name=material.name,
            avg_daily_consumption=material.avg_daily_consumption,
            lead_time=material.lead_time,
            reorder_level=material.reorder_level,
            safety_stock=material.safety_stock,
            max_stock=material.max_stock,
            unit_cost=material.unit_cost,
        )
        suggestion = await _reorder_service.suggest(request)
    except (ValidationError, InvalidCostParameters) as exc:
        LOGGER.warning("Purchase order rejected for material_id=%s: %s", material_id, exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=_error_payload("invalid_material", str(exc)),
        ) from exc

    purchase_order = _inventory_service.create_purchase_order(
        material,
        suggestion.suggested_order_quantity,
        model=suggestion.model,
    )
    response.headers["model_used"] = suggestion.model
    return schemas.GeneratedPurchaseOrder(purchase_order=purchase_order, suggestion=suggestion)
