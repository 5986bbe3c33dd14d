r"""backend/tests/test_prediction_api.py"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.prediction_service.main import app
from backend.prediction_service.api.v1 import prediction
from backend.prediction_service.services.batch_service import BatchCoordinator
from backend.prediction_service.services.depletion_service import DepletionService
from backend.prediction_service.services.llm_service import ExternalModelAdapter
from backend.prediction_service.services.reorder_service import ReorderService


class FixedRng:
    def uniform(self, low: float, high: float) -> float:
        return 1.0


class ExplodingService:
    async def predict(self, request, use_external=True):
        raise RuntimeError("boom")


@pytest.fixture
def client(monkeypatch) -> TestClient:
    adapter = ExternalModelAdapter(None, rng=FixedRng(), clock=lambda: date(2024, 3, 1))  # type: ignore[arg-type]
    depletion = DepletionService(adapter)
    monkeypatch.setattr(prediction, "_adapter", adapter)
    monkeypatch.setattr(prediction, "_depletion_service", depletion)
    monkeypatch.setattr(prediction, "_reorder_service", ReorderService(adapter))
    monkeypatch.setattr(prediction, "_batch_coordinator", BatchCoordinator(depletion))
    return TestClient(app)


def _depletion_payload(**overrides):
    payload = {"materialName": "Steel Bolts", "currentStock": 400, "avgDailyConsumption": 10}
    payload.update(overrides)
    return payload


def _reorder_payload(**overrides):
    payload = {
        "materialName": "Steel Bolts",
        "avgDailyConsumption": 10,
        "leadTime": 7,
        "reorderLevel": 100,
    }
    payload.update(overrides)
    return payload


def test_predict_depletion_returns_camel_case_payload(client: TestClient) -> None:
    response = client.post("/api/v1/predict-depletion", json=_depletion_payload())

    assert response.status_code == 200
    assert response.headers["model_used"] == "statistical_forecast"
    body = response.json()
    assert body["predictedStockOutInDays"] == 40
    assert body["rawPrediction"] == 40
    assert body["adjustmentApplied"] is False
    assert body["confidence"] == 0.85
    assert body["model"] == "statistical_forecast"
    assert body["factors"] == []
    assert "aiInsight" in body


def test_predict_depletion_accepts_field_names(client: TestClient) -> None:
    response = client.post(
        "/api/v1/predict-depletion",
        json={"material_name": "Steel Bolts", "current_stock": 50, "avg_daily_consumption": 10, "reorder_level": 60},
    )

    assert response.status_code == 200
    body = response.json()
    assert "below_reorder_level" in body["factors"]
    assert "critical_stock_level" in body["factors"]
    assert "Stock below reorder level - immediate action required" in body["recommendations"]


def test_depleted_stock_short_circuits(client: TestClient) -> None:
    response = client.post("/api/v1/predict-depletion", json=_depletion_payload(currentStock=0))

    assert response.status_code == 200
    assert response.headers["model_used"] == "immediate"
    body = response.json()
    assert body["predictedStockOutInDays"] == 0
    assert body["recommendations"] == ["Immediate reorder required"]


def test_zero_consumption_short_circuits(client: TestClient) -> None:
    response = client.post("/api/v1/predict-depletion", json=_depletion_payload(avgDailyConsumption=0))

    assert response.status_code == 200
    assert response.json()["predictedStockOutInDays"] == 999
    assert response.json()["model"] == "no_consumption"


@pytest.mark.parametrize(
    "overrides",
    [
        {"materialName": ""},
        {"materialName": "x" * 101},
        {"currentStock": -1},
        {"avgDailyConsumption": -2},
        {"trend": "sideways"},
    ],
)
def test_predict_depletion_rejects_invalid_input(client: TestClient, overrides: dict) -> None:
    response = client.post("/api/v1/predict-depletion", json=_depletion_payload(**overrides))

    assert response.status_code == 422


def test_predict_depletion_unexpected_error_is_500(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(prediction, "_depletion_service", ExplodingService())

    response = client.post("/api/v1/predict-depletion", json=_depletion_payload())

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "prediction_failed"


def test_suggest_reorder(client: TestClient) -> None:
    response = client.post("/api/v1/suggest-reorder", json=_reorder_payload())

    assert response.status_code == 200
    assert response.headers["model_used"] == "economic_order_quantity"
    body = response.json()
    assert body["suggestedOrderQuantity"] == 1351
    assert body["economicOrderQuantity"] == 1351
    assert body["totalCost"]["totalCost"] == 270
    assert body["totalCost"]["costComponents"] == {"ordering": 50, "holding": 50}
    assert body["alternatives"]["minimum"]["quantity"] == 70
    assert body["reasoning"].startswith("Suggested quantity of 1351 units based on:")


def test_suggest_reorder_rejects_zero_holding_cost(client: TestClient) -> None:
    response = client.post("/api/v1/suggest-reorder", json=_reorder_payload(unitCost=0))

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_cost_parameters"


@pytest.mark.parametrize(
    "overrides",
    [{"avgDailyConsumption": 0}, {"leadTime": 0}, {"holdingCostRate": 1.5}, {"reorderLevel": -1}],
)
def test_suggest_reorder_rejects_invalid_input(client: TestClient, overrides: dict) -> None:
    response = client.post("/api/v1/suggest-reorder", json=_reorder_payload(**overrides))

    assert response.status_code == 422


def test_batch_predict(client: TestClient) -> None:
    payload = {
        "materials": [
            _depletion_payload(materialName="Nuts"),
            _depletion_payload(materialName="Bolts", currentStock=0),
        ]
    }

    response = client.post("/api/v1/batch-predict", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total": 2, "successful": 2, "failed": 0}
    assert [item["materialName"] for item in body["results"]] == ["Nuts", "Bolts"]
    assert body["results"][0]["prediction"]["predictedStockOutInDays"] == 40
    assert body["results"][1]["prediction"]["model"] == "immediate"


def test_batch_predict_reports_failures_per_item(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(prediction, "_batch_coordinator", BatchCoordinator(ExplodingService()))  # type: ignore[arg-type]

    response = client.post("/api/v1/batch-predict", json={"materials": [_depletion_payload()]})

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total": 1, "successful": 0, "failed": 1}
    assert body["results"][0]["success"] is False
    assert body["results"][0]["error"] == "boom"


@pytest.mark.parametrize("count", [0, 51])
def test_batch_predict_size_limits(client: TestClient, count: int) -> None:
    payload = {"materials": [_depletion_payload(materialName=f"M{i}") for i in range(count)]}

    response = client.post("/api/v1/batch-predict", json=payload)

    assert response.status_code == 422


def test_models_endpoint(client: TestClient) -> None:
    response = client.get("/api/v1/models")

    assert response.status_code == 200
    body = response.json()
    assert body["externalModelAvailable"] is False
    assert body["availableModels"]["timeSeries"]["primary"] == "statistical_forecast"
    assert body["availableModels"]["regression"]["fallback"] == "economic_order_quantity"
    assert "timestamp" in body


def test_health_endpoints(client: TestClient) -> None:
    health = client.get("/api/v1/health")
    live = client.get("/api/v1/health/live")
    ready = client.get("/api/v1/health/ready")

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["models"]["statistical"] == "available"
    assert live.json()["status"] == "alive"
    assert ready.json()["status"] == "ready"


def test_metrics_count_predictions(client: TestClient) -> None:
    client.post("/api/v1/predict-depletion", json=_depletion_payload())

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "predictions_total" in response.text
    assert "http_requests_total" in response.text


def test_cors_preflight_allows_request_id_header(client: TestClient) -> None:
    response = client.options(
        "/api/v1/predict-depletion",
        headers={
            "Origin": "http://localhost:8501",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type, x-request-id",
        },
    )

    assert response.status_code == 200
    allowed = response.headers["access-control-allow-headers"].lower()
    assert "x-request-id" in allowed
