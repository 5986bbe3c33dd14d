r"""backend/tests/test_materials_api.py"""

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
from backend.prediction_service.api.v1 import materials
from backend.prediction_service.services.depletion_service import DepletionService
from backend.prediction_service.services.inventory_service import InventoryService
from backend.prediction_service.services.llm_service import ExternalModelAdapter
from backend.prediction_service.services.reorder_service import ReorderService

MATERIALS_CSV = """material_id,name,current_stock,reorder_level,lead_time,unit_cost,safety_stock,max_stock,avg_daily_consumption
M-001,Steel Bolts,50,60,7,1,0,1000,10
M-002,Copper Wire,400,100,3,2.5,20,1000,
M-003,Free Sample Kit,100,10,5,0,0,1000,2
"""


class FixedRng:
    def uniform(self, low: float, high: float) -> float:
        return 1.0


def _patch_services(monkeypatch, inventory: InventoryService) -> None:
    adapter = ExternalModelAdapter(None, rng=FixedRng(), clock=lambda: date(2024, 3, 1))  # type: ignore[arg-type]
    monkeypatch.setattr(materials, "_inventory_service", inventory)
    monkeypatch.setattr(materials, "_depletion_service", DepletionService(adapter))
    monkeypatch.setattr(materials, "_reorder_service", ReorderService(adapter))


@pytest.fixture
def client(tmp_path, monkeypatch) -> TestClient:
    (tmp_path / "materials.csv").write_text(MATERIALS_CSV, encoding="utf-8")
    _patch_services(monkeypatch, InventoryService(data_root=str(tmp_path)))
    return TestClient(app)


def test_list_materials(client: TestClient) -> None:
    response = client.get("/api/v1/materials")

    assert response.status_code == 200
    body = response.json()
    assert [item["materialId"] for item in body] == ["M-001", "M-002", "M-003"]
    # missing consumption falls back to the default rate
    assert body[1]["avgDailyConsumption"] == 5.0
    assert body[1]["unitCost"] == 2.5


def test_material_depletion_message(client: TestClient) -> None:
    response = client.post("/api/v1/materials/M-001/predict-depletion")

    assert response.status_code == 200
    assert response.headers["model_used"] == "statistical_forecast"
    body = response.json()
    # 50 / 10 = 5 days, minus one day for critical stock
    assert body["materialId"] == "M-001"
    assert body["message"] == "Out of stock in 4 days"
    assert body["prediction"]["rawPrediction"] == 5
    assert "below_reorder_level" in body["prediction"]["factors"]


def test_generate_purchase_order(client: TestClient) -> None:
    response = client.post("/api/v1/materials/M-001/generate-po")

    assert response.status_code == 201
    body = response.json()
    purchase_order = body["purchaseOrder"]
    assert purchase_order["materialId"] == "M-001"
    assert purchase_order["quantity"] == 1351
    assert purchase_order["suggestedByAi"] is True
    assert purchase_order["model"] == "economic_order_quantity"
    ordered = date.fromisoformat(purchase_order["orderDate"])
    delivered = date.fromisoformat(purchase_order["deliveryDate"])
    assert (delivered - ordered).days == 7
    assert body["suggestion"]["economicOrderQuantity"] == 1351

    orders = client.get("/api/v1/materials/M-001/purchase-orders")
    assert orders.status_code == 200
    assert [po["poId"] for po in orders.json()] == [purchase_order["poId"]]
    assert client.get("/api/v1/materials/M-002/purchase-orders").json() == []


def test_generate_purchase_order_rejects_free_material(client: TestClient) -> None:
    response = client.post("/api/v1/materials/M-003/generate-po")

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_material"


@pytest.mark.parametrize(
    "method, path",
    [
        ("post", "/api/v1/materials/NOPE/predict-depletion"),
        ("post", "/api/v1/materials/NOPE/generate-po"),
        ("get", "/api/v1/materials/NOPE/purchase-orders"),
    ],
)
def test_unknown_material_is_404(client: TestClient, method: str, path: str) -> None:
    response = getattr(client, method)(path)

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "material_not_found"


def test_missing_dataset_is_503(tmp_path, monkeypatch) -> None:
    _patch_services(monkeypatch, InventoryService(data_root=str(tmp_path / "empty")))
    client = TestClient(app)

    response = client.post("/api/v1/materials/M-001/predict-depletion")

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "data_unavailable"
    assert client.get("/api/v1/materials").json() == []


def test_inventory_rejects_incomplete_dataset(tmp_path) -> None:
    (tmp_path / "materials.csv").write_text("material_id,name\nM-001,Bolts\n", encoding="utf-8")

    with pytest.raises(ValueError, match="missing columns"):
        InventoryService(data_root=str(tmp_path)).list_materials()
