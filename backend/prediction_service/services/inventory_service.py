r"""backend/prediction_service/services/inventory_service.py

Material store backing the material-scoped routes.

Materials are read from ``materials.csv`` (or ``materials.parquet``) in the
data directory.  Purchase orders raised through the API are kept in memory
for the lifetime of the process.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from ..models.schemas import Material, PurchaseOrder
from .io_utils import load_table

LOGGER = logging.getLogger(__name__)

# Used when a material has no recorded consumption rate.
DEFAULT_CONSUMPTION_RATE = 5.0

REQUIRED_COLUMNS = ("material_id", "name", "current_stock", "reorder_level", "lead_time")
_OPTIONAL_DEFAULTS: Dict[str, float] = {
    "unit_cost": 1.0,
    "safety_stock": 0.0,
    "max_stock": 1000.0,
    "avg_daily_consumption": DEFAULT_CONSUMPTION_RATE,
}


class InventoryService:
    """Provide material records and record purchase orders."""

    def __init__(self, data_root: str = "data") -> None:
        self.data_root = Path(data_root)
        self.materials_df: Optional[pd.DataFrame] = None
        self._purchase_orders: List[PurchaseOrder] = []
        self._po_lock = threading.Lock()

    # ------------------------------------------------------------------
    def _materials_path(self) -> Path:
        return self.data_root / "materials.csv"

    def _ensure_materials_df(self) -> Optional[pd.DataFrame]:
        if self.materials_df is not None:
            return self.materials_df

        try:
            frame = load_table(self._materials_path(), dtype={"material_id": "string"})
        except FileNotFoundError:
            LOGGER.warning("Materials dataset not found at %s", self._materials_path())
            return None

        missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
        if missing:
            raise ValueError(f"materials dataset is missing columns: {', '.join(missing)}")

        for column, default in _OPTIONAL_DEFAULTS.items():
            if column not in frame.columns:
                frame[column] = default
            frame[column] = pd.to_numeric(frame[column], errors="coerce").fillna(default)

        self.materials_df = frame.set_index("material_id", drop=False)
        return self.materials_df

    def data_available(self) -> bool:
        return self._ensure_materials_df() is not None

    # ------------------------------------------------------------------
    @staticmethod
    def _to_material(row: pd.Series) -> Material:
        consumption = float(row["avg_daily_consumption"])
        if not math.isfinite(consumption) or consumption <= 0:
            consumption = DEFAULT_CONSUMPTION_RATE
        return Material(
            material_id=str(row["material_id"]),
            name=str(row["name"]),
            current_stock=float(row["current_stock"]),
            reorder_level=float(row["reorder_level"]),
            lead_time=float(row["lead_time"]),
            unit_cost=float(row["unit_cost"]),
            safety_stock=float(row["safety_stock"]),
            max_stock=float(row["max_stock"]),
            avg_daily_consumption=consumption,
        )

    def list_materials(self) -> List[Material]:
        frame = self._ensure_materials_df()
        if frame is None:
            return []
        return [self._to_material(row) for _, row in frame.iterrows()]

    def get_material(self, material_id: str) -> Optional[Material]:
        frame = self._ensure_materials_df()
        if frame is None or material_id not in frame.index:
            return None
        return self._to_material(frame.loc[material_id])

    # ------------------------------------------------------------------
    def create_purchase_order(
        self,
        material: Material,
        quantity: int,
        model: str,
        suggested_by_ai: bool = True,
        order_date: Optional[date] = None,
    ) -> PurchaseOrder:
        """Record a purchase order; delivery is expected after the lead time."""

        if quantity <= 0:
            raise ValueError("purchase order quantity must be positive")

        ordered_on = order_date or date.today()
        po = PurchaseOrder(
            po_id=str(uuid.uuid4()),
            material_id=material.material_id,
            quantity=int(quantity),
            suggested_by_ai=suggested_by_ai,
            order_date=ordered_on,
            delivery_date=ordered_on + timedelta(days=math.ceil(material.lead_time)),
            model=model,
        )
        with self._po_lock:
            self._purchase_orders.append(po)
        LOGGER.info(
            "Purchase order %s created for material %s quantity=%d",
            po.po_id,
            material.material_id,
            po.quantity,
        )
        return po

    def list_purchase_orders(self, material_id: Optional[str] = None) -> List[PurchaseOrder]:
        with self._po_lock:
            orders = list(self._purchase_orders)
        if material_id is None:
            return orders
        return [po for po in orders if po.material_id == material_id]
