"""Process-wide service wiring.

Every service is built once from ``Settings`` and the YAML business
settings; nothing here changes after startup.
"""

from __future__ import annotations

import os
from functools import lru_cache

import numpy as np

from ..services.batch_service import BatchCoordinator
from ..services.depletion_service import DepletionService
from ..services.inventory_service import InventoryService
from ..services.llm_service import ExternalModelAdapter, build_text_generator
from ..services.procurement_service import ORDERING_COST
from ..services.reorder_service import ReorderService
from .config import get_settings, load_yaml


@lru_cache(maxsize=None)
def get_adapter() -> ExternalModelAdapter:
    settings = get_settings()
    business = load_yaml(os.path.join(settings.config_dir, "settings.yaml"))
    return ExternalModelAdapter(
        build_text_generator(settings),
        timeout_seconds=settings.llm_timeout_seconds,
        rng=np.random.default_rng(settings.random_seed),
        ordering_cost=float(business.get("order_cost", ORDERING_COST)),
    )


@lru_cache(maxsize=None)
def get_depletion_service() -> DepletionService:
    return DepletionService(get_adapter())


@lru_cache(maxsize=None)
def get_reorder_service() -> ReorderService:
    return ReorderService(get_adapter())


@lru_cache(maxsize=None)
def get_batch_coordinator() -> BatchCoordinator:
    settings = get_settings()
    return BatchCoordinator(
        get_depletion_service(),
        max_concurrency=settings.batch_max_concurrency,
        pipeline_timeout_seconds=settings.pipeline_timeout_seconds,
    )


@lru_cache(maxsize=None)
def get_inventory_service() -> InventoryService:
    return InventoryService(data_root=get_settings().data_dir)


def external_model_available() -> bool:
    """True iff the text-generation backend is configured."""

    return get_adapter().available
