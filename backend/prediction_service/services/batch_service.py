"""Concurrent fan-out of depletion predictions with per-item isolation."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from ..models.schemas import (
    MAX_BATCH_SIZE,
    BatchItemResult,
    BatchResult,
    BatchSummary,
    DepletionRequest,
)
from .depletion_service import DepletionService

LOGGER = logging.getLogger(__name__)


class BatchTooLarge(ValueError):
    """Raised when a batch exceeds ``MAX_BATCH_SIZE`` requests."""


class BatchCoordinator:
    """Run depletion predictions concurrently; never fail the whole batch."""

    def __init__(
        self,
        service: DepletionService,
        *,
        max_concurrency: int = 10,
        pipeline_timeout_seconds: float = 30.0,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be a positive integer")
        self.service = service
        self.max_concurrency = max_concurrency
        self.pipeline_timeout_seconds = pipeline_timeout_seconds

    async def _predict_one(self, request: DepletionRequest, semaphore: asyncio.Semaphore) -> BatchItemResult:
        async with semaphore:
            try:
                try:
                    prediction = await asyncio.wait_for(
                        self.service.predict(request),
                        timeout=self.pipeline_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    LOGGER.warning(
                        "Prediction for %s timed out after %.1fs; using deterministic path",
                        request.material_name,
                        self.pipeline_timeout_seconds,
                    )
                    prediction = await self.service.predict(request, use_external=False)
            except Exception as exc:
                LOGGER.error("Batch prediction failed for %s: %s", request.material_name, exc)
                return BatchItemResult(material_name=request.material_name, success=False, error=str(exc))

        return BatchItemResult(material_name=request.material_name, success=True, prediction=prediction)

    async def predict_all(self, requests: Sequence[DepletionRequest]) -> BatchResult:
        if len(requests) > MAX_BATCH_SIZE:
            raise BatchTooLarge(f"a batch may contain at most {MAX_BATCH_SIZE} materials")

        LOGGER.info("Processing batch prediction for %d materials", len(requests))
        semaphore = asyncio.Semaphore(self.max_concurrency)
        # gather preserves input order regardless of completion order
        results = await asyncio.gather(*(self._predict_one(request, semaphore) for request in requests))

        successful = sum(1 for item in results if item.success)
        return BatchResult(
            results=list(results),
            summary=BatchSummary(total=len(results), successful=successful, failed=len(results) - successful),
        )
