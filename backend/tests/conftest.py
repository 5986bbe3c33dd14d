from __future__ import annotations

from collections import defaultdict, deque
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from backend.prediction_service.core import observability as obs


@pytest.fixture(autouse=True)
def _fresh_rate_limit_window(monkeypatch):
    """Give each test its own rate-limit buckets and disable auth."""

    monkeypatch.setattr(obs.TokenAndRateLimitMiddleware, "_buckets", defaultdict(deque), raising=False)
    monkeypatch.setattr(obs.TokenAndRateLimitMiddleware, "_token", None, raising=False)
