r"""backend/prediction_service/main.py

Main entrypoint for the FastAPI application.

The API exposes endpoints to predict stock depletion for a material, to
suggest reorder quantities and to run batch predictions.  Material-scoped
routes read from the material store and raise purchase orders.  Health
endpoints are provided for readiness/liveness checks.  Configuration is read
from environment variables and ``configs/settings.yaml``.
"""


from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
import os
import logging
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root before settings are read
BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(BASE_DIR / ".env")

from .api.v1 import health, materials, prediction  # noqa: E402
from .core.config import get_settings  # noqa: E402
from .core.observability import TokenAndRateLimitMiddleware, metrics_endpoint  # noqa: E402

_settings = get_settings()
logging.getLogger(__name__).info(
    "External model enabled: %s model=%s",
    bool(_settings.gemini_api_key),
    _settings.gemini_model,
)

app = FastAPI(title="Stock Prediction API", version="1.0.0")

# Allow cross-origin requests from browser clients.
origins_env = os.getenv("CORS_ORIGINS", "")
origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()] or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,  # In production specify your UI domain(s)
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TokenAndRateLimitMiddleware)

# Include versioned routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(prediction.router, prefix="/api/v1")
app.include_router(materials.router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
def _root() -> RedirectResponse:
    """Redirect the root path to the interactive docs."""

    return RedirectResponse(url="/docs")


@app.get("/metrics", include_in_schema=False)
async def _metrics() -> Response:
    """Expose Prometheus metrics."""

    return metrics_endpoint()
