r"""backend/prediction_service/services/llm_service.py

Optional integration with Google's Gemini API as a numeric oracle.

The adapter turns numeric inputs into a natural-language prompt, asks a text
generator for an answer and scrapes integers out of the reply.  Free-text
parsing is fragile, so every path degrades to the deterministic models: if
no generator is configured, or the call fails or times out, the statistical
estimator (depletion) or the EOQ optimizer (reorder) is used with identical
inputs.  Callers never see backend errors; the ``model`` tag of the returned
estimate tells which path ran.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, List, Optional, Protocol, Sequence

import numpy as np

from ..core.config import Settings
from ..models.schemas import DepletionRequest, HistoricalPoint, ReorderRequest
from .forecasting_service import current_month, estimate_depletion, round_half_up
from .procurement_service import ORDERING_COST, calculate_eoq, optimize_order_quantity

LOGGER = logging.getLogger(__name__)

MODEL_NAME = "external_model"

DEPLETION_MAX_TOKENS = 100
DEPLETION_TEMPERATURE = 0.7
REORDER_MAX_TOKENS = 150
REORDER_TEMPERATURE = 0.5

MAX_PREDICTED_DAYS = 365
REORDER_LEVEL_CEILING_FACTOR = 10

DEFAULT_TIMEOUT_SECONDS = 10.0

_INTEGER_PATTERN = re.compile(r"\d+")


# ---------------------------------------------------------------------------
# Text generation backend


@dataclass(frozen=True)
class GenerationParams:
    max_tokens: int
    temperature: float


class TextGenerator(Protocol):
    """Anything that turns a prompt into free text."""

    def generate(self, prompt: str, params: GenerationParams) -> str: ...


class GeminiTextGenerator:
    """``TextGenerator`` backed by ``google-generativeai``."""

    def __init__(self, api_key: str, model_name: str, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(model_name)
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds

    def generate(self, prompt: str, params: GenerationParams) -> str:
        response = self._model.generate_content(
            prompt,
            generation_config={
                "max_output_tokens": params.max_tokens,
                "temperature": params.temperature,
            },
            request_options={"timeout": self.timeout_seconds},
        )
        text = getattr(response, "text", None)
        if not isinstance(text, str):
            raise ValueError("Gemini response did not contain text")
        return text


def build_text_generator(settings: Settings) -> Optional[TextGenerator]:
    """Return a Gemini generator when an API key is configured, else ``None``."""

    if not settings.gemini_api_key:
        LOGGER.warning("GEMINI_API_KEY not configured; using fallback models")
        return None
    try:
        generator = GeminiTextGenerator(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model,
            timeout_seconds=settings.llm_timeout_seconds,
        )
    except Exception as exc:
        LOGGER.warning("Gemini client initialisation failed, using fallback models: %s", exc)
        return None
    LOGGER.info("Gemini text generation configured model=%s", settings.gemini_model)
    return generator


# ---------------------------------------------------------------------------
# Parsing helpers (kept top-level for straightforward unit testing)


@dataclass(frozen=True)
class AcceptanceRange:
    """Bounds an integer scraped from model output must satisfy."""

    lower: float
    upper: float
    lower_inclusive: bool = True
    upper_inclusive: bool = True

    def accepts(self, value: int) -> bool:
        above = value >= self.lower if self.lower_inclusive else value > self.lower
        below = value <= self.upper if self.upper_inclusive else value < self.upper
        return above and below


def extract_integers(text: str) -> List[int]:
    return [int(match) for match in _INTEGER_PATTERN.findall(text or "")]


def parse_integer(text: str, acceptance: AcceptanceRange, first_only: bool = False) -> Optional[int]:
    """Return the first integer in ``text`` accepted by ``acceptance``.

    With ``first_only`` only the very first integer is considered; if it is
    out of range the text yields nothing.
    """

    numbers = extract_integers(text)
    if first_only:
        numbers = numbers[:1]
    for number in numbers:
        if acceptance.accepts(number):
            return number
    return None


def _contains_word(text: str, words: Sequence[str]) -> bool:
    # Plain substring match; keyword order decides, so "uncertain" hits "certain" first.
    lowered = text.lower()
    return any(word in lowered for word in words)


def depletion_confidence(text: str) -> float:
    if _contains_word(text, ("confident", "certain")):
        return 0.9
    if _contains_word(text, ("uncertain", "estimate")):
        return 0.6
    return 0.7


def reorder_confidence(text: str) -> float:
    if _contains_word(text, ("optimal", "recommended")):
        return 0.9
    if _contains_word(text, ("estimate", "approximate")):
        return 0.6
    return 0.75


def depletion_range() -> AcceptanceRange:
    return AcceptanceRange(0, MAX_PREDICTED_DAYS, lower_inclusive=False, upper_inclusive=False)


def reorder_range(request: ReorderRequest) -> AcceptanceRange:
    return AcceptanceRange(
        request.avg_daily_consumption * request.lead_time,
        request.reorder_level * REORDER_LEVEL_CEILING_FACTOR,
    )


# ---------------------------------------------------------------------------
# Prompt construction


def format_number(value: float) -> str:
    """Render a number without losing precision; integral values print as ints."""

    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _history_summary(history: Optional[Sequence[HistoricalPoint]]) -> str:
    if not history:
        return "Limited data"
    consumption = np.array([point.consumption for point in history], dtype=float)
    return (
        f"Available ({len(history)} observations, "
        f"mean consumption {float(np.mean(consumption)):.1f} units/day)"
    )


def build_depletion_prompt(request: DepletionRequest) -> str:
    return (
        f"Analyze stock depletion for {request.material_name}:\n"
        f"Current Stock: {format_number(request.current_stock)} units\n"
        f"Daily Consumption: {format_number(request.avg_daily_consumption)} units/day\n"
        f"Historical trend: {_history_summary(request.historical_data)}\n"
        "\n"
        "Based on this information, predict how many days until stock runs out. Consider:\n"
        "- Current consumption rate\n"
        "- Potential demand variations\n"
        "- Seasonal factors\n"
        "\n"
        "Prediction:"
    )


def extract_reorder_features(request: ReorderRequest) -> dict[str, float]:
    """Derived ratios describing the reorder situation."""

    lead_time_demand = request.avg_daily_consumption * request.lead_time
    mean_stock = (request.reorder_level + request.max_stock) / 2
    turnover = request.avg_daily_consumption * 365 / mean_stock if mean_stock > 0 else 0.0
    return {
        "lead_time_demand": lead_time_demand,
        "turnover_ratio": turnover,
        "stockout_risk": request.reorder_level / lead_time_demand,
    }


def build_reorder_prompt(request: ReorderRequest) -> str:
    features = extract_reorder_features(request)
    return (
        f"Optimize reorder quantity for {request.material_name}:\n"
        f"Daily Consumption: {format_number(request.avg_daily_consumption)} units/day\n"
        f"Lead Time: {format_number(request.lead_time)} days\n"
        f"Reorder Level: {format_number(request.reorder_level)} units\n"
        f"Safety Stock: {format_number(request.safety_stock)} units\n"
        f"Unit Cost: ${format_number(request.unit_cost)}\n"
        f"Lead Time Demand: {features['lead_time_demand']:.0f} units\n"
        f"Annual Turnover Ratio: {features['turnover_ratio']:.1f}\n"
        f"Reorder Level Coverage: {features['stockout_risk']:.2f}\n"
        "\n"
        "Calculate optimal order quantity considering:\n"
        "- Economic order quantity principles\n"
        "- Lead time demand\n"
        "- Safety stock requirements\n"
        "- Cost optimization\n"
        "\n"
        "Recommended quantity:"
    )


# ---------------------------------------------------------------------------
# Adapter


@dataclass(frozen=True)
class DepletionEstimate:
    predicted_days: int
    confidence: float
    model: str
    insight: Optional[str] = None


@dataclass(frozen=True)
class ReorderEstimate:
    quantity: int
    confidence: float
    model: str
    insight: Optional[str] = None


class ExternalModelAdapter:
    """Blend an optional text-generation backend with deterministic fallbacks."""

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Callable[[], date]] = None,
        ordering_cost: float = ORDERING_COST,
    ) -> None:
        self._generator = generator
        self.timeout_seconds = timeout_seconds
        self._rng = rng if rng is not None else np.random.default_rng()
        self.clock: Callable[[], date] = clock or date.today
        self.ordering_cost = ordering_cost

    @property
    def available(self) -> bool:
        """Whether an external text generator is configured."""

        return self._generator is not None

    async def _generate(self, prompt: str, params: GenerationParams) -> str:
        if self._generator is None:
            raise RuntimeError("no text generator configured")
        text = await asyncio.wait_for(
            asyncio.to_thread(self._generator.generate, prompt, params),
            timeout=self.timeout_seconds,
        )
        if not isinstance(text, str) or not text.strip():
            raise ValueError("external model returned an empty response")
        return text

    # ------------------------------------------------------------------
    def statistical_depletion(self, request: DepletionRequest) -> DepletionEstimate:
        estimate = estimate_depletion(
            request.current_stock,
            request.avg_daily_consumption,
            trend=request.trend,
            seasonality=request.seasonality,
            rng=self._rng,
            month=current_month(self.clock()),
        )
        return DepletionEstimate(estimate.predicted_days, estimate.confidence, estimate.model)

    async def predict_depletion(self, request: DepletionRequest, use_external: bool = True) -> DepletionEstimate:
        if not (use_external and self.available):
            return self.statistical_depletion(request)

        try:
            text = await self._generate(
                build_depletion_prompt(request),
                GenerationParams(DEPLETION_MAX_TOKENS, DEPLETION_TEMPERATURE),
            )
        except Exception as exc:
            LOGGER.warning(
                "External depletion prediction failed for %s, using fallback: %s",
                request.material_name,
                str(exc) or type(exc).__name__,
            )
            return self.statistical_depletion(request)

        parsed = parse_integer(text, depletion_range(), first_only=True)
        if parsed is None:
            LOGGER.info("No usable day count in model reply for %s", request.material_name)
            days: float = request.current_stock / request.avg_daily_consumption
        else:
            days = parsed
        return DepletionEstimate(
            predicted_days=max(1, round_half_up(days)),
            confidence=depletion_confidence(text),
            model=MODEL_NAME,
            insight=text.strip(),
        )

    # ------------------------------------------------------------------
    def eoq_reorder(self, request: ReorderRequest) -> ReorderEstimate:
        estimate = optimize_order_quantity(
            request.avg_daily_consumption,
            request.lead_time,
            safety_stock=request.safety_stock,
            unit_cost=request.unit_cost,
            holding_cost_rate=request.holding_cost_rate,
            ordering_cost=self.ordering_cost,
        )
        return ReorderEstimate(estimate.quantity, estimate.confidence, estimate.model)

    async def predict_reorder(self, request: ReorderRequest) -> ReorderEstimate:
        if not self.available:
            return self.eoq_reorder(request)

        try:
            text = await self._generate(
                build_reorder_prompt(request),
                GenerationParams(REORDER_MAX_TOKENS, REORDER_TEMPERATURE),
            )
        except Exception as exc:
            LOGGER.warning(
                "External reorder prediction failed for %s, using fallback: %s",
                request.material_name,
                str(exc) or type(exc).__name__,
            )
            return self.eoq_reorder(request)

        parsed = parse_integer(text, reorder_range(request))
        if parsed is None:
            LOGGER.info("No usable quantity in model reply for %s", request.material_name)
            quantity: float = calculate_eoq(
                request.avg_daily_consumption,
                request.unit_cost,
                request.holding_cost_rate,
                self.ordering_cost,
            )
        else:
            quantity = parsed
        return ReorderEstimate(
            quantity=max(1, round_half_up(quantity)),
            confidence=reorder_confidence(text),
            model=MODEL_NAME,
            insight=text.strip(),
        )
