"""Cost estimation from a static table of Claude model prices."""

import re

from loguru import logger
from pydantic import BaseModel, ConfigDict

from ..models.entries import TokenUsage
from ..models.responses import CostBreakdown

DEFAULT_PRICING_MODEL = "claude-sonnet-4-6"


class ModelPricing(BaseModel):
    """USD prices per million tokens.

    Cache read is 0.1x input, a 5-minute cache write 1.25x input and a
    1-hour cache write 2x input.
    """

    model_config = ConfigDict(frozen=True)

    input: float
    output: float
    cache_read: float
    cache_write_5m: float
    cache_write_1h: float


def _pricing(
    input_price: float, output_price: float, read: float, write_5m: float, write_1h: float
) -> ModelPricing:
    return ModelPricing(
        input=input_price,
        output=output_price,
        cache_read=read,
        cache_write_5m=write_5m,
        cache_write_1h=write_1h,
    )


PRICING: dict[str, ModelPricing] = {
    # Current models
    "claude-opus-4-6": _pricing(5, 25, 0.5, 6.25, 10),
    "claude-opus-4-5": _pricing(5, 25, 0.5, 6.25, 10),
    "claude-sonnet-4-6": _pricing(3, 15, 0.3, 3.75, 6),
    "claude-sonnet-4-5": _pricing(3, 15, 0.3, 3.75, 6),
    "claude-sonnet-4": _pricing(3, 15, 0.3, 3.75, 6),
    "claude-haiku-4-5": _pricing(1, 5, 0.1, 1.25, 2),
    # Older models
    "claude-opus-4-1": _pricing(15, 75, 1.5, 18.75, 30),
    "claude-opus-4": _pricing(15, 75, 1.5, 18.75, 30),
    "claude-sonnet-4-5-20250514": _pricing(3, 15, 0.3, 3.75, 6),
    "claude-3-5-sonnet-20241022": _pricing(3, 15, 0.3, 3.75, 6),
    "claude-3-5-haiku-20241022": _pricing(0.8, 4, 0.08, 1, 1.6),
    "claude-haiku-3": _pricing(0.25, 1.25, 0.03, 0.3, 0.5),
}

_DATE_SUFFIX = re.compile(r"-\d{8,}$")


def strip_date_suffix(model: str) -> str:
    """Drop a trailing release date such as ``-20251001`` from a model id."""
    return _DATE_SUFFIX.sub("", model)


def get_pricing() -> dict[str, ModelPricing]:
    """Get the pricing table."""
    return dict(PRICING)


def get_model_pricing(model: str | None) -> ModelPricing:
    """Get pricing for a model: exact id, then id without date suffix, then the default."""
    if model:
        if model in PRICING:
            return PRICING[model]
        base = strip_date_suffix(model)
        if base in PRICING:
            return PRICING[base]
        logger.debug("No pricing found for model '{}', using {}", model, DEFAULT_PRICING_MODEL)
    return PRICING[DEFAULT_PRICING_MODEL]


def calculate_cost(tokens: TokenUsage, model: str | None = None) -> CostBreakdown:
    """Calculate cost breakdown from token usage.

    Cache writes are priced per tier when the usage carries the 5-minute /
    1-hour split; otherwise every cache-creation token is billed at the
    5-minute rate.
    """
    pricing = get_model_pricing(model)

    tiers = tokens.cache_creation
    write_5m = tiers.ephemeral_5m_input_tokens if tiers else 0
    write_1h = tiers.ephemeral_1h_input_tokens if tiers else 0
    if write_5m + write_1h > 0:
        cache_creation_cost = (
            write_5m * pricing.cache_write_5m + write_1h * pricing.cache_write_1h
        ) / 1_000_000
    else:
        cache_creation_cost = tokens.cache_creation_input_tokens * pricing.cache_write_5m / 1_000_000

    return CostBreakdown(
        input_cost=tokens.input_tokens * pricing.input / 1_000_000,
        output_cost=tokens.output_tokens * pricing.output / 1_000_000,
        cache_creation_cost=cache_creation_cost,
        cache_read_cost=tokens.cache_read_input_tokens * pricing.cache_read / 1_000_000,
    )


def estimate_cost(model: str | None, tokens: TokenUsage) -> float:
    """Estimated USD cost of one API turn."""
    return calculate_cost(tokens, model).total_cost


def format_cost(cost: float) -> str:
    """Format cost for display."""
    if cost < 0.01:
        precision = 4
    elif cost < 1:
        precision = 3
    else:
        precision = 2
    return f"${cost:.{precision}f}"
