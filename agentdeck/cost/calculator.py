"""Token usage to USD cost conversion.

Prices are expressed per million tokens for four categories: input,
output, cache writes (prompt-cache creation) and cache reads. Lookup order
is the exact model row of the engine's table, then the engine's ``default``
row. Engines without a table are priced with the primary engine's table.

Every figure is rounded to ``COST_DECIMALS`` places so persisted and
displayed values are stable.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from agentdeck.config.schema import PriceRow, default_pricing
from agentdeck.engines.types import CostBreakdown, TokenUsage

COST_DECIMALS = 6
FALLBACK_ENGINE = "claude-code"
_PER_MILLION = 1_000_000

PricingTable = Mapping[str, Mapping[str, PriceRow]]

DEFAULT_PRICING: dict[str, dict[str, PriceRow]] = default_pricing()


def resolve_price(
    engine: str,
    model: str | None = None,
    pricing: PricingTable | None = None,
) -> tuple[PriceRow, str]:
    """Return the price row for ``engine``/``model`` and the row key that matched."""
    table = pricing if pricing is not None else DEFAULT_PRICING
    engine_prices = table.get(engine) or table.get(FALLBACK_ENGINE) or {}
    if model and model in engine_prices:
        return engine_prices[model], model
    if "default" in engine_prices:
        return engine_prices["default"], "default"
    return PriceRow(), "default"


def compute_cost(
    usage: TokenUsage,
    engine: str,
    model: str | None = None,
    pricing: PricingTable | None = None,
) -> CostBreakdown:
    """Compute a per-category and total cost breakdown for a usage tuple.

    Pure function: no I/O, no logging, safe to call from any context.
    """
    row, matched = resolve_price(engine, model, pricing)

    input_cost = usage.input_tokens / _PER_MILLION * row.input
    output_cost = usage.output_tokens / _PER_MILLION * row.output
    cache_write_cost = usage.cache_write_tokens / _PER_MILLION * row.cache_write
    cache_read_cost = usage.cache_read_tokens / _PER_MILLION * row.cache_read
    total = input_cost + output_cost + cache_write_cost + cache_read_cost

    return CostBreakdown(
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        cache_write_tokens=usage.cache_write_tokens,
        cache_read_tokens=usage.cache_read_tokens,
        total_tokens=usage.total,
        input_cost=round(input_cost, COST_DECIMALS),
        output_cost=round(output_cost, COST_DECIMALS),
        cache_write_cost=round(cache_write_cost, COST_DECIMALS),
        cache_read_cost=round(cache_read_cost, COST_DECIMALS),
        total_cost=round(total, COST_DECIMALS),
        engine=engine,
        model=model or matched,
        rates=row.model_dump(),
    )


def extract_usage(raw: Mapping[str, Any] | None) -> TokenUsage:
    """Read a native usage payload into a TokenUsage.

    Understands the Anthropic field names (``cache_creation_input_tokens``,
    ``cache_read_input_tokens``) and the OpenAI/Codex ``cached_input_tokens``.
    Missing or null fields count as zero.
    """
    if not raw:
        return TokenUsage()
    cache_read = raw.get("cache_read_input_tokens") or raw.get("cached_input_tokens") or 0
    return TokenUsage(
        input_tokens=int(raw.get("input_tokens") or 0),
        output_tokens=int(raw.get("output_tokens") or 0),
        cache_write_tokens=int(raw.get("cache_creation_input_tokens") or 0),
        cache_read_tokens=int(cache_read),
    )


def format_cost(cost: float) -> str:
    """Format a USD amount for display, keeping sub-cent values readable."""
    if cost < 0.01:
        return f"${cost:.6f}"
    if cost < 1:
        return f"${cost:.4f}"
    return f"${cost:.2f}"


def supported_models(
    engine: str, pricing: PricingTable | None = None
) -> list[tuple[str, PriceRow]]:
    """List the explicitly priced models of an engine (``default`` excluded)."""
    table = pricing if pricing is not None else DEFAULT_PRICING
    engine_prices = table.get(engine)
    if not engine_prices:
        return []
    return [(model, row) for model, row in engine_prices.items() if model != "default"]
