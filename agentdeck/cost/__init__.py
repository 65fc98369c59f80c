"""Token usage pricing."""

from agentdeck.cost.calculator import (
    DEFAULT_PRICING,
    compute_cost,
    extract_usage,
    format_cost,
    supported_models,
)

__all__ = ["DEFAULT_PRICING", "compute_cost", "extract_usage", "format_cost", "supported_models"]
