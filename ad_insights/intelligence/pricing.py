"""
Static model pricing table.

Loads per-model input/output prices (USD per million tokens) from a YAML
file. Estimates are display-only and not a billing source of truth.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from ad_insights.intelligence.providers.base import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_PRICING_PATH = Path(__file__).parent / "pricing.yaml"

TOKENS_PER_UNIT = 1_000_000


@dataclass(frozen=True)
class ModelPricing:
    """Price of one model, per million tokens."""
    id: str
    display_name: str
    provider: str
    input_cost: float
    output_cost: float

    def cost(self, usage: TokenUsage) -> float:
        return (
            usage.input_tokens / TOKENS_PER_UNIT * self.input_cost
            + usage.output_tokens / TOKENS_PER_UNIT * self.output_cost
        )


class PricingTable:
    """
    Model id -> pricing lookup.

    Usage:
        table = PricingTable.load()
        cost = table.calculate_cost(usage, "gpt-4o-mini")
    """

    def __init__(self, models: Optional[List[ModelPricing]] = None):
        self._models: Dict[str, ModelPricing] = {m.id: m for m in models or []}

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "PricingTable":
        """Load the table from YAML (the packaged table by default)."""
        path = Path(path) if path else DEFAULT_PRICING_PATH
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        models = []
        for entry in data.get("models", []):
            try:
                models.append(ModelPricing(
                    id=entry["id"],
                    display_name=entry.get("display_name", entry["id"]),
                    provider=entry.get("provider", ""),
                    input_cost=float(entry["input_cost"]),
                    output_cost=float(entry["output_cost"]),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid pricing entry {entry!r}: {e}")

        logger.debug(f"Loaded pricing for {len(models)} models from {path}")
        return cls(models)

    @property
    def models(self) -> List[ModelPricing]:
        return list(self._models.values())

    def get(self, model: str) -> Optional[ModelPricing]:
        return self._models.get(model)

    def calculate_cost(self, usage: Optional[TokenUsage], model: str) -> Optional[float]:
        """Estimated USD cost, or None for unknown models or missing usage."""
        pricing = self._models.get(model)
        if pricing is None or usage is None:
            return None
        return pricing.cost(usage)
