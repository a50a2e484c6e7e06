"""
Model price table and catalog.

Prices are USD per 1M tokens. A tiered model switches to its higher rates
for the whole run once total tokens exceed the threshold; it does not
prorate across tiers.
"""
import logging
from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, Field

from datadeck.core.config import Settings

logger = logging.getLogger(__name__)

Provider = Literal["sdk", "direct"]


@dataclass(frozen=True)
class PriceTier:
    input_per_1m: float
    output_per_1m: float


@dataclass(frozen=True)
class ModelPricing:
    base: PriceTier
    tier_threshold: Optional[int] = None
    above_threshold: Optional[PriceTier] = None

    def tier_for(self, total_tokens: int) -> PriceTier:
        if self.tier_threshold is not None and self.above_threshold and total_tokens > self.tier_threshold:
            return self.above_threshold
        return self.base


MODEL_PRICING: dict[str, ModelPricing] = {
    # Azure OpenAI deployments (SDK-managed runner)
    "gpt-4.1": ModelPricing(PriceTier(2.00, 8.00)),
    "gpt-4.1-mini": ModelPricing(PriceTier(0.40, 1.60)),
    "gpt-4o": ModelPricing(PriceTier(2.50, 10.00)),
    "gpt-4o-mini": ModelPricing(PriceTier(0.15, 0.60)),
    # Gemini models (self-managed runner)
    "gemini-2.5-flash": ModelPricing(PriceTier(0.30, 2.50)),
    "gemini-2.5-pro": ModelPricing(
        PriceTier(1.25, 10.00),
        tier_threshold=200_000,
        above_threshold=PriceTier(2.50, 15.00),
    ),
    "gemini-flash-latest": ModelPricing(PriceTier(0.30, 2.50)),
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Cost in USD of one run; unknown models cost 0 with a warning."""
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.warning(f"No pricing found for model: {model}")
        return 0.0

    tier = pricing.tier_for(input_tokens + output_tokens)
    input_cost = (input_tokens / 1_000_000) * tier.input_per_1m
    output_cost = (output_tokens / 1_000_000) * tier.output_per_1m
    return input_cost + output_cost


def format_cost(cost: float) -> str:
    if cost < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"


class ModelInfo(BaseModel):
    """A selectable model as shown to clients."""
    id: str
    name: str
    provider: Provider
    description: str = ""
    input_per_1m: Optional[float] = Field(default=None, description="USD per 1M input tokens")
    output_per_1m: Optional[float] = Field(default=None, description="USD per 1M output tokens")

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        pricing = None
        if self.input_per_1m is not None:
            pricing = {"inputPer1M": self.input_per_1m, "outputPer1M": self.output_per_1m}
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "description": self.description,
            "pricing": pricing,
        }


MODEL_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "gpt-4.1": ("GPT-4.1", "Best balance of quality and speed"),
    "gpt-4.1-mini": ("GPT-4.1 mini", "Fastest and cheapest Azure OpenAI option"),
    "gpt-4o": ("GPT-4o", "Multimodal general-purpose model"),
    "gpt-4o-mini": ("GPT-4o mini", "Small and inexpensive"),
    "gemini-2.5-flash": ("Gemini 2.5 Flash", "Fastest and cheapest"),
    "gemini-2.5-pro": ("Gemini 2.5 Pro", "Stronger reasoning"),
    "gemini-flash-latest": ("Gemini Flash (legacy)", "Old name, prefer gemini-2.5-flash"),
}


def model_info(model_id: str, provider: Provider) -> ModelInfo:
    name, description = MODEL_DESCRIPTIONS.get(model_id, (model_id, ""))
    pricing = MODEL_PRICING.get(model_id)
    return ModelInfo(
        id=model_id,
        name=name,
        provider=provider,
        description=description,
        input_per_1m=pricing.base.input_per_1m if pricing else None,
        output_per_1m=pricing.base.output_per_1m if pricing else None,
    )


def list_models(settings: Settings) -> list[ModelInfo]:
    """Configured models, self-managed provider first, each only if its provider is configured."""
    models: list[ModelInfo] = []
    if settings.has_openai_compatible:
        models.extend(model_info(m, "direct") for m in settings.direct_model_list)
    if settings.has_azure_openai:
        models.extend(model_info(m, "sdk") for m in settings.sdk_model_list)
    return models
