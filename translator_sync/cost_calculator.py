"""Token counting and cost estimation for LLM translation providers."""
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import tiktoken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    input_price: float  # USD per 1M input tokens
    output_price: float  # USD per 1M output tokens


@dataclass
class CostResult:
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str = "USD"


MODEL_PRICING: Dict[str, ModelPricing] = {
    "gpt-4.1-nano": ModelPricing(0.15, 0.6),
    "gpt-4o-mini": ModelPricing(0.15, 0.6),
    "gpt-4o": ModelPricing(5.0, 15.0),
    "gpt-3.5-turbo": ModelPricing(0.5, 1.5),
    "gpt-3.5-turbo-0125": ModelPricing(0.5, 1.5),
    "deepseek-v3": ModelPricing(0.14, 0.28),
    "deepseek-chat": ModelPricing(0.14, 0.28),
    "deepseek-v2": ModelPricing(0.14, 0.28),
    "llama-4-maverick": ModelPricing(0.05, 0.1),
    "llama-3-70b": ModelPricing(0.59, 0.79),
    "llama-3-70b-8192": ModelPricing(0.59, 0.79),
    "llama-3-8b": ModelPricing(0.05, 0.1),
    "llama-3-8b-8192": ModelPricing(0.05, 0.1),
    "mixtral-8x7b": ModelPricing(0.27, 0.27),
    "mixtral-8x7b-32768": ModelPricing(0.27, 0.27),
}

DEFAULT_PRICING_MODEL = "gpt-4.1-nano"
PROMPT_OVERHEAD_TOKENS = 200

# Typical length of a translation relative to its English source.
LANGUAGE_EXPANSION_FACTORS: Dict[str, float] = {
    "es": 1.1,
    "fr": 1.15,
    "it": 1.1,
    "pt": 1.1,
    "de": 1.25,
    "nl": 1.15,
    "ja": 0.8,
    "ko": 0.9,
    "zh": 0.7,
    "ru": 1.2,
    "ar": 1.0,
    "hi": 1.1,
}
DEFAULT_EXPANSION_FACTOR = 1.1


def count_tokens(text: str, model_name: str = 'gpt-3.5-turbo') -> int:
    """Count the number of tokens in ``text`` for ``model_name``.

    ``tiktoken.encoding_for_model`` may need to download model data, which is
    not possible everywhere (e.g. in CI). If obtaining the encoding for the
    requested model fails, ``gpt2`` (bundled with ``tiktoken``) is used. As a
    last resort, a whitespace split is counted.
    """
    try:
        encoding = tiktoken.encoding_for_model(model_name)
    except Exception:
        try:
            encoding = tiktoken.get_encoding("gpt2")
        except Exception:
            return len(text.split())

    try:
        return len(encoding.encode(text))
    except Exception:
        return len(text.split())


def get_model_pricing(model: str) -> Optional[ModelPricing]:
    return MODEL_PRICING.get(model)


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> CostResult:
    """
    Calculate the cost of API usage.

    Unknown models are priced like the default model, with a warning.
    """
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.warning("Unknown model for pricing: %s. Using default pricing.", model)
        pricing = MODEL_PRICING[DEFAULT_PRICING_MODEL]

    input_cost = input_tokens / 1_000_000 * pricing.input_price
    output_cost = output_tokens / 1_000_000 * pricing.output_price
    return CostResult(input_cost=input_cost, output_cost=output_cost, total_cost=input_cost + output_cost)


def get_language_expansion_factor(target_lang: str) -> float:
    return LANGUAGE_EXPANSION_FACTORS.get(target_lang, DEFAULT_EXPANSION_FACTOR)


def estimate_translation_cost(model: str, source_texts: List[str], target_lang: str = "es") -> CostResult:
    """
    Estimate the cost of translating ``source_texts`` before calling the API.

    Args:
        model: Model name used for pricing and tokenization.
        source_texts: Texts that would be sent.
        target_lang: Target language code; drives the expected output length.

    Returns:
        CostResult: Estimated input, output and total cost in USD.
    """
    input_tokens = count_tokens(" ".join(source_texts), model) + PROMPT_OVERHEAD_TOKENS
    output_tokens = math.ceil(input_tokens * get_language_expansion_factor(target_lang))
    return calculate_cost(model, input_tokens, output_tokens)


def find_cheapest_model(models: List[str]) -> Optional[str]:
    """Return the known model with the lowest average of input and output price."""
    cheapest = None
    lowest = math.inf
    for model in models:
        pricing = MODEL_PRICING.get(model)
        if pricing is None:
            continue
        average = (pricing.input_price + pricing.output_price) / 2
        if average < lowest:
            lowest = average
            cheapest = model
    return cheapest


def format_cost(cost: CostResult) -> str:
    if cost.total_cost < 0.01:
        return f"${cost.total_cost:.4f}" if cost.total_cost >= 0.001 else f"${cost.total_cost:.6f}"
    return f"${cost.total_cost:.3f}"
