"""
Static per-model pricing used to estimate LLM call cost
"""

from typing import Dict

# USD per 1000 tokens, prompt and completion alike
PRICE_PER_1K_TOKENS: Dict[str, float] = {
    "gpt-4": 0.03,
    "gpt-4-turbo": 0.01,
    "gpt-3.5-turbo": 0.002,
}
DEFAULT_PRICE_PER_1K_TOKENS = 0.002


def calculate_cost(model: str, total_tokens: int) -> float:
    price = PRICE_PER_1K_TOKENS.get(model, DEFAULT_PRICE_PER_1K_TOKENS)
    return total_tokens / 1000 * price
