"""
LLM Providers
"""

from .base import (
    LLMProvider,
    LLMResponse,
    ToolCall,
    ProviderRegistry,
    classify_provider_error,
)
from .openai_compat import OpenAICompatibleProvider
from .mock import MockProvider
from .pricing import calculate_cost

__all__ = [
    'LLMProvider',
    'LLMResponse',
    'ToolCall',
    'ProviderRegistry',
    'classify_provider_error',
    'OpenAICompatibleProvider',
    'MockProvider',
    'calculate_cost',
]
