"""Model adapters, one per backend family.

Importing this package registers every built-in adapter with the provider
registry in :mod:`codeshell.ai.adapters.base`.
"""

from codeshell.ai.adapters.base import (
    AdapterTimeouts,
    ModelAdapter,
    create_adapter,
    get_adapter_class,
    get_supported_providers,
    register_adapter,
)
from codeshell.ai.adapters.claude import AnthropicAdapter
from codeshell.ai.adapters.ollama import OllamaAdapter
from codeshell.ai.adapters.openai_compat import OpenAICompatibleAdapter

__all__ = [
    "AdapterTimeouts",
    "AnthropicAdapter",
    "ModelAdapter",
    "OllamaAdapter",
    "OpenAICompatibleAdapter",
    "create_adapter",
    "get_adapter_class",
    "get_supported_providers",
    "register_adapter",
]
